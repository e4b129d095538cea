"""Metric sinks receiving per-batch and per-epoch training records."""

from __future__ import annotations

import csv
import json
import subprocess
from pathlib import Path
from typing import Mapping

FIELDNAMES = ("kind", "epoch", "batch", "split", "loss", "accuracy")


def git_sha() -> str:
    try:
        out = subprocess.check_output(["git", "rev-parse", "HEAD"], stderr=subprocess.DEVNULL)
        return out.decode().strip()
    except (OSError, subprocess.CalledProcessError):  # pragma: no cover - git may be unavailable
        return "unknown"


def _numeric(metrics: Mapping[str, object]) -> dict[str, float]:
    return {
        k: float(v)
        for k, v in metrics.items()
        if isinstance(v, (int, float)) and not isinstance(v, bool) and k != "batch"
    }


class JsonlSink:
    """Append-only JSONL writer; one line per batch or epoch record."""

    def __init__(
        self,
        path: str | Path,
        *,
        split: str = "train",
        seed: int | None = None,
        sha: str | None = None,
        batches: bool = True,
    ) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text("")
        self.split = split
        self.seed = seed
        self.sha = sha or git_sha()
        self.batches = batches

    def _write(self, record: dict) -> None:
        with self.path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(record) + "\n")

    def on_batch(self, epoch: int, batch: int, metrics: Mapping[str, float]) -> None:
        if not self.batches:
            return
        record = {"kind": "batch", "epoch": int(epoch), "batch": int(batch), "split": self.split}
        record.update(_numeric(metrics))
        self._write(record)

    def on_epoch(self, epoch: int, metrics: Mapping[str, float]) -> None:
        record = {
            "kind": "epoch",
            "epoch": int(epoch),
            "split": self.split,
            "seed": self.seed,
            "sha": self.sha,
        }
        record.update(_numeric(metrics))
        self._write(record)

    __call__ = on_epoch


class CsvSink:
    """CSV writer with a fixed column order; epoch rows leave ``batch`` empty."""

    def __init__(self, path: str | Path, *, split: str = "train") -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text("")
        self.split = split

    def _write(self, row: dict) -> None:
        with self.path.open("a", encoding="utf-8", newline="") as handle:
            writer = csv.DictWriter(handle, fieldnames=FIELDNAMES, extrasaction="ignore")
            if handle.tell() == 0:
                writer.writeheader()
            writer.writerow(row)

    def on_batch(self, epoch: int, batch: int, metrics: Mapping[str, float]) -> None:
        row = {"kind": "batch", "epoch": int(epoch), "batch": int(batch), "split": self.split}
        row.update(_numeric(metrics))
        self._write(row)

    def on_epoch(self, epoch: int, metrics: Mapping[str, float]) -> None:
        row = {"kind": "epoch", "epoch": int(epoch), "batch": "", "split": self.split}
        row.update(_numeric(metrics))
        self._write(row)


class MetricsCapture:
    """In-memory sink keeping the epoch history."""

    def __init__(self) -> None:
        self.history: list[tuple[int, Mapping[str, float]]] = []
        self.batches: list[tuple[int, int, Mapping[str, float]]] = []

    @property
    def last(self) -> Mapping[str, float]:
        return self.history[-1][1] if self.history else {}

    def on_batch(self, epoch: int, batch: int, metrics: Mapping[str, float]) -> None:
        self.batches.append((int(epoch), int(batch), _numeric(metrics)))

    def on_epoch(self, epoch: int, metrics: Mapping[str, float]) -> None:
        self.history.append((int(epoch), _numeric(metrics)))


__all__ = ["CsvSink", "JsonlSink", "MetricsCapture", "git_sha"]
