"""Deterministic run summaries built from JSONL metric files."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Iterable, Mapping

import numpy as np


def _epoch_series(records: Iterable[Mapping[str, object]]) -> dict[str, list[float]]:
    series: dict[str, list[float]] = {}
    for record in records:
        if record.get("kind", "epoch") != "epoch":
            continue
        for key in ("loss", "accuracy"):
            value = record.get(key)
            if isinstance(value, (int, float)):
                series.setdefault(key, []).append(float(value))
    return series


def summarise(records: list[Mapping[str, object]]) -> Mapping[str, object]:
    metrics: dict[str, Mapping[str, float]] = {}
    for name, values in _epoch_series(records).items():
        arr = np.asarray(values, dtype=np.float64)
        metrics[name] = {
            "first": float(arr[0]),
            "last": float(arr[-1]),
            "min": float(arr.min()),
            "max": float(arr.max()),
            "mean": float(arr.mean()),
        }
    return {
        "version": 1,
        "epochs": sum(1 for r in records if r.get("kind", "epoch") == "epoch"),
        "batches": sum(1 for r in records if r.get("kind") == "batch"),
        "metrics": metrics,
    }


def write_summary(metrics_jsonl: str | Path, out_summary_json: str | Path) -> str:
    """Condense ``metrics_jsonl`` into ``out_summary_json``."""

    metrics_path = Path(metrics_jsonl)
    out_path = Path(out_summary_json)
    out_path.parent.mkdir(parents=True, exist_ok=True)

    records: list[Mapping[str, object]] = []
    if metrics_path.exists():
        for line in metrics_path.read_text().splitlines():
            line = line.strip()
            if line:
                records.append(json.loads(line))

    out_path.write_text(json.dumps(summarise(records), sort_keys=True, indent=2))
    return str(out_path)


__all__ = ["summarise", "write_summary"]
