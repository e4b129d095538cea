"""Headless-safe plotting of training curves."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Mapping, Tuple


class PlotAdapter:
    """Collect epoch metrics per split and optionally write matplotlib figures."""

    def __init__(self, run_dir: str | Path, enable_plots: bool = False):
        self.enable_plots = enable_plots
        self.run_dir = Path(run_dir)
        self._history: Dict[str, List[Tuple[int, float, float]]] = {}
        if self.enable_plots:
            self.run_dir.mkdir(parents=True, exist_ok=True)

    def for_split(self, split: str) -> "_SplitView":
        return _SplitView(self, split)

    def record(self, split: str, epoch: int, metrics: Mapping[str, float]) -> None:
        if not self.enable_plots:
            return
        loss = float(metrics.get("loss", 0.0))
        accuracy = float(metrics.get("accuracy", 0.0))
        self._history.setdefault(split, []).append((epoch, loss, accuracy))

    def close(self) -> List[Path]:
        if not self.enable_plots or not self._history:
            return []
        import matplotlib

        matplotlib.use("Agg", force=True)
        import matplotlib.pyplot as plt  # imported lazily for headless safety

        written: List[Path] = []
        for index, (name, label) in enumerate((("loss", "Loss"), ("accuracy", "Accuracy"))):
            fig, ax = plt.subplots()
            for split, rows in sorted(self._history.items()):
                epochs = [row[0] for row in rows]
                values = [row[1 + index] for row in rows]
                ax.plot(epochs, values, marker="o", label=split)
            ax.set_xlabel("Epoch")
            ax.set_ylabel(label)
            ax.set_title(f"{label} per epoch")
            ax.legend()
            path = self.run_dir / f"{name}.png"
            fig.savefig(path)
            plt.close(fig)
            written.append(path)
        return written


class _SplitView:
    def __init__(self, adapter: PlotAdapter, split: str) -> None:
        self._adapter = adapter
        self._split = split

    def on_epoch(self, epoch: int, metrics: Mapping[str, float]) -> None:
        self._adapter.record(self._split, epoch, metrics)
