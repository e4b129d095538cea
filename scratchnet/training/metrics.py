"""Metric helpers for the trainer."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from ..core.matrix import Matrix
from ..core.types import Metrics


def top1(probabilities: Matrix) -> int:
    """Index of the most probable class; ties resolve to the lowest index."""

    return int(np.argmax(probabilities.to_numpy()[0]))


def is_correct(probabilities: Matrix, label: int) -> bool:
    return top1(probabilities) == int(label)


@dataclass
class MetricAccumulator:
    """Running sum of per-sample loss and top-1 hits."""

    total_loss: float = 0.0
    correct: int = 0
    count: int = 0

    def add(self, loss: float, correct: bool) -> None:
        self.total_loss += float(loss)
        self.correct += int(bool(correct))
        self.count += 1

    def merge(self, other: "MetricAccumulator") -> None:
        self.total_loss += other.total_loss
        self.correct += other.correct
        self.count += other.count

    def result(self) -> Metrics:
        if self.count == 0:
            return Metrics(loss=0.0, accuracy=0.0)
        return Metrics(loss=self.total_loss / self.count, accuracy=self.correct / self.count)


__all__ = ["MetricAccumulator", "is_correct", "top1"]
