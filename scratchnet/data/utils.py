"""Utility helpers for dataset factories."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence, TypeVar

import numpy as np

T = TypeVar("T")


@dataclass(frozen=True)
class SplitIndices:
    """Indices for the train/validation partition."""

    train: np.ndarray
    val: np.ndarray

    @property
    def sizes(self) -> dict[str, int]:
        return {"train": int(self.train.size), "val": int(self.val.size)}


def deterministic_split(n_samples: int, *, val_split: float = 0.1, seed: int = 0) -> SplitIndices:
    """Return reproducible train/validation indices for ``n_samples`` records."""

    if not 0 <= val_split < 1:
        raise ValueError("val_split must be in [0, 1)")
    rng = np.random.default_rng(seed)
    indices = np.arange(n_samples)
    rng.shuffle(indices)

    val_size = int(round(n_samples * val_split))
    # Keep at least one validation sample when a split was requested.
    if val_split > 0:
        val_size = max(val_size, 1)
    if n_samples - val_size <= 0:
        raise ValueError("Not enough samples for the requested validation split")
    return SplitIndices(train=np.sort(indices[val_size:]), val=np.sort(indices[:val_size]))


def take(items: Sequence[T], indices: np.ndarray) -> List[T]:
    return [items[int(i)] for i in indices]


__all__ = ["SplitIndices", "deterministic_split", "take"]
