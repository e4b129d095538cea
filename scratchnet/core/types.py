"""Core typing contracts for scratchnet."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List

import numpy as np

Array = np.ndarray

IMAGE_ROWS = 28
IMAGE_COLUMNS = 28
IMAGE_PIXELS = IMAGE_ROWS * IMAGE_COLUMNS


@dataclass(frozen=True)
class Image:
    """A raw 28x28 grayscale digit with its label."""

    pixels: bytes
    label: int

    def __post_init__(self) -> None:
        if len(self.pixels) != IMAGE_PIXELS:
            raise ValueError(f"Image must have {IMAGE_PIXELS} pixels, got {len(self.pixels)}")
        if not 0 <= self.label <= 255:
            raise ValueError(f"Label must fit in a byte, got {self.label}")


@dataclass(frozen=True)
class NormalisedImage:
    """Pixels scaled into ``[0, 1]``; the array is read-only."""

    pixels: Array
    label: int


@dataclass(frozen=True)
class Metrics:
    """Mean loss and top-1 accuracy over a group of samples."""

    loss: float
    accuracy: float

    def as_dict(self) -> Dict[str, float]:
        return {"loss": float(self.loss), "accuracy": float(self.accuracy)}


@dataclass(frozen=True)
class ModelDescription:
    """Description of the fully-connected stack."""

    num_features: int
    layer_sizes: List[int]
    activation: str
    parameter_count: int

    @property
    def layer_dims(self) -> List[int]:
        return [self.num_features, *self.layer_sizes]


@dataclass
class TrainingHistory:
    """Per-epoch metrics gathered by :class:`~scratchnet.training.trainer.Trainer`."""

    train: List[Metrics] = field(default_factory=list)
    val: List[Metrics] = field(default_factory=list)
    steps: int = 0

    @property
    def epochs(self) -> int:
        return len(self.train)


@dataclass(frozen=True)
class RunResult:
    """Summary returned by :func:`scratchnet.training.pipelines.run_pipeline`."""

    epochs: int
    steps: int
    metrics_path: str
    manifest_path: str
    summary_path: str = ""
