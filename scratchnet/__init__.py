"""scratchnet public API."""

from .core import activations, losses, operations, types  # noqa: F401
from .core.matrix import Matrix
from .core.network import Network
from .training.pipelines import load_preset, presets, run_pipeline
from .training.trainer import Trainer

__all__ = [
    "Matrix",
    "Network",
    "Trainer",
    "activations",
    "load_preset",
    "losses",
    "operations",
    "presets",
    "run_pipeline",
    "types",
]
