"""Dataset readers, cache and registry for scratchnet."""

from . import mnist  # noqa: F401  registers the "mnist" factory
from .idx import DatasetError, load_images
from .registry import DatasetSpec, available_datasets, get_dataset, register_dataset

__all__ = [
    "DatasetError",
    "DatasetSpec",
    "available_datasets",
    "get_dataset",
    "load_images",
    "register_dataset",
]
