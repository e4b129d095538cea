"""Dataset registry and metadata contracts."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, MutableMapping

from ..core.types import IMAGE_PIXELS, Image


@dataclass(frozen=True)
class DatasetSpec:
    """Images for every split plus where they came from.

    Attributes
    ----------
    name:
        Registry identifier of the dataset.
    train, val, test:
        Raw :class:`~scratchnet.core.types.Image` records.  ``val`` is carved
        out of the training file deterministically; ``test`` comes from the
        held-out file pair.
    num_features:
        Flattened input width fed to the network.
    num_classes:
        Number of distinct labels.
    provenance:
        Cache records for every file that was read.
    """

    name: str
    train: List[Image]
    val: List[Image]
    test: List[Image]
    num_features: int = IMAGE_PIXELS
    num_classes: int = 10
    provenance: Dict[str, Any] = field(default_factory=dict)

    @property
    def splits(self) -> Dict[str, int]:
        return {"train": len(self.train), "val": len(self.val), "test": len(self.test)}


DatasetFactory = Callable[..., DatasetSpec]

_REGISTRY: MutableMapping[str, DatasetFactory] = {}


def register_dataset(name: str) -> Callable[[DatasetFactory], DatasetFactory]:
    """Decorator registering ``func`` under ``name``::

        @register_dataset("mnist")
        def build_mnist(**kwargs):
            ...
    """

    def _decorator(func: DatasetFactory) -> DatasetFactory:
        _REGISTRY[name] = func
        return func

    return _decorator


def get_dataset(
    name: str,
    /,
    *,
    offline: bool | None = None,
    cache_dir: str | Path | None = None,
    **options: Any,
) -> DatasetSpec:
    """Build the :class:`DatasetSpec` registered under ``name``."""

    if name not in _REGISTRY:
        available = ", ".join(sorted(_REGISTRY))
        raise KeyError(f"Unknown dataset {name!r}. Available datasets: {available}")
    spec = _REGISTRY[name](offline=offline, cache_dir=cache_dir, **options)
    _validate_spec(spec)
    return spec


def available_datasets() -> Iterable[str]:
    return sorted(_REGISTRY)


def _validate_spec(spec: DatasetSpec) -> None:
    if not spec.train:
        raise ValueError(f"Dataset {spec.name!r} has an empty training split")
    if spec.num_classes < 2:
        raise ValueError(f"Dataset {spec.name!r} must define at least two classes")
    for split, images in (("train", spec.train), ("val", spec.val), ("test", spec.test)):
        bad = [image.label for image in images if image.label >= spec.num_classes]
        if bad:
            raise ValueError(
                f"Split {split!r} of {spec.name!r} has labels outside [0, {spec.num_classes}): {bad[:5]}"
            )


__all__ = ["DatasetSpec", "available_datasets", "get_dataset", "register_dataset"]
