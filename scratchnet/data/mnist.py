"""MNIST digits from IDX files, with a deterministic offline fixture."""

from __future__ import annotations

from pathlib import Path
from typing import Dict

import numpy as np

from ..core.types import IMAGE_COLUMNS, IMAGE_ROWS
from .cache import fetch
from .idx import load_images, write_idx_images, write_idx_labels
from .registry import DatasetSpec, register_dataset
from .utils import deterministic_split, take

MIRRORS = (
    "https://storage.googleapis.com/cvdf-datasets/mnist/",
    "https://ossci-datasets.s3.amazonaws.com/mnist/",
)

# Published md5 digests of the gzip archives served by both mirrors.
FILES = {
    "train_images": ("train-images-idx3-ubyte.gz", "md5:f68b3c2dcbeaaa9fbdd348bbdeb94873"),
    "train_labels": ("train-labels-idx1-ubyte.gz", "md5:d53e105ee54ea40749a09fcbcd1e9432"),
    "test_images": ("t10k-images-idx3-ubyte.gz", "md5:9fb629c4189551a2d022fa330f9573f3"),
    "test_labels": ("t10k-labels-idx1-ubyte.gz", "md5:ec29112dd5afa0611ce80d1b7f02629c"),
}

FIXTURE_SIZES = {"train": 256, "test": 64}
NUM_CLASSES = 10


def fixture_arrays(count: int, *, offset: int = 0) -> tuple[np.ndarray, np.ndarray]:
    """Procedural digit-like images: label ``k`` lights up rows ``2k .. 2k+7``.

    Built from integer arithmetic only so the bytes are identical on every
    platform and NumPy release.
    """

    index = np.arange(count, dtype=np.int64) + offset
    labels = (index * 7 % NUM_CLASSES).astype(np.uint8)
    images = np.zeros((count, IMAGE_ROWS, IMAGE_COLUMNS), dtype=np.int64)
    columns = np.arange(IMAGE_COLUMNS, dtype=np.int64)
    for i, label in enumerate(labels):
        top = 2 * int(label)
        band = 160 + (index[i] * 13 + columns * 3) % 96
        images[i, top : top + 8, 4:24] = band[4:24]
        images[i] += (index[i] * 31 + np.arange(IMAGE_ROWS)[:, None] * 5 + columns) % 24
    return np.clip(images, 0, 255).astype(np.uint8).reshape(count, -1), labels


def _builder(key: str):
    split = "train" if key.startswith("train") else "test"
    offset = 0 if split == "train" else 10_000

    def build(path: Path) -> None:
        pixels, labels = fixture_arrays(FIXTURE_SIZES[split], offset=offset)
        if key.endswith("images"):
            write_idx_images(path, pixels)
        else:
            write_idx_labels(path, labels)

    return build


@register_dataset("mnist")
def build_mnist(
    *,
    offline: bool | None = None,
    cache_dir: str | Path | None = None,
    val_split: float = 0.1,
    seed: int = 0,
    max_items: int | None = None,
) -> DatasetSpec:
    """Load MNIST (or its offline fixture) and split off a validation set."""

    paths: Dict[str, Path] = {}
    provenance: Dict[str, object] = {}
    for key, (filename, checksum) in FILES.items():
        path, record = fetch(
            name=f"mnist/{key}",
            filename=filename,
            mirrors=MIRRORS,
            checksum=checksum,
            offline=offline,
            offline_builder=_builder(key),
            cache_dir=cache_dir,
        )
        paths[key] = path
        provenance[key] = dict(record)

    train_all = load_images(paths["train_images"], paths["train_labels"], limit=max_items)
    test = load_images(paths["test_images"], paths["test_labels"], limit=max_items)
    splits = deterministic_split(len(train_all), val_split=val_split, seed=seed)

    provenance.update({"val_split": val_split, "seed": seed, "max_items": max_items})
    return DatasetSpec(
        name="mnist",
        train=take(train_all, splits.train),
        val=take(train_all, splits.val),
        test=test,
        num_classes=NUM_CLASSES,
        provenance=provenance,
    )


__all__ = ["FILES", "MIRRORS", "build_mnist", "fixture_arrays"]
