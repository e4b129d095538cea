"""Reader and writer for the IDX image/label file pair.

Pixel files start with a 16-byte big-endian header (magic ``2051``, record
count, rows, columns) followed by one unsigned byte per pixel.  Label files
start with an 8-byte header (magic ``2049``, record count) followed by one
byte per label.  Files ending in ``.gz`` are decompressed transparently.
"""

from __future__ import annotations

import gzip
import struct
from pathlib import Path
from typing import List, Sequence

import numpy as np

from ..core.types import IMAGE_COLUMNS, IMAGE_ROWS, Image

IMAGES_MAGIC = 2051
LABELS_MAGIC = 2049
IMAGES_HEADER = struct.Struct(">iiii")
LABELS_HEADER = struct.Struct(">ii")


class DatasetError(RuntimeError):
    """Raised when an IDX file is malformed or the pair is inconsistent."""


def _read_bytes(path: str | Path) -> bytes:
    path = Path(path)
    if not path.exists():
        raise DatasetError(f"Dataset file not found: {path}")
    if path.suffix == ".gz":
        with gzip.open(path, "rb") as handle:
            return handle.read()
    return path.read_bytes()


def _write_bytes(path: str | Path, payload: bytes) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    if path.suffix == ".gz":
        # mtime=0 keeps the archive bytes stable across runs.
        with gzip.GzipFile(path, "wb", mtime=0) as handle:
            handle.write(payload)
    else:
        path.write_bytes(payload)
    return path


def read_idx_images(path: str | Path) -> np.ndarray:
    """Return a ``(count, rows * columns)`` ``uint8`` array."""

    data = _read_bytes(path)
    if len(data) < IMAGES_HEADER.size:
        raise DatasetError(f"{path}: truncated image header")
    magic, count, rows, columns = IMAGES_HEADER.unpack_from(data)
    if magic != IMAGES_MAGIC:
        raise DatasetError(f"{path}: bad image magic {magic}, expected {IMAGES_MAGIC}")
    if (rows, columns) != (IMAGE_ROWS, IMAGE_COLUMNS):
        raise DatasetError(
            f"{path}: images are {rows}x{columns}, expected {IMAGE_ROWS}x{IMAGE_COLUMNS}"
        )
    expected = count * rows * columns
    payload = np.frombuffer(data, dtype=np.uint8, offset=IMAGES_HEADER.size)
    if payload.size < expected:
        raise DatasetError(f"{path}: expected {expected} pixel bytes, found {payload.size}")
    return payload[:expected].reshape(count, rows * columns)


def read_idx_labels(path: str | Path) -> np.ndarray:
    data = _read_bytes(path)
    if len(data) < LABELS_HEADER.size:
        raise DatasetError(f"{path}: truncated label header")
    magic, count = LABELS_HEADER.unpack_from(data)
    if magic != LABELS_MAGIC:
        raise DatasetError(f"{path}: bad label magic {magic}, expected {LABELS_MAGIC}")
    payload = np.frombuffer(data, dtype=np.uint8, offset=LABELS_HEADER.size)
    if payload.size < count:
        raise DatasetError(f"{path}: expected {count} labels, found {payload.size}")
    return payload[:count]


def load_images(
    images_path: str | Path,
    labels_path: str | Path,
    *,
    limit: int | None = None,
) -> List[Image]:
    """Read a pixel/label file pair into :class:`Image` records."""

    pixels = read_idx_images(images_path)
    labels = read_idx_labels(labels_path)
    if pixels.shape[0] != labels.shape[0]:
        raise DatasetError(
            f"Record count mismatch: {pixels.shape[0]} images vs {labels.shape[0]} labels"
        )
    count = pixels.shape[0] if limit is None else min(int(limit), pixels.shape[0])
    return [Image(pixels=pixels[i].tobytes(), label=int(labels[i])) for i in range(count)]


def write_idx_images(path: str | Path, pixels: np.ndarray) -> Path:
    array = np.asarray(pixels, dtype=np.uint8).reshape(-1, IMAGE_ROWS * IMAGE_COLUMNS)
    header = IMAGES_HEADER.pack(IMAGES_MAGIC, array.shape[0], IMAGE_ROWS, IMAGE_COLUMNS)
    return _write_bytes(path, header + array.tobytes())


def write_idx_labels(path: str | Path, labels: Sequence[int] | np.ndarray) -> Path:
    array = np.asarray(labels, dtype=np.uint8).reshape(-1)
    header = LABELS_HEADER.pack(LABELS_MAGIC, array.shape[0])
    return _write_bytes(path, header + array.tobytes())


__all__ = [
    "DatasetError",
    "load_images",
    "read_idx_images",
    "read_idx_labels",
    "write_idx_images",
    "write_idx_labels",
]
