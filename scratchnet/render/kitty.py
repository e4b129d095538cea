"""Render digit images with the kitty terminal graphics protocol."""

from __future__ import annotations

import base64
import sys
from typing import List, TextIO

import numpy as np

from ..core.types import IMAGE_COLUMNS, IMAGE_ROWS, Image

DEFAULT_SCALE = 20
CHUNK_SIZE = 4096

_START = "\x1b_G"
_END = "\x1b\\"


def upscale(image: Image, scale: int) -> np.ndarray:
    """Nearest-neighbour upsample to a ``(28*scale, 28*scale, 3)`` RGB array."""

    if scale < 1:
        raise ValueError(f"scale must be >= 1, got {scale}")
    grey = np.frombuffer(image.pixels, dtype=np.uint8).reshape(IMAGE_ROWS, IMAGE_COLUMNS)
    big = np.repeat(np.repeat(grey, scale, axis=0), scale, axis=1)
    return np.repeat(big[:, :, None], 3, axis=2)


def encode_kitty(image: Image, scale: int | None = None) -> str:
    """Return escape sequences that draw ``image`` in a kitty-compatible terminal.

    The payload is raw 24-bit RGB (``f=24``) transmitted and displayed at once
    (``a=T``), split into base64 chunks of at most 4096 bytes.
    """

    size = DEFAULT_SCALE if scale is None else int(scale)
    rgb = upscale(image, size)
    height, width = rgb.shape[:2]
    encoded = base64.standard_b64encode(rgb.tobytes()).decode("ascii")
    chunks = [encoded[i : i + CHUNK_SIZE] for i in range(0, len(encoded), CHUNK_SIZE)]

    parts: List[str] = []
    for index, chunk in enumerate(chunks):
        more = 1 if index < len(chunks) - 1 else 0
        if index == 0:
            control = f"f=24,a=T,s={width},v={height},m={more}"
        else:
            control = f"m={more}"
        parts.append(f"{_START}{control};{chunk}{_END}")
    return "".join(parts)


def display_image(image: Image, scale: int | None = None, stream: TextIO | None = None) -> None:
    out = stream or sys.stdout
    out.write(encode_kitty(image, scale))
    out.flush()


__all__ = ["DEFAULT_SCALE", "display_image", "encode_kitty", "upscale"]
