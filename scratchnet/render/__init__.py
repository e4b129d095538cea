"""Terminal rendering of raw digit images."""

from .kitty import display_image, encode_kitty

__all__ = ["display_image", "encode_kitty"]
