"""Training loop, metrics and pipeline assembly."""

from .trainer import Trainer, fisher_yates_shuffle, make_batches, normalise_image, one_hot

__all__ = ["Trainer", "fisher_yates_shuffle", "make_batches", "normalise_image", "one_hot"]
