"""Deterministic epoch/batch training loop for :class:`Network`."""

from __future__ import annotations

from typing import List, Mapping, MutableSequence, Optional, Sequence, TypeVar

import numpy as np

from ..core.losses import REGISTRY as LOSS_REGISTRY
from ..core.losses import Loss
from ..core.matrix import Matrix
from ..core.network import Network, NetworkGradients
from ..core.types import Image, Metrics, NormalisedImage, TrainingHistory
from .metrics import MetricAccumulator, is_correct

T = TypeVar("T")

UPDATE_MODES = ("sample", "batch")


def fisher_yates_shuffle(items: MutableSequence[T], rng: np.random.Generator) -> MutableSequence[T]:
    """Shuffle ``items`` in place and return it."""

    for i in range(len(items) - 1, 0, -1):
        j = int(rng.integers(0, i + 1))
        items[i], items[j] = items[j], items[i]
    return items


def make_batches(items: Sequence[T], batch_size: int) -> List[Sequence[T]]:
    """Split ``items`` into contiguous batches; the last one may be short."""

    if batch_size < 1:
        raise ValueError(f"batch_size must be >= 1, got {batch_size}")
    return [items[start : start + batch_size] for start in range(0, len(items), batch_size)]


def normalise_image(image: Image) -> NormalisedImage:
    pixels = np.frombuffer(image.pixels, dtype=np.uint8).astype(np.float64) / 255.0
    pixels.flags.writeable = False
    return NormalisedImage(pixels=pixels, label=int(image.label))


def normalise_batch(batch: Sequence[Image]) -> List[NormalisedImage]:
    return [normalise_image(image) for image in batch]


def one_hot(label: int, num_classes: int) -> Matrix:
    if not 0 <= label < num_classes:
        raise ValueError(f"Label {label} outside [0, {num_classes})")
    target = Matrix(1, num_classes)
    target.set(0, label, 1.0)
    return target


class Trainer:
    """Drive forward, loss, backward and update over shuffled batches.

    ``update_mode="sample"`` applies a gradient step after every sample, even
    though samples are grouped into batches.  ``update_mode="batch"`` averages
    the per-sample gradients and steps once per batch.
    """

    def __init__(
        self,
        network: Network,
        *,
        learning_rate: float,
        batch_size: int,
        num_classes: int | None = None,
        loss: Loss | str = "ce",
        update_mode: str = "sample",
        seed: int | None = None,
        max_batches: int | None = None,
        callbacks: Sequence[object] | None = None,
    ) -> None:
        if learning_rate <= 0:
            raise ValueError(f"learning_rate must be positive, got {learning_rate}")
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        if update_mode not in UPDATE_MODES:
            raise ValueError(f"update_mode must be one of {UPDATE_MODES}, got {update_mode!r}")
        self.network = network
        self.learning_rate = float(learning_rate)
        self.batch_size = int(batch_size)
        self.num_classes = int(num_classes or network.num_classes)
        if self.num_classes != network.num_classes:
            raise ValueError(
                f"num_classes={self.num_classes} does not match the network's "
                f"{network.num_classes} outputs"
            )
        self.loss = LOSS_REGISTRY.get(loss) if isinstance(loss, str) else loss
        self.update_mode = update_mode
        self.max_batches = max_batches
        self.callbacks = list(callbacks or [])
        self._rng = np.random.default_rng(seed)
        self.steps = 0

    def run(
        self,
        train_images: Sequence[Image],
        epochs: int,
        val_images: Sequence[Image] | None = None,
        *,
        split_loggers: Mapping[str, Sequence[object]] | None = None,
    ) -> TrainingHistory:
        if epochs < 1:
            raise ValueError(f"epochs must be >= 1, got {epochs}")
        if not train_images:
            raise ValueError("Cannot train on an empty dataset")
        loggers = split_loggers or {}
        history = TrainingHistory()
        for epoch in range(1, epochs + 1):
            train_metrics = self._train_epoch(epoch, train_images, loggers)
            history.train.append(train_metrics)
            self._emit("on_epoch", "train", loggers, epoch, train_metrics.as_dict())

            if val_images:
                val_metrics = self.evaluate(val_images, epoch=epoch, loggers=loggers)
                history.val.append(val_metrics)
                self._emit("on_epoch", "val", loggers, epoch, val_metrics.as_dict())
        history.steps = self.steps
        return history

    def evaluate(
        self,
        images: Sequence[Image],
        *,
        epoch: int = 0,
        loggers: Mapping[str, Sequence[object]] | None = None,
    ) -> Metrics:
        """Forward-only pass; never touches the parameters."""

        loggers = loggers or {}
        total = MetricAccumulator()
        for index, batch in enumerate(make_batches(images, self.batch_size)):
            acc = MetricAccumulator()
            for sample in normalise_batch(batch):
                target = one_hot(sample.label, self.num_classes)
                predictions = self.network.forward(Matrix.row_vector(sample.pixels))
                acc.add(self.loss(predictions, target), is_correct(predictions, sample.label))
            self.network.clear_cache()
            total.merge(acc)
            self._emit_batch("val", loggers, epoch, index, acc.result())
        return total.result()

    # ------------------------------------------------------------------
    # Internal helpers

    def _train_epoch(
        self,
        epoch: int,
        images: Sequence[Image],
        loggers: Mapping[str, Sequence[object]],
    ) -> Metrics:
        shuffled = fisher_yates_shuffle(list(images), self._rng)
        batches = make_batches(shuffled, self.batch_size)
        if self.max_batches is not None:
            batches = batches[: max(1, int(self.max_batches))]
        total = MetricAccumulator()
        for index, batch in enumerate(batches):
            acc = self._train_batch(normalise_batch(batch))
            total.merge(acc)
            self.steps += 1
            self._emit_batch("train", loggers, epoch, index, acc.result())
        return total.result()

    def _train_batch(self, batch: Sequence[NormalisedImage]) -> MetricAccumulator:
        acc = MetricAccumulator()
        pending: Optional[NetworkGradients] = None
        for sample in batch:
            target = one_hot(sample.label, self.num_classes)
            predictions = self.network.forward(Matrix.row_vector(sample.pixels))
            acc.add(self.loss(predictions, target), is_correct(predictions, sample.label))
            gradients = self.network.backward(predictions, target, self.loss)
            if self.update_mode == "sample":
                self.network.update(gradients, self.learning_rate)
            else:
                pending = gradients if pending is None else pending.accumulate(gradients)
        if pending is not None:
            self.network.update(pending.scaled(1.0 / len(batch)), self.learning_rate)
        return acc

    def _emit_batch(
        self,
        split: str,
        loggers: Mapping[str, Sequence[object]],
        epoch: int,
        index: int,
        metrics: Metrics,
    ) -> None:
        payload = dict(metrics.as_dict(), batch=index)
        for callback in [*self.callbacks, *loggers.get(split, [])]:
            if hasattr(callback, "on_batch"):
                callback.on_batch(epoch, index, payload)  # type: ignore[attr-defined]

    def _emit(
        self,
        hook: str,
        split: str,
        loggers: Mapping[str, Sequence[object]],
        epoch: int,
        metrics: Mapping[str, float],
    ) -> None:
        for callback in self.callbacks:
            if hasattr(callback, hook):
                getattr(callback, hook)(epoch, metrics)
        for callback in loggers.get(split, []):
            if hasattr(callback, hook):
                getattr(callback, hook)(epoch, metrics)
            elif callable(callback):
                callback(epoch, metrics)


__all__ = [
    "Trainer",
    "fisher_yates_shuffle",
    "make_batches",
    "normalise_batch",
    "normalise_image",
    "one_hot",
]
