"""A linear stack of fully-connected layers topped by softmax."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, List, Optional, Sequence

import numpy as np

from .activations import ActivationType, softmax, softmax_backward
from .layer import Layer, LayerGradients
from .losses import REGISTRY as LOSS_REGISTRY
from .losses import Loss
from .matrix import DimensionMismatch, Matrix
from .types import ModelDescription

MIN_LAYERS = 2


class TooFewLayers(ValueError):
    """Raised when a network is configured with fewer than two layers."""


@dataclass(frozen=True)
class NetworkGradients:
    """Per-layer gradients indexed identically to :attr:`Network.layers`."""

    layers: List[LayerGradients]

    def __len__(self) -> int:
        return len(self.layers)

    def __iter__(self) -> Iterator[LayerGradients]:
        return iter(self.layers)

    def __getitem__(self, index: int) -> LayerGradients:
        return self.layers[index]

    def scaled(self, factor: float) -> "NetworkGradients":
        return NetworkGradients([layer.scaled(factor) for layer in self.layers])

    def accumulate(self, other: "NetworkGradients") -> "NetworkGradients":
        if len(self) != len(other):
            raise DimensionMismatch(
                f"Cannot accumulate gradients of {len(self)} and {len(other)} layers"
            )
        return NetworkGradients([a.accumulate(b) for a, b in zip(self.layers, other.layers)])


class Network:
    """Multilayer perceptron with a cached forward pass.

    Lifecycle: a freshly constructed network has no cache.  :meth:`forward`
    stores a copy of every layer's input, :meth:`backward` consumes that
    cache and :meth:`update` applies the resulting gradients and drops it,
    leaving the network ready for the next forward pass.
    """

    def __init__(
        self,
        num_features: int,
        layer_sizes: Sequence[int],
        activation: ActivationType | str = ActivationType.RELU,
        *,
        seed: int | None = None,
        rng: np.random.Generator | None = None,
    ) -> None:
        sizes = [int(size) for size in layer_sizes]
        if len(sizes) < MIN_LAYERS:
            raise TooFewLayers(
                f"A network needs at least {MIN_LAYERS} layers, got {len(sizes)}"
            )
        if num_features < 1:
            raise ValueError(f"num_features must be positive, got {num_features}")
        self.num_features = int(num_features)
        self.activation = ActivationType.parse(activation)
        generator = rng if rng is not None else np.random.default_rng(seed)

        self.layers: List[Layer] = []
        num_inputs = self.num_features
        for size in sizes:
            self.layers.append(Layer.initialise(size, num_inputs, self.activation, generator))
            num_inputs = size

        self._layer_inputs: Optional[List[Matrix]] = None

    # ------------------------------------------------------------------
    # Introspection

    @property
    def num_layers(self) -> int:
        return len(self.layers)

    @property
    def num_classes(self) -> int:
        return self.layers[-1].num_neurons

    @property
    def has_cache(self) -> bool:
        return self._layer_inputs is not None

    @property
    def layer_inputs(self) -> List[Matrix]:
        if self._layer_inputs is None:
            raise RuntimeError("No forward pass has been cached")
        return list(self._layer_inputs)

    def parameter_count(self) -> int:
        return sum(layer.parameter_count() for layer in self.layers)

    def describe(self) -> ModelDescription:
        return ModelDescription(
            num_features=self.num_features,
            layer_sizes=[layer.num_neurons for layer in self.layers],
            activation=self.activation.value,
            parameter_count=self.parameter_count(),
        )

    # ------------------------------------------------------------------
    # Training primitives

    def forward(self, inputs: Matrix) -> Matrix:
        """Return class probabilities for a ``1 x num_features`` input."""

        if inputs.shape != (1, self.num_features):
            raise DimensionMismatch(
                f"Network expects a 1x{self.num_features} input, got {inputs.rows}x{inputs.columns}"
            )
        cache: List[Matrix] = []
        current = inputs
        for layer in self.layers:
            cache.append(current.copy())
            current = layer.forward(current)
        probabilities = softmax(current)

        self._layer_inputs = cache
        return probabilities

    def backward(
        self,
        predictions: Matrix,
        targets: Matrix,
        loss: Loss | str = "ce",
    ) -> NetworkGradients:
        """Backpropagate ``loss(predictions, targets)`` through every layer.

        ``predictions`` are the softmax probabilities returned by
        :meth:`forward`.  Losses with a ``logit_gradient`` (cross-entropy)
        supply ``dL/dz`` for the last layer directly; any other loss gradient
        is taken with respect to the probabilities and pushed through the
        softmax Jacobian.
        """

        if self._layer_inputs is None:
            raise RuntimeError("backward() called before forward(); no cached layer inputs")
        if predictions.shape != (1, self.num_classes):
            raise DimensionMismatch(
                f"Expected 1x{self.num_classes} predictions, got {predictions.rows}x{predictions.columns}"
            )
        loss_fn = LOSS_REGISTRY.get(loss) if isinstance(loss, str) else loss

        if loss_fn.logit_gradient is not None:
            upstream = loss_fn.logit_gradient(predictions, targets)
        else:
            upstream = softmax_backward(predictions, loss_fn.gradient(predictions, targets))
        gradients: List[Optional[LayerGradients]] = [None] * self.num_layers
        for i in reversed(range(self.num_layers)):
            gradients[i] = self.layers[i].backward(upstream, self._layer_inputs[i])
            upstream = gradients[i].wrt_input
        return NetworkGradients([g for g in gradients if g is not None])

    def update(self, gradients: NetworkGradients, learning_rate: float) -> None:
        """Plain SGD step on every layer."""

        if len(gradients) != self.num_layers:
            raise DimensionMismatch(
                f"Expected gradients for {self.num_layers} layers, got {len(gradients)}"
            )
        for layer, layer_gradients in zip(self.layers, gradients):
            layer.update(layer_gradients, learning_rate)
        self.clear_cache()

    def predict(self, inputs: Matrix) -> int:
        probabilities = self.forward(inputs)
        return int(np.argmax(probabilities.to_numpy()[0]))

    def clear_cache(self) -> None:
        self._layer_inputs = None


__all__ = ["MIN_LAYERS", "Network", "NetworkGradients", "TooFewLayers"]
