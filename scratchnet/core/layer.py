"""Fully-connected layer built from independent neurons."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence

import numpy as np

from .activations import ActivationType
from .matrix import DimensionMismatch, Matrix
from .neuron import Neuron, NeuronGradients
from .operations import add, scale


@dataclass(frozen=True)
class LayerGradients:
    """Per-sample gradients for a whole layer.

    ``wrt_input`` is the sum of every neuron's input gradient: all neurons
    read the same input vector, so their contributions add up.
    """

    wrt_input: Matrix
    wrt_weight: Matrix
    wrt_bias: List[float]
    neurons: List[NeuronGradients]

    def scaled(self, factor: float) -> "LayerGradients":
        return LayerGradients(
            wrt_input=scale(self.wrt_input, factor),
            wrt_weight=scale(self.wrt_weight, factor),
            wrt_bias=[b * factor for b in self.wrt_bias],
            neurons=[g.scaled(factor) for g in self.neurons],
        )

    def accumulate(self, other: "LayerGradients") -> "LayerGradients":
        """Return the elementwise sum of two gradient bundles."""

        if len(self.neurons) != len(other.neurons):
            raise DimensionMismatch(
                f"Cannot accumulate gradients of {len(self.neurons)} and {len(other.neurons)} neurons"
            )
        return LayerGradients(
            wrt_input=add(self.wrt_input, other.wrt_input),
            wrt_weight=add(self.wrt_weight, other.wrt_weight),
            wrt_bias=[a + b for a, b in zip(self.wrt_bias, other.wrt_bias)],
            neurons=[
                NeuronGradients(
                    wrt_input=add(a.wrt_input, b.wrt_input),
                    wrt_weight=add(a.wrt_weight, b.wrt_weight),
                    wrt_bias=a.wrt_bias + b.wrt_bias,
                )
                for a, b in zip(self.neurons, other.neurons)
            ],
        )


class Layer:
    """Ordered neurons sharing an input width and an activation."""

    def __init__(
        self,
        neurons: Sequence[Neuron],
        activation: ActivationType | str = ActivationType.RELU,
    ) -> None:
        if not neurons:
            raise ValueError("A layer needs at least one neuron")
        widths = {neuron.num_inputs for neuron in neurons}
        if len(widths) != 1:
            raise DimensionMismatch(f"Neurons in a layer must share an input width, got {sorted(widths)}")
        self.neurons: List[Neuron] = list(neurons)
        self.activation = ActivationType.parse(activation)
        self.num_inputs = widths.pop()

    @classmethod
    def initialise(
        cls,
        num_neurons: int,
        num_inputs: int,
        activation: ActivationType | str,
        rng: np.random.Generator,
    ) -> "Layer":
        if num_neurons < 1 or num_inputs < 1:
            raise ValueError(
                f"Layer sizes must be positive, got {num_neurons} neurons x {num_inputs} inputs"
            )
        neurons = [Neuron.initialise(num_inputs, activation, rng) for _ in range(num_neurons)]
        return cls(neurons, activation)

    @property
    def num_neurons(self) -> int:
        return len(self.neurons)

    def parameter_count(self) -> int:
        return self.num_neurons * (self.num_inputs + 1)

    def forward(self, inputs: Matrix) -> Matrix:
        output = Matrix(1, self.num_neurons)
        for i, neuron in enumerate(self.neurons):
            output.set(0, i, neuron.forward(inputs))
        return output

    def backward(self, upstream: Matrix, inputs: Matrix) -> LayerGradients:
        if upstream.shape != (1, self.num_neurons):
            raise DimensionMismatch(
                f"Layer expects a 1x{self.num_neurons} upstream gradient, "
                f"got {upstream.rows}x{upstream.columns}"
            )
        wrt_input = Matrix(1, self.num_inputs)
        wrt_bias: List[float] = []
        per_neuron: List[NeuronGradients] = []
        for i, neuron in enumerate(self.neurons):
            grads = neuron.backward(upstream.get(0, i), inputs)
            wrt_input = add(wrt_input, grads.wrt_input)
            wrt_bias.append(grads.wrt_bias)
            per_neuron.append(grads)
        # Row i of the weight gradient belongs to neuron i.
        wrt_weight = Matrix.from_array(np.vstack([g.wrt_weight.to_numpy() for g in per_neuron]))
        return LayerGradients(
            wrt_input=wrt_input,
            wrt_weight=wrt_weight,
            wrt_bias=wrt_bias,
            neurons=per_neuron,
        )

    def update(self, gradients: LayerGradients, learning_rate: float) -> None:
        if len(gradients.neurons) != self.num_neurons:
            raise DimensionMismatch(
                f"Expected gradients for {self.num_neurons} neurons, got {len(gradients.neurons)}"
            )
        for neuron, grads in zip(self.neurons, gradients.neurons):
            neuron.update(grads, learning_rate)

    def weights(self) -> Matrix:
        """Stack every neuron's weights into a ``num_neurons x num_inputs`` matrix."""

        return Matrix.from_array(np.vstack([n.weights.to_numpy() for n in self.neurons]))

    def biases(self) -> List[float]:
        return [n.bias for n in self.neurons]


__all__ = ["Layer", "LayerGradients"]
