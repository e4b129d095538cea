"""A single linear unit followed by a pointwise activation."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .activations import ActivationType
from .matrix import DimensionMismatch, Matrix
from .operations import multiply, scale, subtract, transpose


@dataclass(frozen=True)
class NeuronGradients:
    """Gradients of the loss for one neuron and one sample."""

    wrt_input: Matrix
    wrt_weight: Matrix
    wrt_bias: float

    def scaled(self, factor: float) -> "NeuronGradients":
        return NeuronGradients(
            wrt_input=scale(self.wrt_input, factor),
            wrt_weight=scale(self.wrt_weight, factor),
            wrt_bias=self.wrt_bias * factor,
        )


@dataclass
class Neuron:
    """``activation(weights . inputs + bias)`` over a ``1 x num_inputs`` row."""

    weights: Matrix
    bias: float
    activation: ActivationType = ActivationType.RELU

    def __post_init__(self) -> None:
        if self.weights.rows != 1:
            raise DimensionMismatch(
                f"Neuron weights must be a row vector, got {self.weights.rows}x{self.weights.columns}"
            )
        self.activation = ActivationType.parse(self.activation)
        self.bias = float(self.bias)

    @classmethod
    def initialise(
        cls,
        num_inputs: int,
        activation: ActivationType | str,
        rng: np.random.Generator,
    ) -> "Neuron":
        """Draw weights and bias uniformly from ``[-1, 1]``."""

        weights = Matrix.from_array(rng.uniform(-1.0, 1.0, size=(1, num_inputs)))
        bias = float(rng.uniform(-1.0, 1.0))
        return cls(weights=weights, bias=bias, activation=activation)

    @property
    def num_inputs(self) -> int:
        return self.weights.columns

    def _check_inputs(self, inputs: Matrix) -> None:
        if inputs.shape != (1, self.num_inputs):
            raise DimensionMismatch(
                f"Neuron expects a 1x{self.num_inputs} input, got {inputs.rows}x{inputs.columns}"
            )

    def pre_activation(self, inputs: Matrix) -> float:
        """Return ``z = weights . inputs + bias``."""

        self._check_inputs(inputs)
        return multiply(self.weights, transpose(inputs)).get(0, 0) + self.bias

    def forward(self, inputs: Matrix) -> float:
        return self.activation.pair.fn(self.pre_activation(inputs))

    def backward(self, upstream: float, inputs: Matrix) -> NeuronGradients:
        """Chain ``upstream = dL/dy`` through the activation and the dot product."""

        z = self.pre_activation(inputs)
        delta = self.activation.pair.derivative(z) * float(upstream)
        return NeuronGradients(
            wrt_input=scale(self.weights, delta),
            wrt_weight=scale(inputs, delta),
            wrt_bias=delta,
        )

    def update(self, gradients: NeuronGradients, learning_rate: float) -> None:
        if gradients.wrt_weight.shape != self.weights.shape:
            raise DimensionMismatch(
                f"Weight gradient {gradients.wrt_weight.shape} does not match {self.weights.shape}"
            )
        self.weights = subtract(self.weights, scale(gradients.wrt_weight, learning_rate))
        self.bias -= learning_rate * gradients.wrt_bias


__all__ = ["Neuron", "NeuronGradients"]
