"""Activation functions and their derivatives."""

from __future__ import annotations

import math
from enum import Enum
from typing import Callable, NamedTuple

import numpy as np

from .matrix import DimensionMismatch, Matrix
from .operations import hadamard

ScalarFn = Callable[[float], float]


def relu(x: float) -> float:
    return max(0.0, x)


def relu_derivative(x: float) -> float:
    # ReLU is not differentiable at 0; the derivative is taken as 0 there.
    return 1.0 if x > 0 else 0.0


def sigmoid(x: float) -> float:
    # Split on sign so exp never overflows for large |x|.
    if x >= 0:
        return 1.0 / (1.0 + math.exp(-x))
    e = math.exp(x)
    return e / (1.0 + e)


def sigmoid_derivative(x: float) -> float:
    s = sigmoid(x)
    return s * (1.0 - s)


def tanh(x: float) -> float:
    return math.tanh(x)


def tanh_derivative(x: float) -> float:
    return 1.0 - math.tanh(x) ** 2


class ActivationPair(NamedTuple):
    fn: ScalarFn
    derivative: ScalarFn


class ActivationType(str, Enum):
    """Pointwise non-linearities a neuron can apply."""

    RELU = "relu"
    SIGMOID = "sigmoid"
    TANH = "tanh"

    @classmethod
    def parse(cls, value: "ActivationType | str") -> "ActivationType":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError as exc:
            available = ", ".join(member.value for member in cls)
            raise ValueError(f"Unknown activation {value!r}. Available: {available}") from exc

    @property
    def pair(self) -> ActivationPair:
        return _ACTIVATIONS[self]


_ACTIVATIONS = {
    ActivationType.RELU: ActivationPair(relu, relu_derivative),
    ActivationType.SIGMOID: ActivationPair(sigmoid, sigmoid_derivative),
    ActivationType.TANH: ActivationPair(tanh, tanh_derivative),
}


def _require_row_vector(m: Matrix, name: str) -> None:
    if m.rows != 1:
        raise DimensionMismatch(f"{name} must be a row vector, got {m.rows}x{m.columns}")


def softmax(row: Matrix) -> Matrix:
    """Map a row vector to a probability distribution.

    The maximum is subtracted before exponentiating so large logits do not
    overflow; the result is unchanged mathematically.
    """

    _require_row_vector(row, "softmax input")
    values = row.to_numpy()[0]
    shifted = np.exp(values - values.max())
    return Matrix.row_vector(shifted / shifted.sum())


def softmax_backward(probabilities: Matrix, upstream: Matrix) -> Matrix:
    """Vector-Jacobian product of softmax.

    Given ``p = softmax(z)`` and ``g = dL/dp`` returns ``dL/dz`` with
    ``dL/dz_i = p_i * (g_i - sum_j g_j p_j)``.
    """

    _require_row_vector(probabilities, "probabilities")
    if probabilities.shape != upstream.shape:
        raise DimensionMismatch(
            f"Softmax gradient shape {upstream.shape} does not match {probabilities.shape}"
        )
    g = upstream.to_numpy()[0]
    centred = g - float(np.dot(g, probabilities.to_numpy()[0]))
    return hadamard(probabilities, Matrix.row_vector(centred))


__all__ = [
    "ActivationPair",
    "ActivationType",
    "relu",
    "relu_derivative",
    "sigmoid",
    "sigmoid_derivative",
    "softmax",
    "softmax_backward",
    "tanh",
    "tanh_derivative",
]
