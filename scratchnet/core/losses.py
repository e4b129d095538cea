"""Loss functions and the registry that pairs them with their gradients."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Optional

from .matrix import DimensionMismatch, Matrix
from .operations import subtract

EPSILON = 1e-15

LossFn = Callable[[Matrix, Matrix], float]
GradientFn = Callable[[Matrix, Matrix], Matrix]


def _require_matching(prediction: Matrix, target: Matrix) -> None:
    if prediction.rows != 1 or prediction.shape != target.shape:
        raise DimensionMismatch(
            f"Prediction {prediction.shape} and target {target.shape} must be matching row vectors"
        )


def mse(prediction: Matrix, target: Matrix) -> float:
    """Mean of the squared elementwise differences."""

    _require_matching(prediction, target)
    n = prediction.columns
    total = 0.0
    for i in range(n):
        diff = prediction.get(0, i) - target.get(0, i)
        total += diff * diff
    return total / n


def mse_gradient(prediction: Matrix, target: Matrix) -> Matrix:
    _require_matching(prediction, target)
    n = prediction.columns
    out = Matrix(1, n)
    for i in range(n):
        out.set(0, i, 2.0 * (prediction.get(0, i) - target.get(0, i)) / n)
    return out


def cross_entropy_loss(prediction: Matrix, target: Matrix) -> float:
    """``-sum(t * log(p + eps))``; ``eps`` keeps ``log(0)`` finite."""

    _require_matching(prediction, target)
    total = 0.0
    for i in range(prediction.columns):
        total += target.get(0, i) * math.log(prediction.get(0, i) + EPSILON)
    return -total


def cross_entropy_gradient(prediction: Matrix, target: Matrix) -> Matrix:
    """``dL/dp_i = -t_i / (p_i + eps)`` with respect to the probabilities."""

    _require_matching(prediction, target)
    out = Matrix(1, prediction.columns)
    for i in range(prediction.columns):
        out.set(0, i, -target.get(0, i) / (prediction.get(0, i) + EPSILON))
    return out


def softmax_cross_entropy_gradient(probabilities: Matrix, target: Matrix) -> Matrix:
    """``dL/dz = p - t`` for cross-entropy taken over ``p = softmax(z)``.

    Unlike chaining :func:`cross_entropy_gradient` through the softmax
    Jacobian, this stays exact when ``p_t`` underflows below ``EPSILON``.
    """

    _require_matching(probabilities, target)
    return subtract(probabilities, target)


@dataclass(frozen=True)
class Loss:
    """Loss wrapper exposing the scalar value and ``dL/dprediction``.

    ``logit_gradient``, when set, gives ``dL/dz`` directly for predictions
    produced by a softmax over ``z``.
    """

    name: str
    fn: LossFn
    gradient: GradientFn
    logit_gradient: Optional[GradientFn] = None

    def __call__(self, prediction: Matrix, target: Matrix) -> float:
        return self.fn(prediction, target)


class LossRegistry:
    """Central registry for loss functions."""

    def __init__(self) -> None:
        self._registry: Dict[str, Loss] = {}

    def register(
        self,
        name: str,
        fn: LossFn,
        gradient: GradientFn,
        *,
        logit_gradient: Optional[GradientFn] = None,
    ) -> None:
        self._registry[name] = Loss(name, fn, gradient, logit_gradient)

    def get(self, name: str) -> Loss:
        if name not in self._registry:
            available = ", ".join(sorted(self._registry))
            raise KeyError(f"Unknown loss {name!r}. Available losses: {available}")
        return self._registry[name]

    def names(self) -> Iterable[str]:
        return sorted(self._registry)


REGISTRY = LossRegistry()
REGISTRY.register("mse", mse, mse_gradient)
for _name in ("ce", "cross_entropy"):
    REGISTRY.register(
        _name,
        cross_entropy_loss,
        cross_entropy_gradient,
        logit_gradient=softmax_cross_entropy_gradient,
    )

__all__ = [
    "EPSILON",
    "Loss",
    "LossRegistry",
    "REGISTRY",
    "cross_entropy_gradient",
    "cross_entropy_loss",
    "mse",
    "mse_gradient",
    "softmax_cross_entropy_gradient",
]
