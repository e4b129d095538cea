import math

import numpy as np
import pytest

from scratchnet.core.activations import (
    ActivationType,
    relu,
    relu_derivative,
    sigmoid,
    sigmoid_derivative,
    softmax,
    softmax_backward,
)
from scratchnet.core.losses import (
    REGISTRY,
    cross_entropy_gradient,
    cross_entropy_loss,
    mse,
    mse_gradient,
    softmax_cross_entropy_gradient,
)
from scratchnet.core.matrix import DimensionMismatch, Matrix


def test_relu_and_derivative_convention_at_zero():
    assert relu(-1.0) == 0.0
    assert relu(2.5) == 2.5
    assert relu_derivative(0.0) == 0.0
    assert relu_derivative(1e-9) == 1.0


def test_sigmoid_values_and_derivative():
    assert sigmoid(0.0) == pytest.approx(0.5)
    assert sigmoid(-800.0) == pytest.approx(0.0)
    assert sigmoid(800.0) == pytest.approx(1.0)
    assert sigmoid_derivative(0.0) == pytest.approx(0.25)


def test_activation_type_parse():
    assert ActivationType.parse("ReLU") is ActivationType.RELU
    assert ActivationType.parse(ActivationType.SIGMOID) is ActivationType.SIGMOID
    with pytest.raises(ValueError):
        ActivationType.parse("softplus")


def test_softmax_is_a_distribution():
    result = softmax(Matrix.row_vector([1.0, 2.0]))
    assert result.shape == (1, 2)
    assert result.get(0, 1) > result.get(0, 0)

    rng = np.random.default_rng(3)
    for values in (rng.normal(0, 50, size=10), [1000.0, -1000.0, 0.0], [0.0]):
        probs = softmax(Matrix.row_vector(values)).data
        assert np.all((probs >= 0.0) & (probs <= 1.0))
        assert abs(float(probs.sum()) - 1.0) <= 1e-3


def test_softmax_requires_row_vector():
    with pytest.raises(DimensionMismatch):
        softmax(Matrix(2, 2))


def test_softmax_backward_with_cross_entropy_is_p_minus_t():
    probs = softmax(Matrix.row_vector([0.3, -1.2, 2.0]))
    target = Matrix.row_vector([0.0, 1.0, 0.0])
    grad = softmax_backward(probs, cross_entropy_gradient(probs, target))
    assert np.allclose(grad.data, probs.data - target.data, atol=1e-9)


def test_softmax_backward_matches_finite_differences():
    z = np.array([0.5, -0.25, 1.5])
    upstream = np.array([0.2, -1.0, 0.7])

    def objective(values):
        return float(np.dot(softmax(Matrix.row_vector(values)).data, upstream))

    eps = 1e-6
    numeric = []
    for i in range(z.size):
        plus, minus = z.copy(), z.copy()
        plus[i] += eps
        minus[i] -= eps
        numeric.append((objective(plus) - objective(minus)) / (2 * eps))
    analytic = softmax_backward(softmax(Matrix.row_vector(z)), Matrix.row_vector(upstream))
    assert np.allclose(analytic.data, numeric, atol=1e-6)


def test_mse():
    prediction = Matrix.row_vector([0.8, 0.1, 0.1])
    target = Matrix.row_vector([1.0, 0.0, 0.0])
    assert mse(prediction, target) == pytest.approx(0.02, abs=1e-3)
    gradient = mse_gradient(prediction, target)
    assert gradient.get(0, 0) == pytest.approx(-0.133, abs=1e-3)
    assert gradient.get(0, 1) == pytest.approx(0.067, abs=1e-3)


def test_cross_entropy_loss_and_gradient():
    prediction = Matrix.row_vector([0.7, 0.2, 0.1])
    target = Matrix.row_vector([0.0, 1.0, 0.0])
    assert cross_entropy_loss(prediction, target) == pytest.approx(1.609, abs=1e-3)
    gradient = cross_entropy_gradient(prediction, target)
    assert np.allclose(gradient.data, [0.0, -5.0, 0.0], atol=1e-3)


def test_cross_entropy_guards_log_zero():
    loss = cross_entropy_loss(Matrix.row_vector([0.0, 1.0]), Matrix.row_vector([1.0, 0.0]))
    assert math.isfinite(loss)
    assert loss == pytest.approx(-math.log(1e-15))


def test_losses_reject_mismatched_shapes():
    with pytest.raises(DimensionMismatch):
        mse(Matrix.row_vector([1.0, 2.0]), Matrix.row_vector([1.0]))
    with pytest.raises(DimensionMismatch):
        cross_entropy_gradient(Matrix(2, 2), Matrix(2, 2))


def test_loss_registry():
    ce = REGISTRY.get("ce")
    assert ce.gradient is cross_entropy_gradient
    assert "mse" in REGISTRY.names()
    with pytest.raises(KeyError):
        REGISTRY.get("hinge")


def test_softmax_cross_entropy_gradient_survives_saturation():
    probs = softmax(Matrix.row_vector([0.0, 60.0, -5.0]))
    target = Matrix.row_vector([1.0, 0.0, 0.0])
    assert probs.get(0, 0) < 1e-20
    grad = softmax_cross_entropy_gradient(probs, target)
    assert np.allclose(grad.data, [-1.0, 1.0, 0.0], atol=1e-9)
    assert REGISTRY.get("ce").logit_gradient is softmax_cross_entropy_gradient
    assert REGISTRY.get("mse").logit_gradient is None
