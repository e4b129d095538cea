import numpy as np
import pytest

from scratchnet.core.losses import REGISTRY, cross_entropy_loss
from scratchnet.core.matrix import DimensionMismatch, Matrix
from scratchnet.core.network import Network, TooFewLayers


def _constant_network(value=0.5, bias=1.0):
    network = Network(3, [3, 2], seed=0)
    for layer in network.layers:
        for neuron in layer.neurons:
            neuron.weights = Matrix.row_vector([value] * neuron.num_inputs)
            neuron.bias = bias
    return network


def test_network_initialisation():
    network = Network(784, [16, 10], seed=0)
    assert network.num_layers == 2
    assert [layer.num_neurons for layer in network.layers] == [16, 10]
    assert [layer.num_inputs for layer in network.layers] == [784, 16]
    assert network.num_classes == 10
    assert network.describe().layer_dims == [784, 16, 10]
    assert network.parameter_count() == 16 * 785 + 10 * 17
    assert not network.has_cache


def test_too_few_layers():
    with pytest.raises(TooFewLayers):
        Network(784, [10])
    with pytest.raises(TooFewLayers):
        Network(784, [])


def test_seeded_networks_are_identical():
    a = Network(5, [4, 3], seed=11)
    b = Network(5, [4, 3], seed=11)
    for la, lb in zip(a.layers, b.layers):
        assert la.weights() == lb.weights()
        assert la.biases() == lb.biases()


def test_forward_caches_layer_inputs():
    network = _constant_network()
    inputs = Matrix.row_vector([1.0, 1.0, 1.0])
    probs = network.forward(inputs)
    assert probs.shape == (1, 2)
    assert probs.data.tolist() == pytest.approx([0.5, 0.5])

    cache = network.layer_inputs
    assert len(cache) == 2
    assert cache[0] == inputs and cache[0] is not inputs
    assert cache[1].data.tolist() == pytest.approx([2.5, 2.5, 2.5])


def test_forward_rejects_wrong_width():
    with pytest.raises(DimensionMismatch):
        Network(3, [3, 2], seed=0).forward(Matrix.row_vector([1.0, 2.0]))


def test_backward_without_forward_raises():
    network = Network(3, [3, 2], seed=0)
    with pytest.raises(RuntimeError):
        network.backward(Matrix.row_vector([0.5, 0.5]), Matrix.row_vector([1.0, 0.0]))


def test_backward_shapes_and_update_clears_cache():
    network = _constant_network()
    probs = network.forward(Matrix.row_vector([1.0, 2.0, 3.0]))
    grads = network.backward(probs, Matrix.row_vector([1.0, 0.0]))
    assert len(grads) == 2
    assert grads[0].wrt_weight.shape == (3, 3)
    assert grads[1].wrt_weight.shape == (2, 3)
    assert grads[0].wrt_input.shape == (1, 3)
    assert network.has_cache

    network.update(grads, learning_rate=0.01)
    assert not network.has_cache
    with pytest.raises(RuntimeError):
        network.layer_inputs


@pytest.mark.parametrize("loss_name", ["ce", "mse"])
def test_backward_matches_finite_differences(loss_name):
    network = Network(3, [4, 3], "sigmoid", seed=1)
    inputs = Matrix.row_vector([0.2, -0.4, 0.9])
    target = Matrix.row_vector([0.0, 0.0, 1.0])
    loss_fn = REGISTRY.get(loss_name)
    grads = network.backward(network.forward(inputs), target, loss_name)

    def loss():
        return loss_fn(network.forward(inputs), target)

    eps = 1e-6
    for layer_index, layer in enumerate(network.layers):
        for n, neuron in enumerate(layer.neurons):
            for j in range(neuron.num_inputs):
                original = neuron.weights.get(0, j)
                neuron.weights.set(0, j, original + eps)
                plus = loss()
                neuron.weights.set(0, j, original - eps)
                minus = loss()
                neuron.weights.set(0, j, original)
                numeric = (plus - minus) / (2 * eps)
                analytic = grads[layer_index].wrt_weight.get(n, j)
                assert analytic == pytest.approx(numeric, rel=1e-4, abs=1e-6)


def test_loss_strictly_decreases_on_a_fixed_sample():
    network = _constant_network()
    inputs = Matrix.row_vector([1.0, 2.0, 3.0])
    target = Matrix.row_vector([1.0, 0.0])
    losses = []
    for _ in range(10):
        probs = network.forward(inputs)
        losses.append(cross_entropy_loss(probs, target))
        network.update(network.backward(probs, target), learning_rate=0.01)
    assert all(later < earlier for earlier, later in zip(losses, losses[1:]))


def test_predict_returns_argmax():
    network = _constant_network()
    network.layers[-1].neurons[1].bias = 5.0
    assert network.predict(Matrix.row_vector([1.0, 1.0, 1.0])) == 1


def test_saturated_softmax_still_gets_full_gradient():
    network = _constant_network()
    # Output logits are 4.75 and 64.75, so p_0 is about 1e-26, far below EPSILON.
    network.layers[-1].neurons[1].bias = 61.0
    probs = network.forward(Matrix.row_vector([1.0, 1.0, 1.0]))
    assert probs.get(0, 0) < 1e-20

    grads = network.backward(probs, Matrix.row_vector([1.0, 0.0]))
    assert grads[-1].wrt_bias == pytest.approx([-1.0, 1.0], abs=1e-6)
    assert grads[-1].wrt_weight.data.tolist() == pytest.approx([-2.5] * 3 + [2.5] * 3, abs=1e-5)
