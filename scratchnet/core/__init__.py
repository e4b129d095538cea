"""Core numerical primitives for scratchnet."""

from . import activations, layer, losses, matrix, network, neuron, operations, types

__all__ = [
    "activations",
    "layer",
    "losses",
    "matrix",
    "network",
    "neuron",
    "operations",
    "types",
]
