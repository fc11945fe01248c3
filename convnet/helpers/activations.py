"""
Elementwise activation functions used by the neural layers.

Derivatives are expressed on the *activated* output, which is what the
training context keeps around after the forward pass.
"""
from collections import namedtuple

from .Backend import backend

class Activation(namedtuple("Activation", ["name", "activate", "derivative"])):
    __slots__ = ()

    @property
    def is_identity(self):
        return self.name == "identity"


def _identity(x):
    return x


def _identity_derivative(o):
    return backend.xp.ones_like(o)


def _sigmoid(x):
    return 1.0 / (1.0 + backend.exp(-x))


def _sigmoid_derivative(o):
    return o * (1.0 - o)


def _tanh(x):
    return backend.xp.tanh(x)


def _tanh_derivative(o):
    return 1.0 - o * o


def _relu(x):
    return backend.maximum(x, 0)


def _relu_derivative(o):
    return (o > 0).astype(o.dtype)


ACTIVATIONS = {
    "identity": Activation("identity", _identity, _identity_derivative),
    "sigmoid": Activation("sigmoid", _sigmoid, _sigmoid_derivative),
    "tanh": Activation("tanh", _tanh, _tanh_derivative),
    "relu": Activation("relu", _relu, _relu_derivative),
}


def get_activation(name="sigmoid"):
    """
    Look up an activation by tag.

    Args:
        name (str | Activation): 'identity', 'sigmoid', 'tanh' or 'relu'

    Returns:
        Activation
    """
    if isinstance(name, Activation):
        return name
    if name not in ACTIVATIONS:
        raise ValueError(f"Unknown activation: {name}")
    return ACTIVATIONS[name]
