"""
Weight/bias initializers.

Every initializer fills ``tensor`` in place and is parameterized by the fan-in
(``input_size``) and fan-out (``output_size``) of the owning layer.
Seed through ``backend.seed`` for reproducible fills.
"""
import numpy as np

from .Backend import backend


def init_zeros(tensor, input_size, output_size):
    tensor[...] = 0.0


def init_ones(tensor, input_size, output_size):
    tensor[...] = 1.0


def init_gaussian(tensor, input_size, output_size):
    tensor[...] = backend.random.randn(*tensor.shape) * 0.01


def init_lecun(tensor, input_size, output_size):
    tensor[...] = backend.random.randn(*tensor.shape) * np.sqrt(1.0 / input_size)


def init_he(tensor, input_size, output_size):
    # He initialization
    tensor[...] = backend.random.randn(*tensor.shape) * np.sqrt(2.0 / input_size)


def init_xavier(tensor, input_size, output_size):
    # Xavier/Glorot initialization
    limit = np.sqrt(6.0 / (input_size + output_size))
    tensor[...] = backend.random.uniform(-limit, limit, tensor.shape)


INITIALIZERS = {
    "zeros": init_zeros,
    "ones": init_ones,
    "gaussian": init_gaussian,
    "lecun": init_lecun,
    "he": init_he,
    "xavier": init_xavier,
}


def get_initializer(name="lecun"):
    """
    Factory function to get initializer functions.

    Args:
        name (str | callable): Initializer tag, or any callable with the
            ``(tensor, input_size, output_size)`` signature

    Returns:
        callable
    """
    if callable(name):
        return name
    if name not in INITIALIZERS:
        raise ValueError(f"Unknown initializer: {name}")
    return INITIALIZERS[name]
