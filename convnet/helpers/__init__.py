from .Backend import backend, Backend
from .timers import timers, Timers
from .logger import RunLogger
from .activations import Activation, get_activation
from .initializers import get_initializer

__all__ = [
    "backend",
    "Backend",
    "timers",
    "Timers",
    "RunLogger",
    "Activation",
    "get_activation",
    "get_initializer",
]
