from .layers import ConvLayer, LCNLayer, TransformLayer, Layer, LayerKind, dyn_init
from .context import TrainingContext, ContextState
from .optimizer import SGDOptimizer
from .loss import MSELoss
from .Network import Network
from .helpers.Backend import backend
from .helpers.timers import timers

__all__ = [
    "ConvLayer",
    "LCNLayer",
    "TransformLayer",
    "Layer",
    "LayerKind",
    "dyn_init",
    "TrainingContext",
    "ContextState",
    "SGDOptimizer",
    "MSELoss",
    "Network",
    "backend",
    "timers",
]
