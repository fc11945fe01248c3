from .Layer import Layer, LayerKind
from .TransformLayer import TransformLayer
from .ConvLayer import ConvLayer, ParameterSnapshot, dyn_init
from .LCNLayer import LCNLayer

__all__ = [
    "Layer",
    "LayerKind",
    "TransformLayer",
    "ConvLayer",
    "ParameterSnapshot",
    "dyn_init",
    "LCNLayer",
]
