"""Core numerical primitives for simplenn."""

from . import activations, arrays, errors, initializers, ndarray, types
from .arrays import AugmentedArray, ParamsArray, SparseErrors
from .ndarray import NDArray, equals

__all__ = [
    "activations",
    "arrays",
    "errors",
    "initializers",
    "ndarray",
    "types",
    "AugmentedArray",
    "ParamsArray",
    "SparseErrors",
    "NDArray",
    "equals",
]
