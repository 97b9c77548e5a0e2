"""Error taxonomy for the layer engine."""

from __future__ import annotations


class SimpleNNError(Exception):
    """Base class for every contract violation raised by simplenn."""


class ShapeMismatch(SimpleNNError, ValueError):
    """Operand shapes are incompatible for the requested operation."""

    def __init__(self, operation: str, left: tuple, right: tuple) -> None:
        super().__init__(f"{operation}: incompatible shapes {left} and {right}")
        self.operation = operation
        self.left = left
        self.right = right


class InvalidPartition(SimpleNNError, ValueError):
    """Split/concat sizes are inconsistent with the total length."""


class IndexOutOfRange(SimpleNNError, IndexError):
    """Element access outside the array bounds."""


class UnsupportedOperation(SimpleNNError, NotImplementedError):
    """A capability is not implemented for a given layer kind."""


class NoPreviousState(SimpleNNError, RuntimeError):
    """A recurrent step needs the previous time step but it does not exist."""


class InvalidConfiguration(SimpleNNError, ValueError):
    """Invalid sizes, names or values given at construction time."""


class StaleState(SimpleNNError, RuntimeError):
    """A layer pass was requested out of order with respect to ``forward``."""


__all__ = [
    "SimpleNNError",
    "ShapeMismatch",
    "InvalidPartition",
    "IndexOutOfRange",
    "UnsupportedOperation",
    "NoPreviousState",
    "InvalidConfiguration",
    "StaleState",
]
