"""Activation functions applied by layers to their pre-activation output."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Protocol, Union

import numpy as np

from .errors import InvalidConfiguration
from .types import Array


def relu(x: Array) -> Array:
    """Return the ReLU activation."""

    return np.maximum(x, 0.0)


def sigmoid(x: Array) -> Array:
    return 1.0 / (1.0 + np.exp(-x))


def softmax(x: Array) -> Array:
    """Softmax over all the elements of ``x`` (a single column vector)."""

    shifted = x - np.max(x)
    e = np.exp(shifted)
    return e / np.sum(e)


class Activation(Protocol):
    """Protocol implemented by activation functions."""

    name: str

    def f(self, x: Array) -> Array:
        """Return the activated values of ``x``."""

    def backward(self, values: Array, values_not_activated: Array, errors: Array) -> Array:
        """Map errors w.r.t. the activated output onto the pre-activation."""


class _Elementwise:
    """Activations whose Jacobian is diagonal."""

    name = "elementwise"

    def f(self, x: Array) -> Array:  # pragma: no cover - abstract
        raise NotImplementedError

    def df(self, values: Array, values_not_activated: Array) -> Array:  # pragma: no cover
        raise NotImplementedError

    def backward(self, values: Array, values_not_activated: Array, errors: Array) -> Array:
        return errors * self.df(values, values_not_activated)


@dataclass(frozen=True)
class Identity(_Elementwise):
    name: str = "identity"

    def f(self, x: Array) -> Array:
        return x.copy()

    def df(self, values: Array, values_not_activated: Array) -> Array:
        return np.ones_like(values)


@dataclass(frozen=True)
class Sigmoid(_Elementwise):
    name: str = "sigmoid"

    def f(self, x: Array) -> Array:
        return sigmoid(x)

    def df(self, values: Array, values_not_activated: Array) -> Array:
        return values * (1.0 - values)


@dataclass(frozen=True)
class Tanh(_Elementwise):
    name: str = "tanh"

    def f(self, x: Array) -> Array:
        return np.tanh(x)

    def df(self, values: Array, values_not_activated: Array) -> Array:
        return 1.0 - values**2


@dataclass(frozen=True)
class ReLU(_Elementwise):
    name: str = "relu"

    def f(self, x: Array) -> Array:
        return relu(x)

    def df(self, values: Array, values_not_activated: Array) -> Array:
        return (values_not_activated > 0.0).astype(np.float64)


@dataclass(frozen=True)
class ELU(_Elementwise):
    alpha: float = 1.0
    name: str = "elu"

    def f(self, x: Array) -> Array:
        return np.where(x > 0.0, x, self.alpha * (np.exp(x) - 1.0))

    def df(self, values: Array, values_not_activated: Array) -> Array:
        return np.where(values_not_activated > 0.0, 1.0, values + self.alpha)


@dataclass(frozen=True)
class Softmax:
    """Softmax with its full Jacobian applied on the way back."""

    name: str = "softmax"

    def f(self, x: Array) -> Array:
        return softmax(x)

    def backward(self, values: Array, values_not_activated: Array, errors: Array) -> Array:
        return values * (errors - np.sum(errors * values))


_REGISTRY: Dict[str, Callable[[], Activation]] = {
    "identity": Identity,
    "sigmoid": Sigmoid,
    "tanh": Tanh,
    "relu": ReLU,
    "elu": ELU,
    "softmax": Softmax,
}


def get_activation(name: Union[str, Activation, None]) -> Activation | None:
    """Resolve ``name`` to an activation instance (``None`` passes through)."""

    if name is None or not isinstance(name, str):
        return name
    key = name.lower()
    if key not in _REGISTRY:
        available = ", ".join(sorted(_REGISTRY))
        raise InvalidConfiguration(f"Unknown activation {name!r}. Available: {available}")
    return _REGISTRY[key]()


__all__ = [
    "Activation",
    "Identity",
    "Sigmoid",
    "Tanh",
    "ReLU",
    "ELU",
    "Softmax",
    "get_activation",
    "relu",
    "sigmoid",
    "softmax",
]
