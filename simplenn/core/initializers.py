"""Parameter initializers applied once when layer parameters are built."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

import numpy as np

from .errors import InvalidConfiguration
from .ndarray import NDArray


class Initializer(Protocol):
    """Protocol implemented by initializers: fill ``array`` in place."""

    def initialize(self, array: NDArray) -> None:
        ...


@dataclass
class ConstantInitializer:
    value: float = 0.0

    def initialize(self, array: NDArray) -> None:
        array.assign_values(self.value)


@dataclass
class RandomUniformInitializer:
    low: float = -0.05
    high: float = 0.05
    seed: int | None = None
    rng: np.random.Generator = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if self.high < self.low:
            raise InvalidConfiguration("high must not be lower than low")
        self.rng = np.random.default_rng(self.seed)

    def initialize(self, array: NDArray) -> None:
        array.data[...] = self.rng.uniform(self.low, self.high, size=array.shape)


@dataclass
class RandomNormalInitializer:
    mean: float = 0.0
    std: float = 0.05
    seed: int | None = None
    rng: np.random.Generator = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if self.std < 0.0:
            raise InvalidConfiguration("std must be non-negative")
        self.rng = np.random.default_rng(self.seed)

    def initialize(self, array: NDArray) -> None:
        array.data[...] = self.mean + self.rng.standard_normal(array.shape) * self.std


@dataclass
class GlorotInitializer:
    """Glorot/Xavier uniform initialization on a ``(fan_out, fan_in)`` matrix."""

    gain: float = 1.0
    seed: int | None = None
    rng: np.random.Generator = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.rng = np.random.default_rng(self.seed)

    def initialize(self, array: NDArray) -> None:
        fan_out, fan_in = array.shape
        limit = self.gain * np.sqrt(6.0 / (fan_in + fan_out))
        array.data[...] = self.rng.uniform(-limit, limit, size=array.shape)


def get_initializer(name: str | None, seed: int | None = None) -> Initializer | None:
    if name is None or name == "zeros":
        return None
    if name == "uniform":
        return RandomUniformInitializer(seed=seed)
    if name == "normal":
        return RandomNormalInitializer(seed=seed)
    if name == "glorot":
        return GlorotInitializer(seed=seed)
    raise InvalidConfiguration(f"Unknown initializer: {name}")


__all__ = [
    "Initializer",
    "ConstantInitializer",
    "RandomUniformInitializer",
    "RandomNormalInitializer",
    "GlorotInitializer",
    "get_initializer",
]
