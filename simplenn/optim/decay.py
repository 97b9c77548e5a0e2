"""Learning-rate schedules: pure functions of the current rate and time step."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Protocol

from ..core.errors import InvalidConfiguration


class DecayMethod(Protocol):
    """Protocol implemented by learning-rate schedules."""

    def update(self, learning_rate: float, time_step: int) -> float:
        """Return the learning rate to use at ``time_step``."""


@dataclass(frozen=True)
class NoDecay:
    def update(self, learning_rate: float, time_step: int) -> float:
        return learning_rate


@dataclass(frozen=True)
class HyperbolicDecay:
    """``lr / (1 + decay * t)``, never below ``min_learning_rate``.

    The caller passes the initial learning rate, not the decayed one.
    ``initial_learning_rate`` is informational: it only bounds
    ``min_learning_rate``; ``update`` works from the rate it is given.
    """

    decay: float
    initial_learning_rate: float
    min_learning_rate: float = 0.0

    def __post_init__(self) -> None:
        if self.decay < 0.0:
            raise InvalidConfiguration("decay must be non-negative")
        if self.min_learning_rate > self.initial_learning_rate:
            raise InvalidConfiguration("min_learning_rate must not exceed initial_learning_rate")

    def update(self, learning_rate: float, time_step: int) -> float:
        if self.decay > 0.0 and time_step > 1:
            return max(self.min_learning_rate, learning_rate / (1.0 + self.decay * time_step))
        return learning_rate


@dataclass(frozen=True)
class ExponentialDecay:
    """Geometric interpolation from the initial to the final rate.

    Each call moves the given rate one step closer to ``final_learning_rate``.
    ``initial_learning_rate`` is informational and only checked for sign.
    """

    initial_learning_rate: float
    final_learning_rate: float
    total_iterations: int

    def __post_init__(self) -> None:
        if self.total_iterations <= 0:
            raise InvalidConfiguration("total_iterations must be positive")
        if self.final_learning_rate <= 0.0 or self.initial_learning_rate <= 0.0:
            raise InvalidConfiguration("learning rates must be positive")

    def update(self, learning_rate: float, time_step: int) -> float:
        if learning_rate > self.final_learning_rate and time_step > 1:
            exponent = 1.0 / self.total_iterations
            return math.pow(learning_rate, 1.0 - exponent) * math.pow(self.final_learning_rate, exponent)
        return learning_rate


@dataclass(frozen=True)
class StepDecay:
    """Multiply the rate by ``drop`` on every ``every``-th time step."""

    drop: float = 0.5
    every: int = 10

    def __post_init__(self) -> None:
        if self.every <= 0:
            raise InvalidConfiguration("every must be positive")
        if not 0.0 < self.drop <= 1.0:
            raise InvalidConfiguration("drop must lie in (0, 1]")

    def update(self, learning_rate: float, time_step: int) -> float:
        if time_step > 0 and time_step % self.every == 0:
            return learning_rate * self.drop
        return learning_rate


__all__ = ["DecayMethod", "NoDecay", "HyperbolicDecay", "ExponentialDecay", "StepDecay"]
