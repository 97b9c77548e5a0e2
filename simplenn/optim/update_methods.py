"""Update methods applying accumulated gradients to parameters in place."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Iterable

import numpy as np

from ..core.arrays import ParamsArray, SparseErrors
from ..core.errors import InvalidConfiguration
from ..core.types import Array
from .decay import DecayMethod, HyperbolicDecay, NoDecay

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class L2Regularization:
    """Weight decay: ``w <- w - lambda * w`` before the gradient step."""

    lambda_: float

    def __post_init__(self) -> None:
        if self.lambda_ < 0.0:
            raise InvalidConfiguration("lambda_ must be non-negative")

    def apply(self, array: ParamsArray) -> None:
        array.values.data[...] *= 1.0 - self.lambda_


def _check_positive(name: str, value: float) -> float:
    if value <= 0.0:
        raise InvalidConfiguration(f"{name} must be positive, got {value!r}")
    return value


class UpdateMethod:
    """Base class of the optimization strategies.

    ``update`` visits every :class:`ParamsArray` holding gradients,
    subtracts the step computed by :meth:`optimize` and resets the
    gradients. Methods keep their per-array state in ``array.support``.
    """

    native_sparse = False

    def __init__(self, regularization: L2Regularization | None = None) -> None:
        self.regularization = regularization

    def update(self, params: Iterable[ParamsArray]) -> None:
        updated = 0
        for array in params:
            if not array.has_errors:
                continue
            if self.regularization is not None:
                self.regularization.apply(array)
            if self.native_sparse and isinstance(array.errors, SparseErrors):
                self.update_sparse(array, array.errors)
            else:
                array.values.data[...] -= self.optimize(array, array.dense_errors().data)
            array.reset_errors()
            updated += 1
        logger.debug("%s updated %d parameter arrays", type(self).__name__, updated)

    def optimize(self, array: ParamsArray, errors: Array) -> Array:
        """Return the step to subtract from ``array.values``."""

        raise NotImplementedError

    def update_sparse(self, array: ParamsArray, errors: SparseErrors) -> None:  # pragma: no cover
        raise NotImplementedError

    def support(self, array: ParamsArray, key: str) -> Array:
        state = array.support.get(key)
        if state is None:
            state = np.zeros(array.shape, dtype=np.float64)
            array.support[key] = state
        return state

    # Scheduling hooks; no-ops unless a method needs them.

    def new_epoch(self) -> None:
        pass

    def new_batch(self) -> None:
        pass

    def new_example(self) -> None:
        pass


class LearningRateMethod(UpdateMethod):
    """Plain gradient descent with an optional decay schedule."""

    native_sparse = True

    def __init__(
        self,
        learning_rate: float,
        decay_method: DecayMethod | None = None,
        regularization: L2Regularization | None = None,
    ) -> None:
        super().__init__(regularization)
        self.learning_rate = _check_positive("learning_rate", learning_rate)
        self.decay_method = decay_method or NoDecay()
        self.alpha = learning_rate
        self.epoch_count = 0

    def new_epoch(self) -> None:
        self.epoch_count += 1
        # Hyperbolic decay is defined on the initial rate.
        base = self.learning_rate if isinstance(self.decay_method, HyperbolicDecay) else self.alpha
        self.alpha = self.decay_method.update(base, self.epoch_count)

    def optimize(self, array: ParamsArray, errors: Array) -> Array:
        return self.alpha * errors

    def update_sparse(self, array: ParamsArray, errors: SparseErrors) -> None:
        values = array.values.data
        for index, column in errors.columns.items():
            values[:, index] -= self.alpha * column


class MomentumMethod(LearningRateMethod):
    """``v <- momentum * v + alpha * g``; the step is ``v``."""

    native_sparse = False

    def __init__(
        self,
        learning_rate: float = 0.01,
        momentum: float = 0.9,
        decay_method: DecayMethod | None = None,
        regularization: L2Regularization | None = None,
    ) -> None:
        super().__init__(learning_rate, decay_method, regularization)
        if not 0.0 <= momentum < 1.0:
            raise InvalidConfiguration("momentum must lie in [0, 1)")
        self.momentum = momentum

    def optimize(self, array: ParamsArray, errors: Array) -> Array:
        velocity = self.support(array, "velocity")
        velocity *= self.momentum
        velocity += self.alpha * errors
        return velocity.copy()


class AdaGradMethod(UpdateMethod):
    def __init__(
        self,
        learning_rate: float = 0.01,
        epsilon: float = 1e-8,
        regularization: L2Regularization | None = None,
    ) -> None:
        super().__init__(regularization)
        self.learning_rate = _check_positive("learning_rate", learning_rate)
        self.epsilon = _check_positive("epsilon", epsilon)

    def optimize(self, array: ParamsArray, errors: Array) -> Array:
        squares = self.support(array, "squares")
        squares += errors * errors
        return self.learning_rate * errors / (np.sqrt(squares) + self.epsilon)


class RMSPropMethod(UpdateMethod):
    def __init__(
        self,
        learning_rate: float = 0.001,
        epsilon: float = 1e-8,
        decay: float = 0.95,
        regularization: L2Regularization | None = None,
    ) -> None:
        super().__init__(regularization)
        self.learning_rate = _check_positive("learning_rate", learning_rate)
        self.epsilon = _check_positive("epsilon", epsilon)
        if not 0.0 <= decay < 1.0:
            raise InvalidConfiguration("decay must lie in [0, 1)")
        self.decay = decay

    def optimize(self, array: ParamsArray, errors: Array) -> Array:
        mean_square = self.support(array, "mean_square")
        mean_square *= self.decay
        mean_square += (1.0 - self.decay) * errors * errors
        return self.learning_rate * errors / (np.sqrt(mean_square) + self.epsilon)


class ADAMMethod(UpdateMethod):
    """ADAM with bias-corrected step size; ``new_batch`` advances the time step."""

    def __init__(
        self,
        step_size: float = 0.001,
        beta1: float = 0.9,
        beta2: float = 0.999,
        epsilon: float = 1e-8,
        regularization: L2Regularization | None = None,
    ) -> None:
        super().__init__(regularization)
        for name, beta in (("beta1", beta1), ("beta2", beta2)):
            if not 0.0 <= beta < 1.0:
                raise InvalidConfiguration(f"{name} must lie in [0, 1), got {beta!r}")
        self.step_size = _check_positive("step_size", step_size)
        self.beta1 = beta1
        self.beta2 = beta2
        self.epsilon = _check_positive("epsilon", epsilon)
        self.time_step = 1
        self.alpha = self._alpha()

    def _alpha(self) -> float:
        return (
            self.step_size
            * math.sqrt(1.0 - self.beta2**self.time_step)
            / (1.0 - self.beta1**self.time_step)
        )

    def new_batch(self) -> None:
        self.time_step += 1
        self.alpha = self._alpha()

    def optimize(self, array: ParamsArray, errors: Array) -> Array:
        m = self.support(array, "m")
        v = self.support(array, "v")
        m *= self.beta1
        m += (1.0 - self.beta1) * errors
        v *= self.beta2
        v += (1.0 - self.beta2) * errors * errors
        eps_hat = self.epsilon * math.sqrt(1.0 - self.beta2**self.time_step)
        return self.alpha * m / (np.sqrt(v) + eps_hat)


__all__ = [
    "L2Regularization",
    "UpdateMethod",
    "LearningRateMethod",
    "MomentumMethod",
    "AdaGradMethod",
    "RMSPropMethod",
    "ADAMMethod",
]
