"""Loss registry used by the training loop."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Sequence

import numpy as np

from ..core.activations import sigmoid, softmax
from ..core.errors import InvalidConfiguration, ShapeMismatch
from ..core.ndarray import NDArray
from ..core.types import Array

# Returns the loss of each output element and the errors dL/dy.
LossFn = Callable[[Array, Array], "tuple[Array, Array]"]


@dataclass(frozen=True)
class Loss:
    """Loss wrapper returning both the summed loss and dL/dy."""

    name: str
    fn: LossFn

    def __call__(self, predictions: NDArray, targets: NDArray) -> tuple[float, NDArray]:
        losses, errors = self._compute(predictions, targets)
        return float(np.sum(losses)), NDArray(errors)

    def loss_values(self, predictions: NDArray, targets: NDArray) -> NDArray:
        """Loss of each output element."""

        return NDArray(self._compute(predictions, targets)[0])

    def _compute(self, predictions: NDArray, targets: NDArray) -> tuple[Array, Array]:
        if predictions.shape != targets.shape:
            raise ShapeMismatch(self.name, predictions.shape, targets.shape)
        return self.fn(predictions.data, targets.data)


class LossRegistry:
    """Central registry for loss functions."""

    def __init__(self) -> None:
        self._registry: Dict[str, Loss] = {}

    def register(self, name: str, fn: LossFn) -> None:
        self._registry[name] = Loss(name, fn)

    def get(self, name: str) -> Loss:
        return self.resolve(name, task_type="regression")

    def names(self) -> Iterable[str]:
        return sorted(self._registry)

    def resolve(self, name: str, *, task_type: str) -> Loss:
        if name == "auto":
            if task_type == "regression":
                name = "mse"
            elif task_type == "multiclass":
                name = "ce"
            elif task_type == "binary":
                name = "bce"
            else:
                raise InvalidConfiguration(f"Unknown task type: {task_type}")
        if name not in self._registry:
            available = ", ".join(sorted(self._registry))
            raise InvalidConfiguration(f"Unknown loss {name!r}. Available losses: {available}")
        return self._registry[name]


REGISTRY = LossRegistry()


# Floor for the probability of the gold class.
MIN_PROBABILITY = 1e-8


def _is_one_hot(gold: Array) -> bool:
    return bool(np.all((gold == 0.0) | (gold == 1.0)) and np.sum(gold) == 1.0)


def _squared_error(output: Array, gold: Array) -> tuple[Array, Array]:
    errors = output - gold
    return 0.5 * np.square(errors), errors


def _absolute_error(output: Array, gold: Array) -> tuple[Array, Array]:
    errors = output - gold
    return np.abs(errors), np.sign(errors)


def _softmax_cross_entropy(logits: Array, gold: Array) -> tuple[Array, Array]:
    if not _is_one_hot(gold):
        raise InvalidConfiguration("Cross-entropy needs a one-hot gold vector")
    probs = softmax(logits)
    losses = np.zeros_like(probs)
    gold_index = int(np.argmax(gold))
    losses.flat[gold_index] = -math.log(max(MIN_PROBABILITY, float(probs.flat[gold_index])))
    return losses, probs - gold


def _binary_cross_entropy(logits: Array, gold: Array) -> tuple[Array, Array]:
    probs = sigmoid(logits)
    clipped = np.clip(probs, MIN_PROBABILITY, 1.0 - MIN_PROBABILITY)
    losses = -(gold * np.log(clipped) + (1.0 - gold) * np.log(1.0 - clipped))
    return losses, probs - gold


def mean_loss(loss: Loss, outputs: Sequence[NDArray], golds: Sequence[NDArray]) -> float:
    """Average of the summed losses over a sequence of output/gold pairs."""

    if len(outputs) != len(golds):
        raise InvalidConfiguration(f"Got {len(outputs)} outputs for {len(golds)} golds")
    if not outputs:
        raise InvalidConfiguration("Cannot average the loss of an empty sequence")
    return float(np.mean([loss(output, gold)[0] for output, gold in zip(outputs, golds)]))


REGISTRY.register("mse", _squared_error)
REGISTRY.register("mae", _absolute_error)
REGISTRY.register("ce", _softmax_cross_entropy)
REGISTRY.register("bce", _binary_cross_entropy)

__all__ = ["Loss", "LossRegistry", "REGISTRY", "MIN_PROBABILITY", "mean_loss"]
