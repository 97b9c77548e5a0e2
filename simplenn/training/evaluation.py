"""Stateless output evaluation functions and dataset metrics."""

from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Sequence

import numpy as np

from ..core.activations import sigmoid
from ..core.errors import InvalidConfiguration, ShapeMismatch
from ..core.ndarray import NDArray
from ..core.types import Array


def binary_evaluation(prediction: NDArray, gold: NDArray, threshold: float = 0.5) -> bool:
    """Whether every output, thresholded at ``threshold``, matches its 0/1 gold value."""

    if prediction.shape != gold.shape:
        raise ShapeMismatch("binary_evaluation", prediction.shape, gold.shape)
    gold_values = gold.data
    if not np.all((gold_values == 0.0) | (gold_values == 1.0)):
        raise InvalidConfiguration("binary_evaluation requires gold values in {0, 1}")
    return bool(np.all((prediction.data >= threshold) == (gold_values == 1.0)))


def classification_evaluation(prediction: NDArray, gold: NDArray) -> bool:
    """Whether the arg-max of ``prediction`` is the arg-max of the one-hot ``gold``."""

    if prediction.shape != gold.shape:
        raise ShapeMismatch("classification_evaluation", prediction.shape, gold.shape)
    return prediction.argmax() == gold.argmax()


def _stack(vectors: Sequence[NDArray]) -> Array:
    if not vectors:
        raise InvalidConfiguration("Cannot evaluate an empty set of outputs")
    return np.stack([vector.data[:, 0] for vector in vectors])


def _class_indices(targets: Array) -> Array:
    if targets.shape[1] > 1:
        return np.argmax(targets, axis=1)
    return targets.reshape(-1).astype(int)


def multiclass_accuracy(predictions: Sequence[NDArray], targets: Sequence[NDArray]) -> float:
    preds = _stack(predictions)
    targs = _stack(targets)
    return float(np.mean(np.argmax(preds, axis=1) == _class_indices(targs)))


def macro_f1(predictions: Sequence[NDArray], targets: Sequence[NDArray], num_classes: int) -> float:
    pred_idx = np.argmax(_stack(predictions), axis=1)
    targ_idx = _class_indices(_stack(targets))
    f1_scores = []
    for cls in range(num_classes):
        tp = np.sum((pred_idx == cls) & (targ_idx == cls))
        fp = np.sum((pred_idx == cls) & (targ_idx != cls))
        fn = np.sum((pred_idx != cls) & (targ_idx == cls))
        precision = tp / (tp + fp + 1e-9)
        recall = tp / (tp + fn + 1e-9)
        f1_scores.append(2 * precision * recall / (precision + recall + 1e-9))
    return float(np.mean(f1_scores))


def default_metrics(task_type: str) -> List[str]:
    if task_type == "regression":
        return ["mae", "rmse"]
    if task_type == "multiclass":
        return ["accuracy", "macro_f1"]
    if task_type == "binary":
        return ["accuracy"]
    raise InvalidConfiguration(f"Unknown task type: {task_type}")


def evaluate(
    names: Iterable[str],
    predictions: Sequence[NDArray],
    targets: Sequence[NDArray],
    *,
    task_type: str,
) -> Mapping[str, float]:
    """Compute the named metrics over paired output/target vectors."""

    preds = _stack(predictions)
    targs = _stack(targets)
    results: Dict[str, float] = {}
    for name in names:
        key = name.lower()
        if key == "mae":
            value = float(np.mean(np.abs(preds - targs)))
        elif key == "rmse":
            value = float(np.sqrt(np.mean((preds - targs) ** 2)))
        elif key == "accuracy" and task_type == "multiclass":
            value = multiclass_accuracy(predictions, targets)
        elif key == "accuracy":
            # Binary outputs are logits.
            value = float(np.mean([
                binary_evaluation(NDArray(sigmoid(p.data)), t) for p, t in zip(predictions, targets)
            ]))
        elif key == "macro_f1":
            value = macro_f1(predictions, targets, num_classes=preds.shape[1])
        else:
            raise InvalidConfiguration(f"Unknown metric: {name}")
        results[key] = value
    return results


__all__ = [
    "binary_evaluation",
    "classification_evaluation",
    "multiclass_accuracy",
    "macro_f1",
    "default_metrics",
    "evaluate",
]
