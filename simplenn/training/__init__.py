"""Losses, evaluation, a feed-forward network and its training loop."""

from .evaluation import (
    binary_evaluation,
    classification_evaluation,
    evaluate,
    macro_f1,
    multiclass_accuracy,
)
from .losses import REGISTRY as LOSS_REGISTRY
from .losses import Loss, LossRegistry, mean_loss
from .network import FeedforwardNetwork
from .trainer import Trainer

__all__ = [
    "binary_evaluation",
    "classification_evaluation",
    "evaluate",
    "macro_f1",
    "multiclass_accuracy",
    "LOSS_REGISTRY",
    "Loss",
    "LossRegistry",
    "mean_loss",
    "FeedforwardNetwork",
    "Trainer",
]
