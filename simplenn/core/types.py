"""Core typing contracts for simplenn."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Tuple, TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:  # pragma: no cover
    from .ndarray import NDArray

Array = np.ndarray
Shape = Tuple[int, int]


class LayerKind(str, Enum):
    """Layer variants known to the helper registry."""

    LINEAR = "linear"
    RECURRENT = "recurrent"
    CONCAT = "concat"
    SUM = "sum"
    PRODUCT = "product"
    DOT = "dot"
    AFFINE = "affine"
    GRU = "gru"
    LSTM = "lstm"


class LayerPhase(int, Enum):
    """Per-step state of a :class:`~simplenn.layers.structure.LayerStructure`."""

    CREATED = 0
    FORWARD = 1
    BACKWARD = 2
    RELEVANCE = 3


@dataclass(frozen=True)
class Example:
    """A single training example: one input vector and its gold output."""

    inputs: "NDArray"
    targets: "NDArray"


@dataclass
class TrainResult:
    """Summary returned by :meth:`simplenn.training.trainer.Trainer.run`."""

    epochs: int
    steps: int
    losses: List[float] = field(default_factory=list)

    @property
    def final_loss(self) -> float:
        return self.losses[-1] if self.losses else float("nan")


__all__ = ["Array", "Shape", "LayerKind", "LayerPhase", "Example", "TrainResult"]
