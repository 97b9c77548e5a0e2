"""simplenn: a hand-coded neural network layer engine on top of NumPy."""

from .core.arrays import AugmentedArray, ParamsArray, SparseErrors
from .core.errors import (
    IndexOutOfRange,
    InvalidConfiguration,
    InvalidPartition,
    NoPreviousState,
    ShapeMismatch,
    SimpleNNError,
    StaleState,
    UnsupportedOperation,
)
from .core.ndarray import NDArray, equals
from .core.types import Example, LayerKind, LayerPhase, TrainResult
from .layers import (
    AffineParams,
    GRUParams,
    LayerParameters,
    LayerSequence,
    LayerStructure,
    LinearParams,
    LSTMParams,
    MergeLayerParameters,
    RecurrentParams,
)
from .optim import ParamsOptimizer
from .training import FeedforwardNetwork, Trainer

__all__ = [
    "AugmentedArray",
    "ParamsArray",
    "SparseErrors",
    "IndexOutOfRange",
    "InvalidConfiguration",
    "InvalidPartition",
    "NoPreviousState",
    "ShapeMismatch",
    "SimpleNNError",
    "StaleState",
    "UnsupportedOperation",
    "NDArray",
    "equals",
    "Example",
    "LayerKind",
    "LayerPhase",
    "TrainResult",
    "AffineParams",
    "GRUParams",
    "LayerParameters",
    "LayerSequence",
    "LayerStructure",
    "LinearParams",
    "LSTMParams",
    "MergeLayerParameters",
    "RecurrentParams",
    "ParamsOptimizer",
    "FeedforwardNetwork",
    "Trainer",
]
