"""Layer structures, parameters and the per-kind helpers."""

from .helpers import REGISTRY, HelperRegistry, register_helpers
from .parameters import (
    AffineParams,
    GatedRecurrentParams,
    GRUParams,
    LayerParameters,
    LinearParams,
    LSTMParams,
    MergeLayerParameters,
    RecurrentParams,
)
from .sequence import LayerSequence
from .structure import LayerContext, LayerStructure

__all__ = [
    "REGISTRY",
    "HelperRegistry",
    "register_helpers",
    "AffineParams",
    "GatedRecurrentParams",
    "GRUParams",
    "LayerParameters",
    "LinearParams",
    "LSTMParams",
    "MergeLayerParameters",
    "RecurrentParams",
    "LayerSequence",
    "LayerContext",
    "LayerStructure",
]
