"""Helpers for the merge kinds: concat, sum, product, dot and affine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

import numpy as np

from ..core.ndarray import NDArray
from ..core.types import LayerKind
from .helpers import BaseBackward, BaseForward, BaseRelevance, Contributions, register_helpers
from .parameters import AffineParams
from .relevance import relevance_of, stabilizer


def _input_values(layer) -> List[np.ndarray]:
    return [array.values.data for array in layer.inputs]


# ----------------------------------------------------------------------
# Concat: y = [x1; x2; ...]


@dataclass
class ConcatForward(BaseForward):
    @classmethod
    def validate(cls, layer) -> None:
        cls.require_inputs(layer, minimum=2)
        total = sum(array.size for array in layer.inputs)
        cls.require_size("concatenated size", layer.output.size, total)

    def forward(self, track_contributions: bool = False) -> Optional[Contributions]:
        self.write_output(np.vstack(_input_values(self.layer)))
        return {} if track_contributions else None


@dataclass
class ConcatBackward(BaseBackward):
    def backward(self, propagate_to_input: bool = True) -> None:
        if not propagate_to_input:
            return
        gy = NDArray(self.output_gradients())
        parts = gy.split_v(*[array.size for array in self.layer.inputs])
        for array, part in zip(self.layer.inputs, parts):
            array.accumulate_errors(part)


@dataclass
class ConcatRelevance(BaseRelevance):
    def calculate_relevance(self, contributions: Contributions) -> None:
        parts = self.layer.output.relevance.split_v(*[array.size for array in self.layer.inputs])
        for array, part in zip(self.layer.inputs, parts):
            array.accumulate_relevance(part)


# ----------------------------------------------------------------------
# Sum: y = x1 + x2 + ...


def _require_same_sizes(cls, layer) -> None:
    cls.require_inputs(layer, minimum=2)
    for array in layer.inputs:
        cls.require_size("input size", array.size, layer.output.size)


@dataclass
class SumForward(BaseForward):
    @classmethod
    def validate(cls, layer) -> None:
        _require_same_sizes(cls, layer)

    def forward(self, track_contributions: bool = False) -> Optional[Contributions]:
        xs = _input_values(self.layer)
        self.write_output(np.sum(xs, axis=0))
        if not track_contributions:
            return None
        return {"inputs": np.stack(xs)}


@dataclass
class SumBackward(BaseBackward):
    def backward(self, propagate_to_input: bool = True) -> None:
        if not propagate_to_input:
            return
        gy = NDArray(self.output_gradients())
        for array in self.layer.inputs:
            array.accumulate_errors(gy)


@dataclass
class SumRelevance(BaseRelevance):
    def calculate_relevance(self, contributions: Contributions) -> None:
        output = self.layer.output
        y = output.values_not_activated.data
        r_y = output.relevance.data
        xs = contributions["inputs"]
        eps = stabilizer(y)
        n = len(xs)
        for array, x in zip(self.layer.inputs, xs):
            array.accumulate_relevance(NDArray(r_y * (x + eps / n) / (y + eps)))


# ----------------------------------------------------------------------
# Product: y = x1 * x2 * ... (element-wise)


@dataclass
class ProductForward(BaseForward):
    @classmethod
    def validate(cls, layer) -> None:
        _require_same_sizes(cls, layer)

    def forward(self, track_contributions: bool = False) -> Optional[Contributions]:
        self.write_output(np.prod(_input_values(self.layer), axis=0))
        return {} if track_contributions else None


@dataclass
class ProductBackward(BaseBackward):
    def backward(self, propagate_to_input: bool = True) -> None:
        if not propagate_to_input:
            return
        gy = self.output_gradients()
        xs = _input_values(self.layer)
        for k, array in enumerate(self.layer.inputs):
            others = [x for j, x in enumerate(xs) if j != k]
            array.accumulate_errors(NDArray(gy * np.prod(others, axis=0)))


# ----------------------------------------------------------------------
# Dot: y = x1^T . x2 (a single value)


@dataclass
class DotForward(BaseForward):
    @classmethod
    def validate(cls, layer) -> None:
        cls.require_inputs(layer, count=2)
        cls.require_size("second input size", layer.inputs[1].size, layer.inputs[0].size)
        cls.require_size("output size", layer.output.size, 1)

    def forward(self, track_contributions: bool = False) -> Optional[Contributions]:
        x1, x2 = _input_values(self.layer)
        self.write_output(x1.T @ x2)
        if not track_contributions:
            return None
        return {"products": (x1 * x2).T}


@dataclass
class DotBackward(BaseBackward):
    def backward(self, propagate_to_input: bool = True) -> None:
        if not propagate_to_input:
            return
        gy = self.output_gradients()[0, 0]
        x1, x2 = _input_values(self.layer)
        self.layer.inputs[0].accumulate_errors(NDArray(gy * x2))
        self.layer.inputs[1].accumulate_errors(NDArray(gy * x1))


@dataclass
class DotRelevance(BaseRelevance):
    """Each product ``x1_i * x2_i`` splits its relevance evenly between both factors."""

    def calculate_relevance(self, contributions: Contributions) -> None:
        output = self.layer.output
        relevance = relevance_of(
            output.values_not_activated.data,
            output.relevance.data,
            contributions["products"],
        )
        half = NDArray(relevance / 2.0)
        for array in self.layer.inputs:
            array.accumulate_relevance(half)


# ----------------------------------------------------------------------
# Affine: y = W1 . x1 + W2 . x2 + b


@dataclass
class AffineForward(BaseForward):
    @classmethod
    def validate(cls, layer) -> None:
        cls.require_inputs(layer, count=2)
        cls.require_params(layer, AffineParams)
        params = layer.params
        cls.require_size("first input size", layer.inputs[0].size, params.input_size1)
        cls.require_size("second input size", layer.inputs[1].size, params.input_size2)
        cls.require_size("output size", layer.output.size, params.output_size)

    def forward(self, track_contributions: bool = False) -> Optional[Contributions]:
        params = self.layer.params
        w1 = params.weights.values.data
        w2 = params.weights2.values.data
        b = params.biases.values.data
        x1, x2 = _input_values(self.layer)
        self.write_output(w1 @ x1 + w2 @ x2 + b)
        if not track_contributions:
            return None
        bias_share = b / (x1.shape[0] + x2.shape[0])
        return {"weights": w1 * x1.T + bias_share, "weights2": w2 * x2.T + bias_share}


@dataclass
class AffineBackward(BaseBackward):
    def backward(self, propagate_to_input: bool = True) -> None:
        params = self.layer.params
        gy = NDArray(self.output_gradients())
        x1, x2 = self.layer.inputs
        params.biases.accumulate_errors(gy)
        params.weights.accumulate_outer(gy, x1.values)
        params.weights2.accumulate_outer(gy, x2.values)
        if propagate_to_input:
            x1.accumulate_errors(NDArray(params.weights.values.data.T @ gy.data))
            x2.accumulate_errors(NDArray(params.weights2.values.data.T @ gy.data))


@dataclass
class AffineRelevance(BaseRelevance):
    def calculate_relevance(self, contributions: Contributions) -> None:
        output = self.layer.output
        y = output.values_not_activated.data
        r_y = output.relevance.data
        n = sum(array.size for array in self.layer.inputs)
        for array, key in zip(self.layer.inputs, ("weights", "weights2")):
            relevance = relevance_of(y, r_y, contributions[key], n_inputs=n)
            array.accumulate_relevance(NDArray(relevance))


register_helpers(LayerKind.CONCAT, ConcatForward, ConcatBackward, ConcatRelevance)
register_helpers(LayerKind.SUM, SumForward, SumBackward, SumRelevance)
register_helpers(LayerKind.PRODUCT, ProductForward, ProductBackward)
register_helpers(LayerKind.DOT, DotForward, DotBackward, DotRelevance)
register_helpers(LayerKind.AFFINE, AffineForward, AffineBackward, AffineRelevance)

__all__ = [
    "ConcatForward",
    "ConcatBackward",
    "ConcatRelevance",
    "SumForward",
    "SumBackward",
    "SumRelevance",
    "ProductForward",
    "ProductBackward",
    "DotForward",
    "DotBackward",
    "DotRelevance",
    "AffineForward",
    "AffineBackward",
    "AffineRelevance",
]
