"""Simple recurrent layer helpers: ``y_t = f(W . x_t + Wr . y_{t-1} + b)``."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from ..core.ndarray import NDArray
from ..core.types import Array, LayerKind
from .helpers import BaseBackward, BaseForward, BaseRelevance, Contributions, register_helpers
from .parameters import RecurrentParams
from .relevance import partition, relevance_of


@dataclass
class RecurrentForward(BaseForward):
    @classmethod
    def validate(cls, layer) -> None:
        cls.require_inputs(layer, count=1)
        cls.require_params(layer, RecurrentParams)
        cls.require_size("input size", layer.inputs[0].size, layer.params.input_size)
        cls.require_size("output size", layer.output.size, layer.params.output_size)

    def forward(self, track_contributions: bool = False) -> Optional[Contributions]:
        params = self.layer.params
        w = params.weights.values.data
        b = params.biases.values.data
        x = self.layer.inputs[0].values.data
        previous = self.layer.previous_state

        if previous is None:
            self.write_output(w @ x + b)
            if track_contributions:
                return {"weights": w * x.T + b / x.shape[0]}
            return None

        wr = params.recurrent_weights.values.data
        y_prev = previous.output.values.data
        self.write_output(w @ x + wr @ y_prev + b)
        if not track_contributions:
            return None
        # Half of the bias goes to the input part, half to the recurrent part.
        half_bias = b / 2.0
        recurrent = wr * y_prev.T + half_bias / y_prev.shape[0]
        return {
            "weights": w * x.T + half_bias / x.shape[0],
            "recurrent_weights": recurrent,
            "recurrent_output": recurrent.sum(axis=1, keepdims=True),
        }


@dataclass
class RecurrentBackward(BaseBackward):
    gradients: Array | None = field(default=None, init=False, repr=False)

    def backward(self, propagate_to_input: bool = True) -> None:
        params = self.layer.params
        gy = NDArray(self.output_gradients())
        self.gradients = gy.data
        params.biases.accumulate_errors(gy)
        params.weights.accumulate_outer(gy, self.layer.inputs[0].values)
        previous = self.layer.previous_state
        if previous is not None:
            params.recurrent_weights.accumulate_outer(gy, previous.output.values)
        if propagate_to_input:
            self.layer.inputs[0].accumulate_errors(
                NDArray(params.weights.values.data.T @ gy.data)
            )

    def propagate_to_previous(self) -> None:
        """Add ``Wr^T . g`` to the output errors of the previous step."""

        previous = self.layer.previous_state
        wr = self.layer.params.recurrent_weights.values.data
        previous.output.accumulate_errors(NDArray(wr.T @ self.gradients))


@dataclass
class RecurrentRelevance(BaseRelevance):
    def calculate_relevance(self, contributions: Contributions) -> None:
        output = self.layer.output
        y = output.values_not_activated.data
        r_y = output.relevance.data
        if "recurrent_output" in contributions:
            y_rec = contributions["recurrent_output"]
            y_input = y - y_rec
            r_input = partition(r_y, y, y_input, y_rec)
            relevance = relevance_of(y_input, r_input, contributions["weights"])
        else:
            relevance = relevance_of(y, r_y, contributions["weights"])
        self.layer.inputs[0].accumulate_relevance(NDArray(relevance))

    def propagate_to_previous(self, contributions: Contributions) -> None:
        """Give the recurrent share of the output relevance to the previous step."""

        output = self.layer.output
        y = output.values_not_activated.data
        y_rec = contributions["recurrent_output"]
        r_rec = partition(output.relevance.data, y, y_rec, y_rec)
        relevance = relevance_of(y_rec, r_rec, contributions["recurrent_weights"])
        self.layer.previous_state.output.accumulate_relevance(NDArray(relevance))


register_helpers(LayerKind.RECURRENT, RecurrentForward, RecurrentBackward, RecurrentRelevance)

__all__ = ["RecurrentForward", "RecurrentBackward", "RecurrentRelevance"]
