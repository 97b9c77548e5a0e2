"""Feed-forward (linear) layer helpers: ``y = f(W . x + b)``."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..core.ndarray import NDArray
from ..core.types import LayerKind
from .helpers import BaseBackward, BaseForward, BaseRelevance, Contributions, register_helpers
from .parameters import LayerParameters
from .relevance import relevance_of


@dataclass
class LinearForward(BaseForward):
    @classmethod
    def validate(cls, layer) -> None:
        cls.require_inputs(layer, count=1)
        cls.require_params(layer, LayerParameters)
        cls.require_size("input size", layer.inputs[0].size, layer.params.input_size)
        cls.require_size("output size", layer.output.size, layer.params.output_size)

    def forward(self, track_contributions: bool = False) -> Optional[Contributions]:
        params = self.layer.params
        w = params.weights.values.data
        b = params.biases.values.data
        x = self.layer.inputs[0].values.data
        self.write_output(w @ x + b)
        if not track_contributions:
            return None
        if params.sparse_input:
            # Only the non-zero inputs share the bias and receive relevance.
            active = (x != 0.0).T.astype(float)
            n_active = max(int(active.sum()), 1)
            return {"weights": (w * x.T + b / n_active) * active, "active": active}
        # The bias is shared evenly among the inputs.
        return {"weights": w * x.T + b / x.shape[0]}


@dataclass
class LinearBackward(BaseBackward):
    def backward(self, propagate_to_input: bool = True) -> None:
        params = self.layer.params
        gy = NDArray(self.output_gradients())
        params.biases.accumulate_errors(gy)
        params.weights.accumulate_outer(gy, self.layer.inputs[0].values)
        if propagate_to_input:
            self.layer.inputs[0].accumulate_errors(
                NDArray(params.weights.values.data.T @ gy.data)
            )


@dataclass
class LinearRelevance(BaseRelevance):
    def calculate_relevance(self, contributions: Contributions) -> None:
        output = self.layer.output
        active = contributions.get("active")
        relevance = relevance_of(
            output.values_not_activated.data,
            output.relevance.data,
            contributions["weights"],
            n_inputs=None if active is None else max(int(active.sum()), 1),
        )
        if active is not None:
            relevance = relevance * active.T
        self.layer.inputs[0].accumulate_relevance(NDArray(relevance))


register_helpers(LayerKind.LINEAR, LinearForward, LinearBackward, LinearRelevance)

__all__ = ["LinearForward", "LinearBackward", "LinearRelevance"]
