"""Unrolled recurrent layer over a sequence of inputs."""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Union

from ..core.activations import Activation
from ..core.arrays import AugmentedArray
from ..core.errors import IndexOutOfRange, InvalidConfiguration
from ..core.ndarray import NDArray
from ..core.types import LayerKind
from .parameters import GRUParams, LSTMParams, RecurrentParams
from .structure import LayerStructure

logger = logging.getLogger(__name__)

SequenceParams = Union[RecurrentParams, GRUParams, LSTMParams]


def _recurrent_kind(params: object) -> LayerKind:
    if isinstance(params, RecurrentParams):
        return LayerKind.RECURRENT
    if isinstance(params, GRUParams):
        return LayerKind.GRU
    if isinstance(params, LSTMParams):
        return LayerKind.LSTM
    raise InvalidConfiguration(
        f"LayerSequence needs recurrent, GRU or LSTM parameters, got {type(params).__name__}"
    )


class _StepContext:
    def __init__(self, sequence: "LayerSequence", index: int) -> None:
        self.sequence = sequence
        self.index = index

    def previous_state(self) -> Optional[LayerStructure]:
        if self.index == 0:
            return None
        return self.sequence.layers[self.index - 1]


class LayerSequence:
    """One recurrent :class:`LayerStructure` per step, sharing ``params``.

    The layer kind follows the parameters: simple recurrent, GRU or LSTM.

    Step ``t`` reads the output of step ``t - 1``; the first step has no
    previous state. Backward runs from the last step to the first so the
    errors pushed into an earlier output are complete before that step
    propagates them.
    """

    def __init__(self, params: SequenceParams, activation: Activation | str | None = None) -> None:
        self.kind = _recurrent_kind(params)
        self.params = params
        self.activation = activation
        self.layers: List[LayerStructure] = []

    def __len__(self) -> int:
        return len(self.layers)

    def _layer_at(self, index: int) -> LayerStructure:
        if index >= len(self.layers):
            layer = LayerStructure(
                self.kind,
                inputs=[AugmentedArray(self.params.input_size)],
                output=AugmentedArray(self.params.output_size),
                params=self.params,
                activation=self.activation,
                context=_StepContext(self, index),
            )
            self.layers.append(layer)
        return self.layers[index]

    def forward(self, xs: Sequence[NDArray], track_contributions: bool = False) -> List[NDArray]:
        """Run every step in order and return copies of the outputs."""

        if not xs:
            raise InvalidConfiguration("Cannot run a recurrent layer on an empty sequence")
        outputs = []
        for index, x in enumerate(xs):
            layer = self._layer_at(index)
            layer.set_inputs(x)
            layer.input_array.reset_errors()
            layer.output.reset_errors()
            layer.output.reset_relevance()
            outputs.append(layer.forward(track_contributions).copy())
        del self.layers[len(xs):]
        logger.debug("Recurrent forward over %d steps", len(xs))
        return outputs

    def backward(self, output_errors: Sequence[NDArray], propagate_to_input: bool = True) -> List[NDArray]:
        """Back-propagate through time; return the errors of each input."""

        if len(output_errors) != len(self.layers):
            raise InvalidConfiguration(
                f"Expected errors for {len(self.layers)} steps, got {len(output_errors)}"
            )
        for layer, errors in zip(self.layers, output_errors):
            layer.set_errors(errors)
        for layer in reversed(self.layers):
            layer.backward(propagate_to_input=propagate_to_input)
        return [layer.input_array.errors.copy() for layer in self.layers]

    def calculate_relevance(self, step: int, relevance: NDArray) -> List[NDArray]:
        """Relevance of every input step for the output of ``step``.

        Requires a forward pass with ``track_contributions=True``. Only the
        steps up to ``step`` can receive relevance.
        """

        if not 0 <= step < len(self.layers):
            raise IndexOutOfRange(f"Step {step} out of range for {len(self.layers)} steps")
        for layer in self.layers:
            layer.input_array.reset_relevance()
            layer.output.reset_relevance()
        self.layers[step].set_output_relevance(relevance)
        for layer in reversed(self.layers[: step + 1]):
            layer.calculate_relevance()
        return [layer.input_array.relevance.copy() for layer in self.layers]


__all__ = ["LayerSequence"]
