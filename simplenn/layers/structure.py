"""Generic layer: arrays, parameters and the per-kind helpers tied together."""

from __future__ import annotations

import logging
from typing import Optional, Protocol, Sequence, Tuple

from ..core.activations import Activation, get_activation
from ..core.arrays import AugmentedArray
from ..core.errors import InvalidConfiguration, NoPreviousState, StaleState, UnsupportedOperation
from ..core.ndarray import NDArray
from ..core.types import LayerKind, LayerPhase
from .helpers import REGISTRY, Contributions
from .parameters import GatedRecurrentParams, LayerParameters

logger = logging.getLogger(__name__)


class LayerContext(Protocol):
    """Gives a recurrent layer access to the layer of the previous step."""

    def previous_state(self) -> Optional["LayerStructure"]:
        ...


class LayerStructure:
    """A layer of any :class:`LayerKind`.

    The layer owns no math of its own: forward, backward and relevance are
    delegated to the helpers registered for its kind. Calls must follow the
    cycle ``set_inputs -> forward -> backward`` (and/or
    ``calculate_relevance``); calling backward or relevance on values that
    changed since the last forward raises :class:`StaleState`.
    """

    def __init__(
        self,
        kind: LayerKind | str,
        inputs: Sequence[AugmentedArray],
        output: AugmentedArray,
        params: LayerParameters | GatedRecurrentParams | None = None,
        activation: Activation | str | None = None,
        context: LayerContext | None = None,
    ) -> None:
        try:
            self.kind = LayerKind(kind)
        except ValueError as exc:
            raise InvalidConfiguration(f"Unknown layer kind: {kind!r}") from exc
        self.inputs = list(inputs)
        self.output = output
        self.params = params
        self.activation = get_activation(activation)
        self.context = context
        self.phase = LayerPhase.CREATED
        self.contributions: Contributions | None = None
        self._forward_versions: Tuple[int, ...] = ()

        helpers = REGISTRY.get(self.kind)
        self.output.set_activation(self.activation if helpers.forward.activates_output else None)
        helpers.forward.validate(self)
        self.forward_helper = helpers.forward(self)
        self.backward_helper = helpers.backward(self)
        self.relevance_helper = helpers.relevance(self)

    @property
    def input_array(self) -> AugmentedArray:
        return self.inputs[0]

    @property
    def output_array(self) -> AugmentedArray:
        return self.output

    @property
    def previous_state(self) -> Optional["LayerStructure"]:
        if self.context is None:
            return None
        return self.context.previous_state()

    def set_inputs(self, *values: NDArray) -> None:
        if len(values) != len(self.inputs):
            raise InvalidConfiguration(
                f"Expected {len(self.inputs)} input values, got {len(values)}"
            )
        for array, value in zip(self.inputs, values):
            array.assign_values(value)
            array.reset_relevance()
        self.contributions = None
        self.phase = LayerPhase.CREATED

    def set_errors(self, errors: NDArray) -> None:
        self.output.assign_errors(errors)

    def set_output_relevance(self, relevance: NDArray) -> None:
        self.output.assign_relevance(relevance)

    def forward(self, track_contributions: bool = False) -> NDArray:
        """Compute the output values; keep contributions for relevance if asked."""

        self.contributions = self.forward_helper.forward(track_contributions)
        self._forward_versions = self._input_versions()
        self.phase = LayerPhase.FORWARD
        logger.debug(
            "%s forward (contributions=%s) -> %s", self.kind.value, track_contributions, self.output.shape
        )
        return self.output.values

    def backward(
        self,
        propagate_to_input: bool = True,
        propagate_to_previous: bool | None = None,
    ) -> None:
        """Accumulate gradients into the parameters and (optionally) the inputs.

        ``propagate_to_previous`` pushes the errors into the output of the
        previous recurrent step: ``None`` does it whenever a previous state
        exists, ``True`` requires one.
        """

        if __debug__:
            self._check_forwarded("backward")
        propagate_previous = self._resolve_previous(propagate_to_previous, self.backward_helper)
        self.backward_helper.backward(propagate_to_input)
        if propagate_previous:
            self.backward_helper.propagate_to_previous()
        self.phase = LayerPhase.BACKWARD
        logger.debug(
            "%s backward (input=%s, previous=%s)", self.kind.value, propagate_to_input, propagate_previous
        )

    def calculate_relevance(self, propagate_to_previous: bool | None = None) -> None:
        """Distribute the output relevance over the inputs.

        Requires a forward pass with ``track_contributions=True`` on the
        current inputs.
        """

        if not self.relevance_helper.supported:
            raise UnsupportedOperation(
                f"Relevance propagation is not available for {self.kind.value} layers"
            )
        if __debug__:
            self._check_forwarded("calculate_relevance")
        if self.contributions is None:
            raise StaleState("calculate_relevance requires a forward pass with contributions")
        propagate_previous = self._resolve_previous(propagate_to_previous, self.relevance_helper)
        self.relevance_helper.calculate_relevance(self.contributions)
        if propagate_previous:
            self.relevance_helper.propagate_to_previous(self.contributions)
        self.phase = LayerPhase.RELEVANCE

    def reset(self) -> None:
        """Clear the errors and relevance of every array of the layer."""

        for array in self.inputs + [self.output]:
            array.reset_errors()
            array.reset_relevance()
        self.contributions = None
        self.phase = LayerPhase.CREATED

    def _resolve_previous(self, requested: bool | None, helper: object) -> bool:
        if not hasattr(helper, "propagate_to_previous"):
            if requested:
                raise UnsupportedOperation(
                    f"A {self.kind.value} layer cannot propagate to a previous state"
                )
            return False
        has_previous = self.previous_state is not None
        if requested is None:
            return has_previous
        if requested and not has_previous:
            raise NoPreviousState(
                f"The {self.kind.value} layer has no previous state to propagate to"
            )
        return requested

    def _input_versions(self) -> Tuple[int, ...]:
        return tuple(array.version for array in self.inputs)

    def _check_forwarded(self, operation: str) -> None:
        if self.phase == LayerPhase.CREATED:
            raise StaleState(f"{operation} called before forward")
        if self._input_versions() != self._forward_versions:
            raise StaleState(f"{operation} called on inputs changed after forward")

    def __repr__(self) -> str:
        sizes = ", ".join(str(array.size) for array in self.inputs)
        return (
            f"LayerStructure(kind={self.kind.value}, inputs=[{sizes}], "
            f"output={self.output.size}, phase={self.phase.name})"
        )


# Importing the helper modules fills the registry.
from . import feedforward, gated, merge, recurrent  # noqa: E402,F401

__all__ = ["LayerContext", "LayerStructure"]
