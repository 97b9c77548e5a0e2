"""Helper protocols and the per-kind helper registry."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, Iterable, Optional, Protocol, Type

from ..core.errors import InvalidConfiguration, ShapeMismatch, UnsupportedOperation
from ..core.types import Array, LayerKind

if TYPE_CHECKING:  # pragma: no cover
    from .structure import LayerStructure

Contributions = Dict[str, Array]


class ForwardHelper(Protocol):
    """Computes the layer output from its current inputs and parameters."""

    layer: "LayerStructure"

    @classmethod
    def validate(cls, layer: "LayerStructure") -> None:
        """Check the size invariants of ``layer`` for this kind."""

    def forward(self, track_contributions: bool = False) -> Optional[Contributions]:
        """Write ``layer.output.values``; return the contributions if tracked."""


class BackwardHelper(Protocol):
    """Propagates ``layer.output.errors`` to the inputs and the parameters."""

    layer: "LayerStructure"

    def backward(self, propagate_to_input: bool = True) -> None:
        ...


class RelevanceHelper(Protocol):
    """Distributes ``layer.output.relevance`` over the inputs."""

    layer: "LayerStructure"
    supported: bool

    def calculate_relevance(self, contributions: Contributions) -> None:
        ...


@dataclass
class BaseForward:
    layer: "LayerStructure"
    # False when the activation is applied inside the helper instead of on the output.
    activates_output = True

    @classmethod
    def validate(cls, layer: "LayerStructure") -> None:  # pragma: no cover - abstract
        raise NotImplementedError

    def write_output(self, y: Array) -> None:
        output = self.layer.output
        output.values.data[...] = y
        output.activate()

    @staticmethod
    def require_inputs(layer: "LayerStructure", count: int | None = None, minimum: int = 1) -> None:
        n_inputs = len(layer.inputs)
        if count is not None and n_inputs != count:
            raise InvalidConfiguration(
                f"A {layer.kind.value} layer needs {count} inputs, got {n_inputs}"
            )
        if n_inputs < minimum:
            raise InvalidConfiguration(
                f"A {layer.kind.value} layer needs at least {minimum} inputs, got {n_inputs}"
            )
        for array in list(layer.inputs) + [layer.output]:
            if array.shape[1] != 1:
                raise ShapeMismatch("layer arrays must be column vectors", array.shape, (array.size, 1))

    @staticmethod
    def require_size(name: str, actual: int, expected: int) -> None:
        if actual != expected:
            raise ShapeMismatch(name, (actual, 1), (expected, 1))

    @staticmethod
    def require_params(layer: "LayerStructure", params_type: type) -> None:
        if not isinstance(layer.params, params_type):
            raise InvalidConfiguration(
                f"A {layer.kind.value} layer needs {params_type.__name__}, "
                f"got {type(layer.params).__name__}"
            )


@dataclass
class BaseBackward:
    layer: "LayerStructure"

    def output_gradients(self) -> Array:
        """Errors of the output w.r.t. the pre-activation values."""

        output = self.layer.output
        return output.activation_backward(output.errors).data


@dataclass
class BaseRelevance:
    layer: "LayerStructure"
    supported = True


@dataclass
class UnsupportedRelevance(BaseRelevance):
    """Relevance helper for kinds that cannot attribute relevance."""

    supported = False

    def calculate_relevance(self, contributions: Contributions) -> None:
        raise UnsupportedOperation(
            f"Relevance propagation is not available for {self.layer.kind.value} layers"
        )


@dataclass(frozen=True)
class HelperSet:
    forward: Type[ForwardHelper]
    backward: Type[BackwardHelper]
    relevance: Type[RelevanceHelper]


class HelperRegistry:
    """Capability table mapping each :class:`LayerKind` to its helpers."""

    def __init__(self) -> None:
        self._registry: Dict[LayerKind, HelperSet] = {}

    def register(
        self,
        kind: LayerKind,
        forward: Type[ForwardHelper],
        backward: Type[BackwardHelper],
        relevance: Type[RelevanceHelper] | None = None,
    ) -> None:
        self._registry[LayerKind(kind)] = HelperSet(
            forward=forward,
            backward=backward,
            relevance=relevance or UnsupportedRelevance,
        )

    def get(self, kind: LayerKind) -> HelperSet:
        try:
            return self._registry[LayerKind(kind)]
        except (KeyError, ValueError) as exc:
            available = ", ".join(sorted(k.value for k in self._registry))
            raise InvalidConfiguration(
                f"No helpers registered for layer kind {kind!r}. Available: {available}"
            ) from exc

    def kinds(self) -> Iterable[LayerKind]:
        return sorted(self._registry, key=lambda k: k.value)


REGISTRY = HelperRegistry()


def register_helpers(
    kind: LayerKind,
    forward: Type[ForwardHelper],
    backward: Type[BackwardHelper],
    relevance: Type[RelevanceHelper] | None = None,
) -> None:
    """Register the helper triplet of ``kind`` (``relevance=None``: unsupported)."""

    REGISTRY.register(kind, forward, backward, relevance)


__all__ = [
    "Contributions",
    "ForwardHelper",
    "BackwardHelper",
    "RelevanceHelper",
    "BaseForward",
    "BaseBackward",
    "BaseRelevance",
    "UnsupportedRelevance",
    "HelperSet",
    "HelperRegistry",
    "REGISTRY",
    "register_helpers",
]
