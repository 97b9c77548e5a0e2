"""Per-layer weight and bias containers."""

from __future__ import annotations

from typing import Dict, Iterator, List, Tuple

from ..core.arrays import ParamsArray
from ..core.errors import InvalidConfiguration
from ..core.initializers import Initializer
from ..core.ndarray import NDArray


def _check_size(name: str, value: int) -> int:
    if int(value) != value or value <= 0:
        raise InvalidConfiguration(f"{name} must be a positive integer, got {value!r}")
    return int(value)


class LayerParameters:
    """Weights (``output x input``) and biases (``output x 1``) of a layer.

    Shapes are fixed by the sizes given at construction. With
    ``sparse_input`` the weight gradients are accumulated column-sparse,
    touching only the columns of the active input entries.
    """

    def __init__(
        self,
        input_size: int,
        output_size: int,
        sparse_input: bool = False,
        weights_initializer: Initializer | None = None,
        biases_initializer: Initializer | None = None,
    ) -> None:
        self.input_size = _check_size("input_size", input_size)
        self.output_size = _check_size("output_size", output_size)
        self.sparse_input = sparse_input
        self.weights = ParamsArray(
            NDArray.zeros((self.output_size, self.input_size)),
            sparse=sparse_input,
            name="weights",
        )
        self.biases = ParamsArray(NDArray.zeros(self.output_size), name="biases")
        self.initialize(weights_initializer, biases_initializer)

    def weight_arrays(self) -> List[ParamsArray]:
        """The arrays filled by the weights initializer."""

        return [self.weights]

    def initialize(
        self,
        weights_initializer: Initializer | None = None,
        biases_initializer: Initializer | None = None,
    ) -> None:
        """Fill the parameters; a missing initializer leaves zeros."""

        if weights_initializer is not None:
            for array in self.weight_arrays():
                weights_initializer.initialize(array.values)
        if biases_initializer is not None:
            biases_initializer.initialize(self.biases.values)

    def __iter__(self) -> Iterator[ParamsArray]:
        yield from self.weight_arrays()
        yield self.biases

    def reset_errors(self) -> None:
        for array in self:
            array.reset_errors()

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(input_size={self.input_size}, "
            f"output_size={self.output_size}, sparse_input={self.sparse_input})"
        )


class LinearParams(LayerParameters):
    """Parameters of a feed-forward (linear) layer."""


class RecurrentParams(LinearParams):
    """Linear parameters plus the ``output x output`` recurrent weights."""

    def __init__(
        self,
        input_size: int,
        output_size: int,
        sparse_input: bool = False,
        weights_initializer: Initializer | None = None,
        biases_initializer: Initializer | None = None,
    ) -> None:
        self.recurrent_weights = ParamsArray(
            NDArray.zeros((_check_size("output_size", output_size),) * 2),
            name="recurrent_weights",
        )
        super().__init__(
            input_size,
            output_size,
            sparse_input=sparse_input,
            weights_initializer=weights_initializer,
            biases_initializer=biases_initializer,
        )

    def weight_arrays(self) -> List[ParamsArray]:
        return [self.weights, self.recurrent_weights]


class MergeLayerParameters(LayerParameters):
    """Parameters of a two-input merge layer.

    ``weights`` and ``biases`` are allocated with ``input_size1`` as the
    nominal input size; nothing is allocated for the second input here.
    Subclasses that transform the second input carry their own block.
    """

    def __init__(
        self,
        input_size1: int,
        input_size2: int,
        output_size: int,
        sparse_input: bool = False,
        weights_initializer: Initializer | None = None,
        biases_initializer: Initializer | None = None,
    ) -> None:
        self.input_size1 = _check_size("input_size1", input_size1)
        self.input_size2 = _check_size("input_size2", input_size2)
        super().__init__(
            self.input_size1,
            output_size,
            sparse_input=sparse_input,
            weights_initializer=weights_initializer,
            biases_initializer=biases_initializer,
        )

    @property
    def input_sizes(self) -> List[int]:
        return [self.input_size1, self.input_size2]


class AffineParams(MergeLayerParameters):
    """``y = W1 . x1 + W2 . x2 + b``: adds ``weights2`` for the second input."""

    def __init__(
        self,
        input_size1: int,
        input_size2: int,
        output_size: int,
        sparse_input: bool = False,
        weights_initializer: Initializer | None = None,
        biases_initializer: Initializer | None = None,
    ) -> None:
        self.weights2 = ParamsArray(
            NDArray.zeros(
                (
                    _check_size("output_size", output_size),
                    _check_size("input_size2", input_size2),
                )
            ),
            sparse=sparse_input,
            name="weights2",
        )
        super().__init__(
            input_size1,
            input_size2,
            output_size,
            sparse_input=sparse_input,
            weights_initializer=weights_initializer,
            biases_initializer=biases_initializer,
        )

    def weight_arrays(self) -> List[ParamsArray]:
        return [self.weights, self.weights2]


class RecurrentUnitParams:
    """Weights, recurrent weights and biases of one gate of a gated layer."""

    def __init__(self, name: str, input_size: int, output_size: int, sparse_input: bool = False) -> None:
        self.name = name
        self.weights = ParamsArray(
            NDArray.zeros((output_size, input_size)), sparse=sparse_input, name=f"{name}.weights"
        )
        self.recurrent_weights = ParamsArray(
            NDArray.zeros((output_size, output_size)), name=f"{name}.recurrent_weights"
        )
        self.biases = ParamsArray(NDArray.zeros(output_size), name=f"{name}.biases")

    def __iter__(self) -> Iterator[ParamsArray]:
        yield self.weights
        yield self.recurrent_weights
        yield self.biases


class GatedRecurrentParams:
    """One :class:`RecurrentUnitParams` block per name in ``GATES``.

    Each gate is reachable as an attribute (``params.candidate``) and the
    object iterates over all the arrays of all the gates, like
    :class:`LayerParameters`.
    """

    GATES: Tuple[str, ...] = ()

    def __init__(
        self,
        input_size: int,
        output_size: int,
        sparse_input: bool = False,
        weights_initializer: Initializer | None = None,
        biases_initializer: Initializer | None = None,
    ) -> None:
        self.input_size = _check_size("input_size", input_size)
        self.output_size = _check_size("output_size", output_size)
        self.sparse_input = sparse_input
        self.units: Dict[str, RecurrentUnitParams] = {
            gate: RecurrentUnitParams(gate, self.input_size, self.output_size, sparse_input)
            for gate in self.GATES
        }
        if weights_initializer is not None:
            for unit in self.units.values():
                weights_initializer.initialize(unit.weights.values)
                weights_initializer.initialize(unit.recurrent_weights.values)
        if biases_initializer is not None:
            for unit in self.units.values():
                biases_initializer.initialize(unit.biases.values)

    def __getattr__(self, name: str) -> RecurrentUnitParams:
        units = self.__dict__.get("units", {})
        if name in units:
            return units[name]
        raise AttributeError(name)

    def __iter__(self) -> Iterator[ParamsArray]:
        for unit in self.units.values():
            yield from unit

    def reset_errors(self) -> None:
        for array in self:
            array.reset_errors()

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(input_size={self.input_size}, "
            f"output_size={self.output_size}, gates={list(self.GATES)})"
        )


class GRUParams(GatedRecurrentParams):
    GATES = ("reset_gate", "partition_gate", "candidate")


class LSTMParams(GatedRecurrentParams):
    GATES = ("input_gate", "output_gate", "forget_gate", "candidate")


__all__ = [
    "LayerParameters",
    "LinearParams",
    "RecurrentParams",
    "MergeLayerParameters",
    "AffineParams",
    "RecurrentUnitParams",
    "GatedRecurrentParams",
    "GRUParams",
    "LSTMParams",
]
