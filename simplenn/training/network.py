"""Stack of feed-forward layers, one augmented array per edge."""

from __future__ import annotations

from typing import List, Sequence

from ..core.activations import Activation
from ..core.arrays import AugmentedArray
from ..core.errors import InvalidConfiguration
from ..core.initializers import Initializer
from ..core.ndarray import NDArray
from ..core.types import LayerKind
from ..layers.parameters import LinearParams
from ..layers.structure import LayerStructure


class FeedforwardNetwork:
    """Multi-layer perceptron built from LINEAR :class:`LayerStructure` s.

    ``layer_sizes`` lists the input size followed by every layer output
    size. Hidden layers use ``activation``, the last one
    ``output_activation``.
    """

    def __init__(
        self,
        layer_sizes: Sequence[int],
        activation: Activation | str | None = "tanh",
        output_activation: Activation | str | None = None,
        weights_initializer: Initializer | None = None,
        biases_initializer: Initializer | None = None,
        sparse_input: bool = False,
    ) -> None:
        if len(layer_sizes) < 2:
            raise InvalidConfiguration("A network needs an input size and at least one layer")
        self.layer_sizes = list(layer_sizes)
        self.layers: List[LayerStructure] = []
        n_layers = len(layer_sizes) - 1
        for idx, (n_in, n_out) in enumerate(zip(layer_sizes[:-1], layer_sizes[1:])):
            params = LinearParams(
                n_in,
                n_out,
                sparse_input=sparse_input and idx == 0,
                weights_initializer=weights_initializer,
                biases_initializer=biases_initializer,
            )
            self.layers.append(
                LayerStructure(
                    LayerKind.LINEAR,
                    inputs=[AugmentedArray(n_in)],
                    output=AugmentedArray(n_out),
                    params=params,
                    activation=output_activation if idx == n_layers - 1 else activation,
                )
            )

    @property
    def input_size(self) -> int:
        return self.layer_sizes[0]

    @property
    def output_size(self) -> int:
        return self.layer_sizes[-1]

    def parameters(self) -> List[LinearParams]:
        return [layer.params for layer in self.layers]

    def forward(self, x: NDArray, track_contributions: bool = False) -> NDArray:
        """Return a copy of the network output for ``x``."""

        values = x
        for layer in self.layers:
            layer.set_inputs(values)
            values = layer.forward(track_contributions)
        return values.copy()

    def backward(self, output_errors: NDArray, propagate_to_input: bool = False) -> NDArray | None:
        """Accumulate the parameter gradients for ``output_errors``.

        Returns the errors of the network input when ``propagate_to_input``.
        """

        self.layers[-1].set_errors(output_errors)
        for idx in range(len(self.layers) - 1, -1, -1):
            layer = self.layers[idx]
            first = idx == 0
            layer.backward(propagate_to_input=propagate_to_input or not first)
            if not first:
                self.layers[idx - 1].set_errors(layer.input_array.errors)
        if propagate_to_input:
            return self.layers[0].input_array.errors.copy()
        return None

    def calculate_relevance(self, output_relevance: NDArray) -> NDArray:
        """Relevance of every network input for ``output_relevance``.

        Requires the last :meth:`forward` to track contributions.
        """

        self.layers[-1].set_output_relevance(output_relevance)
        for idx in range(len(self.layers) - 1, -1, -1):
            layer = self.layers[idx]
            layer.input_array.reset_relevance()
            layer.calculate_relevance()
            if idx > 0:
                self.layers[idx - 1].set_output_relevance(layer.input_array.relevance)
        return self.layers[0].input_array.relevance.copy()

    def __repr__(self) -> str:
        return f"FeedforwardNetwork(layer_sizes={self.layer_sizes})"


__all__ = ["FeedforwardNetwork"]
