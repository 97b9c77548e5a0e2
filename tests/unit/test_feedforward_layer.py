import pytest

from simplenn.core.arrays import AugmentedArray
from simplenn.core.errors import (
    InvalidConfiguration,
    ShapeMismatch,
    StaleState,
    UnsupportedOperation,
)
from simplenn.core.ndarray import NDArray
from simplenn.core.types import LayerKind, LayerPhase
from simplenn.layers.parameters import LinearParams
from simplenn.layers.structure import LayerStructure


def _layer(activation=None):
    params = LinearParams(2, 3)
    params.weights.values.assign_values(NDArray([[1.0, 0.0], [0.0, 1.0], [1.0, 1.0]]))
    params.biases.values.assign_values(NDArray([0.1, 0.2, 0.3]))
    return LayerStructure(
        LayerKind.LINEAR,
        inputs=[AugmentedArray(2)],
        output=AugmentedArray(3),
        params=params,
        activation=activation,
    )


def test_forward_writes_output():
    layer = _layer()
    layer.set_inputs(NDArray([1.0, 2.0]))
    output = layer.forward()
    assert output.equals(NDArray([1.1, 2.2, 3.3]), tolerance=1e-9)
    assert layer.phase == LayerPhase.FORWARD


def test_backward_accumulates_params_and_input_errors():
    layer = _layer()
    layer.set_inputs(NDArray([1.0, 2.0]))
    layer.forward()
    layer.set_errors(NDArray([1.0, 1.0, 1.0]))
    layer.backward()
    assert layer.params.biases.dense_errors().tolist() == [1.0, 1.0, 1.0]
    assert layer.params.weights.dense_errors().equals(
        NDArray([[1.0, 2.0], [1.0, 2.0], [1.0, 2.0]])
    )
    assert layer.input_array.errors.tolist() == [2.0, 2.0]

    # A second example adds to the parameter gradients.
    layer.set_inputs(NDArray([1.0, 0.0]))
    layer.forward()
    layer.set_errors(NDArray([1.0, 0.0, 0.0]))
    layer.backward(propagate_to_input=False)
    assert layer.params.biases.dense_errors().tolist() == [2.0, 1.0, 1.0]
    assert layer.input_array.errors.total() == 0.0


def test_backward_uses_activation_derivative():
    layer = _layer(activation="relu")
    layer.set_inputs(NDArray([-1.0, -1.0]))
    layer.forward()
    assert layer.output.values.tolist() == [0.0, 0.0, 0.0]
    layer.set_errors(NDArray([1.0, 1.0, 1.0]))
    layer.backward()
    assert layer.params.biases.dense_errors().total() == 0.0


def test_backward_before_forward_is_stale():
    layer = _layer()
    layer.set_inputs(NDArray([1.0, 2.0]))
    with pytest.raises(StaleState):
        layer.backward()


def test_backward_after_new_inputs_is_stale():
    layer = _layer()
    layer.set_inputs(NDArray([1.0, 2.0]))
    layer.forward()
    layer.input_array.assign_values(NDArray([0.0, 0.0]))
    with pytest.raises(StaleState):
        layer.backward()


def test_relevance_requires_tracked_contributions():
    layer = _layer()
    layer.set_inputs(NDArray([1.0, 2.0]))
    layer.forward()
    layer.set_output_relevance(NDArray([1.0, 0.0, 0.0]))
    with pytest.raises(StaleState):
        layer.calculate_relevance()


def test_relevance_is_conserved():
    layer = _layer(activation="tanh")
    layer.set_inputs(NDArray([0.5, -2.0]))
    layer.forward(track_contributions=True)
    layer.set_output_relevance(NDArray([0.2, 0.3, 0.5]))
    layer.calculate_relevance()
    assert layer.input_array.relevance.total() == pytest.approx(1.0)
    assert layer.phase == LayerPhase.RELEVANCE


def test_relevance_of_single_output():
    params = LinearParams(2, 1)
    params.weights.values.assign_values(NDArray([[1.0, 3.0]]))
    layer = LayerStructure(LayerKind.LINEAR, [AugmentedArray(2)], AugmentedArray(1), params)
    layer.set_inputs(NDArray([1.0, 1.0]))
    layer.forward(track_contributions=True)
    layer.set_output_relevance(NDArray([1.0]))
    layer.calculate_relevance()
    # (c_i + eps / 2) / (y + eps) with y = 4, eps = 0.01
    expected = NDArray([1.005 / 4.01, 3.005 / 4.01])
    assert layer.input_array.relevance.equals(expected, tolerance=1e-9)


def test_linear_layer_cannot_propagate_to_a_previous_state():
    layer = _layer()
    layer.set_inputs(NDArray([1.0, 2.0]))
    layer.forward()
    layer.set_errors(NDArray([1.0, 1.0, 1.0]))
    with pytest.raises(UnsupportedOperation):
        layer.backward(propagate_to_previous=True)


def test_construction_validates_sizes():
    with pytest.raises(ShapeMismatch):
        LayerStructure(LayerKind.LINEAR, [AugmentedArray(3)], AugmentedArray(3), LinearParams(2, 3))
    with pytest.raises(InvalidConfiguration):
        LayerStructure(LayerKind.LINEAR, [AugmentedArray(2)], AugmentedArray(3), None)
    with pytest.raises(InvalidConfiguration):
        LayerStructure("conv", [AugmentedArray(2)], AugmentedArray(3), LinearParams(2, 3))


def test_reset_clears_errors_and_phase():
    layer = _layer()
    layer.set_inputs(NDArray([1.0, 2.0]))
    layer.forward()
    layer.set_errors(NDArray([1.0, 1.0, 1.0]))
    layer.backward()
    layer.reset()
    assert layer.phase == LayerPhase.CREATED
    assert layer.input_array.errors.total() == 0.0
    assert layer.output.errors.total() == 0.0


def test_sparse_input_gradients():
    params = LinearParams(4, 2, sparse_input=True)
    layer = LayerStructure(LayerKind.LINEAR, [AugmentedArray(4)], AugmentedArray(2), params)
    layer.set_inputs(NDArray([0.0, 1.0, 0.0, 1.0]))
    layer.forward()
    layer.set_errors(NDArray([1.0, -1.0]))
    layer.backward(propagate_to_input=False)
    assert params.weights.errors.active_columns == [1, 3]


def test_sparse_input_relevance_goes_to_active_inputs_only():
    params = LinearParams(3, 1, sparse_input=True)
    params.weights.values.assign_values(NDArray([[1.0, 2.0, 3.0]]))
    params.biases.values.assign_values(NDArray([1.0]))
    layer = LayerStructure(LayerKind.LINEAR, [AugmentedArray(3)], AugmentedArray(1), params)
    layer.set_inputs(NDArray([0.0, 1.0, 0.0]))
    layer.forward(track_contributions=True)
    layer.set_output_relevance(NDArray([1.0]))
    layer.calculate_relevance()
    relevance = layer.input_array.relevance
    assert relevance[0] == 0.0
    assert relevance[2] == 0.0
    # The single active input takes the bias and eps: (2 + 1 + eps) / (3 + eps)
    assert relevance[1] == pytest.approx(1.0)


class _FixedContext:
    def __init__(self, previous):
        self.previous = previous

    def previous_state(self):
        return self.previous


def test_linear_layer_ignores_previous_state_of_its_context():
    previous = _layer()
    params = previous.params
    layer = LayerStructure(
        LayerKind.LINEAR,
        inputs=[AugmentedArray(2)],
        output=AugmentedArray(3),
        params=params,
        context=_FixedContext(previous),
    )
    layer.set_inputs(NDArray([1.0, 2.0]))
    layer.forward(track_contributions=True)
    layer.set_errors(NDArray([1.0, 1.0, 1.0]))
    layer.backward()
    assert not previous.output.has_errors
    assert layer.inputs[0].errors.tolist() == [2.0, 2.0]

    with pytest.raises(UnsupportedOperation):
        layer.backward(propagate_to_previous=True)
    layer.set_output_relevance(NDArray([1.0, 0.0, 0.0]))
    with pytest.raises(UnsupportedOperation):
        layer.calculate_relevance(propagate_to_previous=True)
