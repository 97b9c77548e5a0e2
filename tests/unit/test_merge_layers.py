import pytest

from simplenn.core.arrays import AugmentedArray
from simplenn.core.errors import InvalidConfiguration, ShapeMismatch, UnsupportedOperation
from simplenn.core.ndarray import NDArray
from simplenn.core.types import LayerKind
from simplenn.layers.parameters import AffineParams
from simplenn.layers.structure import LayerStructure


def _merge(kind, sizes, output_size, params=None):
    return LayerStructure(
        kind,
        inputs=[AugmentedArray(size) for size in sizes],
        output=AugmentedArray(output_size),
        params=params,
    )


def test_dot_forward():
    layer = _merge(LayerKind.DOT, [2, 2], 1)
    layer.set_inputs(NDArray([1.0, 2.0]), NDArray([3.0, 4.0]))
    assert layer.forward().tolist() == [11.0]


def test_sum_forward():
    layer = _merge(LayerKind.SUM, [3, 3, 3, 3], 3)
    layer.set_inputs(
        NDArray([-0.9, 0.9, 0.6]),
        NDArray([0.0, 0.5, -0.5]),
        NDArray([-0.7, -0.7, 0.8]),
        NDArray([0.5, -0.4, -0.8]),
    )
    assert layer.forward().equals(NDArray([-1.1, 0.3, 0.1]), tolerance=1e-9)


def test_concat_forward_preserves_order():
    layer = _merge(LayerKind.CONCAT, [4, 2, 3], 9)
    layer.set_inputs(
        NDArray([-0.9, 0.9, 0.6, 0.1]),
        NDArray([0.0, 0.5]),
        NDArray([-0.7, -0.7, 0.8]),
    )
    expected = [-0.9, 0.9, 0.6, 0.1, 0.0, 0.5, -0.7, -0.7, 0.8]
    assert layer.forward().equals(NDArray(expected), tolerance=0.0)


def test_concat_backward_splits_errors():
    layer = _merge(LayerKind.CONCAT, [2, 1], 3)
    layer.set_inputs(NDArray([1.0, 2.0]), NDArray([3.0]))
    layer.forward()
    layer.set_errors(NDArray([0.1, 0.2, 0.3]))
    layer.backward()
    assert layer.inputs[0].errors.tolist() == [0.1, 0.2]
    assert layer.inputs[1].errors.tolist() == [0.3]


def test_product_forward_and_backward():
    layer = _merge(LayerKind.PRODUCT, [2, 2, 2], 2)
    layer.set_inputs(NDArray([1.0, 2.0]), NDArray([3.0, 4.0]), NDArray([0.5, 2.0]))
    assert layer.forward().tolist() == [1.5, 16.0]
    layer.set_errors(NDArray([1.0, 1.0]))
    layer.backward()
    assert layer.inputs[0].errors.tolist() == [1.5, 8.0]
    assert layer.inputs[1].errors.tolist() == [0.5, 4.0]
    assert layer.inputs[2].errors.tolist() == [3.0, 8.0]


def test_product_relevance_is_unsupported():
    layer = _merge(LayerKind.PRODUCT, [2, 2], 2)
    layer.set_inputs(NDArray([1.0, 2.0]), NDArray([3.0, 4.0]))
    layer.forward(track_contributions=True)
    layer.set_output_relevance(NDArray([1.0, 1.0]))
    with pytest.raises(UnsupportedOperation):
        layer.calculate_relevance()
    assert not layer.inputs[0].has_relevance


def test_dot_backward():
    layer = _merge(LayerKind.DOT, [2, 2], 1)
    layer.set_inputs(NDArray([1.0, 2.0]), NDArray([3.0, 4.0]))
    layer.forward()
    layer.set_errors(NDArray([2.0]))
    layer.backward()
    assert layer.inputs[0].errors.tolist() == [6.0, 8.0]
    assert layer.inputs[1].errors.tolist() == [2.0, 4.0]


def test_dot_relevance_split_between_factors():
    layer = _merge(LayerKind.DOT, [2, 2], 1)
    layer.set_inputs(NDArray([1.0, 2.0]), NDArray([3.0, 4.0]))
    layer.forward(track_contributions=True)
    layer.set_output_relevance(NDArray([1.0]))
    layer.calculate_relevance()
    first, second = (array.relevance for array in layer.inputs)
    assert first.equals(second, tolerance=0.0)
    assert first.equals(NDArray([3.005 / 22.02, 8.005 / 22.02]), tolerance=1e-9)
    assert first.total() + second.total() == pytest.approx(1.0)


def test_sum_and_concat_relevance_conserved():
    sum_layer = _merge(LayerKind.SUM, [2, 2], 2)
    sum_layer.set_inputs(NDArray([1.0, -2.0]), NDArray([0.5, 0.5]))
    sum_layer.forward(track_contributions=True)
    sum_layer.set_output_relevance(NDArray([0.4, 0.6]))
    sum_layer.calculate_relevance()
    total = sum(array.relevance.total() for array in sum_layer.inputs)
    assert total == pytest.approx(1.0)

    concat = _merge(LayerKind.CONCAT, [1, 2], 3)
    concat.set_inputs(NDArray([1.0]), NDArray([2.0, 3.0]))
    concat.forward(track_contributions=True)
    concat.set_output_relevance(NDArray([0.2, 0.3, 0.5]))
    concat.calculate_relevance()
    assert concat.inputs[1].relevance.tolist() == [0.3, 0.5]


def test_affine_forward_and_relevance():
    params = AffineParams(2, 1, 1)
    params.weights.values.assign_values(NDArray([[1.0, 2.0]]))
    params.weights2.values.assign_values(NDArray([[3.0]]))
    params.biases.values.assign_values(NDArray([0.5]))
    layer = _merge(LayerKind.AFFINE, [2, 1], 1, params=params)
    layer.set_inputs(NDArray([1.0, 1.0]), NDArray([2.0]))
    assert layer.forward(track_contributions=True).tolist() == [9.5]
    layer.set_output_relevance(NDArray([1.0]))
    layer.calculate_relevance()
    total = layer.inputs[0].relevance.total() + layer.inputs[1].relevance.total()
    assert total == pytest.approx(1.0)


def test_affine_backward():
    params = AffineParams(2, 1, 1)
    params.weights.values.assign_values(NDArray([[1.0, 2.0]]))
    params.weights2.values.assign_values(NDArray([[3.0]]))
    layer = _merge(LayerKind.AFFINE, [2, 1], 1, params=params)
    layer.set_inputs(NDArray([1.0, 1.0]), NDArray([2.0]))
    layer.forward()
    layer.set_errors(NDArray([1.0]))
    layer.backward()
    assert params.weights2.dense_errors().tolist() == [2.0]
    assert layer.inputs[0].errors.tolist() == [1.0, 2.0]
    assert layer.inputs[1].errors.tolist() == [3.0]


def test_merge_size_validation():
    with pytest.raises(ShapeMismatch):
        _merge(LayerKind.CONCAT, [2, 2], 3)
    with pytest.raises(ShapeMismatch):
        _merge(LayerKind.DOT, [2, 3], 1)
    with pytest.raises(InvalidConfiguration):
        _merge(LayerKind.SUM, [2], 2)
    with pytest.raises(InvalidConfiguration):
        _merge(LayerKind.AFFINE, [2, 1], 1)


def test_set_inputs_count_checked():
    layer = _merge(LayerKind.SUM, [2, 2], 2)
    with pytest.raises(InvalidConfiguration):
        layer.set_inputs(NDArray([1.0, 2.0]))
