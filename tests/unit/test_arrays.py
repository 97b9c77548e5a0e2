import pytest

from simplenn.core.activations import get_activation
from simplenn.core.arrays import AugmentedArray, ParamsArray
from simplenn.core.errors import ShapeMismatch
from simplenn.core.ndarray import NDArray


def test_errors_are_lazy_and_accumulate():
    array = AugmentedArray(2)
    assert not array.has_errors
    array.accumulate_errors(NDArray([1.0, 2.0]))
    array.accumulate_errors(NDArray([0.5, 0.5]))
    assert array.errors.tolist() == [1.5, 2.5]
    array.reset_errors()
    assert array.has_errors
    assert array.errors.tolist() == [0.0, 0.0]


def test_assign_values_is_shape_checked_and_bumps_version():
    array = AugmentedArray(2)
    array.accumulate_errors(NDArray([1.0, 1.0]))
    version = array.version
    array.assign_values(NDArray([3.0, 4.0]))
    assert array.version == version + 1
    assert array.errors.total() == 0.0
    with pytest.raises(ShapeMismatch):
        array.assign_values(NDArray([1.0, 2.0, 3.0]))


def test_relevance_is_independent_of_errors():
    array = AugmentedArray(2)
    array.accumulate_relevance(NDArray([0.25, 0.75]))
    array.accumulate_errors(NDArray([1.0, 1.0]))
    array.reset_errors()
    assert array.relevance.tolist() == [0.25, 0.75]
    array.reset_relevance()
    assert array.relevance.total() == 0.0


def test_activation_keeps_pre_activation_values():
    array = AugmentedArray(2)
    array.set_activation(get_activation("relu"))
    array.values.data[...] = NDArray([-1.0, 2.0]).data
    array.activate()
    assert array.values.tolist() == [0.0, 2.0]
    assert array.values_not_activated.tolist() == [-1.0, 2.0]
    assert array.activation_backward(NDArray([5.0, 5.0])).tolist() == [0.0, 5.0]


def test_values_do_not_alias_input():
    source = NDArray([1.0, 2.0])
    array = AugmentedArray.from_values(source)
    source[0] = 9.0
    assert array.values[0] == 1.0


def test_dense_params_errors_accumulate_and_reset():
    params = ParamsArray(NDArray.zeros((2, 2)))
    assert not params.has_errors
    params.accumulate_outer(NDArray([1.0, 2.0]), NDArray([3.0, 4.0]))
    assert params.dense_errors().equals(NDArray([[3.0, 4.0], [6.0, 8.0]]))
    params.scale_errors(0.5)
    assert params.dense_errors().equals(NDArray([[1.5, 2.0], [3.0, 4.0]]))
    params.reset_errors()
    assert not params.has_errors


def test_sparse_params_errors_touch_active_columns_only():
    params = ParamsArray(NDArray.zeros((2, 3)), sparse=True)
    params.accumulate_outer(NDArray([1.0, 2.0]), NDArray([0.0, 1.0, 0.0]))
    params.accumulate_outer(NDArray([1.0, 1.0]), NDArray([0.0, 1.0, 0.0]))
    assert params.errors.active_columns == [1]
    assert params.dense_errors().equals(NDArray([[0.0, 2.0, 0.0], [0.0, 3.0, 0.0]]))
    params.reset_errors()
    assert not params.has_errors


def test_params_accumulate_shape_checked():
    params = ParamsArray(NDArray.zeros((2, 2)))
    with pytest.raises(ShapeMismatch):
        params.accumulate_errors(NDArray.zeros((2, 1)))
