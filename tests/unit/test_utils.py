import pytest

from simplenn.core.errors import IndexOutOfRange
from simplenn.core.ndarray import NDArray
from simplenn.utils.progress import NullProgress, ProgressBar
from simplenn.utils.sliding_window import SlidingWindowSequence


def _sequence():
    return SlidingWindowSequence(
        [NDArray([float(i)]) for i in range(5)], left_context_size=2, right_context_size=2
    )


def test_focus_starts_before_the_first_element():
    sequence = _sequence()
    assert sequence.focus_index == -1
    assert sequence.has_next()
    sequence.shift()
    assert sequence.focus_index == 0
    assert sequence.left_context() == [None, None]
    assert sequence.right_context() == [1, 2]
    assert sequence.context_to_string() == "[null, null] 0 [1, 2]"


def test_context_at_the_end():
    sequence = _sequence()
    sequence.set_focus(4)
    assert sequence.context() == [2, 3, 4, None, None]
    assert not sequence.has_next()
    with pytest.raises(IndexOutOfRange):
        sequence.shift()


def test_set_focus_bounds():
    sequence = _sequence()
    sequence.set_focus(-1)
    with pytest.raises(IndexOutOfRange):
        sequence.set_focus(5)
    with pytest.raises(IndexOutOfRange):
        sequence.set_focus(-2)


def test_context_features_pad_with_zeros():
    sequence = _sequence()
    sequence.set_focus(1)
    assert sequence.context_features().tolist() == [0.0, 0.0, 1.0, 2.0, 3.0]


def test_progress_indicators_count_ticks():
    silent = NullProgress()
    silent.tick()
    silent.tick(2)
    assert silent.count == 3

    bar = ProgressBar(total=4, description="test")
    bar.tick(4)
    bar.close()
    assert bar.count == 4
