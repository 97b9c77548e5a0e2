"""Backward passes agree with finite differences of the forward functions."""

import numpy as np
import pytest

from simplenn.core.arrays import AugmentedArray
from simplenn.core.initializers import RandomUniformInitializer
from simplenn.core.ndarray import NDArray
from simplenn.core.types import LayerKind
from simplenn.layers.parameters import AffineParams, GRUParams, LinearParams, LSTMParams, RecurrentParams
from simplenn.layers.sequence import LayerSequence
from simplenn.layers.structure import LayerStructure

STEP = 1e-6
TOLERANCE = 1e-4


def _objective(layer, values, weights):
    """Weighted sum of the outputs: its gradient w.r.t. the output is ``weights``."""

    layer.set_inputs(*[NDArray(v) for v in values])
    layer.forward()
    return float(np.sum(layer.output.values.data * weights))


def _check_layer(layer, sizes, seed=0):
    rng = np.random.default_rng(seed)
    values = [rng.uniform(-1.0, 1.0, size=(size, 1)) for size in sizes]
    weights = rng.uniform(-1.0, 1.0, size=layer.output.shape)

    _objective(layer, values, weights)
    layer.set_errors(NDArray(weights))
    layer.backward()
    analytic = [array.errors.to_numpy() for array in layer.inputs]

    for k, x in enumerate(values):
        for i in range(x.shape[0]):
            plus = [v.copy() for v in values]
            minus = [v.copy() for v in values]
            plus[k][i, 0] += STEP
            minus[k][i, 0] -= STEP
            numeric = (_objective(layer, plus, weights) - _objective(layer, minus, weights)) / (2 * STEP)
            assert analytic[k][i, 0] == pytest.approx(numeric, abs=TOLERANCE)
    return values, weights


def _merge(kind, sizes, output_size, params=None, activation=None):
    return LayerStructure(
        kind,
        inputs=[AugmentedArray(size) for size in sizes],
        output=AugmentedArray(output_size),
        params=params,
        activation=activation,
    )


@pytest.mark.parametrize(
    "kind, sizes, output_size",
    [
        (LayerKind.CONCAT, [3, 2], 5),
        (LayerKind.SUM, [3, 3, 3], 3),
        (LayerKind.PRODUCT, [4, 4, 4], 4),
        (LayerKind.DOT, [4, 4], 1),
    ],
)
def test_merge_input_gradients(kind, sizes, output_size):
    _check_layer(_merge(kind, sizes, output_size, activation="tanh"), sizes)


def test_linear_input_and_weight_gradients():
    params = LinearParams(3, 2, weights_initializer=RandomUniformInitializer(-1.0, 1.0, seed=1))
    layer = _merge(LayerKind.LINEAR, [3], 2, params=params, activation="sigmoid")
    values, weights = _check_layer(layer, [3])

    analytic = params.weights.dense_errors().to_numpy()
    w = params.weights.values.data
    for j in range(w.shape[0]):
        for i in range(w.shape[1]):
            original = w[j, i]
            w[j, i] = original + STEP
            plus = _objective(layer, values, weights)
            w[j, i] = original - STEP
            minus = _objective(layer, values, weights)
            w[j, i] = original
            assert analytic[j, i] == pytest.approx((plus - minus) / (2 * STEP), abs=TOLERANCE)


def test_affine_gradients():
    params = AffineParams(
        3, 2, 2, weights_initializer=RandomUniformInitializer(-1.0, 1.0, seed=2)
    )
    layer = _merge(LayerKind.AFFINE, [3, 2], 2, params=params, activation="tanh")
    values, weights = _check_layer(layer, [3, 2])

    analytic = params.weights2.dense_errors().to_numpy()
    w2 = params.weights2.values.data
    original = w2[1, 0]
    w2[1, 0] = original + STEP
    plus = _objective(layer, values, weights)
    w2[1, 0] = original - STEP
    minus = _objective(layer, values, weights)
    w2[1, 0] = original
    assert analytic[1, 0] == pytest.approx((plus - minus) / (2 * STEP), abs=TOLERANCE)


def _check_sequence(params, steps=3, seed=4):
    sequence = LayerSequence(params, activation="tanh")
    rng = np.random.default_rng(seed)
    xs = [rng.uniform(-1.0, 1.0, size=(params.input_size, 1)) for _ in range(steps)]
    weights = [rng.uniform(-1.0, 1.0, size=(params.output_size, 1)) for _ in range(steps)]

    def objective(values):
        outputs = sequence.forward([NDArray(x) for x in values])
        return sum(float(np.sum(o.data * w)) for o, w in zip(outputs, weights))

    objective(xs)
    input_errors = [e.to_numpy() for e in sequence.backward([NDArray(w) for w in weights])]
    param_errors = {array.name: array.dense_errors().to_numpy().copy() for array in params}

    # Errors of every step, including those carried back from the later steps.
    for t in range(steps):
        for i in range(params.input_size):
            plus = [x.copy() for x in xs]
            minus = [x.copy() for x in xs]
            plus[t][i, 0] += STEP
            minus[t][i, 0] -= STEP
            numeric = (objective(plus) - objective(minus)) / (2 * STEP)
            assert input_errors[t][i, 0] == pytest.approx(numeric, abs=TOLERANCE)

    for array in params:
        values = array.values.data
        for index in np.ndindex(values.shape):
            original = values[index]
            values[index] = original + STEP
            plus = objective(xs)
            values[index] = original - STEP
            minus = objective(xs)
            values[index] = original
            numeric = (plus - minus) / (2 * STEP)
            assert param_errors[array.name][index] == pytest.approx(numeric, abs=TOLERANCE), array.name


def test_recurrent_gradients_through_time():
    params = RecurrentParams(
        2,
        2,
        weights_initializer=RandomUniformInitializer(-0.5, 0.5, seed=3),
        biases_initializer=RandomUniformInitializer(-0.5, 0.5, seed=5),
    )
    _check_sequence(params)


def test_gru_gradients_through_time():
    params = GRUParams(
        2,
        2,
        weights_initializer=RandomUniformInitializer(-0.5, 0.5, seed=6),
        biases_initializer=RandomUniformInitializer(-0.5, 0.5, seed=7),
    )
    _check_sequence(params)


def test_lstm_gradients_through_time():
    params = LSTMParams(
        2,
        3,
        weights_initializer=RandomUniformInitializer(-0.5, 0.5, seed=8),
        biases_initializer=RandomUniformInitializer(-0.5, 0.5, seed=9),
    )
    _check_sequence(params, steps=4)
