"""Gated recurrent layer helpers: GRU and LSTM.

The layer activation is applied to the candidate (and, for the LSTM, to the
cell); the gates always use the sigmoid. The output array itself is never
activated. Backward pushes the errors of a step into the output of the
previous step (and into its cell, for the LSTM), so the steps must be
back-propagated from the last to the first.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional

import numpy as np

from ..core.activations import Activation, sigmoid
from ..core.ndarray import NDArray
from ..core.types import Array, LayerKind
from .helpers import BaseBackward, BaseForward, Contributions, register_helpers
from .parameters import GatedRecurrentParams, GRUParams, LSTMParams, RecurrentUnitParams


def _activate(activation: Activation | None, z: Array) -> Array:
    return z.copy() if activation is None else activation.f(z)


def _activation_backward(activation: Activation | None, values: Array, z: Array, errors: Array) -> Array:
    return errors if activation is None else activation.backward(values, z, errors)


def _sigmoid_deriv(values: Array) -> Array:
    return values * (1.0 - values)


def _unit_input(unit: RecurrentUnitParams, x: Array, y_prev: Optional[Array]) -> Array:
    z = unit.weights.values.data @ x + unit.biases.values.data
    if y_prev is not None:
        z = z + unit.recurrent_weights.values.data @ y_prev
    return z


def _accumulate_unit(unit: RecurrentUnitParams, g: Array, x: NDArray, y_prev: Optional[NDArray]) -> None:
    gy = NDArray(g)
    unit.biases.accumulate_errors(gy)
    unit.weights.accumulate_outer(gy, x)
    if y_prev is not None:
        unit.recurrent_weights.accumulate_outer(gy, y_prev)


@dataclass
class GateState:
    """Values of one step kept from forward for backward."""

    values: Dict[str, Array] = field(default_factory=dict)
    not_activated: Dict[str, Array] = field(default_factory=dict)
    errors: Dict[str, Array] = field(default_factory=dict)
    # Errors on the (not activated) cell pushed back by the next step.
    cell_errors: Array | None = None


@dataclass
class GatedForward(BaseForward):
    activates_output = False
    params_type = GatedRecurrentParams
    state: GateState = field(default_factory=GateState, init=False, repr=False)

    @classmethod
    def validate(cls, layer) -> None:
        cls.require_inputs(layer, count=1)
        cls.require_params(layer, cls.params_type)
        cls.require_size("input size", layer.inputs[0].size, layer.params.input_size)
        cls.require_size("output size", layer.output.size, layer.params.output_size)

    def previous_output(self) -> Optional[Array]:
        previous = self.layer.previous_state
        return None if previous is None else previous.output.values.data

    def write_output(self, y: Array) -> None:
        self.layer.output.values.data[...] = y

    def forward(self, track_contributions: bool = False) -> Optional[Contributions]:
        self.state = GateState()
        self.write_output(self.compute())
        return {} if track_contributions else None

    def compute(self) -> Array:  # pragma: no cover - abstract
        raise NotImplementedError


@dataclass
class GatedBackward(BaseBackward):
    @property
    def state(self) -> GateState:
        return self.layer.forward_helper.state

    def previous_output(self) -> Optional[NDArray]:
        previous = self.layer.previous_state
        return None if previous is None else previous.output.values

    def backward(self, propagate_to_input: bool = True) -> None:
        gy = self.layer.output.errors.data
        self.assign_gate_errors(gy)
        params = self.layer.params
        x = self.layer.inputs[0].values
        y_prev = self.previous_output()
        for gate, unit in params.units.items():
            self.accumulate_gate(gate, unit, x, y_prev)
        if propagate_to_input:
            gx = sum(
                unit.weights.values.data.T @ self.state.errors[gate]
                for gate, unit in params.units.items()
            )
            self.layer.inputs[0].accumulate_errors(NDArray(gx))

    def accumulate_gate(
        self, gate: str, unit: RecurrentUnitParams, x: NDArray, y_prev: Optional[NDArray]
    ) -> None:
        _accumulate_unit(unit, self.state.errors[gate], x, y_prev)

    def recurrent_errors(self) -> Array:
        """``sum_g Wrec_g^T . g_g``: errors on the previous output through the gates."""

        return sum(
            unit.recurrent_weights.values.data.T @ self.state.errors[gate]
            for gate, unit in self.layer.params.units.items()
        )

    def assign_gate_errors(self, gy: Array) -> None:  # pragma: no cover - abstract
        raise NotImplementedError


# ----------------------------------------------------------------------
# GRU: y = p * c + (1 - p) * y_prev


@dataclass
class GRUForward(GatedForward):
    params_type = GRUParams

    def compute(self) -> Array:
        params = self.layer.params
        x = self.layer.inputs[0].values.data
        y_prev = self.previous_output()
        state = self.state

        r = sigmoid(_unit_input(params.reset_gate, x, y_prev))
        p = sigmoid(_unit_input(params.partition_gate, x, y_prev))
        z_c = _unit_input(params.candidate, x, None)
        if y_prev is not None:
            z_c = z_c + params.candidate.recurrent_weights.values.data @ (r * y_prev)
        c = _activate(self.layer.activation, z_c)

        state.values.update(reset_gate=r, partition_gate=p, candidate=c)
        state.not_activated["candidate"] = z_c
        if y_prev is None:
            return p * c
        return p * c + (1.0 - p) * y_prev


@dataclass
class GRUBackward(GatedBackward):
    def assign_gate_errors(self, gy: Array) -> None:
        state = self.state
        r = state.values["reset_gate"]
        p = state.values["partition_gate"]
        c = state.values["candidate"]
        y_prev = self.previous_output()

        gc = _activation_backward(
            self.layer.activation, c, state.not_activated["candidate"], p * gy
        )
        if y_prev is None:
            gr = np.zeros_like(r)
            gp = c * gy * _sigmoid_deriv(p)
        else:
            wcr = self.layer.params.candidate.recurrent_weights.values.data
            gr = (wcr.T @ gc) * y_prev.data * _sigmoid_deriv(r)
            gp = (c - y_prev.data) * gy * _sigmoid_deriv(p)
        state.errors.update(reset_gate=gr, partition_gate=gp, candidate=gc)

    def accumulate_gate(
        self, gate: str, unit: RecurrentUnitParams, x: NDArray, y_prev: Optional[NDArray]
    ) -> None:
        if gate != "candidate" or y_prev is None:
            _accumulate_unit(unit, self.state.errors[gate], x, y_prev)
            return
        # The candidate reads the previous output through the reset gate.
        r = self.state.values["reset_gate"]
        _accumulate_unit(unit, self.state.errors[gate], x, NDArray(r * y_prev.data))

    def propagate_to_previous(self) -> None:
        state = self.state
        params = self.layer.params
        gy = self.layer.output.errors.data
        r = state.values["reset_gate"]
        p = state.values["partition_gate"]
        wcr = params.candidate.recurrent_weights.values.data
        g_prev = (
            params.reset_gate.recurrent_weights.values.data.T @ state.errors["reset_gate"]
            + params.partition_gate.recurrent_weights.values.data.T @ state.errors["partition_gate"]
            + r * (wcr.T @ state.errors["candidate"])
            + (1.0 - p) * gy
        )
        self.layer.previous_state.output.accumulate_errors(NDArray(g_prev))


# ----------------------------------------------------------------------
# LSTM: cell = i * cand + f * cell_prev, y = o * f(cell)


@dataclass
class LSTMForward(GatedForward):
    params_type = LSTMParams

    def previous_cell(self) -> Optional[Array]:
        previous = self.layer.previous_state
        if previous is None:
            return None
        return previous.forward_helper.state.not_activated["cell"]

    def compute(self) -> Array:
        params = self.layer.params
        activation = self.layer.activation
        x = self.layer.inputs[0].values.data
        y_prev = self.previous_output()
        state = self.state

        for gate in ("input_gate", "output_gate", "forget_gate"):
            state.values[gate] = sigmoid(_unit_input(params.units[gate], x, y_prev))
        z_cand = _unit_input(params.candidate, x, y_prev)
        state.not_activated["candidate"] = z_cand
        state.values["candidate"] = _activate(activation, z_cand)

        cell = state.values["input_gate"] * state.values["candidate"]
        cell_prev = self.previous_cell()
        if cell_prev is not None:
            cell = cell + state.values["forget_gate"] * cell_prev
        state.not_activated["cell"] = cell
        state.values["cell"] = _activate(activation, cell)
        return state.values["output_gate"] * state.values["cell"]


@dataclass
class LSTMBackward(GatedBackward):
    def assign_gate_errors(self, gy: Array) -> None:
        state = self.state
        activation = self.layer.activation
        i = state.values["input_gate"]
        o = state.values["output_gate"]
        f = state.values["forget_gate"]
        cand = state.values["candidate"]
        cell = state.values["cell"]

        g_cell = _activation_backward(activation, cell, state.not_activated["cell"], o * gy)
        if state.cell_errors is not None:
            g_cell = g_cell + state.cell_errors
        state.errors["cell"] = g_cell

        cell_prev = self.layer.forward_helper.previous_cell()
        gf = np.zeros_like(f) if cell_prev is None else g_cell * cell_prev * _sigmoid_deriv(f)
        state.errors.update(
            input_gate=g_cell * cand * _sigmoid_deriv(i),
            output_gate=cell * gy * _sigmoid_deriv(o),
            forget_gate=gf,
            candidate=_activation_backward(
                activation, cand, state.not_activated["candidate"], g_cell * i
            ),
        )

    def propagate_to_previous(self) -> None:
        state = self.state
        previous = self.layer.previous_state
        previous.output.accumulate_errors(NDArray(self.recurrent_errors()))
        carried = state.errors["cell"] * state.values["forget_gate"]
        previous_state = previous.forward_helper.state
        if previous_state.cell_errors is None:
            previous_state.cell_errors = carried
        else:
            previous_state.cell_errors = previous_state.cell_errors + carried


register_helpers(LayerKind.GRU, GRUForward, GRUBackward)
register_helpers(LayerKind.LSTM, LSTMForward, LSTMBackward)

__all__ = [
    "GateState",
    "GRUForward",
    "GRUBackward",
    "LSTMForward",
    "LSTMBackward",
]
