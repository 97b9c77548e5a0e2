"""Value/gradient/relevance bundles attached to layer slots and parameters."""

from __future__ import annotations

import threading
from typing import Dict, List, Union

import numpy as np

from .activations import Activation
from .errors import ShapeMismatch
from .ndarray import NDArray, _as_shape
from .types import Array, Shape


class AugmentedArray:
    """Live input/output cell of a layer.

    Holds the ``values`` of the slot, a lazily allocated ``errors`` buffer of
    the same shape, an optional ``relevance`` buffer and, when an activation
    is set, the values before activation. Assigning new values zeroes the
    errors and bumps :attr:`version`, which layers use to detect stale
    backward calls.
    """

    def __init__(self, size: Union[int, Shape]) -> None:
        self._values = NDArray.zeros(_as_shape(size))
        self._values_not_activated: NDArray | None = None
        self._errors: NDArray | None = None
        self._relevance: NDArray | None = None
        self.activation: Activation | None = None
        self.version = 0

    @classmethod
    def from_values(cls, values: NDArray) -> "AugmentedArray":
        array = cls(values.shape)
        array.assign_values(values)
        return array

    @property
    def shape(self) -> Shape:
        return self._values.shape

    @property
    def size(self) -> int:
        return self._values.length

    @property
    def values(self) -> NDArray:
        return self._values

    @property
    def values_not_activated(self) -> NDArray:
        return self._values_not_activated if self._values_not_activated is not None else self._values

    def _check(self, array: NDArray, operation: str) -> None:
        if array.shape != self.shape:
            raise ShapeMismatch(operation, self.shape, array.shape)

    def assign_values(self, values: NDArray) -> None:
        self._check(values, "assign_values")
        self._values.assign_values(values)
        self._values_not_activated = None
        if self._errors is not None:
            self._errors.assign_zeros()
        self.version += 1

    # ------------------------------------------------------------------
    # Activation

    @property
    def has_activation(self) -> bool:
        return self.activation is not None

    def set_activation(self, activation: Activation | None) -> None:
        self.activation = activation

    def activate(self) -> None:
        """Apply the activation in place, keeping the pre-activation values."""

        if self.activation is None:
            return
        if self._values_not_activated is None:
            self._values_not_activated = self._values.copy()
        else:
            self._values_not_activated.assign_values(self._values)
        self._values.data[...] = self.activation.f(self._values_not_activated.data)

    def activation_backward(self, errors: NDArray) -> NDArray:
        """Return ``errors`` mapped through the derivative of the activation."""

        self._check(errors, "activation_backward")
        if self.activation is None:
            return errors.copy()
        return NDArray(
            self.activation.backward(
                self._values.data, self.values_not_activated.data, errors.data
            )
        )

    # ------------------------------------------------------------------
    # Errors

    @property
    def has_errors(self) -> bool:
        return self._errors is not None

    @property
    def errors(self) -> NDArray:
        if self._errors is None:
            self._errors = NDArray.zeros(self.shape)
        return self._errors

    def assign_errors(self, errors: NDArray) -> None:
        self._check(errors, "assign_errors")
        self.errors.assign_values(errors)

    def accumulate_errors(self, errors: NDArray) -> None:
        self._check(errors, "accumulate_errors")
        self.errors.assign_sum(errors)

    def reset_errors(self) -> None:
        if self._errors is not None:
            self._errors.assign_zeros()

    # ------------------------------------------------------------------
    # Relevance

    @property
    def has_relevance(self) -> bool:
        return self._relevance is not None

    @property
    def relevance(self) -> NDArray:
        if self._relevance is None:
            self._relevance = NDArray.zeros(self.shape)
        return self._relevance

    def assign_relevance(self, relevance: NDArray) -> None:
        self._check(relevance, "assign_relevance")
        self.relevance.assign_values(relevance)

    def accumulate_relevance(self, relevance: NDArray) -> None:
        self._check(relevance, "accumulate_relevance")
        self.relevance.assign_sum(relevance)

    def reset_relevance(self) -> None:
        if self._relevance is not None:
            self._relevance.assign_zeros()

    def clone(self) -> "AugmentedArray":
        cloned = AugmentedArray(self.shape)
        cloned._values.assign_values(self._values)
        if self._values_not_activated is not None:
            cloned._values_not_activated = self._values_not_activated.copy()
        cloned.activation = self.activation
        if self._errors is not None:
            cloned._errors = self._errors.copy()
        if self._relevance is not None:
            cloned._relevance = self._relevance.copy()
        return cloned


class SparseErrors:
    """Column-sparse gradient buffer for weights fed by sparse inputs.

    Only the columns matching active input indices are stored.
    """

    def __init__(self, shape: Shape) -> None:
        self.shape = shape
        self.columns: Dict[int, Array] = {}

    def __len__(self) -> int:
        return len(self.columns)

    @property
    def active_columns(self) -> List[int]:
        return sorted(self.columns)

    def accumulate_outer(self, gy: Array, x: Array) -> None:
        """Accumulate ``gy . x^T`` restricted to the non-zero entries of ``x``."""

        for index in np.flatnonzero(x[:, 0]):
            column = gy[:, 0] * x[index, 0]
            if index in self.columns:
                self.columns[index] += column
            else:
                self.columns[index] = column.copy()

    def accumulate_dense(self, errors: Array) -> None:
        for index in np.flatnonzero(np.any(errors != 0.0, axis=0)):
            if index in self.columns:
                self.columns[index] += errors[:, index]
            else:
                self.columns[index] = errors[:, index].copy()

    def accumulate(self, other: "SparseErrors") -> None:
        for index, column in other.columns.items():
            if index in self.columns:
                self.columns[index] += column
            else:
                self.columns[index] = column.copy()

    def scale(self, factor: float) -> None:
        for column in self.columns.values():
            column *= factor

    def to_dense(self) -> NDArray:
        dense = NDArray.zeros(self.shape)
        for index, column in self.columns.items():
            dense.data[:, index] = column
        return dense

    def clear(self) -> None:
        self.columns.clear()


class ParamsArray:
    """A parameter tensor with its own gradient accumulator.

    Gradients are accumulated additively (under a lock, so the same
    parameters may be shared by several layer instances) and cleared with
    :meth:`reset_errors` after each update. ``support`` stores per-array
    state of the update method (moments, caches).
    """

    def __init__(self, values: NDArray, sparse: bool = False, name: str = "") -> None:
        self.values = values
        self.sparse = sparse
        self.name = name
        self.support: Dict[str, object] = {}
        self._errors: NDArray | SparseErrors | None = None
        self._accumulated = False
        self._lock = threading.Lock()

    @property
    def shape(self) -> Shape:
        return self.values.shape

    @property
    def errors(self) -> NDArray | SparseErrors | None:
        return self._errors

    @property
    def has_errors(self) -> bool:
        if isinstance(self._errors, SparseErrors):
            return len(self._errors) > 0
        return self._accumulated

    def accumulate_errors(self, errors: NDArray) -> None:
        if errors.shape != self.shape:
            raise ShapeMismatch("accumulate_errors", self.shape, errors.shape)
        with self._lock:
            if self.sparse:
                if not isinstance(self._errors, SparseErrors):
                    self._errors = SparseErrors(self.shape)
                self._errors.accumulate_dense(errors.data)
            elif self._errors is None:
                self._errors = errors.copy()
            else:
                self._errors.assign_sum(errors)
            self._accumulated = True

    def accumulate_outer(self, gy: NDArray, x: NDArray) -> None:
        """Accumulate the weight gradient ``gy . x^T`` (sparse-aware)."""

        if gy.rows != self.shape[0] or x.rows != self.shape[1]:
            raise ShapeMismatch("accumulate_outer", self.shape, (gy.rows, x.rows))
        with self._lock:
            if self.sparse:
                if not isinstance(self._errors, SparseErrors):
                    self._errors = SparseErrors(self.shape)
                self._errors.accumulate_outer(gy.data, x.data)
            elif self._errors is None:
                self._errors = gy.dot(x.t)
            else:
                self._errors.data[...] += gy.data @ x.data.T
            self._accumulated = True

    def dense_errors(self) -> NDArray:
        if self._errors is None:
            return NDArray.zeros(self.shape)
        if isinstance(self._errors, SparseErrors):
            return self._errors.to_dense()
        return self._errors

    def scale_errors(self, factor: float) -> None:
        with self._lock:
            if isinstance(self._errors, SparseErrors):
                self._errors.scale(factor)
            elif self._errors is not None:
                self._errors.assign_prod(factor)

    def reset_errors(self) -> None:
        with self._lock:
            if isinstance(self._errors, SparseErrors):
                self._errors.clear()
            elif self._errors is not None:
                self._errors.assign_zeros()
            self._accumulated = False

    def __repr__(self) -> str:
        return f"ParamsArray(name={self.name!r}, shape={self.shape}, sparse={self.sparse})"


__all__ = ["AugmentedArray", "ParamsArray", "SparseErrors"]
