"""Dense, shape-checked numeric arrays."""

from __future__ import annotations

from typing import Iterator, List, Sequence, Union

import numpy as np

from .errors import IndexOutOfRange, InvalidConfiguration, InvalidPartition, ShapeMismatch
from .types import Array, Shape

DEFAULT_TOLERANCE = 1e-3

Operand = Union["NDArray", float, int]


def equals(a: float, b: float, tolerance: float = DEFAULT_TOLERANCE) -> bool:
    """Return ``True`` when ``a`` lies in ``[b - tolerance, b + tolerance]``."""

    return b - tolerance <= a <= b + tolerance


def _as_shape(shape: Union[int, Sequence[int]]) -> Shape:
    if isinstance(shape, (int, np.integer)):
        shape = (int(shape), 1)
    elif len(shape) == 1:
        shape = (int(shape[0]), 1)
    if len(shape) != 2:
        raise InvalidConfiguration(f"Only 2-D shapes are supported, got {tuple(shape)}")
    rows, columns = int(shape[0]), int(shape[1])
    if rows <= 0 or columns <= 0:
        raise InvalidConfiguration(f"Array dimensions must be positive, got {(rows, columns)}")
    return rows, columns


class NDArray:
    """Mutable dense matrix of doubles with a shape fixed at construction.

    Vectors are column vectors with shape ``(n, 1)``. Binary operations
    require operands of identical shape (scalars are the only broadcast
    operand) and raise :class:`ShapeMismatch` otherwise. The constructor
    copies its input so two arrays never alias the same buffer.
    """

    __slots__ = ("_data",)

    def __init__(self, values: Union[Array, Sequence]) -> None:
        data = np.array(values, dtype=np.float64, copy=True)
        if data.ndim == 0:
            data = data.reshape(1, 1)
        elif data.ndim == 1:
            data = data.reshape(-1, 1)
        if data.ndim != 2 or data.size == 0:
            raise InvalidConfiguration(f"Cannot build a 2-D array from shape {data.shape}")
        self._data = data

    # ------------------------------------------------------------------
    # Factories

    @classmethod
    def _wrap(cls, data: Array) -> "NDArray":
        array = cls.__new__(cls)
        array._data = data
        return array

    @classmethod
    def zeros(cls, shape: Union[int, Sequence[int]]) -> "NDArray":
        return cls._wrap(np.zeros(_as_shape(shape), dtype=np.float64))

    @classmethod
    def ones(cls, shape: Union[int, Sequence[int]]) -> "NDArray":
        return cls._wrap(np.ones(_as_shape(shape), dtype=np.float64))

    @classmethod
    def array_of(cls, values: Sequence) -> "NDArray":
        """Build a column vector from a flat sequence or a matrix from rows."""

        return cls(values)

    @classmethod
    def random(
        cls,
        shape: Union[int, Sequence[int]],
        low: float = -1.0,
        high: float = 1.0,
        rng: np.random.Generator | None = None,
    ) -> "NDArray":
        rng = rng or np.random.default_rng()
        return cls._wrap(rng.uniform(low, high, size=_as_shape(shape)))

    @classmethod
    def one_hot(cls, size: int, index: int) -> "NDArray":
        array = cls.zeros(size)
        array[index] = 1.0
        return array

    @classmethod
    def concat_v(cls, arrays: Sequence["NDArray"]) -> "NDArray":
        """Concatenate ``arrays`` vertically, preserving their order."""

        if not arrays:
            raise InvalidPartition("Cannot concatenate an empty list of arrays")
        columns = arrays[0].columns
        for array in arrays[1:]:
            if array.columns != columns:
                raise ShapeMismatch("concat_v", arrays[0].shape, array.shape)
        return cls._wrap(np.vstack([array._data for array in arrays]))

    # ------------------------------------------------------------------
    # Shape

    @property
    def shape(self) -> Shape:
        return self._data.shape  # type: ignore[return-value]

    @property
    def rows(self) -> int:
        return self._data.shape[0]

    @property
    def columns(self) -> int:
        return self._data.shape[1]

    @property
    def length(self) -> int:
        return int(self._data.size)

    @property
    def is_vector(self) -> bool:
        return self.columns == 1 or self.rows == 1

    @property
    def data(self) -> Array:
        """The live backing buffer. Write through it, never reshape it."""

        return self._data

    def __len__(self) -> int:
        return self.length

    def __iter__(self) -> Iterator[float]:
        return iter(float(v) for v in self._data.ravel())

    # ------------------------------------------------------------------
    # Element access

    def _locate(self, key) -> tuple:
        if isinstance(key, tuple):
            if len(key) != 2:
                raise IndexOutOfRange(f"Expected (row, column), got {key!r}")
            i, j = int(key[0]), int(key[1])
            if not (0 <= i < self.rows and 0 <= j < self.columns):
                raise IndexOutOfRange(f"Index {(i, j)} out of range for shape {self.shape}")
            return i, j
        index = int(key)
        if not 0 <= index < self.length:
            raise IndexOutOfRange(f"Index {index} out of range for length {self.length}")
        return divmod(index, self.columns)

    def __getitem__(self, key) -> float:
        return float(self._data[self._locate(key)])

    def __setitem__(self, key, value: float) -> None:
        self._data[self._locate(key)] = value

    # ------------------------------------------------------------------
    # Arithmetic

    def _operand(self, other: Operand, operation: str):
        if isinstance(other, NDArray):
            if other.shape != self.shape:
                raise ShapeMismatch(operation, self.shape, other.shape)
            return other._data
        return float(other)

    def sum(self, other: Operand) -> "NDArray":
        return NDArray._wrap(self._data + self._operand(other, "sum"))

    def sub(self, other: Operand) -> "NDArray":
        return NDArray._wrap(self._data - self._operand(other, "sub"))

    def prod(self, other: Operand) -> "NDArray":
        return NDArray._wrap(self._data * self._operand(other, "prod"))

    def div(self, other: Operand) -> "NDArray":
        return NDArray._wrap(self._data / self._operand(other, "div"))

    def assign_sum(self, other: Operand) -> "NDArray":
        self._data += self._operand(other, "assign_sum")
        return self

    def assign_sub(self, other: Operand) -> "NDArray":
        self._data -= self._operand(other, "assign_sub")
        return self

    def assign_prod(self, other: Operand) -> "NDArray":
        self._data *= self._operand(other, "assign_prod")
        return self

    def assign_div(self, other: Operand) -> "NDArray":
        self._data /= self._operand(other, "assign_div")
        return self

    def assign_values(self, other: Operand) -> "NDArray":
        self._data[...] = self._operand(other, "assign_values")
        return self

    def assign_zeros(self) -> "NDArray":
        self._data.fill(0.0)
        return self

    def dot(self, other: "NDArray") -> "NDArray":
        """Matrix product; ``self.columns`` must equal ``other.rows``."""

        if self.columns != other.rows:
            raise ShapeMismatch("dot", self.shape, other.shape)
        return NDArray._wrap(self._data @ other._data)

    def assign_dot(self, a: "NDArray", b: "NDArray") -> "NDArray":
        result = a.dot(b)
        if result.shape != self.shape:
            raise ShapeMismatch("assign_dot", self.shape, result.shape)
        self._data[...] = result._data
        return self

    __add__ = sum
    __sub__ = sub
    __mul__ = prod
    __truediv__ = div
    __matmul__ = dot

    def __radd__(self, other: float) -> "NDArray":
        return self.sum(other)

    def __rmul__(self, other: float) -> "NDArray":
        return self.prod(other)

    def __rsub__(self, other: float) -> "NDArray":
        return NDArray._wrap(float(other) - self._data)

    def __neg__(self) -> "NDArray":
        return NDArray._wrap(-self._data)

    def __iadd__(self, other: Operand) -> "NDArray":
        return self.assign_sum(other)

    def __isub__(self, other: Operand) -> "NDArray":
        return self.assign_sub(other)

    def __imul__(self, other: Operand) -> "NDArray":
        return self.assign_prod(other)

    def __itruediv__(self, other: Operand) -> "NDArray":
        return self.assign_div(other)

    # ------------------------------------------------------------------
    # Structural

    @property
    def t(self) -> "NDArray":
        """Transposed copy."""

        return NDArray._wrap(self._data.T.copy())

    def copy(self) -> "NDArray":
        return NDArray._wrap(self._data.copy())

    def split_v(self, *sizes: int) -> List["NDArray"]:
        """Split along rows into consecutive blocks of ``sizes`` rows."""

        if len(sizes) == 1 and isinstance(sizes[0], (list, tuple)):
            sizes = tuple(sizes[0])
        if not sizes or any(size <= 0 for size in sizes) or sum(sizes) != self.rows:
            raise InvalidPartition(f"Sizes {list(sizes)} do not partition {self.rows} rows")
        bounds = np.cumsum((0,) + tuple(sizes))
        return [
            NDArray._wrap(self._data[start:end].copy())
            for start, end in zip(bounds[:-1], bounds[1:])
        ]

    # ------------------------------------------------------------------
    # Elementwise functions and reductions

    def abs(self) -> "NDArray":
        return NDArray._wrap(np.abs(self._data))

    def sqrt(self) -> "NDArray":
        return NDArray._wrap(np.sqrt(self._data))

    def sign(self) -> "NDArray":
        return NDArray._wrap(np.sign(self._data))

    def total(self) -> float:
        return float(self._data.sum())

    def max(self) -> float:
        return float(self._data.max())

    def min(self) -> float:
        return float(self._data.min())

    def argmax(self) -> int:
        return int(self._data.argmax())

    def norm1(self) -> float:
        return float(np.abs(self._data).sum())

    def equals(self, other: "NDArray", tolerance: float = DEFAULT_TOLERANCE) -> bool:
        """Elementwise :func:`equals` over two arrays of the same shape."""

        if not isinstance(other, NDArray) or other.shape != self.shape:
            return False
        return bool(np.all(np.abs(self._data - other._data) <= tolerance))

    def to_numpy(self) -> Array:
        return self._data.copy()

    def tolist(self) -> list:
        if self.columns == 1:
            return [float(v) for v in self._data[:, 0]]
        return self._data.tolist()

    def __repr__(self) -> str:
        body = np.array2string(self._data, precision=4, separator=", ")
        return f"NDArray(shape={self.shape}, values={body})"


__all__ = ["DEFAULT_TOLERANCE", "NDArray", "equals"]
