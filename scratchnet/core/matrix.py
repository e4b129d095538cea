"""Bounds-checked dense matrices backing the numeric core."""

from __future__ import annotations

from typing import Iterable, Sequence

import numpy as np

from .types import Array


class MatrixError(Exception):
    """Base class for shape and index failures raised by :class:`Matrix`."""


class RowOutOfBounds(MatrixError, IndexError):
    """Raised when a row index falls outside ``[0, rows)``."""


class ColumnOutOfBounds(MatrixError, IndexError):
    """Raised when a column index falls outside ``[0, columns)``."""


class DimensionMismatch(MatrixError, ValueError):
    """Raised when operand shapes are incompatible."""


class Matrix:
    """Dense ``rows x columns`` float64 matrix stored row-major.

    Every element access goes through :meth:`get` / :meth:`set`, which check
    both indices.  Operations in :mod:`scratchnet.core.operations` never mutate
    their operands and always hand back a fresh instance.
    """

    __slots__ = ("rows", "columns", "_values")

    def __init__(self, rows: int, columns: int) -> None:
        if rows < 0 or columns < 0:
            raise ValueError(f"Matrix dimensions must be non-negative, got {rows}x{columns}")
        self.rows = int(rows)
        self.columns = int(columns)
        self._values: Array = np.zeros((self.rows, self.columns), dtype=np.float64)

    # ------------------------------------------------------------------
    # Constructors

    @classmethod
    def from_array(cls, values: Array) -> "Matrix":
        array = np.asarray(values, dtype=np.float64)
        if array.ndim == 1:
            array = array.reshape(1, -1)
        if array.ndim != 2:
            raise DimensionMismatch(f"Expected a 1-D or 2-D array, got {array.ndim}-D")
        out = cls(array.shape[0], array.shape[1])
        out._values[...] = array
        return out

    @classmethod
    def from_rows(cls, rows: Sequence[Sequence[float]]) -> "Matrix":
        if not rows:
            return cls(0, 0)
        widths = {len(row) for row in rows}
        if len(widths) > 1:
            raise DimensionMismatch(f"Ragged rows: widths {sorted(widths)}")
        return cls.from_array(np.array(rows, dtype=np.float64).reshape(len(rows), -1))

    @classmethod
    def row_vector(cls, values: Iterable[float]) -> "Matrix":
        return cls.from_array(np.fromiter(values, dtype=np.float64).reshape(1, -1))

    # ------------------------------------------------------------------
    # Element access

    def _check(self, row: int, column: int) -> None:
        if not 0 <= row < self.rows:
            raise RowOutOfBounds(f"Row {row} out of bounds for {self.rows} rows")
        if not 0 <= column < self.columns:
            raise ColumnOutOfBounds(
                f"Column {column} out of bounds for {self.columns} columns"
            )

    def get(self, row: int, column: int) -> float:
        self._check(row, column)
        return float(self._values[row, column])

    def set(self, row: int, column: int, value: float) -> None:
        self._check(row, column)
        self._values[row, column] = value

    # ------------------------------------------------------------------
    # Views

    @property
    def shape(self) -> tuple[int, int]:
        return self.rows, self.columns

    @property
    def data(self) -> Array:
        """Read-only, row-major flat view of the elements."""

        view = self._values.reshape(-1)
        view.flags.writeable = False
        return view

    def to_numpy(self) -> Array:
        """Return a copy of the elements as a 2-D array."""

        return self._values.copy()

    def copy(self) -> "Matrix":
        return Matrix.from_array(self._values)

    def tolist(self) -> list[list[float]]:
        return self._values.tolist()

    def __len__(self) -> int:
        return self.rows * self.columns

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Matrix):
            return NotImplemented
        return self.shape == other.shape and bool(np.array_equal(self._values, other._values))

    def __repr__(self) -> str:
        return f"Matrix({self.rows}x{self.columns}, {self._values.tolist()!r})"


__all__ = [
    "ColumnOutOfBounds",
    "DimensionMismatch",
    "Matrix",
    "MatrixError",
    "RowOutOfBounds",
]
