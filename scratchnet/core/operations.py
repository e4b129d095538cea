"""Pure matrix operations.

Each function validates operand shapes, leaves its inputs untouched and
returns a freshly allocated :class:`~scratchnet.core.matrix.Matrix`.
"""

from __future__ import annotations

from .matrix import DimensionMismatch, Matrix


def _require_same_shape(a: Matrix, b: Matrix, op: str) -> None:
    if a.shape != b.shape:
        raise DimensionMismatch(
            f"Cannot {op} {a.rows}x{a.columns} and {b.rows}x{b.columns} matrices"
        )


def add(a: Matrix, b: Matrix) -> Matrix:
    """Elementwise ``a + b``."""

    _require_same_shape(a, b, "add")
    return Matrix.from_array(a._values + b._values)


def subtract(a: Matrix, b: Matrix) -> Matrix:
    """Elementwise ``a - b``."""

    _require_same_shape(a, b, "subtract")
    return Matrix.from_array(a._values - b._values)


def hadamard(a: Matrix, b: Matrix) -> Matrix:
    """Elementwise product ``a * b``."""

    _require_same_shape(a, b, "multiply elementwise")
    return Matrix.from_array(a._values * b._values)


def scale(m: Matrix, factor: float) -> Matrix:
    return Matrix.from_array(m._values * float(factor))


def multiply(a: Matrix, b: Matrix) -> Matrix:
    """Matrix product of ``a`` (``r x k``) and ``b`` (``k x c``)."""

    if a.columns != b.rows:
        raise DimensionMismatch(
            f"Cannot multiply {a.rows}x{a.columns} by {b.rows}x{b.columns}: "
            f"{a.columns} != {b.rows}"
        )
    out = Matrix(a.rows, b.columns)
    if a.columns:
        out._values[...] = a._values @ b._values
    return out


def transpose(m: Matrix) -> Matrix:
    return Matrix.from_array(m._values.T)


__all__ = ["add", "hadamard", "multiply", "scale", "subtract", "transpose"]
