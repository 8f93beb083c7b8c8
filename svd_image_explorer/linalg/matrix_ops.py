"""Dense matrix helpers shared by the engine and the reconstructor.

Every function returns a new array and leaves its inputs untouched. Degenerate
shapes (zero rows or columns) are handled by returning empty matrices so that
callers can stay branch-free.
"""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray

from svd_image_explorer.common.errors import DimensionMismatch, InvalidInputError
from svd_image_explorer.common.logging_utils import get_logger

FloatArray = NDArray[np.floating]

logger = get_logger(__name__)


def as_matrix(a: FloatArray, name: str = "matrix") -> FloatArray:
    """Return ``a`` as a 2D ``float64`` array, raising on other ranks."""

    arr = np.asarray(a, dtype=np.float64)
    if arr.ndim != 2:
        raise InvalidInputError(f"{name} must be a 2D array, got ndim={arr.ndim}")
    return arr


def multiply(a: FloatArray, b: FloatArray) -> FloatArray:
    """Compute the dense product ``A @ B``.

    Parameters
    ----------
    a, b:
        Arrays with shapes ``(m, p)`` and ``(p, n)``.

    Returns
    -------
    ndarray
        Product of shape ``(m, n)``. If either operand has no columns or no
        rows, an ``(m, 0)`` matrix of empty rows is returned instead.

    Raises
    ------
    DimensionMismatch
        If ``a.shape[1] != b.shape[0]`` for non-empty operands.
    """

    a = as_matrix(a, "a")
    b = as_matrix(b, "b")
    m, p = a.shape
    p_b, n = b.shape
    if p == 0 or p_b == 0 or n == 0:
        return np.zeros((m, 0), dtype=np.float64)
    if p != p_b:
        raise DimensionMismatch(f"incompatible shapes for multiply: a{a.shape}, b{b.shape}")
    return a @ b


def transpose(a: FloatArray) -> FloatArray:
    """Return a contiguous copy of ``A^T``."""

    return np.ascontiguousarray(as_matrix(a).T)


def multiply_by_diagonal(a: FloatArray, diag: FloatArray) -> FloatArray:
    """Compute ``A @ diag(d)`` by scaling column ``j`` of ``A`` by ``d[j]``.

    When the number of columns and the diagonal length disagree, only the
    first ``min(a.shape[1], len(diag))`` columns are kept and a warning is
    logged.
    """

    a = as_matrix(a)
    d = np.asarray(diag, dtype=np.float64).reshape(-1)
    k = a.shape[1]
    if k != d.shape[0]:
        k = min(k, d.shape[0])
        logger.warning(
            "Diagonal length %d does not match %d matrix columns; using %d",
            d.shape[0],
            a.shape[1],
            k,
        )
    return a[:, :k] * d[np.newaxis, :k]


def slice_matrix(a: FloatArray, rows: int, cols: int) -> FloatArray:
    """Return the leading ``rows x cols`` block of ``A``.

    Requests outside ``[0, a.shape]`` are clamped, so the result may be
    smaller than requested but indexing never goes out of bounds.
    """

    a = as_matrix(a)
    r = max(0, min(int(rows), a.shape[0]))
    c = max(0, min(int(cols), a.shape[1]))
    return a[:r, :c].copy()
