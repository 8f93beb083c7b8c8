"""QR decomposition by modified Gram–Schmidt.

The randomized engine only needs an orthonormal basis for the range of its
sketch, so numerically dependent columns are left as zero columns of ``Q``
rather than normalised by a near-zero norm.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from svd_image_explorer.common.config import DEFAULT_ENGINE_CONFIG
from svd_image_explorer.linalg.matrix_ops import as_matrix

FloatArray = NDArray[np.floating]


@dataclass
class QRResult:
    """Container for ``A = Q R``.

    Attributes
    ----------
    q : ndarray
        ``(m, l)`` matrix whose non-zero columns are orthonormal.
    r : ndarray
        ``(l, l)`` upper-triangular matrix of projection coefficients.
    """

    q: FloatArray
    r: FloatArray


def decompose(a: FloatArray, tol: float = DEFAULT_ENGINE_CONFIG.qr_tolerance) -> QRResult:
    """Factor ``a`` (``m x l``) into ``Q`` (``m x l``) and ``R`` (``l x l``).

    For each column ``j`` the projections onto the already computed columns
    ``Q[:, :j]`` are removed one at a time (modified Gram–Schmidt), the
    coefficients go to ``R[:j, j]`` and the residual norm to ``R[j, j]``.

    Parameters
    ----------
    a:
        Input matrix of shape ``(m, l)``.
    tol:
        Residual norms at or below this value leave ``Q[:, j]`` at zero.

    Returns
    -------
    QRResult
        The factors ``q`` and ``r``.
    """

    a = as_matrix(a, "a")
    m, l = a.shape
    q = np.zeros((m, l), dtype=np.float64)
    r = np.zeros((l, l), dtype=np.float64)

    for j in range(l):
        v = a[:, j].copy()
        for i in range(j):
            coeff = float(q[:, i] @ v)
            r[i, j] = coeff
            v -= coeff * q[:, i]
        norm = float(np.linalg.norm(v))
        r[j, j] = norm
        if norm > tol:
            q[:, j] = v / norm

    return QRResult(q=q, r=r)
