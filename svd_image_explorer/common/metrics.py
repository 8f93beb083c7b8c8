"""Compression and approximation metrics over singular values and factors.

All functions here work purely on NumPy arrays / plain numbers and are
side-effect free.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, TYPE_CHECKING

import numpy as np
from numpy.typing import NDArray

if TYPE_CHECKING:  # pragma: no cover
    from svd_image_explorer.rsvd.core import SVDFactors

FloatArray = NDArray[np.floating]


@dataclass(frozen=True)
class CompressionSummary:
    """Element counts of the original image and of its rank-``k`` factors.

    Attributes
    ----------
    original : int
        ``m * n * channels`` stored values.
    compressed : int
        ``channels * k * (m + n + 1)``: ``U_k``, ``S_k`` and ``Vt_k``.
    ratio : float
        ``original / compressed``, or 0 when nothing is stored.
    """

    original: int
    compressed: int
    ratio: float

    @property
    def space_saving(self) -> float:
        """Fraction of storage saved, ``1 - compressed / original``."""
        if self.original == 0:
            return 0.0
        return 1.0 - self.compressed / float(self.original)


def element_counts(m: int, n: int, k: int, channel_count: int = 1) -> CompressionSummary:
    """Storage counts for ``channel_count`` rank-``k`` factorizations of ``m x n``."""

    if min(m, n, k, channel_count) < 0:
        raise ValueError("m, n, k and channel_count must be non-negative")
    original = m * n * channel_count
    compressed = channel_count * k * (m + n + 1)
    ratio = original / float(compressed) if compressed else 0.0
    return CompressionSummary(original=original, compressed=compressed, ratio=ratio)


def cumulative_energy(s: FloatArray) -> FloatArray:
    """Cumulative fraction of ``sum(s**2)`` captured by the first ``i+1`` values.

    Parameters
    ----------
    s:
        Singular values.

    Returns
    -------
    ndarray
        Non-decreasing array of the same length; ends at 1.0 when the total
        energy is positive and is all zeros when it is 0.
    """

    sq = np.square(np.asarray(s, dtype=np.float64).reshape(-1))
    total = float(sq.sum())
    if total == 0.0:
        return np.zeros_like(sq)
    energy = np.cumsum(sq) / total
    energy[-1] = 1.0
    return energy


def rank_for_energy(s: FloatArray, threshold: float = 0.95) -> int:
    """Smallest ``k`` whose cumulative energy reaches ``threshold``.

    Returns 0 for an empty or all-zero spectrum.
    """

    if not 0.0 <= threshold <= 1.0:
        raise ValueError("threshold must be in [0, 1]")
    energy = cumulative_energy(s)
    if energy.size == 0 or energy[-1] == 0.0:
        return 0
    return int(np.searchsorted(energy, threshold, side="left")) + 1


def relative_frobenius_error(true: FloatArray, approx: FloatArray) -> float:
    """Compute relative Frobenius norm error ``||true - approx||_F / ||true||_F``.

    Parameters
    ----------
    true:
        Ground-truth matrix.
    approx:
        Approximate matrix with the same shape as ``true``.

    Returns
    -------
    float
        Relative Frobenius norm error.
    """

    if true.shape != approx.shape:
        raise ValueError("shapes of true and approx must match")

    num = np.linalg.norm(true - approx, ord="fro")
    denom = np.linalg.norm(true, ord="fro")
    if denom == 0.0:
        if num == 0.0:
            return 0.0
        raise ValueError("cannot compute relative error: true has zero Frobenius norm")
    return float(num / denom)


def approximation_errors(a: FloatArray, factors: "SVDFactors", ranks: Iterable[int]) -> List[float]:
    """Absolute Frobenius errors ``||A - A_k||_F`` for each ``k`` in ``ranks``."""

    return [float(np.linalg.norm(a - factors.truncate(k).as_matrix(), ord="fro")) for k in ranks]
