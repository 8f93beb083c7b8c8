"""Randomized SVD (RSVD) engine.

Implements randomized range finding for a single dense matrix:
- Gaussian test matrix (Box–Muller sampler)
- Sketch ``Y = A Omega`` orthogonalised by modified Gram–Schmidt
- Exact SVD of the small projected matrix ``B = Q^T A``
- Lift back to ``U = Q U_hat`` and truncate to the requested rank

The exact SVD of the projected matrix is delegated to a dense primitive
(``numpy.linalg.svd`` by default) that only ever sees tall-or-square input.
Results are reproducible for a fixed seed.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, Tuple

import numpy as np
from numpy.typing import NDArray

from svd_image_explorer.common.config import DEFAULT_ENGINE_CONFIG, EngineConfig
from svd_image_explorer.common.errors import DimensionMismatch, FactorizationError, InvalidInputError
from svd_image_explorer.common.logging_utils import get_logger
from svd_image_explorer.linalg.matrix_ops import as_matrix, multiply, slice_matrix, transpose
from svd_image_explorer.linalg.qr import decompose
from svd_image_explorer.linalg.sampling import RngLike, make_rng, sample

FloatArray = NDArray[np.floating]

logger = get_logger(__name__)


@dataclass
class SVDFactors:
    """Rank-``k`` factors with ``A ≈ U @ diag(S) @ Vt``."""

    u: FloatArray   # (m, k)
    s: FloatArray   # (k,)
    vt: FloatArray  # (k, n)

    @classmethod
    def empty(cls, m: int, n: int) -> "SVDFactors":
        """Valid rank-0 factors for an ``m x n`` matrix."""
        return cls(
            u=np.zeros((m, 0), dtype=np.float64),
            s=np.zeros((0,), dtype=np.float64),
            vt=np.zeros((0, n), dtype=np.float64),
        )

    @property
    def rank(self) -> int:
        """Achieved rank (number of singular triplets kept)."""
        return int(self.s.shape[0])

    @property
    def shape(self) -> Tuple[int, int]:
        """Shape of the approximated matrix."""
        return (int(self.u.shape[0]), int(self.vt.shape[1]))

    def truncate(self, k: int) -> "SVDFactors":
        """Return the leading ``min(max(k, 0), rank)`` triplets."""
        k_eff = max(0, min(int(k), self.rank))
        return SVDFactors(u=self.u[:, :k_eff].copy(), s=self.s[:k_eff].copy(), vt=self.vt[:k_eff, :].copy())

    def as_matrix(self) -> FloatArray:
        """Reconstruct the low-rank approximation ``U diag(S) Vt``."""
        return (self.u * self.s[np.newaxis, :]) @ self.vt


@dataclass
class ExactSVD:
    """Output of the dense primitive: ``X = u @ diag(s) @ v.T``."""

    u: FloatArray  # (p, q)
    s: FloatArray  # (q,)
    v: FloatArray  # (q, q)


SvdPrimitive = Callable[[FloatArray], ExactSVD]


def exact_svd(x: FloatArray) -> ExactSVD:
    """Thin SVD of a tall-or-square matrix via ``numpy.linalg.svd``.

    Singular values come back in descending order.
    """

    x = as_matrix(x, "x")
    if x.shape[0] < x.shape[1]:
        raise DimensionMismatch(f"exact_svd expects rows >= cols, got {x.shape}")
    u, s, vt = np.linalg.svd(x, full_matrices=False)
    return ExactSVD(u=u, s=s, v=vt.T)


class RandomizedSVDEngine:
    """Randomized top-``k`` SVD of dense matrices.

    The engine holds only immutable configuration and the SVD primitive, so a
    single instance can be shared between threads.

    Parameters
    ----------
    config:
        Oversampling default and QR tolerance.
    svd_primitive:
        Callable implementing the :func:`exact_svd` contract. Exceptions it
        raises are re-raised as :class:`FactorizationError`.
    """

    def __init__(
        self,
        config: EngineConfig = DEFAULT_ENGINE_CONFIG,
        svd_primitive: SvdPrimitive = exact_svd,
    ) -> None:
        self.config = config
        self._svd_primitive = svd_primitive

    def compute(
        self,
        a: FloatArray,
        k: int,
        p: Optional[int] = None,
        seed: RngLike = None,
    ) -> SVDFactors:
        """Compute a randomized rank-``k`` SVD approximation of ``a``.

        Parameters
        ----------
        a:
            Input matrix of shape ``(m, n)``.
        k:
            Target rank. Values above ``min(m, n)`` are reduced; values
            ``<= 0`` give empty factors.
        p:
            Oversampling; defaults to ``config.oversampling``. The sketch
            size is ``l = min(k + p, n, m)``.
        seed:
            Seed or ``numpy.random.Generator`` for the test matrix.

        Returns
        -------
        SVDFactors
            ``u`` of shape ``(m, k')``, ``s`` of shape ``(k',)`` and ``vt`` of
            shape ``(k', n)`` with ``k' = min(k, l)``.

        Raises
        ------
        DimensionMismatch
            If ``a`` has no rows.
        FactorizationError
            If the dense primitive fails or returns malformed output.
        """

        a = as_matrix(a, "a")
        m, n = a.shape
        if m == 0:
            raise DimensionMismatch("cannot decompose a matrix with zero rows")
        p = self.config.oversampling if p is None else int(p)
        if p < 0:
            raise InvalidInputError("oversampling p must be non-negative")

        ell = min(int(k) + p, n, m)
        final_k = min(int(k), ell)
        if final_k <= 0:
            return SVDFactors.empty(m, n)
        logger.debug("RSVD m=%d n=%d k=%d l=%d", m, n, final_k, ell)

        omega = sample(n, ell, make_rng(seed))
        y = multiply(a, omega)  # (m, ell)
        q_mat = decompose(y, tol=self.config.qr_tolerance).q  # (m, ell)
        b_small = multiply(transpose(q_mat), a)  # (ell, n)

        # The primitive needs rows >= cols; for wide B factor B^T and swap roles.
        if b_small.shape[0] >= b_small.shape[1]:
            res = self._exact(b_small)
            u_hat, s_all, v_hat = res.u, res.s, res.v
        else:
            res = self._exact(transpose(b_small))
            u_hat, s_all, v_hat = res.v, res.s, res.u

        u_full = multiply(q_mat, u_hat)  # (m, ell)

        return SVDFactors(
            u=slice_matrix(u_full, m, final_k),
            s=np.array(s_all[:final_k], dtype=np.float64),
            vt=slice_matrix(transpose(v_hat), final_k, n),
        )

    def _exact(self, x: FloatArray) -> ExactSVD:
        rows, cols = x.shape
        try:
            res = self._svd_primitive(x)
        except (np.linalg.LinAlgError, ValueError, ArithmeticError) as exc:
            raise FactorizationError(f"dense SVD failed on {x.shape} matrix: {exc}") from exc

        u = np.asarray(res.u, dtype=np.float64)
        s = np.asarray(res.s, dtype=np.float64)
        v = np.asarray(res.v, dtype=np.float64)
        if u.shape != (rows, cols) or s.shape != (cols,) or v.shape != (cols, cols):
            raise FactorizationError(
                f"dense SVD returned malformed factors for {x.shape}: "
                f"u{u.shape}, s{s.shape}, v{v.shape}"
            )
        return ExactSVD(u=u, s=s, v=v)


def rsvd(
    a: FloatArray,
    k: int,
    p: Optional[int] = None,
    seed: RngLike = None,
    config: EngineConfig = DEFAULT_ENGINE_CONFIG,
) -> SVDFactors:
    """Functional shortcut for ``RandomizedSVDEngine(config).compute(...)``."""

    return RandomizedSVDEngine(config).compute(a, k, p=p, seed=seed)


def truncated_svd(a: FloatArray, k: int) -> SVDFactors:
    """Deterministic truncated SVD, the optimal rank-``k`` baseline."""

    a = as_matrix(a, "a")
    if a.shape[0] == 0:
        raise DimensionMismatch("cannot decompose a matrix with zero rows")
    k_eff = max(0, min(int(k), min(a.shape)))
    if k_eff == 0:
        return SVDFactors.empty(*a.shape)

    u, s, vt = np.linalg.svd(a, full_matrices=False)
    return SVDFactors(u=u[:, :k_eff].copy(), s=s[:k_eff].copy(), vt=vt[:k_eff, :].copy())
