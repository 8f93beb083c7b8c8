"""Rebuild pixel buffers from cached factors at an arbitrary rank.

Reconstruction is a pure function of ``(factors, k_prime)``: nothing is kept
between calls, so callers may cache results by ``(image_id, mode, k_prime)``,
coalesce rapid requests and drop stale ones freely.
"""

from __future__ import annotations

from typing import Tuple

import numpy as np
from numpy.typing import NDArray

from svd_image_explorer.common.config import DEFAULT_ENGINE_CONFIG, EngineConfig
from svd_image_explorer.common.errors import InvalidInputError
from svd_image_explorer.linalg.matrix_ops import multiply, multiply_by_diagonal, slice_matrix
from svd_image_explorer.reconstruct.pixels import RawPixelBuffer, quantize
from svd_image_explorer.rsvd.channels import ChannelFactors
from svd_image_explorer.rsvd.core import SVDFactors

FloatArray = NDArray[np.floating]


def effective_rank(factors: SVDFactors, k_prime: int) -> int:
    """Clamp a requested rank into ``[0, factors.rank]``."""

    return max(0, min(int(k_prime), factors.rank))


def low_rank_matrix(factors: SVDFactors, k_prime: int) -> FloatArray:
    """Float approximation ``U_k diag(S_k) Vt_k`` for the clamped rank.

    Returns an all-zero matrix when the clamped rank is 0.
    """

    m, n = factors.shape
    k_eff = effective_rank(factors, k_prime)
    if k_eff == 0:
        return np.zeros((m, n), dtype=np.float64)
    u_k = slice_matrix(factors.u, m, k_eff)
    vt_k = slice_matrix(factors.vt, k_eff, n)
    return multiply(multiply_by_diagonal(u_k, factors.s[:k_eff]), vt_k)


def _check_shape(shape: Tuple[int, int], width: int, height: int) -> None:
    if shape != (height, width):
        raise InvalidInputError(
            f"factors describe a {shape[1]}x{shape[0]} image, requested {width}x{height}"
        )


class Reconstructor:
    """Turn :class:`SVDFactors` / :class:`ChannelFactors` into RGBA8 buffers.

    Parameters
    ----------
    config:
        Only ``baseline_value`` is used: the colour written when no singular
        triplet is kept (``k_eff == 0``).
    """

    def __init__(self, config: EngineConfig = DEFAULT_ENGINE_CONFIG) -> None:
        self.config = config

    def _channel_bytes(self, factors: SVDFactors, k_prime: int) -> NDArray[np.uint8]:
        if effective_rank(factors, k_prime) == 0:
            return np.full(factors.shape, self.config.baseline_value, dtype=np.uint8)
        return quantize(low_rank_matrix(factors, k_prime))

    def reconstruct_gray(self, factors: SVDFactors, k_prime: int, width: int, height: int) -> RawPixelBuffer:
        """Grayscale image with the same value in R, G and B and alpha 255."""

        _check_shape(factors.shape, width, height)
        gray = self._channel_bytes(factors, k_prime)
        rgba = np.empty((height, width, 4), dtype=np.uint8)
        rgba[..., 0] = gray
        rgba[..., 1] = gray
        rgba[..., 2] = gray
        rgba[..., 3] = 255
        return RawPixelBuffer.from_array(rgba)

    def reconstruct_color(self, factors: ChannelFactors, k_prime: int, width: int, height: int) -> RawPixelBuffer:
        """Colour image; each channel clamps ``k_prime`` to its own rank."""

        rgba = np.empty((height, width, 4), dtype=np.uint8)
        for idx, channel in enumerate((factors.r, factors.g, factors.b)):
            _check_shape(channel.shape, width, height)
            rgba[..., idx] = self._channel_bytes(channel, k_prime)
        rgba[..., 3] = 255
        return RawPixelBuffer.from_array(rgba)


def reconstruct_gray(
    factors: SVDFactors,
    k_prime: int,
    width: int,
    height: int,
    config: EngineConfig = DEFAULT_ENGINE_CONFIG,
) -> RawPixelBuffer:
    return Reconstructor(config).reconstruct_gray(factors, k_prime, width, height)


def reconstruct_color(
    factors: ChannelFactors,
    k_prime: int,
    width: int,
    height: int,
    config: EngineConfig = DEFAULT_ENGINE_CONFIG,
) -> RawPixelBuffer:
    return Reconstructor(config).reconstruct_color(factors, k_prime, width, height)
