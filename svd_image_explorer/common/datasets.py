"""Synthetic image-like matrices and RGBA buffers for tests and experiments."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np
from numpy.typing import NDArray

from svd_image_explorer.reconstruct.pixels import RawPixelBuffer

FloatArray = NDArray[np.floating]


@dataclass
class LowRankMatrixSpec:
    """Matrix ``U diag(s) V^T`` with ``s_i = scale * (i + 1) ** -decay_exponent``."""

    m: int
    n: int
    r: int
    decay_exponent: float = 1.0
    scale: float = 100.0
    noise_std: float = 0.0
    seed: Optional[int] = None


def low_rank_matrix(spec: LowRankMatrixSpec) -> FloatArray:
    """Generate a matrix of (numerical) rank ``spec.r`` with known spectrum."""

    if spec.r > min(spec.m, spec.n):
        raise ValueError("r cannot exceed min(m, n)")
    rng = np.random.default_rng(spec.seed)
    u, _ = np.linalg.qr(rng.normal(size=(spec.m, spec.r)))
    v, _ = np.linalg.qr(rng.normal(size=(spec.n, spec.r)))
    singulars = spec.scale * np.arange(1, spec.r + 1, dtype=np.float64) ** (-spec.decay_exponent)
    a = (u * singulars[np.newaxis, :]) @ v.T
    if spec.noise_std > 0.0:
        a = a + spec.noise_std * rng.normal(size=a.shape)
    return a


def smooth_image_matrix(height: int, width: int, seed: Optional[int] = None) -> FloatArray:
    """Grayscale-like ``[0, 255]`` matrix made of a few smooth waves plus mild noise.

    Its spectrum decays quickly, like a natural photograph's.
    """

    rng = np.random.default_rng(seed)
    y = np.linspace(0.0, 1.0, height)[:, np.newaxis]
    x = np.linspace(0.0, 1.0, width)[np.newaxis, :]
    img = 128.0 + 60.0 * np.sin(2 * np.pi * (x + 0.5 * y))
    for freq in rng.uniform(1.0, 6.0, size=3):
        phase = rng.uniform(0.0, 2 * np.pi)
        img = img + 15.0 * np.cos(2 * np.pi * freq * x + phase) * np.sin(np.pi * freq * y)
    img = img + rng.normal(scale=2.0, size=(height, width))
    return np.clip(img, 0.0, 255.0)


def synthetic_rgba(width: int, height: int, seed: Optional[int] = None) -> RawPixelBuffer:
    """Opaque colour test image with a different smooth pattern per channel."""

    rng = np.random.default_rng(seed)
    rgba = np.empty((height, width, 4), dtype=np.uint8)
    for idx in range(3):
        chan = smooth_image_matrix(height, width, seed=int(rng.integers(0, 1_000_000)))
        rgba[..., idx] = np.floor(chan + 0.5).astype(np.uint8)
    rgba[..., 3] = 255
    return RawPixelBuffer.from_array(rgba)
