"""Gaussian test-matrix sampling for randomized range finding."""

from __future__ import annotations

from typing import Optional, Union

import numpy as np
from numpy.typing import NDArray

FloatArray = NDArray[np.floating]
RngLike = Union[np.random.Generator, int, None]


def make_rng(rng: RngLike = None) -> np.random.Generator:
    """Return ``rng`` if it is already a Generator, else seed a new one."""

    if isinstance(rng, np.random.Generator):
        return rng
    return np.random.default_rng(rng)


def sample(rows: int, cols: int, rng: RngLike = None) -> FloatArray:
    r"""Draw a ``rows x cols`` matrix of i.i.d. standard normal values.

    Uses the Box–Muller transform

    .. math::

        z = \sqrt{-2 \ln u_1} \cos(2 \pi u_2),

    over two independent uniform draws. ``u_1`` is taken from ``(0, 1]`` so
    the logarithm is always finite.

    Parameters
    ----------
    rows, cols:
        Output shape; both must be non-negative.
    rng:
        ``numpy.random.Generator``, integer seed, or ``None`` for fresh
        entropy. Passing the same seed gives bit-identical output.
    """

    if rows < 0 or cols < 0:
        raise ValueError("rows and cols must be non-negative")
    gen = make_rng(rng)
    u1 = 1.0 - gen.random(size=(rows, cols))
    u2 = gen.random(size=(rows, cols))
    return np.sqrt(-2.0 * np.log(u1)) * np.cos(2.0 * np.pi * u2)


def spawn_seed(rng: Optional[int] = None) -> int:
    """Return ``rng`` unchanged, or a fresh 32-bit seed when it is ``None``.

    Used where several independent computations must start from the same
    recorded seed.
    """

    if rng is not None:
        return int(rng)
    return int(np.random.SeedSequence().generate_state(1)[0])
