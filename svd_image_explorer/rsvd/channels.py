"""Grayscale and per-channel (R, G, B) decomposition.

Colour images are decomposed channel by channel with three independent
engine runs submitted to a thread pool. The runs read disjoint input matrices,
write disjoint factors and each build their own random generator from the
same seed, so nothing mutable is shared between threads.
"""

from __future__ import annotations

from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import numpy as np
from numpy.typing import NDArray

from svd_image_explorer.common.config import DEFAULT_ENGINE_CONFIG, EngineConfig
from svd_image_explorer.common.errors import InvalidInputError
from svd_image_explorer.common.logging_utils import get_logger
from svd_image_explorer.common.timing import timer
from svd_image_explorer.linalg.matrix_ops import as_matrix
from svd_image_explorer.linalg.sampling import spawn_seed
from svd_image_explorer.rsvd.core import RandomizedSVDEngine, SVDFactors

FloatArray = NDArray[np.floating]

logger = get_logger(__name__)

CHANNELS = ("r", "g", "b")


@dataclass
class ChannelFactors:
    """Per-channel factors of a colour image.

    All channels share the same matrix shape and requested rank, but the
    achieved rank of each channel (``len(s)``) may differ.
    """

    r: SVDFactors
    g: SVDFactors
    b: SVDFactors

    def channels(self) -> Dict[str, SVDFactors]:
        return {"r": self.r, "g": self.g, "b": self.b}

    @property
    def shape(self) -> Tuple[int, int]:
        return self.r.shape

    @property
    def rank(self) -> int:
        """Largest achieved rank over the three channels."""
        return max(self.r.rank, self.g.rank, self.b.rank)


class ChannelFactorCoordinator:
    """Fan grayscale or colour requests out to :class:`RandomizedSVDEngine`.

    Parameters
    ----------
    engine:
        Engine used for every channel; created from ``config`` if omitted.
    config:
        Engine configuration; ``max_workers`` sizes the internal pool.
    executor:
        Optional caller-owned executor for the channel tasks. When omitted a
        short-lived ``ThreadPoolExecutor`` is created per colour request.
    """

    def __init__(
        self,
        engine: Optional[RandomizedSVDEngine] = None,
        config: EngineConfig = DEFAULT_ENGINE_CONFIG,
        executor: Optional[Executor] = None,
    ) -> None:
        self.engine = engine if engine is not None else RandomizedSVDEngine(config)
        self.config = self.engine.config
        self._executor = executor

    def compute_grayscale(
        self,
        matrix: FloatArray,
        k: int,
        p: Optional[int] = None,
        seed: Optional[int] = None,
    ) -> SVDFactors:
        """Single engine run on a luminance matrix."""

        with timer() as t:
            factors = self.engine.compute(matrix, k, p=p, seed=seed)
        logger.info(
            "Grayscale RSVD %dx%d k=%d achieved=%d in %.1f ms",
            factors.shape[0],
            factors.shape[1],
            k,
            factors.rank,
            t.millis,
        )
        return factors

    def compute_color(
        self,
        r_matrix: FloatArray,
        g_matrix: FloatArray,
        b_matrix: FloatArray,
        k: int,
        p: Optional[int] = None,
        seed: Optional[int] = None,
    ) -> ChannelFactors:
        """Decompose R, G and B concurrently with the same ``k``, ``p`` and seed.

        Raises
        ------
        InvalidInputError
            If the three channel matrices do not share one shape.
        """

        mats = [as_matrix(r_matrix, "r"), as_matrix(g_matrix, "g"), as_matrix(b_matrix, "b")]
        shapes = {m.shape for m in mats}
        if len(shapes) != 1:
            raise InvalidInputError(f"channel matrices must share one shape, got {sorted(shapes)}")

        # One recorded seed so identical channels give identical factors.
        channel_seed = spawn_seed(seed)

        with timer() as t:
            if self._executor is not None:
                results = self._run(self._executor, mats, k, p, channel_seed)
            else:
                with ThreadPoolExecutor(
                    max_workers=self.config.max_workers, thread_name_prefix="rsvd-channel"
                ) as pool:
                    results = self._run(pool, mats, k, p, channel_seed)

        factors = ChannelFactors(r=results[0], g=results[1], b=results[2])
        logger.info(
            "Color RSVD %dx%d k=%d achieved=(%d, %d, %d) seed=%d in %.1f ms",
            factors.shape[0],
            factors.shape[1],
            k,
            factors.r.rank,
            factors.g.rank,
            factors.b.rank,
            channel_seed,
            t.millis,
        )
        return factors

    def _run(self, pool: Executor, mats, k: int, p: Optional[int], seed: int):
        futures = [pool.submit(self.engine.compute, m, k, p, seed) for m in mats]
        # result() re-raises the first failing channel's exception.
        return [f.result() for f in futures]
