"""Compute boundary between the stateless core and an interactive front end.

``compute_factors`` and ``reconstruct`` are the two entry points meant to be
run in a background execution context. :class:`ExplorerSession` is a caller of
those entry points that shows how the core is driven interactively: it owns
the per-image factor cache, memoises reconstructions and tags every
reconstruction request with a generation number so that only the newest
request's result is ever published (last-requested-wins).
"""

from __future__ import annotations

import hashlib
import threading
from collections import OrderedDict
from concurrent.futures import Executor, Future
from dataclasses import dataclass
from typing import Dict, Generic, Hashable, Optional, Tuple, TypeVar, Union

import numpy as np
from numpy.typing import NDArray

from svd_image_explorer.common.config import DEFAULT_ENGINE_CONFIG, ColorMode, EngineConfig
from svd_image_explorer.common.errors import InvalidInputError
from svd_image_explorer.common.logging_utils import get_logger
from svd_image_explorer.common.metrics import CompressionSummary, cumulative_energy, element_counts
from svd_image_explorer.common.timing import timer
from svd_image_explorer.reconstruct.core import Reconstructor
from svd_image_explorer.reconstruct.pixels import RawPixelBuffer, to_channel_matrices, to_grayscale_matrix
from svd_image_explorer.rsvd.channels import ChannelFactorCoordinator, ChannelFactors
from svd_image_explorer.rsvd.core import SVDFactors

Factors = Union[SVDFactors, ChannelFactors]
FloatArray = NDArray[np.floating]
K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

logger = get_logger(__name__)


def compute_factors(
    pixels: RawPixelBuffer,
    rank: int,
    oversampling: Optional[int] = None,
    mode: ColorMode = ColorMode.GRAYSCALE,
    seed: Optional[int] = None,
    coordinator: Optional[ChannelFactorCoordinator] = None,
) -> Factors:
    """Decompose an RGBA image in grayscale or colour mode.

    Raises
    ------
    InvalidInputError
        If the image has no pixels.
    """

    coordinator = coordinator if coordinator is not None else ChannelFactorCoordinator()
    mode = ColorMode(mode)
    if mode is ColorMode.COLOR:
        r, g, b = to_channel_matrices(pixels)
        return coordinator.compute_color(r, g, b, rank, p=oversampling, seed=seed)
    return coordinator.compute_grayscale(to_grayscale_matrix(pixels), rank, p=oversampling, seed=seed)


def reconstruct(
    factors: Factors,
    rank: int,
    reconstructor: Optional[Reconstructor] = None,
) -> RawPixelBuffer:
    """Rebuild the image at ``rank``; the size is taken from the factor shapes."""

    reconstructor = reconstructor if reconstructor is not None else Reconstructor()
    height, width = factors.shape
    if isinstance(factors, ChannelFactors):
        return reconstructor.reconstruct_color(factors, rank, width, height)
    return reconstructor.reconstruct_gray(factors, rank, width, height)


class LRUCache(Generic[K, V]):
    """Small thread-safe least-recently-used mapping."""

    def __init__(self, maxsize: int = 32) -> None:
        if maxsize <= 0:
            raise ValueError("maxsize must be positive")
        self.maxsize = maxsize
        self._data: "OrderedDict[K, V]" = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: K) -> Optional[V]:
        with self._lock:
            if key not in self._data:
                return None
            self._data.move_to_end(key)
            return self._data[key]

    def put(self, key: K, value: V) -> None:
        with self._lock:
            self._data[key] = value
            self._data.move_to_end(key)
            while len(self._data) > self.maxsize:
                self._data.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def __len__(self) -> int:
        return len(self._data)


@dataclass(frozen=True)
class ReconstructionTicket:
    """Handle for one reconstruction request."""

    generation: int
    image_id: str
    mode: ColorMode
    rank: int
    future: "Future[RawPixelBuffer]"


def image_fingerprint(pixels: RawPixelBuffer) -> str:
    """Stable short id for a pixel buffer."""

    digest = hashlib.sha1(pixels.data)
    digest.update(f"{pixels.width}x{pixels.height}".encode("ascii"))
    return digest.hexdigest()[:16]


class ExplorerSession:
    """Interactive state for one loaded image.

    Parameters
    ----------
    executor:
        Caller-owned executor used for decomposition and reconstruction
        tasks. The session never creates or shuts down executors itself.
    config:
        Engine configuration shared by the coordinator and reconstructor.
    cache_size:
        Number of reconstructed buffers kept in the LRU cache.
    """

    def __init__(
        self,
        executor: Executor,
        config: EngineConfig = DEFAULT_ENGINE_CONFIG,
        cache_size: int = 32,
    ) -> None:
        self.config = config
        self._executor = executor
        self._coordinator = ChannelFactorCoordinator(config=config)
        self._reconstructor = Reconstructor(config)
        self._lock = threading.Lock()
        self._pixels: Optional[RawPixelBuffer] = None
        self._image_id: Optional[str] = None
        self._factors: Dict[Tuple[str, ColorMode], Factors] = {}
        self._pending: Dict[Tuple[str, ColorMode], "Future[Factors]"] = {}
        self._reconstructions: LRUCache[Tuple[str, ColorMode, int], RawPixelBuffer] = LRUCache(cache_size)
        self._generation = 0
        self._latest: Optional[Tuple[int, RawPixelBuffer]] = None

    # ------------------------------------------------------------------ image

    @property
    def image_id(self) -> Optional[str]:
        return self._image_id

    @property
    def pixels(self) -> Optional[RawPixelBuffer]:
        return self._pixels

    def load_image(self, pixels: RawPixelBuffer, image_id: Optional[str] = None) -> str:
        """Make ``pixels`` the current image and discard everything cached."""

        if pixels.width == 0 or pixels.height == 0:
            raise InvalidInputError("cannot load an empty image")
        image_id = image_id if image_id is not None else image_fingerprint(pixels)
        with self._lock:
            self._pixels = pixels
            self._image_id = image_id
            self._factors.clear()
            self._pending.clear()
            self._latest = None
            self._generation += 1
        self._reconstructions.clear()
        logger.info("Loaded image %s (%dx%d)", image_id, pixels.width, pixels.height)
        return image_id

    def _require_image(self) -> Tuple[str, RawPixelBuffer]:
        if self._image_id is None or self._pixels is None:
            raise InvalidInputError("no image loaded")
        return self._image_id, self._pixels

    # ---------------------------------------------------------------- factors

    def submit_factors(
        self,
        mode: ColorMode = ColorMode.GRAYSCALE,
        rank: int = 50,
        oversampling: Optional[int] = None,
        seed: Optional[int] = None,
    ) -> "Future[Factors]":
        """Schedule (or reuse) the decomposition of the current image in ``mode``.

        Grayscale and colour factors are independent decompositions and are
        cached separately until the next :meth:`load_image`. The factors are
        cached before the returned future completes.
        """

        image_id, pixels = self._require_image()
        mode = ColorMode(mode)
        key = (image_id, mode)
        with self._lock:
            if key in self._factors:
                done: "Future[Factors]" = Future()
                done.set_result(self._factors[key])
                return done
            if key in self._pending:
                return self._pending[key]
            future = self._executor.submit(self._compute_and_store, key, pixels, rank, oversampling, seed)
            self._pending[key] = future
        return future

    def _compute_and_store(
        self,
        key: Tuple[str, ColorMode],
        pixels: RawPixelBuffer,
        rank: int,
        oversampling: Optional[int],
        seed: Optional[int],
    ) -> Factors:
        try:
            factors = compute_factors(pixels, rank, oversampling, key[1], seed, self._coordinator)
        except Exception:
            logger.exception("Decomposition of %s (%s) failed", key[0], key[1].value)
            with self._lock:
                self._pending.pop(key, None)
            raise
        with self._lock:
            self._pending.pop(key, None)
            # A newer image may have been loaded meanwhile.
            if self._image_id == key[0]:
                self._factors[key] = factors
        return factors

    def factors(self, mode: ColorMode = ColorMode.GRAYSCALE) -> Optional[Factors]:
        """Cached factors for the current image in ``mode``, if computed."""

        with self._lock:
            if self._image_id is None:
                return None
            return self._factors.get((self._image_id, ColorMode(mode)))

    def _require_factors(self, mode: ColorMode) -> Tuple[str, Factors]:
        image_id, _ = self._require_image()
        factors = self.factors(mode)
        if factors is None:
            raise InvalidInputError(f"no {ColorMode(mode).value} factors computed for image {image_id}")
        return image_id, factors

    # --------------------------------------------------------- reconstruction

    def request_reconstruction(self, rank: int, mode: ColorMode = ColorMode.GRAYSCALE) -> ReconstructionTicket:
        """Schedule a reconstruction at ``rank`` and supersede earlier requests.

        The result of every request is available through its ticket's future,
        but only the newest request is published by
        :meth:`latest_reconstruction`; older results are dropped on arrival.
        """

        mode = ColorMode(mode)
        image_id, factors = self._require_factors(mode)
        k_eff = max(0, min(int(rank), factors.rank))
        cache_key = (image_id, mode, k_eff)

        with self._lock:
            self._generation += 1
            generation = self._generation

        cached = self._reconstructions.get(cache_key)
        if cached is not None:
            future: "Future[RawPixelBuffer]" = Future()
            future.set_result(cached)
            self._publish(generation, cached)
        else:
            future = self._executor.submit(self._reconstruct_and_publish, generation, cache_key, factors)
        return ReconstructionTicket(generation=generation, image_id=image_id, mode=mode, rank=int(rank), future=future)

    def _reconstruct_and_publish(
        self,
        generation: int,
        cache_key: Tuple[str, ColorMode, int],
        factors: Factors,
    ) -> RawPixelBuffer:
        with timer() as t:
            buf = reconstruct(factors, cache_key[2], self._reconstructor)
        logger.debug("Reconstructed k=%d in %.1f ms", cache_key[2], t.millis)
        self._reconstructions.put(cache_key, buf)
        self._publish(generation, buf)
        return buf

    def _publish(self, generation: int, buf: RawPixelBuffer) -> None:
        with self._lock:
            if generation == self._generation:
                self._latest = (generation, buf)
            else:
                logger.debug("Dropping stale reconstruction generation=%d", generation)

    def is_current(self, ticket: ReconstructionTicket) -> bool:
        """Whether ``ticket`` is still the newest request."""

        with self._lock:
            return ticket.generation == self._generation

    def latest_reconstruction(self) -> Optional[Tuple[int, RawPixelBuffer]]:
        """``(generation, buffer)`` of the newest request once it has finished.

        Returns ``None`` while the newest request is still running.
        """

        with self._lock:
            if self._latest is not None and self._latest[0] == self._generation:
                return self._latest
            return None

    # ---------------------------------------------------------------- metrics

    def summary(self, rank: int, mode: ColorMode = ColorMode.GRAYSCALE) -> CompressionSummary:
        """Storage summary of the current image at ``rank`` in ``mode``."""

        mode = ColorMode(mode)
        _, factors = self._require_factors(mode)
        m, n = factors.shape
        k_eff = max(0, min(int(rank), factors.rank))
        return element_counts(m, n, k_eff, mode.channel_count)

    def energy(self, mode: ColorMode = ColorMode.GRAYSCALE) -> Dict[str, FloatArray]:
        """Cumulative-energy curve per channel (``"gray"`` or ``"r"/"g"/"b"``)."""

        _, factors = self._require_factors(ColorMode(mode))
        if isinstance(factors, ChannelFactors):
            return {name: cumulative_energy(f.s) for name, f in factors.channels().items()}
        return {"gray": cumulative_energy(factors.s)}
