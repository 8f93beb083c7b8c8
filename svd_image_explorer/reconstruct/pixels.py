"""RGBA8 pixel buffers and their conversion to/from dense matrices."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import numpy as np
from numpy.typing import NDArray

from svd_image_explorer.common.errors import InvalidInputError

FloatArray = NDArray[np.floating]

# ITU-R BT.601 luma weights.
GRAY_WEIGHTS = (0.299, 0.587, 0.114)


@dataclass(frozen=True)
class RawPixelBuffer:
    """Row-major RGBA8 image: ``len(data) == width * height * 4``."""

    data: bytes
    width: int
    height: int

    def __post_init__(self) -> None:
        if self.width < 0 or self.height < 0:
            raise InvalidInputError("width and height must be non-negative")
        expected = self.width * self.height * 4
        if len(self.data) != expected:
            raise InvalidInputError(
                f"pixel buffer has {len(self.data)} bytes, expected {expected} "
                f"for {self.width}x{self.height} RGBA"
            )

    @classmethod
    def from_array(cls, rgba: NDArray[np.uint8]) -> "RawPixelBuffer":
        """Build a buffer from an ``(height, width, 4)`` uint8 array."""

        arr = np.asarray(rgba)
        if arr.ndim != 3 or arr.shape[2] != 4:
            raise InvalidInputError(f"expected an (h, w, 4) array, got shape {arr.shape}")
        arr = np.ascontiguousarray(arr, dtype=np.uint8)
        return cls(data=arr.tobytes(), width=int(arr.shape[1]), height=int(arr.shape[0]))

    def as_array(self) -> NDArray[np.uint8]:
        """Read-only ``(height, width, 4)`` view of the bytes."""

        return np.frombuffer(self.data, dtype=np.uint8).reshape(self.height, self.width, 4)


def _require_pixels(buf: RawPixelBuffer) -> NDArray[np.uint8]:
    if buf.width == 0 or buf.height == 0:
        raise InvalidInputError("empty image: cannot build a matrix from 0 pixels")
    return buf.as_array()


def to_grayscale_matrix(buf: RawPixelBuffer) -> FloatArray:
    """Luminance matrix ``0.299 R + 0.587 G + 0.114 B`` of shape ``(h, w)``."""

    rgba = _require_pixels(buf).astype(np.float64)
    wr, wg, wb = GRAY_WEIGHTS
    return wr * rgba[..., 0] + wg * rgba[..., 1] + wb * rgba[..., 2]


def to_channel_matrices(buf: RawPixelBuffer) -> Tuple[FloatArray, FloatArray, FloatArray]:
    """Separate ``(h, w)`` float matrices for R, G and B; alpha is dropped."""

    rgba = _require_pixels(buf).astype(np.float64)
    return rgba[..., 0].copy(), rgba[..., 1].copy(), rgba[..., 2].copy()


def quantize(values: FloatArray) -> NDArray[np.uint8]:
    """Round half up and clamp into ``[0, 255]``; NaN becomes 0."""

    vals = np.nan_to_num(np.asarray(values, dtype=np.float64), nan=0.0, posinf=255.0, neginf=0.0)
    return np.clip(np.floor(vals + 0.5), 0, 255).astype(np.uint8)
