"""Pixel buffers and truncated reconstruction."""

from .core import Reconstructor, effective_rank, low_rank_matrix, reconstruct_color, reconstruct_gray
from .pixels import RawPixelBuffer, to_channel_matrices, to_grayscale_matrix

__all__ = [
    "Reconstructor",
    "effective_rank",
    "low_rank_matrix",
    "reconstruct_color",
    "reconstruct_gray",
    "RawPixelBuffer",
    "to_channel_matrices",
    "to_grayscale_matrix",
]
