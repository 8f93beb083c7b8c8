"""Dense linear-algebra building blocks for the randomized SVD engine."""

from svd_image_explorer.linalg.matrix_ops import (
    multiply,
    multiply_by_diagonal,
    slice_matrix,
    transpose,
)
from svd_image_explorer.linalg.qr import QRResult, decompose
from svd_image_explorer.linalg.sampling import make_rng, sample

__all__ = [
    "multiply",
    "multiply_by_diagonal",
    "slice_matrix",
    "transpose",
    "QRResult",
    "decompose",
    "make_rng",
    "sample",
]
