"""Randomized SVD package exports."""

from .channels import ChannelFactorCoordinator, ChannelFactors
from .core import ExactSVD, RandomizedSVDEngine, SVDFactors, exact_svd, rsvd, truncated_svd

__all__ = [
    "ChannelFactorCoordinator",
    "ChannelFactors",
    "ExactSVD",
    "RandomizedSVDEngine",
    "SVDFactors",
    "exact_svd",
    "rsvd",
    "truncated_svd",
]
