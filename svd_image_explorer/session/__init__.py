"""Background compute entry points and the interactive session."""

from .core import (
    ExplorerSession,
    LRUCache,
    ReconstructionTicket,
    compute_factors,
    image_fingerprint,
    reconstruct,
)

__all__ = [
    "ExplorerSession",
    "LRUCache",
    "ReconstructionTicket",
    "compute_factors",
    "image_fingerprint",
    "reconstruct",
]
