"""Configuration dataclasses for the decomposition engine and experiments.

These provide typed containers for tunable parameters so that the engine,
session, CLI and experiment runners share a common schema.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List


class ColorMode(str, Enum):
    """How an image is turned into matrices before decomposition."""

    GRAYSCALE = "grayscale"
    COLOR = "color"

    @property
    def channel_count(self) -> int:
        return 3 if self is ColorMode.COLOR else 1


@dataclass(frozen=True)
class EngineConfig:
    """Tunable constants of the randomized SVD engine.

    Attributes
    ----------
    oversampling : int
        Extra sketch columns ``p`` added to the target rank.
    qr_tolerance : float
        Residual norm below which a Gram–Schmidt column is left at zero.
    baseline_value : int
        Pixel value written when a reconstruction uses zero singular triplets.
    max_workers : int
        Thread-pool size used for per-channel decomposition.
    """

    oversampling: int = 15
    qr_tolerance: float = 1e-10
    baseline_value: int = 0
    max_workers: int = 3

    def __post_init__(self) -> None:
        if self.oversampling < 0:
            raise ValueError("oversampling must be non-negative")
        if self.qr_tolerance < 0.0:
            raise ValueError("qr_tolerance must be non-negative")
        if not 0 <= self.baseline_value <= 255:
            raise ValueError("baseline_value must be in [0, 255]")
        if self.max_workers <= 0:
            raise ValueError("max_workers must be positive")


DEFAULT_ENGINE_CONFIG = EngineConfig()


@dataclass
class SweepConfig:
    """Configuration parameters for reconstruction-quality sweeps."""

    ranks: List[int] = field(default_factory=lambda: [1, 2, 5, 10, 20, 40, 80])
    oversampling_values: List[int] = field(default_factory=lambda: [0, 5, 15, 30])
    image_size: int = 128
    num_trials: int = 3
    seed: int = 1234
