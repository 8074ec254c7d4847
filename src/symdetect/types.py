"""
Core data structures for symdetect.

All types are frozen dataclasses with slots for immutability and performance.
Logic is in separate pure functions - these are data containers only.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

import numpy as np


# ============================================================================
# Enumerations
# ============================================================================


class RefinementMode(str, Enum):
    """
    Fine refinement stage run after coarse matching.

    Values are the strings used in TOML configuration files.
    """

    GRADIENTS_XY = "gradients_xy"  # 2-channel symmetry over the gradient field
    GRADIENT_MAGNITUDE = "gradient_magnitude"  # 1-channel symmetry over |gradient|
    INTENSITIES = "intensities"  # 1-channel symmetry over grayscale
    NO_REFINEMENT = "no_refinement"  # keep the coarse position, cost 0


class RejectionReason(str, Enum):
    """Why a prediction did not become an accepted detection."""

    MATCHING_FAILED = "matching_failed"
    SYMMETRY_FAILED = "symmetry_failed"
    CANCELLED = "cancelled"
    TOO_FAR_FROM_PREDICTION = "too_far_from_prediction"
    TOO_CLOSE_TO_EXISTING = "too_close_to_existing"


# ============================================================================
# Feature Data
# ============================================================================


@dataclass(frozen=True, slots=True)
class FeatureDetection:
    """
    A predicted, refined or accepted pattern feature.

    local_pixel_tr_pattern maps a point in the feature's local pattern frame
    (origin at the feature, pattern units) to a pixel offset from position.
    A negative final_cost marks a feature rejected during refinement.
    """

    position: np.ndarray  # (2,) pixel coordinates (x, y), pixel centers at integers
    pattern_coordinate: tuple[int, int] = (0, 0)
    local_pixel_tr_pattern: np.ndarray = field(
        default_factory=lambda: np.eye(3, dtype=np.float64)
    )
    final_cost: float = 0.0
    pattern_index: int = 0

    @property
    def is_rejected(self) -> bool:
        return self.final_cost < 0


@dataclass(frozen=True, slots=True)
class RefinedFeature:
    """
    One slot of the orchestrator output, paired by index with its prediction.
    """

    detection: FeatureDetection
    coarse_position: np.ndarray | None = None  # None if matching failed
    rejection: RejectionReason | None = None


# ============================================================================
# Derived Images
# ============================================================================


@dataclass(frozen=True, slots=True)
class GradientField:
    """
    Per-pixel gradient vectors and their magnitude, co-indexed with the image.
    """

    gradients: np.ndarray  # (h, w, 2) float32, (dx, dy)
    magnitude: np.ndarray  # (h, w) float32

    @property
    def shape(self) -> tuple[int, int]:
        return self.magnitude.shape


# ============================================================================
# Detector Configuration
# ============================================================================


@dataclass(frozen=True)  # No slots - need properties
class DetectorConfig:
    """
    Configuration for the feature detector.

    max_prediction_error is derived from the window size: refined positions
    further than this from their prediction likely snapped to a neighbor.
    """

    window_half_extent: int = 10  # pixels
    refinement: RefinementMode = RefinementMode.GRADIENTS_XY
    min_feature_distance: float = 5.0  # pixels
    max_prediction_error_factor: float = 0.8
    min_contrast: float = 5.0  # gray levels between dark and bright pattern areas
    max_iterations: int = 100
    num_workers: int | None = None  # None = ThreadPoolExecutor default
    sample_seed: int = 0

    def __post_init__(self):
        if self.window_half_extent < 1:
            raise ValueError(
                f"window_half_extent must be at least 1, got {self.window_half_extent}"
            )
        if self.num_workers is not None and self.num_workers < 1:
            raise ValueError(f"num_workers must be at least 1, got {self.num_workers}")

    @property
    def max_prediction_error(self) -> float:
        """Maximum distance in pixels between a prediction and its refinement."""
        return self.window_half_extent * self.max_prediction_error_factor
