"""
Fine feature refinement by minimizing a point-symmetry cost.

A checkerboard corner looks the same after a 180 degree rotation about
itself (in the pattern frame). Each sample is compared with its mirrored
sample; intensities and gradient magnitudes should be equal, gradient
vectors should be opposite.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

import numpy as np
from scipy.optimize import least_squares

from ..config import parse_refinement_mode
from ..imaging import interpolate_bilinear, points_in_image
from ..pattern import apply_homography
from ..types import GradientField, RefinementMode
from .matching import position_jacobian

logger = logging.getLogger(__name__)


def refine_feature_by_symmetry(
    samples: np.ndarray,
    channel: np.ndarray,
    window_half_extent: int,
    position: np.ndarray,
    pattern_tr_pixel: np.ndarray,
    pixel_tr_pattern: np.ndarray,
    negate_mirror: bool = False,
    max_iterations: int = 100,
) -> tuple[np.ndarray, float] | None:
    """
    Refine a position by minimizing the symmetry violation of a channel image.

    Args:
        samples: (n, 2) offsets in [-1, 1]^2
        channel: (h, w) or (h, w, c) image the cost is evaluated on
        window_half_extent: Window half size in pixels
        position: (2,) starting pixel position
        pattern_tr_pixel: 3x3 transform from pixel offsets to local pattern coordinates
        pixel_tr_pattern: Inverse of pattern_tr_pixel
        negate_mirror: Mirrored values are expected to be negated (gradients)
        max_iterations: Function evaluation budget for the optimizer

    Returns:
        (position, cost) with cost the mean squared residual, or None on failure
    """
    offsets = window_half_extent * samples
    mirrored = apply_homography(pixel_tr_pattern, -apply_homography(pattern_tr_pixel, offsets))
    start = np.asarray(position, dtype=np.float64)

    if not (
        points_in_image(channel.shape, start + offsets)
        and points_in_image(channel.shape, start + mirrored)
    ):
        logger.debug("Symmetry window at %s leaves the image", start)
        return None

    def residuals(center: np.ndarray) -> np.ndarray:
        values = interpolate_bilinear(channel, center[:2] + offsets)
        mirror_values = interpolate_bilinear(channel, center[:2] + mirrored)
        if negate_mirror:
            return (values + mirror_values).ravel()
        return (values - mirror_values).ravel()

    result = least_squares(
        residuals,
        start,
        jac=lambda center: position_jacobian(residuals, center),
        method="trf",
        max_nfev=max_iterations,
    )

    if not result.success:
        logger.debug("Symmetry refinement at %s did not converge: %s", start, result.message)
        return None

    refined = result.x
    if np.linalg.norm(refined - start) > window_half_extent:
        logger.debug("Symmetry refinement at %s drifted to %s", start, refined)
        return None
    if not (
        points_in_image(channel.shape, refined + offsets)
        and points_in_image(channel.shape, refined + mirrored)
    ):
        logger.debug("Refined symmetry window at %s leaves the image", refined)
        return None

    return refined, float(np.mean(result.fun**2))


# ============================================================================
# Fine Refiner Strategies
# ============================================================================


class FineRefiner(ABC):
    """
    Fine refinement stage, selected once per detector.

    Implementations are stateless and shared by all worker threads.
    """

    mode: RefinementMode

    @abstractmethod
    def refine(
        self,
        samples: np.ndarray,
        gray: np.ndarray,
        gradient_field: GradientField,
        window_half_extent: int,
        position: np.ndarray,
        pattern_tr_pixel: np.ndarray,
        pixel_tr_pattern: np.ndarray,
        max_iterations: int = 100,
    ) -> tuple[np.ndarray, float] | None:
        """Return (position, cost) or None if the feature could not be refined."""


class SymmetryRefiner(FineRefiner):
    """Symmetry refinement over one channel image."""

    negate_mirror = False

    @abstractmethod
    def channel(self, gray: np.ndarray, gradient_field: GradientField) -> np.ndarray:
        """Pick the image the symmetry cost is evaluated on."""

    def refine(
        self,
        samples,
        gray,
        gradient_field,
        window_half_extent,
        position,
        pattern_tr_pixel,
        pixel_tr_pattern,
        max_iterations=100,
    ):
        return refine_feature_by_symmetry(
            samples,
            self.channel(gray, gradient_field),
            window_half_extent,
            position,
            pattern_tr_pixel,
            pixel_tr_pattern,
            negate_mirror=self.negate_mirror,
            max_iterations=max_iterations,
        )


class GradientsXYRefiner(SymmetryRefiner):
    mode = RefinementMode.GRADIENTS_XY
    negate_mirror = True

    def channel(self, gray, gradient_field):
        return gradient_field.gradients


class GradientMagnitudeRefiner(SymmetryRefiner):
    mode = RefinementMode.GRADIENT_MAGNITUDE

    def channel(self, gray, gradient_field):
        return gradient_field.magnitude


class IntensitiesRefiner(SymmetryRefiner):
    mode = RefinementMode.INTENSITIES

    def channel(self, gray, gradient_field):
        return gray


class NoRefinementRefiner(FineRefiner):
    """Accept the coarse position as-is with cost 0."""

    mode = RefinementMode.NO_REFINEMENT

    def refine(
        self,
        samples,
        gray,
        gradient_field,
        window_half_extent,
        position,
        pattern_tr_pixel,
        pixel_tr_pattern,
        max_iterations=100,
    ):
        return position, 0.0


FINE_REFINERS: dict[RefinementMode, type[FineRefiner]] = {
    RefinementMode.GRADIENTS_XY: GradientsXYRefiner,
    RefinementMode.GRADIENT_MAGNITUDE: GradientMagnitudeRefiner,
    RefinementMode.INTENSITIES: IntensitiesRefiner,
    RefinementMode.NO_REFINEMENT: NoRefinementRefiner,
}


def create_fine_refiner(mode: RefinementMode | str) -> FineRefiner:
    """
    Create the fine refiner for a refinement mode.

    Raises:
        ConfigurationError: If the mode is not supported
    """
    return FINE_REFINERS[parse_refinement_mode(mode)]()
