"""
Coarse feature refinement by matching against a pattern template.

Pure functions - no threading, no state. Safe to call from worker threads.
"""

from __future__ import annotations

import logging

import numpy as np
from scipy.optimize import least_squares

from ..imaging import interpolate_bilinear, points_in_image
from ..pattern import CheckerboardPattern, apply_homography

logger = logging.getLogger(__name__)

# Finite-difference step (pixels) for position derivatives of sampled images
POSITION_STEP = 0.5


def position_jacobian(residuals, params: np.ndarray, n_position: int = 2) -> np.ndarray:
    """
    Central-difference derivatives of residuals w.r.t. the leading position parameters.

    Returns:
        (m, n_position) array
    """
    columns = []
    for axis in range(n_position):
        step = np.zeros_like(params)
        step[axis] = POSITION_STEP
        columns.append((residuals(params + step) - residuals(params - step)) / (2 * POSITION_STEP))
    return np.column_stack(columns)


def refine_feature_by_matching(
    samples: np.ndarray,
    gray: np.ndarray,
    window_half_extent: int,
    position: np.ndarray,
    pattern_tr_pixel: np.ndarray,
    pattern: CheckerboardPattern,
    pattern_coordinate: tuple[int, int] = (0, 0),
    min_contrast: float = 5.0,
    max_iterations: int = 100,
) -> np.ndarray | None:
    """
    Snap a predicted position to the pattern feature by template matching.

    Fits position plus an affine intensity model (contrast a, offset b) so
    that a * template + b matches the image over the sample window.

    Args:
        samples: (n, 2) offsets in [-1, 1]^2
        gray: Grayscale image (h, w)
        window_half_extent: Window half size in pixels
        position: (2,) predicted pixel position
        pattern_tr_pixel: 3x3 transform from pixel offsets to local pattern coordinates
        pattern: Template to match against
        pattern_coordinate: Pattern coordinate of the feature
        min_contrast: Smallest accepted contrast a (gray levels)
        max_iterations: Function evaluation budget for the optimizer

    Returns:
        (2,) refined position, or None if matching failed
    """
    offsets = window_half_extent * samples
    start = np.asarray(position, dtype=np.float64)

    if not points_in_image(gray.shape, start + offsets):
        logger.debug("Matching window at %s leaves the image", start)
        return None

    pattern_points = apply_homography(pattern_tr_pixel, offsets) + np.asarray(
        pattern_coordinate, dtype=np.float64
    )
    template = pattern.intensity_at(pattern_points)
    if template.min() == template.max():
        logger.debug("Template window at %s has no structure", start)
        return None

    # Initial intensity model from a linear fit at the prediction
    observed = interpolate_bilinear(gray, start + offsets)
    design = np.column_stack([template, np.ones_like(template)])
    contrast, offset = np.linalg.lstsq(design, observed, rcond=None)[0]

    def residuals(params: np.ndarray) -> np.ndarray:
        return (
            params[2] * template
            + params[3]
            - interpolate_bilinear(gray, params[:2] + offsets)
        )

    def jacobian(params: np.ndarray) -> np.ndarray:
        return np.column_stack([
            position_jacobian(residuals, params),
            template,
            np.ones_like(template),
        ])

    result = least_squares(
        residuals,
        np.array([start[0], start[1], contrast, offset]),
        jac=jacobian,
        method="trf",
        x_scale="jac",
        max_nfev=max_iterations,
    )

    if not result.success:
        logger.debug("Matching at %s did not converge: %s", start, result.message)
        return None

    refined = result.x[:2]
    if result.x[2] < min_contrast:
        logger.debug("Matching at %s found contrast %.2f", start, result.x[2])
        return None
    if np.linalg.norm(refined - start) > window_half_extent:
        logger.debug("Matching at %s drifted to %s", start, refined)
        return None
    if not points_in_image(gray.shape, refined + offsets):
        logger.debug("Matched window at %s leaves the image", refined)
        return None

    return refined
