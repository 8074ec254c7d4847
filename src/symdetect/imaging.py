"""
Image helpers: grayscale conversion, gradient fields, bilinear sampling.

Images are numpy arrays indexed [row, column]; points are (x, y) with
pixel centers at integer coordinates.
"""

from __future__ import annotations

import cv2
import numpy as np
from numba import jit
from scipy.ndimage import map_coordinates

from .types import GradientField


# ============================================================================
# Grayscale
# ============================================================================


def to_grayscale(image: np.ndarray) -> np.ndarray:
    """
    Convert a BGR image to uint8 grayscale.

    Args:
        image: BGR image (h, w, 3) or grayscale image (h, w)

    Returns:
        Grayscale image (h, w); 2D input is returned as-is
    """
    if image.ndim == 2:
        return image
    if image.ndim == 3 and image.shape[2] == 3:
        return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
    if image.ndim == 3 and image.shape[2] == 1:
        return image[:, :, 0]
    raise ValueError(f"Expected (h, w) or (h, w, 3) image, got shape {image.shape}")


# ============================================================================
# Gradient Field
# ============================================================================


@jit(nopython=True, cache=True)
def _gradient_kernel(image: np.ndarray, gradients: np.ndarray, magnitude: np.ndarray) -> None:
    """
    Central differences with the border pixel replicated.

    At the border the difference becomes one-sided, divided by the actual
    pixel step.
    """
    height, width = image.shape

    for y in range(height):
        my = max(0, y - 1)
        py = min(height - 1, y + 1)
        for x in range(width):
            mx = max(0, x - 1)
            px = min(width - 1, x + 1)

            dx = 0.0
            if px > mx:
                dx = (image[y, px] - image[y, mx]) / (px - mx)
            dy = 0.0
            if py > my:
                dy = (image[py, x] - image[my, x]) / (py - my)

            gradients[y, x, 0] = dx
            gradients[y, x, 1] = dy
            magnitude[y, x] = np.sqrt(dx * dx + dy * dy)


def compute_gradient_field(gray: np.ndarray) -> GradientField:
    """
    Compute per-pixel gradient vectors and gradient magnitude.

    Args:
        gray: Single-channel image (h, w)

    Returns:
        GradientField with (h, w, 2) gradients and (h, w) magnitude
    """
    if gray.ndim != 2:
        raise ValueError(f"Expected single-channel (h, w) image, got shape {gray.shape}")

    height, width = gray.shape
    gradients = np.zeros((height, width, 2), dtype=np.float32)
    magnitude = np.zeros((height, width), dtype=np.float32)

    _gradient_kernel(
        np.ascontiguousarray(gray, dtype=np.float32), gradients, magnitude
    )

    return GradientField(gradients=gradients, magnitude=magnitude)


# ============================================================================
# Sampling
# ============================================================================


def interpolate_bilinear(channel: np.ndarray, points: np.ndarray) -> np.ndarray:
    """
    Bilinearly sample an image at subpixel points.

    Points outside the image sample the nearest border pixel.

    Args:
        channel: (h, w) or (h, w, c) image
        points: (n, 2) array of (x, y) coordinates

    Returns:
        (n,) or (n, c) float64 array
    """
    coords = np.vstack([points[:, 1], points[:, 0]])  # map_coordinates wants (row, col)

    if channel.ndim == 2:
        return map_coordinates(channel, coords, order=1, mode="nearest", output=np.float64)

    return np.stack(
        [
            map_coordinates(
                channel[:, :, c], coords, order=1, mode="nearest", output=np.float64
            )
            for c in range(channel.shape[2])
        ],
        axis=1,
    )


def points_in_image(shape: tuple[int, ...], points: np.ndarray) -> bool:
    """
    Check that all (x, y) points lie within [0, w-1] x [0, h-1].
    """
    height, width = shape[:2]
    x = points[:, 0]
    y = points[:, 1]
    return bool(
        np.all(x >= 0) and np.all(x <= width - 1) and np.all(y >= 0) and np.all(y <= height - 1)
    )
