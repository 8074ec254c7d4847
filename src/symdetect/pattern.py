"""
Checkerboard pattern template and local pattern-frame transforms.

Pure functions plus one frozen template type.
"""

from __future__ import annotations

from dataclasses import dataclass

import cv2
import numpy as np


# ============================================================================
# Homogeneous transforms
# ============================================================================


def apply_homography(transform: np.ndarray, points: np.ndarray) -> np.ndarray:
    """
    Apply a 3x3 homography to (n, 2) points.

    Returns:
        (n, 2) transformed points
    """
    homogeneous = points @ transform[:, :2].T + transform[:, 2]
    return homogeneous[:, :2] / homogeneous[:, 2:3]


def make_local_transform(
    square_size_px: float,
    rotation_rad: float = 0.0,
) -> np.ndarray:
    """
    Build a local_pixel_tr_pattern for a fronto-parallel view.

    Args:
        square_size_px: Side length of one pattern square in pixels
        rotation_rad: In-plane rotation of the pattern

    Returns:
        3x3 transform mapping local pattern coordinates to pixel offsets
    """
    c = np.cos(rotation_rad) * square_size_px
    s = np.sin(rotation_rad) * square_size_px
    return np.array([
        [c, -s, 0.0],
        [s, c, 0.0],
        [0.0, 0.0, 1.0],
    ], dtype=np.float64)


# ============================================================================
# Pattern Template
# ============================================================================


@dataclass(frozen=True, slots=True)
class CheckerboardPattern:
    """
    Infinite checkerboard with unit squares in pattern coordinates.

    Square (i, j) is bright when i + j is even (dark when inverted).
    Features are the square corners, at integer pattern coordinates.
    """

    name: str = "checkerboard"
    inverted: bool = False

    def intensity_at(self, pattern_points: np.ndarray) -> np.ndarray:
        """
        Template intensity (0 = dark, 1 = bright) at (n, 2) pattern points.
        """
        cells = np.floor(pattern_points).astype(np.int64)
        bright = (cells[:, 0] + cells[:, 1]) % 2 == 0
        if self.inverted:
            bright = ~bright
        return bright.astype(np.float64)


# ============================================================================
# Synthetic Rendering
# ============================================================================


def render_checkerboard(
    width: int,
    height: int,
    corner: tuple[float, float],
    square_size_px: float,
    pattern: CheckerboardPattern | None = None,
    supersampling: int = 8,
    dark: int = 30,
    bright: int = 225,
) -> np.ndarray:
    """
    Render an anti-aliased checkerboard with a corner at a subpixel position.

    The corner at `corner` has pattern coordinate (0, 0).

    Args:
        width: Image width in pixels
        height: Image height in pixels
        corner: (x, y) pixel position of the reference corner
        square_size_px: Square side length in pixels
        pattern: Template deciding square colors (default checkerboard)
        supersampling: Subsamples per pixel along each axis
        dark: Gray level of dark squares
        bright: Gray level of bright squares

    Returns:
        BGR image as numpy array
    """
    if pattern is None:
        pattern = CheckerboardPattern()

    offsets = (np.arange(supersampling) + 0.5) / supersampling - 0.5
    xs = np.arange(width)[None, :, None] + offsets[None, None, :]  # (1, w, s)
    ys = np.arange(height)[:, None, None] + offsets[None, None, :]  # (h, 1, s)

    # Pattern coordinates per subsample, averaged over the s x s grid
    gx = ((xs - corner[0]) / square_size_px)[:, :, :, None]  # (1, w, s, 1)
    gy = ((ys - corner[1]) / square_size_px)[:, :, None, :]  # (h, 1, 1, s)
    gx, gy = np.broadcast_arrays(gx, gy)
    points = np.stack([gx.ravel(), gy.ravel()], axis=1)

    coverage = pattern.intensity_at(points).reshape(height, width, -1).mean(axis=2)
    gray = np.round(dark + (bright - dark) * coverage).astype(np.uint8)

    return cv2.cvtColor(gray, cv2.COLOR_GRAY2BGR)
