"""
Tests for symdetect.imaging.
"""

import numpy as np
import pytest

from symdetect.imaging import (
    compute_gradient_field,
    interpolate_bilinear,
    points_in_image,
    to_grayscale,
)


class TestComputeGradientField:
    def test_horizontal_ramp(self):
        """Ramp I = 2x has dx = 2 everywhere, including one-sided borders."""
        gray = np.tile(np.arange(0, 20, 2, dtype=np.uint8), (6, 1))
        field = compute_gradient_field(gray)

        assert field.gradients.shape == (6, 10, 2)
        assert field.magnitude.shape == (6, 10)
        np.testing.assert_allclose(field.gradients[:, :, 0], 2.0)
        np.testing.assert_allclose(field.gradients[:, :, 1], 0.0)
        np.testing.assert_allclose(field.magnitude, 2.0)

    def test_vertical_step(self):
        gray = np.zeros((5, 4), dtype=np.uint8)
        gray[3:, :] = 100
        field = compute_gradient_field(gray)

        # Central differences straddling the step at rows 2 and 3
        np.testing.assert_allclose(field.gradients[2, :, 1], 50.0)
        np.testing.assert_allclose(field.gradients[3, :, 1], 50.0)
        np.testing.assert_allclose(field.gradients[0, :, 1], 0.0)
        np.testing.assert_allclose(field.gradients[4, :, 1], 0.0)
        np.testing.assert_allclose(field.gradients[:, :, 0], 0.0)

    def test_magnitude_is_norm(self, checkerboard_gray):
        field = compute_gradient_field(checkerboard_gray)
        expected = np.linalg.norm(field.gradients, axis=2)
        np.testing.assert_allclose(field.magnitude, expected, rtol=1e-5, atol=1e-4)

    def test_single_column_has_zero_dx(self):
        gray = np.arange(5, dtype=np.uint8).reshape(5, 1)
        field = compute_gradient_field(gray)
        np.testing.assert_allclose(field.gradients[:, 0, 0], 0.0)
        np.testing.assert_allclose(field.gradients[:, 0, 1], 1.0)

    def test_rejects_color_image(self):
        with pytest.raises(ValueError, match="single-channel"):
            compute_gradient_field(np.zeros((4, 4, 3), dtype=np.uint8))


class TestToGrayscale:
    def test_converts_bgr(self, checkerboard_bgr):
        gray = to_grayscale(checkerboard_bgr)
        assert gray.shape == checkerboard_bgr.shape[:2]
        assert gray.dtype == np.uint8

    def test_gray_passthrough(self, checkerboard_gray):
        assert to_grayscale(checkerboard_gray) is checkerboard_gray

    def test_rejects_unknown_layout(self):
        with pytest.raises(ValueError):
            to_grayscale(np.zeros((4, 4, 4), dtype=np.uint8))


class TestInterpolateBilinear:
    def test_midpoints(self):
        image = np.array([[0.0, 10.0], [20.0, 30.0]])
        points = np.array([[0.5, 0.0], [0.0, 0.5], [0.5, 0.5], [1.0, 1.0]])
        np.testing.assert_allclose(
            interpolate_bilinear(image, points), [5.0, 10.0, 15.0, 30.0]
        )

    def test_multichannel(self):
        image = np.zeros((3, 3, 2))
        image[:, :, 0] = 1.0
        image[:, :, 1] = np.arange(3)[None, :]
        values = interpolate_bilinear(image, np.array([[1.5, 1.0]]))
        assert values.shape == (1, 2)
        np.testing.assert_allclose(values[0], [1.0, 1.5])


class TestPointsInImage:
    def test_inclusive_bounds(self):
        assert points_in_image((10, 20), np.array([[0.0, 0.0], [19.0, 9.0]]))

    def test_outside(self):
        assert not points_in_image((10, 20), np.array([[19.5, 5.0]]))
        assert not points_in_image((10, 20), np.array([[5.0, -0.1]]))
