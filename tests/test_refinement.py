"""
Tests for symdetect.refinement (coarse matching and symmetry refiners).
"""

import numpy as np
import pytest

from symdetect.config import ConfigurationError
from symdetect.pattern import CheckerboardPattern
from symdetect.refinement import (
    FINE_REFINERS,
    GradientMagnitudeRefiner,
    GradientsXYRefiner,
    IntensitiesRefiner,
    NoRefinementRefiner,
    create_fine_refiner,
    refine_feature_by_matching,
    refine_feature_by_symmetry,
)
from symdetect.samples import SampleSet
from symdetect.types import RefinementMode

WINDOW = 10


@pytest.fixture
def samples():
    return SampleSet().ensure_capacity(WINDOW)


@pytest.fixture
def matching_samples(samples):
    return samples[: len(samples) // 8]


class TestRefineFeatureByMatching:
    def test_snaps_to_corner(self, matching_samples, checkerboard_gray, local_transform, corner):
        refined = refine_feature_by_matching(
            matching_samples,
            checkerboard_gray,
            WINDOW,
            np.array([101.5, 49.5]),
            np.linalg.inv(local_transform),
            CheckerboardPattern(),
        )
        assert refined is not None
        assert np.linalg.norm(refined - corner) < 0.5

    def test_wrong_polarity_fails(self, matching_samples, checkerboard_gray, local_transform):
        """Pattern coordinate (1, 0) expects the opposite square colors."""
        refined = refine_feature_by_matching(
            matching_samples,
            checkerboard_gray,
            WINDOW,
            np.array([100.0, 51.0]),
            np.linalg.inv(local_transform),
            CheckerboardPattern(),
            pattern_coordinate=(1, 0),
        )
        assert refined is None

    def test_inverted_template_matches_swapped_parity(
        self, matching_samples, checkerboard_gray, local_transform
    ):
        refined = refine_feature_by_matching(
            matching_samples,
            checkerboard_gray,
            WINDOW,
            np.array([100.0, 51.0]),
            np.linalg.inv(local_transform),
            CheckerboardPattern(inverted=True),
            pattern_coordinate=(1, 0),
        )
        assert refined is not None

    def test_flat_image_fails(self, matching_samples, local_transform):
        flat = np.full((100, 200), 128, dtype=np.uint8)
        refined = refine_feature_by_matching(
            matching_samples,
            flat,
            WINDOW,
            np.array([100.0, 50.0]),
            np.linalg.inv(local_transform),
            CheckerboardPattern(),
        )
        assert refined is None

    def test_window_outside_image_fails(self, matching_samples, checkerboard_gray, local_transform):
        refined = refine_feature_by_matching(
            matching_samples,
            checkerboard_gray,
            WINDOW,
            np.array([3.0, 50.0]),
            np.linalg.inv(local_transform),
            CheckerboardPattern(),
        )
        assert refined is None


class TestRefineFeatureBySymmetry:
    @pytest.mark.parametrize(
        "channel_name, negate_mirror",
        [("gray", False), ("gradients", True), ("magnitude", False)],
    )
    def test_converges_to_corner(
        self,
        samples,
        checkerboard_gray,
        gradient_field,
        local_transform,
        corner,
        channel_name,
        negate_mirror,
    ):
        channel = {
            "gray": checkerboard_gray,
            "gradients": gradient_field.gradients,
            "magnitude": gradient_field.magnitude,
        }[channel_name]

        result = refine_feature_by_symmetry(
            samples,
            channel,
            WINDOW,
            np.array([100.0, 51.0]),
            np.linalg.inv(local_transform),
            local_transform,
            negate_mirror=negate_mirror,
        )

        assert result is not None
        position, cost = result
        assert np.linalg.norm(position - corner) < 0.25
        assert cost >= 0

    def test_cost_lower_at_corner(self, samples, checkerboard_gray, local_transform, corner):
        """A symmetric corner should cost less than an off-corner start would."""
        pattern_tr_pixel = np.linalg.inv(local_transform)
        offsets = WINDOW * samples
        start = np.array([102.0, 52.0])

        from symdetect.imaging import interpolate_bilinear

        def cost_at(center):
            values = interpolate_bilinear(checkerboard_gray, center + offsets)
            mirrored = interpolate_bilinear(checkerboard_gray, center - offsets)
            return np.mean((values - mirrored) ** 2)

        result = refine_feature_by_symmetry(
            samples, checkerboard_gray, WINDOW, start, pattern_tr_pixel, local_transform
        )
        assert result is not None
        assert result[1] < cost_at(start)

    def test_window_outside_image_fails(self, samples, checkerboard_gray, local_transform):
        result = refine_feature_by_symmetry(
            samples,
            checkerboard_gray,
            WINDOW,
            np.array([195.0, 50.0]),
            np.linalg.inv(local_transform),
            local_transform,
        )
        assert result is None


class TestFineRefiners:
    def test_registry_covers_all_modes(self):
        assert set(FINE_REFINERS) == set(RefinementMode)

    @pytest.mark.parametrize(
        "mode, cls",
        [
            (RefinementMode.GRADIENTS_XY, GradientsXYRefiner),
            (RefinementMode.GRADIENT_MAGNITUDE, GradientMagnitudeRefiner),
            (RefinementMode.INTENSITIES, IntensitiesRefiner),
            (RefinementMode.NO_REFINEMENT, NoRefinementRefiner),
            ("intensities", IntensitiesRefiner),
        ],
    )
    def test_create_fine_refiner(self, mode, cls):
        refiner = create_fine_refiner(mode)
        assert isinstance(refiner, cls)

    def test_unknown_mode_raises(self):
        with pytest.raises(ConfigurationError):
            create_fine_refiner("hessian")

    def test_no_refinement_keeps_position(self, gradient_field, checkerboard_gray, local_transform):
        position = np.array([100.25, 50.5])
        refined, cost = NoRefinementRefiner().refine(
            np.zeros((0, 2)),
            checkerboard_gray,
            gradient_field,
            WINDOW,
            position,
            np.linalg.inv(local_transform),
            local_transform,
        )
        np.testing.assert_array_equal(refined, position)
        assert cost == 0.0

    def test_channels(self, gradient_field, checkerboard_gray):
        assert GradientsXYRefiner().channel(checkerboard_gray, gradient_field) is gradient_field.gradients
        assert GradientMagnitudeRefiner().channel(checkerboard_gray, gradient_field) is gradient_field.magnitude
        assert IntensitiesRefiner().channel(checkerboard_gray, gradient_field) is checkerboard_gray
