"""
Pytest configuration and shared fixtures.
"""

import tempfile
from pathlib import Path

import cv2
import numpy as np
import pytest


CORNER = (100.3, 50.7)
SQUARE_SIZE_PX = 20.0


@pytest.fixture
def temp_dir():
    """Provide a temporary directory that's cleaned up after test."""
    with tempfile.TemporaryDirectory() as td:
        yield Path(td)


@pytest.fixture
def corner():
    """Subpixel position of the reference checkerboard corner."""
    return np.array(CORNER, dtype=np.float64)


@pytest.fixture
def checkerboard_bgr():
    """Blurred synthetic checkerboard (200x100) with a corner at (100.3, 50.7)."""
    from symdetect.pattern import render_checkerboard
    img = render_checkerboard(200, 100, CORNER, SQUARE_SIZE_PX)
    return cv2.GaussianBlur(img, (0, 0), 1.5)


@pytest.fixture
def checkerboard_gray(checkerboard_bgr):
    return cv2.cvtColor(checkerboard_bgr, cv2.COLOR_BGR2GRAY)


@pytest.fixture
def gradient_field(checkerboard_gray):
    from symdetect.imaging import compute_gradient_field
    return compute_gradient_field(checkerboard_gray)


@pytest.fixture
def local_transform():
    """local_pixel_tr_pattern for 20px axis-aligned squares."""
    from symdetect.pattern import make_local_transform
    return make_local_transform(SQUARE_SIZE_PX)


@pytest.fixture
def make_prediction(local_transform):
    """Factory for predictions sharing the checkerboard's local transform."""
    from symdetect.types import FeatureDetection

    def make(x, y, pattern_coordinate=(0, 0), **kwargs):
        return FeatureDetection(
            position=np.array([x, y], dtype=np.float64),
            pattern_coordinate=pattern_coordinate,
            local_pixel_tr_pattern=local_transform,
            **kwargs,
        )

    return make


class RecordingObserver:
    """Observer that records every callback in order."""

    def __init__(self):
        self.events = []

    def on_prediction(self, prediction):
        self.events.append(("prediction", prediction))

    def on_rejection(self, feature, reason):
        self.events.append(("rejection", feature, reason))

    def on_acceptance(self, detection):
        self.events.append(("acceptance", detection))

    def of_kind(self, kind):
        return [e for e in self.events if e[0] == kind]


@pytest.fixture
def recording_observer():
    return RecordingObserver()
