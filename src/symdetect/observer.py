"""
Observers for watching a detection run.

The detector calls observers synchronously from the calling thread, never
from refinement workers. Observers cannot influence the result.
"""

from __future__ import annotations

import cv2
import numpy as np

from .types import FeatureDetection, RejectionReason


# BGR colors
PREDICTION_COLOR = (127, 127, 127)
REJECTION_COLOR = (0, 0, 255)
ACCEPTANCE_COLORS = (
    (80, 80, 255),
    (255, 80, 255),
    (255, 255, 80),
    (0, 255, 0),
    (255, 80, 80),
    (127, 255, 127),
    (0, 160, 255),
    (0, 255, 255),
)

_SUBPIXEL_SHIFT = 4  # cv2 drawing uses fixed point with 4 fractional bits


class DetectionObserver:
    """
    No-op base class; override the hooks you need.
    """

    def on_prediction(self, prediction: FeatureDetection) -> None:
        pass

    def on_rejection(self, feature: FeatureDetection, reason: RejectionReason) -> None:
        pass

    def on_acceptance(self, detection: FeatureDetection) -> None:
        pass


class VisualizationObserver(DetectionObserver):
    """
    Draws predictions, rejections and detections onto a BGR canvas.

    Args:
        canvas: BGR image drawn on in place
        show_predictions: Also draw predictions and rejections
    """

    def __init__(self, canvas: np.ndarray, show_predictions: bool = False, radius: int = 2):
        self.canvas = canvas
        self.show_predictions = show_predictions
        self.radius = radius

    def _draw(self, position: np.ndarray, color: tuple[int, int, int]) -> None:
        scale = 1 << _SUBPIXEL_SHIFT
        center = (int(round(position[0] * scale)), int(round(position[1] * scale)))
        cv2.circle(
            self.canvas,
            center,
            self.radius * scale,
            color,
            thickness=-1,
            lineType=cv2.LINE_AA,
            shift=_SUBPIXEL_SHIFT,
        )

    def on_prediction(self, prediction):
        if self.show_predictions:
            self._draw(prediction.position, PREDICTION_COLOR)

    def on_rejection(self, feature, reason):
        if self.show_predictions:
            self._draw(feature.position, REJECTION_COLOR)

    def on_acceptance(self, detection):
        color = ACCEPTANCE_COLORS[detection.pattern_index % len(ACCEPTANCE_COLORS)]
        self._draw(detection.position, color)


class CompositeObserver(DetectionObserver):
    """Forward every hook to several observers, in order."""

    def __init__(self, *observers: DetectionObserver):
        self.observers = [o for o in observers if o is not None]

    def on_prediction(self, prediction):
        for observer in self.observers:
            observer.on_prediction(prediction)

    def on_rejection(self, feature, reason):
        for observer in self.observers:
            observer.on_rejection(feature, reason)

    def on_acceptance(self, detection):
        for observer in self.observers:
            observer.on_acceptance(detection)
