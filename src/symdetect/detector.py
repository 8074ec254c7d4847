"""
Feature detector: coarse-to-fine refinement of predicted pattern features.

Refinement of a batch runs on a thread pool; every feature only reads the
shared image, gradient field and sample set. Validation and observer
callbacks run afterwards on the calling thread.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace

import cv2
import numpy as np

from .imaging import compute_gradient_field, to_grayscale
from .observer import CompositeObserver, DetectionObserver, VisualizationObserver
from .pattern import CheckerboardPattern
from .refinement import create_fine_refiner, refine_feature_by_matching
from .samples import SampleSet
from .types import (
    DetectorConfig,
    FeatureDetection,
    GradientField,
    RefinedFeature,
    RejectionReason,
)
from .validation import validate_refined_features

logger = logging.getLogger(__name__)

# Coarse matching uses this fraction of the sample set
MATCHING_SAMPLE_FRACTION = 1 / 8.0


def _rejected(
    prediction: FeatureDetection,
    reason: RejectionReason,
    coarse_position: np.ndarray | None = None,
) -> RefinedFeature:
    return RefinedFeature(
        detection=replace(prediction, final_cost=-1.0),
        coarse_position=coarse_position,
        rejection=reason,
    )


class FeatureDetector:
    """
    Refines predicted features and validates them into detections.

    The fine refinement strategy is chosen once from config.refinement.

    Args:
        config: Detector configuration (defaults if None)
        patterns: Pattern templates, indexed by FeatureDetection.pattern_index
        observer: Optional observer for predictions, rejections and detections

    Raises:
        ConfigurationError: If config.refinement is not a supported mode
    """

    def __init__(
        self,
        config: DetectorConfig | None = None,
        patterns: Sequence[CheckerboardPattern] | None = None,
        observer: DetectionObserver | None = None,
    ):
        self.config = config or DetectorConfig()
        self.patterns = tuple(patterns) if patterns else (CheckerboardPattern(),)
        self.observer = observer
        self.fine_refiner = create_fine_refiner(self.config.refinement)
        self.sample_set = SampleSet(seed=self.config.sample_seed)

    # ------------------------------------------------------------------
    # Refinement
    # ------------------------------------------------------------------

    def _refine_feature(
        self,
        gray: np.ndarray,
        gradient_field: GradientField,
        samples: np.ndarray,
        prediction: FeatureDetection,
    ) -> RefinedFeature:
        config = self.config

        try:
            pattern_tr_pixel = np.linalg.inv(prediction.local_pixel_tr_pattern)
        except np.linalg.LinAlgError:
            logger.debug("Singular local transform for feature at %s", prediction.position)
            return _rejected(prediction, RejectionReason.MATCHING_FAILED)

        if not 0 <= prediction.pattern_index < len(self.patterns):
            logger.warning(
                "Feature at %s references unknown pattern %d (have %d)",
                prediction.position,
                prediction.pattern_index,
                len(self.patterns),
            )
            return _rejected(prediction, RejectionReason.MATCHING_FAILED)

        num_matching_samples = int(MATCHING_SAMPLE_FRACTION * len(samples))
        coarse_position = refine_feature_by_matching(
            samples[:num_matching_samples],
            gray,
            config.window_half_extent,
            prediction.position,
            pattern_tr_pixel,
            self.patterns[prediction.pattern_index],
            pattern_coordinate=prediction.pattern_coordinate,
            min_contrast=config.min_contrast,
            max_iterations=config.max_iterations,
        )
        if coarse_position is None:
            return _rejected(prediction, RejectionReason.MATCHING_FAILED)

        refined = self.fine_refiner.refine(
            samples,
            gray,
            gradient_field,
            config.window_half_extent,
            coarse_position,
            pattern_tr_pixel,
            prediction.local_pixel_tr_pattern,
            max_iterations=config.max_iterations,
        )
        if refined is None:
            return _rejected(prediction, RejectionReason.SYMMETRY_FAILED, coarse_position)

        position, cost = refined
        return RefinedFeature(
            detection=replace(prediction, position=position, final_cost=cost),
            coarse_position=coarse_position,
        )

    def refine_feature_detections(
        self,
        gray: np.ndarray,
        gradient_field: GradientField,
        predictions: Sequence[FeatureDetection],
        cancel: threading.Event | None = None,
    ) -> list[RefinedFeature]:
        """
        Refine every prediction, coarse matching first, then the fine refiner.

        A feature that cannot be refined gets final_cost = -1; it never
        affects the others.

        Args:
            gray: Grayscale image (h, w)
            gradient_field: Gradient field of gray
            predictions: Predicted features (not modified)
            cancel: Once set, features not yet started are rejected as cancelled

        Returns:
            One RefinedFeature per prediction, in prediction order
        """
        if not predictions:
            return []

        samples = self.sample_set.ensure_capacity(self.config.window_half_extent)

        def refine(prediction: FeatureDetection) -> RefinedFeature:
            if cancel is not None and cancel.is_set():
                return _rejected(prediction, RejectionReason.CANCELLED)
            return self._refine_feature(gray, gradient_field, samples, prediction)

        if self.config.num_workers == 1:
            refined = [refine(p) for p in predictions]
        else:
            with ThreadPoolExecutor(max_workers=self.config.num_workers) as executor:
                refined = list(executor.map(refine, predictions))

        cancelled = sum(1 for r in refined if r.rejection is RejectionReason.CANCELLED)
        if cancelled:
            logger.warning("Refinement cancelled for %d of %d features", cancelled, len(refined))
        logger.debug(
            "Refined %d features (%d rejected)",
            len(refined),
            sum(1 for r in refined if r.rejection is not None),
        )
        return refined

    # ------------------------------------------------------------------
    # Detection
    # ------------------------------------------------------------------

    def predict_and_detect_features(
        self,
        gray: np.ndarray,
        gradient_field: GradientField,
        predictions: list[FeatureDetection],
        observer: DetectionObserver | None = None,
        cancel: threading.Event | None = None,
    ) -> list[FeatureDetection]:
        """
        Refine and validate a batch of predictions.

        The predictions list is drained (cleared) once processed.

        Args:
            gray: Grayscale image (h, w)
            gradient_field: Gradient field of gray
            predictions: Predicted features; emptied on return
            observer: Overrides the detector's observer for this call
            cancel: Optional cancellation event for the refinement stage

        Returns:
            Accepted detections in prediction order
        """
        observer = observer or self.observer
        if observer is not None:
            for prediction in predictions:
                observer.on_prediction(prediction)

        refined = self.refine_feature_detections(gray, gradient_field, predictions, cancel)

        detections = validate_refined_features(
            predictions,
            refined,
            max_prediction_error=self.config.max_prediction_error,
            min_feature_distance=self.config.min_feature_distance,
            observer=observer,
        )

        predictions.clear()
        return detections

    def detect_features(
        self,
        image: np.ndarray,
        predictions: list[FeatureDetection] | None = None,
    ) -> tuple[list[FeatureDetection], np.ndarray]:
        """
        Run the full detection pipeline on one image.

        No predictor is wired in here: without predictions the batch is
        empty and nothing is detected.

        Args:
            image: BGR image (h, w, 3) or grayscale (h, w)
            predictions: Optional predicted features; drained on return

        Returns:
            (detections, visualization) with detections drawn on a BGR copy
        """
        if image.ndim == 2:
            visualization = cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
        else:
            visualization = image.copy()

        self.sample_set.ensure_capacity(self.config.window_half_extent)

        gray = to_grayscale(image)
        gradient_field = compute_gradient_field(gray)

        if predictions is None:
            predictions = []

        observer = CompositeObserver(VisualizationObserver(visualization), self.observer)
        detections = self.predict_and_detect_features(
            gray, gradient_field, predictions, observer=observer
        )

        logger.debug("Detected %d features", len(detections))
        return detections, visualization
