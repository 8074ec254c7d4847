"""
Turn refined predictions into accepted detections.

Runs single-threaded in prediction order: deduplication is greedy, so the
first accepted detection wins over any later one close to it.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import replace

import numpy as np

from .observer import DetectionObserver
from .types import FeatureDetection, RefinedFeature, RejectionReason

logger = logging.getLogger(__name__)


def validate_refined_features(
    predictions: Sequence[FeatureDetection],
    refined: Sequence[RefinedFeature],
    max_prediction_error: float,
    min_feature_distance: float = 5.0,
    observer: DetectionObserver | None = None,
) -> list[FeatureDetection]:
    """
    Filter refined features by distance to prediction and to each other.

    Pattern identity of an accepted detection is taken from its prediction,
    never from the refinement output.

    Args:
        predictions: Original predictions
        refined: Refinement output, paired with predictions by index
        max_prediction_error: Max distance (pixels) from the prediction
        min_feature_distance: Min distance (pixels) between accepted detections
        observer: Optional observer notified of each decision

    Returns:
        Accepted detections in prediction order

    Raises:
        ValueError: If predictions and refined differ in length
    """
    if len(predictions) != len(refined):
        raise ValueError(
            f"Got {len(refined)} refined features for {len(predictions)} predictions"
        )

    max_error_sq = max_prediction_error * max_prediction_error
    min_distance_sq = min_feature_distance * min_feature_distance

    detections: list[FeatureDetection] = []
    accepted_positions: list[np.ndarray] = []

    def reject(feature: FeatureDetection, reason: RejectionReason) -> None:
        if observer is not None:
            observer.on_rejection(feature, reason)

    for prediction, item in zip(predictions, refined):
        feature = item.detection

        # Features discarded during refinement carry a negative cost
        if feature.final_cost < 0:
            reject(feature, item.rejection or RejectionReason.SYMMETRY_FAILED)
            continue

        # Comparisons are written so that NaN positions are rejected
        error_sq = float(np.sum((feature.position - prediction.position) ** 2))
        if not error_sq <= max_error_sq:
            reject(feature, RejectionReason.TOO_FAR_FROM_PREDICTION)
            continue

        if accepted_positions:
            distances_sq = np.sum((np.asarray(accepted_positions) - feature.position) ** 2, axis=1)
            if not np.all(distances_sq >= min_distance_sq):
                reject(feature, RejectionReason.TOO_CLOSE_TO_EXISTING)
                continue

        detection = replace(
            feature,
            pattern_coordinate=prediction.pattern_coordinate,
            local_pixel_tr_pattern=prediction.local_pixel_tr_pattern,
            pattern_index=prediction.pattern_index,
        )
        detections.append(detection)
        accepted_positions.append(detection.position)

        if observer is not None:
            observer.on_acceptance(detection)

    logger.debug("Accepted %d of %d refined features", len(detections), len(refined))
    return detections
