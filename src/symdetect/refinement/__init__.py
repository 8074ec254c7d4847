"""
Refinement module for symdetect.

All functions are pure - they take arrays and return arrays or None.
No threading, no state management. Caller handles concurrency.
"""

from .matching import (
    refine_feature_by_matching,
)

from .symmetry import (
    FINE_REFINERS,
    FineRefiner,
    GradientMagnitudeRefiner,
    GradientsXYRefiner,
    IntensitiesRefiner,
    NoRefinementRefiner,
    create_fine_refiner,
    refine_feature_by_symmetry,
)

__all__ = [
    # Coarse
    "refine_feature_by_matching",
    # Fine
    "refine_feature_by_symmetry",
    "FineRefiner",
    "GradientsXYRefiner",
    "GradientMagnitudeRefiner",
    "IntensitiesRefiner",
    "NoRefinementRefiner",
    "FINE_REFINERS",
    "create_fine_refiner",
]
