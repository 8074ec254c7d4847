# symdetect - subpixel feature detection for calibration patterns

__version__ = "0.1.0"

# Core types
from symdetect.types import (
    DetectorConfig,
    FeatureDetection,
    GradientField,
    RefinedFeature,
    RefinementMode,
    RejectionReason,
)

# Configuration
from symdetect.config import (
    ConfigurationError,
    load_detector_config,
    parse_refinement_mode,
    save_detector_config,
)

# Images and samples
from symdetect.imaging import (
    compute_gradient_field,
    to_grayscale,
)
from symdetect.samples import SampleSet, sample_count_for

# Patterns
from symdetect.pattern import (
    CheckerboardPattern,
    make_local_transform,
    render_checkerboard,
)

# Refinement
from symdetect.refinement import (
    FineRefiner,
    create_fine_refiner,
)

# Detection
from symdetect.observer import DetectionObserver, VisualizationObserver
from symdetect.validation import validate_refined_features
from symdetect.detector import FeatureDetector

__all__ = [
    # Core types
    "DetectorConfig",
    "FeatureDetection",
    "GradientField",
    "RefinedFeature",
    "RefinementMode",
    "RejectionReason",
    # Configuration
    "ConfigurationError",
    "load_detector_config",
    "parse_refinement_mode",
    "save_detector_config",
    # Images and samples
    "compute_gradient_field",
    "to_grayscale",
    "SampleSet",
    "sample_count_for",
    # Patterns
    "CheckerboardPattern",
    "make_local_transform",
    "render_checkerboard",
    # Refinement
    "FineRefiner",
    "create_fine_refiner",
    # Detection
    "DetectionObserver",
    "VisualizationObserver",
    "validate_refined_features",
    "FeatureDetector",
]
