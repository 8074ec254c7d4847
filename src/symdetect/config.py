"""
Configuration loading/saving.

Pure functions operating on dataclasses.
- TOML for detector configuration ([detector] table)
"""

from __future__ import annotations

from pathlib import Path

import rtoml

from .types import DetectorConfig, RefinementMode


class ConfigurationError(ValueError):
    """The detector is misconfigured (e.g. unknown refinement mode)."""


def parse_refinement_mode(value: RefinementMode | str) -> RefinementMode:
    """
    Resolve a refinement mode from an enum member or its string value.

    Raises:
        ConfigurationError: If the value names no supported mode
    """
    if isinstance(value, RefinementMode):
        return value
    try:
        return RefinementMode(str(value).lower())
    except ValueError:
        supported = ", ".join(mode.value for mode in RefinementMode)
        raise ConfigurationError(
            f"Unsupported feature refinement type: {value!r} (expected one of {supported})"
        ) from None


# ============================================================================
# TOML Detector Configuration
# ============================================================================


def load_detector_config(path: Path) -> DetectorConfig:
    """
    Load detector configuration from TOML file.

    Missing keys fall back to DetectorConfig defaults.

    Args:
        path: Path to a TOML file with a [detector] table

    Returns:
        DetectorConfig dataclass

    Raises:
        ConfigurationError: If the refinement mode is not recognized
    """
    data = rtoml.load(path)
    section = data.get("detector", {})
    defaults = DetectorConfig()

    num_workers = section.get("num_workers", 0)

    return DetectorConfig(
        window_half_extent=int(section.get("window_half_extent", defaults.window_half_extent)),
        refinement=parse_refinement_mode(section.get("refinement", defaults.refinement)),
        min_feature_distance=float(
            section.get("min_feature_distance", defaults.min_feature_distance)
        ),
        max_prediction_error_factor=float(
            section.get("max_prediction_error_factor", defaults.max_prediction_error_factor)
        ),
        min_contrast=float(section.get("min_contrast", defaults.min_contrast)),
        max_iterations=int(section.get("max_iterations", defaults.max_iterations)),
        num_workers=int(num_workers) if num_workers else None,  # TOML has no null
        sample_seed=int(section.get("sample_seed", defaults.sample_seed)),
    )


def save_detector_config(config: DetectorConfig, path: Path) -> None:
    """
    Save detector configuration to TOML file.

    Args:
        config: DetectorConfig dataclass
        path: Path to save the TOML file
    """
    data = {
        "detector": {
            "window_half_extent": config.window_half_extent,
            "refinement": parse_refinement_mode(config.refinement).value,
            "min_feature_distance": config.min_feature_distance,
            "max_prediction_error_factor": config.max_prediction_error_factor,
            "min_contrast": config.min_contrast,
            "max_iterations": config.max_iterations,
            "num_workers": config.num_workers or 0,
            "sample_seed": config.sample_seed,
        }
    }

    # Ensure parent directory exists
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w") as f:
        rtoml.dump(data, f)
