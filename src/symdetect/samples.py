"""
Deterministic sample offsets shared by all refinement calls.

Samples are drawn uniformly from the square [-1, 1)^2 with a fixed seed
(numpy PCG64), so a given sample count always yields the same offsets.
Refiners scale them by the window half extent to get pixel offsets.
"""

from __future__ import annotations

import logging

import numpy as np

logger = logging.getLogger(__name__)

SAMPLES_PER_WINDOW_PIXEL = 8.0


def sample_count_for(window_half_extent: int) -> int:
    """Number of samples needed for a (2w+1) x (2w+1) window."""
    side = 2 * window_half_extent + 1
    return int(SAMPLES_PER_WINDOW_PIXEL * side * side + 0.5)


def generate_samples(count: int, seed: int = 0) -> np.ndarray:
    """
    Draw count offsets uniformly from [-1, 1)^2.

    Args:
        count: Number of samples
        seed: Seed for numpy.random.default_rng

    Returns:
        (count, 2) float64 array
    """
    rng = np.random.default_rng(seed)
    return 2.0 * rng.random((count, 2)) - 1.0


class SampleSet:
    """
    Lazily grown sample set owned by a detector.

    The set is only ever replaced as a whole, never written in place, so
    arrays returned by ensure_capacity() stay valid while a batch using
    them is running.
    """

    def __init__(self, seed: int = 0):
        self.seed = seed
        self._samples = np.empty((0, 2), dtype=np.float64)
        self._samples.flags.writeable = False

    def __len__(self) -> int:
        return len(self._samples)

    @property
    def samples(self) -> np.ndarray:
        return self._samples

    def ensure_capacity(self, window_half_extent: int) -> np.ndarray:
        """
        Make sure enough samples exist for the window and return them.

        The returned array may hold more samples than the window needs if
        a larger window was requested earlier.

        Args:
            window_half_extent: Refinement window half size in pixels

        Returns:
            Read-only (n, 2) array of offsets
        """
        target = sample_count_for(window_half_extent)
        if len(self._samples) < target:
            samples = generate_samples(target, self.seed)
            samples.flags.writeable = False
            self._samples = samples
            logger.debug("Regenerated %d samples (seed=%d)", target, self.seed)
        return self._samples
