"""Gradient cache for repeated region growing on the same slice.

Clicking several seeds on one slice recomputes the same Sobel gradient each
time. The session keeps the most recent gradient keyed by the caller's slice
key and reuses it until the slice (or its shape) changes.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Hashable

import numpy as np

from .IntensityStatistics import sobel_gradient_magnitude

logger = logging.getLogger(__name__)


class GradientCache:
    """Single-entry cache of a slice gradient magnitude.

    The cached gradient is valid while the slice key and the image shape
    match. Callers pick a key that changes whenever the pixel data does (for
    example series UID plus slice index).
    """

    def __init__(self):
        self.gradient: np.ndarray | None = None
        self.slice_key: Hashable | None = None
        self.shape: tuple[int, ...] | None = None

        self.stats = CacheStats()

    def is_valid_for(self, slice_key: Hashable, shape: tuple[int, ...]) -> bool:
        """Check if the cached gradient belongs to this slice."""
        return self.gradient is not None and self.slice_key == slice_key and self.shape == shape

    def get_or_compute(
        self,
        image: np.ndarray,
        slice_key: Hashable,
        compute_func: Callable[[np.ndarray], np.ndarray] = sobel_gradient_magnitude,
    ) -> np.ndarray:
        """Get the cached gradient or compute and cache a new one.

        Args:
            image: Slice image (y, x).
            slice_key: Identifier of the slice the image came from.
            compute_func: Function computing the gradient magnitude.

        Returns:
            Gradient magnitude with the same shape as ``image``.
        """
        image = np.asarray(image)
        if self.is_valid_for(slice_key, image.shape):
            self.stats.hits += 1
            logger.debug(f"Gradient cache hit for slice {slice_key}")
            return self.gradient

        self.stats.misses += 1
        start_time = time.perf_counter()

        gradient = compute_func(image)

        elapsed = (time.perf_counter() - start_time) * 1000
        self.stats.total_compute_time_ms += elapsed
        logger.debug(f"Gradient cache miss for slice {slice_key}: {elapsed:.1f}ms")

        self.gradient = gradient
        self.slice_key = slice_key
        self.shape = image.shape

        return gradient

    def invalidate(self):
        """Drop the cached gradient (e.g. when the pixel data changed)."""
        self.gradient = None
        self.slice_key = None
        self.shape = None

    def clear(self):
        """Drop the cached gradient and reset statistics."""
        self.invalidate()
        self.stats.reset()


class CacheStats:
    """Statistics for cache performance monitoring."""

    def __init__(self):
        self.reset()

    def reset(self):
        self.hits = 0
        self.misses = 0
        self.total_compute_time_ms = 0.0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0

    def log_summary(self):
        """Log cache statistics summary."""
        total = self.hits + self.misses
        if total > 0:
            logger.debug(f"Gradient cache hit rate: {self.hit_rate:.1%} ({self.hits}/{total})")
        if self.total_compute_time_ms > 0:
            logger.debug(f"Total gradient computation time: {self.total_compute_time_ms:.1f}ms")
