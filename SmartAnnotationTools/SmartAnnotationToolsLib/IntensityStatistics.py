"""Intensity statistics for the smart selection tools.

Provides validation of caller-supplied pixel buffers, local neighbourhood
statistics for adaptive thresholds, running region statistics, and the Sobel
gradient used for edge stopping.
"""

from __future__ import annotations

import logging
import math

import numpy as np
from scipy import ndimage

from .DataStructures import RegionStats

logger = logging.getLogger(__name__)


def validate_dimensions(width: int, height: int) -> None:
    """Check that image dimensions are positive integers.

    Raises:
        ValueError: If either dimension is not a positive integer.
    """
    for name, value in (("width", width), ("height", height)):
        if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
            raise ValueError(f"Image {name} must be an integer, got {value!r}")
        if value <= 0:
            raise ValueError(f"Image {name} must be positive, got {value}")


def as_pixel_array(pixels, width: int, height: int) -> np.ndarray:
    """View a caller-supplied pixel buffer as a ``(height, width)`` float array.

    The buffer is never modified. Flat buffers are interpreted row-major.

    Args:
        pixels: Flat sequence of ``width * height`` intensities or a 2D array
            of shape ``(height, width)``. Any numeric dtype.
        width: Image width in pixels.
        height: Image height in pixels.

    Returns:
        Float64 array of shape ``(height, width)``.

    Raises:
        ValueError: If the buffer is missing or does not match the dimensions.
    """
    if pixels is None:
        raise ValueError("Pixel buffer is required")

    validate_dimensions(width, height)

    image = np.asarray(pixels)
    if image.ndim == 2:
        if image.shape != (height, width):
            raise ValueError(
                f"Pixel buffer shape {image.shape} does not match (height, width) "
                f"= ({height}, {width})"
            )
    elif image.ndim == 1:
        if image.size != width * height:
            raise ValueError(
                f"Pixel buffer has {image.size} values, expected {width * height} "
                f"({width}x{height})"
            )
        image = image.reshape(height, width)
    else:
        raise ValueError(f"Pixel buffer must be 1D or 2D, got {image.ndim} dimensions")

    return image.astype(np.float64, copy=False)


def seed_to_pixel(seed_x: float, seed_y: float, width: int, height: int) -> tuple[int, int] | None:
    """Floor a seed position to pixel indices.

    Returns:
        ``(x, y)`` pixel indices, or None when the seed lies outside the image.
    """
    if not (0 <= seed_x < width and 0 <= seed_y < height):
        return None
    return int(math.floor(seed_x)), int(math.floor(seed_y))


def local_statistics(
    image: np.ndarray, center_x: int, center_y: int, radius: int
) -> tuple[float, float]:
    """Mean and standard deviation of a square neighbourhood.

    The window is clipped to the image. Non-finite pixels are ignored.

    Args:
        image: Image array (y, x).
        center_x: Window centre column.
        center_y: Window centre row.
        radius: Half-width of the window in pixels.

    Returns:
        Tuple of (mean, population std); zeros when the window holds no
        finite pixels.
    """
    height, width = image.shape

    x_start = max(0, center_x - radius)
    x_end = min(width, center_x + radius + 1)
    y_start = max(0, center_y - radius)
    y_end = min(height, center_y + radius + 1)

    roi = image[y_start:y_end, x_start:x_end]
    roi = roi[np.isfinite(roi)]
    if roi.size == 0:
        return 0.0, 0.0

    return float(np.mean(roi)), float(np.std(roi))


def sobel_gradient_magnitude(image: np.ndarray) -> np.ndarray:
    """Sobel gradient magnitude of a 2D image.

    Uses the unnormalised 3x3 Sobel kernel pair, so a step of height ``h``
    gives a magnitude of ``4 * h`` next to the step. Borders are padded by
    repeating the nearest pixel.

    Args:
        image: Image array (y, x).

    Returns:
        Float64 array of the same shape.
    """
    image = np.asarray(image, dtype=np.float64)
    gx = ndimage.sobel(image, axis=1, mode="nearest")
    gy = ndimage.sobel(image, axis=0, mode="nearest")
    return np.hypot(gx, gy)


class RunningStatistics:
    """Incrementally updated statistics of a growing pixel population.

    Uses Welford's update so the standard deviation stays accurate for
    large intensity offsets (e.g. CT values).
    """

    def __init__(self):
        self.count = 0
        self.mean = 0.0
        self._m2 = 0.0
        self.min = math.inf
        self.max = -math.inf

    def add(self, value: float) -> None:
        """Add one intensity to the population."""
        self.count += 1
        delta = value - self.mean
        self.mean += delta / self.count
        self._m2 += delta * (value - self.mean)
        if value < self.min:
            self.min = value
        if value > self.max:
            self.max = value

    @property
    def std(self) -> float:
        """Population standard deviation."""
        if self.count == 0:
            return 0.0
        return math.sqrt(max(0.0, self._m2 / self.count))

    def to_region_stats(self) -> RegionStats:
        """Snapshot as ``RegionStats``; zeroed when empty."""
        if self.count == 0:
            return RegionStats.empty()
        return RegionStats(
            mean_intensity=float(self.mean),
            std_intensity=self.std,
            min_intensity=float(self.min),
            max_intensity=float(self.max),
            area=self.count,
        )
