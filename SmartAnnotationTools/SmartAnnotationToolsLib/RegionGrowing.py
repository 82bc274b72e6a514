"""Seeded region growing.

Grows a region from a seed pixel, admitting 8-connected neighbours whose
intensity stays close to the running region mean and that do not sit on a
strong edge (Sobel gradient). Because candidates are compared against the
running mean, the accepted band drifts with the region and can follow smooth
intensity ramps that a fixed tolerance would cut off.

Candidates are served closest-to-mean first. New candidates queue up in
arrival order and the whole list is re-sorted every ``RESORT_INTERVAL``
iterations, which keeps the per-iteration cost low.
"""

from __future__ import annotations

import logging
import math
import time
from collections import deque
from collections.abc import Iterable, Mapping, Sequence

import numpy as np

from .ContourExtractor import extract_contour
from .DataStructures import PixelToWorld, RegionGrowingResult, RegionStats
from .IntensityStatistics import (
    RunningStatistics,
    as_pixel_array,
    local_statistics,
    seed_to_pixel,
    sobel_gradient_magnitude,
)
from .ToolConfig import RegionGrowingConfig

logger = logging.getLogger(__name__)

RESORT_INTERVAL = 100
LOCAL_STATS_RADIUS = 10
LOCAL_STD_MULTIPLIER = 2.0
REGION_STD_MULTIPLIER = 2.5
ADAPTIVE_MIN_REGION = 10

NEIGHBOR_OFFSETS = ((-1, 0), (1, 0), (0, -1), (0, 1), (-1, -1), (1, -1), (-1, 1), (1, 1))


class CandidateQueue:
    """Closest-first candidate list with periodic re-sorting.

    Entries are ``(difference, index)`` pairs. Sorted entries are served
    first; entries pushed since the last ``resort()`` follow in arrival order.
    """

    def __init__(self):
        # Descending by difference so the closest candidate pops from the end
        self._sorted: list[tuple[float, int]] = []
        self._pending: deque[tuple[float, int]] = deque()

    def __len__(self) -> int:
        return len(self._sorted) + len(self._pending)

    def push(self, difference: float, index: int) -> None:
        self._pending.append((difference, index))

    def pop(self) -> tuple[float, int]:
        if self._sorted:
            return self._sorted.pop()
        return self._pending.popleft()

    def resort(self) -> None:
        """Merge pending entries and sort everything by difference.

        Equal differences keep their serving order.
        """
        merged = self._sorted[::-1]
        merged.extend(self._pending)
        merged.sort(key=lambda entry: entry[0])
        merged.reverse()
        self._sorted = merged
        self._pending.clear()


def _neighbors(index: int, width: int, height: int) -> Iterable[int]:
    y, x = divmod(index, width)
    for dx, dy in NEIGHBOR_OFFSETS:
        nx = x + dx
        ny = y + dy
        if 0 <= nx < width and 0 <= ny < height:
            yield ny * width + nx


def _seed_position(seed) -> tuple[float, float]:
    if isinstance(seed, Mapping):
        if "x" not in seed or "y" not in seed:
            raise ValueError(f"Seed mapping needs 'x' and 'y' keys, got {sorted(seed)}")
        return seed["x"], seed["y"]
    try:
        seed_x, seed_y = seed
    except (TypeError, ValueError):
        raise ValueError(f"Seed must be an (x, y) pair, got {seed!r}") from None
    return seed_x, seed_y


def _check_gradient(gradient: np.ndarray | None, image: np.ndarray) -> np.ndarray:
    if gradient is None:
        return sobel_gradient_magnitude(image)
    gradient = np.asarray(gradient, dtype=np.float64)
    if gradient.size != image.size:
        raise ValueError(
            f"Gradient has {gradient.size} values, expected {image.size} for {image.shape} image"
        )
    return gradient.reshape(image.shape)


def region_grow(
    pixels,
    width: int,
    height: int,
    seed_x: float,
    seed_y: float,
    config: RegionGrowingConfig | None = None,
    pixel_to_world: PixelToWorld | None = None,
    gradient: np.ndarray | None = None,
) -> RegionGrowingResult:
    """Grow a region from a seed pixel.

    Args:
        pixels: Flat row-major buffer of ``width * height`` intensities or a
            ``(height, width)`` array. Never modified.
        width: Image width in pixels.
        height: Image height in pixels.
        seed_x: Seed column (floored).
        seed_y: Seed row (floored).
        config: Region growing settings; defaults when None.
        pixel_to_world: Optional transform used to extract a world contour.
        gradient: Optional precomputed Sobel gradient magnitude of the image
            (same size). Computed when None.

    Returns:
        RegionGrowingResult. Out-of-bounds seeds and regions smaller than
        ``min_region_size`` give an empty result with zeroed statistics.

    Raises:
        ValueError: If the pixel buffer, dimensions or gradient are malformed.
    """
    config = config or RegionGrowingConfig()
    image = as_pixel_array(pixels, width, height)

    seed = seed_to_pixel(seed_x, seed_y, width, height)
    if seed is None:
        logger.debug(f"Region growing seed ({seed_x}, {seed_y}) outside {width}x{height} image")
        return RegionGrowingResult.empty(width, height)

    start_time = time.perf_counter()
    gradient_values = _check_gradient(gradient, image).ravel().tolist()
    values = image.ravel().tolist()

    tolerance = config.intensity_tolerance
    threshold = tolerance
    if config.use_adaptive_threshold:
        _, local_std = local_statistics(image, seed[0], seed[1], LOCAL_STATS_RADIUS)
        threshold = max(tolerance, local_std * LOCAL_STD_MULTIPLIER)

    seed_index = seed[1] * width + seed[0]
    seed_value = values[seed_index]
    if not math.isfinite(seed_value):
        logger.debug(f"Region growing seed {seed} has non-finite intensity {seed_value}")
        return RegionGrowingResult.empty(width, height)

    mask = np.zeros(width * height, dtype=np.uint8)
    # Non-finite pixels never become candidates
    visited = bytearray((~np.isfinite(image.ravel())).astype(np.uint8).tobytes())
    mask[seed_index] = 1
    visited[seed_index] = 1

    region = RunningStatistics()
    region.add(seed_value)

    candidates = CandidateQueue()
    for neighbor in _neighbors(seed_index, width, height):
        if not visited[neighbor]:
            candidates.push(abs(values[neighbor] - seed_value), neighbor)
    candidates.resort()

    iterations = 0
    while candidates and iterations < config.max_iterations:
        iterations += 1
        if iterations % RESORT_INTERVAL == 0:
            candidates.resort()

        _, index = candidates.pop()
        if visited[index]:
            continue
        visited[index] = 1

        value = values[index]
        # Positive form so NaN intensities and gradients are rejected
        if not abs(value - region.mean) <= threshold:
            continue
        if not gradient_values[index] <= config.gradient_threshold:
            continue

        mask[index] = 1
        region.add(value)

        if config.use_adaptive_threshold and region.count > ADAPTIVE_MIN_REGION:
            threshold = max(tolerance, region.std * REGION_STD_MULTIPLIER)

        mean = region.mean
        for neighbor in _neighbors(index, width, height):
            if not visited[neighbor]:
                candidates.push(abs(values[neighbor] - mean), neighbor)

    elapsed = (time.perf_counter() - start_time) * 1000

    if region.count < config.min_region_size:
        logger.debug(
            f"Region growing discarded {region.count}-pixel region "
            f"(min_region_size={config.min_region_size}, {iterations} iterations)"
        )
        return RegionGrowingResult.empty(width, height, iterations=iterations)

    logger.debug(
        f"Region growing: {region.count} pixels from seed {seed} in {iterations} iterations "
        f"(threshold={threshold:.1f}, {elapsed:.1f}ms)"
    )

    contour_points = None
    if pixel_to_world is not None:
        contour_points = extract_contour(mask, width, height, pixel_to_world)

    return RegionGrowingResult(
        mask=mask,
        width=width,
        height=height,
        stats=region.to_region_stats(),
        contour_points=contour_points,
        iterations=iterations,
    )


def multi_seed_region_grow(
    pixels,
    width: int,
    height: int,
    seeds: Sequence[Sequence[float] | Mapping[str, float]],
    config: RegionGrowingConfig | None = None,
    pixel_to_world: PixelToWorld | None = None,
    gradient: np.ndarray | None = None,
) -> RegionGrowingResult:
    """Grow from several seeds and merge the regions.

    Each seed runs the single-seed algorithm independently. Pixels already
    claimed by an earlier seed stay claimed; statistics are recomputed over
    the union.

    Args:
        pixels: Pixel buffer, as for ``region_grow``.
        width: Image width in pixels.
        height: Image height in pixels.
        seeds: Sequence of (x, y) pairs or ``{"x": ..., "y": ...}`` mappings.
        config: Region growing settings; defaults when None.
        pixel_to_world: Optional transform used to extract a world contour.
        gradient: Optional precomputed gradient magnitude.

    Returns:
        Merged RegionGrowingResult; empty when there are no seeds.

    Raises:
        ValueError: If the pixel buffer is malformed or a seed is neither an
            (x, y) pair nor a mapping with x and y.
    """
    config = config or RegionGrowingConfig()
    image = as_pixel_array(pixels, width, height)

    if len(seeds) == 0:
        return RegionGrowingResult.empty(width, height)

    # Shared across seeds so the Sobel pass runs once
    gradient = _check_gradient(gradient, image)

    combined = np.zeros(width * height, dtype=np.uint8)
    iterations = 0
    for seed in seeds:
        seed_x, seed_y = _seed_position(seed)
        result = region_grow(image, width, height, seed_x, seed_y, config, gradient=gradient)
        combined |= result.mask
        iterations += result.iterations

    stats = RegionStats.from_values(image.ravel()[combined != 0])
    logger.debug(f"Multi-seed region growing: {stats.area} pixels from {len(seeds)} seeds")

    contour_points = None
    if pixel_to_world is not None and stats.area > 0:
        contour_points = extract_contour(combined, width, height, pixel_to_world)

    return RegionGrowingResult(
        mask=combined,
        width=width,
        height=height,
        stats=stats,
        contour_points=contour_points,
        iterations=iterations,
    )
