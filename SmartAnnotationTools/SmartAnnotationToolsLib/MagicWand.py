"""Magic wand selection.

Tolerance-based flood fill from a clicked seed pixel. Every admitted pixel is
compared against the seed's own intensity, so the accepted band never drifts
(unlike region growing, which follows the running region mean).
"""

from __future__ import annotations

import logging
import time

import numpy as np
from scipy import ndimage

from .ContourExtractor import extract_contour
from .DataStructures import Bounds, MagicWandResult, PixelToWorld
from .IntensityStatistics import as_pixel_array, seed_to_pixel
from .ToolConfig import MagicWandConfig

logger = logging.getLogger(__name__)

FOUR_CONNECTED_OFFSETS = ((-1, 0), (1, 0), (0, -1), (0, 1))
EIGHT_CONNECTED_OFFSETS = FOUR_CONNECTED_OFFSETS + ((-1, -1), (1, -1), (-1, 1), (1, 1))

# 3x3 structuring element for edge smoothing
_SMOOTHING_STRUCTURE = np.ones((3, 3), dtype=bool)


def neighbor_offsets(eight_connected: bool) -> tuple[tuple[int, int], ...]:
    """Return (dx, dy) neighbour offsets for the requested connectivity."""
    return EIGHT_CONNECTED_OFFSETS if eight_connected else FOUR_CONNECTED_OFFSETS


def _flood_fill(
    values: list[float],
    width: int,
    height: int,
    seed_index: int,
    config: MagicWandConfig,
) -> tuple[np.ndarray, int]:
    """Explicit-stack depth-first flood fill.

    Returns:
        Tuple of (flat uint8 mask, number of selected pixels).
    """
    mask = np.zeros(width * height, dtype=np.uint8)
    visited = bytearray(width * height)
    offsets = neighbor_offsets(config.eight_connected)

    seed_intensity = values[seed_index]
    tolerance = config.tolerance
    max_pixels = config.max_pixels

    stack = [seed_index]
    pixel_count = 0

    while stack and pixel_count < max_pixels:
        index = stack.pop()
        if visited[index]:
            continue
        visited[index] = 1

        # Positive form so NaN pixels are rejected
        if not abs(values[index] - seed_intensity) <= tolerance:
            continue

        mask[index] = 1
        pixel_count += 1

        y, x = divmod(index, width)
        for dx, dy in offsets:
            nx = x + dx
            ny = y + dy
            if 0 <= nx < width and 0 <= ny < height:
                neighbor = ny * width + nx
                if not visited[neighbor]:
                    stack.append(neighbor)

    return mask, pixel_count


def smooth_mask_edges(mask: np.ndarray, width: int, height: int) -> np.ndarray:
    """Remove single-pixel boundary noise with one erosion and one dilation.

    Uses a 3x3 structuring element. Pixels outside the image count as unset
    during erosion. The result is always a subset of the input.

    Args:
        mask: Flat row-major mask.
        width: Mask width.
        height: Mask height.

    Returns:
        New flat ``uint8`` mask.
    """
    binary = np.asarray(mask).reshape(height, width) != 0
    eroded = ndimage.binary_erosion(binary, structure=_SMOOTHING_STRUCTURE, border_value=0)
    opened = ndimage.binary_dilation(eroded, structure=_SMOOTHING_STRUCTURE)
    return opened.astype(np.uint8).ravel()


def magic_wand_select(
    pixels,
    width: int,
    height: int,
    seed_x: float,
    seed_y: float,
    config: MagicWandConfig | None = None,
    pixel_to_world: PixelToWorld | None = None,
) -> MagicWandResult:
    """Select the connected region of pixels similar to the seed.

    Args:
        pixels: Flat row-major buffer of ``width * height`` intensities or a
            ``(height, width)`` array. Never modified.
        width: Image width in pixels.
        height: Image height in pixels.
        seed_x: Seed column (floored).
        seed_y: Seed row (floored).
        config: Magic wand settings; defaults when None.
        pixel_to_world: Optional transform used to extract a world contour.

    Returns:
        MagicWandResult. A seed outside the image gives an empty result.

    Raises:
        ValueError: If the pixel buffer or dimensions are malformed.
    """
    config = config or MagicWandConfig()
    image = as_pixel_array(pixels, width, height)

    seed = seed_to_pixel(seed_x, seed_y, width, height)
    if seed is None:
        logger.debug(f"Magic wand seed ({seed_x}, {seed_y}) outside {width}x{height} image")
        return MagicWandResult.empty(width, height)

    start_time = time.perf_counter()
    seed_index = seed[1] * width + seed[0]

    mask, pixel_count = _flood_fill(image.ravel().tolist(), width, height, seed_index, config)

    if config.smooth_edges and pixel_count > 0:
        smoothed = smooth_mask_edges(mask, width, height)
        if smoothed[seed_index]:
            mask = smoothed
            pixel_count = int(np.count_nonzero(mask))
        else:
            # Structure is thinner than the structuring element; opening would erase it
            logger.debug("Magic wand smoothing skipped: opening removes the seed pixel")

    bounds = Bounds.from_mask(mask, width, height) if pixel_count > 0 else Bounds()

    contour_points = None
    if pixel_to_world is not None and pixel_count > 0:
        contour_points = extract_contour(mask, width, height, pixel_to_world)

    elapsed = (time.perf_counter() - start_time) * 1000
    logger.debug(
        f"Magic wand: {pixel_count} pixels from seed {seed} "
        f"(tolerance={config.tolerance}, {elapsed:.1f}ms)"
    )

    return MagicWandResult(
        mask=mask,
        width=width,
        height=height,
        bounds=bounds,
        pixel_count=pixel_count,
        contour_points=contour_points,
    )
