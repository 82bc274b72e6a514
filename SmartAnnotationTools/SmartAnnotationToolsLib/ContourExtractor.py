"""Contour extraction from binary selection masks.

Turns the mask produced by the magic wand or region growing into an ordered
polygon of world-space points that the annotation canvas can store.

Two orderings are available:

- **angular** (default): boundary pixels sorted by angle around their centroid.
  Fast and correct for convex and star-shaped regions, but concave or
  ring-shaped regions can produce self-intersecting polygons.
- **trace**: boundary pixels ordered along the outer boundary found by
  marching squares (skimage.measure.find_contours). Follows concave outlines.
  Only the longest outline is kept: hole boundaries and the boundaries of
  smaller disconnected components (e.g. in a multi-seed union) are dropped.
"""

from __future__ import annotations

import logging
import math

import numpy as np
from scipy.spatial import cKDTree
from skimage import measure

from .DataStructures import PixelToWorld, empty_contour

logger = logging.getLogger(__name__)

MAX_CONTOUR_POINTS = 200
"""Upper bound on the number of points in an extracted contour."""

CONTOUR_METHODS = ("angular", "trace")


def _mask_as_2d(mask: np.ndarray, width: int, height: int) -> np.ndarray:
    mask = np.asarray(mask)
    if mask.size != width * height:
        raise ValueError(
            f"Mask has {mask.size} values, expected {width * height} ({width}x{height})"
        )
    return mask.reshape(height, width) != 0


def find_boundary_pixels(mask: np.ndarray) -> np.ndarray:
    """Find set pixels with at least one unset or out-of-bounds 4-neighbour.

    Args:
        mask: 2D boolean mask (y, x).

    Returns:
        ``(N, 2)`` integer array of (x, y) positions in row-major scan order.
    """
    padded = np.pad(mask, 1, mode="constant", constant_values=False)
    interior = padded[:-2, 1:-1] & padded[2:, 1:-1] & padded[1:-1, :-2] & padded[1:-1, 2:]
    ys, xs = np.nonzero(mask & ~interior)
    return np.column_stack((xs, ys))


def _angular_order(boundary: np.ndarray) -> np.ndarray:
    centroid = boundary.mean(axis=0)
    angles = np.arctan2(boundary[:, 1] - centroid[1], boundary[:, 0] - centroid[0])
    return boundary[np.argsort(angles, kind="stable")]


def _traced_order(mask: np.ndarray, boundary: np.ndarray) -> np.ndarray:
    # Pad so regions touching the image edge still yield closed contours
    padded = np.pad(mask, 1, mode="constant", constant_values=False).astype(np.float64)
    contours = measure.find_contours(padded, level=0.5)
    if not contours:
        return _angular_order(boundary)

    outline = max(contours, key=len)
    # (row, col) in padded space -> (x, y) in image space
    outline_xy = outline[:, ::-1] - 1.0

    distances, vertex_index = cKDTree(outline_xy).query(boundary)

    # Marching squares passes half a pixel from the boundary pixel centres;
    # anything further away belongs to a hole or another component.
    on_outline = distances <= 1.0
    if not on_outline.all():
        logger.debug(
            f"Traced contour dropped {int((~on_outline).sum())} boundary pixels "
            f"off the longest of {len(contours)} outlines"
        )
    boundary = boundary[on_outline]
    vertex_index = vertex_index[on_outline]

    return boundary[np.argsort(vertex_index, kind="stable")]


def simplify_contour(points: np.ndarray, max_points: int = MAX_CONTOUR_POINTS) -> np.ndarray:
    """Uniformly subsample a contour to at most ``max_points`` points.

    Uses a stride of ``ceil(count / max_points)``.
    """
    count = len(points)
    if count <= max_points:
        return points
    stride = math.ceil(count / max_points)
    return points[::stride]


def extract_contour(
    mask: np.ndarray,
    width: int,
    height: int,
    pixel_to_world: PixelToWorld,
    method: str = "angular",
) -> np.ndarray:
    """Convert a binary mask into an ordered world-space contour.

    Args:
        mask: Flat row-major mask of length ``width * height`` (or a 2D
            ``(height, width)`` mask). Non-zero means selected.
        width: Mask width in pixels.
        height: Mask height in pixels.
        pixel_to_world: Transform from pixel (x, y) to a world point. Pixels
            for which it returns None are dropped.
        method: ``"angular"`` or ``"trace"`` ordering.

    Returns:
        ``(N, 3)`` contour with ``N <= 200``; empty for an empty mask.

    Raises:
        ValueError: If the mask size does not match the dimensions or the
            method is unknown.
    """
    if method not in CONTOUR_METHODS:
        raise ValueError(f"Unknown contour method: {method!r}")

    binary = _mask_as_2d(mask, width, height)
    boundary = find_boundary_pixels(binary)
    logger.debug(f"Contour extraction: {len(boundary)} boundary pixels in {width}x{height} mask")

    if len(boundary) == 0:
        return empty_contour()

    if method == "trace":
        ordered = _traced_order(binary, boundary)
    else:
        ordered = _angular_order(boundary)

    world_points = []
    for x, y in ordered:
        point = pixel_to_world(int(x), int(y))
        if point is not None:
            world_points.append(tuple(float(v) for v in point))

    dropped = len(ordered) - len(world_points)
    if dropped:
        logger.warning(f"Dropped {dropped} contour points without a world mapping")

    if not world_points:
        return empty_contour()

    contour = simplify_contour(np.asarray(world_points, dtype=np.float64))
    logger.debug(f"Contour extraction: {len(contour)} contour points")
    return contour


def mask_to_annotation_path(
    mask: np.ndarray,
    width: int,
    height: int,
    pixel_to_world: PixelToWorld,
    method: str = "angular",
) -> np.ndarray:
    """Convert a selection mask into an annotation path (world contour)."""
    return extract_contour(mask, width, height, pixel_to_world, method=method)
