"""Slice interpolation between user-drawn key frames.

Given contours drawn on a few slices of a stack, generates contours for the
empty slices between each pair of consecutive key frames. Three blending
methods are available:

- **linear**: resample both contours to the same point count and blend XY
  point by point.
- **shape-based**: blend the centroids separately from the centred shapes, so
  a translating structure keeps its shape.
- **morphological**: shape-based blend rescaled so its mean radius moves
  linearly between the two key frames' mean radii.

Key frames are never modified; they are returned as the same objects.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence

import numpy as np

from .DataStructures import (
    InterpolationResult,
    SliceAnnotation,
    SliceRange,
    as_contour,
    empty_contour,
)
from .ToolConfig import InterpolationConfig, InterpolationMethod

logger = logging.getLogger(__name__)

MIN_RESAMPLE_POINTS = 64
SMOOTHING_WINDOW_SCALE = 5


def calculate_centroid(points: np.ndarray) -> np.ndarray:
    """Mean of the contour points; the origin for an empty contour."""
    points = np.asarray(points, dtype=np.float64)
    if len(points) == 0:
        return np.zeros(3)
    return points.mean(axis=0)


def resample_contour(points: np.ndarray, target_count: int) -> np.ndarray:
    """Resample a closed polygon to ``target_count`` points spaced evenly by arc length.

    The walk starts at the first point and follows the polygon including the
    closing segment back to the start.

    Args:
        points: ``(N, 3)`` contour.
        target_count: Number of points to produce.

    Returns:
        ``(target_count, 3)`` contour. A contour of zero length repeats its
        first point; an empty contour stays empty.
    """
    points = as_contour(points)
    if len(points) == 0 or target_count <= 0:
        return empty_contour()
    if len(points) == target_count:
        return points.copy()

    closed = np.vstack([points, points[:1]])
    segment_lengths = np.linalg.norm(np.diff(closed, axis=0), axis=1)
    total_length = float(segment_lengths.sum())

    if total_length == 0:
        return np.repeat(points[:1], target_count, axis=0)

    cumulative = np.concatenate(([0.0], np.cumsum(segment_lengths)))
    distances = np.arange(target_count) * (total_length / target_count)

    segment = np.searchsorted(cumulative, distances, side="right") - 1
    segment = np.clip(segment, 0, len(points) - 1)

    with np.errstate(divide="ignore", invalid="ignore"):
        t = (distances - cumulative[segment]) / segment_lengths[segment]
    t = np.nan_to_num(t)[:, np.newaxis]

    start = closed[segment]
    end = closed[segment + 1]
    return start + t * (end - start)


def _matched_pair(contour1: np.ndarray, contour2: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    count = max(len(contour1), len(contour2), MIN_RESAMPLE_POINTS)
    return resample_contour(contour1, count), resample_contour(contour2, count)


def linear_interpolate_contours(
    contour1: np.ndarray, contour2: np.ndarray, t: float, target_z: float
) -> np.ndarray:
    """Blend two contours point by point after resampling.

    Args:
        contour1: Contour at ``t = 0``.
        contour2: Contour at ``t = 1``.
        t: Blend parameter in [0, 1].
        target_z: Z coordinate of every output point.
    """
    resampled1, resampled2 = _matched_pair(contour1, contour2)
    blended = resampled1 + t * (resampled2 - resampled1)
    blended[:, 2] = target_z
    return blended


def shape_based_interpolate_contours(
    contour1: np.ndarray, contour2: np.ndarray, t: float, target_z: float
) -> np.ndarray:
    """Blend centroids and centred shapes separately."""
    contour1 = as_contour(contour1)
    contour2 = as_contour(contour2)

    centroid1 = calculate_centroid(contour1)
    centroid2 = calculate_centroid(contour2)
    centroid = centroid1 + t * (centroid2 - centroid1)

    resampled1, resampled2 = _matched_pair(contour1 - centroid1, contour2 - centroid2)
    shape = resampled1 + t * (resampled2 - resampled1)

    result = shape + centroid
    result[:, 2] = target_z
    return result


def _mean_radius(contour: np.ndarray) -> float:
    offsets = contour[:, :2] - calculate_centroid(contour)[:2]
    radius = float(np.mean(np.hypot(offsets[:, 0], offsets[:, 1])))
    return radius or 1.0


def morphological_interpolate_contours(
    contour1: np.ndarray,
    contour2: np.ndarray,
    t: float,
    target_z: float,
    smoothing_factor: float = 0.0,
) -> np.ndarray:
    """Shape-based blend with its size matched to the blended mean radius.

    The shape-based result is scaled about its centroid so that its mean
    distance from the centroid equals ``r1 + t * (r2 - r1)``, where ``r1`` and
    ``r2`` are the mean radii of the two source contours.
    """
    contour1 = as_contour(contour1)
    contour2 = as_contour(contour2)

    radius1 = _mean_radius(contour1)
    radius2 = _mean_radius(contour2)
    target_radius = radius1 + t * (radius2 - radius1)

    blended = shape_based_interpolate_contours(contour1, contour2, t, target_z)

    center = calculate_centroid(blended)[:2]
    offsets = blended[:, :2] - center
    current_radius = float(np.mean(np.hypot(offsets[:, 0], offsets[:, 1])))
    if current_radius > 0:
        blended[:, :2] = center + offsets * (target_radius / current_radius)

    return smooth_contour(blended, smoothing_factor)


def smooth_contour(points: np.ndarray, factor: float) -> np.ndarray:
    """Circular weighted moving average of XY; Z is kept.

    Window half-width is ``max(1, floor(factor * 5))`` with weights
    ``1 / (1 + |offset|)``. Contours with fewer than 3 points or a
    non-positive factor are returned unchanged.
    """
    points = as_contour(points)
    if len(points) < 3 or factor <= 0:
        return points

    window = max(1, int(factor * SMOOTHING_WINDOW_SCALE))

    summed = np.zeros((len(points), 2))
    weight_sum = 0.0
    for offset in range(-window, window + 1):
        weight = 1.0 / (1 + abs(offset))
        summed += weight * np.roll(points[:, :2], -offset, axis=0)
        weight_sum += weight

    smoothed = points.copy()
    smoothed[:, :2] = summed / weight_sum
    return smoothed


def find_key_frames(annotations: Iterable[SliceAnnotation]) -> list[SliceAnnotation]:
    """Key frames with enough points to describe an area, ordered by slice."""
    key_frames = [a for a in annotations if a.is_key_frame and a.point_count > 2]
    key_frames.sort(key=lambda a: a.slice_index)
    return key_frames


def _blend(
    method: InterpolationMethod,
    frame1: SliceAnnotation,
    frame2: SliceAnnotation,
    t: float,
    target_z: float,
    smoothing_factor: float,
) -> np.ndarray:
    if method == InterpolationMethod.MORPHOLOGICAL:
        return morphological_interpolate_contours(
            frame1.contour_points, frame2.contour_points, t, target_z, smoothing_factor
        )

    if method == InterpolationMethod.SHAPE_BASED:
        contour = shape_based_interpolate_contours(
            frame1.contour_points, frame2.contour_points, t, target_z
        )
    else:
        contour = linear_interpolate_contours(
            frame1.contour_points, frame2.contour_points, t, target_z
        )
    return smooth_contour(contour, smoothing_factor)


def interpolate_slices(
    key_frame_annotations: Iterable[SliceAnnotation],
    config: InterpolationConfig | None = None,
    slice_to_z: Mapping[int, float] | None = None,
) -> InterpolationResult:
    """Generate contours for the slices between consecutive key frames.

    Args:
        key_frame_annotations: Annotations to interpolate from. Only key
            frames with more than 2 points are used.
        config: Interpolation settings; defaults when None.
        slice_to_z: World Z per slice index. Slices without an entry use the
            Z of the lower key frame's first point.

    Returns:
        InterpolationResult with key frames and generated slices ordered by
        slice index.
    """
    config = config or InterpolationConfig()
    slice_to_z = slice_to_z or {}

    key_frames = find_key_frames(key_frame_annotations)

    if len(key_frames) < 2:
        first = key_frames[0].slice_index if key_frames else 0
        logger.debug(f"Interpolation needs 2 key frames, got {len(key_frames)}")
        return InterpolationResult(
            slice_annotations=key_frames,
            interpolated_count=0,
            slice_range=SliceRange(first, first),
        )

    annotations = [key_frames[0]]
    interpolated_count = 0
    skipped_gaps = 0

    for frame1, frame2 in zip(key_frames, key_frames[1:]):
        gap = frame2.slice_index - frame1.slice_index

        if gap > config.max_gap_slices + 1:
            skipped_gaps += 1
            annotations.append(frame2)
            continue

        fallback_z = float(frame1.contour_points[0, 2])
        for slice_index in range(frame1.slice_index + 1, frame2.slice_index):
            t = (slice_index - frame1.slice_index) / gap
            target_z = float(slice_to_z.get(slice_index, fallback_z))

            contour = _blend(config.method, frame1, frame2, t, target_z, config.smoothing_factor)
            annotations.append(SliceAnnotation(slice_index, contour, is_key_frame=False))
            interpolated_count += 1

        annotations.append(frame2)

    logger.debug(
        f"Interpolated {interpolated_count} slices between {len(key_frames)} key frames "
        f"(method={config.method.value}, skipped gaps={skipped_gaps})"
    )

    return InterpolationResult(
        slice_annotations=annotations,
        interpolated_count=interpolated_count,
        slice_range=SliceRange(key_frames[0].slice_index, key_frames[-1].slice_index),
    )


def _annotation_points(annotation) -> Sequence | None:
    if isinstance(annotation, Mapping):
        points = annotation.get("points_world")
        if points is None:
            points = annotation.get("pointsWorld")
        return points
    return annotation


def canvas_annotations_to_slice_annotations(
    annotations_by_slice: Mapping[int | str, Iterable],
) -> list[SliceAnnotation]:
    """Convert drawn canvas contours into key-frame annotations.

    Args:
        annotations_by_slice: Mapping of slice index to a list of drawn
            annotations. Each annotation is either a dict with a
            ``points_world`` (or ``pointsWorld``) entry or a plain point list.
            Numeric string keys are accepted.

    Returns:
        One key-frame annotation per contour with more than 2 points.
    """
    result = []
    for key, drawn in annotations_by_slice.items():
        try:
            slice_index = int(key)
        except (TypeError, ValueError):
            logger.warning(f"Skipping annotations with non-numeric slice key: {key!r}")
            continue

        for annotation in drawn or ():
            points = _annotation_points(annotation)
            if points is None or len(points) <= 2:
                continue
            result.append(SliceAnnotation(slice_index, points, is_key_frame=True))

    return result


def calculate_slice_z_coordinates(
    total_slices: int, slice_thickness: float, start_z: float = 0.0
) -> dict[int, float]:
    """Linear slice-index to world-Z map for a regularly spaced stack."""
    return {i: start_z + i * slice_thickness for i in range(total_slices)}
