"""Value types shared by the smart annotation tools.

Every result returned by the selection and interpolation tools is one of the
variants collected in ``SmartToolResult``. Each variant carries a ``tool_type``
tag so that consumers dispatch on it rather than probing for fields.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Optional, Union

import numpy as np

from .MaskCodec import encode_rle

WorldPoint = tuple[float, float, float]
"""A point in the viewer's 3D world space."""

PixelToWorld = Callable[[int, int], Optional[Sequence[float]]]
"""Pixel (x, y) to world transform. Returning None drops that pixel."""


class SmartToolType(Enum):
    """Smart tools available in the annotation workspace."""

    MAGIC_WAND = "magic-wand"
    REGION_GROWING = "region-growing"
    INTERPOLATION = "interpolation"
    NONE = "none"


def empty_contour() -> np.ndarray:
    """Return a contour with no points."""
    return np.zeros((0, 3), dtype=np.float64)


def as_contour(points) -> np.ndarray:
    """Convert a point sequence to an ``(N, 3)`` float contour.

    Args:
        points: Sequence of (x, y, z) points, an ``(N, 3)`` array, or None.

    Returns:
        Contour array. Empty input gives an empty ``(0, 3)`` contour.

    Raises:
        ValueError: If the points are not three-dimensional.
    """
    if points is None:
        return empty_contour()

    contour = np.asarray(points, dtype=np.float64)
    if contour.size == 0:
        return empty_contour()

    if contour.ndim != 2 or contour.shape[1] != 3:
        raise ValueError(f"Contour points must have shape (N, 3), got {contour.shape}")

    return contour


@dataclass(frozen=True)
class Bounds:
    """Axis-aligned bounding box of a mask in pixel coordinates."""

    min_x: int = 0
    min_y: int = 0
    max_x: int = 0
    max_y: int = 0

    @classmethod
    def from_mask(cls, mask: np.ndarray, width: int, height: int) -> Bounds:
        """Compute the bounding box of the set pixels of a flat mask.

        Returns all-zero bounds for an empty mask.
        """
        ys, xs = np.nonzero(np.asarray(mask).reshape(height, width))
        if len(xs) == 0:
            return cls()
        return cls(int(xs.min()), int(ys.min()), int(xs.max()), int(ys.max()))

    @property
    def width(self) -> int:
        """Width of the box in pixels (inclusive)."""
        return self.max_x - self.min_x + 1

    @property
    def height(self) -> int:
        """Height of the box in pixels (inclusive)."""
        return self.max_y - self.min_y + 1

    def to_dict(self) -> dict:
        return {
            "min_x": self.min_x,
            "min_y": self.min_y,
            "max_x": self.max_x,
            "max_y": self.max_y,
        }


@dataclass(frozen=True)
class RegionStats:
    """Intensity statistics of a selected pixel population.

    ``area == 0`` is the "no selection" sentinel; all other fields are then zero.
    """

    mean_intensity: float = 0.0
    std_intensity: float = 0.0
    min_intensity: float = 0.0
    max_intensity: float = 0.0
    area: int = 0

    @classmethod
    def empty(cls) -> RegionStats:
        """Return zeroed statistics."""
        return cls()

    @classmethod
    def from_values(cls, values: np.ndarray) -> RegionStats:
        """Compute statistics over a set of intensities (population std)."""
        values = np.asarray(values, dtype=np.float64).ravel()
        if values.size == 0:
            return cls()
        return cls(
            mean_intensity=float(np.mean(values)),
            std_intensity=float(np.std(values)),
            min_intensity=float(np.min(values)),
            max_intensity=float(np.max(values)),
            area=int(values.size),
        )

    @property
    def is_empty(self) -> bool:
        return self.area == 0

    def to_dict(self) -> dict:
        return {
            "mean_intensity": self.mean_intensity,
            "std_intensity": self.std_intensity,
            "min_intensity": self.min_intensity,
            "max_intensity": self.max_intensity,
            "area": self.area,
        }


def _contour_to_list(contour: Optional[np.ndarray]) -> Optional[list[list[float]]]:
    if contour is None:
        return None
    return [[float(v) for v in point] for point in contour]


@dataclass(eq=False)
class MagicWandResult:
    """Selection produced by the magic wand."""

    tool_type: ClassVar[SmartToolType] = SmartToolType.MAGIC_WAND

    mask: np.ndarray
    """Flat row-major ``uint8`` mask (1 = selected)."""

    width: int
    height: int

    bounds: Bounds = field(default_factory=Bounds)
    """Bounding box of the selection; zero when nothing is selected."""

    pixel_count: int = 0
    """Number of selected pixels."""

    contour_points: Optional[np.ndarray] = None
    """World-space contour, only present when a pixel-to-world transform was given."""

    @classmethod
    def empty(cls, width: int, height: int) -> MagicWandResult:
        """Return a result with nothing selected."""
        return cls(mask=np.zeros(width * height, dtype=np.uint8), width=width, height=height)

    @property
    def mask_2d(self) -> np.ndarray:
        """Mask viewed as ``(height, width)``."""
        return self.mask.reshape(self.height, self.width)

    def to_dict(self) -> dict:
        """Serialize in the shape used by remote smart-tool services."""
        return {
            "success": True,
            "tool_type": self.tool_type.value,
            "mask_rle": encode_rle(self.mask),
            "mask_shape": [self.height, self.width],
            "bounds": self.bounds.to_dict(),
            "pixel_count": self.pixel_count,
            "contour": _contour_to_list(self.contour_points),
        }


@dataclass(eq=False)
class RegionGrowingResult:
    """Region produced by seeded region growing."""

    tool_type: ClassVar[SmartToolType] = SmartToolType.REGION_GROWING

    mask: np.ndarray
    """Flat row-major ``uint8`` mask (1 = in region)."""

    width: int
    height: int

    stats: RegionStats = field(default_factory=RegionStats)
    """Statistics of the grown region; zeroed when no region was accepted."""

    contour_points: Optional[np.ndarray] = None
    """World-space contour, only present when a pixel-to-world transform was given."""

    iterations: int = 0
    """Number of candidate dequeues performed."""

    @classmethod
    def empty(cls, width: int, height: int, iterations: int = 0) -> RegionGrowingResult:
        """Return a result with no region and zeroed statistics."""
        return cls(
            mask=np.zeros(width * height, dtype=np.uint8),
            width=width,
            height=height,
            iterations=iterations,
        )

    @property
    def pixel_count(self) -> int:
        return self.stats.area

    @property
    def mask_2d(self) -> np.ndarray:
        """Mask viewed as ``(height, width)``."""
        return self.mask.reshape(self.height, self.width)

    def to_dict(self) -> dict:
        """Serialize in the shape used by remote smart-tool services."""
        return {
            "success": True,
            "tool_type": self.tool_type.value,
            "mask_rle": encode_rle(self.mask),
            "mask_shape": [self.height, self.width],
            "stats": self.stats.to_dict(),
            "iterations": self.iterations,
            "contour": _contour_to_list(self.contour_points),
        }


@dataclass(eq=False)
class SliceAnnotation:
    """A contour annotation on one slice of a stack.

    Key frames are user-drawn and authoritative. Non-key-frame annotations are
    derived by interpolation and may be overwritten.
    """

    slice_index: int
    contour_points: np.ndarray
    is_key_frame: bool = False

    def __post_init__(self):
        self.contour_points = as_contour(self.contour_points)

    @property
    def point_count(self) -> int:
        return len(self.contour_points)


@dataclass(frozen=True)
class SliceRange:
    """Inclusive range of slice indices covered by an interpolation."""

    start: int = 0
    end: int = 0


@dataclass(eq=False)
class InterpolationResult:
    """Key frames plus the contours generated between them."""

    tool_type: ClassVar[SmartToolType] = SmartToolType.INTERPOLATION

    slice_annotations: list[SliceAnnotation] = field(default_factory=list)
    """Key frames and interpolated slices, ordered by slice index."""

    interpolated_count: int = 0
    """Number of generated (non-key-frame) slices."""

    slice_range: SliceRange = field(default_factory=SliceRange)

    @property
    def interpolated_annotations(self) -> list[SliceAnnotation]:
        """Only the generated slices."""
        return [a for a in self.slice_annotations if not a.is_key_frame]

    @property
    def key_frames(self) -> list[SliceAnnotation]:
        return [a for a in self.slice_annotations if a.is_key_frame]

    def to_dict(self) -> dict:
        """Serialize in the shape used by remote smart-tool services."""
        return {
            "success": True,
            "tool_type": self.tool_type.value,
            "slices_generated": self.interpolated_count,
            "contours": {
                a.slice_index: _contour_to_list(a.contour_points)
                for a in self.interpolated_annotations
            },
            "slice_range": {"start": self.slice_range.start, "end": self.slice_range.end},
        }


SmartToolResult = Union[MagicWandResult, RegionGrowingResult, InterpolationResult]
"""Any result a smart tool can produce."""
