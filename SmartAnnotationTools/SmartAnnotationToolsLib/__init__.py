"""SmartAnnotationToolsLib - Smart annotation tools for medical image stacks.

This library provides the pixel-level selection tools (magic wand, region
growing) and the inter-slice contour interpolation used by the annotation
workspace, plus a ``ToolSession`` that ties them to an annotation store.
"""

from .ContourExtractor import extract_contour, mask_to_annotation_path
from .DataStructures import (
    Bounds,
    InterpolationResult,
    MagicWandResult,
    RegionGrowingResult,
    RegionStats,
    SliceAnnotation,
    SliceRange,
    SmartToolResult,
    SmartToolType,
)
from .GradientCache import GradientCache
from .MagicWand import magic_wand_select
from .MaskCodec import decode_rle, encode_rle
from .RegionGrowing import multi_seed_region_grow, region_grow
from .SliceInterpolator import (
    calculate_slice_z_coordinates,
    canvas_annotations_to_slice_annotations,
    interpolate_slices,
    resample_contour,
)
from .ToolConfig import (
    InterpolationConfig,
    InterpolationMethod,
    MagicWandConfig,
    RegionGrowingConfig,
    SmartToolsConfig,
)
from .ToolSession import (
    AnnotationStore,
    InMemoryAnnotationStore,
    MaskOperationMode,
    ToolSession,
)

__all__ = [
    "AnnotationStore",
    "Bounds",
    "GradientCache",
    "InMemoryAnnotationStore",
    "InterpolationConfig",
    "InterpolationMethod",
    "InterpolationResult",
    "MagicWandConfig",
    "MagicWandResult",
    "MaskOperationMode",
    "RegionGrowingConfig",
    "RegionGrowingResult",
    "RegionStats",
    "SliceAnnotation",
    "SliceRange",
    "SmartToolResult",
    "SmartToolType",
    "SmartToolsConfig",
    "ToolSession",
    "calculate_slice_z_coordinates",
    "canvas_annotations_to_slice_annotations",
    "decode_rle",
    "encode_rle",
    "extract_contour",
    "interpolate_slices",
    "magic_wand_select",
    "mask_to_annotation_path",
    "multi_seed_region_grow",
    "region_grow",
    "resample_contour",
]
