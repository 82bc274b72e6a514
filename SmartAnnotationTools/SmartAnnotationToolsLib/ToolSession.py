"""Smart tool session: tool selection, configuration and result hand-off.

A ``ToolSession`` belongs to one annotation workspace. It remembers which
smart tool is active and with which settings, runs the selection and
interpolation algorithms, and writes their contours to an annotation store
supplied by the host application.

Invocations are serialised per session: a call made while another is still
processing is rejected. Algorithm failures are logged and recorded in
``session.error`` instead of propagating to the UI layer.
"""

from __future__ import annotations

import dataclasses
import logging
import uuid
from collections.abc import Callable, Iterable, Mapping
from enum import Enum
from typing import Any, Protocol

import numpy as np

from .DataStructures import (
    InterpolationResult,
    MagicWandResult,
    PixelToWorld,
    RegionGrowingResult,
    SmartToolResult,
    SmartToolType,
)
from .GradientCache import GradientCache
from .IntensityStatistics import as_pixel_array
from .MagicWand import magic_wand_select
from .RegionGrowing import region_grow
from .SliceInterpolator import (
    calculate_slice_z_coordinates,
    canvas_annotations_to_slice_annotations,
    interpolate_slices,
)
from .ToolConfig import (
    InterpolationConfig,
    MagicWandConfig,
    RegionGrowingConfig,
    SmartToolsConfig,
)

logger = logging.getLogger(__name__)

ADD_COLOR = "rgba(144, 238, 144, 0.4)"
SUBTRACT_COLOR = "rgba(255, 100, 100, 0.4)"

MIN_INTERPOLATION_KEY_FRAMES = 2


class MaskOperationMode(Enum):
    """How a new selection combines with the annotations already on a slice."""

    REPLACE = "replace"
    ADD = "add"
    UNION = "union"
    SUBTRACT = "subtract"
    INTERSECT = "intersect"
    XOR = "xor"
    NONE = "none"


class AnnotationStore(Protocol):
    """Per-slice annotation storage owned by the host application."""

    def get(self, slice_index: int) -> list[dict]: ...

    def set(self, slice_index: int, annotations: list[dict]) -> None: ...


class InMemoryAnnotationStore:
    """Dictionary-backed ``AnnotationStore``."""

    def __init__(self):
        self._annotations: dict[int, list[dict]] = {}

    def get(self, slice_index: int) -> list[dict]:
        return list(self._annotations.get(slice_index, []))

    def set(self, slice_index: int, annotations: list[dict]) -> None:
        self._annotations[slice_index] = list(annotations)

    def slices(self) -> list[int]:
        return sorted(self._annotations)

    def as_dict(self) -> dict[int, list[dict]]:
        return {k: list(v) for k, v in self._annotations.items()}


class ToolSession:
    """State and entry points of the smart annotation tools for one workspace."""

    def __init__(
        self,
        store: AnnotationStore | None = None,
        config: SmartToolsConfig | None = None,
    ):
        self.store = store if store is not None else InMemoryAnnotationStore()
        self.gradient_cache = GradientCache()
        self._initial_config = config or SmartToolsConfig()
        self.reset()

    def reset(self):
        """Restore the initial tool selection, flags and configuration."""
        self.active_tool = SmartToolType.NONE
        self.ai_mode_enabled = False
        self.ai_service_available = False

        self.magic_wand_config: MagicWandConfig = self._initial_config.magic_wand
        self.region_growing_config: RegionGrowingConfig = self._initial_config.region_growing
        self.interpolation_config: InterpolationConfig = self._initial_config.interpolation
        self.mask_operation_mode = MaskOperationMode.REPLACE

        self.is_processing = False
        self.last_result: SmartToolResult | None = None
        self.error: str | None = None

        self.gradient_cache.clear()

    # Tool selection and flags

    def set_active_tool(self, tool: SmartToolType | str):
        self.active_tool = SmartToolType(tool)
        self.error = None
        logger.debug(f"Active smart tool: {self.active_tool.value}")

    @property
    def is_smart_tool_active(self) -> bool:
        return self.active_tool != SmartToolType.NONE

    def set_ai_mode(self, enabled: bool):
        self.ai_mode_enabled = bool(enabled)

    def set_ai_available(self, available: bool):
        self.ai_service_available = bool(available)

    def set_mask_operation_mode(self, mode: MaskOperationMode | str):
        self.mask_operation_mode = MaskOperationMode(mode)

    # Configuration

    def update_magic_wand_config(self, **changes) -> MagicWandConfig:
        """Apply a partial update, e.g. ``update_magic_wand_config(tolerance=10)``."""
        self.magic_wand_config = dataclasses.replace(self.magic_wand_config, **changes)
        return self.magic_wand_config

    def update_region_growing_config(self, **changes) -> RegionGrowingConfig:
        self.region_growing_config = dataclasses.replace(self.region_growing_config, **changes)
        return self.region_growing_config

    def update_interpolation_config(self, **changes) -> InterpolationConfig:
        self.interpolation_config = dataclasses.replace(self.interpolation_config, **changes)
        return self.interpolation_config

    def apply_config(self, config: SmartToolsConfig):
        """Replace all three tool configurations."""
        self.magic_wand_config = config.magic_wand
        self.region_growing_config = config.region_growing
        self.interpolation_config = config.interpolation

    @property
    def config(self) -> SmartToolsConfig:
        return SmartToolsConfig(
            magic_wand=self.magic_wand_config,
            region_growing=self.region_growing_config,
            interpolation=self.interpolation_config,
        )

    # Invocation

    def _invoke(self, name: str, func: Callable[[], Any]) -> Any:
        if self.is_processing:
            logger.warning(f"{name} rejected: another smart tool invocation is in progress")
            return None

        self.is_processing = True
        self.error = None
        try:
            result = func()
        except Exception as e:
            logger.exception(f"{name} failed: {e}")
            self.error = str(e) or f"{name} failed"
            return None
        finally:
            self.is_processing = False

        self.last_result = result
        return result

    def execute_magic_wand(
        self,
        pixels,
        width: int,
        height: int,
        x: float,
        y: float,
        pixel_to_world: PixelToWorld | None = None,
    ) -> MagicWandResult | None:
        """Run the magic wand with the session's configuration.

        Returns:
            The result, or None if the invocation was rejected or failed.
        """
        return self._invoke(
            "Magic wand",
            lambda: magic_wand_select(
                pixels, width, height, x, y, self.magic_wand_config, pixel_to_world
            ),
        )

    def execute_region_growing(
        self,
        pixels,
        width: int,
        height: int,
        x: float,
        y: float,
        pixel_to_world: PixelToWorld | None = None,
        slice_key=None,
    ) -> RegionGrowingResult | None:
        """Run region growing with the session's configuration.

        Args:
            slice_key: Identifier of the slice the pixels belong to. When
                given, the slice gradient is cached and reused for later
                seeds on the same slice.

        Returns:
            The result, or None if the invocation was rejected or failed.
        """

        def run():
            gradient = None
            if slice_key is not None:
                image = as_pixel_array(pixels, width, height)
                gradient = self.gradient_cache.get_or_compute(image, slice_key)
            return region_grow(
                pixels,
                width,
                height,
                x,
                y,
                self.region_growing_config,
                pixel_to_world,
                gradient=gradient,
            )

        return self._invoke("Region growing", run)

    def execute_interpolation(
        self,
        annotations_by_slice: Mapping[int | str, Iterable],
        total_slices: int | None = None,
        slice_to_z: Mapping[int, float] | None = None,
    ) -> InterpolationResult | None:
        """Interpolate between the drawn contours of a stack.

        Args:
            annotations_by_slice: Drawn annotations per slice (see
                ``canvas_annotations_to_slice_annotations``).
            total_slices: Number of slices in the stack. Used to build a
                unit-spaced Z map when ``slice_to_z`` is not given.
            slice_to_z: World Z per slice index.

        Returns:
            The result, or None if the invocation was rejected or failed.
            With ``auto_apply`` set, generated slices are written to the store.
        """

        def run():
            key_frames = canvas_annotations_to_slice_annotations(annotations_by_slice)
            if len(key_frames) < MIN_INTERPOLATION_KEY_FRAMES:
                raise ValueError("Need at least 2 annotated slices for interpolation")

            z_map = slice_to_z
            if z_map is None and total_slices is not None:
                z_map = calculate_slice_z_coordinates(total_slices, 1.0, 0.0)

            return interpolate_slices(key_frames, self.interpolation_config, z_map)

        result = self._invoke("Interpolation", run)
        if result is not None and self.interpolation_config.auto_apply:
            self.apply_interpolation(result)
        return result

    # Result hand-off

    def _effective_mode(
        self, mode: MaskOperationMode | str | None, shift_key: bool, alt_key: bool
    ) -> MaskOperationMode:
        if shift_key:
            return MaskOperationMode.ADD
        if alt_key:
            return MaskOperationMode.SUBTRACT
        if mode is not None:
            return MaskOperationMode(mode)
        return self.mask_operation_mode

    def result_to_annotation(
        self,
        result: MagicWandResult | RegionGrowingResult,
        slice_index: int,
        mode: MaskOperationMode | str | None = None,
        shift_key: bool = False,
        alt_key: bool = False,
    ) -> dict | None:
        """Store a selection contour as a freehand annotation on a slice.

        Shift forces ``add`` and Alt forces ``subtract``; otherwise ``mode``
        or the session's mask operation mode applies. Intersect and XOR are
        stored as additional annotations; combining the masks is left to the
        annotation layer.

        Returns:
            The stored annotation dict, or None when the result has fewer
            than 3 contour points.
        """
        contour = result.contour_points
        if contour is None or len(contour) < 3:
            logger.warning(f"No contour to store for slice {slice_index}")
            return None

        effective_mode = self._effective_mode(mode, shift_key, alt_key)
        subtract = effective_mode == MaskOperationMode.SUBTRACT

        annotation = {
            "id": f"smart-{uuid.uuid4().hex}",
            "type": "eraser-freehand" if subtract else "freehand",
            "points_world": np.asarray(contour).tolist(),
            "completed": True,
            "color": SUBTRACT_COLOR if subtract else ADD_COLOR,
            "source": result.tool_type.value,
        }

        if effective_mode in (MaskOperationMode.REPLACE, MaskOperationMode.NONE):
            self.store.set(slice_index, [annotation])
        else:
            self.store.set(slice_index, self.store.get(slice_index) + [annotation])

        logger.debug(
            f"Stored {len(contour)}-point {result.tool_type.value} contour on slice "
            f"{slice_index} (mode={effective_mode.value})"
        )
        return annotation

    def apply_interpolation(self, result: InterpolationResult) -> int:
        """Write generated slices to the store.

        Only previously interpolated annotations on a slice are replaced;
        user-drawn annotations stay.

        Returns:
            Number of slices written.
        """
        written = 0
        for slice_annotation in result.interpolated_annotations:
            existing = [
                a for a in self.store.get(slice_annotation.slice_index) if not a.get("interpolated")
            ]
            annotation = {
                "id": f"smart-{uuid.uuid4().hex}",
                "type": "freehand",
                "points_world": slice_annotation.contour_points.tolist(),
                "completed": True,
                "color": ADD_COLOR,
                "source": result.tool_type.value,
                "interpolated": True,
            }
            self.store.set(slice_annotation.slice_index, existing + [annotation])
            written += 1

        logger.debug(f"Applied {written} interpolated slices")
        return written
