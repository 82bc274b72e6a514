"""Configuration for the smart annotation tools.

Each tool takes an immutable configuration per invocation. A ``ToolSession``
swaps in new instances between invocations (``dataclasses.replace``).

Configurations can be loaded from YAML:

    magic_wand:
      tolerance: 20
      eight_connected: true
    region_growing:
      intensity_tolerance: 30
      gradient_threshold: 80
    interpolation:
      method: shape-based
      max_gap_slices: 15

Keys may also use the camelCase names of the web viewer
(``eightConnected``, ``maxGapSlices``, ...).
"""

from __future__ import annotations

import logging
import numbers
from dataclasses import asdict, dataclass, field, fields
from enum import Enum
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)


class InterpolationMethod(Enum):
    """Contour blending strategies for slice interpolation."""

    LINEAR = "linear"
    SHAPE_BASED = "shape-based"
    MORPHOLOGICAL = "morphological"


def _snake_case(key: str) -> str:
    chars = []
    for char in key:
        if char.isupper():
            chars.append("_")
            chars.append(char.lower())
        else:
            chars.append(char)
    return "".join(chars)


def _normalize_keys(cls, data: dict | None) -> dict[str, Any]:
    """Map camelCase keys to field names and drop unknown keys."""
    known = {f.name for f in fields(cls)}
    normalized = {}
    for key, value in (data or {}).items():
        name = _snake_case(str(key))
        if name not in known:
            logger.warning(f"Ignoring unknown {cls.__name__} key: {key}")
            continue
        normalized[name] = value
    return normalized


class _ValidatedConfig:
    """Mixin raising ``ValueError`` from ``validate()`` on construction."""

    def validate(self) -> list[str]:
        return []

    def type_errors(self) -> list[str]:
        """Check numeric and boolean fields against the type of their default."""
        errors = []
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(f.default, bool):
                if not isinstance(value, bool):
                    errors.append(f"{f.name} must be true or false, got {value!r}")
            elif isinstance(f.default, numbers.Real):
                if isinstance(value, bool) or not isinstance(value, numbers.Real):
                    errors.append(f"{f.name} must be a number, got {value!r}")
        return errors

    def __post_init__(self):
        # Range checks assume well-typed values
        errors = self.type_errors() or self.validate()
        if errors:
            raise ValueError(f"Invalid {type(self).__name__}: " + "; ".join(errors))

    @classmethod
    def from_dict(cls, data: dict | None):
        """Create a configuration from a dictionary (snake_case or camelCase keys)."""
        return cls(**_normalize_keys(cls, data))

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class MagicWandConfig(_ValidatedConfig):
    """Magic wand (tolerance flood fill) settings."""

    tolerance: float = 32.0
    """Maximum absolute intensity difference from the seed pixel."""

    eight_connected: bool = True
    """Use 8-connected neighbours (True) or 4-connected (False)."""

    max_pixels: int = 1_000_000
    """Hard cap on the number of selected pixels."""

    smooth_edges: bool = True
    """Apply a 3x3 morphological opening to the selection."""

    def validate(self) -> list[str]:
        errors = []
        if self.tolerance < 0:
            errors.append("tolerance must be non-negative")
        if self.max_pixels < 1:
            errors.append("max_pixels must be at least 1")
        return errors


@dataclass(frozen=True)
class RegionGrowingConfig(_ValidatedConfig):
    """Seeded region growing settings."""

    intensity_tolerance: float = 25.0
    """Minimum allowed deviation from the running region mean."""

    gradient_threshold: float = 50.0
    """Sobel magnitude above which a pixel is treated as an edge."""

    max_iterations: int = 10_000
    """Hard cap on candidate dequeues."""

    min_region_size: int = 10
    """Regions smaller than this are discarded."""

    use_adaptive_threshold: bool = True
    """Derive the threshold from local and region statistics."""

    def validate(self) -> list[str]:
        errors = []
        if self.intensity_tolerance < 0:
            errors.append("intensity_tolerance must be non-negative")
        if self.gradient_threshold < 0:
            errors.append("gradient_threshold must be non-negative")
        if self.max_iterations < 0:
            errors.append("max_iterations must be non-negative")
        if self.min_region_size < 0:
            errors.append("min_region_size must be non-negative")
        return errors


@dataclass(frozen=True)
class InterpolationConfig(_ValidatedConfig):
    """Slice interpolation settings."""

    method: InterpolationMethod = InterpolationMethod.LINEAR
    """Blending strategy. Strings such as ``"shape-based"`` are accepted."""

    max_gap_slices: int = 10
    """Largest run of empty slices that will be filled between key frames."""

    auto_apply: bool = False
    """Write interpolated slices to the annotation store immediately."""

    smoothing_factor: float = 0.5
    """Contour smoothing strength in [0, 1]; 0 disables smoothing."""

    def __post_init__(self):
        if not isinstance(self.method, InterpolationMethod):
            try:
                object.__setattr__(self, "method", InterpolationMethod(self.method))
            except ValueError:
                valid = ", ".join(m.value for m in InterpolationMethod)
                raise ValueError(
                    f"Unknown interpolation method {self.method!r} (expected one of: {valid})"
                ) from None
        super().__post_init__()

    def validate(self) -> list[str]:
        errors = []
        if self.max_gap_slices < 0:
            errors.append("max_gap_slices must be non-negative")
        if not 0.0 <= self.smoothing_factor <= 1.0:
            errors.append("smoothing_factor must be within [0, 1]")
        return errors

    def to_dict(self) -> dict:
        data = asdict(self)
        data["method"] = self.method.value
        return data


@dataclass
class SmartToolsConfig:
    """Configuration for all smart tools, loadable from YAML."""

    magic_wand: MagicWandConfig = field(default_factory=MagicWandConfig)
    region_growing: RegionGrowingConfig = field(default_factory=RegionGrowingConfig)
    interpolation: InterpolationConfig = field(default_factory=InterpolationConfig)

    # Set when loading from a file
    source_path: Path | None = None

    @classmethod
    def from_dict(cls, data: dict | None) -> SmartToolsConfig:
        """Create from a dictionary with optional per-tool sections.

        Raises:
            ValueError: If a section is not a mapping or holds invalid values.
        """
        data = data or {}
        if not isinstance(data, dict):
            raise ValueError(f"Smart tools config must be a mapping, got {type(data).__name__}")

        sections = {}
        for name, config_cls in (
            ("magic_wand", MagicWandConfig),
            ("region_growing", RegionGrowingConfig),
            ("interpolation", InterpolationConfig),
        ):
            section = data.get(name, data.get(_camel_case(name)))
            if section is not None and not isinstance(section, dict):
                raise ValueError(f"Config section '{name}' must be a mapping")
            sections[name] = config_cls.from_dict(section)

        return cls(**sections)

    @classmethod
    def load(cls, config_path: Path | str) -> SmartToolsConfig:
        """Load configuration from a YAML file.

        Raises:
            FileNotFoundError: If the file doesn't exist.
            ValueError: If the configuration is invalid.
        """
        config_path = Path(config_path)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_path) as f:
            data = yaml.safe_load(f)

        config = cls.from_dict(data)
        config.source_path = config_path

        logger.info(f"Loaded smart tools config from {config_path}")
        return config

    def save(self, config_path: Path | str) -> None:
        """Write the configuration to a YAML file."""
        config_path = Path(config_path)
        with open(config_path, "w") as f:
            yaml.safe_dump(self.to_dict(), f, sort_keys=False)
        logger.info(f"Saved smart tools config to {config_path}")

    def to_dict(self) -> dict:
        return {
            "magic_wand": self.magic_wand.to_dict(),
            "region_growing": self.region_growing.to_dict(),
            "interpolation": self.interpolation.to_dict(),
        }


def _camel_case(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)
