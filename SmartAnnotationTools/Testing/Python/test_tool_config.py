"""Tests for smart tool configuration and YAML loading."""

import shutil
import sys
import tempfile
import unittest
from pathlib import Path

import numpy as np
import yaml

# Add module directory to path for imports
_THIS_DIR = Path(__file__).parent
_MODULE_DIR = _THIS_DIR.parent.parent
if str(_MODULE_DIR) not in sys.path:
    sys.path.insert(0, str(_MODULE_DIR))

from SmartAnnotationToolsLib.ToolConfig import (  # noqa: E402
    InterpolationConfig,
    InterpolationMethod,
    MagicWandConfig,
    RegionGrowingConfig,
    SmartToolsConfig,
)


class TestToolConfigDefaults(unittest.TestCase):
    """Tests for default configuration values."""

    def test_magic_wand_defaults(self):
        config = MagicWandConfig()
        self.assertEqual(config.tolerance, 32)
        self.assertTrue(config.eight_connected)
        self.assertEqual(config.max_pixels, 1_000_000)
        self.assertTrue(config.smooth_edges)

    def test_region_growing_defaults(self):
        config = RegionGrowingConfig()
        self.assertEqual(config.intensity_tolerance, 25)
        self.assertEqual(config.gradient_threshold, 50)
        self.assertEqual(config.max_iterations, 10_000)
        self.assertEqual(config.min_region_size, 10)
        self.assertTrue(config.use_adaptive_threshold)

    def test_interpolation_defaults(self):
        config = InterpolationConfig()
        self.assertEqual(config.method, InterpolationMethod.LINEAR)
        self.assertEqual(config.max_gap_slices, 10)
        self.assertFalse(config.auto_apply)
        self.assertEqual(config.smoothing_factor, 0.5)


class TestToolConfigValidation(unittest.TestCase):
    """Tests for configuration validation."""

    def test_negative_tolerance_rejected(self):
        with self.assertRaises(ValueError):
            MagicWandConfig(tolerance=-1)
        with self.assertRaises(ValueError):
            RegionGrowingConfig(intensity_tolerance=-0.5)

    def test_max_pixels_must_be_positive(self):
        with self.assertRaises(ValueError):
            MagicWandConfig(max_pixels=0)

    def test_smoothing_factor_range(self):
        with self.assertRaises(ValueError):
            InterpolationConfig(smoothing_factor=1.5)
        with self.assertRaises(ValueError):
            InterpolationConfig(smoothing_factor=-0.1)

    def test_method_string_coerced(self):
        config = InterpolationConfig(method="shape-based")
        self.assertEqual(config.method, InterpolationMethod.SHAPE_BASED)

    def test_unknown_method_rejected(self):
        with self.assertRaises(ValueError) as ctx:
            InterpolationConfig(method="spline")
        self.assertIn("spline", str(ctx.exception))

    def test_wrong_types_rejected(self):
        with self.assertRaises(ValueError) as ctx:
            MagicWandConfig.from_dict({"tolerance": "10"})
        self.assertIn("tolerance", str(ctx.exception))
        with self.assertRaises(ValueError):
            MagicWandConfig(smooth_edges="no")
        with self.assertRaises(ValueError):
            RegionGrowingConfig(max_iterations=True)
        with self.assertRaises(ValueError):
            InterpolationConfig(smoothing_factor=None)

    def test_numpy_numbers_accepted(self):
        config = RegionGrowingConfig(
            max_iterations=np.int64(500), gradient_threshold=np.float64(40)
        )
        self.assertEqual(config.max_iterations, 500)

    def test_frozen(self):
        config = MagicWandConfig()
        with self.assertRaises(AttributeError):
            config.tolerance = 10


class TestToolConfigDict(unittest.TestCase):
    """Tests for dictionary conversion."""

    def test_from_dict_camel_case(self):
        config = MagicWandConfig.from_dict({"tolerance": 12, "eightConnected": False})
        self.assertEqual(config.tolerance, 12)
        self.assertFalse(config.eight_connected)

    def test_unknown_keys_ignored(self):
        config = RegionGrowingConfig.from_dict({"gradientThreshold": 80, "colour": "red"})
        self.assertEqual(config.gradient_threshold, 80)

    def test_smart_tools_config_sections(self):
        config = SmartToolsConfig.from_dict(
            {
                "magicWand": {"tolerance": 10},
                "interpolation": {"method": "morphological", "maxGapSlices": 3},
            }
        )

        self.assertEqual(config.magic_wand.tolerance, 10)
        self.assertEqual(config.region_growing, RegionGrowingConfig())
        self.assertEqual(config.interpolation.method, InterpolationMethod.MORPHOLOGICAL)
        self.assertEqual(config.interpolation.max_gap_slices, 3)

    def test_section_must_be_mapping(self):
        with self.assertRaises(ValueError):
            SmartToolsConfig.from_dict({"magic_wand": [1, 2]})

    def test_to_dict(self):
        data = SmartToolsConfig(interpolation=InterpolationConfig(method="shape-based")).to_dict()
        self.assertEqual(data["interpolation"]["method"], "shape-based")
        self.assertEqual(data["magic_wand"]["tolerance"], 32)
        self.assertIn("use_adaptive_threshold", data["region_growing"])


class TestSmartToolsConfigFile(unittest.TestCase):
    """Tests for YAML loading and saving."""

    def setUp(self):
        self.temp_dir = Path(tempfile.mkdtemp())

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_load(self):
        path = self.temp_dir / "smart_tools.yaml"
        path.write_text(
            "magic_wand:\n"
            "  tolerance: 20\n"
            "  smooth_edges: false\n"
            "region_growing:\n"
            "  intensityTolerance: 30\n"
            "interpolation:\n"
            "  method: shape-based\n"
            "  auto_apply: true\n"
        )

        config = SmartToolsConfig.load(path)

        self.assertEqual(config.magic_wand.tolerance, 20)
        self.assertFalse(config.magic_wand.smooth_edges)
        self.assertEqual(config.region_growing.intensity_tolerance, 30)
        self.assertEqual(config.interpolation.method, InterpolationMethod.SHAPE_BASED)
        self.assertTrue(config.interpolation.auto_apply)
        self.assertEqual(config.source_path, path)

    def test_load_empty_file_uses_defaults(self):
        path = self.temp_dir / "empty.yaml"
        path.write_text("")

        config = SmartToolsConfig.load(path)

        self.assertEqual(config.magic_wand, MagicWandConfig())
        self.assertEqual(config.interpolation, InterpolationConfig())

    def test_load_missing_file(self):
        with self.assertRaises(FileNotFoundError):
            SmartToolsConfig.load(self.temp_dir / "missing.yaml")

    def test_load_invalid_values(self):
        path = self.temp_dir / "bad.yaml"
        path.write_text("interpolation:\n  smoothing_factor: 3\n")
        with self.assertRaises(ValueError):
            SmartToolsConfig.load(path)

        path.write_text('magic_wand:\n  tolerance: "10"\n')
        with self.assertRaises(ValueError):
            SmartToolsConfig.load(path)

    def test_save(self):
        path = self.temp_dir / "saved.yaml"
        config = SmartToolsConfig(
            magic_wand=MagicWandConfig(tolerance=8),
            interpolation=InterpolationConfig(method="morphological", max_gap_slices=4),
        )

        config.save(path)

        data = yaml.safe_load(path.read_text())
        self.assertEqual(data["magic_wand"]["tolerance"], 8)
        self.assertEqual(data["interpolation"]["method"], "morphological")

        reloaded = SmartToolsConfig.load(path)
        self.assertEqual(reloaded.interpolation, config.interpolation)


if __name__ == "__main__":
    unittest.main()
