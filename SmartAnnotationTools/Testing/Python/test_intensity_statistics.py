"""Tests for pixel buffer validation and intensity statistics."""

import sys
import unittest
from pathlib import Path

import numpy as np

# Add module directory to path for imports
_THIS_DIR = Path(__file__).parent
_MODULE_DIR = _THIS_DIR.parent.parent
if str(_MODULE_DIR) not in sys.path:
    sys.path.insert(0, str(_MODULE_DIR))

from SmartAnnotationToolsLib.DataStructures import Bounds, RegionStats  # noqa: E402
from SmartAnnotationToolsLib.IntensityStatistics import (  # noqa: E402
    RunningStatistics,
    as_pixel_array,
    local_statistics,
    seed_to_pixel,
    sobel_gradient_magnitude,
)
from test_fixtures.synthetic_image import create_step_edge_image  # noqa: E402


class TestPixelBuffer(unittest.TestCase):
    """Tests for as_pixel_array."""

    def test_flat_buffer(self):
        image = as_pixel_array(list(range(6)), 3, 2)
        self.assertEqual(image.shape, (2, 3))
        self.assertEqual(image[1, 0], 3)
        self.assertEqual(image.dtype, np.float64)

    def test_2d_buffer(self):
        pixels = np.arange(6, dtype=np.int16).reshape(2, 3)
        image = as_pixel_array(pixels, 3, 2)
        np.testing.assert_array_equal(image, pixels)

    def test_unsigned_and_signed_types(self):
        for dtype in [np.uint8, np.int16, np.uint16, np.float32]:
            with self.subTest(dtype=dtype):
                image = as_pixel_array(np.ones(4, dtype=dtype), 2, 2)
                self.assertEqual(image.shape, (2, 2))

    def test_invalid(self):
        with self.assertRaises(ValueError):
            as_pixel_array(None, 2, 2)
        with self.assertRaises(ValueError):
            as_pixel_array(np.zeros(5), 2, 2)
        with self.assertRaises(ValueError):
            as_pixel_array(np.zeros((2, 3)), 2, 3)
        with self.assertRaises(ValueError):
            as_pixel_array(np.zeros((2, 2, 2)), 2, 2)
        with self.assertRaises(ValueError):
            as_pixel_array(np.zeros(4), -2, -2)
        with self.assertRaises(ValueError):
            as_pixel_array(np.zeros(4), 2.0, 2)


class TestSeedToPixel(unittest.TestCase):
    """Tests for seed_to_pixel."""

    def test_floor(self):
        self.assertEqual(seed_to_pixel(3.9, 0.2, 10, 10), (3, 0))

    def test_out_of_bounds(self):
        self.assertIsNone(seed_to_pixel(10, 0, 10, 10))
        self.assertIsNone(seed_to_pixel(0, -0.1, 10, 10))
        self.assertIsNone(seed_to_pixel(float("nan"), 0, 10, 10))


class TestLocalStatistics(unittest.TestCase):
    """Tests for local_statistics."""

    def test_uniform(self):
        mean, std = local_statistics(np.full((30, 30), 7.0), 15, 15, 10)
        self.assertEqual(mean, 7.0)
        self.assertEqual(std, 0.0)

    def test_window_clipped(self):
        image = np.zeros((30, 30))
        image[0:3, 0:3] = 9.0

        mean, _ = local_statistics(image, 0, 0, 2)

        self.assertEqual(mean, 9.0)

    def test_non_finite_ignored(self):
        image = np.full((5, 5), 4.0)
        image[0, 0] = np.nan
        image[1, 1] = np.inf

        self.assertEqual(local_statistics(image, 2, 2, 2), (4.0, 0.0))
        self.assertEqual(local_statistics(np.full((3, 3), np.nan), 1, 1, 1), (0.0, 0.0))


class TestSobelGradient(unittest.TestCase):
    """Tests for sobel_gradient_magnitude."""

    def test_step_edge(self):
        image = create_step_edge_image(size=(40, 40), low=100, high=150, edge_x=20)

        gradient = sobel_gradient_magnitude(image)

        self.assertEqual(gradient.shape, (40, 40))
        np.testing.assert_allclose(gradient[:, 19], 200.0)
        np.testing.assert_allclose(gradient[:, 20], 200.0)
        self.assertEqual(gradient[:, :19].max(), 0.0)
        self.assertEqual(gradient[:, 21:].max(), 0.0)


class TestRunningStatistics(unittest.TestCase):
    """Tests for RunningStatistics."""

    def test_matches_numpy(self):
        np.random.seed(42)
        values = np.random.normal(1000, 30, 500)
        stats = RunningStatistics()
        for value in values:
            stats.add(float(value))

        self.assertEqual(stats.count, 500)
        self.assertAlmostEqual(stats.mean, float(np.mean(values)), places=8)
        self.assertAlmostEqual(stats.std, float(np.std(values)), places=8)
        self.assertEqual(stats.min, float(values.min()))
        self.assertEqual(stats.max, float(values.max()))

        region = stats.to_region_stats()
        self.assertEqual(region.area, 500)
        self.assertAlmostEqual(region.std_intensity, float(np.std(values)), places=8)

    def test_empty(self):
        stats = RunningStatistics()
        self.assertEqual(stats.std, 0.0)
        self.assertEqual(stats.to_region_stats(), RegionStats.empty())


class TestValueTypes(unittest.TestCase):
    """Tests for Bounds and RegionStats helpers."""

    def test_bounds_from_mask(self):
        mask = np.zeros((10, 12), dtype=np.uint8)
        mask[2:5, 3:9] = 1

        bounds = Bounds.from_mask(mask.ravel(), 12, 10)

        self.assertEqual((bounds.min_x, bounds.min_y, bounds.max_x, bounds.max_y), (3, 2, 8, 4))
        self.assertEqual(bounds.width, 6)
        self.assertEqual(bounds.height, 3)

    def test_bounds_empty(self):
        self.assertEqual(Bounds.from_mask(np.zeros(20), 5, 4), Bounds())

    def test_region_stats_from_values(self):
        stats = RegionStats.from_values([1.0, 3.0])
        self.assertEqual(stats.mean_intensity, 2.0)
        self.assertEqual(stats.std_intensity, 1.0)
        self.assertEqual(stats.area, 2)
        self.assertTrue(RegionStats.from_values([]).is_empty)


if __name__ == "__main__":
    unittest.main()
