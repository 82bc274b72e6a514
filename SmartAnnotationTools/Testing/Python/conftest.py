"""Pytest configuration and fixtures for SmartAnnotationTools tests."""

import os
import sys

import numpy as np
import pytest

# Add library path for imports
_THIS_DIR = os.path.dirname(os.path.abspath(__file__))
_MODULE_DIR = os.path.dirname(os.path.dirname(_THIS_DIR))
if _MODULE_DIR not in sys.path:
    sys.path.insert(0, _MODULE_DIR)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "slow: mark test as slow (large images)")


@pytest.fixture
def uniform_slice():
    """Uniform 50x50 slice with intensity 100."""
    return np.full((50, 50), fill_value=100, dtype=np.int16)


@pytest.fixture
def step_edge_slice():
    """
    40x40 slice with a vertical step edge.

    Columns 0-19: intensity 100
    Columns 20-39: intensity 150
    """
    image = np.full((40, 40), fill_value=100, dtype=np.int16)
    image[:, 20:] = 150
    return image


@pytest.fixture
def identity_transform():
    """Pixel-to-world transform mapping (x, y) to (x, y, 0)."""

    def pixel_to_world(x, y):
        return (float(x), float(y), 0.0)

    return pixel_to_world


@pytest.fixture
def square_contour():
    """Closed 4-point square contour at z=0."""
    return [(0.0, 0.0, 0.0), (10.0, 0.0, 0.0), (10.0, 10.0, 0.0), (0.0, 10.0, 0.0)]
