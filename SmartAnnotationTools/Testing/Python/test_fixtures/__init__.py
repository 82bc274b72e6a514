"""Test fixtures and synthetic data generators for SmartAnnotationTools tests."""

from .synthetic_image import (
    create_disk_image,
    create_gradient_image,
    create_ring_image,
    create_step_edge_image,
    create_uniform_image,
    identity_transform,
    square_contour,
)

__all__ = [
    "create_uniform_image",
    "create_step_edge_image",
    "create_disk_image",
    "create_ring_image",
    "create_gradient_image",
    "identity_transform",
    "square_contour",
]
