"""Utility functions for the point cloud ingestion pipeline."""

from .matrix import (
    row_major_to_matrix,
    validate_transform,
    extract_position,
    extract_basis,
    transform_points,
)
from .validation import (
    PoseRecord,
    validate_poses,
    validate_point_schema,
)

__all__ = [
    "row_major_to_matrix",
    "validate_transform",
    "extract_position",
    "extract_basis",
    "transform_points",
    "PoseRecord",
    "validate_poses",
    "validate_point_schema",
]
