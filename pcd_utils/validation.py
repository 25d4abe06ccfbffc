"""Validation utilities for pose documents and columnar point schemas."""

import math
from collections import Counter
from typing import Any, Dict, List, Tuple

import numpy as np
import pyarrow as pa
from pydantic import BaseModel, Field, field_validator

from .matrix import row_major_to_matrix, validate_transform


# Pose document (JSON)

POSES_KEY = "poses"


class PoseRecord(BaseModel):
    """One entry of the pose document's `poses` list."""

    node_uuid: str = Field(..., alias="nodeUuid")
    opt_pos: List[float] = Field(..., alias="optPos", min_length=16, max_length=16)

    model_config = {"populate_by_name": True}

    @field_validator("opt_pos", mode="before")
    @classmethod
    def validate_numeric(cls, v):
        if not isinstance(v, (list, tuple)):
            raise ValueError("optPos must be an array of 16 numbers")
        for i, value in enumerate(v):
            # bool is an int subclass
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValueError(f"optPos[{i}] is not a number: {value!r}")
        return v

    @field_validator("opt_pos")
    @classmethod
    def validate_finite(cls, v):
        for i, value in enumerate(v):
            if not math.isfinite(value):
                raise ValueError(f"optPos[{i}] is not finite: {value}")
        return v


def validate_poses(records: List[PoseRecord]) -> Tuple[bool, Dict, List[str]]:
    """
    Validate a parsed pose set for consistency.

    Checks:
    - At least one pose is present
    - Node ids are unique
    - Bottom row of every matrix is [0, 0, 0, 1]

    Non-rigid bases (scale or shear) are counted but are not an error.

    Returns:
        Tuple of (is_valid, stats, list_of_errors)
    """
    errors = []
    stats = {
        "total_poses": len(records),
        "duplicate_ids": [],
        "non_rigid": 0,
        "max_translation": 0.0,
    }

    if not records:
        return False, stats, ["Pose set is empty"]

    counts = Counter(r.node_uuid for r in records)
    stats["duplicate_ids"] = sorted(node_id for node_id, n in counts.items() if n > 1)
    for node_id in stats["duplicate_ids"]:
        errors.append(f"Duplicate node id: {node_id}")

    for i, record in enumerate(records):
        matrix = row_major_to_matrix(record.opt_pos)
        if not validate_transform(matrix):
            errors.append(f"Invalid transform at index {i} ({record.node_uuid})")
            continue
        if not validate_transform(matrix, rigid=True):
            stats["non_rigid"] += 1
        magnitude = float(np.max(np.abs(matrix[:3, 3])))
        stats["max_translation"] = max(stats["max_translation"], magnitude)

    return len(errors) == 0, stats, errors


# Point document (Parquet)

NODE_COLUMN = "node_uuid"
POSITION_COLUMNS = ("point_x", "point_y", "point_z")
COLOR_COLUMNS = ("r", "g", "b")
REQUIRED_POINT_COLUMNS = (NODE_COLUMN,) + POSITION_COLUMNS + COLOR_COLUMNS


def _column_type_problem(name: str, dtype: pa.DataType) -> str:
    if name == NODE_COLUMN:
        if not (pa.types.is_string(dtype) or pa.types.is_large_string(dtype)):
            return f"expected string column, got {dtype}"
    elif name in POSITION_COLUMNS:
        if not pa.types.is_floating(dtype):
            return f"expected float column, got {dtype}"
    elif name in COLOR_COLUMNS:
        if not pa.types.is_integer(dtype):
            return f"expected integer column, got {dtype}"
    return ""


def validate_point_schema(schema: pa.Schema) -> List[Tuple[str, str]]:
    """
    Check a point batch schema against the required columns.

    Returns:
        List of (column_name, problem) pairs, in required-column order
    """
    problems = []
    for name in REQUIRED_POINT_COLUMNS:
        index = schema.get_field_index(name)
        if index < 0:
            problems.append((name, "missing required column"))
            continue
        problem = _column_type_problem(name, schema.field(index).type)
        if problem:
            problems.append((name, problem))
    return problems


def describe_record(record: Any) -> str:
    """Short human-readable identifier for a raw pose record."""
    if isinstance(record, dict):
        node_id = record.get("nodeUuid", record.get("node_uuid"))
        if isinstance(node_id, str):
            return node_id
    return "<unknown>"
