"""
Load Errors

Every failure aborts the current load. Each error keeps the identifying
context (record index, node id, column name) as attributes.
"""

from pathlib import Path
from typing import Optional


class LoadError(Exception):
    """Base class for errors that abort a point cloud load."""

    kind = "LoadError"


class IoError(LoadError):
    """Raw bytes for a document could not be obtained."""

    kind = "IoError"

    def __init__(self, path: Path, cause: Exception):
        self.path = path
        self.cause = cause
        super().__init__(f"Failed to read {path}: {cause}")


class ParseError(LoadError):
    """Pose document or pose record is malformed."""

    kind = "ParseError"

    def __init__(self, message: str, record_index: Optional[int] = None, node_id: Optional[str] = None):
        self.record_index = record_index
        self.node_id = node_id
        if record_index is not None:
            where = f"pose record {record_index}"
            if node_id:
                where += f" ({node_id})"
            message = f"{where}: {message}"
        super().__init__(message)


class EmptyPoseSetError(LoadError):
    """No poses available to choose an anchor from."""

    kind = "EmptyPoseSetError"

    def __init__(self):
        super().__init__("Pose set is empty, cannot select an anchor")


class DuplicateNodeError(LoadError):
    """Two poses share the same node id."""

    kind = "DuplicateNodeError"

    def __init__(self, node_id: str):
        self.node_id = node_id
        super().__init__(f"Duplicate pose for node {node_id}")


class SchemaError(LoadError):
    """A required point column is missing or unusable."""

    kind = "SchemaError"

    def __init__(self, message: str, column: Optional[str] = None):
        self.column = column
        if column is not None:
            message = f"column '{column}': {message}"
        super().__init__(message)


class ColorRangeError(LoadError):
    """A color channel value does not fit in 0-255."""

    kind = "ColorRangeError"

    def __init__(self, channel: str, value: int, batch_index: int, row_index: int):
        self.channel = channel
        self.value = value
        self.batch_index = batch_index
        self.row_index = row_index
        super().__init__(
            f"Color channel '{channel}' value {value} out of range 0-255 "
            f"(batch {batch_index}, row {row_index})"
        )


class UnresolvedNodeError(LoadError):
    """A decoded point references a node without a transform."""

    kind = "UnresolvedNodeError"

    def __init__(self, node_id: str, point_count: int = 1):
        self.node_id = node_id
        self.point_count = point_count
        super().__init__(f"No transform for node {node_id} ({point_count} points)")
