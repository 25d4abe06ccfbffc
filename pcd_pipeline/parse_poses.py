"""
Pose Parsing Pipeline Stage

Decodes the node pose document into RawPose records.

The document is a JSON object with a single list field:

    {"poses": [{"nodeUuid": "...", "optPos": [16 numbers, row-major]}, ...]}

Only structure and numeric types are checked here. Matrix layout and
re-centering happen in the anchor stage.
"""

import json
from dataclasses import dataclass
from typing import List, Tuple

from pydantic import ValidationError
from rich.console import Console

from pcd_utils.validation import POSES_KEY, PoseRecord, describe_record

from .errors import ParseError

console = Console()


@dataclass(frozen=True)
class RawPose:
    """A node pose as stored in the document: 16 row-major float64 entries."""
    node_id: str
    matrix_entries: Tuple[float, ...]


def _first_error(e: ValidationError) -> str:
    err = e.errors()[0]
    field = ".".join(str(part) for part in err.get("loc", ())) or "record"
    return f"{field}: {err.get('msg', 'invalid value')}"


def parse_pose_record(record, index: int) -> RawPose:
    """
    Validate a single pose record.

    Raises:
        ParseError: Naming the record index when the record is malformed
    """
    if not isinstance(record, dict):
        raise ParseError(f"expected an object, got {type(record).__name__}", record_index=index)

    try:
        parsed = PoseRecord.model_validate(record)
    except ValidationError as e:
        node_id = describe_record(record)
        raise ParseError(
            _first_error(e),
            record_index=index,
            node_id=None if node_id == "<unknown>" else node_id,
        ) from e

    return RawPose(
        node_id=parsed.node_uuid,
        matrix_entries=tuple(float(v) for v in parsed.opt_pos),
    )


def parse_pose_document(data: bytes) -> List[RawPose]:
    """
    Parse raw pose document bytes.

    Args:
        data: UTF-8 encoded JSON document

    Returns:
        RawPose list in document order

    Raises:
        ParseError: If the document or any record is malformed
    """
    try:
        document = json.loads(data)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ParseError(f"Invalid JSON in pose document: {e}") from e

    if not isinstance(document, dict):
        raise ParseError("Pose document must be a JSON object")

    records = document.get(POSES_KEY)
    if records is None:
        raise ParseError(f"Pose document has no '{POSES_KEY}' field")
    if not isinstance(records, list):
        raise ParseError(f"'{POSES_KEY}' must be a list, got {type(records).__name__}")

    poses = [parse_pose_record(record, i) for i, record in enumerate(records)]

    console.print(f"[blue]Parsed {len(poses)} node poses[/blue]")
    return poses
