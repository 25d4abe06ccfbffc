"""
Ingestion Pipeline Stage

Obtains the raw bytes of the pose document and the point document.
Reading is the only blocking step of a load; everything after it is
CPU-bound decoding.
"""

from pathlib import Path
from typing import Optional, Tuple
from rich.console import Console

from .errors import IoError

console = Console()

DEFAULT_POSE_FILE = "node_pose.json"
DEFAULT_POINTS_FILE = "point_cloud.snappy.parquet"


def read_document(path: Path) -> bytes:
    """
    Read a whole document into memory.

    Raises:
        IoError: If the file cannot be read
    """
    try:
        data = path.read_bytes()
    except OSError as e:
        raise IoError(path, e) from e

    console.print(f"[blue]Read {path.name} ({len(data) / (1024 * 1024):.1f} MB)[/blue]")
    return data


def locate_documents(
    input_dir: Path,
    pose_file: Optional[str] = None,
    points_file: Optional[str] = None,
) -> Tuple[Path, Path]:
    """
    Find the pose and point documents inside a directory.

    Falls back to the first *.json / *.parquet file when the default
    names are not present.

    Returns:
        Tuple of (pose_path, points_path)
    """
    if not input_dir.is_dir():
        raise IoError(input_dir, NotADirectoryError("not a directory"))

    pose_path = input_dir / (pose_file or DEFAULT_POSE_FILE)
    if not pose_path.exists() and pose_file is None:
        candidates = sorted(input_dir.glob("*.json"))
        if candidates:
            pose_path = candidates[0]

    points_path = input_dir / (points_file or DEFAULT_POINTS_FILE)
    if not points_path.exists() and points_file is None:
        candidates = sorted(input_dir.glob("*.parquet"))
        if candidates:
            points_path = candidates[0]

    for path in (pose_path, points_path):
        if not path.exists():
            raise IoError(path, FileNotFoundError("document not found"))

    return pose_path, points_path
