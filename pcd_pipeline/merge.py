"""
Transform & Merge Pipeline Stage

Joins every decoded point against its node transform and produces the
render buffer: global float32 positions and normalized RGBA colors.
"""

from dataclasses import dataclass
from typing import Dict

import numpy as np
from rich.console import Console

from .anchor import NodeTransform
from .decode_points import PointCloud
from .errors import UnresolvedNodeError

console = Console()


@dataclass
class RenderBuffer:
    """Index-aligned (N, 3) positions and (N, 4) RGBA colors, both float32."""
    positions: np.ndarray
    colors: np.ndarray

    def __len__(self) -> int:
        return len(self.positions)

    def bounds(self) -> Dict:
        """Axis-aligned bounds of the positions (render space)."""
        if len(self.positions) == 0:
            return {"min": [0.0, 0.0, 0.0], "max": [0.0, 0.0, 0.0], "extent": [0.0, 0.0, 0.0]}
        min_bound = self.positions.min(axis=0)
        max_bound = self.positions.max(axis=0)
        return {
            "min": min_bound.tolist(),
            "max": max_bound.tolist(),
            "extent": (max_bound - min_bound).tolist(),
        }


def encode_colors(rgb: np.ndarray) -> np.ndarray:
    """uint8 (N, 3) RGB -> float32 (N, 4) RGBA in [0, 1], alpha 1.0."""
    colors = np.ones((len(rgb), 4), dtype=np.float32)
    colors[:, :3] = rgb.astype(np.float32) / np.float32(255.0)
    return colors


def transform_and_merge(
    transforms: Dict[str, NodeTransform],
    cloud: PointCloud,
) -> RenderBuffer:
    """
    Transform every point from its node frame into the shared frame.

    Args:
        transforms: Node id -> re-centered transform
        cloud: Decoded points

    Returns:
        RenderBuffer in cloud order

    Raises:
        UnresolvedNodeError: If any point's node has no transform. Raised
            before any output is built.
    """
    if len(cloud) == 0:
        return RenderBuffer(
            positions=np.empty((0, 3), dtype=np.float32),
            colors=np.empty((0, 4), dtype=np.float32),
        )

    node_ids, inverse, counts = np.unique(cloud.node_ids, return_inverse=True, return_counts=True)
    inverse = inverse.reshape(-1)

    for node_id, count in zip(node_ids, counts):
        if node_id not in transforms:
            raise UnresolvedNodeError(node_id, int(count))

    matrices = np.stack([transforms[node_id].matrix for node_id in node_ids]).astype(np.float32)

    # p' = x * basis_x + y * basis_y + z * basis_z + translation
    local = cloud.positions
    positions = matrices[inverse, :3, 3].copy()
    for axis in range(3):
        positions += local[:, axis:axis + 1] * matrices[inverse, :3, axis]

    colors = encode_colors(cloud.colors)

    console.print(f"[green]Transformed {len(positions)} points across {len(node_ids)} nodes[/green]")
    return RenderBuffer(positions=positions, colors=colors)
