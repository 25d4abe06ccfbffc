"""
Anchor Resolution Pipeline Stage

Picks one node as the anchor and re-centers every node translation on it.

Node translations are world coordinates (often UTM, values in the
millions). Stored as float32 they would lose centimeters, so the anchor
translation is subtracted in float64 first and only the small remainder
is narrowed to float32.
"""

from dataclasses import dataclass
from typing import Dict, List, Sequence

import numpy as np
from rich.console import Console

from pcd_utils.matrix import extract_basis, extract_position, row_major_to_matrix, translate_matrix

from .errors import DuplicateNodeError, EmptyPoseSetError
from .parse_poses import RawPose

console = Console()


@dataclass(frozen=True)
class NodeTransform:
    """Re-centered node transform in render precision (float32, standard layout)."""
    node_id: str
    matrix: np.ndarray

    @property
    def translation(self) -> np.ndarray:
        return extract_position(self.matrix)

    @property
    def basis(self) -> np.ndarray:
        return extract_basis(self.matrix)


@dataclass(frozen=True)
class Anchor:
    """The reference node and its world translation (float64)."""
    node_id: str
    translation: np.ndarray

    def to_world(self, points: np.ndarray) -> np.ndarray:
        """Map render-space points back to world coordinates in float64."""
        return np.asarray(points, dtype=np.float64) + self.translation


@dataclass
class ResolvedPoses:
    """Output of the anchor stage."""
    anchor: Anchor
    transforms: Dict[str, NodeTransform]


def select_anchor(matrices: Sequence[np.ndarray]) -> int:
    """
    Index of the anchor among float64 pose matrices.

    Minimum translation X, ties broken by minimum Y. Z is ignored. A tie
    on both keeps the earliest pose.
    """
    if len(matrices) == 0:
        raise EmptyPoseSetError()
    return min(range(len(matrices)), key=lambda i: (matrices[i][0, 3], matrices[i][1, 3]))


def resolve_transforms(poses: List[RawPose], verbose: bool = False) -> ResolvedPoses:
    """
    Build the node id -> NodeTransform mapping.

    Args:
        poses: Parsed poses in document order
        verbose: Print every re-centered translation

    Returns:
        ResolvedPoses with the anchor and one transform per node

    Raises:
        EmptyPoseSetError: If there are no poses
        DuplicateNodeError: If two poses share a node id
    """
    matrices = [row_major_to_matrix(p.matrix_entries) for p in poses]
    anchor_index = select_anchor(matrices)
    anchor_translation = extract_position(matrices[anchor_index])

    anchor = Anchor(node_id=poses[anchor_index].node_id, translation=anchor_translation)
    console.print(
        f"[blue]Anchor node {anchor.node_id} at "
        f"({anchor_translation[0]:.3f}, {anchor_translation[1]:.3f}, {anchor_translation[2]:.3f})[/blue]"
    )

    transforms: Dict[str, NodeTransform] = {}
    for pose, matrix in zip(poses, matrices):
        if pose.node_id in transforms:
            raise DuplicateNodeError(pose.node_id)

        recentered = translate_matrix(matrix, anchor_translation)
        transforms[pose.node_id] = NodeTransform(
            node_id=pose.node_id,
            matrix=recentered.astype(np.float32),
        )

        if verbose:
            t = recentered[:3, 3]
            console.print(f"  {pose.node_id}: ({t[0]:.4f}, {t[1]:.4f}, {t[2]:.4f})")

    return ResolvedPoses(anchor=anchor, transforms=transforms)
