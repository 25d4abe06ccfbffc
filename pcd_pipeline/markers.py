"""
Node Marker Geometry

Builds a small icosphere at every node's re-centered position so node
frames can be shown next to the points. Purely a visualization aid.
"""

from dataclasses import dataclass
from typing import Dict, List, Tuple

import numpy as np

from pcd_utils.matrix import transform_points

from .anchor import NodeTransform


@dataclass
class MarkerMesh:
    node_id: str
    vertices: np.ndarray  # (V, 3) float32
    faces: np.ndarray  # (F, 3) int32


def icosphere(radius: float = 1.0, subdivisions: int = 0) -> Tuple[np.ndarray, np.ndarray]:
    """
    Unit icosahedron refined by midpoint subdivision, scaled to `radius`.

    Returns:
        Tuple of (vertices, faces); 10 * 4**n + 2 vertices, 20 * 4**n faces
    """
    t = (1.0 + 5.0 ** 0.5) / 2.0
    vertices: List[np.ndarray] = [
        np.array(v, dtype=np.float64)
        for v in [
            (-1, t, 0), (1, t, 0), (-1, -t, 0), (1, -t, 0),
            (0, -1, t), (0, 1, t), (0, -1, -t), (0, 1, -t),
            (t, 0, -1), (t, 0, 1), (-t, 0, -1), (-t, 0, 1),
        ]
    ]
    vertices = [v / np.linalg.norm(v) for v in vertices]
    faces = [
        (0, 11, 5), (0, 5, 1), (0, 1, 7), (0, 7, 10), (0, 10, 11),
        (1, 5, 9), (5, 11, 4), (11, 10, 2), (10, 7, 6), (7, 1, 8),
        (3, 9, 4), (3, 4, 2), (3, 2, 6), (3, 6, 8), (3, 8, 9),
        (4, 9, 5), (2, 4, 11), (6, 2, 10), (8, 6, 7), (9, 8, 1),
    ]

    for _ in range(subdivisions):
        midpoints: Dict[Tuple[int, int], int] = {}

        def midpoint(a: int, b: int) -> int:
            key = (a, b) if a < b else (b, a)
            if key not in midpoints:
                m = (vertices[a] + vertices[b]) / 2.0
                vertices.append(m / np.linalg.norm(m))
                midpoints[key] = len(vertices) - 1
            return midpoints[key]

        refined = []
        for a, b, c in faces:
            ab, bc, ca = midpoint(a, b), midpoint(b, c), midpoint(c, a)
            refined.extend([(a, ab, ca), (b, bc, ab), (c, ca, bc), (ab, bc, ca)])
        faces = refined

    return np.array(vertices) * radius, np.array(faces, dtype=np.int32)


def build_node_markers(
    transforms: Dict[str, NodeTransform],
    radius: float = 0.3,
    subdivisions: int = 5,
) -> List[MarkerMesh]:
    """
    One sphere per node, placed with the node's full transform.

    Markers are sorted by node id so output is deterministic.
    """
    base_vertices, faces = icosphere(radius, subdivisions)
    base_vertices = base_vertices.astype(np.float32)

    return [
        MarkerMesh(
            node_id=node_id,
            vertices=transform_points(transforms[node_id].matrix, base_vertices),
            faces=faces,
        )
        for node_id in sorted(transforms)
    ]
