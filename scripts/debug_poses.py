#!/usr/bin/env python3
"""Debug script to analyze node poses in node_pose.json"""

import sys
from pathlib import Path

import numpy as np

from pcd_pipeline.anchor import resolve_transforms
from pcd_pipeline.parse_poses import parse_pose_document
from pcd_utils.matrix import float32_rounding_error, row_major_to_matrix
from pcd_utils.validation import PoseRecord, validate_poses


def analyze_poses(pose_path: str):
    data = Path(pose_path).read_bytes()
    poses = parse_pose_document(data)

    print("=" * 60)
    print("NODE_POSE.JSON ANALYSIS")
    print("=" * 60)
    print()
    print(f"Nodes: {len(poses)}")

    records = [PoseRecord(node_uuid=p.node_id, opt_pos=list(p.matrix_entries)) for p in poses]
    is_valid, stats, errors = validate_poses(records)
    print(f"Non-rigid bases: {stats['non_rigid']}")
    print(f"Max |translation|: {stats['max_translation']:.3f}")
    for error in errors:
        print(f"❌ {error}")
    if not is_valid:
        return

    print()
    print("=" * 60)
    print("FIRST 5 NODE POSES")
    print("=" * 60)

    for pose in poses[:5]:
        m = row_major_to_matrix(pose.matrix_entries)
        pos = m[:3, 3]
        print(f"\nNode {pose.node_id}")
        print(f"  Position:  [{pos[0]:14.4f}, {pos[1]:14.4f}, {pos[2]:10.4f}]")
        print(f"  Basis det: {np.linalg.det(m[:3, :3]):.4f}")

    # Precision analysis
    world = np.array([row_major_to_matrix(p.matrix_entries)[:3, 3] for p in poses])
    resolved = resolve_transforms(poses)
    local = np.array([resolved.transforms[p.node_id].translation for p in poses], dtype=np.float64)
    recentered = world - resolved.anchor.translation

    naive_error = float32_rounding_error(world).max()
    recentered_error = np.abs(local - recentered).max()

    print()
    print("=" * 60)
    print("FLOAT32 PRECISION")
    print("=" * 60)
    print(f"Anchor: {resolved.anchor.node_id} at {resolved.anchor.translation.tolist()}")
    print(f"Max error storing world translations as float32:   {naive_error * 100:.3f} cm")
    print(f"Max error storing re-centered translations:        {recentered_error * 100:.5f} cm")

    spread = world.max(axis=0) - world.min(axis=0)
    if naive_error > 0.01:
        print(f"⚠️  World coordinates lose >1 cm in float32 - re-centering is required")
    if spread.max() > 10000:
        print(f"⚠️  Node spread very large ({spread.max():.0f} m) - re-centered values stay large too")
    else:
        print(f"✓ Node spread: {spread.max():.2f} m")


if __name__ == "__main__":
    path = sys.argv[1] if len(sys.argv) > 1 else "synthetic_cloud/node_pose.json"
    analyze_poses(path)
