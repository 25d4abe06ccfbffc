#!/usr/bin/env python3
"""
Generate a synthetic node pose + point cloud pair.

Creates node_pose.json and point_cloud.snappy.parquet with known-correct
poses at UTM-scale world coordinates. Every node holds a colored cube
sampled in its local frame, plus a few rows with a zero coordinate that
the decoder must drop. Use this to exercise the pipeline without real
survey data.

Usage:
    python scripts/generate_synthetic_cloud.py [output_dir]

Then run the pipeline:
    python -m pcd_pipeline.process run-dir synthetic_cloud/
"""

import json
import math
import sys
from pathlib import Path

import numpy as np
import pyarrow as pa
import pyarrow.parquet as pq


# ── Scene: colored cube per node ─────────────────────────────────────

CUBE_HALF = 0.5  # half-size in meters (1m cube)
POINTS_PER_FACE = 400

# (axis, sign, RGB color, face name)
FACES = [
    (2, +1, (220,  40,  40), "+Z front  RED"),
    (2, -1, ( 40, 200,  40), "-Z back   GREEN"),
    (0, +1, ( 40,  40, 220), "+X right  BLUE"),
    (0, -1, (220, 220,  40), "-X left   YELLOW"),
    (1, +1, ( 40, 220, 220), "+Y top    CYAN"),
    (1, -1, (220,  40, 220), "-Y bottom MAGENTA"),
]

DEGENERATE_ROWS_PER_NODE = 5


# ── Node layout ──────────────────────────────────────────────────────

# UTM zone 33N-like origin; float32 cannot hold these to the centimeter
WORLD_ORIGIN = np.array([3620823.7240922246, 5812345.1234567, 112.25])
NUM_NODES = 12
NODE_SPACING = 4.0  # meters between nodes along the path


def node_pose(i):
    """Node-to-world matrix: yaw around Z, placed along a gentle arc."""
    yaw = 2 * math.pi * i / NUM_NODES
    c, s = math.cos(yaw), math.sin(yaw)

    pose = np.eye(4)
    pose[:3, :3] = [
        [c, -s, 0],
        [s,  c, 0],
        [0,  0, 1],
    ]
    pose[:3, 3] = WORLD_ORIGIN + np.array([
        i * NODE_SPACING,
        math.sin(i / 3.0) * 2.0,
        0.1 * i,
    ])
    return pose


def pose_to_row_major_16(pose):
    """Flatten 4×4 → 16 floats in row-major order."""
    return [float(x) for x in pose.flatten()]


def sample_cube(rng):
    """Sample points on the cube surface. Returns (xyz, rgb)."""
    xyz, rgb = [], []
    for axis, sign, color, _name in FACES:
        face = rng.uniform(-CUBE_HALF, CUBE_HALF, size=(POINTS_PER_FACE, 3))
        face[:, axis] = sign * CUBE_HALF
        xyz.append(face)
        rgb.append(np.tile(color, (POINTS_PER_FACE, 1)))
    return np.vstack(xyz).astype(np.float32), np.vstack(rgb).astype(np.int32)


# ── Main ─────────────────────────────────────────────────────────────

def main():
    out = Path(sys.argv[1]) if len(sys.argv) > 1 else Path("synthetic_cloud")
    out.mkdir(parents=True, exist_ok=True)
    rng = np.random.default_rng(7)

    poses = []
    columns = {"node_uuid": [], "point_x": [], "point_y": [], "point_z": [], "r": [], "g": [], "b": []}

    for i in range(NUM_NODES):
        node_uuid = f"node-{i:04d}"
        poses.append({"nodeUuid": node_uuid, "optPos": pose_to_row_major_16(node_pose(i))})

        xyz, rgb = sample_cube(rng)

        # Rows the decoder has to drop: one coordinate exactly zero
        degenerate = xyz[:DEGENERATE_ROWS_PER_NODE].copy()
        degenerate[:, i % 3] = 0.0
        xyz = np.vstack([xyz, degenerate])
        rgb = np.vstack([rgb, rgb[:DEGENERATE_ROWS_PER_NODE]])

        columns["node_uuid"].extend([node_uuid] * len(xyz))
        for axis, name in enumerate(("point_x", "point_y", "point_z")):
            columns[name].append(xyz[:, axis])
        for channel, name in enumerate(("r", "g", "b")):
            columns[name].append(rgb[:, channel])

    with open(out / "node_pose.json", "w") as f:
        json.dump({"poses": poses}, f, indent=2)

    table = pa.table({
        "node_uuid": pa.array(columns["node_uuid"], type=pa.string()),
        "point_x": pa.array(np.concatenate(columns["point_x"]), type=pa.float32()),
        "point_y": pa.array(np.concatenate(columns["point_y"]), type=pa.float32()),
        "point_z": pa.array(np.concatenate(columns["point_z"]), type=pa.float32()),
        "r": pa.array(np.concatenate(columns["r"]), type=pa.int32()),
        "g": pa.array(np.concatenate(columns["g"]), type=pa.int32()),
        "b": pa.array(np.concatenate(columns["b"]), type=pa.int32()),
    })
    parquet_path = out / "point_cloud.snappy.parquet"
    pq.write_table(table, str(parquet_path), compression="snappy")

    # ── Summary ──
    total = table.num_rows
    dropped = NUM_NODES * DEGENERATE_ROWS_PER_NODE
    print(f"Synthetic point cloud: {out}")
    print(f"  {NUM_NODES} nodes  |  {total} rows  |  {dropped} degenerate rows")
    print(f"  World origin: {WORLD_ORIGIN.tolist()}")
    print(f"  Cube: 1 m, faces: RED(+Z) GREEN(-Z) BLUE(+X) YELLOW(-X) CYAN(+Y) MAGENTA(-Y)")
    print(f"\nRun pipeline:  python -m pcd_pipeline.process run-dir {out}")


if __name__ == "__main__":
    main()
