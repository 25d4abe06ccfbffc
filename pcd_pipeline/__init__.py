"""
Point Cloud Ingestion Pipeline

Turns a node pose document and a columnar point document into a single
global-space position/color buffer ready for rendering.

Pipeline stages:
1. Parse Poses - JSON node poses -> row-major 4x4 matrices
2. Resolve Anchor - Pick the anchor node, re-center translations, narrow to float32
3. Decode Points - Parquet batches -> per-node points, zero-coordinate rows dropped
4. Transform & Merge - Local -> global positions, normalized RGBA colors

Stages 1-2 and 3 run concurrently; stage 4 runs once both are done.
"""

__version__ = "0.1.0"
