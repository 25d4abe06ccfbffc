"""
Point Decoding Pipeline Stage

Decodes the columnar (Parquet) point document into a PointCloud.

Required columns: node_uuid, point_x, point_y, point_z, r, g, b.
Rows with any coordinate exactly 0.0 are dropped. Colors must fit in
0-255; out-of-range values abort the load instead of being clamped.
"""

import time
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional, Sequence

import numpy as np
import pyarrow as pa
import pyarrow.parquet as pq
from rich.console import Console

from pcd_utils.validation import (
    COLOR_COLUMNS,
    NODE_COLUMN,
    POSITION_COLUMNS,
    REQUIRED_POINT_COLUMNS,
    validate_point_schema,
)

from .errors import ColorRangeError, SchemaError

console = Console()

DEFAULT_BATCH_SIZE = 10000


@dataclass(frozen=True)
class RawPoint:
    node_id: str
    x: float
    y: float
    z: float
    r: int
    g: int
    b: int


@dataclass
class PointCloud:
    """
    Decoded points in source order, stored column-wise.

    Attributes:
        node_ids: (N,) object array of node id strings
        positions: (N, 3) float32 local coordinates
        colors: (N, 3) uint8 RGB
        dropped: Number of rows removed by the zero-coordinate filter
    """
    node_ids: np.ndarray
    positions: np.ndarray
    colors: np.ndarray
    dropped: int = 0

    def __len__(self) -> int:
        return len(self.node_ids)

    def __getitem__(self, index: int) -> RawPoint:
        x, y, z = self.positions[index]
        r, g, b = self.colors[index]
        return RawPoint(
            node_id=self.node_ids[index],
            x=float(x), y=float(y), z=float(z),
            r=int(r), g=int(g), b=int(b),
        )

    def __iter__(self) -> Iterator[RawPoint]:
        for i in range(len(self)):
            yield self[i]

    @classmethod
    def empty(cls) -> "PointCloud":
        return cls(
            node_ids=np.empty(0, dtype=object),
            positions=np.empty((0, 3), dtype=np.float32),
            colors=np.empty((0, 3), dtype=np.uint8),
        )


def check_schema(schema: pa.Schema) -> None:
    """Raise SchemaError for the first missing or mistyped required column."""
    problems = validate_point_schema(schema)
    if problems:
        column, problem = problems[0]
        raise SchemaError(problem, column=column)


def narrow_color(values: np.ndarray, channel: str, batch_index: int) -> np.ndarray:
    """
    Checked narrowing of an integer color column to uint8.

    Raises:
        ColorRangeError: At the first value outside 0-255
    """
    # compare in the source dtype; a uint64 value wraps when cast to int64
    out_of_range = values > 255
    if np.issubdtype(values.dtype, np.signedinteger):
        out_of_range |= values < 0
    bad = np.flatnonzero(out_of_range)
    if bad.size:
        row = int(bad[0])
        raise ColorRangeError(channel, int(values[row]), batch_index, row)
    return values.astype(np.uint8)


def _column(batch: pa.RecordBatch, name: str) -> pa.Array:
    column = batch.column(batch.schema.get_field_index(name))
    if column.null_count:
        raise SchemaError(f"contains {column.null_count} null values", column=name)
    return column


class PointCloudBuilder:
    """Accumulates decoded batches into storage pre-sized from the total row count."""

    def __init__(self, total_rows: int):
        self.node_ids = np.empty(total_rows, dtype=object)
        self.positions = np.empty((total_rows, 3), dtype=np.float32)
        self.colors = np.empty((total_rows, 3), dtype=np.uint8)
        self.count = 0
        self.rows_seen = 0
        self.batches_seen = 0

    def _reserve(self, extra: int) -> None:
        needed = self.count + extra
        if needed <= len(self.node_ids):
            return
        # Only reached when the declared row count was too small
        capacity = max(needed, 2 * len(self.node_ids))
        self.node_ids = np.concatenate([self.node_ids[:self.count], np.empty(capacity - self.count, dtype=object)])
        self.positions = np.concatenate([self.positions[:self.count], np.empty((capacity - self.count, 3), dtype=np.float32)])
        self.colors = np.concatenate([self.colors[:self.count], np.empty((capacity - self.count, 3), dtype=np.uint8)])

    def append(self, batch: pa.RecordBatch) -> int:
        """
        Decode one batch and append its surviving rows.

        Returns:
            Number of rows kept from this batch
        """
        batch_index = self.batches_seen
        self.batches_seen += 1
        self.rows_seen += batch.num_rows

        check_schema(batch.schema)
        columns = {name: _column(batch, name) for name in REQUIRED_POINT_COLUMNS}

        # Colors are checked on every row, including rows dropped below
        rgb = [
            narrow_color(columns[name].to_numpy(zero_copy_only=False), name, batch_index)
            for name in COLOR_COLUMNS
        ]
        xyz = [
            np.asarray(columns[name].to_numpy(zero_copy_only=False), dtype=np.float32)
            for name in POSITION_COLUMNS
        ]

        keep = (xyz[0] != 0.0) & (xyz[1] != 0.0) & (xyz[2] != 0.0)
        kept = int(np.count_nonzero(keep))
        if kept == 0:
            return 0

        self._reserve(kept)
        start, end = self.count, self.count + kept
        node_ids = columns[NODE_COLUMN].to_numpy(zero_copy_only=False)
        self.node_ids[start:end] = node_ids[keep]
        for axis in range(3):
            self.positions[start:end, axis] = xyz[axis][keep]
            self.colors[start:end, axis] = rgb[axis][keep]
        self.count = end
        return kept

    def build(self) -> PointCloud:
        return PointCloud(
            node_ids=self.node_ids[:self.count],
            positions=self.positions[:self.count],
            colors=self.colors[:self.count],
            dropped=self.rows_seen - self.count,
        )


def _report(cloud: PointCloud, started: float) -> None:
    duration_ms = (time.time() - started) * 1000
    console.print(f"[green]Loaded {len(cloud)} points in {duration_ms:.0f} ms[/green]")
    if cloud.dropped:
        console.print(f"[yellow]Dropped {cloud.dropped} rows with a zero coordinate[/yellow]")


def decode_batches(batches: Sequence[pa.RecordBatch]) -> PointCloud:
    """
    Decode record batches sharing the point schema, in the given order.

    Raises:
        SchemaError: If a required column is missing, mistyped or has nulls
        ColorRangeError: If a color value is outside 0-255
    """
    started = time.time()
    builder = PointCloudBuilder(sum(b.num_rows for b in batches))
    for batch in batches:
        builder.append(batch)
    cloud = builder.build()
    _report(cloud, started)
    return cloud


def decode_point_document(data: bytes, batch_size: Optional[int] = None) -> PointCloud:
    """
    Decode raw Parquet document bytes.

    Args:
        data: Parquet file contents
        batch_size: Rows per record batch (default 10000)

    Returns:
        PointCloud in batch/row order
    """
    started = time.time()
    try:
        parquet = pq.ParquetFile(pa.BufferReader(data))
    except pa.ArrowException as e:
        raise SchemaError(f"Unreadable point document: {e}") from e

    check_schema(parquet.schema_arrow)

    builder = PointCloudBuilder(parquet.metadata.num_rows)
    batches: Iterable[pa.RecordBatch] = parquet.iter_batches(batch_size=batch_size or DEFAULT_BATCH_SIZE)
    try:
        for batch in batches:
            builder.append(batch)
    except pa.ArrowException as e:
        raise SchemaError(f"Failed to read point batch: {e}") from e

    cloud = builder.build()
    _report(cloud, started)
    return cloud
