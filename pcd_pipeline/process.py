"""
Main Processing Pipeline Orchestrator

Runs one point cloud load: the pose path (parse + anchor) and the point
path (decode) run concurrently, then the merge stage runs exactly once.
"""

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional
from rich.console import Console
from rich.panel import Panel
import typer

from .anchor import Anchor, ResolvedPoses, resolve_transforms
from .decode_points import DEFAULT_BATCH_SIZE, PointCloud, decode_point_document
from .errors import LoadError
from .ingest import locate_documents, read_document
from .markers import MarkerMesh, build_node_markers
from .merge import RenderBuffer, transform_and_merge
from .parse_poses import parse_pose_document

console = Console()
app = typer.Typer(help="Point Cloud Ingestion Pipeline")


@dataclass
class PipelineConfig:
    """Configuration for a point cloud load."""
    # Point decoding
    batch_size: int = DEFAULT_BATCH_SIZE

    # Node markers
    build_markers: bool = False
    marker_radius: float = 0.3
    marker_subdivisions: int = 5

    # Execution
    max_workers: int = 2  # one per decode path
    verbose: bool = False


@dataclass
class PipelineStats:
    """Statistics collected during a load."""
    start_time: float = 0
    end_time: float = 0
    stages: Dict = field(default_factory=dict)

    def start(self):
        self.start_time = time.time()

    def stop(self):
        self.end_time = time.time()

    def record_stage(self, name: str, duration: float, **kwargs):
        self.stages[name] = {"duration_seconds": duration, **kwargs}

    @property
    def total_duration(self) -> float:
        return self.end_time - self.start_time


@dataclass
class LoadResult:
    """Everything handed to the rendering side after a successful load."""
    buffer: RenderBuffer
    anchor: Anchor
    node_count: int
    dropped_points: int
    markers: List[MarkerMesh] = field(default_factory=list)


class PointCloudLoad:
    """
    One-shot pipeline state for a single load.

    Each decode path hands its result over once. `take_render_buffer`
    moves both results out and merges them; until both are present, and
    after the merge has happened, it returns None so a caller can poll it
    every tick.
    """

    def __init__(self, config: Optional[PipelineConfig] = None):
        self.config = config or PipelineConfig()
        self._lock = threading.Lock()
        self._resolved: Optional[ResolvedPoses] = None
        self._cloud: Optional[PointCloud] = None
        self._has_poses = False
        self._has_points = False
        self._consumed = False

    def provide_transforms(self, resolved: ResolvedPoses) -> None:
        with self._lock:
            if self._has_poses:
                raise RuntimeError("Transforms were already provided for this load")
            self._resolved = resolved
            self._has_poses = True

    def provide_points(self, cloud: PointCloud) -> None:
        with self._lock:
            if self._has_points:
                raise RuntimeError("Points were already provided for this load")
            self._cloud = cloud
            self._has_points = True

    @property
    def ready(self) -> bool:
        with self._lock:
            return self._resolved is not None and self._cloud is not None

    @property
    def consumed(self) -> bool:
        with self._lock:
            return self._consumed

    def take_render_buffer(self) -> Optional[LoadResult]:
        """
        Run the merge stage if both inputs are ready and it has not run yet.

        Returns:
            LoadResult on the first successful call, None otherwise

        Raises:
            UnresolvedNodeError: From the merge stage. The inputs stay
                consumed; a failed load is not retried.
        """
        with self._lock:
            if self._consumed or self._resolved is None or self._cloud is None:
                return None
            resolved, cloud = self._resolved, self._cloud
            self._resolved = None
            self._cloud = None
            self._consumed = True

        buffer = transform_and_merge(resolved.transforms, cloud)

        markers = []
        if self.config.build_markers:
            markers = build_node_markers(
                resolved.transforms,
                radius=self.config.marker_radius,
                subdivisions=self.config.marker_subdivisions,
            )

        return LoadResult(
            buffer=buffer,
            anchor=resolved.anchor,
            node_count=len(resolved.transforms),
            dropped_points=cloud.dropped,
            markers=markers,
        )


def run_load_from_sources(
    read_poses: Callable[[], bytes],
    read_points: Callable[[], bytes],
    config: Optional[PipelineConfig] = None,
    stats: Optional[PipelineStats] = None,
) -> LoadResult:
    """
    Run a load from two byte sources.

    Args:
        read_poses: Returns the pose document bytes
        read_points: Returns the point document bytes
        config: Pipeline configuration
        stats: Optional stats collector

    Returns:
        LoadResult with the render buffer
    """
    config = config or PipelineConfig()
    stats = stats or PipelineStats()
    load = PointCloudLoad(config)

    def pose_path():
        stage_start = time.time()
        resolved = resolve_transforms(parse_pose_document(read_poses()), verbose=config.verbose)
        return resolved, time.time() - stage_start

    def point_path():
        stage_start = time.time()
        cloud = decode_point_document(read_points(), batch_size=config.batch_size)
        return cloud, time.time() - stage_start

    with ThreadPoolExecutor(max_workers=max(1, config.max_workers)) as executor:
        pose_future = executor.submit(pose_path)
        point_future = executor.submit(point_path)

        resolved, pose_duration = pose_future.result()
        load.provide_transforms(resolved)
        stats.record_stage("poses", pose_duration, node_count=len(resolved.transforms))

        cloud, point_duration = point_future.result()
        load.provide_points(cloud)
        stats.record_stage("points", point_duration, point_count=len(cloud), dropped=cloud.dropped)

    stage_start = time.time()
    result = load.take_render_buffer()
    stats.record_stage("merge", time.time() - stage_start, point_count=len(result.buffer))
    return result


def run_load(
    pose_path: Path,
    points_path: Path,
    config: Optional[PipelineConfig] = None,
) -> LoadResult:
    """
    Load a pose document and a point document into a render buffer.

    Args:
        pose_path: Path to the node pose JSON document
        points_path: Path to the Parquet point document
        config: Pipeline configuration

    Returns:
        LoadResult with the render buffer
    """
    config = config or PipelineConfig()
    stats = PipelineStats()
    stats.start()

    console.print(Panel.fit(
        "[bold blue]Point Cloud Ingestion[/bold blue]\n"
        f"Poses: {pose_path}\n"
        f"Points: {points_path}",
        border_style="blue"
    ))

    try:
        result = run_load_from_sources(
            lambda: read_document(pose_path),
            lambda: read_document(points_path),
            config=config,
            stats=stats,
        )
    except LoadError as e:
        console.print(f"[bold red]Load failed:[/bold red] {e.kind}: {e}")
        raise
    stats.stop()

    bounds = result.buffer.bounds()
    anchor = result.anchor.translation
    console.print(Panel.fit(
        f"[bold green]Load Complete![/bold green]\n\n"
        f"Nodes: {result.node_count}\n"
        f"Anchor: {result.anchor.node_id} "
        f"({anchor[0]:.3f}, {anchor[1]:.3f}, {anchor[2]:.3f})\n"
        f"Points: {len(result.buffer)} ({result.dropped_points} dropped)\n"
        f"Extent: {', '.join(f'{v:.2f}' for v in bounds['extent'])}\n"
        f"Total time: {stats.total_duration:.2f}s",
        border_style="green"
    ))

    if config.verbose:
        for name, stage in stats.stages.items():
            console.print(f"  [blue]{name}[/blue]: {stage['duration_seconds'] * 1000:.0f} ms")

    return result


def _run_cli(pose_path: Path, points_path: Path, config: PipelineConfig) -> None:
    try:
        run_load(pose_path, points_path, config)
    except LoadError:
        raise typer.Exit(1)


@app.command()
def run(
    pose_path: Path = typer.Argument(..., help="Path to node pose JSON document"),
    points_path: Path = typer.Argument(..., help="Path to Parquet point document"),
    batch_size: int = typer.Option(DEFAULT_BATCH_SIZE, help="Rows per Parquet record batch"),
    markers: bool = typer.Option(False, "--markers", help="Build node marker spheres"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Print per-node transforms and stage timings"),
):
    """Load a point cloud from a pose document and a point document."""
    config = PipelineConfig(batch_size=batch_size, build_markers=markers, verbose=verbose)
    _run_cli(pose_path, points_path, config)


@app.command("run-dir")
def run_dir(
    input_dir: Path = typer.Argument(..., help="Directory with node_pose.json and a .parquet file"),
    batch_size: int = typer.Option(DEFAULT_BATCH_SIZE, help="Rows per Parquet record batch"),
    markers: bool = typer.Option(False, "--markers", help="Build node marker spheres"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Print per-node transforms and stage timings"),
):
    """Load a point cloud from a directory holding both documents."""
    try:
        pose_path, points_path = locate_documents(input_dir)
    except LoadError as e:
        console.print(f"[bold red]Error:[/bold red] {e.kind}: {e}")
        raise typer.Exit(1)

    config = PipelineConfig(batch_size=batch_size, build_markers=markers, verbose=verbose)
    _run_cli(pose_path, points_path, config)


@app.command("stages")
def list_stages():
    """List all pipeline stages."""
    stages = [
        ("1. Parse Poses", "Decode node pose JSON into row-major matrices"),
        ("2. Resolve Anchor", "Pick the anchor node and re-center translations"),
        ("3. Decode Points", "Decode Parquet batches, drop zero-coordinate rows"),
        ("4. Transform & Merge", "Move points into the shared frame, encode colors"),
    ]

    console.print("[bold]Pipeline Stages:[/bold]\n")
    for name, desc in stages:
        console.print(f"  [blue]{name}[/blue]: {desc}")


if __name__ == "__main__":
    app()
