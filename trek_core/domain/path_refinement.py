"""
Path refinement pipeline.

Converts a fused trace into a clean, distance-accurate path:

1. Outlier removal (implied speed vs last kept point over elapsed time,
   1 s spacing assumed when times are unknown)
2. Douglas-Peucker simplification (Heron's-formula perpendicular distance)
3. Centered moving-average smoothing (edge windows shrink)
4. Chunked route-snapping through a Router, per-chunk fallback
5. Great-circle path length

Every stage is total: it always returns a usable sequence and never
reorders points.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import numpy as np

from trek_core.proto.samples import Coordinate
from trek_core.localization.geodesy import distance_m, path_length_m, perpendicular_distance_m
from trek_core.domain.routing import OfflineRouter, Router, TransportMode
from trek_core.metrics import MetricsCollector

logger = logging.getLogger(__name__)


@dataclass
class RefinementConfig:
    """
    Configuration for path refinement.

    Attributes:
        max_speed_m_s: Outlier speed ceiling (m/s)
        assumed_interval_s: Spacing assumed between consecutive points (s)
        simplify_tolerance_m: Douglas-Peucker tolerance (m)
        smoothing_window: Moving-average window (points)
        chunk_size: Points per route-snap request
        chunk_timeout_s: Wait bound per chunk result (s)
        max_concurrent_requests: Routing requests in flight
        transport_mode: Mode requested from the router
    """

    max_speed_m_s: float = 12.0
    assumed_interval_s: float = 1.0
    simplify_tolerance_m: float = 10.0
    smoothing_window: int = 5
    chunk_size: int = 10
    chunk_timeout_s: float = 10.0
    max_concurrent_requests: int = 4
    transport_mode: TransportMode = TransportMode.WALKING


@dataclass
class RefinedPath:
    """
    Output of each refinement stage.

    Attributes:
        outlier_free: After outlier removal
        simplified: After Douglas-Peucker
        smoothed: After moving average
        matched: After route-snapping
        distance_m: Length of the matched path (m)
        snapped_chunks: Chunks replaced by a routed path
        fallback_chunks: Chunks kept as-is after a routing failure
    """

    outlier_free: List[Coordinate] = field(default_factory=list)
    simplified: List[Coordinate] = field(default_factory=list)
    smoothed: List[Coordinate] = field(default_factory=list)
    matched: List[Coordinate] = field(default_factory=list)
    distance_m: float = 0.0
    snapped_chunks: int = 0
    fallback_chunks: int = 0


def remove_outliers(
    path: Sequence[Coordinate],
    max_speed_m_s: float = 12.0,
    assumed_interval_s: float = 1.0,
    timestamps: Optional[Sequence[float]] = None,
) -> List[Coordinate]:
    """
    Drop points implying an impossible speed from the last kept point.

    The first point is always kept.

    Args:
        path: Points in time order
        max_speed_m_s: Speed ceiling (m/s)
        assumed_interval_s: Spacing assumed between consecutive points, and
            the floor on elapsed time when timestamps are given (s)
        timestamps: Point times (s); elapsed time since the last kept point
            then replaces the assumed spacing, so a fix dropout is not
            mistaken for a jump

    Raises:
        ValueError: timestamps length does not match path
    """
    if timestamps is not None and len(timestamps) != len(path):
        raise ValueError(f"{len(timestamps)} timestamps for {len(path)} points")

    if len(path) < 2:
        return list(path)

    kept = [path[0]]
    kept_index = 0
    for i in range(1, len(path)):
        elapsed = assumed_interval_s
        if timestamps is not None:
            elapsed = max(assumed_interval_s, timestamps[i] - timestamps[kept_index])

        if distance_m(kept[-1], path[i]) / elapsed <= max_speed_m_s:
            kept.append(path[i])
            kept_index = i

    return kept


def simplify_path(path: Sequence[Coordinate], tolerance_m: float) -> List[Coordinate]:
    """
    Douglas-Peucker simplification.

    Iterative over index ranges with an explicit stack, so long traces do
    not hit the recursion limit. Endpoints are always kept.

    Args:
        path: Points in time order
        tolerance_m: Max perpendicular deviation allowed (m)

    Returns:
        Simplified path (subset of the input, order preserved)
    """
    n = len(path)
    if n <= 2:
        return list(path)

    keep = np.zeros(n, dtype=bool)
    keep[0] = keep[-1] = True

    stack: List[Tuple[int, int]] = [(0, n - 1)]
    while stack:
        start, end = stack.pop()
        if end - start < 2:
            continue

        max_distance = 0.0
        max_index = start
        for i in range(start + 1, end):
            d = perpendicular_distance_m(path[i], path[start], path[end])
            if d > max_distance:
                max_distance = d
                max_index = i

        if max_distance > tolerance_m:
            keep[max_index] = True
            stack.append((start, max_index))
            stack.append((max_index, end))

    return [p for p, k in zip(path, keep) if k]


def smooth_path(path: Sequence[Coordinate], window: int = 3) -> List[Coordinate]:
    """
    Centered moving average over lat and lon independently.

    Windows shrink at the edges. Paths no longer than the window are
    returned unchanged.
    """
    n = len(path)
    if window < 2 or n <= window:
        return list(path)

    coords = np.array([[p.lat, p.lon] for p in path], dtype=float)
    half = window // 2

    smoothed = []
    for i in range(n):
        start = max(0, i - half)
        end = min(n, i + half + 1)
        lat, lon = coords[start:end].mean(axis=0)
        smoothed.append(Coordinate(float(lat), float(lon)))

    return smoothed


def split_chunks(path: Sequence[Coordinate], chunk_size: int) -> List[List[Coordinate]]:
    """
    Split a path into chunks sharing one boundary point.

    Args:
        path: Points in time order
        chunk_size: Points per chunk (>= 2)

    Returns:
        Chunks of at most chunk_size points; consecutive chunks overlap by one
    """
    if chunk_size < 2:
        raise ValueError(f"chunk_size must be >= 2: {chunk_size}")

    n = len(path)
    if n < 2:
        return [list(path)] if path else []

    chunks = []
    start = 0
    while start < n - 1:
        end = min(start + chunk_size, n)
        chunks.append(list(path[start:end]))
        start = end - 1

    return chunks


class PathRefiner:
    """
    Runs the refinement stages in order.

    Usage:
        refiner = PathRefiner(RefinementConfig(), router=OfflineRouter())
        refined = refiner.refine(fused_path)
        print(refined.distance_m)

    Routing is best-effort: a failed, timed-out or unsupported chunk keeps
    its unsnapped points, and the rest of the path is unaffected.
    """

    def __init__(
        self,
        config: Optional[RefinementConfig] = None,
        router: Optional[Router] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        """
        Initialize refiner.

        Args:
            config: Refinement configuration (uses defaults if None)
            router: Routing collaborator (OfflineRouter if None)
            metrics: Metrics collector (private collector if None)
        """
        self.config = config or RefinementConfig()
        self.router = router or OfflineRouter()
        self.metrics = metrics or MetricsCollector()

    def refine(
        self,
        path: Sequence[Coordinate],
        transport_mode: Optional[TransportMode] = None,
        timestamps: Optional[Sequence[float]] = None,
    ) -> RefinedPath:
        """
        Run all stages over a fused path.

        Args:
            path: Fused path in time order
            transport_mode: Overrides the configured mode
            timestamps: Point times for outlier removal (1 s spacing assumed if None)

        Returns:
            RefinedPath with every intermediate stage
        """
        cfg = self.config
        mode = transport_mode or cfg.transport_mode

        outlier_free = remove_outliers(path, cfg.max_speed_m_s, cfg.assumed_interval_s, timestamps)
        dropped = len(path) - len(outlier_free)
        if dropped:
            self.metrics.increment_drop('outlier_point', dropped)

        simplified = simplify_path(outlier_free, cfg.simplify_tolerance_m)
        smoothed = smooth_path(simplified, cfg.smoothing_window)
        matched, snapped, fallback = self.snap(smoothed, mode)

        return RefinedPath(
            outlier_free=outlier_free,
            simplified=simplified,
            smoothed=smoothed,
            matched=matched,
            distance_m=path_length_m(matched),
            snapped_chunks=snapped,
            fallback_chunks=fallback,
        )

    def snap(
        self,
        path: Sequence[Coordinate],
        transport_mode: TransportMode,
    ) -> Tuple[List[Coordinate], int, int]:
        """
        Route-snap a path chunk by chunk.

        Requests run concurrently; results are joined back in chunk order.

        Returns:
            (matched path, snapped chunk count, fallback chunk count)
        """
        if len(path) < 2:
            return list(path), 0, 0

        chunks = split_chunks(path, self.config.chunk_size)
        results: List[List[Coordinate]] = []
        snapped = 0
        fallback = 0

        executor = ThreadPoolExecutor(max_workers=self.config.max_concurrent_requests)
        try:
            futures = [
                executor.submit(
                    self.router.route, chunk[0], chunk[-1], chunk[1:-1], transport_mode
                )
                for chunk in chunks
            ]

            for index, (chunk, future) in enumerate(zip(chunks, futures)):
                try:
                    routed = future.result(timeout=self.config.chunk_timeout_s)
                except Exception as e:
                    future.cancel()
                    logger.warning("Route snap failed for chunk %d, keeping raw points: %s", index, e)
                    self.metrics.increment_drop('route_snap_failed')
                    results.append(chunk)
                    fallback += 1
                    continue

                if not routed:
                    self.metrics.increment_drop('route_snap_failed')
                    results.append(chunk)
                    fallback += 1
                else:
                    results.append(list(routed))
                    snapped += 1
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        return _concatenate(results), snapped, fallback


def _concatenate(chunks: Sequence[Sequence[Coordinate]]) -> List[Coordinate]:
    """Join chunks in order, dropping a repeated boundary point."""
    joined: List[Coordinate] = []
    for chunk in chunks:
        points = list(chunk)
        if joined and points and points[0] == joined[-1]:
            points = points[1:]
        joined.extend(points)
    return joined
