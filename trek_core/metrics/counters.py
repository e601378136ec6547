"""
Pipeline diagnostics for one tracking session.

Counts samples as they move through the pipeline stages and records every
excluded sample under a reason code; nothing is dropped silently.

Stages:
- intake: fixes_in, inertial_samples_in, pedometer_samples_in
- trust: fixes_accepted, drops 'anomalous_fix'
- fusion: fusion_updates, fusion_skipped, drops 'out_of_order' / 'stale_gap'
- refinement: drops 'outlier_point' / 'route_snap_failed'
"""

import logging
import threading
from collections import Counter, defaultdict, deque
from typing import Deque, Dict, Optional

import numpy as np

logger = logging.getLogger(__name__)


class MetricsCollector:
    """
    Stage counters, drop reasons and bounded histograms.

    Usage:
        metrics = MetricsCollector()
        metrics.increment('fixes_in')
        metrics.increment_drop('anomalous_fix')
        metrics.record_histogram('trust_score', 0.82)

        print(metrics.format_summary())

    Thread-safe: route-snap workers report into the session's collector.
    """

    DROP_REASONS = {
        'anomalous_fix': 'Fix failed implied-speed/accuracy/clock checks',
        'out_of_order': 'Sample timestamp regressed within the session',
        'stale_gap': 'Elapsed time since last update exceeded the ceiling',
        'outlier_point': 'Path point implied an impossible speed',
        'route_snap_failed': 'Routing collaborator failed or timed out for a chunk',
    }

    STAGE_COUNTERS = (
        'fixes_in',
        'fixes_accepted',
        'inertial_samples_in',
        'pedometer_samples_in',
        'fusion_updates',
        'fusion_skipped',
        'sessions_finalized',
    )

    def __init__(self, histogram_capacity: int = 1000):
        """
        Args:
            histogram_capacity: Most recent values kept per histogram
        """
        self._lock = threading.Lock()
        self._capacity = histogram_capacity
        self._clear()

    def _clear(self):
        self._counters: Counter = Counter({name: 0 for name in self.STAGE_COUNTERS})
        self._drops: Counter = Counter({reason: 0 for reason in self.DROP_REASONS})
        self._histograms: Dict[str, Deque[float]] = defaultdict(
            lambda: deque(maxlen=self._capacity)
        )

    def increment(self, name: str, value: int = 1):
        with self._lock:
            self._counters[name] += value

    def increment_drop(self, reason: str, value: int = 1):
        """Count excluded samples under a reason code."""
        if reason not in self.DROP_REASONS:
            logger.warning("Unknown drop reason '%s'", reason)

        with self._lock:
            self._drops[reason] += value

    def get_counter(self, name: str) -> int:
        with self._lock:
            return self._counters[name]

    def get_drop_count(self, reason: str) -> int:
        with self._lock:
            return self._drops[reason]

    def record_histogram(self, name: str, value: float):
        with self._lock:
            self._histograms[name].append(float(value))

    def get_histogram_stats(self, name: str) -> Optional[Dict[str, float]]:
        """
        Summary statistics over the retained values.

        Returns:
            Dict with count, min, max, mean, p95; None if nothing recorded
        """
        with self._lock:
            values = np.array(self._histograms.get(name, ()), dtype=float)

        if values.size == 0:
            return None

        return {
            'count': int(values.size),
            'min': float(values.min()),
            'max': float(values.max()),
            'mean': float(values.mean()),
            'p95': float(np.percentile(values, 95)),
        }

    def snapshot(self) -> dict:
        """JSON-ready view: counters, non-zero drops, histogram stats."""
        with self._lock:
            counters = dict(self._counters)
            drops = {reason: n for reason, n in self._drops.items() if n}
            names = list(self._histograms)

        return {
            'counters': counters,
            'drops': drops,
            'histograms': {name: self.get_histogram_stats(name) for name in names},
        }

    def reset(self):
        with self._lock:
            self._clear()

    def format_summary(self) -> str:
        """Human-readable report, one stage counter per line."""
        view = self.snapshot()
        lines = ["METRICS SUMMARY", "-" * 40]

        for name, value in sorted(view['counters'].items()):
            lines.append(f"  {name:28s}{value:8d}")

        if view['drops']:
            lines.append("Dropped:")
            for reason, count in sorted(view['drops'].items()):
                lines.append(f"  {reason:28s}{count:8d}")

        for name, stats in sorted(view['histograms'].items()):
            lines.append(f"  {name}: n={stats['count']} mean={stats['mean']:.3f} p95={stats['p95']:.3f}")

        return "\n".join(lines)
