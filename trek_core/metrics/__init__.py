"""
Metrics Module: Per-session pipeline diagnostics.

Usage:
    from trek_core.metrics import MetricsCollector

    metrics = MetricsCollector()
    session = TrackingSession("run", metrics=metrics)

Components left without a collector create their own, so sessions never
share counters.
"""

from .counters import MetricsCollector

__all__ = ['MetricsCollector']
