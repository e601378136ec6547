"""
Unit tests for metrics module.

Tests cover:
- Stage counters and drop reasons
- Bounded histograms and their statistics
- Snapshot, reset and the text report
- Thread safety
- Per-session isolation
"""

import json
import logging
import threading

import pytest

from trek_core.metrics import MetricsCollector
from trek_core.localization import SensorFusionEngine, TrackingSession
from trek_core.domain import OSRMRouter, PathRefiner

from conftest import straight_fixes


class TestCounters:
    """Tests for counters and drop reasons."""

    def test_stage_counters_start_at_zero(self, metrics):
        counters = metrics.snapshot()['counters']
        for name in MetricsCollector.STAGE_COUNTERS:
            assert counters[name] == 0

        # Unknown counter reads as 0
        assert metrics.get_counter('never_touched') == 0

    def test_increment(self, metrics):
        metrics.increment('fixes_in')
        metrics.increment('fixes_in', 4)
        assert metrics.get_counter('fixes_in') == 5

    def test_drop_reason(self, metrics):
        metrics.increment_drop('anomalous_fix')
        metrics.increment_drop('outlier_point', 3)

        assert metrics.get_drop_count('anomalous_fix') == 1
        assert metrics.get_drop_count('outlier_point') == 3
        assert metrics.get_drop_count('stale_gap') == 0

    def test_unknown_drop_reason_warns(self, metrics, caplog):
        with caplog.at_level(logging.WARNING, logger='trek_core.metrics.counters'):
            metrics.increment_drop('cosmic_ray')

        assert 'cosmic_ray' in caplog.text
        assert metrics.get_drop_count('cosmic_ray') == 1


class TestHistograms:
    """Tests for histograms."""

    def test_stats(self, metrics):
        for value in (0.2, 0.9, 0.4):
            metrics.record_histogram('trust_score', value)

        stats = metrics.get_histogram_stats('trust_score')

        assert stats['count'] == 3
        assert stats['min'] == pytest.approx(0.2)
        assert stats['max'] == pytest.approx(0.9)
        assert stats['mean'] == pytest.approx(0.5)

    def test_empty(self, metrics):
        assert metrics.get_histogram_stats('fusion_gain') is None

    def test_p95(self, metrics):
        for i in range(101):
            metrics.record_histogram('routing_latency_s', float(i))
        assert metrics.get_histogram_stats('routing_latency_s')['p95'] == pytest.approx(95.0)

    def test_keeps_most_recent(self):
        metrics = MetricsCollector(histogram_capacity=10)
        for i in range(25):
            metrics.record_histogram('fusion_gain', float(i))

        stats = metrics.get_histogram_stats('fusion_gain')
        assert stats['count'] == 10
        assert stats['min'] == 15.0
        assert stats['max'] == 24.0


class TestSnapshotAndReset:
    """Tests for snapshot, reset and report."""

    def test_snapshot_is_copy(self, metrics):
        metrics.increment('fixes_in', 10)
        first = metrics.snapshot()
        metrics.increment('fixes_in', 5)

        assert first['counters']['fixes_in'] == 10
        assert metrics.snapshot()['counters']['fixes_in'] == 15

    def test_snapshot_lists_only_nonzero_drops(self, metrics):
        metrics.increment_drop('stale_gap', 2)
        assert metrics.snapshot()['drops'] == {'stale_gap': 2}

    def test_snapshot_is_json_ready(self, metrics):
        metrics.increment('fixes_in')
        metrics.increment_drop('anomalous_fix')
        metrics.record_histogram('trust_score', 0.7)

        decoded = json.loads(json.dumps(metrics.snapshot()))
        assert decoded['histograms']['trust_score']['count'] == 1

    def test_reset(self, metrics):
        metrics.increment('fixes_in', 100)
        metrics.increment_drop('anomalous_fix', 5)
        metrics.record_histogram('trust_score', 0.5)

        metrics.reset()

        snapshot = metrics.snapshot()
        assert snapshot['counters']['fixes_in'] == 0
        assert snapshot['drops'] == {}
        assert snapshot['histograms'] == {}

    def test_format_summary(self, metrics):
        metrics.increment('fixes_in', 3)
        metrics.increment_drop('anomalous_fix')
        metrics.record_histogram('trust_score', 0.9)

        report = metrics.format_summary()

        assert report.startswith('METRICS SUMMARY')
        assert 'anomalous_fix' in report
        assert 'trust_score' in report


class TestThreadSafety:
    """Tests for concurrent updates."""

    def test_concurrent_updates(self, metrics):
        def worker():
            for i in range(1000):
                metrics.increment('fixes_in')
                metrics.increment_drop('route_snap_failed')
                metrics.record_histogram('routing_latency_s', float(i))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert metrics.get_counter('fixes_in') == 8000
        assert metrics.get_drop_count('route_snap_failed') == 8000
        assert metrics.get_histogram_stats('routing_latency_s')['count'] == 1000


class TestIsolation:
    """Components without an explicit collector never share one."""

    def test_sessions_get_private_collectors(self):
        a = TrackingSession("a")
        b = TrackingSession("b")

        for fix in straight_fixes(3):
            a.accept(fix)

        assert a.metrics is not b.metrics
        assert a.metrics.get_counter('fixes_in') == 3
        assert b.metrics.get_counter('fixes_in') == 0

    def test_session_shares_its_collector_with_components(self):
        session = TrackingSession("s")
        assert session.fusion.metrics is session.metrics
        assert session.refiner.metrics is session.metrics

    def test_standalone_components(self):
        assert SensorFusionEngine().metrics is not SensorFusionEngine().metrics
        assert PathRefiner().metrics is not PathRefiner().metrics
        assert OSRMRouter("http://osrm.local").metrics is not OSRMRouter("http://osrm.local").metrics
