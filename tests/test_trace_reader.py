"""
Unit tests for the JSON-lines trace reader and the replay CLI.
"""

import json

import pytest

from trek_core.proto import ActivityLabel, InertialSample, PedometerSample, RawFix
from trek_core.io import TraceFormatError, iter_trace, load_trace, parse_record
from trek_core.domain import OfflineRouter, OSRMRouter, TransportMode
from trek_core.metrics import MetricsCollector

import config
import main
from conftest import straight_fixes


def write_trace(path, records, extra_lines=()):
    lines = [json.dumps(r) for r in records]
    lines.extend(extra_lines)
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


def fix_record(fix):
    return {'type': 'fix', 't': fix.timestamp, 'lat': fix.lat, 'lon': fix.lon,
            'accuracy': fix.accuracy_m, 'speed': fix.speed_m_s, 'course': fix.course_deg}


class TestParseRecord:
    """Tests for single-record parsing."""

    def test_fix_defaults(self):
        fix = parse_record({'type': 'fix', 't': 1, 'lat': 22.29, 'lon': 114.17})

        assert isinstance(fix, RawFix)
        assert fix.timestamp == 1.0
        assert not fix.has_accuracy
        assert not fix.has_speed
        assert not fix.has_course
        assert fix.altitude_m is None

    def test_fix_full(self):
        fix = parse_record({'type': 'fix', 't': 0.0, 'lat': 22.29, 'lon': 114.17,
                            'accuracy': 5.0, 'speed': 3.0, 'course': 90.0, 'altitude': 12.5})
        assert fix == RawFix(0.0, 22.29, 114.17, 5.0, 3.0, 90.0, 12.5)

    def test_inertial(self):
        sample = parse_record({'type': 'inertial', 't': 0.5, 'accel': [0.3, 0.4, 0.0],
                               'attitude': [0.0, 0.1, 0.2], 'magnetic_heading': 45})

        assert isinstance(sample, InertialSample)
        assert sample.accel_magnitude == pytest.approx(0.5)
        assert sample.magnetic_heading_deg == 45.0

    def test_pedometer(self):
        sample = parse_record({'type': 'pedometer', 't': 1.0, 'steps': 3, 'cadence': 2.5})
        assert sample == PedometerSample(1.0, 3, 2.5)

    def test_motion(self):
        assert parse_record({'type': 'motion', 't': 1.0, 'activity': 'hike'}) == ActivityLabel.HIKE

    @pytest.mark.parametrize("record", [
        {'type': 'fix', 't': 0.0, 'lat': 22.29},
        {'type': 'fix', 't': 'soon', 'lat': 22.29, 'lon': 114.17},
        {'type': 'inertial', 't': 0.0, 'accel': [1.0, 2.0]},
        {'type': 'pedometer', 't': 0.0, 'steps': -1},
        {'type': 'motion', 't': 0.0, 'activity': 'swim'},
        {'type': 'teleport', 't': 0.0},
        {'t': 0.0},
    ])
    def test_invalid(self, record):
        with pytest.raises(TraceFormatError):
            parse_record(record, line_no=7)

    def test_error_carries_line(self):
        with pytest.raises(TraceFormatError) as excinfo:
            parse_record({'type': 'bogus'}, line_no=12)
        assert excinfo.value.line_no == 12
        assert "line 12" in str(excinfo.value)


class TestTraceFile:
    """Tests for reading whole files."""

    def test_load(self, tmp_path):
        path = write_trace(tmp_path / "run.jsonl", [
            {'type': 'fix', 't': 0.0, 'lat': 22.29, 'lon': 114.17, 'accuracy': 5.0},
            {'type': 'inertial', 't': 0.1},
            {'type': 'pedometer', 't': 1.0, 'steps': 2},
        ], extra_lines=["", "# trailing comment"])

        records = load_trace(path)

        assert [type(r) for r in records] == [RawFix, InertialSample, PedometerSample]

    def test_invalid_json_line(self, tmp_path):
        path = write_trace(tmp_path / "bad.jsonl",
                           [{'type': 'inertial', 't': 0.0}], extra_lines=["{not json"])

        with pytest.raises(TraceFormatError) as excinfo:
            load_trace(path)
        assert excinfo.value.line_no == 2

    def test_non_object_line(self, tmp_path):
        path = write_trace(tmp_path / "list.jsonl", [[1, 2, 3]])
        with pytest.raises(TraceFormatError):
            load_trace(path)

    def test_iter_is_lazy(self, tmp_path):
        path = write_trace(tmp_path / "lazy.jsonl",
                           [{'type': 'inertial', 't': 0.0}], extra_lines=["oops"])
        records = iter_trace(path)
        assert isinstance(next(records), InertialSample)
        with pytest.raises(TraceFormatError):
            next(records)


class TestReplayCli:
    """Tests for the replay entry point."""

    def test_json_summary(self, tmp_path, capsys):
        records = [fix_record(f) for f in straight_fixes(10, speed=3.0)]
        records.append({'type': 'pedometer', 't': 9.0, 'steps': 24, 'cadence': 2.7})
        path = write_trace(tmp_path / "run.jsonl", records)

        assert main.main([str(path), '--json']) == 0

        summary = json.loads(capsys.readouterr().out)
        assert summary['activity_label'] == 'run'
        assert summary['duration_s'] == pytest.approx(9.0)
        assert summary['steps'] == 24

    def test_motion_hint(self, tmp_path, capsys):
        path = write_trace(tmp_path / "still.jsonl", [
            {'type': 'motion', 't': 0.0, 'activity': 'walk'},
            {'type': 'fix', 't': 0.0, 'lat': 22.29, 'lon': 114.17, 'accuracy': 5.0},
        ])

        assert main.main([str(path), '--json']) == 0
        assert json.loads(capsys.readouterr().out)['activity_label'] == 'walk'

    def test_text_summary(self, tmp_path, capsys):
        records = [fix_record(f) for f in straight_fixes(5, speed=1.4)]
        path = write_trace(tmp_path / "walk.jsonl", records)

        assert main.main([str(path), '--metrics']) == 0

        out = capsys.readouterr().out
        assert "ACTIVITY SUMMARY" in out
        assert "METRICS SUMMARY" in out

    def test_bad_trace_exit_code(self, tmp_path):
        path = write_trace(tmp_path / "bad.jsonl", [{'type': 'teleport'}])
        assert main.main([str(path)]) == 1

    def test_missing_file_exit_code(self, tmp_path):
        assert main.main([str(tmp_path / "missing.jsonl")]) == 1

    def test_json_with_metrics(self, tmp_path, capsys):
        records = [fix_record(f) for f in straight_fixes(5, speed=1.4)]
        path = write_trace(tmp_path / "walk.jsonl", records)

        assert main.main([str(path), '--json', '--metrics']) == 0

        payload = json.loads(capsys.readouterr().out)
        assert payload['metrics']['counters']['fixes_in'] == 5

    def test_overrides_leave_config_untouched(self):
        metrics = MetricsCollector()
        session = main.build_session("s", metrics, osrm_url="http://osrm.local:5000",
                                     transport_mode="cycling")

        assert isinstance(session.refiner.router, OSRMRouter)
        assert session.refiner.router.base_url == "http://osrm.local:5000"
        assert session.refiner.router.metrics is metrics
        assert session.refiner.config.transport_mode == TransportMode.CYCLING

        assert config.ROUTING_CONFIG["osrm_url"] is None
        assert config.ROUTING_CONFIG["transport_mode"] == "walking"

    def test_defaults_from_config(self):
        session = main.build_session("s", MetricsCollector())

        assert isinstance(session.refiner.router, OfflineRouter)
        assert session.refiner.config.transport_mode == TransportMode.WALKING
