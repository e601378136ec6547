"""
JSON-lines trace reader.

One record per line, discriminated by "type":

    {"type": "fix", "t": 0.0, "lat": 22.29, "lon": 114.17, "accuracy": 5.0,
     "speed": 3.0, "course": 0.0, "altitude": 12.0}
    {"type": "inertial", "t": 0.05, "accel": [0.1, 0.0, 0.2],
     "attitude": [0.0, 0.0, 0.0], "magnetic_heading": 12.0}
    {"type": "pedometer", "t": 1.0, "steps": 3, "cadence": 2.8}
    {"type": "motion", "t": 1.0, "activity": "run"}

Optional fields default to the "unavailable" sentinels. Blank lines and
lines starting with '#' are skipped.
"""

import json
from pathlib import Path
from typing import Iterator, List, Union

from trek_core.proto.samples import InertialSample, PedometerSample, RawFix
from trek_core.proto.activity import ActivityLabel


class TraceFormatError(ValueError):
    """Malformed trace record."""

    def __init__(self, line_no: int, message: str):
        super().__init__(f"line {line_no}: {message}")
        self.line_no = line_no


TraceRecord = Union[RawFix, InertialSample, PedometerSample, ActivityLabel]


def parse_record(record: dict, line_no: int = 0) -> TraceRecord:
    """
    Convert one decoded JSON object to a sample.

    Args:
        record: Decoded JSON object
        line_no: Line number for error messages

    Returns:
        RawFix, InertialSample, PedometerSample, or ActivityLabel (motion hint)

    Raises:
        TraceFormatError: Unknown type or missing/invalid fields
    """
    kind = record.get('type')

    try:
        if kind == 'fix':
            altitude = record.get('altitude')
            return RawFix(
                timestamp=float(record['t']),
                lat=float(record['lat']),
                lon=float(record['lon']),
                accuracy_m=float(record.get('accuracy', -1.0)),
                speed_m_s=float(record.get('speed', -1.0)),
                course_deg=float(record.get('course', -1.0)),
                altitude_m=float(altitude) if altitude is not None else None,
            )

        if kind == 'inertial':
            heading = record.get('magnetic_heading')
            return InertialSample(
                timestamp=float(record['t']),
                accel=_triple(record.get('accel', (0.0, 0.0, 0.0))),
                attitude=_triple(record.get('attitude', (0.0, 0.0, 0.0))),
                magnetic_heading_deg=float(heading) if heading is not None else None,
            )

        if kind == 'pedometer':
            return PedometerSample(
                timestamp=float(record['t']),
                step_count=int(record['steps']),
                cadence_steps_s=float(record.get('cadence', 0.0)),
            )

        if kind == 'motion':
            return ActivityLabel(record['activity'])

    except KeyError as e:
        raise TraceFormatError(line_no, f"missing field {e}") from e
    except (TypeError, ValueError) as e:
        raise TraceFormatError(line_no, str(e)) from e

    raise TraceFormatError(line_no, f"unknown record type {kind!r}")


def iter_trace(path: Union[str, Path]) -> Iterator[TraceRecord]:
    """
    Stream records from a JSON-lines trace file.

    Raises:
        TraceFormatError: Invalid JSON or record
    """
    with open(path, 'r', encoding='utf-8') as f:
        for line_no, line in enumerate(f, start=1):
            line = line.strip()
            if not line or line.startswith('#'):
                continue

            try:
                record = json.loads(line)
            except json.JSONDecodeError as e:
                raise TraceFormatError(line_no, f"invalid JSON: {e.msg}") from e

            if not isinstance(record, dict):
                raise TraceFormatError(line_no, "record is not an object")

            yield parse_record(record, line_no)


def load_trace(path: Union[str, Path]) -> List[TraceRecord]:
    """Read a whole trace file into memory."""
    return list(iter_trace(path))


def _triple(values) -> tuple:
    x, y, z = values
    return (float(x), float(y), float(z))
