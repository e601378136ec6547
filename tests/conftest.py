"""
Pytest configuration and shared fixtures for trek_core tests.

This module provides reusable builders for fix traces, motion samples and
sessions wired to an isolated metrics collector.
"""

import sys
from pathlib import Path
from typing import List, Sequence

import pytest

# Add project root to path for imports
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from trek_core.proto import Coordinate, InertialSample, PedometerSample, RawFix
from trek_core.localization import SessionConfig, TrackingSession, destination_point
from trek_core.domain import OfflineRouter
from trek_core.metrics import MetricsCollector


ORIGIN = Coordinate(22.2900, 114.1700)


# =============================================================================
# Builders
# =============================================================================


def straight_fixes(
    count: int,
    speed: float = 3.0,
    bearing: float = 0.0,
    accuracy: float = 5.0,
    dt: float = 1.0,
    start: Coordinate = ORIGIN,
    t0: float = 0.0,
) -> List[RawFix]:
    """
    Constant-speed fixes along a great circle.

    Each fix reports the true speed and course.
    """
    fixes = []
    for i in range(count):
        point = destination_point(start, speed * dt * i, bearing)
        fixes.append(RawFix(
            timestamp=t0 + i * dt,
            lat=point.lat,
            lon=point.lon,
            accuracy_m=accuracy,
            speed_m_s=speed,
            course_deg=bearing,
        ))
    return fixes


def path_from_offsets(offsets_m: Sequence[float], bearing: float = 0.0,
                      start: Coordinate = ORIGIN) -> List[Coordinate]:
    """Coordinates at the given distances along one bearing."""
    return [destination_point(start, d, bearing) for d in offsets_m]


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def metrics() -> MetricsCollector:
    """Isolated metrics collector."""
    return MetricsCollector()


@pytest.fixture
def origin() -> Coordinate:
    return ORIGIN


@pytest.fixture
def run_fixes() -> List[RawFix]:
    """Ten fixes heading north at 3 m/s, 1 Hz, 5 m accuracy."""
    return straight_fixes(10, speed=3.0)


@pytest.fixture
def walk_fixes() -> List[RawFix]:
    """Twenty fixes heading east at 1.4 m/s, 1 Hz, 5 m accuracy."""
    return straight_fixes(20, speed=1.4, bearing=90.0)


@pytest.fixture
def still_inertial() -> InertialSample:
    """Inertial sample with no acceleration, facing north."""
    return InertialSample(timestamp=0.0)


@pytest.fixture
def pedometer_sample() -> PedometerSample:
    return PedometerSample(timestamp=5.0, step_count=12, cadence_steps_s=2.0)


@pytest.fixture
def session(metrics) -> TrackingSession:
    """Session with offline routing and an isolated collector."""
    return TrackingSession("test-session", SessionConfig(), router=OfflineRouter(), metrics=metrics)
