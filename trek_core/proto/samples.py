"""
Sensor sample schemas.

Defines the inputs produced by the location and motion collaborators and the
trusted fix derived from them. All records are write-once.

Sentinels follow the platform location APIs:
- horizontal accuracy < 0: unknown
- speed < 0: unavailable
- course < 0: unavailable
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple


# Accuracy substituted when a fix reports an unknown (negative) accuracy.
# Chosen as the point at which the trust baseline reaches zero.
UNKNOWN_ACCURACY_M = 50.0


class LocationSource(Enum):
    """Likely origin of a fix, inferred from its accuracy."""

    GPS = "gps"
    WIFI = "wifi"
    CELL = "cell"

    @classmethod
    def from_accuracy(cls, accuracy_m: float) -> "LocationSource":
        if 0 <= accuracy_m < 10.0:
            return cls.GPS
        if 0 <= accuracy_m < 50.0:
            return cls.WIFI
        return cls.CELL


@dataclass(frozen=True)
class Coordinate:
    """WGS84 latitude/longitude pair in degrees."""

    lat: float
    lon: float

    def as_tuple(self) -> Tuple[float, float]:
        return (self.lat, self.lon)


@dataclass(frozen=True)
class RawFix:
    """
    One positional sample from the location provider.

    Attributes:
        timestamp: Sample time (s)
        lat: Latitude (deg)
        lon: Longitude (deg)
        accuracy_m: Horizontal accuracy (m), negative if unknown
        speed_m_s: Ground speed (m/s), negative if unavailable
        course_deg: Course over ground (deg, 0-360), negative if unavailable
        altitude_m: Altitude (m), optional
    """

    timestamp: float
    lat: float
    lon: float
    accuracy_m: float
    speed_m_s: float = -1.0
    course_deg: float = -1.0
    altitude_m: Optional[float] = None

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(self.lat, self.lon)

    @property
    def has_accuracy(self) -> bool:
        return self.accuracy_m >= 0

    @property
    def has_speed(self) -> bool:
        return self.speed_m_s >= 0

    @property
    def has_course(self) -> bool:
        return self.course_deg >= 0

    @property
    def effective_accuracy_m(self) -> float:
        """Accuracy with the unknown sentinel replaced by a worst-case value."""
        return self.accuracy_m if self.has_accuracy else UNKNOWN_ACCURACY_M


@dataclass(frozen=True)
class InertialSample:
    """
    Device motion sample from the motion provider.

    Attributes:
        timestamp: Sample time (s)
        accel: Linear acceleration (x, y, z) with gravity removed (m/s^2)
        attitude: (yaw, pitch, roll) in radians
        magnetic_heading_deg: Magnetometer heading (deg), optional
    """

    timestamp: float
    accel: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    attitude: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    magnetic_heading_deg: Optional[float] = None

    @property
    def accel_magnitude(self) -> float:
        x, y, z = self.accel
        return math.sqrt(x * x + y * y + z * z)

    @property
    def yaw_deg(self) -> float:
        """Attitude yaw converted to a heading in [0, 360)."""
        return math.degrees(self.attitude[0]) % 360.0


@dataclass(frozen=True)
class PedometerSample:
    """
    Pedometer update.

    Attributes:
        timestamp: Sample time (s)
        step_count: Cumulative steps since session start
        cadence_steps_s: Instantaneous cadence (steps/s)
    """

    timestamp: float
    step_count: int
    cadence_steps_s: float = 0.0

    def __post_init__(self):
        if self.step_count < 0:
            raise ValueError(f"Step count cannot be negative: {self.step_count}")


@dataclass(frozen=True)
class TrustedFix:
    """
    RawFix augmented with a trust score and anomaly flag.

    Anomalous fixes are kept for audit (and counted) but never reach the
    fusion engine or any path.
    """

    fix: RawFix
    trust_score: float
    is_anomalous: bool
    source: LocationSource

    def __post_init__(self):
        if not 0 <= self.trust_score <= 1:
            raise ValueError(f"Trust score must be in [0,1]: {self.trust_score}")

    @property
    def timestamp(self) -> float:
        return self.fix.timestamp

    @property
    def coordinate(self) -> Coordinate:
        return self.fix.coordinate

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            'timestamp': self.fix.timestamp,
            'lat': self.fix.lat,
            'lon': self.fix.lon,
            'accuracy_m': self.fix.accuracy_m,
            'speed_m_s': self.fix.speed_m_s,
            'course_deg': self.fix.course_deg,
            'altitude_m': self.fix.altitude_m,
            'trust_score': self.trust_score,
            'is_anomalous': self.is_anomalous,
            'source': self.source.value,
        }
