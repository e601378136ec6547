"""
Activity output schemas.

Defines the fusion output, the feature vector fed to the classifier and the
summary handed to the external activity store at session end.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from .samples import Coordinate


class ActivityLabel(Enum):
    """Closed set of activity types."""

    WALK = "walk"
    RUN = "run"
    HIKE = "hike"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class FusedLocation:
    """
    Output of one fusion step.

    Attributes:
        coordinate: Fused position
        accuracy_m: Estimator uncertainty (covariance value)
        confidence: Per-step fusion confidence in [0,1]
        timestamp: Time of the fix that produced this estimate (s)
        applied: False if the fix was not applied (bad dt) and the
            previous estimate is being reported
    """

    coordinate: Coordinate
    accuracy_m: float
    confidence: float
    timestamp: float
    applied: bool = True


@dataclass(frozen=True)
class ActivityFeatures:
    """
    Feature vector extracted from a window of fixes and motion samples.

    Attributes:
        avg_speed: Mean of valid speeds (m/s)
        max_speed: Max valid speed (m/s)
        speed_variance: Population variance of valid speeds (m^2/s^2)
        avg_accuracy: Mean horizontal accuracy (m), 100 if no fixes
        course_change_rate: Mean course change between valid headings (deg/sample)
        accel_magnitude: Latest linear acceleration magnitude (m/s^2)
        step_frequency: Estimated step frequency (Hz)
        steps_per_second: Latest pedometer cadence (steps/s)
        total_distance: Cumulative great-circle distance (m)
        duration: Last minus first timestamp (s)
        avg_pace: Seconds per km, 0 if no distance
    """

    avg_speed: float = 0.0
    max_speed: float = 0.0
    speed_variance: float = 0.0
    avg_accuracy: float = 100.0
    course_change_rate: float = 0.0
    accel_magnitude: float = 0.0
    step_frequency: float = 0.0
    steps_per_second: float = 0.0
    total_distance: float = 0.0
    duration: float = 0.0
    avg_pace: float = 0.0


@dataclass
class ActivitySummary:
    """
    Final session outputs for the external activity store.

    Notes:
        - avg_confidence is the mean trust score of accepted fixes
          (0.5 when nothing was accepted)
        - avg_pace_s_per_km uses the matched distance
    """

    duration_s: float
    activity_label: ActivityLabel
    fused_path: List[Coordinate] = field(default_factory=list)
    matched_path: List[Coordinate] = field(default_factory=list)
    raw_distance_m: float = 0.0
    matched_distance_m: float = 0.0
    avg_confidence: float = 0.5
    anomaly_count: int = 0
    avg_cadence: Optional[float] = None
    avg_pace_s_per_km: Optional[float] = None
    steps: int = 0
    elevation_gain_m: Optional[float] = None
    features: ActivityFeatures = field(default_factory=ActivityFeatures)

    def __post_init__(self):
        if self.raw_distance_m < 0 or self.matched_distance_m < 0:
            raise ValueError("Distances cannot be negative")

        if self.anomaly_count < 0:
            raise ValueError(f"Anomaly count cannot be negative: {self.anomaly_count}")

    @property
    def has_path(self) -> bool:
        return len(self.fused_path) > 0

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            'duration_s': self.duration_s,
            'activity_label': self.activity_label.value,
            'fused_path': [c.as_tuple() for c in self.fused_path],
            'matched_path': [c.as_tuple() for c in self.matched_path],
            'raw_distance_m': self.raw_distance_m,
            'matched_distance_m': self.matched_distance_m,
            'avg_confidence': self.avg_confidence,
            'anomaly_count': self.anomaly_count,
            'avg_cadence': self.avg_cadence,
            'avg_pace_s_per_km': self.avg_pace_s_per_km,
            'steps': self.steps,
            'elevation_gain_m': self.elevation_gain_m,
        }


def create_empty_summary(duration_s: float, anomaly_count: int = 0) -> ActivitySummary:
    """
    Create the summary for a session in which no fix was ever accepted.

    Args:
        duration_s: Session duration (s)
        anomaly_count: Anomalies recorded before finalize

    Returns:
        ActivitySummary with zero distances, UNKNOWN label, neutral confidence
    """
    return ActivitySummary(
        duration_s=duration_s,
        activity_label=ActivityLabel.UNKNOWN,
        anomaly_count=anomaly_count,
    )
