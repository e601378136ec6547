"""
Activity feature extraction.

Turns an ordered window of accepted fixes plus the latest motion samples
into a flat ActivityFeatures record for the classifier.

Step frequency is a heuristic, not a cadence sensor:
- inertial sample present: 2 * |accel|, clamped to [1, 3] Hz
- else pedometer cadence, clamped the same way
- else a linear gait model on average speed

The hike course-change threshold downstream assumes ~1 Hz fixes.
"""

from dataclasses import dataclass
from typing import Optional, Sequence, Union

import numpy as np

from trek_core.proto.samples import InertialSample, PedometerSample, RawFix, TrustedFix
from trek_core.proto.activity import ActivityFeatures
from trek_core.localization.geodesy import haversine_m, heading_change_deg


@dataclass
class FeatureExtractorConfig:
    """
    Configuration for feature extraction.

    Attributes:
        accel_to_step_hz: Step frequency per unit acceleration magnitude
        min_step_hz: Lower clamp on step frequency (Hz)
        max_step_hz: Upper clamp on step frequency (Hz)
        gait_base_hz: Intercept of the speed gait model (Hz)
        gait_hz_per_m_s: Slope of the speed gait model (Hz per m/s)
    """

    accel_to_step_hz: float = 2.0
    min_step_hz: float = 1.0
    max_step_hz: float = 3.0
    gait_base_hz: float = 1.2
    gait_hz_per_m_s: float = 0.5


class FeatureExtractor:
    """
    Stateless feature extractor.

    Usage:
        extractor = FeatureExtractor()
        features = extractor.extract(fixes, latest_inertial, latest_pedometer)
    """

    def __init__(self, config: Optional[FeatureExtractorConfig] = None):
        self.config = config or FeatureExtractorConfig()

    def extract(
        self,
        fixes: Sequence[Union[RawFix, TrustedFix]],
        latest_inertial: Optional[InertialSample] = None,
        latest_pedometer: Optional[PedometerSample] = None,
    ) -> ActivityFeatures:
        """
        Extract features from a fix window.

        Args:
            fixes: Accepted fixes in time order (RawFix or TrustedFix)
            latest_inertial: Most recent inertial sample
            latest_pedometer: Most recent pedometer sample

        Returns:
            ActivityFeatures (defaults when fixes is empty)
        """
        if not fixes:
            return ActivityFeatures()

        raw = [f.fix if isinstance(f, TrustedFix) else f for f in fixes]

        speeds = np.array([f.speed_m_s for f in raw if f.has_speed], dtype=float)
        accuracies = np.array([f.effective_accuracy_m for f in raw], dtype=float)
        courses = [f.course_deg for f in raw if f.has_course]

        avg_speed = float(speeds.mean()) if speeds.size else 0.0
        max_speed = float(speeds.max()) if speeds.size else 0.0
        speed_variance = float(speeds.var()) if speeds.size else 0.0

        accel_magnitude = latest_inertial.accel_magnitude if latest_inertial is not None else 0.0
        steps_per_second = latest_pedometer.cadence_steps_s if latest_pedometer is not None else 0.0

        total_distance = 0.0
        for prev, curr in zip(raw, raw[1:]):
            total_distance += haversine_m(prev.lat, prev.lon, curr.lat, curr.lon)

        duration = raw[-1].timestamp - raw[0].timestamp
        avg_pace = (duration / total_distance) * 1000.0 if duration > 0 and total_distance > 0 else 0.0

        return ActivityFeatures(
            avg_speed=avg_speed,
            max_speed=max_speed,
            speed_variance=speed_variance,
            avg_accuracy=float(accuracies.mean()),
            course_change_rate=self._course_change_rate(courses),
            accel_magnitude=accel_magnitude,
            step_frequency=self._step_frequency(latest_inertial, latest_pedometer, avg_speed),
            steps_per_second=steps_per_second,
            total_distance=total_distance,
            duration=duration,
            avg_pace=avg_pace,
        )

    def _course_change_rate(self, courses: Sequence[float]) -> float:
        """Mean wrap-aware heading change between consecutive courses (deg/sample)."""
        if len(courses) < 2:
            return 0.0

        changes = [heading_change_deg(a, b) for a, b in zip(courses, courses[1:])]
        return float(np.mean(changes))

    def _step_frequency(
        self,
        inertial: Optional[InertialSample],
        pedometer: Optional[PedometerSample],
        avg_speed: float,
    ) -> float:
        """Heuristic step frequency (Hz)."""
        cfg = self.config

        if inertial is not None:
            estimate = inertial.accel_magnitude * cfg.accel_to_step_hz
        elif pedometer is not None and pedometer.cadence_steps_s > 0:
            estimate = pedometer.cadence_steps_s
        else:
            estimate = cfg.gait_base_hz + cfg.gait_hz_per_m_s * avg_speed

        return float(np.clip(estimate, cfg.min_step_hz, cfg.max_step_hz))
