"""
Location/IMU Fusion Engine.

Scalar-covariance Kalman-style estimator fusing positional fixes with
inertial samples, plus a dead-reckoning bridge for fix gaps.

State: position (lat, lon), scalar speed, heading, scalar covariance.

States:
- Uninitialized: no fix seen since construction/reset
- Tracking: seeded by the first fix, then predict/correct per fix

One engine per tracking session. Engines never share state.
"""

import logging
from dataclasses import dataclass, replace
from typing import Optional

from trek_core.proto.samples import Coordinate, InertialSample, RawFix
from trek_core.proto.activity import FusedLocation
from trek_core.localization.geodesy import (
    blend_headings_deg,
    destination_point,
    project_flat,
)
from trek_core.metrics import MetricsCollector

logger = logging.getLogger(__name__)


@dataclass
class FusionConfig:
    """
    Configuration for fusion engine.

    Attributes:
        gps_weight: Weight of the fix in the second position blend and in
            heading/speed fusion
        imu_weight: Weight of the inertial term in velocity/heading fusion
        process_noise: Covariance growth per second
        measurement_noise: Constant added to accuracy^2 in the gain
        heading_smoothing: Weight of the previous heading when blending toward yaw
        max_dt_s: Fixes with dt above this only advance the prediction (s)
        accuracy_scale_m: Accuracy at which confidence reaches 0 (m)
        imu_confidence_boost: Confidence multiplier when an inertial sample contributed
        prefer_magnetometer_heading: Use magnetometer heading over yaw when present
        reseed_on_gap: Re-seed from a fix arriving after more than max_dt_s
            instead of predicting over the gap
    """

    gps_weight: float = 0.7
    imu_weight: float = 0.3
    process_noise: float = 0.1
    measurement_noise: float = 5.0
    heading_smoothing: float = 0.98
    max_dt_s: float = 10.0
    accuracy_scale_m: float = 50.0
    imu_confidence_boost: float = 1.1
    prefer_magnetometer_heading: bool = False
    reseed_on_gap: bool = False


@dataclass
class FusionState:
    """
    Estimator state for one session.

    Attributes:
        position: Fused position
        speed_m_s: Scalar speed (m/s)
        heading_deg: Heading (deg, 0 = north)
        covariance: Scalar uncertainty (never negative)
        timestamp: Time the state was last advanced to (s)
    """

    position: Coordinate
    speed_m_s: float
    heading_deg: float
    covariance: float
    timestamp: float


class SensorFusionEngine:
    """
    Predict/correct fusion of fixes and inertial samples.

    Usage:
        engine = SensorFusionEngine()

        fused = engine.fuse(fix, inertial)
        if fused.applied:
            path.append(fused.coordinate)

        # Bridge a fix gap with inertial data only
        guess = engine.dead_reckon(inertial, duration_s=2.0)

    Notes:
        - Timestamps must strictly increase; a non-positive dt leaves the
          state untouched, an excessive dt runs predict only. Both report
          applied=False
        - The correct step applies two sequential position blends
          (Kalman gain, then GPS weight) when an inertial sample is present
    """

    def __init__(
        self,
        config: Optional[FusionConfig] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        """
        Initialize fusion engine.

        Args:
            config: Engine configuration (uses defaults if None)
            metrics: Metrics collector (private collector if None)
        """
        self.config = config or FusionConfig()
        self.metrics = metrics or MetricsCollector()

        self._state: Optional[FusionState] = None
        self._last_estimate: Optional[FusedLocation] = None

    def is_initialized(self) -> bool:
        """Check if engine is tracking."""
        return self._state is not None

    @property
    def state(self) -> Optional[FusionState]:
        """Copy of the current state (None before the first fix)."""
        if self._state is None:
            return None
        return replace(self._state)

    def fuse(self, fix: RawFix, inertial: Optional[InertialSample] = None) -> FusedLocation:
        """
        Fuse one accepted fix (and optional concurrent inertial sample).

        Args:
            fix: Non-anomalous fix
            inertial: Inertial sample paired with the fix

        Returns:
            FusedLocation for this step

        Notes:
            - First fix seeds the state directly
            - dt <= 0: not applied, previous estimate returned
            - dt > max_dt_s: predict-only over the gap, fix not applied
        """
        if self._state is None:
            return self._seed(fix, inertial)

        dt = fix.timestamp - self._state.timestamp

        if dt <= 0:
            logger.debug("Ignoring fix at t=%.3f: non-positive dt %.3f", fix.timestamp, dt)
            self.metrics.increment_drop('out_of_order')
            self.metrics.increment('fusion_skipped')
            return self._not_applied()

        if dt > self.config.max_dt_s:
            if self.config.reseed_on_gap:
                logger.info("Re-seeding after %.1fs gap at t=%.3f", dt, fix.timestamp)
                self.metrics.increment('fusion_reseeds')
                return self._seed(fix, inertial)

            logger.debug("Predict-only at t=%.3f: dt %.1fs exceeds ceiling", fix.timestamp, dt)
            self.metrics.increment_drop('stale_gap')
            self.metrics.increment('fusion_skipped')
            return self._predict_only(dt)

        predicted = self._predict(self._state, dt, inertial)
        self._state = self._correct(predicted, fix, inertial)

        self._last_estimate = FusedLocation(
            coordinate=self._state.position,
            accuracy_m=self._state.covariance,
            confidence=self.confidence(fix, inertial),
            timestamp=fix.timestamp,
        )

        self.metrics.increment('fusion_updates')
        self.metrics.record_histogram('fusion_confidence', self._last_estimate.confidence)

        return self._last_estimate

    def current_estimate(self) -> Optional[FusedLocation]:
        """Latest fusion output (None before the first fix)."""
        return self._last_estimate

    def dead_reckon(self, inertial: InertialSample, duration_s: float) -> Optional[Coordinate]:
        """
        Estimate position from inertial data alone.

        Integrates acceleration magnitude over the interval as a speed proxy,
        takes heading from the inertial sample, and projects the last fused
        position along a great circle. The state is not modified.

        Args:
            inertial: Latest inertial sample
            duration_s: Interval since the last fused position (s)

        Returns:
            Estimated coordinate, or None if not initialized or duration <= 0
        """
        if self._state is None or duration_s <= 0:
            return None

        speed_proxy = inertial.accel_magnitude * duration_s
        distance = speed_proxy * duration_s
        heading = self._inertial_heading(inertial)

        self.metrics.increment('dead_reckoning_estimates')

        return destination_point(self._state.position, distance, heading)

    def confidence(self, fix: RawFix, inertial: Optional[InertialSample]) -> float:
        """
        Per-step fusion confidence.

        1 - min(1, accuracy / scale), boosted when an inertial sample
        contributed, clamped to [0,1].
        """
        cfg = self.config
        confidence = 1.0 - min(1.0, fix.effective_accuracy_m / cfg.accuracy_scale_m)

        if inertial is not None:
            confidence = min(1.0, confidence * cfg.imu_confidence_boost)

        return max(0.0, min(1.0, confidence))

    def reset(self):
        """Return to Uninitialized. Safe to call at any time."""
        self._state = None
        self._last_estimate = None
        self.metrics.increment('fusion_resets')

    def _seed(self, fix: RawFix, inertial: Optional[InertialSample]) -> FusedLocation:
        """Initialize state from a fix."""
        self._state = FusionState(
            position=fix.coordinate,
            speed_m_s=max(0.0, fix.speed_m_s),
            heading_deg=fix.course_deg if fix.has_course else 0.0,
            covariance=fix.effective_accuracy_m,
            timestamp=fix.timestamp,
        )

        self._last_estimate = FusedLocation(
            coordinate=fix.coordinate,
            accuracy_m=fix.effective_accuracy_m,
            confidence=self.confidence(fix, inertial),
            timestamp=fix.timestamp,
        )

        self.metrics.increment('fusion_initialized')
        return self._last_estimate

    def _not_applied(self) -> FusedLocation:
        """Previous estimate, flagged as not applied."""
        return replace(self._last_estimate, applied=False)

    def _predict_only(self, dt: float) -> FusedLocation:
        """
        Advance the state over a gap without correcting from the fix.

        The clock moves to the fix time so the next fix is fused normally.
        The paired inertial sample only describes the fix instant and is not
        integrated over the gap.
        """
        self._state = self._predict(self._state, dt, None)
        self._last_estimate = FusedLocation(
            coordinate=self._state.position,
            accuracy_m=self._state.covariance,
            confidence=self._last_estimate.confidence,
            timestamp=self._state.timestamp,
            applied=False,
        )
        return self._last_estimate

    def _predict(
        self,
        state: FusionState,
        dt: float,
        inertial: Optional[InertialSample],
    ) -> FusionState:
        """Project state forward by dt seconds."""
        cfg = self.config
        speed = state.speed_m_s
        heading = state.heading_deg

        if inertial is not None:
            boosted = speed + inertial.accel_magnitude * dt
            speed = speed * (1.0 - cfg.imu_weight) + boosted * cfg.imu_weight

        position = project_flat(state.position, speed * dt, state.heading_deg)

        if inertial is not None:
            heading = blend_headings_deg(
                heading, self._inertial_heading(inertial), 1.0 - cfg.heading_smoothing
            )

        return FusionState(
            position=position,
            speed_m_s=speed,
            heading_deg=heading,
            covariance=state.covariance + cfg.process_noise * dt,
            timestamp=state.timestamp + dt,
        )

    def _correct(
        self,
        predicted: FusionState,
        fix: RawFix,
        inertial: Optional[InertialSample],
    ) -> FusionState:
        """Blend prediction with the fix."""
        cfg = self.config

        measurement_variance = fix.effective_accuracy_m ** 2
        gain = predicted.covariance / (
            predicted.covariance + measurement_variance + cfg.measurement_noise
        )
        self.metrics.record_histogram('fusion_gain', gain)

        lat = predicted.position.lat + gain * (fix.lat - predicted.position.lat)
        lon = predicted.position.lon + gain * (fix.lon - predicted.position.lon)

        # Second blend toward the raw fix when inertial data contributed
        if inertial is not None:
            lat = lat * cfg.gps_weight + fix.lat * (1.0 - cfg.gps_weight)
            lon = lon * cfg.gps_weight + fix.lon * (1.0 - cfg.gps_weight)

        heading = predicted.heading_deg
        if fix.has_course:
            if inertial is not None:
                heading = blend_headings_deg(
                    fix.course_deg, self._inertial_heading(inertial), cfg.imu_weight
                )
            else:
                heading = fix.course_deg

        speed = predicted.speed_m_s
        if fix.has_speed:
            speed = fix.speed_m_s * cfg.gps_weight + predicted.speed_m_s * cfg.imu_weight

        return FusionState(
            position=Coordinate(lat, lon),
            speed_m_s=speed,
            heading_deg=heading,
            covariance=max(0.0, (1.0 - gain) * predicted.covariance),
            timestamp=fix.timestamp,
        )

    def _inertial_heading(self, inertial: InertialSample) -> float:
        """Heading contributed by an inertial sample (deg)."""
        if self.config.prefer_magnetometer_heading and inertial.magnetic_heading_deg is not None:
            return inertial.magnetic_heading_deg % 360.0
        return inertial.yaw_deg
