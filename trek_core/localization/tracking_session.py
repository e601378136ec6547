"""
Tracking Session Pipeline.

Owns all mutable state of one tracking session and wires the components:

    raw fix -> TrustScorer -> SensorFusionEngine -> (buffers)
    finalize: FeatureExtractor -> ActivityClassifier
              fused path -> PathRefiner -> distances/pace

Sessions share nothing: each has its own fusion state, trust history,
classifier window and motion buffers. Calls into one session must be
sequential; different sessions can run on different threads.

Usage:
    session = TrackingSession("morning-run")

    for sample in samples:
        session.accept(sample)

    estimate = session.current_estimate()
    summary = session.finalize(duration_s=1800.0)
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, List, Optional, Tuple, Union

import numpy as np

from trek_core.proto.samples import (
    Coordinate,
    InertialSample,
    PedometerSample,
    RawFix,
    TrustedFix,
)
from trek_core.proto.activity import (
    ActivityFeatures,
    ActivityLabel,
    ActivitySummary,
    FusedLocation,
    create_empty_summary,
)
from trek_core.localization.geodesy import distance_m, path_length_m
from trek_core.localization.trust_scorer import TrustScorer, TrustScorerConfig
from trek_core.localization.fusion_engine import FusionConfig, SensorFusionEngine
from trek_core.domain.feature_extractor import FeatureExtractor, FeatureExtractorConfig
from trek_core.domain.activity_classifier import ActivityClassifier, ClassifierConfig
from trek_core.domain.path_refinement import PathRefiner, RefinementConfig
from trek_core.domain.routing import Router
from trek_core.metrics import MetricsCollector

logger = logging.getLogger(__name__)


@dataclass
class SessionConfig:
    """
    Configuration for a tracking session.

    Attributes:
        scorer_config: TrustScorer configuration
        fusion_config: SensorFusionEngine configuration
        feature_config: FeatureExtractor configuration
        classifier_config: ActivityClassifier configuration
        refinement_config: PathRefiner configuration
        imu_pairing_window_s: Max age of an inertial sample fused with a fix (s)
        motion_buffer_size: Capacity of inertial/pedometer ring buffers
        confidence_window: Trust scores averaged for the live confidence
        live_window: Recent fixes used for the live activity label
        min_live_step_m: Minimum movement added to the live distance (m)
    """

    scorer_config: TrustScorerConfig = field(default_factory=TrustScorerConfig)
    fusion_config: FusionConfig = field(default_factory=FusionConfig)
    feature_config: FeatureExtractorConfig = field(default_factory=FeatureExtractorConfig)
    classifier_config: ClassifierConfig = field(default_factory=ClassifierConfig)
    refinement_config: RefinementConfig = field(default_factory=RefinementConfig)
    imu_pairing_window_s: float = 1.0
    motion_buffer_size: int = 100
    confidence_window: int = 10
    live_window: int = 10
    min_live_step_m: float = 0.5


@dataclass(frozen=True)
class FixAcceptance:
    """
    Result of feeding one raw fix.

    Attributes:
        accepted: False if the fix was anomalous
        trusted_fix: Scored fix (present for accepted and anomalous fixes)
        fused: Fusion output for accepted fixes
    """

    accepted: bool
    trusted_fix: Optional[TrustedFix] = None
    fused: Optional[FusedLocation] = None


Sample = Union[RawFix, InertialSample, PedometerSample]


class TrackingSession:
    """
    One tracking session: trust filter, fusion, classification, refinement.

    Features:
    - Anomalous fixes are counted and logged for audit, never fused
    - Inertial samples are paired with fixes by recency
    - Live readouts: estimate, rolling confidence, distance, activity
    - finalize() is idempotent while no new samples arrive
    """

    def __init__(
        self,
        session_id: str,
        config: Optional[SessionConfig] = None,
        router: Optional[Router] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        """
        Initialize tracking session.

        Args:
            session_id: Session identifier (for logs)
            config: Session configuration (uses defaults if None)
            router: Routing collaborator for route-snapping (offline if None)
            metrics: Metrics collector (private collector if None)
        """
        self.session_id = session_id
        self.config = config or SessionConfig()
        self.metrics = metrics or MetricsCollector()

        self.scorer = TrustScorer(self.config.scorer_config)
        self.fusion = SensorFusionEngine(self.config.fusion_config, self.metrics)
        self.extractor = FeatureExtractor(self.config.feature_config)
        self.classifier = ActivityClassifier(self.config.classifier_config)
        self.refiner = PathRefiner(self.config.refinement_config, router, self.metrics)

        self._init_buffers()

    def _init_buffers(self):
        """Create empty per-session buffers."""
        buffer_size = self.config.motion_buffer_size

        self._raw_log: List[TrustedFix] = []
        self._accepted: List[TrustedFix] = []
        self._fused_path: List[Coordinate] = []
        self._fused_times: List[float] = []
        self._inertial: Deque[InertialSample] = deque(maxlen=buffer_size)
        self._pedometer: Deque[PedometerSample] = deque(maxlen=buffer_size)
        self._cadences: List[float] = []
        self._anomaly_count = 0
        self._live_distance_m = 0.0
        self._live_label = ActivityLabel.UNKNOWN
        self._motion_hint: Optional[ActivityLabel] = None

        # Bumped on every buffered sample; keys the finalize cache
        self._data_version = 0
        self._finalized: Optional[Tuple[Tuple[int, float], ActivitySummary]] = None

    # ------------------------------------------------------------------
    # Input
    # ------------------------------------------------------------------

    def accept(self, sample: Sample):
        """
        Feed any sample type.

        Returns:
            FixAcceptance for fixes, True/False (buffered or dropped) for
            motion samples
        """
        if isinstance(sample, RawFix):
            return self.accept_fix(sample)
        if isinstance(sample, InertialSample):
            return self.accept_inertial(sample)
        if isinstance(sample, PedometerSample):
            return self.accept_pedometer(sample)
        raise TypeError(f"Unsupported sample type: {type(sample).__name__}")

    def accept_fix(self, fix: RawFix) -> FixAcceptance:
        """
        Score, anomaly-check and (if accepted) fuse one fix.

        Args:
            fix: Raw fix from the location provider

        Returns:
            FixAcceptance
        """
        self.metrics.increment('fixes_in')

        previous = self._accepted[-1].fix if self._accepted else None
        trusted = self.scorer.evaluate(fix, previous)
        self._raw_log.append(trusted)
        self._data_version += 1

        if trusted.is_anomalous:
            self._anomaly_count += 1
            self.metrics.increment_drop('anomalous_fix')
            logger.debug("[%s] Anomalous fix at t=%.3f", self.session_id, fix.timestamp)
            return FixAcceptance(accepted=False, trusted_fix=trusted)

        self._accepted.append(trusted)
        self.metrics.increment('fixes_accepted')
        self.metrics.record_histogram('trust_score', trusted.trust_score)

        fused = self.fusion.fuse(fix, self._paired_inertial(fix.timestamp))
        if fused.applied:
            self._fused_path.append(fused.coordinate)
            self._fused_times.append(fused.timestamp)

        if previous is not None:
            step = distance_m(previous.coordinate, fix.coordinate)
            if step > self.config.min_live_step_m:
                self._live_distance_m += step

        recent = self._accepted[-self.config.live_window:]
        features = self.extractor.extract(recent, self.latest_inertial, self.latest_pedometer)
        self._live_label = self.classifier.classify_with_window(features)

        return FixAcceptance(accepted=True, trusted_fix=trusted, fused=fused)

    def accept_inertial(self, sample: InertialSample) -> bool:
        """Buffer an inertial sample. Out-of-order samples are dropped."""
        self.metrics.increment('inertial_samples_in')

        if self._inertial and sample.timestamp < self._inertial[-1].timestamp:
            logger.debug("[%s] Dropping out-of-order inertial sample", self.session_id)
            self.metrics.increment_drop('out_of_order')
            return False

        self._inertial.append(sample)
        self._data_version += 1
        return True

    def accept_pedometer(self, sample: PedometerSample) -> bool:
        """Buffer a pedometer sample. Out-of-order samples are dropped."""
        self.metrics.increment('pedometer_samples_in')

        if self._pedometer and sample.timestamp < self._pedometer[-1].timestamp:
            logger.debug("[%s] Dropping out-of-order pedometer sample", self.session_id)
            self.metrics.increment_drop('out_of_order')
            return False

        self._pedometer.append(sample)
        self._cadences.append(sample.cadence_steps_s)
        self._data_version += 1
        return True

    def set_motion_activity(self, label: Optional[ActivityLabel]):
        """Record the motion provider's coarse activity (fallback label)."""
        self._motion_hint = label
        self._data_version += 1

    # ------------------------------------------------------------------
    # Live readouts
    # ------------------------------------------------------------------

    def current_estimate(self) -> Optional[FusedLocation]:
        """Latest fusion output (None before the first accepted fix)."""
        return self.fusion.current_estimate()

    def current_activity(self) -> ActivityLabel:
        """Windowed activity label over recent fixes."""
        return self._live_label

    @property
    def recent_confidence(self) -> float:
        """Mean of the most recent trust scores (0.5 before any fix)."""
        recent = self._accepted[-self.config.confidence_window:]
        if not recent:
            return 0.5
        return float(np.mean([f.trust_score for f in recent]))

    @property
    def live_distance_m(self) -> float:
        """Distance over accepted fixes, ignoring sub-threshold jitter (m)."""
        return self._live_distance_m

    @property
    def anomaly_count(self) -> int:
        return self._anomaly_count

    @property
    def raw_log(self) -> List[TrustedFix]:
        """Every scored fix, anomalous ones included."""
        return list(self._raw_log)

    @property
    def accepted_fixes(self) -> List[TrustedFix]:
        return list(self._accepted)

    @property
    def fused_path(self) -> List[Coordinate]:
        return list(self._fused_path)

    @property
    def latest_inertial(self) -> Optional[InertialSample]:
        return self._inertial[-1] if self._inertial else None

    @property
    def latest_pedometer(self) -> Optional[PedometerSample]:
        return self._pedometer[-1] if self._pedometer else None

    def dead_reckon(self, duration_s: float) -> Optional[Coordinate]:
        """
        Bridge a fix gap from the latest inertial sample.

        Returns:
            Estimated coordinate, or None without inertial data or a fused position
        """
        inertial = self.latest_inertial
        if inertial is None:
            return None
        return self.fusion.dead_reckon(inertial, duration_s)

    # ------------------------------------------------------------------
    # Session end
    # ------------------------------------------------------------------

    def finalize(self, duration_s: float) -> ActivitySummary:
        """
        Classify and refine the session once.

        Args:
            duration_s: Session duration (s)

        Returns:
            ActivitySummary. Calling again with the same duration and no new
            samples returns the same summary.
        """
        cache_key = (self._data_version, duration_s)
        if self._finalized is not None and self._finalized[0] == cache_key:
            return self._finalized[1]

        if not self._accepted:
            logger.info("[%s] Finalized with no accepted fixes", self.session_id)
            summary = create_empty_summary(duration_s, self._anomaly_count)
        else:
            summary = self._build_summary(duration_s)

        self.metrics.increment('sessions_finalized')
        self._finalized = (cache_key, summary)
        return summary

    def _build_summary(self, duration_s: float) -> ActivitySummary:
        """Run classification and refinement over buffered data."""
        features = self.extractor.extract(
            self._accepted, self.latest_inertial, self.latest_pedometer
        )
        label = self._resolve_label(features)

        refined = self.refiner.refine(self._fused_path, timestamps=self._fused_times)
        matched_distance = refined.distance_m

        raw_distance = path_length_m([f.coordinate for f in self._accepted])
        avg_confidence = float(np.mean([f.trust_score for f in self._accepted]))

        avg_pace = None
        if duration_s > 0 and matched_distance > 0:
            avg_pace = (duration_s / matched_distance) * 1000.0

        avg_cadence = float(np.mean(self._cadences)) if self._cadences else None
        steps = self.latest_pedometer.step_count if self.latest_pedometer is not None else 0

        logger.info(
            "[%s] Finalized: %s, matched %.1fm, raw %.1fm, %d anomalies",
            self.session_id, label.value, matched_distance, raw_distance, self._anomaly_count,
        )

        return ActivitySummary(
            duration_s=duration_s,
            activity_label=label,
            fused_path=list(self._fused_path),
            matched_path=refined.matched,
            raw_distance_m=raw_distance,
            matched_distance_m=matched_distance,
            avg_confidence=avg_confidence,
            anomaly_count=self._anomaly_count,
            avg_cadence=avg_cadence,
            avg_pace_s_per_km=avg_pace,
            steps=steps,
            elevation_gain_m=self._elevation_gain(),
            features=features,
        )

    def _resolve_label(self, features: ActivityFeatures) -> ActivityLabel:
        """Rule label, falling back to the motion hint when UNKNOWN."""
        label = self.classifier.classify(features)
        if label is ActivityLabel.UNKNOWN and self._motion_hint is not None:
            return self._motion_hint
        return label

    def _elevation_gain(self) -> Optional[float]:
        """Sum of positive altitude deltas over accepted fixes."""
        altitudes = [f.fix.altitude_m for f in self._accepted if f.fix.altitude_m is not None]
        if len(altitudes) < 2:
            return None

        deltas = np.diff(np.array(altitudes, dtype=float))
        return float(deltas[deltas > 0].sum())

    def _paired_inertial(self, timestamp: float) -> Optional[InertialSample]:
        """Most recent inertial sample not newer than timestamp, within the pairing window."""
        for sample in reversed(self._inertial):
            if sample.timestamp > timestamp:
                continue
            if timestamp - sample.timestamp <= self.config.imu_pairing_window_s:
                return sample
            break
        return None

    def reset(self):
        """Clear all session state. Safe to call at any time."""
        self.fusion.reset()
        self.classifier.reset()
        self._init_buffers()
        self.metrics.increment('session_resets')


def create_default_session(session_id: str, router: Optional[Router] = None) -> TrackingSession:
    """
    Create tracking session with default configuration for foot activities.

    Args:
        session_id: Session identifier
        router: Routing collaborator (offline identity router if None)

    Returns:
        Configured TrackingSession
    """
    config = SessionConfig(
        refinement_config=RefinementConfig(
            simplify_tolerance_m=10.0,
            smoothing_window=5,
            chunk_size=10,
        ),
    )

    return TrackingSession(session_id, config, router=router)
