"""
Trust and anomaly scoring for raw location fixes.

Assigns each fix a trust score in [0,1] from accuracy and motion-consistency
heuristics, and flags physically impossible fixes as anomalous.

Both checks are pure: the caller supplies previous speed/course or the
previous accepted fix explicitly, so one scorer can serve many sessions.
"""

from dataclasses import dataclass
from typing import Optional

from trek_core.proto.samples import LocationSource, RawFix, TrustedFix
from trek_core.localization.geodesy import haversine_m, heading_change_deg


@dataclass
class TrustScorerConfig:
    """
    Configuration for trust scorer.

    Attributes:
        accuracy_scale_m: Accuracy at which the baseline score reaches 0 (m)
        max_speed_m_s: Physical speed ceiling for walk/run/hike (m/s)
        speed_penalty: Multiplier when speed exceeds the ceiling
        max_speed_jump_m_s: Speed change treated as a discontinuity (m/s)
        speed_jump_penalty: Multiplier for a speed discontinuity
        sharp_turn_deg: Heading change above which a turn is implausible (deg)
        sharp_turn_penalty: Multiplier for a sharp turn
        max_accuracy_m: Accuracy beyond which a fix is anomalous (m)
    """

    accuracy_scale_m: float = 50.0
    max_speed_m_s: float = 12.0
    speed_penalty: float = 0.5
    max_speed_jump_m_s: float = 5.0
    speed_jump_penalty: float = 0.8
    sharp_turn_deg: float = 90.0
    sharp_turn_penalty: float = 0.9
    max_accuracy_m: float = 100.0


class TrustScorer:
    """
    Per-fix trust score and anomaly detection.

    Usage:
        scorer = TrustScorer()

        trust = scorer.score(fix, previous_speed=1.4, previous_course=90.0)
        anomalous = scorer.is_anomalous(fix, previous_fix)

        # Or both at once
        trusted = scorer.evaluate(fix, previous_fix)

    Notes:
        - Unknown accuracy (negative) scores as worst-case, it never raises
        - Invalid speed/course sentinels skip the checks that need them
    """

    def __init__(self, config: Optional[TrustScorerConfig] = None):
        """
        Initialize trust scorer.

        Args:
            config: Scorer configuration (uses defaults if None)
        """
        self.config = config or TrustScorerConfig()

    def score(
        self,
        fix: RawFix,
        previous_speed: Optional[float] = None,
        previous_course: Optional[float] = None,
    ) -> float:
        """
        Compute the trust score of a fix.

        Args:
            fix: Raw fix to score
            previous_speed: Speed of the previous accepted fix (m/s)
            previous_course: Course of the previous accepted fix (deg)

        Returns:
            Trust score clamped to [0,1]
        """
        cfg = self.config
        score = max(0.0, 1.0 - fix.effective_accuracy_m / cfg.accuracy_scale_m)

        if fix.has_speed:
            if fix.speed_m_s > cfg.max_speed_m_s:
                score *= cfg.speed_penalty

            if previous_speed is not None and previous_speed >= 0:
                if abs(fix.speed_m_s - previous_speed) > cfg.max_speed_jump_m_s:
                    score *= cfg.speed_jump_penalty

        if fix.has_course and previous_course is not None and previous_course >= 0:
            if heading_change_deg(fix.course_deg, previous_course) > cfg.sharp_turn_deg:
                score *= cfg.sharp_turn_penalty

        return min(1.0, max(0.0, score))

    def is_anomalous(self, current: RawFix, previous: Optional[RawFix]) -> bool:
        """
        Check whether a fix is physically impossible relative to the previous one.

        Args:
            current: Fix to check
            previous: Previous accepted fix (None for the first fix)

        Returns:
            True if implied speed exceeds the ceiling, accuracy is beyond
            max_accuracy_m, or the clock did not advance
        """
        if previous is None:
            return False

        elapsed = current.timestamp - previous.timestamp
        if elapsed <= 0:
            return True

        distance = haversine_m(previous.lat, previous.lon, current.lat, current.lon)
        if distance / elapsed > self.config.max_speed_m_s:
            return True

        if current.accuracy_m > self.config.max_accuracy_m:
            return True

        return False

    def evaluate(self, fix: RawFix, previous: Optional[RawFix] = None) -> TrustedFix:
        """
        Score and anomaly-check a fix against the previous accepted fix.

        Args:
            fix: Raw fix
            previous: Previous accepted fix (None for the first fix)

        Returns:
            TrustedFix carrying trust score, anomaly flag and location source
        """
        previous_speed = previous.speed_m_s if previous is not None and previous.has_speed else None
        previous_course = previous.course_deg if previous is not None and previous.has_course else None

        return TrustedFix(
            fix=fix,
            trust_score=self.score(fix, previous_speed, previous_course),
            is_anomalous=self.is_anomalous(fix, previous),
            source=LocationSource.from_accuracy(fix.accuracy_m),
        )


def create_default_scorer() -> TrustScorer:
    """
    Create trust scorer tuned for foot activities.

    Returns:
        Configured TrustScorer instance
    """
    config = TrustScorerConfig(
        accuracy_scale_m=50.0,
        max_speed_m_s=12.0,     # ~43 km/h, beyond any run/hike
        max_speed_jump_m_s=5.0,
        max_accuracy_m=100.0,
    )

    return TrustScorer(config)
