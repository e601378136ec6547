"""
Unit tests for trust scoring and anomaly detection.

Tests cover:
- Accuracy baseline and clamping
- Speed, speed-jump and sharp-turn penalties
- Sentinel handling (unknown accuracy, unavailable speed/course)
- Anomaly rules: implied speed, accuracy ceiling, clock regression
"""

import pytest

from trek_core.proto import LocationSource, RawFix
from trek_core.localization import TrustScorer, TrustScorerConfig, create_default_scorer
from trek_core.localization.geodesy import destination_point


def make_fix(t=0.0, lat=22.29, lon=114.17, accuracy=5.0, speed=-1.0, course=-1.0):
    return RawFix(timestamp=t, lat=lat, lon=lon, accuracy_m=accuracy,
                  speed_m_s=speed, course_deg=course)


@pytest.fixture
def scorer():
    return create_default_scorer()


# =============================================================================
# Score
# =============================================================================


class TestScore:
    """Tests for the trust score."""

    @pytest.mark.parametrize("accuracy,expected", [
        (0.0, 1.0),
        (5.0, 0.9),
        (25.0, 0.5),
        (50.0, 0.0),
        (150.0, 0.0),
    ])
    def test_accuracy_baseline(self, scorer, accuracy, expected):
        assert scorer.score(make_fix(accuracy=accuracy)) == pytest.approx(expected)

    def test_unknown_accuracy_is_worst_case(self, scorer):
        assert scorer.score(make_fix(accuracy=-1.0)) == 0.0

    def test_excess_speed_halves_score(self, scorer):
        assert scorer.score(make_fix(accuracy=0.0, speed=15.0)) == pytest.approx(0.5)

    def test_speed_jump_penalty(self, scorer):
        score = scorer.score(make_fix(accuracy=0.0, speed=8.0), previous_speed=1.0)
        assert score == pytest.approx(0.8)

    def test_no_speed_jump_without_previous(self, scorer):
        assert scorer.score(make_fix(accuracy=0.0, speed=8.0)) == pytest.approx(1.0)

    def test_sharp_turn_penalty(self, scorer):
        score = scorer.score(make_fix(accuracy=0.0, course=180.0), previous_course=0.0)
        assert score == pytest.approx(0.9)

    def test_turn_across_north_is_not_sharp(self, scorer):
        score = scorer.score(make_fix(accuracy=0.0, course=350.0), previous_course=20.0)
        assert score == pytest.approx(1.0)

    def test_unavailable_course_skips_turn_check(self, scorer):
        score = scorer.score(make_fix(accuracy=0.0, course=-1.0), previous_course=0.0)
        assert score == pytest.approx(1.0)

    def test_penalties_compound(self, scorer):
        score = scorer.score(
            make_fix(accuracy=0.0, speed=15.0, course=180.0),
            previous_speed=1.0,
            previous_course=0.0,
        )
        assert score == pytest.approx(0.5 * 0.8 * 0.9)

    def test_score_always_in_range(self, scorer):
        for accuracy in (-5.0, 0.0, 3.0, 49.0, 1000.0):
            for speed in (-1.0, 0.0, 30.0):
                score = scorer.score(make_fix(accuracy=accuracy, speed=speed), 0.0, 0.0)
                assert 0.0 <= score <= 1.0


# =============================================================================
# Anomaly
# =============================================================================


class TestAnomaly:
    """Tests for anomaly detection."""

    def test_first_fix_never_anomalous(self, scorer):
        assert scorer.is_anomalous(make_fix(accuracy=500.0), None) is False

    def test_impossible_jump(self, scorer, origin):
        far = destination_point(origin, 100.0, 0.0)
        prev = make_fix(t=0.0, lat=origin.lat, lon=origin.lon)
        curr = make_fix(t=1.0, lat=far.lat, lon=far.lon)
        assert scorer.is_anomalous(curr, prev) is True

    def test_plausible_step(self, scorer, origin):
        near = destination_point(origin, 3.0, 0.0)
        prev = make_fix(t=0.0, lat=origin.lat, lon=origin.lon)
        curr = make_fix(t=1.0, lat=near.lat, lon=near.lon)
        assert scorer.is_anomalous(curr, prev) is False

    def test_accuracy_ceiling(self, scorer):
        prev = make_fix(t=0.0)
        curr = make_fix(t=1.0, accuracy=150.0)
        assert scorer.is_anomalous(curr, prev) is True

    @pytest.mark.parametrize("t", [0.0, -1.0])
    def test_clock_regression(self, scorer, t):
        prev = make_fix(t=0.0)
        curr = make_fix(t=t)
        assert scorer.is_anomalous(curr, prev) is True


# =============================================================================
# Evaluate
# =============================================================================


class TestEvaluate:
    """Tests for combined evaluation."""

    def test_evaluate_uses_previous_motion(self, scorer):
        prev = make_fix(t=0.0, accuracy=0.0, speed=1.0, course=0.0)
        curr = make_fix(t=1.0, accuracy=0.0, speed=8.0, course=180.0)
        trusted = scorer.evaluate(curr, prev)

        assert trusted.fix is curr
        assert trusted.trust_score == pytest.approx(0.8 * 0.9)
        assert trusted.is_anomalous is False
        assert trusted.source == LocationSource.GPS

    def test_source_from_accuracy(self, scorer):
        assert scorer.evaluate(make_fix(accuracy=30.0)).source == LocationSource.WIFI
        assert scorer.evaluate(make_fix(accuracy=80.0)).source == LocationSource.CELL
        assert scorer.evaluate(make_fix(accuracy=-1.0)).source == LocationSource.CELL

    def test_custom_config(self):
        scorer = TrustScorer(TrustScorerConfig(accuracy_scale_m=10.0))
        assert scorer.score(make_fix(accuracy=5.0)) == pytest.approx(0.5)
