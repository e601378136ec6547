"""
Rule-based activity classifier.

Ordered threshold rules, first match wins:
1. RUN:  avg_speed > 2.5 and step_frequency > 2.5 and speed_variance < 1.0
2. WALK: 0.8 < avg_speed < 2.5 and 1.5 < step_frequency < 2.5
3. HIKE: 0.5 < avg_speed < 1.5 and course_change_rate > 0.3
4. UNKNOWN otherwise

All comparisons are strict. The windowed variant majority-votes over the
last N feature records; ties go to the label seen first when scanning the
window oldest to newest.
"""

from collections import deque
from dataclasses import dataclass
from typing import Deque, Dict, Optional

from trek_core.proto.activity import ActivityFeatures, ActivityLabel


@dataclass
class ClassifierConfig:
    """
    Thresholds for activity rules.

    Attributes:
        run_min_speed: Run speed floor (m/s)
        run_min_step_hz: Run step frequency floor (Hz)
        run_max_speed_variance: Run speed variance ceiling
        walk_min_speed: Walk speed floor (m/s)
        walk_max_speed: Walk speed ceiling (m/s)
        walk_min_step_hz: Walk step frequency floor (Hz)
        walk_max_step_hz: Walk step frequency ceiling (Hz)
        hike_min_speed: Hike speed floor (m/s)
        hike_max_speed: Hike speed ceiling (m/s)
        hike_min_course_change: Hike course change floor (deg/sample at ~1 Hz)
        window_size: Feature records kept for the majority vote
    """

    run_min_speed: float = 2.5
    run_min_step_hz: float = 2.5
    run_max_speed_variance: float = 1.0
    walk_min_speed: float = 0.8
    walk_max_speed: float = 2.5
    walk_min_step_hz: float = 1.5
    walk_max_step_hz: float = 2.5
    hike_min_speed: float = 0.5
    hike_max_speed: float = 1.5
    hike_min_course_change: float = 0.3
    window_size: int = 10


class ActivityClassifier:
    """
    Threshold classifier with an optional sliding-window vote.

    Usage:
        classifier = ActivityClassifier()

        label = classifier.classify(features)            # pure
        smoothed = classifier.classify_with_window(features)  # stateful

    One instance per session: the window is session state.
    """

    def __init__(self, config: Optional[ClassifierConfig] = None):
        """
        Initialize classifier.

        Args:
            config: Rule thresholds (uses defaults if None)
        """
        self.config = config or ClassifierConfig()
        self._window: Deque[ActivityFeatures] = deque(maxlen=self.config.window_size)

    def classify(self, features: ActivityFeatures) -> ActivityLabel:
        """Classify one feature record. Same input, same output."""
        cfg = self.config

        if (features.avg_speed > cfg.run_min_speed
                and features.step_frequency > cfg.run_min_step_hz
                and features.speed_variance < cfg.run_max_speed_variance):
            return ActivityLabel.RUN

        if (cfg.walk_min_speed < features.avg_speed < cfg.walk_max_speed
                and cfg.walk_min_step_hz < features.step_frequency < cfg.walk_max_step_hz):
            return ActivityLabel.WALK

        if (cfg.hike_min_speed < features.avg_speed < cfg.hike_max_speed
                and features.course_change_rate > cfg.hike_min_course_change):
            return ActivityLabel.HIKE

        return ActivityLabel.UNKNOWN

    def classify_with_window(self, features: ActivityFeatures) -> ActivityLabel:
        """
        Push features into the window and return the majority label.

        Args:
            features: Newest feature record

        Returns:
            Majority label over the window (first-seen wins ties)
        """
        self._window.append(features)
        return majority_label([self.classify(f) for f in self._window])

    @property
    def window_length(self) -> int:
        return len(self._window)

    def reset(self):
        """Clear the vote window."""
        self._window.clear()


def majority_label(labels) -> ActivityLabel:
    """
    Majority vote with a deterministic tie-break.

    Args:
        labels: Labels in window order (oldest first)

    Returns:
        Most frequent label; on a tie, the one encountered first.
        UNKNOWN for an empty sequence.
    """
    counts: Dict[ActivityLabel, int] = {}
    for label in labels:
        counts[label] = counts.get(label, 0) + 1

    best = ActivityLabel.UNKNOWN
    best_count = 0
    # dict preserves first-encounter order, so strict > keeps the earliest on ties
    for label, count in counts.items():
        if count > best_count:
            best = label
            best_count = count

    return best
