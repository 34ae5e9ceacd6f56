"""
Trend classification from the rolling status buffer
"""
from typing import List, Optional, Sequence

from corridor.models.schemas import StatusSample, Trend

MIN_SAMPLES = 6
SCORE_THRESHOLD = 0.5
NEUTRAL_SCORE = 5.0


def _mean(values: List[float]) -> float:
    if not values:
        return 0.0
    return sum(values) / len(values)


def _score_or_neutral(score: Optional[float]) -> float:
    return NEUTRAL_SCORE if score is None else score


def calculate_trend(samples: Sequence[StatusSample]) -> Trend:
    """
    Compare the most recent third of samples with the oldest third

    Samples are re-sorted newest first, so caller order does not matter.
    Fewer than MIN_SAMPLES samples is always STABLE. Null scores count as
    the neutral midpoint rather than being dropped.
    """
    if len(samples) < MIN_SAMPLES:
        return Trend.STABLE

    ordered = sorted(samples, key=lambda s: s.timestamp, reverse=True)
    third = len(ordered) // 3

    recent = [_score_or_neutral(s.score) for s in ordered[:third]]
    older = [_score_or_neutral(s.score) for s in ordered[-third:]]

    recent_mean = _mean(recent)
    older_mean = _mean(older)

    if recent_mean - older_mean > SCORE_THRESHOLD:
        return Trend.IMPROVING
    if older_mean - recent_mean > SCORE_THRESHOLD:
        return Trend.WORSENING
    return Trend.STABLE
