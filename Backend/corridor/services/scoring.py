"""
Deterministic vibe scoring

Final Vibe = clamp(FlowScore - IncidentPenalty - WeatherPenalty, 0, 10)

No I/O and no hidden state: identical SegmentData always yields an
identical VibeResult.
"""
import math
from typing import Iterable, Optional

from corridor.models.schemas import (
    MAX_SUMMARY_LENGTH,
    IncidentSeverity,
    NormalizedIncident,
    SegmentData,
    VibeResult,
)

MAX_SCORE = 10.0
MIN_SCORE = 0.0
NEUTRAL_FLOW_SCORE = 5.0

# Penalties (points subtracted from the flow score)
ROAD_CLOSURE_PENALTY = 5.0
LANE_CLOSURE_PENALTY = 2.0
CHAIN_LAW_PENALTY = 1.0
MODERATE_DEFAULT_PENALTY = 1.0
ICY_CONDITIONS_PENALTY = 1.0

WINTER_VOCABULARY = ("icy", "ice", "snow", "frozen")


def clamp(value: float, low: float = MIN_SCORE, high: float = MAX_SCORE) -> float:
    return max(low, min(high, value))


def round_half_up(value: float, digits: int = 1) -> float:
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def flow_score(
    current_travel_seconds: Optional[float],
    free_flow_seconds: float,
    speed_anomaly_detected: bool,
) -> float:
    """
    Flow sub-score (0-10) from ratio = free_flow / current travel time

    ratio >= 0.9 -> 10, [0.5, 0.9) -> [5, 10), [0.2, 0.5) -> [1, 5), below -> 1
    """
    # Anomalous data is "too good to be real": assume clear
    if speed_anomaly_detected:
        return MAX_SCORE

    if current_travel_seconds is None or current_travel_seconds <= 0:
        return NEUTRAL_FLOW_SCORE

    ratio = free_flow_seconds / current_travel_seconds

    if ratio >= 0.9:
        return MAX_SCORE
    if ratio >= 0.5:
        return 5 + ((ratio - 0.5) / 0.4) * 5
    if ratio >= 0.2:
        return 1 + ((ratio - 0.2) / 0.3) * 4
    return 1.0


def incident_penalty(incidents: Iterable[NormalizedIncident]) -> float:
    """Sum of individual penalties; a negative penalty never reduces the total"""
    return sum(max(0.0, incident.penalty) for incident in incidents)


def weather_penalty(road_condition: Optional[str], weather_surface: Optional[str]) -> float:
    combined = " ".join([(road_condition or "").lower(), (weather_surface or "").lower()])
    if any(word in combined for word in WINTER_VOCABULARY):
        return ICY_CONDITIONS_PENALTY
    return 0.0


def truncate_summary(text: str, limit: int = MAX_SUMMARY_LENGTH) -> str:
    """Collapse whitespace and hard-truncate with an ellipsis marker"""
    cleaned = " ".join(text.split())
    if len(cleaned) <= limit:
        return cleaned
    return cleaned[: limit - 3].rstrip() + "..."


def generate_summary(
    score: float,
    incident_penalty_total: float,
    weather_penalty_total: float,
    speed_anomaly_detected: bool,
) -> str:
    """Short human summary keyed on score band and the dominant penalty"""
    # The implied speed is known-unreliable here, so never quote it
    if speed_anomaly_detected:
        if incident_penalty_total > 0:
            return "Data unclear, but incidents reported. Drive carefully."
        if weather_penalty_total > 0:
            return "Data unclear, and roads may be slick. Drive carefully."
        return "Conditions look good, but data may be stale."

    incidents_dominate = incident_penalty_total > 0 and incident_penalty_total >= weather_penalty_total

    if score >= 9:
        return "Smooth sailing! Perfect conditions."
    if score >= 7:
        if weather_penalty_total > 0 and not incidents_dominate:
            return "Moving well, but watch for slick spots."
        if incident_penalty_total > 0:
            return "Moving well, minor incident reported."
        return "Looking good! Light traffic ahead."
    if score >= 5:
        if incidents_dominate:
            return "Expect delays due to incident(s)."
        if weather_penalty_total > 0:
            return "Winter conditions. Allow extra time."
        return "Moderate traffic. Allow extra time."
    if score >= 3:
        if incident_penalty_total >= ROAD_CLOSURE_PENALTY:
            return "Major incident ahead. Consider waiting."
        return "Significant slowdowns. Grab dinner first?"
    if incident_penalty_total >= ROAD_CLOSURE_PENALTY:
        return "Road closure reported. Check alternatives."
    return "Heavy delays. Definitely wait this out."


def calculate_vibe_score(segment_data: SegmentData) -> VibeResult:
    """
    Score one reconciled segment

    Args:
        segment_data: Output of the segment aggregator; missing fields score as unknown

    Returns:
        VibeResult with score clamped to [0, 10] and rounded to one decimal
    """
    flow = flow_score(
        segment_data.travel_time_seconds,
        segment_data.segment.thresholds.free_flow_seconds,
        segment_data.speed_anomaly_detected,
    )
    incidents_total = incident_penalty(segment_data.incidents)
    weather_total = weather_penalty(segment_data.road_condition, segment_data.weather_surface)

    score = round_half_up(clamp(flow - incidents_total - weather_total))

    summary = generate_summary(
        score,
        incidents_total,
        weather_total,
        segment_data.speed_anomaly_detected,
    )

    return VibeResult(
        score=score,
        flow_score=flow,
        incident_penalty=incidents_total,
        weather_penalty=weather_total,
        summary=truncate_summary(summary),
    )


def suggest_incident_penalty(incident_type: Optional[str], severity: IncidentSeverity) -> float:
    """
    Heuristic penalty used when text-model normalization is unavailable

    Args:
        incident_type: Free-text incident type from the feed
        severity: Normalized severity
    """
    type_lower = (incident_type or "").lower()

    # "All lanes closed" is a full closure; any other lane closure is partial
    if "all lanes" in type_lower and "clos" in type_lower:
        return ROAD_CLOSURE_PENALTY
    if "lane" in type_lower and "clos" in type_lower:
        return LANE_CLOSURE_PENALTY

    if "closure" in type_lower or "closed" in type_lower or "blocked" in type_lower:
        return ROAD_CLOSURE_PENALTY

    if "crash" in type_lower or "accident" in type_lower:
        return ROAD_CLOSURE_PENALTY if severity == IncidentSeverity.MAJOR else LANE_CLOSURE_PENALTY

    if "traction" in type_lower or "chain" in type_lower:
        return CHAIN_LAW_PENALTY

    if severity == IncidentSeverity.MAJOR:
        return LANE_CLOSURE_PENALTY
    if severity == IncidentSeverity.MODERATE:
        return MODERATE_DEFAULT_PENALTY
    return 0.0
