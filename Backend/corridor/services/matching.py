"""
Spatial matching by mile marker, route and direction

CDOT feeds share no common segment id, so records are correlated to
configured segments by position. Westbound spans run in decreasing
mile-marker order (start > end); every range operation normalizes first.
"""
import re
from typing import Iterable, List, Optional, Tuple

from corridor.models.schemas import (
    CdotCondition,
    CdotDestination,
    CdotIncident,
    CdotWeatherStation,
    SegmentBounds,
    SegmentConfig,
)

Range = Tuple[float, float]

# "I-70", "US 6", "SH-9", "Interstate 70", "State Route 103", "Hwy 40"
_ROUTE_PREFIX = re.compile(
    r"^(?:interstate|highway|hwy|state\s*route|state\s*highway|ih|i|us|co|sh|sr)[\s\-]*",
    re.IGNORECASE,
)
# Route code with a trailing direction letter, e.g. "070W" or "70 E"
_ROUTE_WITH_DIRECTION = re.compile(r"^(\d+)\s*([NSEW])$", re.IGNORECASE)

DIRECTION_VARIANTS = {
    "w": ("w", "west", "westbound", "wb", "west bound"),
    "e": ("e", "east", "eastbound", "eb", "east bound"),
    "n": ("n", "north", "northbound", "nb", "north bound"),
    "s": ("s", "south", "southbound", "sb", "south bound"),
}
BOTH_DIRECTIONS = ("both", "both directions", "all", "all directions", "b")


def normalized_range(bounds) -> Range:
    """
    Absolute (min, max) for a span given in either orientation

    Args:
        bounds: SegmentBounds, or any (start, end) pair
    """
    if isinstance(bounds, SegmentBounds):
        start, end = bounds.start_mm, bounds.end_mm
    else:
        start, end = bounds
    return (min(start, end), max(start, end))


def marker_in_bounds(marker: Optional[float], bounds) -> bool:
    """Inclusive containment after normalization"""
    if marker is None:
        return False
    low, high = normalized_range(bounds)
    return low <= marker <= high


def ranges_overlap(a, b) -> bool:
    """Inclusive interval intersection; zero-length ranges participate"""
    a_min, a_max = normalized_range(a)
    b_min, b_max = normalized_range(b)
    return a_min <= b_max and a_max >= b_min


def split_route(raw_route: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    """
    Reduce a raw route string to its bare number plus any embedded direction

    Returns:
        (route, direction_letter) - route is None when nothing usable remains
    """
    if not isinstance(raw_route, str):
        return None, None
    text = _ROUTE_PREFIX.sub("", raw_route.strip())
    direction = None
    joined = _ROUTE_WITH_DIRECTION.match(text)
    if joined:
        text, direction = joined.group(1), joined.group(2).lower()
    text = text.strip().lstrip("0")
    if not text:
        return None, direction
    return text.upper(), direction


def route_matches(raw_route_name: Optional[str], config_route_id: Optional[str]) -> bool:
    """'I-70' matches '070'; '070W' matches '70'. Missing values never match."""
    raw, _ = split_route(raw_route_name)
    configured, _ = split_route(config_route_id)
    if raw is None or configured is None:
        return False
    return raw == configured


def _canonical_direction(value: str) -> Optional[str]:
    text = " ".join(value.lower().replace("-", " ").split())
    for key, variants in DIRECTION_VARIANTS.items():
        if text in variants:
            return key
    return None


def direction_matches(raw_direction: Optional[str], config_direction: Optional[str]) -> bool:
    """Case/whitespace-insensitive; 'both' matches any configured direction"""
    if not isinstance(raw_direction, str) or not isinstance(config_direction, str):
        return False
    raw_text = " ".join(raw_direction.lower().split())
    config_text = " ".join(config_direction.lower().split())
    if not raw_text or not config_text:
        return False
    if raw_text in BOTH_DIRECTIONS:
        return True
    if raw_text == config_text:
        return True
    raw_key = _canonical_direction(raw_text)
    return raw_key is not None and raw_key == _canonical_direction(config_text)


def find_destination_for_segment(
    segment: SegmentConfig,
    destinations: Iterable[CdotDestination],
) -> Optional[CdotDestination]:
    """Exact feed-name match only; a renamed upstream destination fails closed"""
    target = segment.data_sources.destination_name
    for destination in destinations:
        if destination.name == target:
            return destination
    return None


def _incident_direction(incident: CdotIncident) -> Optional[str]:
    if incident.direction:
        return incident.direction
    _, embedded = split_route(incident.route_name)
    return embedded


def find_incidents_for_segment(
    segment: SegmentConfig,
    incidents: Iterable[CdotIncident],
) -> List[CdotIncident]:
    """Incidents whose route, direction and start marker fall on the segment"""
    bounds = segment.bounds
    matched = []
    for incident in incidents:
        if not route_matches(incident.route_name, bounds.route_id):
            continue
        if not direction_matches(_incident_direction(incident), bounds.direction):
            continue
        # Start marker is the primary location indicator
        if not marker_in_bounds(incident.start_marker, bounds):
            continue
        matched.append(incident)
    return matched


def find_conditions_for_segment(
    segment: SegmentConfig,
    conditions: Iterable[CdotCondition],
) -> List[CdotCondition]:
    """Road conditions on the segment's route whose span overlaps its bounds"""
    bounds = segment.bounds
    return [
        condition for condition in conditions
        if route_matches(condition.route_name, bounds.route_id)
        and ranges_overlap(bounds, (condition.primary_mp, condition.secondary_mp))
    ]


def find_weather_stations_for_segment(
    segment: SegmentConfig,
    stations: Iterable[CdotWeatherStation],
) -> List[CdotWeatherStation]:
    """Stations on the segment's route with a marker inside its bounds"""
    bounds = segment.bounds
    return [
        station for station in stations
        if route_matches(station.route_name, bounds.route_id)
        and marker_in_bounds(station.marker, bounds)
    ]
