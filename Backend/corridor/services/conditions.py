"""
Condition severity resolution for road-surface and weather-surface text
"""
from typing import Iterable, List, Optional, Tuple

from corridor.models.schemas import CdotCondition, CdotWeatherStation

# Ranked vocabulary (higher = worse); the highest-ranked substring hit wins
SEVERITY_VOCABULARY: List[Tuple[str, int]] = [
    ("icy", 5),
    ("ice", 5),
    ("snow", 4),
    ("slush", 3),
    ("wet", 2),
    ("dry", 1),
]
NOT_NOTABLE = 1

ROAD_SURFACE_SENSOR = "road surface"


def condition_severity(description: Optional[str]) -> int:
    """Severity bucket for one description; 0 when unrecognized"""
    if not description:
        return 0
    text = description.lower()
    return max((rank for label, rank in SEVERITY_VOCABULARY if label in text), default=0)


def worst_condition(descriptions: Iterable[Optional[str]]) -> Optional[str]:
    """
    Most severe description in a region

    Ties keep the first-seen literal text. Dry or unrecognized text is
    reported as None rather than as a notable condition.
    """
    worst_text = None
    worst_rank = 0
    for description in descriptions:
        rank = condition_severity(description)
        if rank > worst_rank:
            worst_rank = rank
            worst_text = description
    if worst_rank <= NOT_NOTABLE:
        return None
    return worst_text


def condition_descriptions(conditions: Iterable[CdotCondition]) -> List[str]:
    return [
        detail.condition_description
        for condition in conditions
        for detail in condition.current_conditions
    ]


def road_surface_readings(stations: Iterable[CdotWeatherStation]) -> List[str]:
    """Road-surface sensor readings in station order"""
    readings = []
    for station in stations:
        for sensor in station.sensors:
            if ROAD_SURFACE_SENSOR in sensor.type.lower() and sensor.current_reading:
                readings.append(sensor.current_reading)
    return readings
