"""
Segment Aggregator
Reconciles one RawSnapshot against the configured segments using spatial matching
"""
import logging
import math
from typing import Dict, List, Optional, Sequence

from corridor.models.schemas import (
    CdotIncident,
    NormalizedIncident,
    RawSnapshot,
    SegmentConfig,
    SegmentData,
)
from corridor.services import conditions, matching

logger = logging.getLogger(__name__)

# Implied speeds above this are bad upstream data, not real traffic
MAX_REASONABLE_SPEED_MPH = 85.0

WEATHER_SCOPE_CORRIDOR = "corridor"
WEATHER_SCOPE_SEGMENT = "segment"


class SegmentAggregator:
    """Builds one SegmentData per configured segment; never raises on missing data"""

    def __init__(self, segments: Sequence[SegmentConfig], weather_surface_scope: str = WEATHER_SCOPE_CORRIDOR):
        if weather_surface_scope not in (WEATHER_SCOPE_CORRIDOR, WEATHER_SCOPE_SEGMENT):
            raise ValueError(f"Unknown weather surface scope: {weather_surface_scope}")
        self.segments = list(segments)
        self.weather_surface_scope = weather_surface_scope

    def process_segments(
        self,
        snapshot: RawSnapshot,
        normalized_incidents: Sequence[NormalizedIncident],
    ) -> List[SegmentData]:
        """
        Match every feed to every configured segment

        Args:
            snapshot: One fetch cycle's raw records
            normalized_incidents: This run's normalized incidents

        Returns:
            SegmentData in configuration order
        """
        corridor_surface = self.corridor_surface(snapshot)
        return [
            self.process_segment(segment, snapshot, normalized_incidents, corridor_surface)
            for segment in self.segments
        ]

    def process_segment(
        self,
        segment: SegmentConfig,
        snapshot: RawSnapshot,
        normalized_incidents: Sequence[NormalizedIncident],
        corridor_surface: Optional[str] = None,
    ) -> SegmentData:
        travel_time_seconds = None
        implied_speed_mph = None
        speed_anomaly_detected = False

        destination = matching.find_destination_for_segment(segment, snapshot.destinations)
        if destination is not None and destination.travel_time is not None:
            travel_time_seconds = destination.travel_time
            if travel_time_seconds > 0:
                speed = segment.length_miles / (travel_time_seconds / 3600)
                if speed > MAX_REASONABLE_SPEED_MPH:
                    # Keep the number; hiding it is a display decision
                    speed_anomaly_detected = True
                # Vanishing travel times overflow to inf; flag it without a number
                if math.isfinite(speed):
                    implied_speed_mph = float(math.floor(speed + 0.5))
        elif destination is None:
            logger.debug(f"No destination named '{segment.data_sources.destination_name}' for {segment.id}")

        raw_in_bounds = {incident.id for incident in matching.find_incidents_for_segment(segment, snapshot.incidents)}
        segment_incidents = [ni for ni in normalized_incidents if ni.id in raw_in_bounds]

        segment_conditions = matching.find_conditions_for_segment(segment, snapshot.conditions)
        road_condition = conditions.worst_condition(conditions.condition_descriptions(segment_conditions))

        if self.weather_surface_scope == WEATHER_SCOPE_SEGMENT:
            stations = matching.find_weather_stations_for_segment(segment, snapshot.weather_stations)
            weather_surface = conditions.worst_condition(conditions.road_surface_readings(stations))
        else:
            weather_surface = corridor_surface

        return SegmentData(
            segment=segment,
            travel_time_seconds=travel_time_seconds,
            implied_speed_mph=implied_speed_mph,
            speed_anomaly_detected=speed_anomaly_detected,
            incidents=segment_incidents,
            road_condition=road_condition,
            weather_surface=weather_surface,
        )

    def corridor_surface(self, snapshot: RawSnapshot) -> Optional[str]:
        """Corridor-wide surface: first road-surface reading across all stations; None in segment scope"""
        if self.weather_surface_scope != WEATHER_SCOPE_CORRIDOR:
            return None
        readings = conditions.road_surface_readings(snapshot.weather_stations)
        return readings[0] if readings else None

    def raw_incidents_in_corridor(self, snapshot: RawSnapshot) -> List[CdotIncident]:
        """Incidents inside any configured segment, deduplicated by id"""
        seen: Dict[str, CdotIncident] = {}
        for segment in self.segments:
            for incident in matching.find_incidents_for_segment(segment, snapshot.incidents):
                seen.setdefault(incident.id, incident)
        return list(seen.values())

    @staticmethod
    def build_conditions_summary(segment_data: SegmentData) -> str:
        """Plain-text conditions line for logging and narrative prompts"""
        parts = []

        if segment_data.travel_time_seconds:
            ratio = segment_data.segment.thresholds.free_flow_seconds / segment_data.travel_time_seconds
            if ratio >= 0.9:
                parts.append("Traffic flowing smoothly")
            elif ratio >= 0.5:
                parts.append("Moderate delays")
            else:
                parts.append("Significant delays")

        if segment_data.road_condition:
            parts.append(f"Road: {segment_data.road_condition}")

        if segment_data.weather_surface:
            parts.append(f"Surface: {segment_data.weather_surface}")

        if segment_data.incidents:
            parts.append(f"{len(segment_data.incidents)} active incident(s)")

        return ". ".join(parts) if parts else "No data available"
