"""
Pydantic schemas for segment configuration, feed records, scoring and API responses
"""
from datetime import datetime
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, List

MAX_SUMMARY_LENGTH = 100
MAX_NARRATIVE_LENGTH = 200


class Trend(str, Enum):
    IMPROVING = "IMPROVING"
    WORSENING = "WORSENING"
    STABLE = "STABLE"


class IncidentSeverity(str, Enum):
    MAJOR = "major"
    MODERATE = "moderate"
    MINOR = "minor"

    @classmethod
    def from_raw(cls, value: Optional[str]) -> "IncidentSeverity":
        """Map an upstream severity string onto the enum; unknown values are minor"""
        text = (value or "").strip().lower()
        if text in ("major", "high", "severe", "critical"):
            return cls.MAJOR
        if text in ("moderate", "medium"):
            return cls.MODERATE
        return cls.MINOR


# Segment Configuration Schemas
class SegmentBounds(BaseModel):
    """Route, direction and mile-marker span; start may be greater than end"""
    model_config = ConfigDict(frozen=True)

    route_id: str
    direction: str
    start_mm: float
    end_mm: float


class SegmentDataSources(BaseModel):
    model_config = ConfigDict(frozen=True)

    destination_name: str  # Exact CDOT destination feed name


class SegmentThresholds(BaseModel):
    model_config = ConfigDict(frozen=True)

    free_flow_seconds: float = Field(gt=0)
    critical_seconds: float = Field(gt=0)


class SegmentConfig(BaseModel):
    """Logical corridor section, read-only within a run"""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    subtitle: Optional[str] = None
    bounds: SegmentBounds
    data_sources: SegmentDataSources
    thresholds: SegmentThresholds

    @property
    def length_miles(self) -> float:
        return abs(self.bounds.start_mm - self.bounds.end_mm)


class SegmentConfigFile(BaseModel):
    """Versioned segment configuration document"""
    version: str
    segments: List[SegmentConfig] = Field(min_length=1)

    @field_validator("segments")
    @classmethod
    def unique_ids(cls, segments: List[SegmentConfig]) -> List[SegmentConfig]:
        ids = [s.id for s in segments]
        if len(ids) != len(set(ids)):
            raise ValueError("segment ids must be unique")
        return segments


# CDOT Feed Record Schemas (GeoJSON feature properties)
class _FeedRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)


class CdotDestination(_FeedRecord):
    """Travel time for one named corridor"""
    id: Optional[str] = None
    name: str
    travel_time: Optional[float] = Field(default=None, alias="travelTime")  # seconds

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, value):
        return None if value is None else str(value)


class CdotIncident(_FeedRecord):
    id: str
    type: str = ""
    severity: str = ""
    message: str = Field(default="", alias="travelerInformationMessage")
    start_marker: Optional[float] = Field(default=None, alias="startMarker")
    end_marker: Optional[float] = Field(default=None, alias="endMarker")
    route_name: Optional[str] = Field(default=None, alias="routeName")
    direction: Optional[str] = None
    last_updated: Optional[str] = Field(default=None, alias="lastUpdated")

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, value):
        return str(value)


class CdotConditionDetail(_FeedRecord):
    condition_description: str = Field(alias="conditionDescription")


class CdotCondition(_FeedRecord):
    """Road surface state over a mile-marker span"""
    route_name: Optional[str] = Field(default=None, alias="routeName")
    primary_mp: float = Field(alias="primaryMP")
    secondary_mp: float = Field(alias="secondaryMP")
    current_conditions: List[CdotConditionDetail] = Field(default_factory=list, alias="currentConditions")


class CdotWeatherSensor(_FeedRecord):
    type: str
    current_reading: Optional[str] = Field(default=None, alias="currentReading")


class CdotWeatherStation(_FeedRecord):
    id: Optional[str] = None
    name: str = ""
    route_name: Optional[str] = Field(default=None, alias="routeName")
    marker: Optional[float] = None
    sensors: List[CdotWeatherSensor] = Field(default_factory=list)

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, value):
        return None if value is None else str(value)


class RawSnapshot(BaseModel):
    """One fetch cycle across the four independent feeds"""
    model_config = ConfigDict(frozen=True)

    destinations: List[CdotDestination] = Field(default_factory=list)
    incidents: List[CdotIncident] = Field(default_factory=list)
    conditions: List[CdotCondition] = Field(default_factory=list)
    weather_stations: List[CdotWeatherStation] = Field(default_factory=list)
    fetched_at: datetime = Field(default_factory=datetime.utcnow)


# Normalization Schemas
class TextNormalization(BaseModel):
    """Strict shape expected back from the text-normalization collaborator"""
    model_config = ConfigDict(extra="forbid")

    summary: str = Field(min_length=1, max_length=MAX_SUMMARY_LENGTH)
    penalty: float = Field(ge=0, le=10)


class NormalizedIncident(BaseModel):
    id: str
    incident_type: str = ""
    original_message: str
    summary: str
    penalty: float = Field(ge=0)
    severity: IncidentSeverity
    from_cache: bool = False
    used_fallback: bool = False
    cache_hash: Optional[str] = None
    start_marker: Optional[float] = None
    end_marker: Optional[float] = None


# Scoring Schemas
class SegmentData(BaseModel):
    """Reconciled view of one segment for one run"""
    segment: SegmentConfig
    travel_time_seconds: Optional[float] = None
    implied_speed_mph: Optional[float] = None
    speed_anomaly_detected: bool = False
    incidents: List[NormalizedIncident] = Field(default_factory=list)
    road_condition: Optional[str] = None
    weather_surface: Optional[str] = None


class VibeResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    score: float = Field(ge=0, le=10)
    flow_score: float
    incident_penalty: float
    weather_penalty: float
    summary: str = Field(max_length=MAX_SUMMARY_LENGTH)


class StatusSample(BaseModel):
    """Rolling-buffer sample used for trend classification"""
    segment_id: str
    speed: Optional[float] = None
    score: Optional[float] = None
    timestamp: datetime


# Run Result
class WorkerRunResult(BaseModel):
    success: bool
    segments_processed: int = 0
    incidents_total: int = 0
    incidents_normalized: int = 0
    incidents_cached: int = 0
    incidents_fallback: int = 0
    errors: List[str] = Field(default_factory=list)
    duration_ms: int = 0
    started_at: datetime = Field(default_factory=datetime.utcnow)


# API Response Schemas
class LiveDashboardRecord(BaseModel):
    """Persisted live record consumed by the dashboard"""
    segment_id: str
    segment_name: Optional[str] = None
    current_speed: Optional[float] = None
    speed_anomaly_detected: bool = False
    vibe_score: Optional[float] = Field(default=None, ge=0, le=10)
    ai_summary: Optional[str] = None
    ai_narrative: Optional[str] = None
    trend: Trend = Trend.STABLE
    updated_at: datetime


class DashboardResponse(BaseModel):
    segments: List[LiveDashboardRecord]
    count: int
    timestamp: datetime


class HistoryResponse(BaseModel):
    segment_id: str
    samples: List[StatusSample]
    trend: Trend
    count: int
