"""
MongoDB document models (for reference and type hints)
These represent the structure of documents stored in MongoDB collections
"""
from typing import Optional, List
from datetime import datetime
from typing_extensions import TypedDict


# Live / Rolling Collections
class LiveDashboard(TypedDict, total=False):
    """One row per segment, upserted every run"""
    segment_id: str
    segment_name: str
    current_speed: Optional[float]
    speed_anomaly_detected: bool
    vibe_score: Optional[float]  # 0-10
    ai_summary: Optional[str]
    ai_narrative: Optional[str]
    trend: str  # "IMPROVING" | "WORSENING" | "STABLE"
    updated_at: datetime


class StatusBuffer(TypedDict, total=False):
    """Rolling 2-hour sample window used for trends"""
    segment_id: str
    speed: Optional[float]
    vibe_score: Optional[float]
    timestamp: datetime


# Caches
class IncidentCacheEntry(TypedDict, total=False):
    message_hash: str
    normalized_text: str
    severity_penalty: float
    created_at: datetime


class NarrativeCacheEntry(TypedDict, total=False):
    input_hash: str
    narrative: str
    created_at: datetime


# Audit Collections
class WorkerRun(TypedDict, total=False):
    """Central correlation point for one run's audit trail"""
    run_id: str
    started_at: datetime
    completed_at: datetime
    segments_processed: int
    incidents_total: int
    incidents_normalized: int
    incidents_cached: int
    incidents_fallback: int
    success: bool
    error_messages: List[str]
    duration_ms: int
    config_version: Optional[str]


class FeedSnapshot(TypedDict, total=False):
    """Verbatim feed records for one run"""
    worker_run_id: str
    destinations: List[dict]
    incidents: List[dict]
    conditions: List[dict]
    weather_stations: List[dict]
    fetched_at: datetime


class VibeScoreHistory(TypedDict, total=False):
    """Full breakdown of each score calculation"""
    worker_run_id: str
    segment_id: str
    vibe_score: float
    flow_score: float
    incident_penalty: float
    weather_penalty: float
    travel_time_seconds: Optional[float]
    implied_speed_mph: Optional[float]
    speed_anomaly_detected: bool
    road_condition: Optional[str]
    weather_surface: Optional[str]
    ai_summary: Optional[str]
    trend: str
    timestamp: datetime


class IncidentHistory(TypedDict, total=False):
    worker_run_id: str
    cdot_incident_id: str
    incident_type: str
    severity: str  # "major" | "moderate" | "minor"
    start_marker: Optional[float]
    end_marker: Optional[float]
    original_message: str
    normalized_summary: str
    penalty_applied: float
    from_cache: bool
    used_fallback: bool
    cache_hash: Optional[str]
    timestamp: datetime
