"""
Record builders and in-memory collaborator fakes shared by the tests
"""
import asyncio
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional

from corridor.config import BACKEND_DIR
from corridor.models.schemas import (
    CdotIncident,
    IncidentSeverity,
    NormalizedIncident,
    SegmentBounds,
    SegmentConfig,
    SegmentData,
    SegmentDataSources,
    SegmentThresholds,
    StatusSample,
    TextNormalization,
)

BUNDLED_SEGMENTS = Path(BACKEND_DIR) / "config" / "segments.v1.json"


def make_segment(
    segment_id: str = "georgetown",
    name: str = "Idaho Springs to Georgetown",
    start_mm: float = 240,
    end_mm: float = 228,
    free_flow_seconds: float = 720,
    critical_seconds: float = 2160,
    route_id: str = "070",
    direction: str = "west",
) -> SegmentConfig:
    return SegmentConfig(
        id=segment_id,
        name=name,
        bounds=SegmentBounds(route_id=route_id, direction=direction, start_mm=start_mm, end_mm=end_mm),
        data_sources=SegmentDataSources(destination_name=name),
        thresholds=SegmentThresholds(free_flow_seconds=free_flow_seconds, critical_seconds=critical_seconds),
    )


def make_incident(
    incident_id: str = "inc-1",
    message: str = "CRASH I70 WB MP 232 RIGHT LANE BLOCKED",
    incident_type: str = "Crash",
    severity: str = "major",
    start_marker: Optional[float] = 232.0,
    route_name: Optional[str] = "I-70",
    direction: Optional[str] = "W",
) -> CdotIncident:
    return CdotIncident(
        id=incident_id,
        type=incident_type,
        severity=severity,
        message=message,
        start_marker=start_marker,
        end_marker=start_marker,
        route_name=route_name,
        direction=direction,
    )


def make_normalized(incident_id: str = "inc-1", penalty: float = 2.0, summary: str = "Crash blocking right lane") -> NormalizedIncident:
    return NormalizedIncident(
        id=incident_id,
        incident_type="Crash",
        original_message=summary.upper(),
        summary=summary,
        penalty=penalty,
        severity=IncidentSeverity.MODERATE,
    )


def make_segment_data(
    travel_time_seconds: Optional[float] = 720,
    free_flow_seconds: float = 720,
    incidents: Optional[List[NormalizedIncident]] = None,
    road_condition: Optional[str] = None,
    weather_surface: Optional[str] = None,
    speed_anomaly_detected: bool = False,
) -> SegmentData:
    return SegmentData(
        segment=make_segment(free_flow_seconds=free_flow_seconds),
        travel_time_seconds=travel_time_seconds,
        implied_speed_mph=60.0,
        speed_anomaly_detected=speed_anomaly_detected,
        incidents=incidents or [],
        road_condition=road_condition,
        weather_surface=weather_surface,
    )


def make_samples(scores: List[Optional[float]], segment_id: str = "georgetown", start: Optional[datetime] = None) -> List[StatusSample]:
    """Samples five minutes apart, oldest first"""
    start = start or datetime(2024, 1, 6, 14, 0)
    return [
        StatusSample(segment_id=segment_id, speed=55.0, score=score, timestamp=start + timedelta(minutes=5 * i))
        for i, score in enumerate(scores)
    ]


class StaticTextNormalizer:
    """Always returns the same normalization; counts calls"""

    cacheable = True
    name = "static"

    def __init__(self, summary: str = "Crash blocking right lane", penalty: float = 2.0):
        self.result = TextNormalization(summary=summary, penalty=penalty)
        self.calls = 0

    async def normalize(self, raw_text, incident_type, severity):
        self.calls += 1
        return self.result


class FailingTextNormalizer:
    cacheable = True
    name = "failing"

    def __init__(self, error: Exception):
        self.error = error

    async def normalize(self, raw_text, incident_type, severity):
        raise self.error


class SlowTextNormalizer:
    cacheable = True
    name = "slow"

    async def normalize(self, raw_text, incident_type, severity):
        await asyncio.sleep(5)
        return TextNormalization(summary="too late", penalty=1)


class FakeHistoryStore:
    """In-memory HistoryStore with the same coroutine surface"""

    def __init__(self):
        self.samples: List[StatusSample] = []
        self.live: Dict[str, Dict[str, Any]] = {}
        self.runs: List[Dict[str, Any]] = []
        self.snapshots: List[str] = []
        self.scores: List[Dict[str, Any]] = []
        self.incidents: List[NormalizedIncident] = []

    async def append_sample(self, segment_id, speed, score, timestamp=None):
        self.samples.append(StatusSample(
            segment_id=segment_id, speed=speed, score=score, timestamp=timestamp or datetime.utcnow()
        ))

    async def recent_samples(self, segment_id, window_minutes=120, now=None):
        cutoff = (now or datetime.utcnow()) - timedelta(minutes=window_minutes)
        matching = [s for s in self.samples if s.segment_id == segment_id and s.timestamp > cutoff]
        return sorted(matching, key=lambda s: s.timestamp, reverse=True)

    async def cleanup_old_samples(self, window_minutes=120, now=None):
        cutoff = (now or datetime.utcnow()) - timedelta(minutes=window_minutes)
        before = len(self.samples)
        self.samples = [s for s in self.samples if s.timestamp >= cutoff]
        return before - len(self.samples)

    async def upsert_live(self, segment_id, **fields):
        record = self.live.setdefault(segment_id, {"segment_id": segment_id})
        fields["trend"] = fields["trend"].value
        record.update(fields)

    async def list_live(self):
        return [dict(self.live[key]) for key in sorted(self.live)]

    async def get_live(self, segment_id):
        record = self.live.get(segment_id)
        return dict(record) if record else None

    async def record_run(self, run_id, result, config_version):
        self.runs.append({"run_id": run_id, "config_version": config_version, **result.model_dump()})

    async def latest_run(self):
        return self.runs[-1] if self.runs else None

    async def record_snapshot(self, run_id, snapshot):
        self.snapshots.append(run_id)

    async def record_score(self, run_id, segment_data, vibe, trend, timestamp=None):
        self.scores.append({"run_id": run_id, "segment_id": segment_data.segment.id, "vibe_score": vibe.score})

    async def record_incidents(self, run_id, incidents):
        self.incidents.extend(incidents)
