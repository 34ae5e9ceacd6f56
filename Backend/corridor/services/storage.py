"""
History and live-record storage on MongoDB
The unique segment_id index (see database.create_indexes) keeps one live row per segment
"""
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence

from pymongo import DESCENDING

from corridor.models.mongodb_models import (
    FeedSnapshot,
    IncidentHistory,
    LiveDashboard,
    StatusBuffer,
    VibeScoreHistory,
    WorkerRun,
)
from corridor.models.schemas import (
    NormalizedIncident,
    RawSnapshot,
    SegmentData,
    StatusSample,
    Trend,
    VibeResult,
    WorkerRunResult,
)

logger = logging.getLogger(__name__)


def _strip_id(doc: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in doc.items() if key != "_id"}


class HistoryStore:
    """Storage collaborator: rolling buffer, live upsert, audit trail"""

    def __init__(self, db):
        self.db = db

    # Rolling buffer
    async def append_sample(
        self,
        segment_id: str,
        speed: Optional[float],
        score: Optional[float],
        timestamp: Optional[datetime] = None,
    ) -> None:
        doc: StatusBuffer = {
            "segment_id": segment_id,
            "speed": speed,
            "vibe_score": score,
            "timestamp": timestamp or datetime.utcnow(),
        }
        await self.db.status_buffer.insert_one(doc)

    async def recent_samples(
        self,
        segment_id: str,
        window_minutes: int = 120,
        now: Optional[datetime] = None,
    ) -> List[StatusSample]:
        """Samples newer than the window, newest first"""
        cutoff = (now or datetime.utcnow()) - timedelta(minutes=window_minutes)
        docs = await self.db.status_buffer.find({
            "segment_id": segment_id,
            "timestamp": {"$gt": cutoff}
        }).sort("timestamp", DESCENDING).to_list(length=None)

        return [
            StatusSample(
                segment_id=doc["segment_id"],
                speed=doc.get("speed"),
                score=doc.get("vibe_score"),
                timestamp=doc["timestamp"],
            )
            for doc in docs
        ]

    async def cleanup_old_samples(self, window_minutes: int = 120, now: Optional[datetime] = None) -> int:
        cutoff = (now or datetime.utcnow()) - timedelta(minutes=window_minutes)
        result = await self.db.status_buffer.delete_many({"timestamp": {"$lt": cutoff}})
        return result.deleted_count

    # Live dashboard
    async def upsert_live(
        self,
        segment_id: str,
        segment_name: Optional[str],
        current_speed: Optional[float],
        speed_anomaly_detected: bool,
        vibe_score: Optional[float],
        ai_summary: Optional[str],
        ai_narrative: Optional[str],
        trend: Trend,
        updated_at: Optional[datetime] = None,
    ) -> None:
        fields: LiveDashboard = {
            "segment_name": segment_name,
            "current_speed": current_speed,
            "speed_anomaly_detected": speed_anomaly_detected,
            "vibe_score": vibe_score,
            "ai_summary": ai_summary,
            "ai_narrative": ai_narrative,
            "trend": trend.value,
            "updated_at": updated_at or datetime.utcnow(),
        }
        await self.db.live_dashboard.update_one(
            {"segment_id": segment_id},
            {"$set": fields},
            upsert=True
        )

    async def list_live(self) -> List[Dict[str, Any]]:
        docs = await self.db.live_dashboard.find({}).sort("segment_id", 1).to_list(length=None)
        return [_strip_id(doc) for doc in docs]

    async def get_live(self, segment_id: str) -> Optional[Dict[str, Any]]:
        doc = await self.db.live_dashboard.find_one({"segment_id": segment_id})
        return _strip_id(doc) if doc else None

    # Audit trail
    async def record_run(self, run_id: str, result: WorkerRunResult, config_version: Optional[str]) -> None:
        doc: WorkerRun = {
            "run_id": run_id,
            "started_at": result.started_at,
            "completed_at": datetime.utcnow(),
            "segments_processed": result.segments_processed,
            "incidents_total": result.incidents_total,
            "incidents_normalized": result.incidents_normalized,
            "incidents_cached": result.incidents_cached,
            "incidents_fallback": result.incidents_fallback,
            "success": result.success,
            "error_messages": list(result.errors),
            "duration_ms": result.duration_ms,
            "config_version": config_version,
        }
        await self.db.worker_run.insert_one(doc)

    async def latest_run(self) -> Optional[Dict[str, Any]]:
        doc = await self.db.worker_run.find_one({}, sort=[("started_at", DESCENDING)])
        return _strip_id(doc) if doc else None

    async def record_snapshot(self, run_id: str, snapshot: RawSnapshot) -> None:
        doc: FeedSnapshot = {
            "worker_run_id": run_id,
            "destinations": [r.model_dump(by_alias=True) for r in snapshot.destinations],
            "incidents": [r.model_dump(by_alias=True) for r in snapshot.incidents],
            "conditions": [r.model_dump(by_alias=True) for r in snapshot.conditions],
            "weather_stations": [r.model_dump(by_alias=True) for r in snapshot.weather_stations],
            "fetched_at": snapshot.fetched_at,
        }
        await self.db.feed_snapshot.insert_one(doc)

    async def record_score(
        self,
        run_id: str,
        segment_data: SegmentData,
        vibe: VibeResult,
        trend: Trend,
        timestamp: Optional[datetime] = None,
    ) -> None:
        doc: VibeScoreHistory = {
            "worker_run_id": run_id,
            "segment_id": segment_data.segment.id,
            "vibe_score": vibe.score,
            "flow_score": vibe.flow_score,
            "incident_penalty": vibe.incident_penalty,
            "weather_penalty": vibe.weather_penalty,
            "travel_time_seconds": segment_data.travel_time_seconds,
            "implied_speed_mph": segment_data.implied_speed_mph,
            "speed_anomaly_detected": segment_data.speed_anomaly_detected,
            "road_condition": segment_data.road_condition,
            "weather_surface": segment_data.weather_surface,
            "ai_summary": vibe.summary,
            "trend": trend.value,
            "timestamp": timestamp or datetime.utcnow(),
        }
        await self.db.vibe_score_history.insert_one(doc)

    async def record_incidents(self, run_id: str, incidents: Sequence[NormalizedIncident]) -> None:
        if not incidents:
            return
        now = datetime.utcnow()
        docs: List[IncidentHistory] = [
            {
                "worker_run_id": run_id,
                "cdot_incident_id": incident.id,
                "incident_type": incident.incident_type,
                "severity": incident.severity.value,
                "start_marker": incident.start_marker,
                "end_marker": incident.end_marker,
                "original_message": incident.original_message,
                "normalized_summary": incident.summary,
                "penalty_applied": incident.penalty,
                "from_cache": incident.from_cache,
                "used_fallback": incident.used_fallback,
                "cache_hash": incident.cache_hash,
                "timestamp": now,
            }
            for incident in incidents
        ]
        await self.db.incident_history.insert_many(docs)
