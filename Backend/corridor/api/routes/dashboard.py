"""
API routes for the live dashboard
"""
import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, HTTPException, Query

from corridor.config import settings
from corridor.database import get_database
from corridor.models.schemas import DashboardResponse, HistoryResponse, LiveDashboardRecord
from corridor.services.storage import HistoryStore
from corridor.services.trend import calculate_trend

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


def _store_or_503() -> HistoryStore:
    db = get_database()
    if db is None:
        raise HTTPException(status_code=503, detail="Database not connected")
    return HistoryStore(db)


@router.get("", response_model=DashboardResponse)
async def get_dashboard():
    """
    Get the live record for every segment

    Returns an empty list (not an error) when the database is down, so the
    dashboard can render its empty state.
    """
    db = get_database()
    if db is None:
        return DashboardResponse(segments=[], count=0, timestamp=datetime.utcnow())

    docs = await HistoryStore(db).list_live()
    records = [LiveDashboardRecord.model_validate(doc) for doc in docs]
    return DashboardResponse(segments=records, count=len(records), timestamp=datetime.utcnow())


@router.get("/{segment_id}", response_model=LiveDashboardRecord)
async def get_segment(segment_id: str):
    store = _store_or_503()
    doc = await store.get_live(segment_id)
    if doc is None:
        raise HTTPException(status_code=404, detail=f"Segment {segment_id} not found")
    return LiveDashboardRecord.model_validate(doc)


@router.get("/{segment_id}/history", response_model=HistoryResponse)
async def get_segment_history(
    segment_id: str,
    window_minutes: Optional[int] = Query(None, ge=5, le=24 * 60)
):
    """
    Get rolling-buffer samples for one segment, newest first

    Args:
        segment_id: Configured segment id
        window_minutes: Lookback window; defaults to the configured history window
    """
    store = _store_or_503()
    samples = await store.recent_samples(segment_id, window_minutes or settings.history_window_minutes)
    return HistoryResponse(
        segment_id=segment_id,
        samples=samples,
        trend=calculate_trend(samples),
        count=len(samples)
    )
