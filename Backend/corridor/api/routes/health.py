"""
Health check endpoints
"""
import logging
from datetime import datetime

from fastapi import APIRouter

from corridor.config import settings
from corridor.database import get_database
from corridor.services.storage import HistoryStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/health", tags=["health"])


@router.get("")
async def health_check():
    """Basic health check"""
    return {
        "status": "healthy",
        "service": "corridor_vibe",
        "database": "connected" if get_database() is not None else "disconnected",
        "feeds": "mock" if settings.feeds_use_mock else "live",
        "missing_config": settings.missing_required(),
        "timestamp": datetime.utcnow().isoformat()
    }


@router.get("/last-run")
async def last_run():
    """Most recent persisted worker run (audit record)"""
    db = get_database()
    if db is None:
        return {"status": "unknown", "error": "Database not connected"}

    try:
        run = await HistoryStore(db).latest_run()
    except Exception as e:
        logger.error(f"Error reading last worker run: {e}", exc_info=True)
        return {"status": "error", "error": str(e)}

    if run is None:
        return {"status": "no_runs"}

    age_minutes = None
    if isinstance(run.get("started_at"), datetime):
        age_minutes = int((datetime.utcnow() - run["started_at"]).total_seconds() / 60)

    return {
        "status": "ok" if run.get("success") else "degraded",
        "age_minutes": age_minutes,
        "run": run
    }
