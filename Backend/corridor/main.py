"""
FastAPI main application
"""
import logging
from typing import Optional
from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from corridor.database import connect_to_mongo, close_mongo_connection, get_database
from corridor.config import settings
from corridor.exceptions import (
    ConfigurationError,
    general_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from corridor.orchestrator import CorridorWorker, build_worker
from corridor.api.routes import dashboard, health

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Scheduler instance
scheduler = AsyncIOScheduler()

# Corridor worker instance (initialized in lifespan)
worker: Optional[CorridorWorker] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    global worker

    # Startup
    logger.info("Starting I-70 Corridor Vibe worker...")

    missing = settings.missing_required()
    if missing:
        logger.warning(f"Missing configuration, worker runs will fail until set: {', '.join(missing)}")

    await connect_to_mongo()

    worker = build_worker(settings, get_database())
    worker.setup_scheduled_cycles(scheduler)

    scheduler.start()
    logger.info("Scheduler started")

    yield

    # Shutdown
    logger.info("Shutting down...")
    scheduler.shutdown()
    await close_mongo_connection()
    logger.info("Shutdown complete")


# Create FastAPI app
app = FastAPI(
    title="I-70 Corridor Vibe API",
    description="Mountain corridor travel conditions scored 0-10 per segment",
    version="1.0.0",
    lifespan=lifespan
)

# Origins are configured via CORS_ORIGINS environment variable (comma-separated)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
    max_age=3600,
)

app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, general_exception_handler)

# Include routers
app.include_router(dashboard.router)
app.include_router(health.router)


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "service": "I-70 Corridor Vibe",
        "version": "1.0.0",
        "status": "running",
        "endpoints": {
            "dashboard": "/api/dashboard",
            "segment": "/api/dashboard/{segment_id}",
            "history": "/api/dashboard/{segment_id}/history",
            "health": "/api/health",
            "last_run": "/api/health/last-run",
            "worker": "/api/worker/status",
            "run": "/api/worker/run"
        }
    }


@app.get("/api/worker/status")
async def worker_status():
    """Get corridor worker status"""
    if worker is None:
        return {
            "status": "not_initialized",
            "error": "Corridor worker not initialized"
        }
    return worker.get_status()


@app.post("/api/worker/run")
async def trigger_run():
    """Manually trigger one worker run"""
    if worker is None:
        raise HTTPException(status_code=503, detail="Corridor worker not initialized")

    try:
        result = await worker.run_cycle()
    except ConfigurationError as e:
        raise HTTPException(status_code=503, detail=f"Worker run aborted: {e}")

    if result is None:
        return {"status": "skipped", "reason": "A run is already in progress"}
    return {"status": "completed" if result.success else "completed_with_errors", "result": result}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "corridor.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug
    )
