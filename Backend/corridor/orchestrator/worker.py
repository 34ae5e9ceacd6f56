"""
Corridor Worker
Runs one scoring tick end to end and registers it with APScheduler:
- Ingestion: four CDOT feeds into one RawSnapshot
- Normalization: cache-first incident text cleanup with local fallback
- Aggregation + scoring: per-segment SegmentData, VibeResult and trend
- Persistence: live upsert, rolling buffer, audit trail
"""
import logging
import time
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from corridor.agents.aggregator import SegmentAggregator
from corridor.agents.ingestion import IngestionAgent
from corridor.clients.cdot import CdotClient
from corridor.clients.llm import AnthropicTextNormalizer
from corridor.config import Settings
from corridor.exceptions import ConfigurationError
from corridor.models.schemas import (
    NormalizedIncident,
    RawSnapshot,
    SegmentData,
    WorkerRunResult,
)
from corridor.services.cache import InMemoryIncidentCache, MongoIncidentCache
from corridor.services.narrative import MongoNarrativeCache, NarrativeGenerator
from corridor.services.normalizer import HeuristicTextNormalizer, IncidentNormalizer
from corridor.services.scoring import calculate_vibe_score
from corridor.services.segment_config import SegmentConfigLoader
from corridor.services.storage import HistoryStore
from corridor.services.trend import calculate_trend

logger = logging.getLogger(__name__)

JOB_ID = "corridor_run_cycle"


class CorridorWorker:
    """
    Central control unit for a scoring run

    Collaborators are constructed once at startup (see build_worker) and
    passed in; nothing here reaches for module-level clients.
    """

    def __init__(
        self,
        config: Settings,
        segment_loader: SegmentConfigLoader,
        ingestion_agent: IngestionAgent,
        normalizer: IncidentNormalizer,
        store: Optional[HistoryStore],
        narrative_generator: Optional[NarrativeGenerator] = None,
    ):
        self.config = config
        self.segment_loader = segment_loader
        self.ingestion_agent = ingestion_agent
        self.normalizer = normalizer
        self.store = store
        self.narrative_generator = narrative_generator

        # Track execution state
        self.run_in_progress = False
        self.last_run_time: Optional[datetime] = None
        self.last_result: Optional[WorkerRunResult] = None
        self.last_fatal_error: Optional[str] = None
        self.runs_skipped = 0

    async def run_cycle(self) -> Optional[WorkerRunResult]:
        """
        Execute one tick

        Returns:
            The run result, or None when a run was already in flight and this one was skipped

        Raises:
            ConfigurationError: run-level fatal; no segment was processed
        """
        if self.run_in_progress:
            self.runs_skipped += 1
            logger.warning("Worker run already in progress, skipping cycle")
            return None

        self.run_in_progress = True
        try:
            result = await self._execute()
            self.last_result = result
            self.last_fatal_error = None
            return result
        except ConfigurationError as e:
            self.last_fatal_error = str(e)
            logger.error(f"Worker run aborted: {e}")
            raise
        finally:
            self.last_run_time = datetime.utcnow()
            self.run_in_progress = False

    async def scheduled_run(self):
        """Scheduler entry point; failures are logged, never raised into APScheduler"""
        try:
            result = await self.run_cycle()
        except Exception as e:
            logger.error(f"Scheduled worker run failed: {e}", exc_info=True)
            return
        if result is not None and not result.success:
            logger.warning(f"Scheduled worker run completed with {len(result.errors)} error(s)")

    async def _execute(self) -> WorkerRunResult:
        started_at = datetime.utcnow()
        start = time.monotonic()
        run_id = uuid.uuid4().hex
        errors: List[str] = []

        logger.info(f"Starting worker run {run_id}")

        missing = self.config.missing_required()
        if missing:
            raise ConfigurationError(f"Missing required configuration: {', '.join(missing)}")
        if self.store is None:
            raise ConfigurationError("MongoDB is not connected")

        segments, config_version = await self.segment_loader.load_segments()
        aggregator = SegmentAggregator(segments, weather_surface_scope=self.config.weather_surface_scope)

        snapshot = await self.ingestion_agent.fetch_snapshot()

        corridor_incidents = aggregator.raw_incidents_in_corridor(snapshot)
        batch = await self.normalizer.normalize_incidents(corridor_incidents)

        corridor_surface = aggregator.corridor_surface(snapshot)

        segments_processed = 0
        for segment in aggregator.segments:
            try:
                segment_data = aggregator.process_segment(segment, snapshot, batch.normalized, corridor_surface)
                await self._process_segment(run_id, segment_data)
                segments_processed += 1
            except Exception as e:
                logger.error(f"Error processing segment {segment.id}: {e}", exc_info=True)
                errors.append(f"Error processing {segment.name}: {e}")

        result = WorkerRunResult(
            success=False,
            segments_processed=segments_processed,
            incidents_total=len(corridor_incidents),
            incidents_normalized=batch.new_count,
            incidents_cached=batch.cached_count,
            incidents_fallback=batch.fallback_count,
            errors=errors,
            started_at=started_at,
        )

        result.duration_ms = int((time.monotonic() - start) * 1000)
        await self._persist_audit(run_id, result, config_version, snapshot, batch.normalized, errors)

        result.errors = errors
        result.duration_ms = int((time.monotonic() - start) * 1000)
        result.success = not errors

        logger.info(
            f"Worker run {run_id} finished in {result.duration_ms}ms: "
            f"{segments_processed}/{len(segments)} segments, "
            f"{batch.new_count} incidents normalized, {batch.cached_count} cached, "
            f"{len(errors)} error(s)"
        )
        return result

    async def _process_segment(self, run_id: str, segment_data: SegmentData) -> None:
        segment = segment_data.segment
        vibe = calculate_vibe_score(segment_data)

        # Trend comes from prior samples; this run's sample is appended afterwards
        samples = await self.store.recent_samples(segment.id, self.config.history_window_minutes)
        trend = calculate_trend(samples)

        narrative = None
        if self.narrative_generator is not None:
            narrative = (await self.narrative_generator.generate(segment_data, vibe, trend)).narrative or None

        now = datetime.utcnow()
        await self.store.append_sample(segment.id, segment_data.implied_speed_mph, vibe.score, now)
        await self.store.upsert_live(
            segment_id=segment.id,
            segment_name=segment.name,
            current_speed=segment_data.implied_speed_mph,
            speed_anomaly_detected=segment_data.speed_anomaly_detected,
            vibe_score=vibe.score,
            ai_summary=vibe.summary,
            ai_narrative=narrative,
            trend=trend,
            updated_at=now,
        )
        await self.store.record_score(run_id, segment_data, vibe, trend, now)

        logger.info(
            f"{segment.name}: vibe {vibe.score}/10, trend {trend.value} "
            f"({SegmentAggregator.build_conditions_summary(segment_data)})"
        )

    async def _persist_audit(
        self,
        run_id: str,
        result: WorkerRunResult,
        config_version: str,
        snapshot: RawSnapshot,
        incidents: List[NormalizedIncident],
        errors: List[str],
    ) -> None:
        """Audit writes append to errors instead of aborting the run"""
        try:
            await self.store.record_snapshot(run_id, snapshot)
        except Exception as e:
            logger.error(f"Failed to store feed snapshot: {e}")
            errors.append(f"Failed to store feed snapshot: {e}")

        try:
            await self.store.record_incidents(run_id, incidents)
        except Exception as e:
            logger.error(f"Failed to store incident history: {e}")
            errors.append(f"Failed to store incident history: {e}")

        try:
            deleted = await self.store.cleanup_old_samples(self.config.history_window_minutes)
            if deleted:
                logger.info(f"Pruned {deleted} status buffer samples")
        except Exception as e:
            logger.error(f"Failed to prune status buffer: {e}")
            errors.append(f"Failed to prune status buffer: {e}")

        try:
            audit = result.model_copy(update={"errors": list(errors), "success": not errors})
            await self.store.record_run(run_id, audit, config_version)
        except Exception as e:
            logger.error(f"Failed to store worker run: {e}")
            errors.append(f"Failed to store worker run: {e}")

    def setup_scheduled_cycles(self, scheduler: AsyncIOScheduler):
        """Register the run on a fixed interval; APScheduler never overlaps it"""
        interval = self.config.run_interval_seconds
        job_kwargs: Dict[str, Any] = {}
        if self.config.run_on_startup:
            job_kwargs["next_run_time"] = datetime.now()

        scheduler.add_job(
            self.scheduled_run,
            trigger=IntervalTrigger(seconds=interval),
            id=JOB_ID,
            replace_existing=True,
            max_instances=1,  # Prevent overlapping runs
            coalesce=True,
            **job_kwargs
        )
        logger.info(f"Scheduled corridor worker to run every {interval} seconds")

    def get_status(self) -> Dict[str, Any]:
        last = self.last_result
        return {
            "worker": "corridor",
            "in_progress": self.run_in_progress,
            "last_run": self.last_run_time.isoformat() if self.last_run_time else None,
            "last_success": last.success if last else None,
            "last_errors": list(last.errors) if last else [],
            "last_fatal_error": self.last_fatal_error,
            "runs_skipped": self.runs_skipped,
            "feeds": "mock" if self.config.feeds_use_mock else "live",
            "text_normalizer": self.normalizer.text_normalizer.name,
            "narratives": self.narrative_generator is not None,
            "timestamp": datetime.utcnow().isoformat()
        }


def build_worker(config: Settings, database) -> CorridorWorker:
    """
    Composition root: construct every collaborator once

    Args:
        config: Application settings
        database: Motor database handle, or None when MongoDB is unreachable
    """
    text_normalizer = AnthropicTextNormalizer.from_settings(config) or HeuristicTextNormalizer()
    logger.info(f"Incident text normalizer: {text_normalizer.name}")

    if database is not None:
        store = HistoryStore(database)
        incident_cache = MongoIncidentCache(database)
        narrative_generator = NarrativeGenerator.from_settings(config, MongoNarrativeCache(database))
    else:
        store = None
        incident_cache = InMemoryIncidentCache()
        narrative_generator = None

    return CorridorWorker(
        config=config,
        segment_loader=SegmentConfigLoader.from_settings(config),
        ingestion_agent=IngestionAgent(CdotClient(config)),
        normalizer=IncidentNormalizer(text_normalizer, incident_cache, timeout_seconds=config.llm_timeout_seconds),
        store=store,
        narrative_generator=narrative_generator,
    )
