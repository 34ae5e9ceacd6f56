"""
Incident Text Normalizer

Per incident: cache hit -> CACHED; cache miss -> text normalizer ->
SUCCEEDED, or any failure/timeout -> FALLBACK_APPLIED (local heuristic).
The run never sees a normalization failure.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Protocol, Sequence

from corridor.models.schemas import (
    CdotIncident,
    IncidentSeverity,
    NormalizedIncident,
    TextNormalization,
)
from corridor.services.cache import IncidentCache, message_hash
from corridor.services.scoring import suggest_incident_penalty, truncate_summary

logger = logging.getLogger(__name__)


class NormalizationOutcome(str, Enum):
    CACHED = "cached"
    SUCCEEDED = "succeeded"
    FALLBACK_APPLIED = "fallback_applied"


class TextNormalizer(Protocol):
    """Capability injected at startup: network-backed or local heuristic"""

    cacheable: bool
    name: str

    async def normalize(self, raw_text: str, incident_type: str, severity: IncidentSeverity) -> TextNormalization:
        ...


def fallback_normalization(raw_text: str, incident_type: str, severity: IncidentSeverity) -> TextNormalization:
    """Deterministic summary + penalty from type and severity alone"""
    summary = truncate_summary(raw_text) or truncate_summary(incident_type or "") or "Incident reported"
    return TextNormalization(
        summary=summary,
        penalty=suggest_incident_penalty(incident_type, severity),
    )


class HeuristicTextNormalizer:
    """Local normalizer used when no text model is configured"""

    cacheable = False  # Would shadow model output once a key is configured
    name = "heuristic"

    async def normalize(self, raw_text: str, incident_type: str, severity: IncidentSeverity) -> TextNormalization:
        return fallback_normalization(raw_text, incident_type, severity)


@dataclass
class NormalizationBatch:
    normalized: List[NormalizedIncident] = field(default_factory=list)
    new_count: int = 0
    cached_count: int = 0
    fallback_count: int = 0


class IncidentNormalizer:
    """Cache-first normalization with a per-incident timeout and local fallback"""

    def __init__(self, text_normalizer: TextNormalizer, cache: IncidentCache, timeout_seconds: float = 10.0):
        self.text_normalizer = text_normalizer
        self.cache = cache
        self.timeout_seconds = timeout_seconds

    async def normalize_incidents(self, incidents: Sequence[CdotIncident]) -> NormalizationBatch:
        """
        Normalize a run's incidents one at a time

        Sequential so a message repeated within the run hits the cache
        entry written by its first occurrence. Only results from a
        cacheable text normalizer are stored: with the heuristic
        normalizer or a fallback, a repeated message counts as new,
        not cached.
        """
        batch = NormalizationBatch()
        for incident in incidents:
            normalized, outcome = await self.normalize_incident(incident)
            batch.normalized.append(normalized)
            if outcome == NormalizationOutcome.CACHED:
                batch.cached_count += 1
            else:
                batch.new_count += 1
                if outcome == NormalizationOutcome.FALLBACK_APPLIED:
                    batch.fallback_count += 1

        logger.info(
            f"Normalized {len(batch.normalized)} incidents: {batch.new_count} new "
            f"({batch.fallback_count} fallback), {batch.cached_count} cached"
        )
        return batch

    async def normalize_incident(self, incident: CdotIncident):
        """
        Returns:
            (NormalizedIncident, NormalizationOutcome)
        """
        severity = IncidentSeverity.from_raw(incident.severity)
        key = message_hash(incident.message)

        cached = await self._cache_get(key)
        if cached is not None:
            return self._build(incident, severity, cached, key, from_cache=True), NormalizationOutcome.CACHED

        result = await self._call_normalizer(incident, severity)
        if result is None:
            fallback = fallback_normalization(incident.message, incident.type, severity)
            return (
                self._build(incident, severity, fallback, key, used_fallback=True),
                NormalizationOutcome.FALLBACK_APPLIED,
            )

        if self.text_normalizer.cacheable:
            await self._cache_set(key, result)
        return self._build(incident, severity, result, key), NormalizationOutcome.SUCCEEDED

    async def _call_normalizer(self, incident: CdotIncident, severity: IncidentSeverity) -> Optional[TextNormalization]:
        try:
            result = await asyncio.wait_for(
                self.text_normalizer.normalize(incident.message, incident.type, severity),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Normalization timed out for incident {incident.id} after {self.timeout_seconds}s")
            return None
        except Exception as e:
            logger.warning(f"Normalization failed for incident {incident.id}: {e}")
            return None
        if not isinstance(result, TextNormalization):
            logger.warning(f"Normalizer returned {type(result).__name__} for incident {incident.id}")
            return None
        return result

    async def _cache_get(self, key: str) -> Optional[TextNormalization]:
        try:
            return await self.cache.get(key)
        except Exception as e:
            logger.warning(f"Incident cache lookup failed for {key}: {e}")
            return None

    async def _cache_set(self, key: str, result: TextNormalization) -> None:
        try:
            await self.cache.set(key, result.summary, result.penalty)
        except Exception as e:
            logger.warning(f"Incident cache write failed for {key}: {e}")

    @staticmethod
    def _build(
        incident: CdotIncident,
        severity: IncidentSeverity,
        result: TextNormalization,
        key: str,
        from_cache: bool = False,
        used_fallback: bool = False,
    ) -> NormalizedIncident:
        return NormalizedIncident(
            id=incident.id,
            incident_type=incident.type,
            original_message=incident.message,
            summary=result.summary,
            penalty=result.penalty,
            severity=severity,
            from_cache=from_cache,
            used_fallback=used_fallback,
            cache_hash=key,
            start_marker=incident.start_marker,
            end_marker=incident.end_marker,
        )
