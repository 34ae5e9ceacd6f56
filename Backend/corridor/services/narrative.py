"""
Narrative Generator

Optional conversational traffic update per segment, produced by the
Anthropic Messages API and cached on a hash of the inputs that would
materially change the wording. A failure yields an empty narrative; the
deterministic summary is always present alongside it.
"""
import hashlib
import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional

import anthropic

from corridor.config import Settings
from corridor.exceptions import CacheError
from corridor.models.schemas import MAX_NARRATIVE_LENGTH, SegmentData, Trend, VibeResult

logger = logging.getLogger(__name__)

NARRATIVE_SYSTEM_PROMPT = f"""You are a friendly traffic reporter for Colorado's I-70 ski corridor. Write a brief, natural traffic update (2-3 sentences, under {MAX_NARRATIVE_LENGTH} characters).

Guidelines:
- Conversational and helpful, not robotic
- Focus on actionable information: incidents, weather, delays
- Do not repeat the score number
- Present tense
- Keep it short when conditions are good"""


@dataclass
class NarrativeResult:
    narrative: str
    input_hash: str
    from_cache: bool = False


def _bucket_score(score: float) -> float:
    """Nearest 0.5 so small score wobble reuses the cached narrative"""
    return round(score * 2) / 2


def narrative_input_hash(segment_data: SegmentData, vibe: VibeResult, trend: Trend) -> str:
    payload = json.dumps({
        "segment": segment_data.segment.name,
        "score": _bucket_score(vibe.score),
        "incidents": sorted(incident.summary for incident in segment_data.incidents),
        "road_condition": segment_data.road_condition,
        "weather_surface": segment_data.weather_surface,
        "trend": trend.value,
        "anomaly": segment_data.speed_anomaly_detected,
    }, sort_keys=True)
    return hashlib.blake2b(payload.encode("utf-8"), digest_size=8).hexdigest()


def build_narrative_prompt(segment_data: SegmentData, vibe: VibeResult, trend: Trend) -> str:
    if vibe.score >= 7:
        label = "Good"
    elif vibe.score >= 4:
        label = "Moderate"
    else:
        label = "Poor"

    lines = [
        f"Segment: {segment_data.segment.name}",
        f"Current conditions: {label} ({vibe.score:.1f}/10)",
        f"Trend: {trend.value.lower()}",
    ]
    if segment_data.implied_speed_mph and not segment_data.speed_anomaly_detected:
        lines.append(f"Traffic speed: ~{segment_data.implied_speed_mph:.0f} mph")
    if segment_data.road_condition:
        lines.append(f"Road condition: {segment_data.road_condition}")
    if segment_data.weather_surface:
        lines.append(f"Surface: {segment_data.weather_surface}")
    if segment_data.incidents:
        lines.append("Active incidents:")
        lines.extend(f"  - {i.summary} ({i.severity.value})" for i in segment_data.incidents)
    else:
        lines.append("No active incidents")
    return "\n".join(lines)


def _truncate_narrative(text: str) -> str:
    text = " ".join(text.split())
    if len(text) <= MAX_NARRATIVE_LENGTH:
        return text
    return text[:MAX_NARRATIVE_LENGTH - 3].rstrip() + "..."


class InMemoryNarrativeCache:
    def __init__(self):
        self._items: Dict[str, str] = {}

    async def get(self, key: str) -> Optional[str]:
        return self._items.get(key)

    async def set(self, key: str, narrative: str) -> None:
        self._items[key] = narrative


class MongoNarrativeCache:
    """narrative_cache collection keyed on input_hash"""

    def __init__(self, db):
        self.db = db

    async def get(self, key: str) -> Optional[str]:
        try:
            doc = await self.db.narrative_cache.find_one({"input_hash": key})
        except Exception as e:
            raise CacheError(f"narrative cache read failed: {e}") from e
        return doc.get("narrative") if doc else None

    async def set(self, key: str, narrative: str) -> None:
        try:
            await self.db.narrative_cache.update_one(
                {"input_hash": key},
                {
                    "$set": {"narrative": narrative},
                    "$setOnInsert": {"created_at": datetime.utcnow()},
                },
                upsert=True
            )
        except Exception as e:
            raise CacheError(f"narrative cache write failed: {e}") from e


class NarrativeGenerator:
    def __init__(self, client: anthropic.AsyncAnthropic, model: str, cache, max_tokens: int = 150):
        self.client = client
        self.model = model
        self.cache = cache
        self.max_tokens = max_tokens

    @classmethod
    def from_settings(cls, settings: Settings, cache) -> Optional["NarrativeGenerator"]:
        """None unless narratives are enabled and an API key is configured"""
        if not (settings.narrative_enabled and settings.llm_enabled):
            return None
        client = anthropic.AsyncAnthropic(
            api_key=settings.anthropic_api_key,
            max_retries=settings.llm_max_retries,
            timeout=settings.llm_timeout_seconds,
        )
        return cls(client, settings.anthropic_model, cache)

    async def generate(self, segment_data: SegmentData, vibe: VibeResult, trend: Trend) -> NarrativeResult:
        key = narrative_input_hash(segment_data, vibe, trend)

        try:
            cached = await self.cache.get(key)
        except Exception as e:
            logger.warning(f"Narrative cache lookup failed for {key}: {e}")
            cached = None
        if cached:
            return NarrativeResult(narrative=cached, input_hash=key, from_cache=True)

        try:
            message = await self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                system=NARRATIVE_SYSTEM_PROMPT,
                messages=[{"role": "user", "content": build_narrative_prompt(segment_data, vibe, trend)}],
            )
        except Exception as e:
            logger.warning(f"Narrative generation failed for {segment_data.segment.id}: {e}")
            return NarrativeResult(narrative="", input_hash=key)

        text = next((block.text for block in message.content if getattr(block, "type", None) == "text"), "")
        narrative = _truncate_narrative(text)
        if not narrative:
            logger.warning(f"Empty narrative response for {segment_data.segment.id}")
            return NarrativeResult(narrative="", input_hash=key)

        try:
            await self.cache.set(key, narrative)
        except Exception as e:
            logger.warning(f"Narrative cache write failed for {key}: {e}")

        return NarrativeResult(narrative=narrative, input_hash=key)
