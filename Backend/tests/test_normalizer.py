"""
Incident text normalizer tests: cache-first lookup, timeout and fallback
"""
from unittest.mock import AsyncMock

import pytest

from corridor.exceptions import CacheError, NormalizationError
from corridor.models.schemas import IncidentSeverity, TextNormalization
from corridor.services.cache import InMemoryIncidentCache, canonical_message, message_hash
from corridor.services.normalizer import (
    HeuristicTextNormalizer,
    IncidentNormalizer,
    NormalizationOutcome,
    fallback_normalization,
)
from tests.factories import FailingTextNormalizer, SlowTextNormalizer, StaticTextNormalizer, make_incident


class TestMessageHash:
    def test_stable_hex_digest(self):
        key = message_hash("CRASH I70 WB MP 232")
        assert key == message_hash("CRASH I70 WB MP 232")
        assert len(key) == 16
        int(key, 16)

    def test_whitespace_only_differences_share_a_key(self):
        assert canonical_message("  CRASH   I70\nWB ") == "CRASH I70 WB"
        assert message_hash("CRASH   I70 WB") == message_hash("CRASH I70\tWB")

    def test_different_messages_differ(self):
        assert message_hash("CRASH I70 WB") != message_hash("CRASH I70 EB")


class TestNormalizeIncidents:
    @pytest.mark.asyncio
    async def test_repeated_message_is_served_from_cache(self):
        text_normalizer = StaticTextNormalizer(summary="Crash blocking right lane", penalty=2)
        normalizer = IncidentNormalizer(text_normalizer, InMemoryIncidentCache())
        incidents = [make_incident("a"), make_incident("b")]

        batch = await normalizer.normalize_incidents(incidents)

        assert text_normalizer.calls == 1
        assert batch.new_count == 1
        assert batch.cached_count == 1
        assert batch.fallback_count == 0
        first, second = batch.normalized
        assert (first.summary, first.penalty) == (second.summary, second.penalty)
        assert first.from_cache is False
        assert second.from_cache is True
        assert first.cache_hash == second.cache_hash

    @pytest.mark.asyncio
    async def test_second_run_hits_cache(self):
        cache = InMemoryIncidentCache()
        text_normalizer = StaticTextNormalizer()
        normalizer = IncidentNormalizer(text_normalizer, cache)

        await normalizer.normalize_incidents([make_incident("a")])
        batch = await normalizer.normalize_incidents([make_incident("a-renumbered")])

        assert batch.cached_count == 1
        assert batch.new_count == 0
        assert batch.normalized[0].id == "a-renumbered"
        assert len(cache) == 1

    @pytest.mark.asyncio
    async def test_failure_applies_fallback(self):
        normalizer = IncidentNormalizer(FailingTextNormalizer(NormalizationError("bad json")), InMemoryIncidentCache())
        incident = make_incident(message="  CRASH I70 WB   MP 232 ", incident_type="Crash", severity="major")

        normalized, outcome = await normalizer.normalize_incident(incident)

        assert outcome == NormalizationOutcome.FALLBACK_APPLIED
        assert normalized.used_fallback is True
        assert normalized.summary == "CRASH I70 WB MP 232"
        assert normalized.penalty == 5.0
        assert normalized.severity == IncidentSeverity.MAJOR
        assert len(normalizer.cache) == 0

    @pytest.mark.asyncio
    async def test_fallback_is_counted(self):
        normalizer = IncidentNormalizer(FailingTextNormalizer(RuntimeError("boom")), InMemoryIncidentCache())
        batch = await normalizer.normalize_incidents([make_incident("a"), make_incident("b", message="OTHER")])
        assert batch.new_count == 2
        assert batch.fallback_count == 2

    @pytest.mark.asyncio
    async def test_timeout_applies_fallback(self):
        normalizer = IncidentNormalizer(SlowTextNormalizer(), InMemoryIncidentCache(), timeout_seconds=0.01)
        normalized, outcome = await normalizer.normalize_incident(make_incident(incident_type="Traction Law", severity="moderate"))
        assert outcome == NormalizationOutcome.FALLBACK_APPLIED
        assert normalized.penalty == 1.0

    @pytest.mark.asyncio
    async def test_cache_write_failure_is_not_fatal(self):
        cache = AsyncMock()
        cache.get.return_value = None
        cache.set.side_effect = CacheError("write refused")
        normalizer = IncidentNormalizer(StaticTextNormalizer(penalty=3), cache)

        normalized, outcome = await normalizer.normalize_incident(make_incident())

        assert outcome == NormalizationOutcome.SUCCEEDED
        assert normalized.penalty == 3.0
        cache.set.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_cache_read_failure_is_a_miss(self):
        cache = AsyncMock()
        cache.get.side_effect = CacheError("read refused")
        text_normalizer = StaticTextNormalizer()
        normalizer = IncidentNormalizer(text_normalizer, cache)

        _, outcome = await normalizer.normalize_incident(make_incident())

        assert outcome == NormalizationOutcome.SUCCEEDED
        assert text_normalizer.calls == 1

    @pytest.mark.asyncio
    async def test_heuristic_results_are_not_cached(self):
        cache = InMemoryIncidentCache()
        normalizer = IncidentNormalizer(HeuristicTextNormalizer(), cache)

        normalized, outcome = await normalizer.normalize_incident(make_incident(incident_type="Lane Closure"))

        assert outcome == NormalizationOutcome.SUCCEEDED
        assert normalized.used_fallback is False
        assert normalized.penalty == 2.0
        assert len(cache) == 0


class TestFallback:
    def test_empty_message_uses_type(self):
        result = fallback_normalization("", "Rockfall", IncidentSeverity.MODERATE)
        assert result == TextNormalization(summary="Rockfall", penalty=1.0)

    def test_nothing_to_go_on(self):
        result = fallback_normalization("", "", IncidentSeverity.MINOR)
        assert result.summary == "Incident reported"
        assert result.penalty == 0.0

    def test_long_message_is_truncated(self):
        result = fallback_normalization("X" * 300, "Crash", IncidentSeverity.MINOR)
        assert len(result.summary) == 100
        assert result.summary.endswith("...")
