#!/usr/bin/env python3
"""
Normalize the current corridor incidents twice against one in-memory cache
The second pass should be served entirely from the cache
"""
import asyncio
import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from corridor.agents.aggregator import SegmentAggregator
from corridor.agents.ingestion import IngestionAgent
from corridor.clients.cdot import CdotClient
from corridor.clients.llm import AnthropicTextNormalizer
from corridor.config import settings
from corridor.services.cache import InMemoryIncidentCache
from corridor.services.normalizer import HeuristicTextNormalizer, IncidentNormalizer
from corridor.services.segment_config import SegmentConfigLoader
import logging

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


async def main():
    segments, version = await SegmentConfigLoader.from_settings(settings).load_segments()
    snapshot = await IngestionAgent(CdotClient(settings)).fetch_snapshot()
    incidents = SegmentAggregator(segments).raw_incidents_in_corridor(snapshot)

    text_normalizer = AnthropicTextNormalizer.from_settings(settings)
    if text_normalizer is None:
        # The heuristic normalizer never writes to the cache; use the model when a key is set
        print("ANTHROPIC_API_KEY not set - using the local heuristic (second pass will not hit the cache)")
        text_normalizer = HeuristicTextNormalizer()

    cache = InMemoryIncidentCache()
    normalizer = IncidentNormalizer(text_normalizer, cache, timeout_seconds=settings.llm_timeout_seconds)

    print(f"Segments config v{version}: {len(incidents)} incidents in corridor\n")
    for attempt in (1, 2):
        batch = await normalizer.normalize_incidents(incidents)
        print(f"Pass {attempt}: {batch.new_count} new, {batch.cached_count} cached, {batch.fallback_count} fallback")
        for incident in batch.normalized:
            source = "cache" if incident.from_cache else ("fallback" if incident.used_fallback else text_normalizer.name)
            print(f"  [{source:>9}] -{incident.penalty:g}  {incident.summary}")
        print()

    print(f"Cache entries: {len(cache)}")


if __name__ == "__main__":
    asyncio.run(main())
