#!/usr/bin/env python3
"""
Run one corridor worker cycle and exit
Exit code 0 on success, 1 when the run reported errors, 2 on a fatal configuration error
"""
import asyncio
import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from corridor.database import connect_to_mongo, close_mongo_connection, get_database
from corridor.config import settings
from corridor.exceptions import ConfigurationError
from corridor.orchestrator import build_worker
import logging

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


async def run_once() -> int:
    await connect_to_mongo()
    try:
        worker = build_worker(settings, get_database())
        try:
            result = await worker.run_cycle()
        except ConfigurationError as e:
            logger.error(f"Fatal: {e}")
            return 2

        print("=" * 60)
        print(f"Success:             {result.success}")
        print(f"Segments processed:  {result.segments_processed}")
        print(f"Incidents total:     {result.incidents_total}")
        print(f"  normalized (new):  {result.incidents_normalized}")
        print(f"  from cache:        {result.incidents_cached}")
        print(f"  fallback:          {result.incidents_fallback}")
        print(f"Duration:            {result.duration_ms}ms")
        for error in result.errors:
            print(f"  ERROR: {error}")
        print("=" * 60)

        return 0 if result.success else 1
    finally:
        await close_mongo_connection()


if __name__ == "__main__":
    sys.exit(asyncio.run(run_once()))
