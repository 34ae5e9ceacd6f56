"""
Ingestion Agent
Pulls the four CDOT feeds concurrently into one RawSnapshot
"""
import asyncio
import logging
from datetime import datetime
from typing import Optional

from corridor.clients.cdot import CdotClient
from corridor.models.schemas import RawSnapshot

logger = logging.getLogger(__name__)


class IngestionAgent:
    """Agent responsible for fetching raw feed records for one run"""

    def __init__(self, client: Optional[CdotClient] = None):
        self.client = client or CdotClient()

    async def fetch_snapshot(self) -> RawSnapshot:
        """
        Fetch all feeds in parallel

        Each feed fetch degrades to an empty list on its own, so one
        failing endpoint never blanks the others.
        """
        fetched_at = datetime.utcnow()
        destinations, incidents, road_conditions, weather_stations = await asyncio.gather(
            self.client.get_destinations(),
            self.client.get_incidents(),
            self.client.get_road_conditions(),
            self.client.get_weather_stations(),
        )

        logger.info(
            f"Fetched snapshot: {len(destinations)} destinations, {len(incidents)} incidents, "
            f"{len(road_conditions)} conditions, {len(weather_stations)} weather stations"
        )

        return RawSnapshot(
            destinations=destinations,
            incidents=incidents,
            conditions=road_conditions,
            weather_stations=weather_stations,
            fetched_at=fetched_at,
        )
