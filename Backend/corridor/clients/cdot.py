"""
CDOT (COtrip) Traffic Data API Client
Supports both real API calls and mock data based on USE_MOCKS config

Endpoints:
- /destinations     travel times per named corridor
- /incidents        crashes, closures, chain laws
- /roadConditions   surface state per mile-marker span
- /weatherStations  roadside sensor readings
"""
import httpx
import logging
from typing import Any, Callable, Dict, List, Optional, Type, TypeVar
from datetime import datetime
from pydantic import BaseModel, ValidationError

from corridor.config import Settings, settings as default_settings
from corridor.exceptions import FeedError
from corridor.models.schemas import (
    CdotCondition,
    CdotDestination,
    CdotIncident,
    CdotWeatherStation,
)

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", bound=BaseModel)

RELEVANT_WEATHER_SENSORS = ("road surface", "surface temp", "air temp", "visibility", "precipitation")


class CdotClient:
    """Client for the CDOT traffic data API; every fetch degrades to []"""

    def __init__(self, config: Optional[Settings] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        config = config or default_settings
        self.api_key = config.cdot_api_key
        self.base_url = config.cdot_base_url.rstrip("/")
        self.timeout = config.cdot_timeout_seconds
        self.use_mock = config.feeds_use_mock
        self._transport = transport

    async def get_destinations(self) -> List[CdotDestination]:
        return await self._fetch("/destinations", CdotDestination, self._mock_destinations)

    async def get_incidents(self) -> List[CdotIncident]:
        return await self._fetch("/incidents", CdotIncident, self._mock_incidents)

    async def get_road_conditions(self) -> List[CdotCondition]:
        return await self._fetch("/roadConditions", CdotCondition, self._mock_conditions)

    async def get_weather_stations(self) -> List[CdotWeatherStation]:
        stations = await self._fetch("/weatherStations", CdotWeatherStation, self._mock_weather_stations)
        return [self._filter_sensors(station) for station in stations]

    async def _fetch(
        self,
        endpoint: str,
        model: Type[RecordT],
        mock: Callable[[], List[Dict[str, Any]]],
    ) -> List[RecordT]:
        if self.use_mock:
            logger.info(f"Using MOCK data for CDOT {endpoint}")
            return self._parse_features(mock(), model, endpoint)

        try:
            raw_data = await self._fetch_raw(endpoint)
            return self._parse_features(raw_data, model, endpoint)
        except Exception as e:
            logger.error(f"Error fetching CDOT {endpoint}: {e}", exc_info=True)
            return []

    async def _fetch_raw(self, endpoint: str) -> Any:
        """
        Low-level HTTP call to the CDOT API

        Raises:
            FeedError: on timeout, non-2xx status, or a non-JSON body
        """
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(
                    f"{self.base_url}{endpoint}",
                    params={"apiKey": self.api_key},
                    headers={"Accept": "application/json"}
                )
                response.raise_for_status()
                return response.json()
        except httpx.TimeoutException as e:
            raise FeedError(f"CDOT API timeout for {endpoint}") from e
        except httpx.HTTPStatusError as e:
            raise FeedError(f"CDOT API error: {e.response.status_code} for {endpoint}") from e
        except ValueError as e:
            raise FeedError(f"CDOT API returned malformed JSON for {endpoint}") from e

    @staticmethod
    def _extract_features(data: Any) -> List[Any]:
        """Feature list from a GeoJSON FeatureCollection or a bare/wrapped array"""
        if isinstance(data, list):
            return data
        if isinstance(data, dict):
            for key in ("features", "data", "results"):
                if isinstance(data.get(key), list):
                    return data[key]
        logger.warning("Unexpected CDOT API response format")
        return []

    def _parse_features(self, data: Any, model: Type[RecordT], endpoint: str) -> List[RecordT]:
        records = []
        skipped = 0
        for feature in self._extract_features(data):
            properties = feature.get("properties", feature) if isinstance(feature, dict) else None
            if not isinstance(properties, dict):
                skipped += 1
                continue
            try:
                records.append(model.model_validate(properties))
            except ValidationError as e:
                logger.debug(f"Skipping invalid CDOT {endpoint} record: {e}")
                skipped += 1

        if skipped:
            logger.warning(f"Skipped {skipped} invalid records from CDOT {endpoint}")
        logger.info(f"Parsed {len(records)} records from CDOT {endpoint}")
        return records

    @staticmethod
    def _filter_sensors(station: CdotWeatherStation) -> CdotWeatherStation:
        sensors = [
            sensor for sensor in station.sensors
            if any(relevant in sensor.type.lower() for relevant in RELEVANT_WEATHER_SENSORS)
        ]
        return station.model_copy(update={"sensors": sensors})

    # Mock data - realistic I-70 mountain corridor shapes, deterministic
    def _mock_destinations(self) -> List[Dict[str, Any]]:
        return [
            {"type": "Feature", "properties": {"id": 101, "name": "Floyd Hill to Idaho Springs", "travelTime": 35}},
            {"type": "Feature", "properties": {"id": 102, "name": "Idaho Springs to Georgetown", "travelTime": 600}},
            {"type": "Feature", "properties": {"id": 103, "name": "Georgetown to Eisenhower Tunnel", "travelTime": 1080}},
            {"type": "Feature", "properties": {"id": 104, "name": "Eisenhower Tunnel to Silverthorne", "travelTime": 540}},
        ]

    def _mock_incidents(self) -> List[Dict[str, Any]]:
        now = datetime.utcnow().isoformat()
        return [
            {
                "type": "Feature",
                "properties": {
                    "id": "mock-1",
                    "type": "Crash",
                    "severity": "major",
                    "travelerInformationMessage": "ACCIDENT-I70 WB @ MP 225.5 NEAR SILVER PLUME - LEFT LANE BLOCKED - EXPECT DELAYS",
                    "startMarker": 225.5,
                    "endMarker": 225.0,
                    "routeName": "I-70",
                    "direction": "W",
                    "lastUpdated": now,
                },
            },
            {
                "type": "Feature",
                "properties": {
                    "id": "mock-2",
                    "type": "Traction Law",
                    "severity": "moderate",
                    "travelerInformationMessage": "TRACTION LAW IN EFFECT (CODE 15) - I70 WB FROM IDAHO SPRINGS TO EISENHOWER TUNNEL",
                    "startMarker": 240,
                    "endMarker": 213,
                    "routeName": "I-70",
                    "direction": "westbound",
                    "lastUpdated": now,
                },
            },
        ]

    def _mock_conditions(self) -> List[Dict[str, Any]]:
        return [
            {
                "type": "Feature",
                "properties": {
                    "routeName": "I-70",
                    "primaryMP": 213,
                    "secondaryMP": 221,
                    "currentConditions": [{"conditionDescription": "Snow Packed"}],
                },
            },
            {
                "type": "Feature",
                "properties": {
                    "routeName": "I-70",
                    "primaryMP": 221,
                    "secondaryMP": 245,
                    "currentConditions": [{"conditionDescription": "Wet"}],
                },
            },
        ]

    def _mock_weather_stations(self) -> List[Dict[str, Any]]:
        return [
            {
                "type": "Feature",
                "properties": {
                    "id": "ws-213",
                    "name": "Eisenhower Tunnel West",
                    "routeName": "I-70",
                    "marker": 213.4,
                    "sensors": [
                        {"type": "Road Surface Status", "currentReading": "Snow"},
                        {"type": "Air Temperature", "currentReading": "24 F"},
                        {"type": "Wind Direction", "currentReading": "NW"},
                    ],
                },
            },
        ]
