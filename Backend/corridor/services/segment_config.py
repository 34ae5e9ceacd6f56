"""
Segment configuration loader
Reads the versioned segments document from disk or a remote storage URL
"""
import json
import logging
from pathlib import Path
from typing import List, Optional, Tuple

import httpx
from pydantic import ValidationError

from corridor.config import Settings
from corridor.exceptions import ConfigurationError
from corridor.models.schemas import SegmentConfig, SegmentConfigFile

logger = logging.getLogger(__name__)


class SegmentConfigLoader:
    """Loads segments once per run; a bad document is a run-level configuration error"""

    def __init__(
        self,
        path: Optional[str] = None,
        url: Optional[str] = None,
        token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.path = path
        self.url = url
        self.token = token
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "SegmentConfigLoader":
        return cls(
            path=settings.segments_config_path,
            url=settings.segments_config_url,
            token=settings.segments_config_token,
        )

    async def load_segments(self) -> Tuple[List[SegmentConfig], str]:
        """
        Returns:
            (segments, version)

        Raises:
            ConfigurationError: when the document cannot be read or fails validation
        """
        raw = await self._read_remote() if self.url else self._read_local()

        try:
            config = SegmentConfigFile.model_validate(raw)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid segment config file format: {e}") from e

        logger.info(f"Loaded {len(config.segments)} segments from config v{config.version}")
        return config.segments, config.version

    def _read_local(self) -> dict:
        if not self.path:
            raise ConfigurationError("No segment config path or URL configured")
        config_path = Path(self.path)
        try:
            with config_path.open("r", encoding="utf-8") as f:
                return json.load(f)
        except FileNotFoundError as e:
            raise ConfigurationError(f"Segment config file not found: {config_path}") from e
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Segment config is not valid JSON: {e}") from e

    async def _read_remote(self) -> dict:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
            headers["apikey"] = self.token

        try:
            async with httpx.AsyncClient(timeout=30.0, transport=self._transport) as client:
                response = await client.get(self.url, headers=headers)
        except httpx.HTTPError as e:
            raise ConfigurationError(f"Failed to fetch segment config: {e}") from e

        if response.status_code == 404:
            raise ConfigurationError(f"Segment config not found at {self.url}")
        if response.is_error:
            raise ConfigurationError(f"Failed to load segment config: HTTP {response.status_code}")

        try:
            return response.json()
        except ValueError as e:
            raise ConfigurationError(f"Segment config is not valid JSON: {e}") from e
