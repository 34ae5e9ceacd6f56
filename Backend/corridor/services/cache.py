"""
Content-addressed incident cache
Keys are hashes of the raw message text, so churning upstream ids still hit
"""
import hashlib
import logging
from datetime import datetime
from typing import Dict, Optional, Protocol

from corridor.exceptions import CacheError
from corridor.models.schemas import TextNormalization

logger = logging.getLogger(__name__)


def canonical_message(text: str) -> str:
    """Collapse whitespace so formatting-only differences share one entry"""
    return " ".join((text or "").split())


def message_hash(text: str) -> str:
    """64-bit BLAKE2b hex digest of the canonical message's UTF-8 bytes"""
    return hashlib.blake2b(canonical_message(text).encode("utf-8"), digest_size=8).hexdigest()


class IncidentCache(Protocol):
    async def get(self, key: str) -> Optional[TextNormalization]:
        ...

    async def set(self, key: str, summary: str, penalty: float) -> None:
        ...


class InMemoryIncidentCache:
    """Process-local cache for scripts and single-process runs"""

    def __init__(self):
        self._items: Dict[str, TextNormalization] = {}

    async def get(self, key: str) -> Optional[TextNormalization]:
        return self._items.get(key)

    async def set(self, key: str, summary: str, penalty: float) -> None:
        self._items[key] = TextNormalization(summary=summary, penalty=penalty)

    def __len__(self) -> int:
        return len(self._items)


class MongoIncidentCache:
    """incident_cache collection; writes are idempotent upserts on message_hash"""

    def __init__(self, db):
        self.db = db

    async def get(self, key: str) -> Optional[TextNormalization]:
        try:
            doc = await self.db.incident_cache.find_one({"message_hash": key})
        except Exception as e:
            raise CacheError(f"incident cache read failed: {e}") from e
        if not doc:
            return None
        try:
            return TextNormalization(summary=doc["normalized_text"], penalty=doc["severity_penalty"])
        except (KeyError, ValueError) as e:
            logger.warning(f"Discarding malformed cache entry {key}: {e}")
            return None

    async def set(self, key: str, summary: str, penalty: float) -> None:
        try:
            await self.db.incident_cache.update_one(
                {"message_hash": key},
                {
                    "$set": {"normalized_text": summary, "severity_penalty": penalty},
                    "$setOnInsert": {"created_at": datetime.utcnow()},
                },
                upsert=True
            )
        except Exception as e:
            raise CacheError(f"incident cache write failed: {e}") from e
