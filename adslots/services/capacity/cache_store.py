# adslots/services/capacity/cache_store.py
"""
Shared availability cache.

Key format: cache:availability:cities
Value: JSON list of city aggregates, written with SETEX (TTL from config).

The cache lives in Redis, not in process memory, so an invalidation issued
by one service instance is seen by all of them.
"""

import json
import logging
from typing import Optional, Protocol

from .config import CapacityConfig, get_capacity_config

logger = logging.getLogger(__name__)


class CacheBackend(Protocol):
    """The subset of the Redis API the cache needs."""

    def get(self, name: str): ...

    def setex(self, name: str, time: int, value: str): ...

    def delete(self, *names: str) -> int: ...


class AvailabilityCache:
    """Time-boxed, explicitly invalidated cache of city availability."""

    KEY = "cache:availability:cities"

    def __init__(self, backend: CacheBackend, config: CapacityConfig | None = None):
        self.backend = backend
        self.config = config or get_capacity_config()

    def get(self) -> Optional[list[dict]]:
        """Cached city aggregates, or None on miss."""
        raw = self.backend.get(self.KEY)
        if raw is None:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode()
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("Availability cache holds unreadable data, ignoring")
            return None

    def store(self, cities: list[dict]) -> None:
        self.backend.setex(self.KEY, self.config.cache_ttl_seconds, json.dumps(cities))

    def invalidate(self) -> int:
        """Drop the cached aggregates. Returns number of deleted keys."""
        deleted = self.backend.delete(self.KEY)
        logger.info("Availability cache invalidated")
        return deleted
