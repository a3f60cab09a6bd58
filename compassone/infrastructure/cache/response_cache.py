"""In-memory TTL cache for idempotent API responses.

Entries expire after a fixed TTL; the least recently stored entry is evicted
once the cache is full. Keys are derived from the operation name and its
parameters so identical reads share an entry.
"""

import asyncio
import hashlib
import json
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from compassone.domain.interfaces.cache import CacheService
from compassone.domain.models.common import CacheKey

logger = logging.getLogger(__name__)

DEFAULT_MAX_ITEMS = 500
DEFAULT_TTL_SECONDS = 3600.0


@dataclass
class CacheEntry:
    """Internal representation of a cache entry with expiry."""
    value: Any
    expiry_time: float  # Monotonic time at which the entry expires


def make_cache_key(operation: str, parameters: Dict[str, Any], token: Optional[str] = None) -> CacheKey:
    """Stable key for an operation call."""
    payload = json.dumps({"op": operation, "params": parameters, "token": token}, sort_keys=True, default=str)
    return CacheKey(f"{operation}:{hashlib.sha256(payload.encode()).hexdigest()[:32]}")


class ResponseCache(CacheService):
    """Bounded in-memory cache with per-entry TTL."""

    def __init__(
        self,
        ttl: float = DEFAULT_TTL_SECONDS,
        max_items: int = DEFAULT_MAX_ITEMS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl = ttl
        self.max_items = max_items
        self._clock = clock
        self._entries: "OrderedDict[CacheKey, CacheEntry]" = OrderedDict()
        self._lock = asyncio.Lock()
        self.hits = 0
        self.misses = 0
        logger.debug(f"ResponseCache initialized (ttl={ttl}s, max={max_items}).")

    def _is_expired(self, entry: Optional[CacheEntry]) -> bool:
        return entry is None or self._clock() >= entry.expiry_time

    async def get(self, key: CacheKey) -> Optional[Any]:
        async with self._lock:
            entry = self._entries.get(key)
            if self._is_expired(entry):
                if entry is not None:
                    del self._entries[key]
                self.misses += 1
                return None
            self.hits += 1
            return entry.value

    async def set(self, key: CacheKey, value: Any, ttl: Optional[float] = None) -> None:
        effective_ttl = self.ttl if ttl is None else ttl
        if effective_ttl <= 0:
            return
        async with self._lock:
            self._entries[key] = CacheEntry(value=value, expiry_time=self._clock() + effective_ttl)
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_items:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug(f"Cache evicted: {evicted}")

    async def delete(self, key: CacheKey) -> None:
        async with self._lock:
            self._entries.pop(key, None)

    async def clear(self) -> None:
        async with self._lock:
            count = len(self._entries)
            self._entries.clear()
        if count:
            logger.debug(f"Cache cleared ({count} entries).")

    def __len__(self) -> int:
        return len(self._entries)
