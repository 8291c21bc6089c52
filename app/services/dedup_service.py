"""Recently-seen provider message ids, so at-least-once delivery acts once."""

import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Callable, Optional

from app.logging_config import get_logger

logger = get_logger("dedup")


class DedupCache(ABC):
    @abstractmethod
    async def check_and_mark(self, event_id: str) -> bool:
        """Return True if the id was already seen; otherwise remember it and return False."""


class InMemoryDedupCache(DedupCache):
    """TTL- and size-bounded set of event ids for a single process."""

    def __init__(
        self,
        ttl_seconds: float = 86400,
        max_entries: int = 10000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max(1, max_entries)
        self._clock = clock
        self._entries: "OrderedDict[str, float]" = OrderedDict()

    def _purge(self, now: float) -> None:
        while self._entries:
            oldest_id, expires_at = next(iter(self._entries.items()))
            if expires_at > now:
                break
            self._entries.pop(oldest_id, None)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    async def check_and_mark(self, event_id: str) -> bool:
        now = self._clock()
        self._purge(now)
        if event_id in self._entries:
            return True
        self._entries[event_id] = now + self.ttl_seconds
        self._purge(now)
        return False

    def __len__(self) -> int:
        return len(self._entries)


class RedisDedupCache(DedupCache):
    """Shared dedup via SET NX EX; falls back to a local cache when Redis is down."""

    def __init__(
        self,
        redis_client,
        *,
        ttl_seconds: int = 86400,
        prefix: str = "walletbot",
        fallback: Optional[InMemoryDedupCache] = None,
    ):
        self.redis = redis_client
        self.ttl_seconds = ttl_seconds
        self.prefix = prefix
        self.fallback = fallback or InMemoryDedupCache(ttl_seconds=ttl_seconds)

    async def check_and_mark(self, event_id: str) -> bool:
        key = f"{self.prefix}:dedup:{event_id}"
        try:
            was_set = await self.redis.set(key, "1", ex=self.ttl_seconds, nx=True)
        except Exception as e:
            logger.warning(f"Dedup redis unavailable, falling back to local cache: {e}")
            return await self.fallback.check_and_mark(event_id)
        if not was_set:
            logger.info("Duplicate event id (redis)", extra={"context": {"event_id": event_id}})
            return True
        return False
