"""Per-phone dialogue state with compare-and-swap writes.

All writes go through `compare_and_swap`; callers that read-modify-write must
hold `lock(phone)` for the whole cycle so two deliveries for one phone are
processed one at a time.
"""

import asyncio
import json
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager, suppress
from typing import AsyncIterator, Optional

from redis.exceptions import RedisError, WatchError

from app.logging_config import get_logger, mask_phone
from app.models import Session

logger = get_logger("conversation_store")


class ConversationStore(ABC):
    @abstractmethod
    async def get_or_create(self, phone: str) -> Session:
        """Return the session for a phone, creating it at Main if unseen."""

    @abstractmethod
    async def compare_and_swap(self, phone: str, expected: Session, new: Session) -> bool:
        """Write `new` only if the stored session still equals `expected`."""

    @abstractmethod
    def lock(self, phone: str):
        """Async context manager guarding one phone's read-modify-write cycle."""


class InMemoryConversationStore(ConversationStore):
    """Single-instance store. Sessions live for the life of the process."""

    def __init__(self):
        self._sessions: dict[str, Session] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._guard = asyncio.Lock()

    async def get_or_create(self, phone: str) -> Session:
        async with self._guard:
            session = self._sessions.get(phone)
            if session is None:
                session = Session(phone=phone)
                self._sessions[phone] = session
                logger.info("Session created", extra={"context": {"phone": mask_phone(phone)}})
            return session

    async def compare_and_swap(self, phone: str, expected: Session, new: Session) -> bool:
        async with self._guard:
            current = self._sessions.get(phone)
            if current != expected:
                logger.warning(
                    "Session CAS conflict",
                    extra={
                        "context": {
                            "phone": mask_phone(phone),
                            "expected_version": expected.version,
                            "current_version": current.version if current else None,
                        }
                    },
                )
                return False
            self._sessions[phone] = new
            return True

    @asynccontextmanager
    async def lock(self, phone: str) -> AsyncIterator[None]:
        async with self._guard:
            phone_lock = self._locks.setdefault(phone, asyncio.Lock())
        async with phone_lock:
            yield

    def peek(self, phone: str) -> Optional[Session]:
        return self._sessions.get(phone)


class RedisConversationStore(ConversationStore):
    """Multi-instance store backed by Redis (redis.asyncio client).

    CAS uses WATCH/MULTI on the session key; the per-phone lock is a Redis
    lock so it also serializes deliveries handled by different workers.
    """

    def __init__(self, redis_client, *, prefix: str = "walletbot", lock_timeout_seconds: float = 30.0):
        self.redis = redis_client
        self.prefix = prefix
        self.lock_timeout_seconds = lock_timeout_seconds

    def _key(self, phone: str) -> str:
        return f"{self.prefix}:session:{phone}"

    async def get_or_create(self, phone: str) -> Session:
        key = self._key(phone)
        raw = await self.redis.get(key)
        if raw:
            return Session.from_dict(json.loads(raw))

        session = Session(phone=phone)
        created = await self.redis.set(key, json.dumps(session.to_dict()), nx=True)
        if created:
            logger.info("Session created", extra={"context": {"phone": mask_phone(phone)}})
            return session

        raw = await self.redis.get(key)
        return Session.from_dict(json.loads(raw)) if raw else session

    async def compare_and_swap(self, phone: str, expected: Session, new: Session) -> bool:
        key = self._key(phone)
        async with self.redis.pipeline(transaction=True) as pipe:
            try:
                await pipe.watch(key)
                raw = await pipe.get(key)
                current = Session.from_dict(json.loads(raw)) if raw else None
                if current != expected:
                    await pipe.unwatch()
                    return False
                pipe.multi()
                pipe.set(key, json.dumps(new.to_dict()))
                await pipe.execute()
                return True
            except WatchError:
                logger.warning("Session CAS conflict", extra={"context": {"phone": mask_phone(phone)}})
                return False

    @asynccontextmanager
    async def lock(self, phone: str) -> AsyncIterator[None]:
        """Hold the phone's Redis lock, renewing its TTL until the turn ends."""
        phone_lock = self.redis.lock(f"{self.prefix}:lock:{phone}", timeout=self.lock_timeout_seconds)
        async with phone_lock:
            renewer = asyncio.create_task(self._keep_alive(phone_lock, phone))
            try:
                yield
            finally:
                renewer.cancel()
                with suppress(asyncio.CancelledError):
                    await renewer

    async def _keep_alive(self, phone_lock, phone: str) -> None:
        interval = self.lock_timeout_seconds / 3
        while True:
            await asyncio.sleep(interval)
            try:
                await phone_lock.reacquire()
            except RedisError as exc:
                logger.warning(
                    f"Session lock renewal failed: {exc}",
                    extra={"context": {"phone": mask_phone(phone)}},
                )
                return
