import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

from redis.exceptions import LockNotOwnedError, WatchError

from app.models import Session
from app.services.conversation_store import InMemoryConversationStore, RedisConversationStore
from app.services.state_machine import DialogueStep

PHONE = "+27831234567"


class TestInMemoryConversationStore:
    def test_get_or_create_starts_at_main(self):
        store = InMemoryConversationStore()
        session = asyncio.run(store.get_or_create(PHONE))
        assert session == Session(phone=PHONE)
        assert store.peek(PHONE) == session

    def test_compare_and_swap_applies_when_unchanged(self):
        store = InMemoryConversationStore()

        async def run():
            current = await store.get_or_create(PHONE)
            swapped = await store.compare_and_swap(PHONE, current, current.start_transfer())
            return swapped, await store.get_or_create(PHONE)

        swapped, stored = asyncio.run(run())
        assert swapped is True
        assert stored.step == DialogueStep.AWAIT_RECIPIENT

    def test_compare_and_swap_rejects_stale_expected(self):
        store = InMemoryConversationStore()

        async def run():
            original = await store.get_or_create(PHONE)
            await store.compare_and_swap(PHONE, original, original.start_transfer())
            return await store.compare_and_swap(PHONE, original, original.mark_event("wamid.2"))

        assert asyncio.run(run()) is False
        assert store.peek(PHONE).step == DialogueStep.AWAIT_RECIPIENT

    def test_lock_serializes_same_phone(self):
        store = InMemoryConversationStore()
        order = []

        async def worker(name):
            async with store.lock(PHONE):
                order.append(f"{name}-in")
                await asyncio.sleep(0.01)
                order.append(f"{name}-out")

        async def run():
            await asyncio.gather(worker("a"), worker("b"))

        asyncio.run(run())
        assert order in (["a-in", "a-out", "b-in", "b-out"], ["b-in", "b-out", "a-in", "a-out"])

    def test_lock_does_not_block_other_phones(self):
        store = InMemoryConversationStore()
        order = []

        async def worker(phone, name):
            async with store.lock(phone):
                order.append(f"{name}-in")
                await asyncio.sleep(0.01)
                order.append(f"{name}-out")

        async def run():
            await asyncio.gather(worker(PHONE, "a"), worker("+27831234568", "b"))

        asyncio.run(run())
        assert order[:2] == ["a-in", "b-in"]


class TestRedisConversationStore:
    def test_get_or_create_reads_existing(self):
        stored = Session(phone=PHONE).start_transfer()
        redis_client = MagicMock()
        redis_client.get = AsyncMock(return_value=json.dumps(stored.to_dict()))
        store = RedisConversationStore(redis_client)

        session = asyncio.run(store.get_or_create(PHONE))

        assert session == stored
        redis_client.get.assert_awaited_once_with("walletbot:session:+27831234567")

    def test_get_or_create_creates_with_nx(self):
        redis_client = MagicMock()
        redis_client.get = AsyncMock(return_value=None)
        redis_client.set = AsyncMock(return_value=True)
        store = RedisConversationStore(redis_client)

        session = asyncio.run(store.get_or_create(PHONE))

        assert session == Session(phone=PHONE)
        assert redis_client.set.await_args.kwargs == {"nx": True}

    def test_compare_and_swap_returns_false_on_watch_error(self):
        expected = Session(phone=PHONE)
        pipe = MagicMock()
        pipe.watch = AsyncMock(side_effect=WatchError("changed"))
        pipeline_cm = MagicMock()
        pipeline_cm.__aenter__ = AsyncMock(return_value=pipe)
        pipeline_cm.__aexit__ = AsyncMock(return_value=False)
        redis_client = MagicMock()
        redis_client.pipeline.return_value = pipeline_cm
        store = RedisConversationStore(redis_client)

        assert asyncio.run(store.compare_and_swap(PHONE, expected, expected.start_transfer())) is False

    def test_compare_and_swap_writes_when_version_matches(self):
        expected = Session(phone=PHONE)
        pipe = MagicMock()
        pipe.watch = AsyncMock()
        pipe.get = AsyncMock(return_value=json.dumps(expected.to_dict()))
        pipe.execute = AsyncMock(return_value=[True])
        pipeline_cm = MagicMock()
        pipeline_cm.__aenter__ = AsyncMock(return_value=pipe)
        pipeline_cm.__aexit__ = AsyncMock(return_value=False)
        redis_client = MagicMock()
        redis_client.pipeline.return_value = pipeline_cm
        store = RedisConversationStore(redis_client)

        assert asyncio.run(store.compare_and_swap(PHONE, expected, expected.start_transfer())) is True
        pipe.multi.assert_called_once()
        pipe.set.assert_called_once()
        pipe.execute.assert_awaited_once()

    @staticmethod
    def _redis_with_lock():
        phone_lock = MagicMock()
        phone_lock.__aenter__ = AsyncMock(return_value=phone_lock)
        phone_lock.__aexit__ = AsyncMock(return_value=False)
        phone_lock.reacquire = AsyncMock(return_value=True)
        redis_client = MagicMock()
        redis_client.lock.return_value = phone_lock
        return redis_client, phone_lock

    def test_lock_is_renewed_while_turn_runs(self):
        redis_client, phone_lock = self._redis_with_lock()
        store = RedisConversationStore(redis_client, lock_timeout_seconds=0.03)

        async def slow_turn():
            async with store.lock(PHONE):
                await asyncio.sleep(0.1)

        asyncio.run(slow_turn())

        redis_client.lock.assert_called_once_with("walletbot:lock:+27831234567", timeout=0.03)
        assert phone_lock.reacquire.await_count >= 2
        phone_lock.__aexit__.assert_awaited_once()

    def test_lock_renewal_stops_when_turn_ends(self):
        redis_client, phone_lock = self._redis_with_lock()
        store = RedisConversationStore(redis_client, lock_timeout_seconds=30.0)

        async def quick_turn():
            async with store.lock(PHONE):
                pass
            await asyncio.sleep(0.01)

        asyncio.run(quick_turn())
        phone_lock.reacquire.assert_not_awaited()

    def test_lost_lock_does_not_abort_turn(self):
        redis_client, phone_lock = self._redis_with_lock()
        phone_lock.reacquire = AsyncMock(side_effect=LockNotOwnedError("expired"))
        store = RedisConversationStore(redis_client, lock_timeout_seconds=0.03)
        finished = []

        async def slow_turn():
            async with store.lock(PHONE):
                await asyncio.sleep(0.05)
                finished.append(True)

        asyncio.run(slow_turn())
        assert finished == [True]
        phone_lock.reacquire.assert_awaited_once()
