"""Process-wide service instances, wired from settings and injected with Depends."""

import hmac
from functools import lru_cache
from typing import Optional

import redis.asyncio as redis_async
from fastapi import Header, HTTPException, status

from app.config import settings
from app.logging_config import get_logger
from app.services.chat_service import ChatService
from app.services.conversation_store import (
    ConversationStore,
    InMemoryConversationStore,
    RedisConversationStore,
)
from app.services.dedup_service import DedupCache, InMemoryDedupCache, RedisDedupCache
from app.services.dialogue_engine import DialogueEngine
from app.services.ledger_client import LedgerClient
from app.services.notifier import WhatsAppNotifier
from app.services.transfer_orchestrator import TransferOrchestrator
from app.services.webhook_service import WebhookReceiver

logger = get_logger("dependencies")


@lru_cache
def get_redis():
    if not settings.redis_url:
        return None
    return redis_async.from_url(
        settings.redis_url,
        decode_responses=True,
        socket_connect_timeout=settings.redis_socket_timeout_seconds,
        socket_timeout=settings.redis_socket_timeout_seconds,
    )


@lru_cache
def get_conversation_store() -> ConversationStore:
    client = get_redis()
    if client is None:
        logger.info("Using in-memory conversation store")
        return InMemoryConversationStore()
    return RedisConversationStore(client, lock_timeout_seconds=settings.session_lock_timeout_seconds)


@lru_cache
def get_dedup_cache() -> DedupCache:
    local = InMemoryDedupCache(ttl_seconds=settings.dedup_ttl_seconds, max_entries=settings.dedup_max_entries)
    client = get_redis()
    if client is None:
        return local
    return RedisDedupCache(client, ttl_seconds=settings.dedup_ttl_seconds, fallback=local)


@lru_cache
def get_ledger() -> LedgerClient:
    return LedgerClient.from_settings(settings)


@lru_cache
def get_notifier() -> WhatsAppNotifier:
    return WhatsAppNotifier.from_settings(settings)


@lru_cache
def get_orchestrator() -> TransferOrchestrator:
    return TransferOrchestrator(get_ledger(), get_notifier(), currency_symbol=settings.currency_symbol)


@lru_cache
def get_chat_service() -> ChatService:
    engine = DialogueEngine.from_settings(settings, get_ledger(), get_orchestrator())
    return ChatService(get_conversation_store(), get_ledger(), engine, get_notifier())


@lru_cache
def get_webhook_receiver() -> WebhookReceiver:
    return WebhookReceiver(get_dedup_cache())


def require_api_key(
    x_api_key: Optional[str] = Header(default=None, alias="X-API-Key"),
    authorization: Optional[str] = Header(default=None),
) -> None:
    """Internal endpoints accept the key as X-API-Key or as a bearer token."""
    expected = settings.webhook_api_key
    if not expected:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="WEBHOOK_API_KEY not configured",
        )
    provided = x_api_key
    if not provided and authorization and authorization.lower().startswith("bearer "):
        provided = authorization[7:].strip()
    if not provided or not hmac.compare_digest(provided, expected):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API key")


async def close_clients() -> None:
    if get_ledger.cache_info().currsize:
        await get_ledger().aclose()
    if get_notifier.cache_info().currsize:
        await get_notifier().aclose()
    if get_redis.cache_info().currsize and get_redis() is not None:
        await get_redis().aclose()
