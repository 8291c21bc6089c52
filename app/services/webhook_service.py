"""Webhook receiver: turns raw provider bytes into a canonical InboundEvent.

Every outcome is one of accept / ignore / reject. Ignore covers anything the
provider should stop retrying (empty pings, malformed bodies, status updates,
duplicates); reject is reserved for message payloads missing their id or
sender.
"""

import hmac
import json
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from app.logging_config import get_logger, mask_phone
from app.models import EventKind, InboundEvent
from app.schemas.webhook import WhatsAppWebhookPayload
from app.services.dedup_service import DedupCache
from app.services.validators import normalize_phone

logger = get_logger("webhook_receiver")


class ReceiveStatus(str, Enum):
    ACCEPT = "accept"
    IGNORE = "ignore"
    REJECT = "reject"


@dataclass(frozen=True)
class ReceiveDecision:
    status: ReceiveStatus
    event: Optional[InboundEvent] = None
    reason: str = ""

    @staticmethod
    def accept(event: InboundEvent) -> "ReceiveDecision":
        return ReceiveDecision(ReceiveStatus.ACCEPT, event=event)

    @staticmethod
    def ignore(reason: str, event: Optional[InboundEvent] = None) -> "ReceiveDecision":
        return ReceiveDecision(ReceiveStatus.IGNORE, event=event, reason=reason)

    @staticmethod
    def reject(reason: str) -> "ReceiveDecision":
        return ReceiveDecision(ReceiveStatus.REJECT, reason=reason)


def parse_webhook_payload(raw: bytes | str | None) -> ReceiveDecision:
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", "ignore")
    if not raw or not raw.strip():
        logger.info("Webhook ping with empty body")
        return ReceiveDecision.ignore("empty_payload")

    try:
        data = json.loads(raw)
    except ValueError as exc:
        logger.warning(
            "Webhook payload is not valid JSON",
            extra={"context": {"error": str(exc), "body_preview": raw[:200]}},
        )
        return ReceiveDecision.ignore("invalid_json")

    if not isinstance(data, dict):
        return ReceiveDecision.ignore("invalid_payload")

    try:
        payload = WhatsAppWebhookPayload.model_validate(data)
    except PydanticValidationError as exc:
        logger.warning("Webhook payload validation failed", extra={"context": {"error": str(exc)[:500]}})
        return ReceiveDecision.ignore("invalid_payload")

    value = payload.first_value()
    if value is None:
        logger.info("Webhook payload has no change value", extra={"context": {"keys": list(data.keys())[:20]}})
        return ReceiveDecision.ignore("no_message")

    if value.statuses and not value.messages:
        status = value.statuses[0]
        logger.info(
            "Status update received",
            extra={"context": {"status": status.status, "message_id": status.id}},
        )
        event = None
        if status.id and status.recipient_id:
            event = InboundEvent(
                event_id=status.id,
                sender=normalize_phone(status.recipient_id),
                kind=EventKind.STATUS_UPDATE,
            )
        return ReceiveDecision.ignore("status_update", event=event)

    if not value.messages:
        logger.info("No message found in payload")
        return ReceiveDecision.ignore("no_message")

    if len(value.messages) > 1:
        logger.warning(
            "Webhook carried several messages, processing the first",
            extra={"context": {"count": len(value.messages)}},
        )

    message = value.messages[0]
    event_id = (message.id or "").strip()
    sender = normalize_phone(message.from_)
    if not event_id or not sender:
        return ReceiveDecision.reject("missing_fields")

    button_id = message.button_id
    if button_id:
        event = InboundEvent(event_id=event_id, sender=sender, kind=EventKind.BUTTON_REPLY, button_id=button_id)
    else:
        text = message.text.body if message.text else ""
        event = InboundEvent(event_id=event_id, sender=sender, kind=EventKind.TEXT, text=text)

    logger.info(
        "Message received",
        extra={
            "context": {
                "event_id": event_id,
                "from": mask_phone(sender),
                "kind": event.kind.value,
                "message_type": message.type,
            }
        },
    )
    return ReceiveDecision.accept(event)


class WebhookReceiver:
    def __init__(self, dedup: DedupCache):
        self.dedup = dedup

    async def receive(self, raw: bytes | str | None) -> ReceiveDecision:
        decision = parse_webhook_payload(raw)
        if decision.status != ReceiveStatus.ACCEPT:
            return decision

        if await self.dedup.check_and_mark(decision.event.event_id):
            logger.info("Duplicate delivery ignored", extra={"context": {"event_id": decision.event.event_id}})
            return ReceiveDecision.ignore("duplicate", event=decision.event)
        return decision


def verify_subscription(mode: str | None, token: str | None, expected_token: str) -> bool:
    if mode != "subscribe" or not token or not expected_token:
        return False
    return hmac.compare_digest(token, expected_token)
