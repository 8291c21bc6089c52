import logging
from typing import Optional

import httpx
from tenacity import AsyncRetrying, before_sleep_log, retry_if_exception_type, stop_after_attempt, wait_exponential

from app.config import Settings
from app.logging_config import get_logger, mask_phone
from app.services.errors import UpstreamUnavailableError, ValidationError
from app.services.notifications import OutboundMessage, render_notification, validate_outbound
from app.services.result import ErrorCode, Result

logger = get_logger("notifier")


class WhatsAppNotifier:
    """Sends text and reply-button messages through the WhatsApp Cloud API.

    Sending is best-effort: transient failures (timeouts, 429, 5xx) are retried
    a bounded number of times, anything else is logged and reported as a
    failed Result. Callers never see an exception from `send`.
    """

    def __init__(
        self,
        token: str,
        phone_number_id: str,
        *,
        graph_url: str = "https://graph.facebook.com",
        graph_version: str = "v20.0",
        timeout_seconds: float = 10.0,
        max_attempts: int = 3,
        backoff_seconds: float = 0.5,
        currency_symbol: str = "R",
        app_name: str = "Tata Mali",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.token = token
        self.phone_number_id = phone_number_id
        self.max_attempts = max(1, max_attempts)
        self.backoff_seconds = max(0.0, backoff_seconds)
        self.currency_symbol = currency_symbol
        self.app_name = app_name
        self.url = f"{graph_url.rstrip('/')}/{graph_version}/{phone_number_id}/messages"
        self._client = httpx.AsyncClient(timeout=timeout_seconds, transport=transport)

    @classmethod
    def from_settings(cls, settings: Settings) -> "WhatsAppNotifier":
        return cls(
            settings.wa_token,
            settings.wa_phone_number_id,
            graph_url=settings.wa_graph_url,
            graph_version=settings.wa_graph_version,
            timeout_seconds=settings.notify_timeout_seconds,
            max_attempts=settings.notify_max_attempts,
            backoff_seconds=settings.notify_backoff_seconds,
            currency_symbol=settings.currency_symbol,
            app_name=settings.app_name,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def send(self, message: OutboundMessage) -> Result[Optional[str]]:
        """Deliver one message. Returns the provider message id on success."""
        try:
            validate_outbound(message)
        except ValidationError as exc:
            logger.warning(
                "Outbound message rejected",
                extra={"context": {"to": mask_phone(message.to), "error": exc.message}},
            )
            return Result.failure(exc.message, ErrorCode.VALIDATION_ERROR)

        if not self.token or not self.phone_number_id:
            logger.error("Missing WhatsApp credentials", extra={"context": {"to": mask_phone(message.to)}})
            return Result.failure("Missing WhatsApp credentials", "not_configured")

        payload = build_payload(message)
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.max_attempts),
                wait=wait_exponential(multiplier=self.backoff_seconds, max=max(self.backoff_seconds * 8, 0)),
                retry=retry_if_exception_type(UpstreamUnavailableError),
                before_sleep=before_sleep_log(logger, logging.WARNING),
                reraise=True,
            ):
                with attempt:
                    message_id = await self._post(payload)
        except (UpstreamUnavailableError, ValidationError) as exc:
            logger.error(
                "WhatsApp send failed",
                extra={
                    "context": {
                        "to": mask_phone(message.to),
                        "interactive": message.is_interactive,
                        "error": exc.message,
                    }
                },
            )
            return Result.failure(exc.message, exc.code)

        logger.info(
            "WhatsApp message sent",
            extra={
                "context": {
                    "to": mask_phone(message.to),
                    "interactive": message.is_interactive,
                    "message_id": message_id,
                }
            },
        )
        return Result.success(message_id)

    async def notify(self, notification) -> Result[Optional[str]]:
        message = render_notification(notification, symbol=self.currency_symbol, app_name=self.app_name)
        return await self.send(message)

    async def _post(self, payload: dict) -> Optional[str]:
        try:
            response = await self._client.post(
                self.url,
                json=payload,
                headers={"Authorization": f"Bearer {self.token}"},
            )
        except httpx.HTTPError as exc:
            raise UpstreamUnavailableError(f"WhatsApp API unreachable: {exc}") from exc

        if response.status_code == 429 or response.status_code >= 500:
            raise UpstreamUnavailableError(f"WhatsApp API error: {response.status_code}")

        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.status_code >= 400:
            error = body.get("error") if isinstance(body, dict) else None
            detail = error.get("message") if isinstance(error, dict) else None
            raise ValidationError(f"WhatsApp API error: {detail or response.status_code}")

        messages = body.get("messages") if isinstance(body, dict) else None
        if isinstance(messages, list) and messages and isinstance(messages[0], dict):
            return messages[0].get("id")
        return None


def build_payload(message: OutboundMessage) -> dict:
    """Cloud API expects the recipient without the leading +."""
    to = message.to.lstrip("+")
    if not message.is_interactive:
        return {
            "messaging_product": "whatsapp",
            "to": to,
            "type": "text",
            "text": {"body": message.body},
        }
    return {
        "messaging_product": "whatsapp",
        "to": to,
        "type": "interactive",
        "interactive": {
            "type": "button",
            "body": {"text": message.body},
            "action": {
                "buttons": [
                    {"type": "reply", "reply": {"id": button.id, "title": button.title}}
                    for button in message.buttons
                ]
            },
        },
    }
