"""Operator alerts for wallet faults, posted to a Telegram chat.

Alerts are fire-and-forget: a missing configuration or a Telegram outage is
logged and reported as False, never raised into the chat pipeline.
"""

from typing import Optional

import httpx

from app.config import settings
from app.logging_config import get_logger

logger = get_logger("alert_service")

TELEGRAM_SEND_URL = "https://api.telegram.org/bot{token}/sendMessage"
ALERT_TIMEOUT_SECONDS = 5.0

LEVEL_EMOJI = {"WARNING": "⚠️", "ERROR": "❌"}


def format_alert(level: str, message: str, context: Optional[dict] = None) -> str:
    lines = [f"{LEVEL_EMOJI.get(level, '📢')} *{settings.app_name} {level}*", "", message]
    if context:
        lines += ["", "```"] + [f"{key}: {value}" for key, value in context.items()] + ["```"]
    return "\n".join(lines)


async def send_alert(level: str, message: str, context: Optional[dict] = None) -> bool:
    token, chat_id = settings.alert_bot_token, settings.alert_chat_id
    if not token or not chat_id:
        logger.warning(f"Alert not configured: {level} - {message}", extra={"context": context or {}})
        return False

    try:
        async with httpx.AsyncClient(timeout=ALERT_TIMEOUT_SECONDS) as client:
            response = await client.post(
                TELEGRAM_SEND_URL.format(token=token),
                json={"chat_id": chat_id, "text": format_alert(level, message, context), "parse_mode": "Markdown"},
            )
    except httpx.HTTPError as e:
        logger.error(f"Alert delivery failed: {e}")
        return False

    if response.status_code != 200:
        logger.error(f"Alert rejected by Telegram: {response.status_code}")
        return False
    return True


async def alert_error(message: str, context: Optional[dict] = None) -> bool:
    return await send_alert("ERROR", message, context)


async def alert_warning(message: str, context: Optional[dict] = None) -> bool:
    return await send_alert("WARNING", message, context)
