"""WhatsApp notifications for completed transfers.

Used after a chat or API transfer and by the transfer notification endpoint
for transfers made elsewhere (web app, payroll runs). Delivery failures are
logged and never raised; a transfer is never reversed because a message
could not be sent.
"""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from app.logging_config import get_logger, mask_phone
from app.services.errors import WalletError
from app.services.notifications import TransactionReceivedNotification, TransactionSentNotification

logger = get_logger("transfer_notifications")

BULK_DELAY_SECONDS = 1.0


@dataclass(frozen=True)
class TransferNotice:
    sender_phone: str
    recipient_phone: str
    amount_minor: int
    transaction_id: Optional[str] = None


async def _balance_or_none(ledger, phone: str) -> Optional[int]:
    try:
        return await ledger.get_balance(phone)
    except WalletError as e:
        logger.warning(
            f"Post-transfer balance unavailable: {e}",
            extra={"context": {"phone": mask_phone(phone)}},
        )
        return None


def _log_delivery(party: str, phone: str, result, transaction_id: Optional[str]) -> bool:
    context = {"party": party, "phone": mask_phone(phone), "transaction_id": transaction_id}
    if isinstance(result, BaseException):
        logger.error(f"Transfer notification raised: {result}", extra={"context": context})
        return False
    if not result.ok:
        logger.warning("Transfer notification not delivered", extra={"context": {**context, "error": result.error}})
        return False
    logger.info("Transfer notification sent", extra={"context": context})
    return True


async def notify_transfer_parties(ledger, notifier, notice: TransferNotice) -> dict[str, bool]:
    """Confirm to the sender and tell the recipient, concurrently."""
    sender_balance, recipient_balance = await asyncio.gather(
        _balance_or_none(ledger, notice.sender_phone),
        _balance_or_none(ledger, notice.recipient_phone),
    )
    sent, received = await asyncio.gather(
        notifier.notify(
            TransactionSentNotification(
                to=notice.sender_phone,
                amount_minor=notice.amount_minor,
                recipient=notice.recipient_phone,
                new_balance_minor=sender_balance,
            )
        ),
        notifier.notify(
            TransactionReceivedNotification(
                to=notice.recipient_phone,
                amount_minor=notice.amount_minor,
                sender=notice.sender_phone,
                new_balance_minor=recipient_balance,
            )
        ),
        return_exceptions=True,
    )
    return {
        "sender": _log_delivery("sender", notice.sender_phone, sent, notice.transaction_id),
        "recipient": _log_delivery("recipient", notice.recipient_phone, received, notice.transaction_id),
    }


async def notify_recipient_only(ledger, notifier, notice: TransferNotice) -> bool:
    recipient_balance = await _balance_or_none(ledger, notice.recipient_phone)
    result = await notifier.notify(
        TransactionReceivedNotification(
            to=notice.recipient_phone,
            amount_minor=notice.amount_minor,
            sender=notice.sender_phone,
            new_balance_minor=recipient_balance,
        )
    )
    return _log_delivery("recipient", notice.recipient_phone, result, notice.transaction_id)


async def notify_bulk_transfer(
    ledger,
    notifier,
    notices: list[TransferNotice],
    *,
    delay_seconds: float = BULK_DELAY_SECONDS,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> int:
    """Notify recipients one by one with a pause between sends. Returns the delivered count."""
    logger.info("Sending bulk transfer notifications", extra={"context": {"count": len(notices)}})
    delivered = 0
    for index, notice in enumerate(notices):
        if index:
            await sleep(delay_seconds)
        if await notify_recipient_only(ledger, notifier, notice):
            delivered += 1
    logger.info(
        "Bulk transfer notifications completed",
        extra={"context": {"count": len(notices), "delivered": delivered}},
    )
    return delivered
