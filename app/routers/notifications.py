"""Internal endpoints that push WhatsApp messages on behalf of other systems."""

from decimal import Decimal, InvalidOperation

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Response, status

from app.dependencies import get_ledger, get_notifier, require_api_key
from app.logging_config import get_logger, mask_phone
from app.schemas.notification import NotificationRequest, SendMessageRequest, SendMessageResponse
from app.schemas.transfer import TransferNotificationRequest, TransferNotificationResponse
from app.services.errors import ValidationError, WalletError
from app.services.ledger_client import LedgerClient
from app.services.notifications import (
    BalanceNotification,
    Button,
    LowBalanceNotification,
    OutboundMessage,
    PromotionNotification,
    TransactionReceivedNotification,
    TransactionSentNotification,
    WelcomeNotification,
    validate_outbound,
)
from app.services.notifier import WhatsAppNotifier
from app.services.transfer_notifications import (
    TransferNotice,
    notify_bulk_transfer,
    notify_recipient_only,
    notify_transfer_parties,
)
from app.services.validators import is_valid_phone, to_minor

logger = get_logger("notifications_api")

router = APIRouter(dependencies=[Depends(require_api_key)])

MSG_INVALID_PHONE = "Invalid phone number format. Use international format: +27831234567"


def _bad_request(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


def _amount_minor(value) -> int:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise _bad_request("Invalid amount")
    if not amount.is_finite() or amount <= 0:
        raise _bad_request("Amount must be greater than 0")
    return to_minor(amount)


def _send_response(result, response: Response) -> SendMessageResponse:
    if result.ok:
        return SendMessageResponse(success=True, message="Message sent successfully", messageId=result.value)
    response.status_code = (
        status.HTTP_400_BAD_REQUEST if result.error_code == "validation_error" else status.HTTP_502_BAD_GATEWAY
    )
    return SendMessageResponse(success=False, message=result.error or "Failed to send message")


@router.post("/webhooks/send-message", response_model=SendMessageResponse)
async def send_message(
    request: SendMessageRequest,
    response: Response,
    notifier: WhatsAppNotifier = Depends(get_notifier),
):
    """Send a raw text or reply-button message."""
    buttons = ()
    if request.type == "interactive":
        if not request.buttons:
            raise _bad_request("Interactive messages require at least one button")
        buttons = tuple(Button(id=b.id, title=b.title) for b in request.buttons)

    message = OutboundMessage(to=request.to, body=request.message, buttons=buttons)
    try:
        validate_outbound(message)
    except ValidationError as e:
        raise _bad_request(e.message)

    result = await notifier.send(message)
    return _send_response(result, response)


async def _build_notification(request: NotificationRequest, ledger: LedgerClient):
    data = request.data or {}
    if request.type == "balance":
        return BalanceNotification(to=request.to, balance_minor=await ledger.get_balance(request.to))
    if request.type == "low_balance":
        return LowBalanceNotification(to=request.to, balance_minor=await ledger.get_balance(request.to))
    if request.type == "welcome":
        return WelcomeNotification(to=request.to, first_name=data.get("firstName"))
    if request.type == "promotion":
        return PromotionNotification(to=request.to, campaign=str(data.get("campaign") or ""))
    if request.type == "transaction":
        direction = data.get("type")
        amount_minor = _amount_minor(data.get("amount"))
        if direction == "sent":
            return TransactionSentNotification(
                to=request.to, amount_minor=amount_minor, recipient=str(data.get("recipient") or "")
            )
        if direction == "received":
            return TransactionReceivedNotification(
                to=request.to, amount_minor=amount_minor, sender=str(data.get("sender") or "")
            )
        raise _bad_request("Invalid transaction type")
    raise _bad_request("Invalid notification type")


@router.post("/notifications/whatsapp", response_model=SendMessageResponse)
async def send_notification(
    request: NotificationRequest,
    response: Response,
    ledger: LedgerClient = Depends(get_ledger),
    notifier: WhatsAppNotifier = Depends(get_notifier),
):
    if not is_valid_phone(request.to):
        raise _bad_request(MSG_INVALID_PHONE)

    try:
        notification = await _build_notification(request, ledger)
    except ValidationError as e:
        raise _bad_request(e.message)
    except WalletError as e:
        logger.warning(
            f"Notification data unavailable: {e}",
            extra={"context": {"to": mask_phone(request.to), "type": request.type}},
        )
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Ledger unavailable")

    result = await notifier.notify(notification)
    return _send_response(result, response)


@router.post("/transfer/notifications", response_model=TransferNotificationResponse)
async def transfer_notifications(
    request: TransferNotificationRequest,
    background_tasks: BackgroundTasks,
    ledger: LedgerClient = Depends(get_ledger),
    notifier: WhatsAppNotifier = Depends(get_notifier),
):
    """Notify parties of transfers made outside the chat."""
    if not is_valid_phone(request.senderPhone):
        raise _bad_request("Invalid senderPhone format. Use international format: +27831234567")

    if request.type in ("single", "recipient_only"):
        if not request.recipientPhone or request.amount is None:
            raise _bad_request("Missing required fields: recipientPhone and amount")
        if not is_valid_phone(request.recipientPhone):
            raise _bad_request("Invalid recipientPhone format. Use international format: +27831234567")
        notice = TransferNotice(
            sender_phone=request.senderPhone,
            recipient_phone=request.recipientPhone,
            amount_minor=_amount_minor(request.amount),
            transaction_id=request.transactionId,
        )
        if request.type == "single":
            await notify_transfer_parties(ledger, notifier, notice)
            return TransferNotificationResponse(success=True, message="Transfer notifications sent to both parties")
        await notify_recipient_only(ledger, notifier, notice)
        return TransferNotificationResponse(success=True, message="Transfer notification sent to recipient")

    if not request.transfers:
        raise _bad_request("Missing or empty transfers array for bulk notification")
    notices = []
    for transfer in request.transfers:
        if not is_valid_phone(transfer.recipientPhone):
            raise _bad_request(f"Invalid recipientPhone format: {transfer.recipientPhone}")
        notices.append(
            TransferNotice(
                sender_phone=request.senderPhone,
                recipient_phone=transfer.recipientPhone,
                amount_minor=_amount_minor(transfer.amount),
                transaction_id=transfer.transactionId,
            )
        )
    background_tasks.add_task(notify_bulk_transfer, ledger, notifier, notices)
    return TransferNotificationResponse(
        success=True,
        message=f"Bulk transfer notifications queued for {len(notices)} recipients",
    )
