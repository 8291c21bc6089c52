from app.schemas.notification import NotificationRequest, SendMessageRequest, SendMessageResponse
from app.schemas.transfer import (
    TransferNotificationRequest,
    TransferNotificationResponse,
    WalletSendRequest,
    WalletSendResponse,
)
from app.schemas.wallet import BalanceResponse, TransactionEntry
from app.schemas.webhook import WebhookResponse, WhatsAppWebhookPayload

__all__ = [
    "BalanceResponse",
    "NotificationRequest",
    "SendMessageRequest",
    "SendMessageResponse",
    "TransactionEntry",
    "TransferNotificationRequest",
    "TransferNotificationResponse",
    "WalletSendRequest",
    "WalletSendResponse",
    "WebhookResponse",
    "WhatsAppWebhookPayload",
]
