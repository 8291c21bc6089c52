from app.models.event import EventKind, InboundEvent
from app.models.ledger import (
    CouponRedemption,
    TransactionType,
    TransferCommand,
    TransferOutcome,
    UserWallet,
    WalletTransaction,
    WalletUser,
)
from app.models.session import Session

__all__ = [
    "CouponRedemption",
    "EventKind",
    "InboundEvent",
    "Session",
    "TransactionType",
    "TransferCommand",
    "TransferOutcome",
    "UserWallet",
    "WalletTransaction",
    "WalletUser",
]
