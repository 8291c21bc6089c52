from dataclasses import dataclass
from enum import Enum
from typing import Optional


@dataclass(frozen=True)
class WalletUser:
    id: str
    phone: str
    email: str
    payment_identifier: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None


@dataclass(frozen=True)
class UserWallet:
    user: WalletUser
    balance_minor: int

    @property
    def wallet_id(self) -> str:
        return self.user.id


@dataclass(frozen=True)
class TransferCommand:
    from_phone: str
    to_phone: str
    amount_minor: int
    idempotency_key: str


@dataclass(frozen=True)
class TransferOutcome:
    success: bool
    message: str
    transaction_id: Optional[str] = None
    error_code: Optional[str] = None


@dataclass(frozen=True)
class CouponRedemption:
    success: bool
    message: str
    amount_minor: Optional[int] = None


class TransactionType(str, Enum):
    TRANSFER = "TRANSFER"
    RECEIVE = "RECEIVE"
    COUPON = "COUPON"
    DEPOSIT = "DEPOSIT"
    WITHDRAWAL = "WITHDRAWAL"
    OTHER = "OTHER"


@dataclass(frozen=True)
class WalletTransaction:
    """One entry of a user's ledger history. Amounts are minor units."""

    id: str
    type: TransactionType
    amount_minor: int
    created_at: Optional[str] = None
    from_phone: Optional[str] = None
    to_phone: Optional[str] = None
    description: Optional[str] = None
