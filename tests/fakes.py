"""Test doubles for the ledger and the WhatsApp notifier."""

from typing import Optional

from app.models import (
    CouponRedemption,
    EventKind,
    InboundEvent,
    TransferCommand,
    TransferOutcome,
    WalletTransaction,
    WalletUser,
)
from app.services.notifications import OutboundMessage, render_notification
from app.services.result import ErrorCode, Result

ALICE = "+27831234567"
BOB = "+27831234568"
CAROL = "+27831234569"


class FakeLedger:
    """In-memory ledger keyed by phone. Balances are minor units."""

    def __init__(self, balances: Optional[dict] = None, registered: Optional[set] = None):
        self.balances = dict(balances or {})
        self.registered = set(registered) if registered is not None else set(self.balances)
        self.coupons: dict[str, int] = {}
        self.history: dict[str, list[WalletTransaction]] = {}
        self.transfer_calls: list[TransferCommand] = []
        self.applied: dict[str, TransferOutcome] = {}
        self.balance_calls = 0
        self.registration_calls = 0
        self.balance_error: Optional[Exception] = None
        self.registration_error: Optional[Exception] = None
        self.transfer_error: Optional[Exception] = None
        self.transfer_status: Optional[TransferOutcome] = None

    async def is_registered(self, phone: str) -> bool:
        self.registration_calls += 1
        if self.registration_error:
            raise self.registration_error
        return phone in self.registered

    async def lookup_user(self, phone: str) -> Optional[WalletUser]:
        if self.registration_error:
            raise self.registration_error
        if phone not in self.registered:
            return None
        return WalletUser(id=f"u-{phone}", phone=phone, email=f"{phone.lstrip('+')}@test", first_name="Thandi")

    async def get_history(self, phone: str) -> list[WalletTransaction]:
        if self.balance_error:
            raise self.balance_error
        return list(self.history.get(phone, []))

    async def get_balance(self, phone: str) -> int:
        self.balance_calls += 1
        if self.balance_error:
            raise self.balance_error
        return self.balances.get(phone, 0)

    async def transfer(self, command: TransferCommand) -> TransferOutcome:
        self.transfer_calls.append(command)
        if self.transfer_error:
            raise self.transfer_error
        if command.idempotency_key in self.applied:
            return self.applied[command.idempotency_key]
        if self.balances.get(command.from_phone, 0) < command.amount_minor:
            return TransferOutcome(
                success=False,
                message="Insufficient balance",
                error_code=ErrorCode.INSUFFICIENT_FUNDS.value,
            )
        self.balances[command.from_phone] -= command.amount_minor
        self.balances[command.to_phone] = self.balances.get(command.to_phone, 0) + command.amount_minor
        outcome = TransferOutcome(
            success=True,
            message="Transfer successful",
            transaction_id=f"tx-{len(self.applied) + 1}",
        )
        self.applied[command.idempotency_key] = outcome
        return outcome

    async def get_transfer_status(self, idempotency_key: str) -> Optional[TransferOutcome]:
        return self.transfer_status

    async def redeem_coupon(self, phone: str, token: str) -> CouponRedemption:
        amount = self.coupons.pop(token, None)
        if amount is None:
            return CouponRedemption(success=False, message="This coupon has already been used")
        self.balances[phone] = self.balances.get(phone, 0) + amount
        return CouponRedemption(success=True, message="Coupon redeemed successfully", amount_minor=amount)

    @property
    def total(self) -> int:
        return sum(self.balances.values())


class FakeNotifier:
    def __init__(self, failing: Optional[set] = None):
        self.sent: list[OutboundMessage] = []
        self.failing = set(failing or ())

    async def send(self, message: OutboundMessage) -> Result:
        if message.to in self.failing:
            return Result.failure("WhatsApp API error: 500", ErrorCode.LEDGER_UNAVAILABLE)
        self.sent.append(message)
        return Result.success(f"wamid.{len(self.sent)}")

    async def notify(self, notification) -> Result:
        return await self.send(render_notification(notification))

    def to(self, phone: str) -> list[OutboundMessage]:
        return [message for message in self.sent if message.to == phone]


def text_event(event_id: str, text: str, sender: str = ALICE) -> InboundEvent:
    return InboundEvent(event_id=event_id, sender=sender, kind=EventKind.TEXT, text=text)


def button_event(event_id: str, button_id: str, sender: str = ALICE) -> InboundEvent:
    return InboundEvent(event_id=event_id, sender=sender, kind=EventKind.BUTTON_REPLY, button_id=button_id)
