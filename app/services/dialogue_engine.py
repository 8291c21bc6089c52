"""State machine turns: (session, event, intent) -> new session + one reply.

The engine never writes the store itself; the chat pipeline persists the
returned session with compare-and-swap.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from app.config import Settings
from app.logging_config import get_logger, mask_phone
from app.models import InboundEvent, Session, TransferCommand, TransferOutcome
from app.services import messages
from app.services.errors import WalletError
from app.services.intent_service import Intent, IntentType
from app.services.notifications import OutboundMessage
from app.services.state_machine import DialogueStep, is_in_flow
from app.services.validators import (
    AMOUNT_NOT_POSITIVE,
    AMOUNT_OVER_MAXIMUM,
    is_valid_phone,
    parse_amount,
    to_minor,
)

logger = get_logger("dialogue_engine")


@dataclass(frozen=True)
class Turn:
    session: Session
    # None when the transfer orchestrator already answered the sender
    reply: Optional[OutboundMessage]
    outcome: Optional[TransferOutcome] = None


class DialogueEngine:
    def __init__(
        self,
        ledger,
        orchestrator,
        *,
        max_transfer_amount: Decimal = Decimal("10000"),
        currency_symbol: str = "R",
        app_name: str = "Tata Mali",
        download_url: str = "",
        register_url: str = "",
        public_base_url: str = "",
    ):
        self.ledger = ledger
        self.orchestrator = orchestrator
        self.max_transfer_amount = max_transfer_amount
        self.currency_symbol = currency_symbol
        self.app_name = app_name
        self.download_url = download_url
        self.register_url = register_url
        self.public_base_url = public_base_url
        self._handlers = {
            IntentType.CHECK_BALANCE: self._check_balance,
            IntentType.START_TRANSFER: self._start_transfer,
            IntentType.SET_RECIPIENT: self._set_recipient,
            IntentType.SET_AMOUNT: self._set_amount,
            IntentType.CANCEL_FLOW: self._cancel_flow,
            IntentType.CLAIM_COUPON: self._claim_coupon,
            IntentType.DOWNLOAD_APP: self._download_app,
            IntentType.REGISTER_ACCOUNT: self._register_account,
            IntentType.UNREGISTERED: self._unregistered,
            IntentType.UNRECOGNIZED: self._unrecognized,
        }

    @classmethod
    def from_settings(cls, settings: Settings, ledger, orchestrator) -> "DialogueEngine":
        return cls(
            ledger,
            orchestrator,
            max_transfer_amount=settings.max_transfer_amount,
            currency_symbol=settings.currency_symbol,
            app_name=settings.app_name,
            download_url=settings.app_download_url,
            register_url=settings.app_user_register_url,
            public_base_url=settings.public_base_url,
        )

    async def handle(self, session: Session, event: InboundEvent, intent: Intent) -> Turn:
        handler = self._handlers[intent.type]
        turn = await handler(session, event, intent)
        logger.info(
            "Dialogue turn",
            extra={
                "context": {
                    "phone": mask_phone(session.phone),
                    "event_id": event.event_id,
                    "intent": intent.type.value,
                    "from_step": session.step.value,
                    "to_step": turn.session.step.value,
                }
            },
        )
        return turn

    async def _check_balance(self, session: Session, event: InboundEvent, intent: Intent) -> Turn:
        try:
            balance_minor = await self.ledger.get_balance(session.phone)
        except WalletError as e:
            logger.warning(f"Balance lookup failed: {e}", extra={"context": {"phone": mask_phone(session.phone)}})
            return Turn(session, messages.with_menu(session.phone, messages.MSG_BALANCE_UNAVAILABLE))
        return Turn(session, messages.balance_reply(session.phone, balance_minor, self.currency_symbol))

    async def _start_transfer(self, session: Session, event: InboundEvent, intent: Intent) -> Turn:
        return Turn(session.start_transfer(), messages.text(session.phone, messages.MSG_SEND_MONEY_PROMPT))

    async def _set_recipient(self, session: Session, event: InboundEvent, intent: Intent) -> Turn:
        recipient = (intent.value or "").strip()
        if not recipient:
            return Turn(session, messages.text(session.phone, messages.MSG_RECIPIENT_EMPTY))
        if not is_valid_phone(recipient):
            return Turn(session, messages.text(session.phone, messages.MSG_RECIPIENT_INVALID))
        if recipient == session.phone:
            return Turn(session, messages.text(session.phone, messages.MSG_RECIPIENT_SELF))

        return Turn(
            session.await_amount(recipient),
            messages.recipient_accepted(session.phone, recipient, self.currency_symbol),
        )

    async def _set_amount(self, session: Session, event: InboundEvent, intent: Intent) -> Turn:
        phone = session.phone
        if not session.pending_recipient:
            return Turn(session.start_transfer(), messages.text(phone, messages.MSG_RECIPIENT_LOST))

        raw = (intent.value or "").strip()
        if not raw:
            return Turn(session, messages.text(phone, messages.MSG_AMOUNT_EMPTY))

        parsed = parse_amount(raw, self.max_transfer_amount)
        if not parsed.ok:
            if parsed.error == AMOUNT_NOT_POSITIVE:
                return Turn(session, messages.text(phone, messages.MSG_AMOUNT_NOT_POSITIVE))
            if parsed.error == AMOUNT_OVER_MAXIMUM:
                max_minor = to_minor(self.max_transfer_amount)
                return Turn(session, messages.amount_over_maximum(phone, max_minor, self.currency_symbol))
            return Turn(session, messages.text(phone, messages.MSG_AMOUNT_INVALID))

        amount_minor = parsed.value
        try:
            balance_minor = await self.ledger.get_balance(phone)
        except WalletError as e:
            logger.warning(
                f"Balance check before transfer failed: {e}",
                extra={"context": {"phone": mask_phone(phone)}},
            )
            return Turn(session, messages.text(phone, messages.MSG_AMOUNT_BALANCE_UNAVAILABLE))

        if balance_minor < amount_minor:
            return Turn(
                session.reset(),
                messages.insufficient_funds(phone, balance_minor, amount_minor, self.currency_symbol),
            )

        command = TransferCommand(
            from_phone=phone,
            to_phone=session.pending_recipient,
            amount_minor=amount_minor,
            idempotency_key=event.event_id,
        )
        outcome = await self.orchestrator.execute(command)
        return Turn(session.reset(), None, outcome)

    async def _cancel_flow(self, session: Session, event: InboundEvent, intent: Intent) -> Turn:
        if is_in_flow(session.step):
            return Turn(session.reset(), messages.with_menu(session.phone, messages.MSG_FLOW_CANCELLED))
        return Turn(session, messages.with_menu(session.phone, messages.MSG_CANCELLED))

    async def _claim_coupon(self, session: Session, event: InboundEvent, intent: Intent) -> Turn:
        phone = session.phone
        try:
            redemption = await self.ledger.redeem_coupon(phone, intent.value)
        except WalletError as e:
            logger.warning(f"Coupon redemption failed: {e}", extra={"context": {"phone": mask_phone(phone)}})
            return Turn(session, messages.with_menu(phone, messages.MSG_CLAIM_FAILED))

        if not redemption.success:
            logger.info(
                "Coupon not redeemed",
                extra={"context": {"phone": mask_phone(phone), "reason": redemption.message}},
            )
            return Turn(session, messages.with_menu(phone, messages.MSG_CLAIM_FAILED))

        try:
            balance_minor = await self.ledger.get_balance(phone)
        except WalletError:
            balance_minor = None
        return Turn(
            session,
            messages.claim_succeeded(phone, redemption.amount_minor, balance_minor, self.currency_symbol),
        )

    async def _download_app(self, session: Session, event: InboundEvent, intent: Intent) -> Turn:
        return Turn(session, messages.download_link(session.phone, self.download_url, self.app_name))

    async def _register_account(self, session: Session, event: InboundEvent, intent: Intent) -> Turn:
        reply = messages.registration_link(session.phone, self.register_url, self.public_base_url, self.app_name)
        return Turn(session, reply)

    async def _unregistered(self, session: Session, event: InboundEvent, intent: Intent) -> Turn:
        return Turn(session, messages.unregistered(session.phone, self.app_name))

    async def _unrecognized(self, session: Session, event: InboundEvent, intent: Intent) -> Turn:
        if is_in_flow(session.step):
            awaiting_amount = session.step == DialogueStep.AWAIT_AMOUNT
            return Turn(session, messages.step_guidance(session.phone, awaiting_amount))
        if messages.wants_help(intent.value):
            return Turn(session, messages.with_menu(session.phone, messages.MSG_HELP))
        return Turn(session, messages.with_menu(session.phone, messages.MSG_NOT_UNDERSTOOD))
