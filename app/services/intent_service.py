import re
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional

from app.models import InboundEvent, Session
from app.services.notifications import (
    BUTTON_CHECK_BALANCE,
    BUTTON_DOWNLOAD_APP,
    BUTTON_REGISTER_ACCOUNT,
    BUTTON_SEND_MONEY,
)
from app.services.state_machine import DialogueStep, is_in_flow


class IntentType(str, Enum):
    CHECK_BALANCE = "check_balance"
    START_TRANSFER = "start_transfer"
    SET_RECIPIENT = "set_recipient"  # Free text while waiting for a phone
    SET_AMOUNT = "set_amount"  # Free text while waiting for an amount
    CANCEL_FLOW = "cancel_flow"
    CLAIM_COUPON = "claim_coupon"
    DOWNLOAD_APP = "download_app"
    REGISTER_ACCOUNT = "register_account"
    UNREGISTERED = "unregistered"
    UNRECOGNIZED = "unrecognized"


@dataclass(frozen=True)
class Intent:
    type: IntentType
    value: Optional[str] = None  # recipient text, amount text, coupon token or raw text

    @classmethod
    def of(cls, intent_type: IntentType, value: Optional[str] = None) -> "Intent":
        return cls(type=intent_type, value=value)


BUTTON_INTENTS = {
    BUTTON_CHECK_BALANCE: IntentType.CHECK_BALANCE,
    BUTTON_SEND_MONEY: IntentType.START_TRANSFER,
    BUTTON_DOWNLOAD_APP: IntentType.DOWNLOAD_APP,
    BUTTON_REGISTER_ACCOUNT: IntentType.REGISTER_ACCOUNT,
}

CLAIM_PATTERN = re.compile(r"^claim\s+tx=(.+)$", re.IGNORECASE)
CANCEL_PATTERN = re.compile(r"cancel", re.IGNORECASE)

RegistrationCheck = Callable[[str], Awaitable[bool]]


def match_claim_token(text: Optional[str]) -> Optional[str]:
    match = CLAIM_PATTERN.match((text or "").strip())
    if not match:
        return None
    token = match.group(1).strip()
    return token or None


def is_cancel_message(text: Optional[str]) -> bool:
    return bool(text) and CANCEL_PATTERN.search(text) is not None


def classify_registered(session: Session, event: InboundEvent) -> Intent:
    """Classify an event from a registered user (rules 3 and 4)."""
    if event.button_id:
        intent_type = BUTTON_INTENTS.get(event.button_id)
        if intent_type is not None:
            return Intent.of(intent_type)
        if is_in_flow(session.step):
            # Campaign buttons (learn_more, add_funds) are never a phone or an amount.
            return Intent.of(IntentType.UNRECOGNIZED, event.button_id)

    text = (event.text if event.text is not None else event.button_id or "").strip()

    if is_cancel_message(text):
        return Intent.of(IntentType.CANCEL_FLOW)

    if session.step == DialogueStep.AWAIT_RECIPIENT:
        return Intent.of(IntentType.SET_RECIPIENT, text)
    if session.step == DialogueStep.AWAIT_AMOUNT:
        return Intent.of(IntentType.SET_AMOUNT, text)
    return Intent.of(IntentType.UNRECOGNIZED, text)


async def classify_intent(session: Session, event: InboundEvent, is_registered: RegistrationCheck) -> Intent:
    """Map an inbound event plus dialogue state to one intent.

    Priority: claim token, registration gate, buttons, then the current step.
    The registration lookup is skipped for claims. Raises
    UpstreamUnavailableError when the lookup cannot be answered.
    """
    token = match_claim_token(event.text)
    if token:
        return Intent.of(IntentType.CLAIM_COUPON, token)

    if event.button_id != BUTTON_REGISTER_ACCOUNT and not await is_registered(event.sender):
        return Intent.of(IntentType.UNREGISTERED)

    return classify_registered(session, event)

