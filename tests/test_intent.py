import asyncio
from unittest.mock import AsyncMock

import pytest

from app.models import Session
from app.services.errors import UpstreamUnavailableError
from app.services.intent_service import (
    Intent,
    IntentType,
    classify_intent,
    classify_registered,
    is_cancel_message,
    match_claim_token,
)
from fakes import ALICE, BOB, button_event, text_event

MAIN = Session(phone=ALICE)
AWAIT_RECIPIENT = MAIN.start_transfer()
AWAIT_AMOUNT = AWAIT_RECIPIENT.await_amount(BOB)


def classify(session, event, registered=True):
    return asyncio.run(classify_intent(session, event, AsyncMock(return_value=registered)))


class TestClaimToken:
    def test_claim_matches_case_insensitive(self):
        assert match_claim_token("CLAIM tx=ABC123") == "ABC123"
        assert match_claim_token("claim   tx=abc ") == "abc"

    def test_not_a_claim(self):
        assert match_claim_token("claim abc") is None
        assert match_claim_token("please claim tx=abc") is None
        assert match_claim_token(None) is None

    @pytest.mark.parametrize("session", [MAIN, AWAIT_RECIPIENT, AWAIT_AMOUNT])
    def test_claim_wins_in_any_step_without_lookup(self, session):
        lookup = AsyncMock(return_value=False)
        intent = asyncio.run(classify_intent(session, text_event("e1", "claim tx=T0K"), lookup))
        assert intent == Intent(IntentType.CLAIM_COUPON, "T0K")
        lookup.assert_not_awaited()


class TestRegistrationGate:
    def test_unregistered_user(self):
        assert classify(MAIN, text_event("e1", "hi"), registered=False).type == IntentType.UNREGISTERED

    def test_unregistered_user_pressing_buttons(self):
        intent = classify(MAIN, button_event("e1", "check_balance"), registered=False)
        assert intent.type == IntentType.UNREGISTERED

    def test_register_button_skips_gate(self):
        lookup = AsyncMock(return_value=False)
        intent = asyncio.run(classify_intent(MAIN, button_event("e1", "register_account"), lookup))
        assert intent.type == IntentType.REGISTER_ACCOUNT
        lookup.assert_not_awaited()

    def test_lookup_failure_propagates(self):
        lookup = AsyncMock(side_effect=UpstreamUnavailableError("timeout"))
        with pytest.raises(UpstreamUnavailableError):
            asyncio.run(classify_intent(MAIN, text_event("e1", "hi"), lookup))


class TestButtons:
    @pytest.mark.parametrize(
        "button_id,expected",
        [
            ("check_balance", IntentType.CHECK_BALANCE),
            ("send_money", IntentType.START_TRANSFER),
            ("download_app", IntentType.DOWNLOAD_APP),
            ("register_account", IntentType.REGISTER_ACCOUNT),
        ],
    )
    @pytest.mark.parametrize("session", [MAIN, AWAIT_RECIPIENT, AWAIT_AMOUNT])
    def test_buttons_override_step(self, session, button_id, expected):
        assert classify(session, button_event("e1", button_id)).type == expected

    def test_unknown_button_in_flow_is_unrecognized(self):
        intent = classify_registered(AWAIT_AMOUNT, button_event("e1", "learn_more"))
        assert intent == Intent(IntentType.UNRECOGNIZED, "learn_more")

    def test_unknown_button_in_main_is_unrecognized(self):
        intent = classify_registered(MAIN, button_event("e1", "add_funds"))
        assert intent == Intent(IntentType.UNRECOGNIZED, "add_funds")


class TestStepRules:
    def test_cancel_in_flow(self):
        assert classify(AWAIT_RECIPIENT, text_event("e1", "Cancel please")).type == IntentType.CANCEL_FLOW
        assert classify(AWAIT_AMOUNT, text_event("e1", "CANCEL")).type == IntentType.CANCEL_FLOW

    def test_cancel_in_main(self):
        assert classify(MAIN, text_event("e1", "cancel")).type == IntentType.CANCEL_FLOW

    def test_recipient_text(self):
        assert classify(AWAIT_RECIPIENT, text_event("e1", " +27831234568 ")) == Intent(
            IntentType.SET_RECIPIENT, "+27831234568"
        )

    def test_amount_text(self):
        assert classify(AWAIT_AMOUNT, text_event("e1", "25.50")) == Intent(IntentType.SET_AMOUNT, "25.50")

    def test_free_text_in_main(self):
        assert classify(MAIN, text_event("e1", "what is this")) == Intent(IntentType.UNRECOGNIZED, "what is this")

    def test_is_cancel_message(self):
        assert is_cancel_message("please CANCEL") is True
        assert is_cancel_message("") is False
        assert is_cancel_message(None) is False
