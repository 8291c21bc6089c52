import pytest

from app.models import Session
from app.services.state_machine import (
    DialogueStep,
    InvalidTransitionError,
    can_transition,
    is_in_flow,
    transition,
)

PHONE = "+27831234567"


class TestValidTransitions:
    def test_main_to_await_recipient(self):
        assert transition(DialogueStep.MAIN, DialogueStep.AWAIT_RECIPIENT) == DialogueStep.AWAIT_RECIPIENT

    def test_await_recipient_to_await_amount(self):
        assert transition(DialogueStep.AWAIT_RECIPIENT, DialogueStep.AWAIT_AMOUNT) == DialogueStep.AWAIT_AMOUNT

    def test_flow_steps_return_to_main(self):
        assert transition(DialogueStep.AWAIT_RECIPIENT, DialogueStep.MAIN) == DialogueStep.MAIN
        assert transition(DialogueStep.AWAIT_AMOUNT, DialogueStep.MAIN) == DialogueStep.MAIN

    def test_restart_from_amount(self):
        assert transition(DialogueStep.AWAIT_AMOUNT, DialogueStep.AWAIT_RECIPIENT) == DialogueStep.AWAIT_RECIPIENT


class TestInvalidTransitions:
    def test_main_to_await_amount(self):
        with pytest.raises(InvalidTransitionError):
            transition(DialogueStep.MAIN, DialogueStep.AWAIT_AMOUNT)

    def test_main_to_main(self):
        with pytest.raises(InvalidTransitionError):
            transition(DialogueStep.MAIN, DialogueStep.MAIN)

    def test_can_transition(self):
        assert can_transition(DialogueStep.MAIN, DialogueStep.AWAIT_RECIPIENT) is True
        assert can_transition(DialogueStep.AWAIT_AMOUNT, DialogueStep.AWAIT_AMOUNT) is False

    def test_is_in_flow(self):
        assert is_in_flow(DialogueStep.MAIN) is False
        assert is_in_flow(DialogueStep.AWAIT_RECIPIENT) is True
        assert is_in_flow(DialogueStep.AWAIT_AMOUNT) is True


class TestSessionInvariant:
    def test_new_session_is_main(self):
        session = Session(phone=PHONE)
        assert session.step == DialogueStep.MAIN
        assert session.pending_recipient is None
        assert session.version == 0

    def test_pending_recipient_requires_await_amount(self):
        with pytest.raises(ValueError):
            Session(phone=PHONE, step=DialogueStep.MAIN, pending_recipient="+27831234568")

    def test_await_amount_requires_pending_recipient(self):
        with pytest.raises(ValueError):
            Session(phone=PHONE, step=DialogueStep.AWAIT_AMOUNT)

    def test_full_flow_bumps_version(self):
        session = Session(phone=PHONE).start_transfer()
        assert session.step == DialogueStep.AWAIT_RECIPIENT
        session = session.await_amount("+27831234568")
        assert session.step == DialogueStep.AWAIT_AMOUNT
        assert session.pending_recipient == "+27831234568"
        session = session.reset()
        assert session.step == DialogueStep.MAIN
        assert session.pending_recipient is None
        assert session.version == 3

    def test_reset_in_main_stays_main(self):
        assert Session(phone=PHONE).reset().step == DialogueStep.MAIN

    def test_await_amount_from_main_is_invalid(self):
        with pytest.raises(InvalidTransitionError):
            Session(phone=PHONE).await_amount("+27831234568")

    def test_dict_round_trip(self):
        session = Session(phone=PHONE).start_transfer().await_amount("+27831234568").mark_event("wamid.9")
        assert Session.from_dict(session.to_dict()) == session
