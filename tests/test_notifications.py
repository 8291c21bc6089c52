import pytest

from app.services.errors import ValidationError
from app.services.notifications import (
    MAIN_MENU,
    BalanceNotification,
    Button,
    LowBalanceNotification,
    OutboundMessage,
    PromotionNotification,
    TransactionReceivedNotification,
    TransactionSentNotification,
    WelcomeNotification,
    render_notification,
    validate_outbound,
)
from fakes import ALICE, BOB


class TestValidateOutbound:
    def test_accepts_plain_text_at_limit(self):
        validate_outbound(OutboundMessage(to=ALICE, body="x" * 4096))

    @pytest.mark.parametrize(
        "message",
        [
            OutboundMessage(to="27831234567", body="hi"),
            OutboundMessage(to=ALICE, body="   "),
            OutboundMessage(to=ALICE, body="x" * 4097),
            OutboundMessage(to=ALICE, body="x" * 1025, buttons=MAIN_MENU),
            OutboundMessage(to=ALICE, body="hi", buttons=MAIN_MENU + (Button("four", "Four"),)),
            OutboundMessage(to=ALICE, body="hi", buttons=(Button("a", "t" * 21),)),
            OutboundMessage(to=ALICE, body="hi", buttons=(Button("", "Title"),)),
        ],
    )
    def test_rejects_provider_limit_violations(self, message):
        with pytest.raises(ValidationError):
            validate_outbound(message)


class TestRender:
    def test_balance(self):
        message = render_notification(BalanceNotification(to=ALICE, balance_minor=123456))
        assert message.body == "💰 Your Tata Mali balance is R1,234.56."
        assert [b.id for b in message.buttons] == ["send_money", "download_app"]

    def test_welcome_with_and_without_name(self):
        assert "Hello Thandi!" in render_notification(WelcomeNotification(to=ALICE, first_name="Thandi")).body
        assert "Hello!" in render_notification(WelcomeNotification(to=ALICE)).body

    def test_sent_includes_balance_when_known(self):
        message = render_notification(
            TransactionSentNotification(to=ALICE, amount_minor=2550, recipient=BOB, new_balance_minor=7450)
        )
        assert f"Successfully sent R25.50 to {BOB}" in message.body
        assert "R74.50" in message.body
        assert message.buttons == MAIN_MENU

    def test_received_without_balance(self):
        message = render_notification(TransactionReceivedNotification(to=BOB, amount_minor=2550, sender=ALICE))
        assert message.body == f"💸 You received R25.50 from {ALICE}!"

    def test_low_balance(self):
        message = render_notification(LowBalanceNotification(to=ALICE, balance_minor=250), app_name="Wallet")
        assert "Your Wallet balance is only R2.50" in message.body

    def test_promotion(self):
        message = render_notification(PromotionNotification(to=ALICE, campaign="new_feature"), app_name="Wallet")
        assert "Wallet now supports instant transfers" in message.body
        assert len(message.buttons) == 2

    def test_unknown_campaign_is_rejected(self):
        with pytest.raises(ValidationError):
            PromotionNotification(to=ALICE, campaign="black_friday")

    def test_every_variant_passes_outbound_validation(self):
        for notification in (
            BalanceNotification(to=ALICE, balance_minor=0),
            WelcomeNotification(to=ALICE),
            TransactionSentNotification(to=ALICE, amount_minor=1, recipient=BOB),
            TransactionReceivedNotification(to=BOB, amount_minor=1, sender=ALICE),
            LowBalanceNotification(to=ALICE, balance_minor=1),
            PromotionNotification(to=ALICE, campaign="weekend_special"),
        ):
            validate_outbound(render_notification(notification))

    def test_unsupported_type(self):
        with pytest.raises(TypeError):
            render_notification(object())
