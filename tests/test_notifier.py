import asyncio
import json

import httpx

from app.services.notifications import MAIN_MENU, BalanceNotification, OutboundMessage
from app.services.notifier import WhatsAppNotifier, build_payload
from app.services.result import ErrorCode
from fakes import ALICE


def make_notifier(handler, **kwargs):
    kwargs.setdefault("backoff_seconds", 0)
    return WhatsAppNotifier(
        "token-123",
        "1098765",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


def ok_handler(requests):
    def handler(request):
        requests.append(request)
        return httpx.Response(200, json={"messages": [{"id": "wamid.OUT1"}]})

    return handler


class TestBuildPayload:
    def test_text_payload_strips_plus(self):
        payload = build_payload(OutboundMessage(to=ALICE, body="Hello"))
        assert payload == {
            "messaging_product": "whatsapp",
            "to": "27831234567",
            "type": "text",
            "text": {"body": "Hello"},
        }

    def test_interactive_payload_lists_reply_buttons(self):
        payload = build_payload(OutboundMessage(to=ALICE, body="Pick one", buttons=MAIN_MENU))
        assert payload["type"] == "interactive"
        assert payload["interactive"]["type"] == "button"
        assert payload["interactive"]["body"] == {"text": "Pick one"}
        buttons = payload["interactive"]["action"]["buttons"]
        assert [b["reply"]["id"] for b in buttons] == ["check_balance", "send_money", "download_app"]
        assert all(b["type"] == "reply" for b in buttons)


class TestSend:
    def test_success_returns_message_id(self):
        requests = []
        notifier = make_notifier(ok_handler(requests))

        result = asyncio.run(notifier.send(OutboundMessage(to=ALICE, body="Hi")))

        assert result.ok
        assert result.value == "wamid.OUT1"
        [request] = requests
        assert request.url.path == "/v20.0/1098765/messages"
        assert request.headers["Authorization"] == "Bearer token-123"
        assert json.loads(request.content)["to"] == "27831234567"

    def test_retries_transient_errors_then_succeeds(self):
        attempts = []

        def handler(request):
            attempts.append(request)
            if len(attempts) < 3:
                return httpx.Response(500, json={"error": {"message": "oops"}})
            return httpx.Response(200, json={"messages": [{"id": "wamid.OK"}]})

        result = asyncio.run(make_notifier(handler, max_attempts=3).send(OutboundMessage(to=ALICE, body="Hi")))

        assert result.ok
        assert len(attempts) == 3

    def test_gives_up_after_max_attempts(self):
        attempts = []

        def handler(request):
            attempts.append(request)
            return httpx.Response(429)

        result = asyncio.run(make_notifier(handler, max_attempts=2).send(OutboundMessage(to=ALICE, body="Hi")))

        assert not result.ok
        assert result.error_code == ErrorCode.LEDGER_UNAVAILABLE.value
        assert len(attempts) == 2

    def test_client_error_is_not_retried(self):
        attempts = []

        def handler(request):
            attempts.append(request)
            return httpx.Response(400, json={"error": {"message": "Invalid parameter"}})

        result = asyncio.run(make_notifier(handler).send(OutboundMessage(to=ALICE, body="Hi")))

        assert not result.ok
        assert "Invalid parameter" in result.error
        assert len(attempts) == 1

    def test_invalid_message_never_hits_the_wire(self):
        requests = []
        notifier = make_notifier(ok_handler(requests))

        result = asyncio.run(notifier.send(OutboundMessage(to=ALICE, body="x" * 4097)))

        assert not result.ok
        assert result.error_code == ErrorCode.VALIDATION_ERROR.value
        assert requests == []

    def test_missing_credentials(self):
        requests = []
        notifier = WhatsAppNotifier("", "", transport=httpx.MockTransport(ok_handler(requests)))

        result = asyncio.run(notifier.send(OutboundMessage(to=ALICE, body="Hi")))

        assert not result.ok
        assert result.error_code == "not_configured"
        assert requests == []

    def test_notify_renders_with_currency(self):
        requests = []
        notifier = make_notifier(ok_handler(requests), currency_symbol="R", app_name="Tata Mali")

        result = asyncio.run(notifier.notify(BalanceNotification(to=ALICE, balance_minor=12345)))

        assert result.ok
        body = json.loads(requests[0].content)["interactive"]["body"]["text"]
        assert body == "💰 Your Tata Mali balance is R123.45."
