"""Chat replies. Every dialogue turn answers the user with exactly one of these."""

from urllib.parse import quote

from app.services.notifications import BALANCE_MENU, MAIN_MENU, REGISTER_MENU, RETRY_MENU, Button, OutboundMessage
from app.services.validators import format_money

MSG_MENU_PROMPT = "What would you like to do?"
MSG_CANCEL_HINT = 'Or type "cancel" to return to main menu.'
GREETING_WORDS = {"menu", "hi", "hello", "start"}
MSG_SEND_MONEY_PROMPT = (
    "💸 *Send Money*\n\nEnter recipient phone number in international format:\n\n"
    "📱 Examples:\n• +27831234567 (South Africa)\n• +1234567890 (US)\n• +44123456789 (UK)\n\n"
    'Or type "cancel" to return to main menu.'
)
MSG_RECIPIENT_EMPTY = "❌ Please enter a phone number. Format: +27831234567"
MSG_RECIPIENT_INVALID = (
    "❌ Invalid phone number format.\n\nPlease use international format:\n"
    "• +27831234567\n• Include country code\n• Start with +\n\n"
    'Or type "cancel" to return to main menu.'
)
MSG_RECIPIENT_SELF = '❌ You cannot send money to yourself.\n\nEnter a different phone number or type "cancel".'
MSG_AMOUNT_EMPTY = "❌ Please enter an amount. Format: 25.50"
MSG_AMOUNT_INVALID = (
    "❌ Invalid amount format.\n\nValid examples:\n• 25\n• 25.50\n• 100.00\n\n"
    'Please enter a valid amount or type "cancel" to return to main menu.'
)
MSG_AMOUNT_NOT_POSITIVE = "❌ Amount must be greater than 0.\n\nPlease enter a valid amount:"
MSG_FLOW_CANCELLED = "✅ Send money cancelled. What would you like to do?"
MSG_CANCELLED = "✅ Cancelled. What would you like to do?"
MSG_HELP = "📋 *Available Commands:*\n\nUse the buttons below to check your balance, send money or get the app."
MSG_NOT_UNDERSTOOD = '❓ I didn\'t understand that message.\n\nType "help" for commands or use the buttons below:'
MSG_BALANCE_UNAVAILABLE = "Sorry, unable to check balance right now. Please try again."
MSG_AMOUNT_BALANCE_UNAVAILABLE = "❌ Unable to check balance. Please try again."
MSG_SERVICE_UNAVAILABLE = "Sorry, our service is temporarily unavailable. Please try again in a few minutes."
MSG_CLAIM_FAILED = "Unable to redeem. Maybe already used or expired."
MSG_RECIPIENT_LOST = "❌ Error: recipient not found. Let's start over."
MSG_REGISTRATION_FAILED = (
    "❌ Registration was not completed.\n\nPlease try again or contact support if you continue to have issues.\n\n"
    "You can start over by scanning the QR code again."
)
MSG_UNREGISTERED = (
    "👋 Welcome to {app_name}!\n\nYou do not have a registered account yet. "
    "To use our banking services, you will need to create an account first."
)
MSG_REGISTER_LINK = (
    "🔗 Click the link below to create your {app_name} account:\n\n{url}\n\n"
    "Once you complete registration, you will be able to:\n"
    "• Check your balance\n• Send money to contacts\n• Receive payments\n• Access all banking features\n\n"
    "The registration will only take a few minutes!"
)


def wants_help(raw: str | None) -> bool:
    """'help' anywhere in the message, or a bare greeting."""
    lowered = (raw or "").strip().lower()
    return "help" in lowered or lowered in GREETING_WORDS


def text(to: str, body: str) -> OutboundMessage:
    return OutboundMessage(to=to, body=body)


def with_menu(to: str, body: str, buttons: tuple[Button, ...] = MAIN_MENU) -> OutboundMessage:
    return OutboundMessage(to=to, body=body, buttons=buttons)


def balance_reply(to: str, balance_minor: int, symbol: str) -> OutboundMessage:
    return with_menu(to, f"Your balance is {format_money(balance_minor, symbol)}. {MSG_MENU_PROMPT}", MAIN_MENU)


def recipient_accepted(to: str, recipient: str, symbol: str) -> OutboundMessage:
    return text(to, f"✅ Recipient: {recipient}\n\nNow enter the amount (e.g. {symbol}25.50 → 25.50):")


def amount_over_maximum(to: str, max_minor: int, symbol: str) -> OutboundMessage:
    return text(
        to,
        f"❌ Maximum amount is {format_money(max_minor, symbol)}.\n\nPlease enter a smaller amount:",
    )


def insufficient_funds(to: str, balance_minor: int, requested_minor: int, symbol: str) -> OutboundMessage:
    return with_menu(
        to,
        (
            "❌ Insufficient funds!\n\n"
            f"💰 Your balance: {format_money(balance_minor, symbol)}\n"
            f"💸 Requested amount: {format_money(requested_minor, symbol)}\n\n"
            "What would you like to do?"
        ),
        RETRY_MENU,
    )


def claim_succeeded(to: str, amount_minor: int | None, balance_minor: int | None, symbol: str) -> OutboundMessage:
    body = f"🎉 You've claimed {format_money(amount_minor, symbol)}." if amount_minor else "🎉 Coupon redeemed."
    if balance_minor is not None:
        body += f" New balance is {format_money(balance_minor, symbol)}."
    return with_menu(to, f"{body} What would you like to do next?")


def transfer_failed(to: str, reason: str | None) -> OutboundMessage:
    body = f"❌ Transfer failed: {reason}" if reason else "❌ Transfer failed. Please try again."
    return with_menu(to, body)


def transfer_unconfirmed(to: str) -> OutboundMessage:
    return with_menu(
        to,
        (
            "⏳ We could not confirm your transfer right now.\n\n"
            "Please check your balance before trying again, so the payment is not sent twice."
        ),
        BALANCE_MENU,
    )


def unregistered(to: str, app_name: str) -> OutboundMessage:
    return with_menu(to, MSG_UNREGISTERED.format(app_name=app_name), REGISTER_MENU)


def registration_link(to: str, register_url: str, callback_base_url: str, app_name: str) -> OutboundMessage:
    callback_url = f"{callback_base_url.rstrip('/')}/api/auth/register-callback"
    url = f"{register_url}?phone={quote(to, safe='')}&callback={quote(callback_url, safe='')}"
    return text(to, MSG_REGISTER_LINK.format(app_name=app_name, url=url))


def download_link(to: str, download_url: str, app_name: str) -> OutboundMessage:
    return with_menu(to, f"📱 Download the {app_name} app here:\n\n{download_url}", BALANCE_MENU)


def step_guidance(to: str, awaiting_amount: bool) -> OutboundMessage:
    if awaiting_amount:
        return text(to, f"💰 Please enter the amount to send (e.g. 25.50).\n\n{MSG_CANCEL_HINT}")
    return text(to, f"📱 Please enter the recipient phone number (e.g. +27831234567).\n\n{MSG_CANCEL_HINT}")
