"""Outbound WhatsApp message shapes and the closed set of notification variants."""

from dataclasses import dataclass, field
from functools import singledispatch
from typing import Optional

from app.services.errors import ValidationError
from app.services.validators import format_money, is_valid_phone

TEXT_MAX_LENGTH = 4096
INTERACTIVE_BODY_MAX_LENGTH = 1024
MAX_BUTTONS = 3
BUTTON_TITLE_MAX_LENGTH = 20
BUTTON_ID_MAX_LENGTH = 256

BUTTON_CHECK_BALANCE = "check_balance"
BUTTON_SEND_MONEY = "send_money"
BUTTON_DOWNLOAD_APP = "download_app"
BUTTON_REGISTER_ACCOUNT = "register_account"


@dataclass(frozen=True)
class Button:
    id: str
    title: str


@dataclass(frozen=True)
class OutboundMessage:
    to: str
    body: str
    buttons: tuple[Button, ...] = field(default_factory=tuple)

    @property
    def is_interactive(self) -> bool:
        return bool(self.buttons)


MAIN_MENU = (
    Button(BUTTON_CHECK_BALANCE, "Check Balance"),
    Button(BUTTON_SEND_MONEY, "Send Money"),
    Button(BUTTON_DOWNLOAD_APP, "Download App"),
)
BALANCE_MENU = (
    Button(BUTTON_CHECK_BALANCE, "Check Balance"),
    Button(BUTTON_SEND_MONEY, "Send Money"),
)
RETRY_MENU = (
    Button(BUTTON_CHECK_BALANCE, "Check Balance"),
    Button(BUTTON_SEND_MONEY, "Try Again"),
)
REGISTER_MENU = (Button(BUTTON_REGISTER_ACCOUNT, "Create Account"),)


def validate_outbound(message: OutboundMessage) -> None:
    """Enforce the provider limits before anything goes on the wire."""
    if not is_valid_phone(message.to):
        raise ValidationError(f"Invalid recipient phone: {message.to!r}")
    if not message.body or not message.body.strip():
        raise ValidationError("Message body is empty")

    if not message.is_interactive:
        if len(message.body) > TEXT_MAX_LENGTH:
            raise ValidationError(f"Message too long. Maximum {TEXT_MAX_LENGTH} characters allowed.")
        return

    if len(message.body) > INTERACTIVE_BODY_MAX_LENGTH:
        raise ValidationError(
            f"Interactive body too long. Maximum {INTERACTIVE_BODY_MAX_LENGTH} characters allowed."
        )
    if len(message.buttons) > MAX_BUTTONS:
        raise ValidationError(f"Maximum {MAX_BUTTONS} buttons allowed for interactive messages")
    for button in message.buttons:
        if not button.id or not button.title:
            raise ValidationError("Each button must have id and title fields")
        if len(button.title) > BUTTON_TITLE_MAX_LENGTH:
            raise ValidationError(f"Button title must be {BUTTON_TITLE_MAX_LENGTH} characters or less")
        if len(button.id) > BUTTON_ID_MAX_LENGTH:
            raise ValidationError(f"Button id must be {BUTTON_ID_MAX_LENGTH} characters or less")


@dataclass(frozen=True)
class BalanceNotification:
    to: str
    balance_minor: int


@dataclass(frozen=True)
class WelcomeNotification:
    to: str
    first_name: Optional[str] = None


@dataclass(frozen=True)
class TransactionSentNotification:
    to: str
    amount_minor: int
    recipient: str
    new_balance_minor: Optional[int] = None


@dataclass(frozen=True)
class TransactionReceivedNotification:
    to: str
    amount_minor: int
    sender: str
    new_balance_minor: Optional[int] = None


@dataclass(frozen=True)
class LowBalanceNotification:
    to: str
    balance_minor: int


PROMOTION_CAMPAIGNS = {
    "new_feature": (
        "🎉 New Feature Alert!\n\n{app_name} now supports instant transfers!",
        (Button("try_transfer", "Try Transfer"), Button("learn_more", "Learn More")),
    ),
    "weekend_special": (
        "🎯 Weekend Special!\n\nSend money with zero fees this weekend!",
        (Button(BUTTON_SEND_MONEY, "Send Money"), Button("invite_friends", "Invite Friends")),
    ),
}


@dataclass(frozen=True)
class PromotionNotification:
    to: str
    campaign: str

    def __post_init__(self):
        if self.campaign not in PROMOTION_CAMPAIGNS:
            raise ValidationError(f"Unknown campaign: {self.campaign}")


def _balance_line(balance_minor: Optional[int], symbol: str) -> str:
    if balance_minor is None:
        return ""
    return f"💰 Your new balance: {format_money(balance_minor, symbol)}\n\n"


@singledispatch
def render_notification(notification, *, symbol: str = "R", app_name: str = "Tata Mali") -> OutboundMessage:
    raise TypeError(f"Unsupported notification: {type(notification).__name__}")


@render_notification.register
def _(notification: BalanceNotification, *, symbol: str = "R", app_name: str = "Tata Mali") -> OutboundMessage:
    return OutboundMessage(
        to=notification.to,
        body=f"💰 Your {app_name} balance is {format_money(notification.balance_minor, symbol)}.",
        buttons=(Button(BUTTON_SEND_MONEY, "Send Money"), Button(BUTTON_DOWNLOAD_APP, "Download App")),
    )


@render_notification.register
def _(notification: WelcomeNotification, *, symbol: str = "R", app_name: str = "Tata Mali") -> OutboundMessage:
    greeting = f"Hello {notification.first_name}!" if notification.first_name else "Hello!"
    return OutboundMessage(
        to=notification.to,
        body=(
            f"👋 {greeting} Welcome to {app_name}!\n\n"
            "Your account has been created successfully. "
            "You can now send money, check your balance, and more."
        ),
        buttons=MAIN_MENU,
    )


@render_notification.register
def _(
    notification: TransactionSentNotification, *, symbol: str = "R", app_name: str = "Tata Mali"
) -> OutboundMessage:
    body = f"✅ Successfully sent {format_money(notification.amount_minor, symbol)} to {notification.recipient}!\n\n"
    body += _balance_line(notification.new_balance_minor, symbol)
    return OutboundMessage(to=notification.to, body=body + "What would you like to do next?", buttons=MAIN_MENU)


@render_notification.register
def _(
    notification: TransactionReceivedNotification, *, symbol: str = "R", app_name: str = "Tata Mali"
) -> OutboundMessage:
    body = f"💸 You received {format_money(notification.amount_minor, symbol)} from {notification.sender}!\n\n"
    body += _balance_line(notification.new_balance_minor, symbol)
    return OutboundMessage(to=notification.to, body=body.rstrip(), buttons=BALANCE_MENU)


@render_notification.register
def _(notification: LowBalanceNotification, *, symbol: str = "R", app_name: str = "Tata Mali") -> OutboundMessage:
    return OutboundMessage(
        to=notification.to,
        body=(
            f"⚠️ Low Balance Alert!\n\nYour {app_name} balance is only "
            f"{format_money(notification.balance_minor, symbol)}. "
            "Consider adding funds to continue using our services."
        ),
        buttons=(Button("add_funds", "Add Funds"), Button(BUTTON_DOWNLOAD_APP, "Download App")),
    )


@render_notification.register
def _(notification: PromotionNotification, *, symbol: str = "R", app_name: str = "Tata Mali") -> OutboundMessage:
    template, buttons = PROMOTION_CAMPAIGNS[notification.campaign]
    return OutboundMessage(to=notification.to, body=template.format(app_name=app_name), buttons=buttons)
