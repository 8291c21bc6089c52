import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from app.services.result import ErrorCode, Result

# E.164: leading +, no leading zero in the country code, 9-15 digits total
PHONE_PATTERN = re.compile(r"^\+[1-9]\d{8,14}$")
AMOUNT_PATTERN = re.compile(r"^[0-9]+(\.[0-9]{1,2})?$")

MINOR_UNITS = 100

AMOUNT_FORMAT_ERROR = "invalid_format"
AMOUNT_NOT_POSITIVE = "not_positive"
AMOUNT_OVER_MAXIMUM = "over_maximum"


def is_valid_phone(phone: str | None) -> bool:
    return bool(phone) and PHONE_PATTERN.match(phone) is not None


def normalize_phone(raw: str | None) -> str:
    """Provider senders arrive as bare digits; the wallet keys on E.164."""
    value = (raw or "").strip()
    if not value:
        return ""
    return value if value.startswith("+") else f"+{value}"


def to_minor(amount: Decimal) -> int:
    return int((amount * MINOR_UNITS).to_integral_value(rounding=ROUND_HALF_UP))


def from_minor(amount_minor: int) -> Decimal:
    return (Decimal(amount_minor) / MINOR_UNITS).quantize(Decimal("0.01"))


def format_money(amount_minor: int, symbol: str = "R") -> str:
    return f"{symbol}{from_minor(amount_minor):,.2f}"


def parse_amount(text: str | None, max_amount: Decimal) -> Result[int]:
    """Parse a user-typed decimal amount into minor units.

    More than two decimal places is a format error, never a rounding.
    """
    candidate = (text or "").strip()
    if not AMOUNT_PATTERN.match(candidate):
        return Result.failure(AMOUNT_FORMAT_ERROR, ErrorCode.VALIDATION_ERROR)

    try:
        amount = Decimal(candidate)
    except InvalidOperation:
        return Result.failure(AMOUNT_FORMAT_ERROR, ErrorCode.VALIDATION_ERROR)

    if amount <= 0:
        return Result.failure(AMOUNT_NOT_POSITIVE, ErrorCode.VALIDATION_ERROR)
    if amount > max_amount:
        return Result.failure(AMOUNT_OVER_MAXIMUM, ErrorCode.VALIDATION_ERROR)

    return Result.success(to_minor(amount))


def parse_ledger_amount(value) -> int:
    """Ledger balances arrive as strings or floats in major units."""
    if value is None or value == "":
        return 0
    try:
        return to_minor(Decimal(str(value)))
    except InvalidOperation:
        return 0
