from decimal import Decimal

import pytest

from app.services.validators import (
    AMOUNT_FORMAT_ERROR,
    AMOUNT_NOT_POSITIVE,
    AMOUNT_OVER_MAXIMUM,
    format_money,
    from_minor,
    is_valid_phone,
    normalize_phone,
    parse_amount,
    parse_ledger_amount,
    to_minor,
)

MAX = Decimal("10000")


class TestPhoneValidation:
    @pytest.mark.parametrize("phone", ["+27831234567", "+1234567890", "+441234567890"])
    def test_valid_e164(self, phone):
        assert is_valid_phone(phone) is True

    @pytest.mark.parametrize(
        "phone",
        ["27831234567", "+0831234567", "+2783", "+27 83 123 4567", "+2783123456789012", "", None, "abc"],
    )
    def test_invalid(self, phone):
        assert is_valid_phone(phone) is False

    def test_normalize_adds_plus(self):
        assert normalize_phone("27831234567") == "+27831234567"
        assert normalize_phone(" +27831234567 ") == "+27831234567"
        assert normalize_phone("") == ""
        assert normalize_phone(None) == ""


class TestParseAmount:
    @pytest.mark.parametrize(
        "text,expected",
        [("25", 2500), ("25.5", 2550), ("25.50", 2550), ("0.01", 1), ("10000", 1000000), (" 7.25 ", 725)],
    )
    def test_valid_amounts(self, text, expected):
        result = parse_amount(text, MAX)
        assert result.ok
        assert result.value == expected

    @pytest.mark.parametrize("text", ["25.555", "abc", "-5", "1e3", "25,50", "R25", "", None, "."])
    def test_format_errors(self, text):
        result = parse_amount(text, MAX)
        assert not result.ok
        assert result.error == AMOUNT_FORMAT_ERROR
        assert result.error_code == "validation_error"

    def test_three_decimals_is_rejected_not_rounded(self):
        assert parse_amount("10.005", MAX).error == AMOUNT_FORMAT_ERROR

    @pytest.mark.parametrize("text", ["0", "0.00", "0.0"])
    def test_zero_is_not_positive(self, text):
        assert parse_amount(text, MAX).error == AMOUNT_NOT_POSITIVE

    def test_over_maximum(self):
        assert parse_amount("10000.01", MAX).error == AMOUNT_OVER_MAXIMUM
        assert parse_amount("50", Decimal("49.99")).error == AMOUNT_OVER_MAXIMUM


class TestMoney:
    def test_minor_round_trip(self):
        assert to_minor(Decimal("12.34")) == 1234
        assert from_minor(1234) == Decimal("12.34")

    def test_format_money(self):
        assert format_money(123450) == "R1,234.50"
        assert format_money(5, "$") == "$0.05"

    @pytest.mark.parametrize(
        "value,expected",
        [("150.25", 15025), (150.25, 15025), (100, 10000), (None, 0), ("", 0), ("n/a", 0)],
    )
    def test_parse_ledger_amount(self, value, expected):
        assert parse_ledger_amount(value) == expected
