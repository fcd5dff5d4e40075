"""Fixed-point decimal helpers."""

from __future__ import annotations

from decimal import Decimal

import pytest

from zyra_launchpad.errors import InvalidInputError
from zyra_launchpad.numeric import fmt, parse_amount, quantize, to_decimal


@pytest.mark.parametrize("value", [None, 1.5, True, "abc", "", "NaN", "Infinity", "1e"])
def test_to_decimal_rejects_non_decimal_input(value):
    with pytest.raises(InvalidInputError):
        to_decimal(value)


def test_to_decimal_accepts_strings_ints_and_decimals():
    assert to_decimal(" 12.5 ") == Decimal("12.5")
    assert to_decimal(7) == Decimal(7)
    assert to_decimal(Decimal("0.0000001")) == Decimal("0.0000001")


def test_quantize_rounds_half_away_from_zero():
    assert quantize(Decimal("0.00000005")) == Decimal("0.0000001")
    assert quantize(Decimal("-0.00000005")) == Decimal("-0.0000001")
    assert quantize(Decimal("0.00000004")) == Decimal("0.0000000")
    assert quantize(Decimal(50) / 3) == Decimal("16.6666667")


def test_fmt_always_has_seven_fraction_digits():
    assert fmt(Decimal(1)) == "1.0000000"
    assert fmt(Decimal("600")) == "600.0000000"
    assert fmt(Decimal("-0.00000001")) == "0.0000000"


def test_parse_amount_requires_positive():
    with pytest.raises(InvalidInputError):
        parse_amount("0")
    with pytest.raises(InvalidInputError):
        parse_amount("-1")


def test_parse_amount_rejects_excess_precision():
    assert parse_amount("1.1234567") == Decimal("1.1234567")
    with pytest.raises(InvalidInputError, match="fractional digits"):
        parse_amount("1.12345678")


def test_parse_amount_error_names_the_field():
    with pytest.raises(InvalidInputError, match="total_payout_amount"):
        parse_amount("x", "total_payout_amount")
