from decimal import Decimal

import pytest

from errors import ValidationFailed
from money import MAX_AMOUNT_CENTS, cents_to_decimal, parse_amount, to_cents


def test_to_cents_accepts_numbers_and_formatted_strings() -> None:
    assert to_cents(Decimal("12.34")) == 1234
    assert to_cents(0.1) == 10
    assert to_cents(100) == 10_000
    assert to_cents("฿1,250.50") == 125_050
    assert to_cents("0.005") == 1


@pytest.mark.parametrize("value", [0, "0.00", -5, "-0.01", "0.004"])
def test_non_positive_amounts_are_rejected(value) -> None:
    with pytest.raises(ValidationFailed):
        to_cents(value)


@pytest.mark.parametrize("value", ["abc", "", "NaN", True])
def test_garbage_amounts_are_rejected(value) -> None:
    with pytest.raises(ValidationFailed):
        parse_amount(value)


def test_cents_to_decimal_has_two_places() -> None:
    assert str(cents_to_decimal(5)) == "0.05"
    assert str(cents_to_decimal(-1250)) == "-12.50"
    assert str(cents_to_decimal(0)) == "0.00"


@pytest.mark.parametrize(
    "value", [Decimal("1e20"), "100000000000.00", "1e999999", Decimal("9e999999")]
)
def test_oversized_amounts_are_rejected(value) -> None:
    with pytest.raises(ValidationFailed):
        to_cents(value)


def test_largest_amount_is_accepted() -> None:
    assert to_cents("99,999,999,999.99") == MAX_AMOUNT_CENTS
