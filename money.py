from decimal import ROUND_HALF_UP, Decimal, DecimalException, InvalidOperation
from typing import Union

from errors import ValidationFailed

CENT = Decimal("0.01")
# keeps sums of many rows well inside a signed 64-bit column
MAX_AMOUNT_CENTS = 99_999_999_999_99
CURRENCY_SYMBOLS = ("฿", "€", "$")


def parse_amount(value: Union[str, int, float, Decimal]) -> Decimal:
    """Parse user input such as ``"฿1,250.50"`` or ``12.5`` into a Decimal.

    Commas are thousands separators. Floats go through ``str`` so that
    ``0.1`` stays ``Decimal("0.1")`` instead of its binary expansion.
    """
    if isinstance(value, bool):
        raise ValidationFailed("Invalid amount")
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, float)):
        amount = Decimal(str(value))
    else:
        clean = value.strip()
        for symbol in CURRENCY_SYMBOLS:
            clean = clean.replace(symbol, "")
        clean = clean.replace(",", "").replace(" ", "")
        try:
            amount = Decimal(clean)
        except InvalidOperation as exc:
            raise ValidationFailed("Invalid amount") from exc
    if not amount.is_finite():
        raise ValidationFailed("Invalid amount")
    return amount


def to_cents(value: Union[str, int, float, Decimal]) -> int:
    amount = parse_amount(value)
    try:
        cents = int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    except DecimalException as exc:
        raise ValidationFailed("Amount is too large") from exc
    if cents <= 0:
        raise ValidationFailed("Amount must be a positive number")
    if cents > MAX_AMOUNT_CENTS:
        raise ValidationFailed(
            f"Amount must be at most {cents_to_decimal(MAX_AMOUNT_CENTS)}"
        )
    return cents


def cents_to_decimal(cents: int) -> Decimal:
    return (Decimal(cents) / 100).quantize(CENT)
