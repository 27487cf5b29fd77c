from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Union


Number = Union[int, float, str, Decimal]

CENT = Decimal("0.01")


def to_decimal(value: Number) -> Decimal:
    """Parse an amount without going through binary floating point."""
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError, TypeError):
        raise ValueError(f"Invalid amount: {value!r}")
    if not amount.is_finite():
        raise ValueError(f"Invalid amount: {value!r}")
    return amount


def to_minor_units(value: Number) -> int:
    """Convert a major-unit amount to integer cents, rounding half up."""
    return int((to_decimal(value) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(value: int) -> Decimal:
    return (Decimal(int(value)) / 100).quantize(CENT)


def format_currency(value: Number, currency: str = "usd") -> str:
    """Render an amount as it appears on receipts and emails, e.g. ``$1,250.00``."""
    amount = to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)
    symbol = "$" if currency.lower() in ("usd", "cad", "aud", "nzd") else ""
    sign = "-" if amount < 0 else ""
    formatted = f"{sign}{symbol}{abs(amount):,.2f}"
    return formatted if symbol else f"{formatted} {currency.upper()}"
