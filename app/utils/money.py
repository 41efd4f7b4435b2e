from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional

CENTS = Decimal("0.01")


def to_cents(value: Any) -> Optional[int]:
    """Return *value* as a positive integer amount of cents, or None.

    Integral floats/Decimals and plain digit strings are accepted; booleans,
    fractions, NaN/inf and non-positive numbers are not.
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, str):
        value = value.strip()
        if not value.isdigit():
            return None
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    if not number.is_finite() or number != number.to_integral_value():
        return None
    cents = int(number)
    return cents if cents > 0 else None


def cents_to_decimal(cents: int) -> Decimal:
    return (Decimal(cents) / 100).quantize(CENTS, rounding=ROUND_HALF_UP)


def format_cents(cents: int) -> str:
    return f"${cents_to_decimal(cents):,.2f}"


def is_multiple_of(amount: int, step: int) -> bool:
    if step <= 0:
        raise ValueError("Step must be positive")
    return amount % step == 0
