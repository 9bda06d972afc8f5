from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

# Largest value a signed 64-bit INTEGER column holds.
MAX_AMOUNT_CENTS = 2**63 - 1


def parse_amount(value: Any) -> int:
    """
    Parse a monetary amount in major units into positive integer cents.

    Accepts numbers and numeric strings. Raises ValueError for anything that is
    not a finite number above zero once rounded half-up to cents, or that
    exceeds ``MAX_AMOUNT_CENTS``.
    """
    if value is None or isinstance(value, bool):
        raise ValueError("Invalid amount")
    if isinstance(value, (int, float, Decimal)):
        raw = str(value)
    elif isinstance(value, str):
        raw = value.strip()
    else:
        raise ValueError("Invalid amount")
    try:
        amount = Decimal(raw)
        if not amount.is_finite():
            raise ValueError("Invalid amount")
        cents = int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    except InvalidOperation as exc:
        raise ValueError("Invalid amount") from exc
    if cents <= 0:
        raise ValueError("Amount must be positive")
    if cents > MAX_AMOUNT_CENTS:
        raise ValueError("Amount is too large")
    return cents


def cents_to_amount(cents: int) -> float:
    return cents / 100
