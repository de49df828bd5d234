"""Monetary helpers.

All amounts are ``Decimal`` values rounded half-up to whole cents, matching
the ``Numeric(10, 2)`` columns they are stored in.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value) -> Decimal:
    """Convert ``value`` to a cent-rounded Decimal.

    Floats go through ``str`` first so ``4.99`` stays ``4.99``.
    """
    if isinstance(value, float):
        value = str(value)
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def parse_decimal(value) -> Decimal | None:
    """Best-effort parse of a configured number; ``None`` when it is not one."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float):
        value = str(value)
    try:
        parsed = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        return None
    if not parsed.is_finite():
        return None
    return parsed


def percentage_of(amount: Decimal, percentage: Decimal) -> Decimal:
    return to_money(amount * percentage / Decimal(100))


def format_money(amount: Decimal, symbol: str = "$") -> str:
    return f"{symbol}{to_money(amount):,.2f}"
