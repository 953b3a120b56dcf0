# feerecon/utils/money.py
#
# All fee arithmetic goes through Decimal. Store payloads are
# JSON, so amounts arrive as int, float, str or null, and now
# and then as garbage like "" or "NaN". Everything funnels
# through to_decimal() so a bad row counts as zero instead of
# poisoning a total.

from decimal import Decimal, InvalidOperation
from typing import Any, Iterable

ZERO = Decimal("0")


def to_decimal(value: Any) -> Decimal:
    """Coerce a store value to a finite Decimal. Anything unusable → 0."""
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip().replace(",", ""))
        except (InvalidOperation, ValueError):
            return ZERO
    if not result.is_finite():
        return ZERO
    # 500000.0 (a float that went through the store) reads as 500000
    whole = result.to_integral_value()
    return whole if whole == result else result


def non_negative(value: Any) -> Decimal:
    amount = to_decimal(value)
    return amount if amount > ZERO else ZERO


def clamp_remaining(required: Decimal, paid: Decimal) -> Decimal:
    return max(ZERO, required - paid)


def sum_amounts(values: Iterable[Any]) -> Decimal:
    return sum((to_decimal(v) for v in values), ZERO)
