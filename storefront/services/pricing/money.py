from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Union

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

Number = Union[Decimal, int, float, str]


def to_decimal(value: Number | None) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    # go through str so floats like 0.1 don't drag binary noise along
    return Decimal(str(value))


def round_money(amount: Number) -> Decimal:
    """Round to cents, half up."""
    return to_decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


def percent_of(amount: Number, percent: Number) -> Decimal:
    return round_money(to_decimal(amount) * to_decimal(percent) / Decimal("100"))


def money_sum(amounts: Iterable[Decimal]) -> Decimal:
    return round_money(sum(amounts, ZERO))
