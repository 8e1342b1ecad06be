"""Decimal money helpers. All amounts are stored with 2 decimal places."""

from decimal import ROUND_DOWN, ROUND_HALF_DOWN, ROUND_HALF_UP, Decimal
from typing import Iterable, Union

CENT = Decimal("0.01")


def round_money(value: Union[Decimal, float, int, str]) -> Decimal:
    """
    Round monetary value to 2 decimal places using ROUND_HALF_UP.

    Negative values round half toward zero.

    Examples:
        >>> round_money(10.125)
        Decimal('10.13')
        >>> round_money("10.115")
        Decimal('10.12')
    """
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    if value < 0:
        return value.quantize(CENT, rounding=ROUND_HALF_DOWN)
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def sum_money(values: Iterable[Union[Decimal, float, int, str]]) -> Decimal:
    """Rounded sum; an empty iterable gives 0.00."""
    return round_money(sum((Decimal(str(v)) for v in values), Decimal("0")))


def split_money(total: Union[Decimal, float, int, str], parts: int) -> list[Decimal]:
    """
    Split an amount into ``parts`` shares; leftover cents go to the last share.

    Examples:
        >>> split_money(Decimal("1000.00"), 3)
        [Decimal('333.33'), Decimal('333.33'), Decimal('333.34')]
    """
    if parts < 1:
        raise ValueError("parts must be at least 1")
    total = round_money(total)
    share = (total / parts).quantize(CENT, rounding=ROUND_DOWN)
    return [share] * (parts - 1) + [round_money(total - share * (parts - 1))]
