from collections.abc import Iterable
from decimal import ROUND_HALF_DOWN, ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

# Type alias for money values
Money = Decimal

ZERO = Decimal("0.00")


def round_money(value: Union[Decimal, float, int, str]) -> Decimal:
    """
    Round monetary value to 2 decimal places using ROUND_HALF_UP.

    Examples:
        >>> round_money(10.125)
        Decimal('10.13')
        >>> round_money(10.124)
        Decimal('10.12')
        >>> round_money("10.115")
        Decimal('10.12')
    """
    if not isinstance(value, Decimal):
        try:
            value = Decimal(str(value))
        except InvalidOperation as e:
            raise ValueError(f"Not a monetary value: {value!r}") from e
    if value < 0:
        return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_DOWN)
    return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def sum_money(values: Iterable[Union[Decimal, float, int, str]]) -> Decimal:
    """Sum amounts and round the total. Empty input sums to 0.00."""
    return round_money(sum((Decimal(str(v)) for v in values), Decimal("0")))


def clamp_due(billed: Decimal, paid: Decimal) -> Decimal:
    """Outstanding amount for one billable item, never negative."""
    return round_money(max(ZERO, billed - paid))
