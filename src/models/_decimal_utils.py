"""
Decimal conversion and centavo rounding shared by models and calculators.

Lives in models/ so that models can round amounts without importing the
calculator package; calculator.decimal_math re-exports these functions
and builds the rest of the arithmetic helpers on them.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Union

# Type alias for values that can be converted to Decimal
Numeric = Union[int, float, str, Decimal]

MONEY_PLACES = Decimal("0.01")     # Centavos
HUNDRED = Decimal("100")


def to_decimal(value: Numeric) -> Decimal:
    """
    Convert a numeric value to Decimal.

    Floats go through ``str`` to keep their printed representation.

    Examples:
        >>> to_decimal(100.50)
        Decimal('100.5')
        >>> to_decimal("7.6")
        Decimal('7.6')
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        return Decimal(int(value))
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def money(value: Numeric) -> Decimal:
    """
    Round a value to centavos with ROUND_HALF_UP.

    Examples:
        >>> money(100.995)
        Decimal('101.00')
    """
    return to_decimal(value).quantize(MONEY_PLACES, rounding=ROUND_HALF_UP)


def percent(value: Numeric, percentage: Numeric) -> Decimal:
    """
    Apply a percentage to a value, rounded to centavos.

    Examples:
        >>> percent(1000, 18)
        Decimal('180.00')
        >>> percent(1000, "1.65")
        Decimal('16.50')
    """
    return money(to_decimal(value) * to_decimal(percentage) / HUNDRED)
