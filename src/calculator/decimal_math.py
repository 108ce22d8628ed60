"""
Decimal Math Utilities for ICMS and federal assessments.

Provides precise decimal arithmetic so that per-item amounts and period
totals add up to the centavo. All engine arithmetic goes through these
functions instead of float arithmetic.

Conventions:
- Money is rounded to centavos with ROUND_HALF_UP.
- Rates and percentages are expressed in percent (18 means 18%).
- Sums are exact; rounding happens when an item amount is produced, so
  aggregating the same items in any order yields the same totals.
"""

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Iterable, Optional

from models._decimal_utils import Numeric, money, percent, to_decimal

ZERO = Decimal("0")

__all__ = [
    "Numeric",
    "ZERO",
    "clamp",
    "divide",
    "format_money",
    "format_percentage",
    "money",
    "non_negative",
    "percent",
    "sum_money",
    "to_decimal",
    "try_decimal",
]


def try_decimal(value: object) -> Optional[Decimal]:
    """
    Convert to Decimal when possible, otherwise return None.

    Used by the condition evaluator, where a non-numeric value simply
    fails a numeric comparison.
    """
    if value is None or isinstance(value, (list, tuple, dict)):
        return None
    try:
        result = to_decimal(value.strip() if isinstance(value, str) else value)
    except (InvalidOperation, ValueError, TypeError):
        return None
    if not result.is_finite():
        return None
    return result


def divide(a: Numeric, b: Numeric, default: Optional[Numeric] = None) -> Decimal:
    """
    Divide a by b.

    Args:
        a: Dividend
        b: Divisor
        default: Value to return on division by zero (None raises)

    Raises:
        InvalidOperation: If b is zero and no default provided
    """
    b_dec = to_decimal(b)
    if b_dec == 0:
        if default is not None:
            return to_decimal(default)
        raise InvalidOperation("Division by zero")
    return to_decimal(a) / b_dec


def non_negative(value: Numeric) -> Decimal:
    """Floor a value at zero."""
    value = to_decimal(value)
    return value if value > 0 else ZERO


def clamp(value: Numeric, minimum: Numeric, maximum: Numeric) -> Decimal:
    """Clamp value into [minimum, maximum]."""
    return max(to_decimal(minimum), min(to_decimal(value), to_decimal(maximum)))


def sum_money(values: Iterable[Numeric]) -> Decimal:
    """Sum money values exactly and round the result to centavos."""
    return money(sum((to_decimal(v) for v in values), ZERO))


def format_money(value: Numeric) -> str:
    """
    Format a value as Brazilian currency text.

    Examples:
        >>> format_money(1234.5)
        'R$ 1.234,50'
        >>> format_money(-10)
        '-R$ 10,00'
    """
    amount = money(value)
    sign = "-" if amount < 0 else ""
    text = f"{abs(amount):,.2f}"
    # 1,234.50 -> 1.234,50
    text = text.replace(",", "_").replace(".", ",").replace("_", ".")
    return f"{sign}R$ {text}"


def format_percentage(value: Numeric, decimal_places: int = 2) -> str:
    """
    Format a percent rate in Brazilian notation.

    Examples:
        >>> format_percentage(7.6)
        '7,60%'
    """
    quantum = Decimal(1).scaleb(-decimal_places)
    amount = to_decimal(value).quantize(quantum, rounding=ROUND_HALF_UP)
    return f"{amount}%".replace(".", ",")
