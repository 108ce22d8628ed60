"""
Period keys (YYYYMM) and calendar arithmetic between them.
"""

import re
from typing import List

from domain.exceptions import InvalidPeriodError

_COMPACT = re.compile(r"^(\d{4})(\d{2})$")
_ISO = re.compile(r"^(\d{4})-(\d{2})$")
_BR = re.compile(r"^(\d{2})/(\d{4})$")


def _split(period: str):
    match = _COMPACT.match(period)
    if match:
        return int(match.group(1)), int(match.group(2))
    match = _ISO.match(period)
    if match:
        return int(match.group(1)), int(match.group(2))
    match = _BR.match(period)
    if match:
        return int(match.group(2)), int(match.group(1))
    return None


def normalize_period(period: object) -> str:
    """
    Normalize a period to YYYYMM.

    Accepts 'YYYYMM', 'YYYY-MM' and 'MM/YYYY'.

    Raises:
        InvalidPeriodError: For anything else, or a month outside 1-12
    """
    if not isinstance(period, str):
        raise InvalidPeriodError(period)
    parts = _split(period.strip())
    if parts is None:
        raise InvalidPeriodError(period)
    year, month = parts
    if not 1 <= month <= 12 or year < 1:
        raise InvalidPeriodError(period)
    return f"{year:04d}{month:02d}"


def is_valid_period(period: object) -> bool:
    try:
        normalize_period(period)
    except InvalidPeriodError:
        return False
    return True


def add_months(period: str, months: int) -> str:
    """Shift a period by a number of months (negative goes back)."""
    year, month = _split(normalize_period(period))
    index = year * 12 + (month - 1) + months
    return f"{index // 12:04d}{index % 12 + 1:02d}"


def previous_period(period: str) -> str:
    """
    Examples:
        >>> previous_period("202401")
        '202312'
    """
    return add_months(period, -1)


def next_period(period: str) -> str:
    """
    Examples:
        >>> next_period("202412")
        '202501'
    """
    return add_months(period, 1)


def period_range(start: str, end: str) -> List[str]:
    """All periods from start to end, inclusive; empty when end < start."""
    current, end = normalize_period(start), normalize_period(end)
    periods = []
    while current <= end:
        periods.append(current)
        current = next_period(current)
    return periods
