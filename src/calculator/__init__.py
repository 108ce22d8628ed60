"""
Assessment calculators.

Only the decimal helpers are re-exported here because the rules and
validation packages import them; import the engines from their modules
(``calculator.rule_engine``, ``calculator.benefit_stacker``,
``calculator.aggregator``, ``calculator.carryover``,
``calculator.confidence``).
"""

from .decimal_math import (
    to_decimal,
    money,
    percent,
    sum_money,
    format_money,
    format_percentage,
)

__all__ = [
    "to_decimal",
    "money",
    "percent",
    "sum_money",
    "format_money",
    "format_percentage",
]
