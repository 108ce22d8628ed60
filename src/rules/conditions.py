"""
Condition evaluation against line items.

Fields and operators are resolved through registered function tables. An
unknown field resolves to an empty value; it never raises. All conditions
of a rule are combined with AND and evaluation stops at the first failing
one. The per-condition ``logic`` connector is carried by the model but not
interpreted.
"""

import logging
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, Optional, Union

from calculator.decimal_math import try_decimal
from models.line_item import AssessedItem, LineItem
from models.rule import Condition
from rules.rule_types import ConditionField, ConditionOperator

logger = logging.getLogger(__name__)

Item = Union[AssessedItem, LineItem]
FieldAccessor = Callable[[Item], Any]
OperatorFunc = Callable[[Any, Any], bool]


def _line(item: Item) -> LineItem:
    return item.line if isinstance(item, AssessedItem) else item


def _current_base(item: Item) -> Decimal:
    return item.base if isinstance(item, AssessedItem) else item.net_amount


def _current_rate(item: Item) -> Decimal:
    return item.rate if isinstance(item, AssessedItem) else item.declared_rate


FIELD_ACCESSORS: Dict[str, FieldAccessor] = {
    ConditionField.CFOP.value: lambda item: _line(item).cfop,
    ConditionField.NCM.value: lambda item: _line(item).ncm,
    ConditionField.CST.value: lambda item: _line(item).cst,
    ConditionField.JURISDICTION.value: lambda item: _line(item).jurisdiction,
    ConditionField.DESTINATION_JURISDICTION.value: lambda item: _line(item).destination_jurisdiction,
    ConditionField.CUSTOMER_TYPE.value: lambda item: _line(item).customer_type,
    ConditionField.DESCRIPTION.value: lambda item: _line(item).description,
    ConditionField.AMOUNT.value: lambda item: _line(item).operation_amount,
    ConditionField.DISCOUNTS.value: lambda item: _line(item).discounts,
    ConditionField.QUANTITY.value: lambda item: _line(item).quantity,
    ConditionField.DECLARED_TAX.value: lambda item: _line(item).declared_tax,
    ConditionField.BASE.value: _current_base,
    ConditionField.RATE.value: _current_rate,
}


def resolve_field(item: Item, field_name: str) -> Any:
    """Read a field from an item; unknown fields and None yield ''."""
    return _default_evaluator.resolve(item, field_name)


def _as_text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else str(value)


def _equal(actual: Any, expected: Any) -> bool:
    # Text fields (codes) compare as strings so "020" != "20";
    # numeric fields compare as numbers so 1000 == "1000.00".
    if isinstance(actual, (Decimal, int, float)) and not isinstance(actual, bool):
        expected_num = try_decimal(expected)
        return expected_num is not None and try_decimal(actual) == expected_num
    return _as_text(actual) == _as_text(expected)


def _any_of(expected: Any, test: Callable[[Any], bool]) -> bool:
    if isinstance(expected, list):
        return any(test(v) for v in expected)
    return test(expected)


def _equals(actual: Any, expected: Any) -> bool:
    return _any_of(expected, lambda v: _equal(actual, v))


def _not_equals(actual: Any, expected: Any) -> bool:
    return not _equals(actual, expected)


def _contains(actual: Any, expected: Any) -> bool:
    text = _as_text(actual)
    return _any_of(expected, lambda v: _as_text(v) in text)


def _starts_with(actual: Any, expected: Any) -> bool:
    text = _as_text(actual)
    return _any_of(expected, lambda v: text.startswith(_as_text(v)))


def _numeric_pair(actual: Any, expected: Any):
    if isinstance(expected, list):
        return None, None
    return try_decimal(actual), try_decimal(expected)


def _greater_than(actual: Any, expected: Any) -> bool:
    left, right = _numeric_pair(actual, expected)
    return left is not None and right is not None and left > right


def _less_than(actual: Any, expected: Any) -> bool:
    left, right = _numeric_pair(actual, expected)
    return left is not None and right is not None and left < right


def _between(actual: Any, expected: Any) -> bool:
    if not isinstance(expected, list) or len(expected) != 2:
        return False
    value = try_decimal(actual)
    low, high = try_decimal(expected[0]), try_decimal(expected[1])
    if value is None or low is None or high is None:
        return False
    return low <= value <= high


OPERATORS: Dict[ConditionOperator, OperatorFunc] = {
    ConditionOperator.EQUALS: _equals,
    ConditionOperator.NOT_EQUALS: _not_equals,
    ConditionOperator.CONTAINS: _contains,
    ConditionOperator.STARTS_WITH: _starts_with,
    ConditionOperator.GREATER_THAN: _greater_than,
    ConditionOperator.LESS_THAN: _less_than,
    ConditionOperator.BETWEEN: _between,
}


class ConditionEvaluator:
    """Decides whether an item satisfies a rule's condition list."""

    def __init__(
        self,
        accessors: Optional[Dict[str, FieldAccessor]] = None,
        operators: Optional[Dict[ConditionOperator, OperatorFunc]] = None,
    ):
        self.accessors = dict(FIELD_ACCESSORS if accessors is None else accessors)
        self.operators = dict(OPERATORS if operators is None else operators)

    def register_field(self, name: str, accessor: FieldAccessor) -> None:
        self.accessors[name] = accessor

    def resolve(self, item: Item, field_name: str) -> Any:
        accessor = self.accessors.get(field_name)
        if accessor is None:
            return ""
        value = accessor(item)
        return "" if value is None else value

    def evaluate(self, item: Item, condition: Condition) -> bool:
        operator = self.operators.get(condition.operator)
        if operator is None:
            return False
        return operator(self.resolve(item, condition.field), condition.value)

    def matches(self, item: Item, conditions: Iterable[Condition]) -> bool:
        for condition in conditions:
            if not self.evaluate(item, condition):
                return False
        return True


_default_evaluator = ConditionEvaluator()


def matches(item: Item, conditions: Iterable[Condition]) -> bool:
    """Evaluate conditions with the default field and operator tables."""
    return _default_evaluator.matches(item, conditions)
