"""
Rule vocabulary, condition evaluation and formula catalog.

Only the type vocabulary is re-exported here; import the evaluator,
catalog and store from their modules (``rules.conditions``,
``rules.formulas``, ``rules.rule_store``) to keep ``models`` free of
circular imports.
"""

from .rule_types import (
    BenefitType,
    ConditionField,
    ConditionOperator,
    LogicConnector,
    ResultKind,
    RuleKind,
    RunStatus,
    SubTax,
)

__all__ = [
    'BenefitType',
    'ConditionField',
    'ConditionOperator',
    'LogicConnector',
    'ResultKind',
    'RuleKind',
    'RunStatus',
    'SubTax',
]
