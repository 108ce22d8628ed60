"""
Deterministic validation of assessment rules.

Every rule goes through the same checks before it can be active, whether it
was authored manually, shipped as a default, or proposed by the extraction
assistant.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional

from pydantic import ValidationError

from calculator.decimal_math import try_decimal
from models.rule import Condition, Rule
from rules.formulas import FormulaCatalog
from rules.rule_types import ConditionField, ConditionOperator

logger = logging.getLogger(__name__)

ITEM_FIELDS = frozenset(f.value for f in ConditionField)

NUMERIC_OPERATORS = (ConditionOperator.GREATER_THAN, ConditionOperator.LESS_THAN)


@dataclass
class ValidationIssue:
    field: str
    message: str
    severity: str = "error"  # "error" | "warning"


@dataclass
class RuleValidationResult:
    rule: Optional[Rule]
    issues: List[ValidationIssue] = field(default_factory=list)

    @property
    def errors(self) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity == "error"]

    @property
    def warnings(self) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity == "warning"]

    @property
    def is_valid(self) -> bool:
        return self.rule is not None and not self.errors

    def summary(self) -> str:
        return "; ".join(f"{i.field}: {i.message}" for i in self.errors)


class RuleValidator:
    """
    Structural and confidence checks for rules.

    Unknown condition fields and unknown formula keys are warnings only:
    at run time they resolve to an empty value and to zero respectively.
    """

    def __init__(self, confidence_threshold: int = 70, catalog: Optional[FormulaCatalog] = None):
        self.confidence_threshold = confidence_threshold
        self.catalog = catalog

    def validate(self, rule: Rule) -> RuleValidationResult:
        issues: List[ValidationIssue] = []

        if not rule.id or not rule.id.strip():
            issues.append(ValidationIssue("id", "Rule id is required."))
        if not rule.label or not rule.label.strip():
            issues.append(ValidationIssue("label", "Rule label is required."))
        if not rule.calculations:
            issues.append(ValidationIssue("calculations", "Rule has no calculations."))
        if not rule.conditions:
            issues.append(
                ValidationIssue("conditions", "Rule has no conditions and matches every item.",
                                severity="warning")
            )

        for index, condition in enumerate(rule.conditions):
            issues.extend(self._check_condition(index, condition))

        for index, calculation in enumerate(rule.calculations):
            prefix = f"calculations[{index}]"
            for name in calculation.parameters:
                if name not in ITEM_FIELDS:
                    issues.append(ValidationIssue(prefix, f"Unknown parameter '{name}'."))
            if self.catalog is not None and calculation.formula not in self.catalog:
                issues.append(
                    ValidationIssue(prefix, f"Unknown formula '{calculation.formula}' evaluates to 0.",
                                    severity="warning")
                )

        if rule.confidence is not None and rule.confidence < self.confidence_threshold:
            issues.append(
                ValidationIssue(
                    "confidence",
                    f"Confidence {rule.confidence} is below the threshold {self.confidence_threshold}.",
                )
            )

        result = RuleValidationResult(rule=rule, issues=issues)
        if not result.is_valid:
            logger.warning(f"Rule {rule.id!r} rejected: {result.summary()}")
        return result

    def validate_candidate(self, data: Mapping[str, Any]) -> RuleValidationResult:
        """Parse a raw mapping into a Rule, then validate it."""
        try:
            rule = Rule.model_validate(dict(data))
        except ValidationError as e:
            issues = [
                ValidationIssue(".".join(str(p) for p in err["loc"]) or "rule", err["msg"])
                for err in e.errors()
            ]
            logger.warning(f"Candidate rule {data.get('id')!r} is malformed: {len(issues)} error(s)")
            return RuleValidationResult(rule=None, issues=issues)
        return self.validate(rule)

    def _check_condition(self, index: int, condition: Condition) -> List[ValidationIssue]:
        prefix = f"conditions[{index}]"
        issues: List[ValidationIssue] = []

        if condition.field not in ITEM_FIELDS:
            issues.append(
                ValidationIssue(prefix, f"Unknown field '{condition.field}' resolves to an empty value.",
                                severity="warning")
            )

        value = condition.value
        if condition.operator == ConditionOperator.BETWEEN:
            if not isinstance(value, list) or len(value) != 2:
                issues.append(ValidationIssue(prefix, "'between' requires exactly two bounds."))
            elif any(try_decimal(bound) is None for bound in value):
                issues.append(ValidationIssue(prefix, "'between' bounds must be numeric."))
        elif condition.operator in NUMERIC_OPERATORS:
            if isinstance(value, list) or try_decimal(value) is None:
                issues.append(
                    ValidationIssue(prefix, f"'{condition.operator.value}' requires a numeric value.")
                )
        return issues
