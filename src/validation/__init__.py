"""Fiscal code validators and rule validation."""

from .fiscal_validators import (
    is_valid_tax_id,
    is_valid_operation_class_code,
    is_valid_situation_code,
    is_valid_product_class_code,
    is_valid_jurisdiction,
    strip_non_digits,
    format_tax_id,
    operation_direction,
    line_code_issues,
)

from .rule_validator import (
    RuleValidator,
    RuleValidationResult,
    ValidationIssue,
)

__all__ = [
    # Fiscal validators
    'is_valid_tax_id',
    'is_valid_operation_class_code',
    'is_valid_situation_code',
    'is_valid_product_class_code',
    'is_valid_jurisdiction',
    'strip_non_digits',
    'format_tax_id',
    'operation_direction',
    'line_code_issues',
    # Rule validation
    'RuleValidator',
    'RuleValidationResult',
    'ValidationIssue',
]
