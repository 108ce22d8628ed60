from .line_item import LineItem, AssessedItem
from .rule import Rule, Condition, Calculation
from .apuracao import (
    ApuracaoResult,
    Totals,
    PeriodCredit,
    CarryoverBalance,
    CarryoverStatement,
    CarryoverStatementLine,
)
from .federal import (
    BenefitRule,
    LedgerEntry,
    SubTaxResult,
    FederalItemResult,
    FederalTotals,
    FederalApuracaoResult,
)

__all__ = [
    'LineItem',
    'AssessedItem',
    'Rule',
    'Condition',
    'Calculation',
    'ApuracaoResult',
    'Totals',
    'PeriodCredit',
    'CarryoverBalance',
    'CarryoverStatement',
    'CarryoverStatementLine',
    'BenefitRule',
    'LedgerEntry',
    'SubTaxResult',
    'FederalItemResult',
    'FederalTotals',
    'FederalApuracaoResult',
]
