"""
Rule Application Engine.

Applies an ordered rule set to line items. For each item, rules run in
priority order (highest first, ties by id) against the item's current
state: a rule sees what earlier rules did to base and rate, so a base
reduction with higher priority takes effect before a rate-dependent rule.
Rules are not mutually exclusive.

Items are independent of each other, so the map over items runs on a
bounded thread pool. Item order is preserved in the output.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Union

from calculator.decimal_math import format_percentage, money, non_negative
from config.settings import get_settings
from models.line_item import AssessedItem, LineItem
from models.rule import Calculation, Rule
from rules.conditions import ConditionEvaluator
from rules.formulas import FormulaCatalog, default_catalog
from rules.rule_types import ResultKind, RuleKind

logger = logging.getLogger(__name__)

# Rule kinds whose firing freezes the item's rate
RATE_LOCKING_KINDS = frozenset({RuleKind.EXEMPTION})


def is_runnable(rule: Rule, confidence_threshold: int = 0) -> bool:
    """Active, and not an extracted rule below the confidence threshold."""
    return rule.active and (rule.confidence is None or rule.confidence >= confidence_threshold)


def order_rules(rules: Iterable[Rule], confidence_threshold: int = 0) -> List[Rule]:
    """Runnable rules sorted by priority descending, then id."""
    return sorted(
        (r for r in rules if is_runnable(r, confidence_threshold)),
        key=lambda r: r.order_key,
    )


class RuleApplicationEngine:
    """Evaluates rule conditions per item and executes matched calculations."""

    def __init__(
        self,
        catalog: Optional[FormulaCatalog] = None,
        evaluator: Optional[ConditionEvaluator] = None,
        max_workers: int = 8,
        confidence_threshold: Optional[int] = None,
    ):
        if confidence_threshold is None:
            confidence_threshold = get_settings().rule_confidence_threshold
        self.catalog = catalog or default_catalog
        self.confidence_threshold = confidence_threshold
        self.evaluator = evaluator or ConditionEvaluator()
        self.max_workers = max(1, max_workers)
        self._writers: Dict[ResultKind, Callable[[AssessedItem, Rule, Calculation, Decimal], None]] = {
            ResultKind.BASE: self._write_base,
            ResultKind.RATE: self._write_rate,
            ResultKind.CREDIT: self._write_credit,
            ResultKind.SUBSTITUTION_BASE: self._write_substitution,
            ResultKind.DIFFERENTIAL: self._write_differential,
            ResultKind.LEVY: self._write_levy,
            ResultKind.PROTECTION_LEVY: self._write_protection_levy,
        }

    def apply(
        self,
        items: Sequence[Union[LineItem, AssessedItem]],
        rules: Iterable[Rule],
    ) -> List[AssessedItem]:
        """
        Apply rules to every item.

        Args:
            items: Line items (or working items to continue from)
            rules: Rules to consider; inactive ones and extracted ones below
                the confidence threshold are ignored

        Returns:
            One AssessedItem per input item, in input order. Items whose
            calculation failed carry an error marker instead of raising.
        """
        rules = list(rules)
        ordered = order_rules(rules, self.confidence_threshold)
        for rule in rules:
            if rule.active and not is_runnable(rule, self.confidence_threshold):
                logger.warning(
                    f"Rule {rule.id} skipped: confidence {rule.confidence} is below "
                    f"{self.confidence_threshold}"
                )
        if not items:
            return []

        workers = min(self.max_workers, len(items))
        if workers == 1:
            return [self.apply_item(item, ordered) for item in items]

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="apuracao") as executor:
            return list(executor.map(lambda item: self.apply_item(item, ordered), items))

    def apply_item(
        self,
        item: Union[LineItem, AssessedItem],
        ordered_rules: Sequence[Rule],
    ) -> AssessedItem:
        """Apply already ordered rules to one item."""
        if isinstance(item, LineItem):
            working = AssessedItem.from_line(item)
        else:
            working = item.model_copy(deep=True)

        try:
            for rule in ordered_rules:
                if self.evaluator.matches(working, rule.conditions):
                    self._fire(working, rule)
        except Exception as e:
            logger.warning(f"Item {working.line.item_id} failed: {type(e).__name__}: {e}")
            working.error = f"{type(e).__name__}: {e}"
            working.observations.append(f"Erro no cálculo do item: {e}")

        return working

    def _fire(self, item: AssessedItem, rule: Rule) -> None:
        for calculation in rule.calculations:
            value = self.catalog.evaluate(calculation.formula, item)
            self._writers[calculation.result_kind](item, rule, calculation, value)

        if rule.kind in RATE_LOCKING_KINDS:
            item.rate_locked = True

        item.applied_rules.append(rule.id)
        item.applied_kinds.append(rule.kind)
        item.observations.append(f"Regra aplicada: {rule.label}")
        logger.debug(f"Rule {rule.id} fired on item {item.line.item_id}")

    # Result writers, one per ResultKind

    def _write_base(self, item: AssessedItem, rule: Rule, calc: Calculation, value: Decimal) -> None:
        item.base = money(non_negative(value))

    def _write_rate(self, item: AssessedItem, rule: Rule, calc: Calculation, value: Decimal) -> None:
        if item.rate_locked:
            item.observations.append(
                f"Alíquota mantida em {format_percentage(item.rate)} por isenção; "
                f"'{calc.formula}' da regra {rule.id} ignorado"
            )
            return
        item.rate = value

    def _write_credit(self, item: AssessedItem, rule: Rule, calc: Calculation, value: Decimal) -> None:
        item.presumed_credit = money(item.presumed_credit + value)

    def _write_substitution(self, item: AssessedItem, rule: Rule, calc: Calculation, value: Decimal) -> None:
        item.substitution_rate = value
        item.substitution_base = item.base

    def _write_differential(self, item: AssessedItem, rule: Rule, calc: Calculation, value: Decimal) -> None:
        item.differential_due = money(value)

    def _write_levy(self, item: AssessedItem, rule: Rule, calc: Calculation, value: Decimal) -> None:
        item.levy_rate = value

    def _write_protection_levy(self, item: AssessedItem, rule: Rule, calc: Calculation, value: Decimal) -> None:
        item.protection_levy_rate = value


def apply_rules(items: Sequence[LineItem], rules: Iterable[Rule]) -> List[AssessedItem]:
    """Apply rules with the default catalog, sequentially."""
    return RuleApplicationEngine(max_workers=1).apply(items, rules)
