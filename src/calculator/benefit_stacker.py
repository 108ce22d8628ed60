"""
Benefit Stacker for the federal multi-tax apuração.

PIS and COFINS (contribution style) stack benefits in a fixed order:

1. zero rate: the rate is forced to 0 before anything else
2. presumed credit: a percentage of the tax already computed, subtracted
3. input, energy, freight and packaging credits: amounts summed from the
   ledger entries tagged with that credit type and sub-tax, each subtracted
   in that order

IRPJ and CSLL (income style) take two independent benefits: exemption
zeroes the rate and records the foregone tax; reduction shrinks the base
by a percentage before the (possibly zeroed) rate is applied.

A credit is recorded only when strictly positive.
"""

import logging
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence

from calculator.decimal_math import ZERO, format_money, money, percent, sum_money
from models.federal import BenefitRule, FederalItemResult, LedgerEntry, SubTaxResult
from models.line_item import LineItem
from rules.conditions import ConditionEvaluator
from rules.federal_benefits import contribution_rate, default_benefit_rules, income_rate
from rules.rule_types import (
    CONTRIBUTION_SUB_TAXES,
    INCOME_SUB_TAXES,
    LEDGER_CREDIT_ORDER,
    BenefitType,
    SubTax,
)

logger = logging.getLogger(__name__)

CREDIT_LABELS = {
    BenefitType.PRESUMED_CREDIT: "Crédito presumido",
    BenefitType.INPUT_CREDIT: "Crédito de insumos",
    BenefitType.ENERGY_CREDIT: "Crédito de energia",
    BenefitType.FREIGHT_CREDIT: "Crédito de frete",
    BenefitType.PACKAGING_CREDIT: "Crédito de embalagens",
}


def ledger_credit(
    ledger: Iterable[LedgerEntry],
    line: LineItem,
    credit_type: BenefitType,
    sub_tax: SubTax,
) -> Decimal:
    """
    Sum the ledger credits of one type and sub-tax for an item.

    Tags match exactly. Entries must name the item's document, and when
    an entry names an item it must be this one.
    """
    return sum_money(
        entry.amount for entry in ledger
        if entry.credit_type == credit_type
        and entry.sub_tax == sub_tax
        and entry.document_ref == line.document_ref
        and (entry.item_ref is None or entry.item_ref == line.item_id)
    )


class BenefitStacker:
    """Applies federal benefits to items in the fixed stacking order."""

    def __init__(
        self,
        benefit_rules: Optional[Sequence[BenefitRule]] = None,
        evaluator: Optional[ConditionEvaluator] = None,
    ):
        rules = default_benefit_rules() if benefit_rules is None else benefit_rules
        self.benefit_rules: List[BenefitRule] = sorted(
            (r for r in rules if r.active), key=lambda r: r.id
        )
        self.evaluator = evaluator or ConditionEvaluator()

    def matched_rules(self, line: LineItem) -> Dict[BenefitType, List[BenefitRule]]:
        """Active benefit rules matching the item, grouped by type."""
        matched: Dict[BenefitType, List[BenefitRule]] = {}
        for rule in self.benefit_rules:
            if self.evaluator.matches(line, rule.conditions):
                matched.setdefault(rule.benefit_type, []).append(rule)
        return matched

    def stack(self, line: LineItem, ledger: Sequence[LedgerEntry] = ()) -> FederalItemResult:
        """Compute PIS, COFINS, IRPJ and CSLL for one item."""
        result = FederalItemResult(line=line, base=line.net_amount)
        try:
            matched = self.matched_rules(line)
            for sub_tax in CONTRIBUTION_SUB_TAXES:
                result.sub_taxes[sub_tax] = self._contribution(result, sub_tax, matched, ledger)
            for sub_tax in INCOME_SUB_TAXES:
                result.sub_taxes[sub_tax] = self._income(result, sub_tax, matched)
        except Exception as e:
            logger.warning(f"Federal item {line.item_id} failed: {type(e).__name__}: {e}")
            result.error = f"{type(e).__name__}: {e}"
            result.observations.append(f"Erro no cálculo do item: {e}")
        return result

    def _rules_for(self, matched, benefit_type: BenefitType, sub_tax: SubTax) -> List[BenefitRule]:
        return [r for r in matched.get(benefit_type, []) if not r.sub_taxes or sub_tax in r.sub_taxes]

    def _mark_applied(self, result: FederalItemResult, rules: List[BenefitRule]) -> None:
        for rule in rules:
            if rule.id not in result.applied_benefits:
                result.applied_benefits.append(rule.id)

    def _contribution(
        self,
        result: FederalItemResult,
        sub_tax: SubTax,
        matched: Dict[BenefitType, List[BenefitRule]],
        ledger: Sequence[LedgerEntry],
    ) -> SubTaxResult:
        name = sub_tax.value.upper()
        base = result.base
        rate = contribution_rate(sub_tax, result.line.cst)

        # 1. zero rate
        zero_rules = self._rules_for(matched, BenefitType.ZERO_RATE, sub_tax)
        if zero_rules:
            rate = ZERO
            self._mark_applied(result, zero_rules)
            result.observations.append(f"{name} - Alíquota zero aplicada")

        gross = percent(base, rate)
        due = gross
        credits: Dict[str, Decimal] = {}

        # 2. presumed credit on the tax already computed
        presumed_rules = self._rules_for(matched, BenefitType.PRESUMED_CREDIT, sub_tax)
        if presumed_rules:
            self._mark_applied(result, presumed_rules)
            percentage = max(r.percentage for r in presumed_rules)
            credit = percent(due, percentage)
            due -= credit
            self._record_credit(result, credits, name, BenefitType.PRESUMED_CREDIT, credit)

        # 3. ledger credits, fixed order
        for credit_type in LEDGER_CREDIT_ORDER:
            credit_rules = self._rules_for(matched, credit_type, sub_tax)
            if not credit_rules:
                continue
            self._mark_applied(result, credit_rules)
            credit = ledger_credit(ledger, result.line, credit_type, sub_tax)
            due -= credit
            self._record_credit(result, credits, name, credit_type, credit)

        return SubTaxResult(
            sub_tax=sub_tax, base=base, rate=rate, gross_due=gross, credits=credits, due=due,
        )

    def _record_credit(self, result, credits, name: str, credit_type: BenefitType, amount: Decimal) -> None:
        if amount <= 0:
            return
        credits[credit_type.value] = amount
        result.observations.append(f"{name} - {CREDIT_LABELS[credit_type]}: {format_money(amount)}")

    def _income(
        self,
        result: FederalItemResult,
        sub_tax: SubTax,
        matched: Dict[BenefitType, List[BenefitRule]],
    ) -> SubTaxResult:
        name = sub_tax.value.upper()
        base = result.base
        rate = income_rate(sub_tax)
        exempted = ZERO

        exemption_rules = self._rules_for(matched, BenefitType.EXEMPTION, sub_tax)
        if exemption_rules:
            self._mark_applied(result, exemption_rules)
            exempted = percent(base, rate)
            rate = ZERO
            if exempted > 0:
                result.observations.append(f"{name} - Isenção: {format_money(exempted)}")

        reduction_rules = self._rules_for(matched, BenefitType.REDUCTION, sub_tax)
        if reduction_rules:
            self._mark_applied(result, reduction_rules)
            percentage = max(r.percentage for r in reduction_rules)
            reduction = percent(base, percentage)
            base = money(base - reduction)
            if reduction > 0:
                result.observations.append(f"{name} - Redução de base: {format_money(reduction)}")

        due = percent(base, rate)
        return SubTaxResult(
            sub_tax=sub_tax, base=base, rate=rate, gross_due=due, exempted_amount=exempted, due=due,
        )
