"""
Aggregator: folds item results into period totals.

A single left fold over the items. Every contribution is an exact Decimal
addition of amounts already rounded per item, so the totals do not depend
on item order. Items carrying an error marker are counted but not summed.
"""

from decimal import Decimal
from functools import reduce
from typing import Dict, Iterable

from models.apuracao import Totals
from models.federal import FederalItemResult, FederalTotals
from models.line_item import AssessedItem

ZERO = Decimal("0")


def _accumulate(mapping: Dict[str, Decimal], key: str, amount: Decimal) -> None:
    mapping[key] = mapping.get(key, ZERO) + amount


class Aggregator:
    """Period totals for ICMS-style and federal runs."""

    def aggregate(self, items: Iterable[AssessedItem]) -> Totals:
        return reduce(self._fold, items, Totals())

    def _fold(self, totals: Totals, item: AssessedItem) -> Totals:
        totals.item_count += 1
        if item.failed:
            totals.failed_item_count += 1
            return totals

        tax_due = item.tax_due
        totals.operation_amount += item.line.operation_amount
        totals.base += item.base
        totals.tax_due += tax_due
        totals.substitution_base += item.substitution_base
        totals.substitution_due += item.substitution_due
        totals.differential_due += item.differential_due
        totals.presumed_credit += item.presumed_credit
        totals.secondary_levy_due += item.levy_due
        totals.protection_levy_due += item.protection_levy_due

        for rule_id in dict.fromkeys(item.applied_rules):
            _accumulate(totals.by_rule, rule_id, tax_due)
        for kind in dict.fromkeys(item.applied_kinds):
            _accumulate(totals.by_benefit, kind.value, tax_due)
        return totals

    def aggregate_federal(self, results: Iterable[FederalItemResult]) -> FederalTotals:
        return reduce(self._fold_federal, results, FederalTotals())

    def _fold_federal(self, totals: FederalTotals, result: FederalItemResult) -> FederalTotals:
        totals.item_count += 1
        if result.failed:
            totals.failed_item_count += 1
            return totals

        totals.operation_amount += result.line.operation_amount
        totals.base += result.base

        item_due = ZERO
        for sub_tax, sub_result in result.sub_taxes.items():
            _accumulate(totals.due_by_sub_tax, sub_tax.value, sub_result.due)
            for credit_type, amount in sub_result.credits.items():
                _accumulate(totals.credits_by_type, credit_type, amount)
            totals.exempted_amount += sub_result.exempted_amount
            item_due += sub_result.due

        for benefit_id in dict.fromkeys(result.applied_benefits):
            _accumulate(totals.by_benefit, benefit_id, item_due)
        return totals


def aggregate(items: Iterable[AssessedItem]) -> Totals:
    return Aggregator().aggregate(items)
