"""
Confidence scoring for a completed batch.

A heuristic triage signal for reviewers, not a correctness proof. Starts at
100, subtracts fixed penalties for suspicious outcomes, adds a bonus
proportional to rule coverage and clamps to [0, 100].
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Sequence

from calculator.decimal_math import clamp, divide
from config.settings import ScoringSettings
from models.apuracao import Totals
from models.federal import FederalItemResult, FederalTotals
from models.line_item import AssessedItem


class ConfidenceScorer:

    def __init__(self, settings: Optional[ScoringSettings] = None):
        self.settings = settings or ScoringSettings()

    def score(self, items: Sequence[AssessedItem], totals: Optional[Totals] = None) -> int:
        totals = totals or Totals()
        # Failed items may carry rules applied before the error; they do not count
        covered = sum(1 for item in items if not item.failed and item.applied_rules)
        anomaly = totals.substitution_due > totals.tax_due
        return self._score(len(items), covered, totals.tax_due, anomaly)

    def score_federal(
        self,
        results: Sequence[FederalItemResult],
        totals: Optional[FederalTotals] = None,
    ) -> int:
        totals = totals or FederalTotals()
        covered = sum(1 for result in results if not result.failed and result.applied_benefits)
        return self._score(len(results), covered, totals.total_due, anomaly=False)

    def _score(self, item_count: int, covered: int, tax_due: Decimal, anomaly: bool) -> int:
        s = self.settings
        score = Decimal(100)

        if item_count == 0:
            score -= s.empty_items_penalty
        if tax_due == 0:
            score -= s.zero_tax_penalty
        if anomaly:
            score -= s.substitution_anomaly_penalty
        bonus = divide(s.coverage_bonus_max * covered, item_count, default=0)
        score += clamp(bonus, 0, s.coverage_bonus_max)

        score = clamp(score, 0, 100)
        return int(score.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def score(items: Sequence[AssessedItem], totals: Optional[Totals] = None) -> int:
    return ConfidenceScorer().score(items, totals)
