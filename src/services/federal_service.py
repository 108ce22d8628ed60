"""
Federal Apuração Service - PIS, COFINS, IRPJ and CSLL over the same items.

Same contract as ApuracaoService: the run always returns a
FederalApuracaoResult, items that fail are isolated, and the result is
frozen once finished. There is no cross-period state in this variant.
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from calculator.aggregator import Aggregator
from calculator.benefit_stacker import BenefitStacker
from calculator.confidence import ConfidenceScorer
from calculator.decimal_math import format_money
from calculator.periods import normalize_period
from config.settings import get_settings
from domain.exceptions import InvalidPeriodError
from models.federal import BenefitRule, FederalApuracaoResult, FederalItemResult, FederalTotals, LedgerEntry
from models.line_item import LineItem
from rules.rule_types import RunStatus, SubTax
from validation.fiscal_validators import is_valid_tax_id, line_code_issues, strip_non_digits

from .logging_config import RunLogger, get_logger

logger = get_logger(__name__)


class FederalApuracaoService:
    """Runs the benefit stacker over a batch of items."""

    def __init__(
        self,
        stacker: Optional[BenefitStacker] = None,
        aggregator: Optional[Aggregator] = None,
        scorer: Optional[ConfidenceScorer] = None,
        max_workers: Optional[int] = None,
    ):
        settings = get_settings()
        self.stacker = stacker or BenefitStacker()
        self.aggregator = aggregator or Aggregator()
        self.scorer = scorer or ConfidenceScorer(settings.scoring)
        self.max_workers = max(1, max_workers or settings.max_workers)

    def run(
        self,
        taxpayer_id: str,
        period: str,
        items: Sequence[LineItem],
        ledger: Sequence[LedgerEntry] = (),
        benefit_rules: Optional[Sequence[BenefitRule]] = None,
    ) -> FederalApuracaoResult:
        """
        Run the federal apuração of one taxpayer and period.

        Args:
            taxpayer_id: CNPJ, punctuated or not
            period: YYYYMM, YYYY-MM or MM/YYYY
            items: Parsed line items
            ledger: Auxiliary credit ledger entries
            benefit_rules: Overrides the stacker's benefit rules for this run

        Returns:
            FederalApuracaoResult with status done or failed
        """
        items = list(items or [])
        result = FederalApuracaoResult(
            taxpayer_id=taxpayer_id,
            period=str(period),
            status=RunStatus.RUNNING,
            started_at=datetime.now(timezone.utc),
        )
        run_log = RunLogger("federal", str(taxpayer_id), str(period))
        run_log.start(len(items))

        try:
            self._execute(result, items, list(ledger or ()), benefit_rules, run_log)
        except Exception as e:
            logger.exception(f"Unexpected failure in federal apuração {taxpayer_id}/{period}")
            self._fail(result, f"Erro inesperado: {type(e).__name__}: {e}")

        status = RunStatus.FAILED if result.errors else RunStatus.DONE
        result.finish(status)
        run_log.finish(status.value, confidence=result.confidence, items=len(result.items))
        return result

    def _execute(
        self,
        result: FederalApuracaoResult,
        items: List[LineItem],
        ledger: List[LedgerEntry],
        benefit_rules: Optional[Sequence[BenefitRule]],
        run_log: RunLogger,
    ) -> None:
        if not is_valid_tax_id(result.taxpayer_id):
            self._fail(result, f"CNPJ inválido: {result.taxpayer_id!r}")
            return
        result.taxpayer_id = strip_non_digits(result.taxpayer_id)

        try:
            result.period = normalize_period(result.period)
        except InvalidPeriodError as e:
            self._fail(result, f"Período inválido: {e.period!r}")
            return

        stacker = self.stacker
        if benefit_rules is not None:
            stacker = BenefitStacker(benefit_rules, evaluator=self.stacker.evaluator)
        result.benefit_rules = list(stacker.benefit_rules)

        step = run_log.step("items")
        result.items = self._stack(stacker, items, ledger)
        run_log.complete_step("items", step, count=len(result.items))

        for item in result.items:
            if item.failed:
                result.observations.append(
                    f"Item {item.line.item_id} excluído dos totais: {item.error}"
                )

        totals = self.aggregator.aggregate_federal(result.items)
        result.totals = totals
        result.confidence = self.scorer.score_federal(result.items, totals)

        for sub_tax in SubTax:
            due = totals.due_by_sub_tax.get(sub_tax.value)
            if due is not None:
                result.observations.append(f"{sub_tax.value.upper()} a recolher: {format_money(due)}")

    def _stack(
        self,
        stacker: BenefitStacker,
        items: List[LineItem],
        ledger: List[LedgerEntry],
    ) -> List[FederalItemResult]:
        def stack_one(line: LineItem) -> FederalItemResult:
            issues = line_code_issues(line)
            if issues:
                return FederalItemResult(
                    line=line, base=line.net_amount, error="; ".join(issues), observations=issues,
                )
            return stacker.stack(line, ledger)

        if not items:
            return []
        workers = min(self.max_workers, len(items))
        if workers == 1:
            return [stack_one(line) for line in items]
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="federal") as executor:
            return list(executor.map(stack_one, items))

    def _fail(self, result: FederalApuracaoResult, message: str) -> None:
        logger.warning(f"Federal apuração {result.taxpayer_id}/{result.period} failed: {message}")
        result.totals = FederalTotals()
        result.confidence = 0
        result.errors.append(message)
        result.observations.append(f"Apuração falhou: {message}")
