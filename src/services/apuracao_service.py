"""
Apuração Service - orchestrates one rule-based assessment run.

Pipeline:
- Validate the taxpayer CNPJ and the period
- Load and validate the rule set (with retry)
- Validate item codes; malformed items are marked failed
- Apply rules to the remaining items on a worker pool
- Aggregate totals
- Settle the secondary levy against the prior-period credit
- Score the run

Every outcome, including store outages and unexpected errors, comes back
as an ApuracaoResult; run() never raises.
"""

from datetime import datetime, timezone
from typing import List, Optional, Sequence

from calculator.aggregator import Aggregator
from calculator.carryover import CreditCarryoverManager, describe_balance
from calculator.confidence import ConfidenceScorer
from calculator.decimal_math import format_money
from calculator.periods import normalize_period
from calculator.rule_engine import RuleApplicationEngine
from config.settings import Settings, get_settings
from domain.exceptions import (
    CarryoverConflictError,
    CarryoverStoreUnavailableError,
    InvalidPeriodError,
    RuleStoreUnavailableError,
)
from domain.repositories import IApuracaoResultRepository
from models.apuracao import ApuracaoResult, Totals
from models.line_item import AssessedItem, LineItem
from resilience.retry import RetryConfig, RetryExhausted, call_with_retry
from rules.rule_store import RuleStore
from rules.rule_types import RunStatus
from validation.fiscal_validators import is_valid_tax_id, line_code_issues, strip_non_digits

from .logging_config import RunLogger, get_logger

logger = get_logger(__name__)


class ApuracaoService:
    """
    Application service for ICMS-style apuração runs.

    Collaborators are injected; anything omitted is built from settings.
    The carryover manager is optional: without it the secondary levy is
    reported in the totals but not settled.
    """

    def __init__(
        self,
        rule_store: RuleStore,
        carryover: Optional[CreditCarryoverManager] = None,
        engine: Optional[RuleApplicationEngine] = None,
        aggregator: Optional[Aggregator] = None,
        scorer: Optional[ConfidenceScorer] = None,
        result_repository: Optional[IApuracaoResultRepository] = None,
        settings: Optional[Settings] = None,
        retry_config: Optional[RetryConfig] = None,
    ):
        self.settings = settings or get_settings()
        self.rule_store = rule_store
        self.carryover = carryover
        self.engine = engine or RuleApplicationEngine(
            max_workers=self.settings.max_workers,
            confidence_threshold=self.settings.rule_confidence_threshold,
        )
        self.aggregator = aggregator or Aggregator()
        self.scorer = scorer or ConfidenceScorer(self.settings.scoring)
        self.result_repository = result_repository
        self.retry_config = retry_config or RetryConfig.from_settings()

    def run(
        self,
        taxpayer_id: str,
        period: str,
        items: Sequence[LineItem],
        refresh_rules: bool = False,
        jurisdiction: Optional[str] = None,
    ) -> ApuracaoResult:
        """
        Run the apuração of one taxpayer and period.

        Args:
            taxpayer_id: CNPJ, punctuated or not
            period: YYYYMM, YYYY-MM or MM/YYYY
            items: Parsed line items, in document order
            refresh_rules: Ask the extraction assistant for new rules first
            jurisdiction: UF whose rules apply (defaults to settings)

        Returns:
            ApuracaoResult with status done or failed
        """
        items = list(items or [])
        result = ApuracaoResult(
            taxpayer_id=taxpayer_id,
            period=str(period),
            status=RunStatus.RUNNING,
            started_at=datetime.now(timezone.utc),
        )
        run_log = RunLogger("icms", str(taxpayer_id), str(period))
        run_log.start(len(items))

        try:
            self._execute(result, items, refresh_rules, jurisdiction, run_log)
        except Exception as e:
            logger.exception(f"Unexpected failure in apuração {taxpayer_id}/{period}")
            self._fail(result, f"Erro inesperado: {type(e).__name__}: {e}")

        return self._finalize(result, run_log)

    def _execute(
        self,
        result: ApuracaoResult,
        items: List[LineItem],
        refresh_rules: bool,
        jurisdiction: Optional[str],
        run_log: RunLogger,
    ) -> None:
        if not is_valid_tax_id(result.taxpayer_id):
            self._fail(result, f"CNPJ inválido: {result.taxpayer_id!r}")
            return
        taxpayer_id = strip_non_digits(result.taxpayer_id)
        result.taxpayer_id = taxpayer_id

        try:
            result.period = normalize_period(result.period)
        except InvalidPeriodError as e:
            self._fail(result, f"Período inválido: {e.period!r}")
            return

        jurisdiction = (jurisdiction or self.settings.default_jurisdiction or "").upper() or None

        # Rules are loaded and validated before any item is processed
        step = run_log.step("rules")
        try:
            rule_set = self.rule_store.load(taxpayer_id, jurisdiction, refresh=refresh_rules)
        except RuleStoreUnavailableError as e:
            self._fail(result, f"Repositório de regras indisponível: {e.reason}")
            return
        run_log.complete_step("rules", step, active=len(rule_set.active))

        result.rules = rule_set.considered
        result.rejected_rules = [rejected.describe() for rejected in rule_set.rejected]
        result.observations.extend(rule_set.observations)
        result.observations.append(
            f"Regras: {len(rule_set.active)} ativa(s), {len(rule_set.skipped)} inativa(s), "
            f"{len(rule_set.rejected)} rejeitada(s)"
        )
        for rejected in rule_set.rejected:
            result.observations.append(f"Regra rejeitada {rejected.describe()}")

        step = run_log.step("items")
        result.items = self._assess(items, rule_set.active)
        run_log.complete_step("items", step, count=len(result.items))

        for item in result.items:
            if item.failed:
                result.observations.append(
                    f"Item {item.line.item_id} excluído dos totais: {item.error}"
                )

        step = run_log.step("aggregate")
        totals = self.aggregator.aggregate(result.items)
        run_log.complete_step("aggregate", step, tax_due=str(totals.tax_due))

        if self.carryover is not None:
            step = run_log.step("carryover")
            try:
                balance = self.carryover.settle(taxpayer_id, result.period, totals.secondary_levy_due)
            except (CarryoverStoreUnavailableError, CarryoverConflictError) as e:
                self._fail(result, f"Falha no crédito cruzado: {e}")
                return
            result.carryover = balance
            if balance.debit > 0 or balance.prior_credit > 0:
                result.observations.append(describe_balance(balance))
            run_log.complete_step("carryover", step, amount_due=str(balance.amount_due))

        result.totals = totals
        result.confidence = self.scorer.score(result.items, totals)
        result.observations.append(
            f"Imposto devido: {format_money(totals.tax_due)}; "
            f"crédito presumido: {format_money(totals.presumed_credit)}"
        )
        if totals.protection_levy_due > 0:
            result.observations.append(
                f"PROTEGE 15% a recolher: {format_money(totals.protection_levy_due)}"
            )

    def _assess(self, items: List[LineItem], rules) -> List[AssessedItem]:
        """Apply rules to valid items; malformed items come back failed, in place."""
        assessed: List[Optional[AssessedItem]] = [None] * len(items)
        valid_positions = []
        for position, line in enumerate(items):
            issues = line_code_issues(line)
            if issues:
                failed = AssessedItem.from_line(line)
                failed.error = "; ".join(issues)
                failed.observations.extend(issues)
                assessed[position] = failed
            else:
                valid_positions.append(position)

        applied = self.engine.apply([items[p] for p in valid_positions], rules)
        for position, item in zip(valid_positions, applied):
            assessed[position] = item
        return assessed

    def _fail(self, result: ApuracaoResult, message: str) -> None:
        logger.warning(f"Apuração {result.taxpayer_id}/{result.period} failed: {message}")
        result.totals = Totals()
        result.confidence = 0
        result.errors.append(message)
        result.observations.append(f"Apuração falhou: {message}")

    def _finalize(self, result: ApuracaoResult, run_log: RunLogger) -> ApuracaoResult:
        status = RunStatus.FAILED if result.errors else RunStatus.DONE

        if self.result_repository is not None:
            snapshot = result.model_copy(
                update={"status": status, "finished_at": datetime.now(timezone.utc)}
            )
            snapshot.finalize()
            try:
                call_with_retry(
                    self.result_repository.save, snapshot,
                    config=self.retry_config, operation="save_apuracao_result",
                )
            except RetryExhausted as e:
                logger.warning(f"Could not persist result {result.taxpayer_id}/{result.period}: {e}")
                result.observations.append(f"Resultado não foi persistido: {e.last_exception}")

        result.finish(status)
        run_log.finish(
            status.value,
            confidence=result.confidence,
            items=len(result.items),
            errors=len(result.errors),
        )
        return result
