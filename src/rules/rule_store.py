"""
Rule store: loads and validates the rule set of a taxpayer.

Loading happens once per run, before any item is processed. Repository
calls go through retry with backoff; when they still fail the store raises
RuleStoreUnavailableError and the run fails. Invalid rules never abort a
load: they are rejected with their reasons and the run continues with the
rest.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from config.settings import get_settings
from domain.exceptions import RuleStoreUnavailableError
from domain.repositories import IRuleRepository
from models.rule import Rule
from resilience.retry import RetryConfig, RetryExhausted, call_with_retry
from rules.extraction import EXTRACTION_SOURCE, RuleExtractionAssistant
from rules.formulas import default_catalog
from validation.rule_validator import RuleValidator

logger = logging.getLogger(__name__)


@dataclass
class RejectedRule:
    rule_id: str
    reasons: List[str]

    def describe(self) -> str:
        return f"{self.rule_id}: {'; '.join(self.reasons)}"


@dataclass
class RuleSet:
    """Rules of one load, split by outcome. Active rules are in run order."""
    active: List[Rule] = field(default_factory=list)
    skipped: List[Rule] = field(default_factory=list)
    rejected: List[RejectedRule] = field(default_factory=list)
    proposed: List[Rule] = field(default_factory=list)
    observations: List[str] = field(default_factory=list)

    @property
    def considered(self) -> List[Rule]:
        return self.active + self.skipped


class RuleStore:
    """Loads, validates and optionally refreshes the rules of a taxpayer."""

    def __init__(
        self,
        repository: IRuleRepository,
        validator: Optional[RuleValidator] = None,
        assistant: Optional[RuleExtractionAssistant] = None,
        retry_config: Optional[RetryConfig] = None,
        auto_extract: Optional[bool] = None,
    ):
        settings = get_settings()
        self.repository = repository
        self.validator = validator or RuleValidator(
            confidence_threshold=settings.rule_confidence_threshold,
            catalog=default_catalog,
        )
        self.assistant = assistant
        self.retry_config = retry_config or RetryConfig.from_settings()
        self.auto_extract = settings.auto_extract_rules if auto_extract is None else auto_extract

    def load(
        self,
        taxpayer_id: str,
        jurisdiction: Optional[str] = None,
        refresh: bool = False,
    ) -> RuleSet:
        """
        Load the rule set of a taxpayer.

        Args:
            taxpayer_id: CNPJ digits of the taxpayer
            jurisdiction: Restrict to rules of this UF (plus UF-less rules)
            refresh: Ask the extraction assistant for new rules first

        Returns:
            RuleSet with active rules sorted by priority desc, then id

        Raises:
            RuleStoreUnavailableError: If the repository fails after retries
        """
        rule_set = RuleSet()

        if (refresh or self.auto_extract) and self.assistant is not None:
            self._refresh(taxpayer_id, jurisdiction, rule_set)

        try:
            stored = call_with_retry(
                self.repository.list_rules, taxpayer_id, jurisdiction,
                config=self.retry_config, operation="list_rules",
            )
        except RetryExhausted as e:
            raise RuleStoreUnavailableError(str(e.last_exception or e)) from e

        rules: Dict[str, Rule] = {rule.id: rule for rule in stored}
        for rule in rule_set.proposed:
            rules.setdefault(rule.id, rule)

        for rule in rules.values():
            result = self.validator.validate(rule)
            if not result.is_valid:
                rule_set.rejected.append(
                    RejectedRule(rule.id, [f"{i.field}: {i.message}" for i in result.errors])
                )
            elif not rule.active:
                rule_set.skipped.append(rule)
            else:
                rule_set.active.append(rule)

        rule_set.active.sort(key=lambda r: r.order_key)
        rule_set.skipped.sort(key=lambda r: r.order_key)

        logger.info(
            f"Loaded rules for {taxpayer_id}: {len(rule_set.active)} active, "
            f"{len(rule_set.skipped)} inactive, {len(rule_set.rejected)} rejected"
        )
        return rule_set

    def _refresh(self, taxpayer_id: str, jurisdiction: Optional[str], rule_set: RuleSet) -> None:
        try:
            candidates = call_with_retry(
                self.assistant.propose_rules, taxpayer_id, jurisdiction,
                config=self.retry_config, operation="propose_rules",
            )
        except RetryExhausted as e:
            logger.warning(f"Extraction assistant unavailable for {taxpayer_id}: {e}")
            rule_set.observations.append(
                f"Assistente de extração indisponível; usando regras armazenadas ({e.last_exception})"
            )
            return

        accepted = 0
        for data in candidates:
            rule, reasons = self._accept_candidate(taxpayer_id, jurisdiction, data)
            if rule is None:
                rule_set.rejected.append(RejectedRule(str(data.get("id") or "<nova>"), reasons))
                continue
            try:
                call_with_retry(
                    self.repository.save_rule, rule,
                    config=self.retry_config, operation="save_rule",
                )
            except RetryExhausted as e:
                logger.warning(f"Could not persist extracted rule {rule.id}: {e}")
                rule_set.observations.append(
                    f"Regra extraída {rule.id} não foi persistida; usada apenas nesta apuração"
                )
            rule_set.proposed.append(rule)
            accepted += 1

        rule_set.observations.append(
            f"Assistente de extração propôs {len(candidates)} regra(s); {accepted} aceita(s)"
        )

    def _accept_candidate(
        self,
        taxpayer_id: str,
        jurisdiction: Optional[str],
        data,
    ) -> Tuple[Optional[Rule], List[str]]:
        candidate = dict(data)
        if candidate.get("confidence") is None:
            return None, ["confidence: Extracted rule has no confidence score."]

        now = datetime.now(timezone.utc)
        candidate["id"] = candidate.get("id") or f"rule_{uuid.uuid4().hex[:12]}"
        candidate["source"] = EXTRACTION_SOURCE
        candidate["active"] = True
        candidate["taxpayer_id"] = taxpayer_id
        if jurisdiction and not candidate.get("jurisdiction"):
            candidate["jurisdiction"] = jurisdiction
        candidate.setdefault("created_at", now)
        candidate["updated_at"] = now

        result = self.validator.validate_candidate(candidate)
        if not result.is_valid:
            return None, [f"{i.field}: {i.message}" for i in result.errors]
        return result.rule, []
