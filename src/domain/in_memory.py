"""
In-memory repository implementations.

Used by tests and by callers that do not need persistence. Each instance
holds its own state; nothing is shared between instances.
"""

import threading
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Tuple

from domain.repositories import (
    IApuracaoResultRepository,
    IPeriodCreditRepository,
    IRuleRepository,
)
from models.apuracao import ApuracaoResult, PeriodCredit
from models.rule import Rule
from rules.default_rules import default_rules


class InMemoryRuleRepository(IRuleRepository):

    def __init__(self, rules: Optional[Iterable[Rule]] = None):
        self._rules: Dict[str, Rule] = {}
        self._lock = threading.Lock()
        for rule in rules or []:
            self.save_rule(rule)

    def list_rules(self, taxpayer_id: str, jurisdiction: Optional[str] = None) -> List[Rule]:
        with self._lock:
            rules = list(self._rules.values())
        return [
            rule for rule in rules
            if rule.taxpayer_id in (None, taxpayer_id)
            and (jurisdiction is None or rule.jurisdiction in (None, jurisdiction))
        ]

    def save_rule(self, rule: Rule) -> None:
        with self._lock:
            self._rules[rule.id] = rule.model_copy(deep=True)

    def seed_defaults(self, jurisdiction: Optional[str] = None) -> int:
        """Load the built-in default rules; returns how many were added."""
        rules = default_rules(jurisdiction)
        for rule in rules:
            self.save_rule(rule)
        return len(rules)


class InMemoryPeriodCreditRepository(IPeriodCreditRepository):

    def __init__(self):
        self._records: Dict[Tuple[str, str], PeriodCredit] = {}
        self._lock = threading.Lock()

    def get(self, taxpayer_id: str, period: str) -> Optional[PeriodCredit]:
        with self._lock:
            record = self._records.get((taxpayer_id, period))
        return record.model_copy() if record else None

    def compare_and_set(self, expected: Optional[PeriodCredit], new: PeriodCredit) -> bool:
        key = (new.taxpayer_id, new.period)
        with self._lock:
            current = self._records.get(key)
            current_version = current.version if current else None
            expected_version = expected.version if expected else None
            if current_version != expected_version:
                return False
            self._records[key] = new.model_copy(update={
                "version": (expected_version or 0) + 1,
                "updated_at": datetime.now(timezone.utc),
            })
            return True

    def list_range(self, taxpayer_id: str, start: str, end: str) -> List[PeriodCredit]:
        with self._lock:
            records = [
                r.model_copy() for (t, p), r in self._records.items()
                if t == taxpayer_id and start <= p <= end
            ]
        return sorted(records, key=lambda r: r.period)


class InMemoryApuracaoResultRepository(IApuracaoResultRepository):

    def __init__(self):
        self._results: Dict[Tuple[str, str], ApuracaoResult] = {}
        self._lock = threading.Lock()

    def save(self, result: ApuracaoResult) -> None:
        with self._lock:
            self._results[(result.taxpayer_id, result.period)] = result

    def get(self, taxpayer_id: str, period: str) -> Optional[ApuracaoResult]:
        with self._lock:
            return self._results.get((taxpayer_id, period))
