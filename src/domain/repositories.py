"""
Repository Interfaces for the apuração engine.

Repository interfaces define the contract for data access, following the
Repository pattern. The engine only sees these interfaces; implementations
are injected per run.

This abstraction allows:
1. Swapping storage backends (SQLite -> PostgreSQL)
2. Testing with in-memory implementations
3. No process-wide caches of rules or results
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from models.apuracao import ApuracaoResult, PeriodCredit
from models.rule import Rule


class IRuleRepository(ABC):
    """Persistent store of assessment rules keyed by taxpayer."""

    @abstractmethod
    def list_rules(self, taxpayer_id: str, jurisdiction: Optional[str] = None) -> List[Rule]:
        """
        Get the rules that apply to a taxpayer.

        Args:
            taxpayer_id: CNPJ digits of the taxpayer
            jurisdiction: When given, only rules without a jurisdiction or
                with this one are returned

        Returns:
            Rules owned by the taxpayer plus rules shared by all taxpayers
            (taxpayer_id None), active or not

        Raises:
            StoreUnavailableError: If the store cannot be read
        """
        pass

    @abstractmethod
    def save_rule(self, rule: Rule) -> None:
        """
        Create or replace a rule by id.

        Args:
            rule: The rule to save
        """
        pass


class IPeriodCreditRepository(ABC):
    """Persistent store of per-period secondary-levy outcomes."""

    @abstractmethod
    def get(self, taxpayer_id: str, period: str) -> Optional[PeriodCredit]:
        """
        Get the stored credit record of a period.

        Returns:
            The record if present, None otherwise
        """
        pass

    @abstractmethod
    def compare_and_set(
        self,
        expected: Optional[PeriodCredit],
        new: PeriodCredit,
    ) -> bool:
        """
        Atomically replace a period credit record.

        The write succeeds only if the stored record still has the version
        of ``expected`` (or is still absent when ``expected`` is None). The
        stored record gets version ``expected.version + 1`` (1 when new).

        Args:
            expected: Record read before computing the new one
            new: Record to store

        Returns:
            True if written, False if another writer got there first
        """
        pass

    @abstractmethod
    def list_range(self, taxpayer_id: str, start: str, end: str) -> List[PeriodCredit]:
        """
        Get stored records with start <= period <= end, ordered by period.
        """
        pass


class IApuracaoResultRepository(ABC):
    """Persistent store of finished assessment runs."""

    @abstractmethod
    def save(self, result: ApuracaoResult) -> None:
        """
        Save a finished run, replacing any previous run of the same
        taxpayer and period.
        """
        pass

    @abstractmethod
    def get(self, taxpayer_id: str, period: str) -> Optional[ApuracaoResult]:
        """
        Get the last saved run of a taxpayer and period.

        Returns:
            The result if found, None otherwise
        """
        pass
