"""
Credit Carryover Manager for the secondary (special protection) levy.

A payment recorded for period N is the credit available in period N+1.
Settling a period nets its debit against that credit: a positive net is
the amount due, a negative net becomes a rollover credit rather than a
negative payment. Both are stored under the current period for the next
run to read.

The read-prior / compute / write-current sequence for one
(taxpayer, period) key is a critical section: a per-key lock serializes
runs inside this process and the repository's compare-and-swap rejects a
concurrent writer from elsewhere.
"""

import logging
import threading
from decimal import Decimal
from typing import Dict, Optional, Tuple

from calculator.decimal_math import ZERO, format_money, money, to_decimal
from calculator.periods import normalize_period, period_range, previous_period
from domain.exceptions import CarryoverConflictError, CarryoverStoreUnavailableError
from domain.repositories import IPeriodCreditRepository
from models.apuracao import (
    CarryoverBalance,
    CarryoverStatement,
    CarryoverStatementLine,
    PeriodCredit,
)
from resilience.retry import RetryConfig, RetryExhausted, call_with_retry

logger = logging.getLogger(__name__)


class CreditCarryoverManager:
    """Reads prior-period credits and records current-period outcomes."""

    def __init__(
        self,
        repository: IPeriodCreditRepository,
        retry_config: Optional[RetryConfig] = None,
    ):
        self.repository = repository
        self.retry_config = retry_config or RetryConfig.from_settings()
        self._locks: Dict[Tuple[str, str], threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, taxpayer_id: str, period: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault((taxpayer_id, period), threading.Lock())

    def _call(self, func, *args, operation: str):
        try:
            return call_with_retry(func, *args, config=self.retry_config, operation=operation)
        except RetryExhausted as e:
            raise CarryoverStoreUnavailableError(str(e.last_exception or e)) from e

    def _get(self, taxpayer_id: str, period: str) -> Optional[PeriodCredit]:
        return self._call(self.repository.get, taxpayer_id, period, operation="get_period_credit")

    def prior_credit(self, taxpayer_id: str, period: str) -> Decimal:
        """
        Credit available in a period: what the previous period stored.

        Returns 0 when the previous period has no record.
        """
        prior = previous_period(normalize_period(period))
        record = self._get(taxpayer_id, prior)
        return record.available_credit if record else ZERO

    def record_payment(
        self,
        taxpayer_id: str,
        period: str,
        amount,
        rollover_credit=ZERO,
        debit=None,
    ) -> PeriodCredit:
        """
        Store a period's net payment (and rollover credit) for the next
        period to read.

        Raises:
            CarryoverConflictError: If the record changed concurrently
            CarryoverStoreUnavailableError: If the store fails after retries
        """
        period = normalize_period(period)
        with self._lock_for(taxpayer_id, period):
            return self._write(taxpayer_id, period, money(amount), money(rollover_credit),
                               money(amount if debit is None else debit))

    def _write(
        self,
        taxpayer_id: str,
        period: str,
        payment: Decimal,
        rollover_credit: Decimal,
        debit: Decimal,
    ) -> PeriodCredit:
        expected = self._get(taxpayer_id, period)
        record = PeriodCredit(
            taxpayer_id=taxpayer_id,
            period=period,
            debit=debit,
            payment=payment,
            rollover_credit=rollover_credit,
        )
        written = self._call(self.repository.compare_and_set, expected, record,
                             operation="compare_and_set_period_credit")
        if not written:
            logger.warning(f"Period credit conflict for {taxpayer_id}/{period}")
            raise CarryoverConflictError(taxpayer_id, period)

        stored = record.model_copy(update={"version": (expected.version if expected else 0) + 1})
        logger.info(
            f"Recorded period credit {taxpayer_id}/{period}: payment {payment}, "
            f"rollover {rollover_credit}"
        )
        return stored

    def settle(self, taxpayer_id: str, period: str, debit) -> CarryoverBalance:
        """
        Net a period's secondary-levy debit against the prior credit and
        record the outcome.

        The record is written when there is something to carry (payment or
        rollover > 0) or when a previous settlement of the same period must
        be overwritten.
        """
        period = normalize_period(period)
        debit = money(to_decimal(debit))
        if debit < 0:
            raise ValueError(f"Debit must not be negative: {debit}")

        with self._lock_for(taxpayer_id, period):
            prior = self.prior_credit(taxpayer_id, period)
            net = debit - prior
            amount_due = net if net > 0 else ZERO
            rollover = -net if net < 0 else ZERO

            recorded = False
            if amount_due > 0 or rollover > 0 or self._get(taxpayer_id, period) is not None:
                self._write(taxpayer_id, period, amount_due, rollover, debit)
                recorded = True

        logger.info(
            f"Settled {taxpayer_id}/{period}: debit {debit}, prior credit {prior}, "
            f"due {amount_due}, rollover {rollover}"
        )
        return CarryoverBalance(
            taxpayer_id=taxpayer_id,
            period=period,
            debit=debit,
            prior_credit=prior,
            amount_due=amount_due,
            rollover_credit=rollover,
            recorded=recorded,
        )

    def statement(self, taxpayer_id: str, start: str, end: str) -> CarryoverStatement:
        """Per-period debits, credits consumed, payments and rollovers."""
        start, end = normalize_period(start), normalize_period(end)
        records = self._call(
            self.repository.list_range, taxpayer_id, previous_period(start), end,
            operation="list_period_credits",
        )
        by_period = {record.period: record for record in records}

        lines = []
        for period in period_range(start, end):
            prior_record = by_period.get(previous_period(period))
            available = prior_record.available_credit if prior_record else ZERO
            record = by_period.get(period)
            if record is None:
                lines.append(CarryoverStatementLine(period=period, credit_available=available))
                continue
            lines.append(CarryoverStatementLine(
                period=period,
                debit=record.debit,
                credit_available=available,
                credit_consumed=min(available, record.debit),
                payment=record.payment,
                rollover_credit=record.rollover_credit,
            ))

        return CarryoverStatement(
            taxpayer_id=taxpayer_id, start_period=start, end_period=end, lines=lines
        )


def describe_balance(balance: CarryoverBalance) -> str:
    """One-line human-readable summary used in run observations."""
    text = (
        f"PROTEGE {balance.period}: débito {format_money(balance.debit)}, "
        f"crédito anterior {format_money(balance.prior_credit)}, "
        f"a recolher {format_money(balance.amount_due)}"
    )
    if balance.rollover_credit > 0:
        text += f", crédito a transportar {format_money(balance.rollover_credit)}"
    return text
