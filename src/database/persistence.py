"""
SQLAlchemy implementations of the domain repositories.

Each repository opens a short session per call from the injected session
factory. Database errors surface as StoreUnavailableError so the rule store
and the carryover manager can retry them and then fail the run.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from database.connection import session_scope
from database.models import ApuracaoResultRecord, PeriodCreditRecord, RuleRecord
from domain.exceptions import StoreUnavailableError
from domain.repositories import (
    IApuracaoResultRepository,
    IPeriodCreditRepository,
    IRuleRepository,
)
from models.apuracao import ApuracaoResult, PeriodCredit
from models.rule import Rule

logger = logging.getLogger(__name__)


class SqlRuleRepository(IRuleRepository):
    """Rules stored as JSON payloads in the ``rules`` table."""

    STORE = "Rule store"

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def list_rules(self, taxpayer_id: str, jurisdiction: Optional[str] = None) -> List[Rule]:
        query = select(RuleRecord).where(
            or_(RuleRecord.taxpayer_id == taxpayer_id, RuleRecord.taxpayer_id.is_(None))
        )
        if jurisdiction is not None:
            query = query.where(
                or_(RuleRecord.jurisdiction == jurisdiction, RuleRecord.jurisdiction.is_(None))
            )
        query = query.order_by(RuleRecord.id)

        try:
            with session_scope(self._session_factory) as session:
                records = session.execute(query).scalars().all()
                return [Rule.model_validate(record.payload) for record in records]
        except SQLAlchemyError as e:
            logger.error(f"Failed to list rules for {taxpayer_id}: {e}")
            raise StoreUnavailableError(self.STORE, str(e)) from e

    def save_rule(self, rule: Rule) -> None:
        try:
            with session_scope(self._session_factory) as session:
                record = session.get(RuleRecord, rule.id)
                if record is None:
                    record = RuleRecord(id=rule.id)
                    session.add(record)
                record.taxpayer_id = rule.taxpayer_id
                record.jurisdiction = rule.jurisdiction
                record.kind = rule.kind.value
                record.active = rule.active
                record.source = rule.source
                record.payload = rule.model_dump(mode="json")
        except SQLAlchemyError as e:
            logger.error(f"Failed to save rule {rule.id}: {e}")
            raise StoreUnavailableError(self.STORE, str(e)) from e


def _to_period_credit(record: PeriodCreditRecord) -> PeriodCredit:
    return PeriodCredit(
        taxpayer_id=record.taxpayer_id,
        period=record.period,
        debit=Decimal(record.debit),
        payment=Decimal(record.payment),
        rollover_credit=Decimal(record.rollover_credit),
        version=record.version,
        updated_at=record.updated_at,
    )


class SqlPeriodCreditRepository(IPeriodCreditRepository):
    """
    Period credits with optimistic concurrency.

    compare_and_set inserts when no record is expected (the unique
    constraint rejects a concurrent insert) and otherwise updates only the
    row still carrying the expected version.
    """

    STORE = "Carryover store"

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def get(self, taxpayer_id: str, period: str) -> Optional[PeriodCredit]:
        query = select(PeriodCreditRecord).where(
            PeriodCreditRecord.taxpayer_id == taxpayer_id,
            PeriodCreditRecord.period == period,
        )
        try:
            with session_scope(self._session_factory) as session:
                record = session.execute(query).scalar_one_or_none()
                return _to_period_credit(record) if record else None
        except SQLAlchemyError as e:
            raise StoreUnavailableError(self.STORE, str(e)) from e

    def compare_and_set(self, expected: Optional[PeriodCredit], new: PeriodCredit) -> bool:
        now = datetime.now(timezone.utc)
        try:
            with session_scope(self._session_factory) as session:
                if expected is None:
                    session.add(PeriodCreditRecord(
                        taxpayer_id=new.taxpayer_id,
                        period=new.period,
                        debit=new.debit,
                        payment=new.payment,
                        rollover_credit=new.rollover_credit,
                        version=1,
                        updated_at=now,
                    ))
                    session.flush()
                    return True

                outcome = session.execute(
                    update(PeriodCreditRecord)
                    .where(
                        PeriodCreditRecord.taxpayer_id == new.taxpayer_id,
                        PeriodCreditRecord.period == new.period,
                        PeriodCreditRecord.version == expected.version,
                    )
                    .values(
                        debit=new.debit,
                        payment=new.payment,
                        rollover_credit=new.rollover_credit,
                        version=expected.version + 1,
                        updated_at=now,
                    )
                )
                return outcome.rowcount == 1
        except IntegrityError:
            logger.warning(f"Concurrent insert of period credit {new.taxpayer_id}/{new.period}")
            return False
        except SQLAlchemyError as e:
            raise StoreUnavailableError(self.STORE, str(e)) from e

    def list_range(self, taxpayer_id: str, start: str, end: str) -> List[PeriodCredit]:
        query = (
            select(PeriodCreditRecord)
            .where(
                PeriodCreditRecord.taxpayer_id == taxpayer_id,
                PeriodCreditRecord.period >= start,
                PeriodCreditRecord.period <= end,
            )
            .order_by(PeriodCreditRecord.period)
        )
        try:
            with session_scope(self._session_factory) as session:
                return [_to_period_credit(r) for r in session.execute(query).scalars().all()]
        except SQLAlchemyError as e:
            raise StoreUnavailableError(self.STORE, str(e)) from e


class SqlApuracaoResultRepository(IApuracaoResultRepository):
    """Finished runs; saving a period again replaces the stored run."""

    STORE = "Result store"

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def save(self, result: ApuracaoResult) -> None:
        query = select(ApuracaoResultRecord).where(
            ApuracaoResultRecord.taxpayer_id == result.taxpayer_id,
            ApuracaoResultRecord.period == result.period,
        )
        try:
            with session_scope(self._session_factory) as session:
                record = session.execute(query).scalar_one_or_none()
                if record is None:
                    record = ApuracaoResultRecord(
                        taxpayer_id=result.taxpayer_id, period=result.period
                    )
                    session.add(record)
                record.status = result.status.value
                record.confidence = result.confidence
                record.tax_due = result.totals.tax_due
                record.finished_at = result.finished_at
                record.payload = result.model_dump(mode="json")
        except SQLAlchemyError as e:
            logger.error(f"Failed to save result {result.taxpayer_id}/{result.period}: {e}")
            raise StoreUnavailableError(self.STORE, str(e)) from e

    def get(self, taxpayer_id: str, period: str) -> Optional[ApuracaoResult]:
        query = select(ApuracaoResultRecord).where(
            ApuracaoResultRecord.taxpayer_id == taxpayer_id,
            ApuracaoResultRecord.period == period,
        )
        try:
            with session_scope(self._session_factory) as session:
                record = session.execute(query).scalar_one_or_none()
                return ApuracaoResult.model_validate(record.payload) if record else None
        except SQLAlchemyError as e:
            raise StoreUnavailableError(self.STORE, str(e)) from e
