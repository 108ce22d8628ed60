"""
SQLAlchemy ORM Models for the apuração store.

Tables:
- rules: rule definitions per taxpayer (and optionally per UF), stored as
  a JSON payload with the lookup columns kept alongside
- period_credits: one row per (taxpayer, period) with a version column
  used for compare-and-swap writes
- apuracao_results: finished runs keyed by (taxpayer, period)

Monetary columns use Numeric(15, 2).
"""

from datetime import datetime, timezone

from sqlalchemy import (
    Column, String, Integer, Numeric, Boolean, DateTime,
    Index, UniqueConstraint, JSON
)
from sqlalchemy.dialects.postgresql import JSONB as PG_JSONB
from sqlalchemy.orm import declarative_base
from sqlalchemy.types import TypeDecorator


# Cross-database compatible JSON type
# Uses JSONB on PostgreSQL, JSON on SQLite/others
class JSONB(TypeDecorator):
    """A portable JSONB type that works with both PostgreSQL and SQLite."""
    impl = JSON
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == 'postgresql':
            return dialect.type_descriptor(PG_JSONB())
        else:
            return dialect.type_descriptor(JSON())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


Base = declarative_base()


class RuleRecord(Base):
    """
    Stored assessment rule.

    Rules with a null taxpayer_id are shared by every taxpayer.
    """
    __tablename__ = "rules"

    id = Column(String(64), primary_key=True)
    taxpayer_id = Column(String(14), nullable=True, index=True)
    jurisdiction = Column(String(2), nullable=True, index=True)
    kind = Column(String(40), nullable=False)
    active = Column(Boolean, nullable=False, default=True)
    source = Column(String(40), nullable=False, default="manual")
    payload = Column(JSONB, nullable=False, comment="Rule serialized as JSON")

    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    def __repr__(self):
        return f"<RuleRecord {self.id} taxpayer={self.taxpayer_id} uf={self.jurisdiction}>"


class PeriodCreditRecord(Base):
    """
    Secondary-levy settlement of one taxpayer and period.

    Secondary Key: (taxpayer_id, period) - unique composite
    """
    __tablename__ = "period_credits"

    id = Column(Integer, primary_key=True, autoincrement=True)
    taxpayer_id = Column(String(14), nullable=False)
    period = Column(String(6), nullable=False, comment="YYYYMM")

    debit = Column(Numeric(15, 2), nullable=False, default=0)
    payment = Column(Numeric(15, 2), nullable=False, default=0)
    rollover_credit = Column(Numeric(15, 2), nullable=False, default=0)
    version = Column(Integer, nullable=False, default=1)

    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        UniqueConstraint("taxpayer_id", "period", name="uq_period_credit_taxpayer_period"),
    )

    def __repr__(self):
        return f"<PeriodCreditRecord {self.taxpayer_id}/{self.period} v{self.version}>"


class ApuracaoResultRecord(Base):
    """Finished apuração run; the latest run of a period replaces the previous one."""
    __tablename__ = "apuracao_results"

    id = Column(Integer, primary_key=True, autoincrement=True)
    taxpayer_id = Column(String(14), nullable=False)
    period = Column(String(6), nullable=False)
    status = Column(String(20), nullable=False, index=True)
    confidence = Column(Integer, nullable=False, default=0)
    tax_due = Column(Numeric(15, 2), nullable=False, default=0)
    payload = Column(JSONB, nullable=False, comment="ApuracaoResult serialized as JSON")

    finished_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("taxpayer_id", "period", name="uq_apuracao_result_taxpayer_period"),
        Index("ix_apuracao_results_taxpayer", "taxpayer_id"),
    )

    def __repr__(self):
        return f"<ApuracaoResultRecord {self.taxpayer_id}/{self.period} {self.status}>"
