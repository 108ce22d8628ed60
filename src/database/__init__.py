"""
Database Layer for the apuração engine.

This module provides:
- SQLAlchemy ORM models for rules, period credits and run results
- Engine and session factory construction from settings
- Repository implementations of the domain interfaces
"""

from .models import (
    Base,
    RuleRecord,
    PeriodCreditRecord,
    ApuracaoResultRecord,
)

from .connection import (
    create_db_engine,
    create_session_factory,
    init_schema,
    session_scope,
)

from .persistence import (
    SqlRuleRepository,
    SqlPeriodCreditRepository,
    SqlApuracaoResultRepository,
)

__all__ = [
    # Models
    "Base",
    "RuleRecord",
    "PeriodCreditRecord",
    "ApuracaoResultRecord",
    # Connection
    "create_db_engine",
    "create_session_factory",
    "init_schema",
    "session_scope",
    # Repositories
    "SqlRuleRepository",
    "SqlPeriodCreditRepository",
    "SqlApuracaoResultRepository",
]
