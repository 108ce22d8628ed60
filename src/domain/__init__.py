"""
Domain layer for the apuração engine.

This package contains the domain exceptions and the repository interfaces
that the engine depends on. SQLAlchemy implementations live in the
database package; in-memory ones in domain.in_memory.
"""

from .exceptions import (
    ApuracaoError,
    StoreUnavailableError,
    RuleStoreUnavailableError,
    CarryoverStoreUnavailableError,
    CarryoverConflictError,
    InvalidPeriodError,
    ResultFinalizedError,
)

__all__ = [
    'ApuracaoError',
    'StoreUnavailableError',
    'RuleStoreUnavailableError',
    'CarryoverStoreUnavailableError',
    'CarryoverConflictError',
    'InvalidPeriodError',
    'ResultFinalizedError',
]
