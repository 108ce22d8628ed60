"""Pytest configuration and fixtures for test suite."""

import sys
from decimal import Decimal
from pathlib import Path

import pytest

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from calculator.carryover import CreditCarryoverManager
from domain.in_memory import (
    InMemoryApuracaoResultRepository,
    InMemoryPeriodCreditRepository,
    InMemoryRuleRepository,
)
from models.line_item import LineItem
from resilience.retry import RetryConfig
from rules.rule_store import RuleStore
from validation.rule_validator import RuleValidator

VALID_CNPJ = "11222333000181"


# =============================================================================
# Builders
# =============================================================================

def make_line(**overrides) -> LineItem:
    """Build a LineItem with sensible SP defaults."""
    values = dict(
        item_id="1",
        document_ref="NFE-001",
        cfop="5102",
        ncm="22021000",
        cst="000",
        jurisdiction="SP",
        destination_jurisdiction="SP",
        operation_amount=Decimal("1000.00"),
    )
    values.update(overrides)
    return LineItem(**values)


@pytest.fixture
def line_factory():
    """Factory fixture building line items."""
    return make_line


@pytest.fixture
def taxpayer_id():
    return VALID_CNPJ


# =============================================================================
# Resilience
# =============================================================================

@pytest.fixture
def fast_retry():
    """Retry config that never sleeps."""
    return RetryConfig(max_attempts=3, base_delay=0, max_delay=0, sleep=lambda s: None)


# =============================================================================
# Repositories and stores
# =============================================================================

@pytest.fixture
def rule_repository():
    return InMemoryRuleRepository()


@pytest.fixture
def credit_repository():
    return InMemoryPeriodCreditRepository()


@pytest.fixture
def result_repository():
    return InMemoryApuracaoResultRepository()


@pytest.fixture
def rule_store(rule_repository, fast_retry):
    return RuleStore(
        rule_repository,
        validator=RuleValidator(confidence_threshold=70),
        retry_config=fast_retry,
        auto_extract=False,
    )


@pytest.fixture
def carryover_manager(credit_repository, fast_retry):
    return CreditCarryoverManager(credit_repository, retry_config=fast_retry)


@pytest.fixture
def session_factory():
    """Session factory bound to a fresh in-memory SQLite database."""
    from database.connection import create_db_engine, create_session_factory, init_schema

    engine = create_db_engine("sqlite://")
    init_schema(engine)
    yield create_session_factory(engine)
    engine.dispose()
