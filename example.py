#!/usr/bin/env python3
"""
Example script showing how to run apurações programmatically
"""
import sys
import os
from decimal import Decimal

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), 'src'))

from calculator.carryover import CreditCarryoverManager
from calculator.decimal_math import format_money
from database import (
    SqlApuracaoResultRepository,
    SqlPeriodCreditRepository,
    SqlRuleRepository,
    create_db_engine,
    create_session_factory,
    init_schema,
)
from models.federal import LedgerEntry
from models.line_item import LineItem
from rules.default_rules import default_rules
from rules.rule_store import RuleStore
from rules.rule_types import BenefitType, SubTax
from services import configure_logging, get_apuracao_service, get_federal_service

TAXPAYER = "11.222.333/0001-81"


def sample_items():
    return [
        LineItem(item_id="1", document_ref="NFE-1001", cfop="5102", ncm="22021000", cst="102",
                 jurisdiction="SP", destination_jurisdiction="SP",
                 operation_amount=Decimal("1500.00"), discounts=Decimal("50.00")),
        LineItem(item_id="2", document_ref="NFE-1001", cfop="5102", ncm="10063000", cst="102",
                 jurisdiction="SP", destination_jurisdiction="SP",
                 operation_amount=Decimal("800.00")),
        LineItem(item_id="3", document_ref="NFE-1002", cfop="1102", ncm="10063000", cst="01",
                 jurisdiction="SP", destination_jurisdiction="SP",
                 operation_amount=Decimal("2000.00")),
    ]


def print_result(result):
    print(f"Status: {result.status.value}  Confiança: {result.confidence}")
    for observation in result.observations:
        print(f"  - {observation}")
    for error in result.errors:
        print(f"  ! {error}")
    print()


def example_icms_two_periods():
    """Example: two consecutive SP periods sharing the PROTEGE credit"""
    print("Example 1: ICMS apuração over two periods (SQLite in memory)")
    print("=" * 60)

    engine = create_db_engine("sqlite://")
    init_schema(engine)
    session_factory = create_session_factory(engine)

    rules = SqlRuleRepository(session_factory)
    for rule in default_rules("SP"):
        rules.save_rule(rule)

    service = get_apuracao_service(
        RuleStore(rules),
        carryover=CreditCarryoverManager(SqlPeriodCreditRepository(session_factory)),
        result_repository=SqlApuracaoResultRepository(session_factory),
    )

    for period in ("202401", "202402"):
        print(f"Período {period}")
        print_result(service.run(TAXPAYER, period, sample_items(), jurisdiction="SP"))

    engine.dispose()


def example_federal():
    """Example: PIS/COFINS/IRPJ/CSLL with a ledger credit"""
    print("Example 2: Federal apuração with benefit stacking")
    print("=" * 60)

    ledger = [
        LedgerEntry(document_ref="NFE-1002", credit_type=BenefitType.INPUT_CREDIT,
                    sub_tax=SubTax.COFINS, amount=Decimal("25.00")),
    ]
    result = get_federal_service().run(TAXPAYER, "2024-01", sample_items(), ledger=ledger)
    print_result(result)
    print(f"Total devido: {format_money(result.totals.total_due)}")
    print()


def main():
    """Run all examples"""
    configure_logging(level="WARNING")

    print("\n")
    print("=" * 60)
    print("Apuração Engine - Examples")
    print("=" * 60)
    print("\n")

    example_icms_two_periods()
    example_federal()

    print("=" * 60)
    print("Examples completed!")
    print("=" * 60)


if __name__ == "__main__":
    main()
