"""Tests for the federal (PIS, COFINS, IRPJ, CSLL) run."""

from decimal import Decimal

import pytest

from domain.exceptions import ResultFinalizedError
from models.federal import BenefitRule, LedgerEntry
from rules.rule_types import BenefitType, RunStatus, SubTax
from services import get_federal_service
from services.federal_service import FederalApuracaoService

PERIOD = "2024-03"


@pytest.fixture
def service():
    return FederalApuracaoService(max_workers=4)


class TestFederalRun:
    """Tests for complete federal runs."""

    def test_default_benefits(self, service, taxpayer_id, line_factory):
        items = [
            line_factory(item_id="1", cst="01"),
            line_factory(item_id="2", cfop="1102", ncm="10063000", cst="01"),
        ]
        ledger = [LedgerEntry(
            document_ref="NFE-001", item_ref="2", credit_type=BenefitType.INPUT_CREDIT,
            sub_tax=SubTax.PIS, amount=Decimal("3.00"),
        )]
        result = service.run(taxpayer_id, PERIOD, items, ledger=ledger)

        assert result.status == RunStatus.DONE
        assert result.period == "202403"
        totals = result.totals
        # Item 2 has zero PIS/COFINS and exempt IRPJ/CSLL; its PIS input credit goes negative
        assert totals.due_by_sub_tax["pis"] == Decimal("13.50")
        assert totals.due_by_sub_tax["cofins"] == Decimal("76.00")
        assert totals.due_by_sub_tax["irpj"] == Decimal("150.00")
        assert totals.credits_by_type["input_credit"] == Decimal("3.00")
        assert totals.exempted_amount == Decimal("240.00")
        assert "PIS a recolher: R$ 13,50" in result.observations

    def test_invalid_item_is_isolated(self, service, taxpayer_id, line_factory):
        items = [line_factory(item_id="1", cst="01"), line_factory(item_id="2", ncm="12AB")]
        result = service.run(taxpayer_id, PERIOD, items)
        assert result.status == RunStatus.DONE
        assert [i.failed for i in result.items] == [False, True]
        assert result.totals.failed_item_count == 1
        assert result.totals.due_by_sub_tax["pis"] == Decimal("16.50")
        assert any(obs.startswith("Item 2 excluído dos totais") for obs in result.observations)

    def test_benefit_rules_override(self, service, taxpayer_id, line_factory):
        rules = [BenefitRule(id="zero_all", label="Alíquota zero", benefit_type=BenefitType.ZERO_RATE)]
        result = service.run(taxpayer_id, PERIOD, [line_factory(cst="01")], benefit_rules=rules)
        assert [r.id for r in result.benefit_rules] == ["zero_all"]
        assert result.totals.due_by_sub_tax["pis"] == Decimal("0")
        assert result.totals.by_benefit == {"zero_all": Decimal("240.00")}
        assert result.confidence == 100

    def test_order_preserved_with_workers(self, service, taxpayer_id, line_factory):
        items = [line_factory(item_id=str(n), cst="01") for n in range(20)]
        result = service.run(taxpayer_id, PERIOD, items)
        assert [i.line.item_id for i in result.items] == [str(n) for n in range(20)]

    def test_factory_function(self, taxpayer_id):
        result = get_federal_service(max_workers=1).run(taxpayer_id, PERIOD, [])
        assert result.status == RunStatus.DONE
        assert result.confidence == 30


class TestFederalFailures:

    def test_invalid_taxpayer(self, service, line_factory):
        result = service.run("11222333000182", PERIOD, [line_factory()])
        assert result.status == RunStatus.FAILED
        assert result.errors[0].startswith("CNPJ inválido")
        assert result.totals.total_due == Decimal("0")

    def test_invalid_period(self, service, taxpayer_id, line_factory):
        result = service.run(taxpayer_id, "13/2024", [line_factory()])
        assert result.status == RunStatus.FAILED
        assert result.errors[0].startswith("Período inválido")

    def test_result_is_frozen(self, service, taxpayer_id):
        result = service.run(taxpayer_id, PERIOD, [])
        with pytest.raises(ResultFinalizedError):
            result.confidence = 0

    def test_nested_values_are_frozen(self, service, taxpayer_id, line_factory):
        result = service.run(taxpayer_id, PERIOD, [line_factory(cst="01")])
        with pytest.raises(ResultFinalizedError):
            result.totals.due_by_sub_tax["pis"] = Decimal("0")
        with pytest.raises(ResultFinalizedError):
            result.items[0].observations.append("depois")
        with pytest.raises(ResultFinalizedError):
            result.items[0].sub_taxes[SubTax.PIS].due = Decimal("0")
        assert result.totals.due_by_sub_tax["pis"] == Decimal("16.50")
