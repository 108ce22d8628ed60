"""Tests for federal benefit stacking (PIS, COFINS, IRPJ, CSLL)."""

from decimal import Decimal

from calculator.benefit_stacker import BenefitStacker, ledger_credit
from models.federal import BenefitRule, LedgerEntry
from models.rule import Condition
from rules.federal_benefits import contribution_rate, default_benefit_rules
from rules.rule_types import BenefitType, ConditionOperator as Op, SubTax

PIS, COFINS, IRPJ, CSLL = SubTax.PIS, SubTax.COFINS, SubTax.IRPJ, SubTax.CSLL


def benefit(rule_id, benefit_type, percentage="0", sub_taxes=None, conditions=None, active=True):
    return BenefitRule(
        id=rule_id,
        label=rule_id,
        benefit_type=benefit_type,
        percentage=Decimal(percentage),
        sub_taxes=sub_taxes or [],
        conditions=conditions or [],
        active=active,
    )


def entry(credit_type, sub_tax, amount, document_ref="NFE-001", item_ref=None):
    return LedgerEntry(
        document_ref=document_ref,
        item_ref=item_ref,
        credit_type=credit_type,
        sub_tax=sub_tax,
        amount=Decimal(amount),
    )


class TestRates:
    """Tests for base rates by situation code."""

    def test_contribution_rates(self):
        assert contribution_rate(PIS, "01") == Decimal("1.65")
        assert contribution_rate(COFINS, "02") == Decimal("7.6")
        assert contribution_rate(PIS, "06") == Decimal("0")
        assert contribution_rate(COFINS, "") == Decimal("7.6")

    def test_no_benefits(self, line_factory):
        """Test an outbound item with no eligible benefit pays full rates."""
        result = BenefitStacker(default_benefit_rules()).stack(line_factory(cst="01"))
        assert result.due(PIS) == Decimal("16.50")
        assert result.due(COFINS) == Decimal("76.00")
        assert result.due(IRPJ) == Decimal("150.00")
        assert result.due(CSLL) == Decimal("90.00")
        assert result.applied_benefits == []


class TestStackingOrder:
    """Tests for the fixed order: zero rate, presumed credit, ledger credits."""

    def test_presumed_credit_is_share_of_computed_tax(self, line_factory):
        stacker = BenefitStacker([benefit("presumed", BenefitType.PRESUMED_CREDIT, "60", [PIS, COFINS])])
        result = stacker.stack(line_factory(cst="01"))
        pis = result.sub_taxes[PIS]
        assert pis.gross_due == Decimal("16.50")
        assert pis.credits == {"presumed_credit": Decimal("9.90")}
        assert pis.due == Decimal("6.60")
        assert result.due(COFINS) == Decimal("30.40")
        assert "PIS - Crédito presumido: R$ 9,90" in result.observations

    def test_zero_rate_runs_before_presumed_credit(self, line_factory):
        """Test a zero rate leaves nothing for the presumed credit, which is then omitted."""
        stacker = BenefitStacker([
            benefit("presumed", BenefitType.PRESUMED_CREDIT, "60", [PIS, COFINS]),
            benefit("zero", BenefitType.ZERO_RATE, sub_taxes=[PIS, COFINS]),
        ])
        result = stacker.stack(line_factory(cst="01"))
        pis = result.sub_taxes[PIS]
        assert pis.rate == Decimal("0")
        assert pis.due == Decimal("0")
        assert pis.credits == {}
        assert "PIS - Alíquota zero aplicada" in result.observations

    def test_ledger_credits_in_fixed_order(self, line_factory):
        stacker = BenefitStacker([
            benefit("input", BenefitType.INPUT_CREDIT, sub_taxes=[PIS]),
            benefit("freight", BenefitType.FREIGHT_CREDIT, sub_taxes=[PIS]),
        ])
        ledger = [
            entry(BenefitType.FREIGHT_CREDIT, PIS, "1.50"),
            entry(BenefitType.INPUT_CREDIT, PIS, "3.00"),
            entry(BenefitType.INPUT_CREDIT, PIS, "2.00"),
            entry(BenefitType.ENERGY_CREDIT, PIS, "4.00"),
        ]
        result = stacker.stack(line_factory(cst="01"), ledger)
        pis = result.sub_taxes[PIS]
        assert list(pis.credits) == ["input_credit", "freight_credit"]
        assert pis.credits["input_credit"] == Decimal("5.00")
        assert pis.due == Decimal("10.00")
        # COFINS is outside the rules' sub-taxes
        assert result.sub_taxes[COFINS].credits == {}

    def test_zero_credits_are_not_recorded(self, line_factory):
        stacker = BenefitStacker([benefit("energy", BenefitType.ENERGY_CREDIT, sub_taxes=[PIS])])
        result = stacker.stack(line_factory(cst="01"), [entry(BenefitType.ENERGY_CREDIT, PIS, "0")])
        assert result.sub_taxes[PIS].credits == {}
        assert result.applied_benefits == ["energy"]

    def test_inactive_benefits_are_ignored(self, line_factory):
        stacker = BenefitStacker([benefit("zero", BenefitType.ZERO_RATE, active=False)])
        assert stacker.stack(line_factory(cst="01")).due(PIS) == Decimal("16.50")

    def test_benefit_conditions(self, line_factory):
        stacker = BenefitStacker([
            benefit("zero", BenefitType.ZERO_RATE,
                    conditions=[Condition(field="cfop", operator=Op.STARTS_WITH, value="1")]),
        ])
        assert stacker.stack(line_factory(cfop="1102", cst="01")).due(PIS) == Decimal("0")
        assert stacker.stack(line_factory(cfop="5102", cst="01")).due(PIS) == Decimal("16.50")


class TestLedgerMatching:
    """Tests for exact-tag ledger lookups."""

    def test_matches_type_sub_tax_and_document(self, line_factory):
        line = line_factory(item_id="7")
        ledger = [
            entry(BenefitType.INPUT_CREDIT, PIS, "1.00"),
            entry(BenefitType.INPUT_CREDIT, COFINS, "2.00"),
            entry(BenefitType.INPUT_CREDIT, PIS, "4.00", document_ref="NFE-999"),
            entry(BenefitType.INPUT_CREDIT, PIS, "8.00", item_ref="7"),
            entry(BenefitType.INPUT_CREDIT, PIS, "16.00", item_ref="8"),
        ]
        assert ledger_credit(ledger, line, BenefitType.INPUT_CREDIT, PIS) == Decimal("9.00")


class TestIncomeBenefits:
    """Tests for IRPJ/CSLL exemption and reduction."""

    def test_exemption_records_foregone_tax(self, line_factory):
        stacker = BenefitStacker([benefit("exempt", BenefitType.EXEMPTION, sub_taxes=[IRPJ])])
        result = stacker.stack(line_factory())
        irpj = result.sub_taxes[IRPJ]
        assert irpj.exempted_amount == Decimal("150.00")
        assert irpj.due == Decimal("0")
        assert result.due(CSLL) == Decimal("90.00")

    def test_reduction_shrinks_base(self, line_factory):
        stacker = BenefitStacker([benefit("reduce", BenefitType.REDUCTION, "75", [IRPJ, CSLL])])
        result = stacker.stack(line_factory())
        assert result.sub_taxes[IRPJ].base == Decimal("250.00")
        assert result.due(IRPJ) == Decimal("37.50")
        assert result.due(CSLL) == Decimal("22.50")

    def test_exemption_and_reduction_together(self, line_factory):
        stacker = BenefitStacker([
            benefit("exempt", BenefitType.EXEMPTION, sub_taxes=[IRPJ]),
            benefit("reduce", BenefitType.REDUCTION, "75", [IRPJ]),
        ])
        irpj = stacker.stack(line_factory()).sub_taxes[IRPJ]
        assert irpj.exempted_amount == Decimal("150.00")
        assert irpj.base == Decimal("250.00")
        assert irpj.due == Decimal("0")


class TestDefaultBenefits:
    """Tests for the built-in eligibility lists."""

    def test_inbound_cereal_purchase(self, line_factory):
        line = line_factory(cfop="1102", ncm="10063000", cst="01")
        ledger = [entry(BenefitType.INPUT_CREDIT, COFINS, "12.00")]
        result = BenefitStacker().stack(line, ledger)

        assert result.sub_taxes[PIS].rate == Decimal("0")
        assert result.sub_taxes[COFINS].credits == {"input_credit": Decimal("12.00")}
        assert result.due(COFINS) == Decimal("-12.00")
        assert result.sub_taxes[IRPJ].exempted_amount == Decimal("150.00")
        assert "fed_zero_rate_cfop" in result.applied_benefits
        assert "fed_input_credit" in result.applied_benefits

    def test_seed_reduction(self, line_factory):
        line = line_factory(cfop="5102", ncm="12019000", cst="01")
        result = BenefitStacker().stack(line)
        assert result.sub_taxes[IRPJ].base == Decimal("250.00")
        assert result.due(PIS) == Decimal("0")
