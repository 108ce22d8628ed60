"""Tests for condition matching against line items."""

from decimal import Decimal

import pytest

from models.line_item import AssessedItem
from models.rule import Condition
from rules.conditions import ConditionEvaluator, matches, resolve_field
from rules.rule_types import ConditionOperator as Op, LogicConnector


def cond(field, operator, value, logic=LogicConnector.AND):
    return Condition(field=field, operator=operator, value=value, logic=logic)


class TestFieldResolution:
    """Tests for the field accessor table."""

    def test_known_fields(self, line_factory):
        """Test code and amount fields resolve from the line."""
        line = line_factory(discounts=Decimal("100"))
        assert resolve_field(line, "cfop") == "5102"
        assert resolve_field(line, "amount") == Decimal("1000.00")
        assert resolve_field(line, "base") == Decimal("900.00")

    def test_unknown_field_resolves_empty(self, line_factory):
        """Test unknown fields never raise."""
        assert resolve_field(line_factory(), "no_such_field") == ""

    def test_none_resolves_empty(self, line_factory):
        assert resolve_field(line_factory(customer_type=None), "customer_type") == ""

    def test_working_item_exposes_current_base_and_rate(self, line_factory):
        """Test base and rate follow the working item, not the line."""
        item = AssessedItem.from_line(line_factory())
        item.base = Decimal("700.00")
        item.rate = Decimal("18")
        assert resolve_field(item, "base") == Decimal("700.00")
        assert resolve_field(item, "rate") == Decimal("18")
        assert resolve_field(item, "ncm") == "22021000"

    def test_register_field(self, line_factory):
        """Test extending the accessor table."""
        evaluator = ConditionEvaluator()
        evaluator.register_field("document", lambda item: item.document_ref)
        assert evaluator.matches(line_factory(), [cond("document", Op.EQUALS, "NFE-001")])


class TestOperators:
    """Tests for each comparison operator."""

    def test_equals_on_codes_is_textual(self, line_factory):
        """Test code comparison keeps leading zeros significant."""
        line = line_factory(cst="020")
        assert matches(line, [cond("cst", Op.EQUALS, "020")])
        assert not matches(line, [cond("cst", Op.EQUALS, "20")])

    def test_equals_on_amounts_is_numeric(self, line_factory):
        """Test numeric fields compare as numbers."""
        line = line_factory(operation_amount=Decimal("1000"))
        assert matches(line, [cond("amount", Op.EQUALS, "1000.00")])
        assert matches(line, [cond("amount", Op.EQUALS, 1000)])
        assert not matches(line, [cond("amount", Op.EQUALS, "abc")])

    def test_equals_with_list_is_any_of(self, line_factory):
        line = line_factory(cfop="5405")
        assert matches(line, [cond("cfop", Op.EQUALS, ["5102", "5405"])])
        assert not matches(line, [cond("cfop", Op.NOT_EQUALS, ["5102", "5405"])])

    def test_not_equals(self, line_factory):
        assert matches(line_factory(), [cond("jurisdiction", Op.NOT_EQUALS, "RJ")])

    def test_contains_and_starts_with(self, line_factory):
        line = line_factory(description="REFRIGERANTE COLA 2L", cfop="1102")
        assert matches(line, [cond("description", Op.CONTAINS, "COLA")])
        assert matches(line, [cond("cfop", Op.STARTS_WITH, "1")])
        assert matches(line, [cond("cfop", Op.STARTS_WITH, ["2", "1"])])
        assert not matches(line, [cond("cfop", Op.STARTS_WITH, "5")])

    def test_greater_and_less_than(self, line_factory):
        line = line_factory(operation_amount=Decimal("500"))
        assert matches(line, [cond("amount", Op.GREATER_THAN, 100)])
        assert not matches(line, [cond("amount", Op.GREATER_THAN, 500)])
        assert matches(line, [cond("amount", Op.LESS_THAN, "500.01")])

    def test_numeric_operators_on_text_fail_softly(self, line_factory):
        """Test non-numeric operands simply do not match."""
        line = line_factory(description="abc")
        assert not matches(line, [cond("description", Op.GREATER_THAN, 1)])
        assert not matches(line, [cond("amount", Op.LESS_THAN, [1, 2])])

    def test_between_is_inclusive(self, line_factory):
        """Test both bounds are included."""
        for amount in ("100", "150", "200"):
            line = line_factory(operation_amount=Decimal(amount))
            assert matches(line, [cond("amount", Op.BETWEEN, [100, 200])])
        line = line_factory(operation_amount=Decimal("200.01"))
        assert not matches(line, [cond("amount", Op.BETWEEN, [100, 200])])

    @pytest.mark.parametrize("bounds", [[100], [100, 200, 300], 150, ["a", "b"]])
    def test_between_requires_two_numeric_bounds(self, line_factory, bounds):
        line = line_factory(operation_amount=Decimal("150"))
        assert not matches(line, [cond("amount", Op.BETWEEN, bounds)])


class TestCombination:
    """Tests for how sibling conditions combine."""

    def test_empty_condition_list_matches(self, line_factory):
        assert matches(line_factory(), [])

    def test_all_conditions_must_hold(self, line_factory):
        line = line_factory()
        conditions = [cond("jurisdiction", Op.EQUALS, "SP"), cond("cfop", Op.EQUALS, "6102")]
        assert not matches(line, conditions)

    def test_or_connector_is_not_interpreted(self, line_factory):
        """Test conditions marked OR are still AND-ed."""
        line = line_factory()
        conditions = [
            cond("cfop", Op.EQUALS, "6102"),
            cond("jurisdiction", Op.EQUALS, "SP", logic=LogicConnector.OR),
        ]
        assert not matches(line, conditions)

    def test_short_circuits_on_first_failure(self, line_factory):
        """Test later conditions are not evaluated once one fails."""
        calls = []
        evaluator = ConditionEvaluator()
        evaluator.register_field("tracer", lambda item: calls.append(1) or "x")
        conditions = [cond("cfop", Op.EQUALS, "9999"), cond("tracer", Op.EQUALS, "x")]
        assert not evaluator.matches(line_factory(), conditions)
        assert calls == []
