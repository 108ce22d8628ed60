"""Tests for deterministic rule validation."""

from models.rule import Calculation, Condition, Rule
from rules.default_rules import default_rules
from rules.formulas import default_catalog
from rules.rule_types import ConditionOperator as Op, ResultKind, RuleKind
from validation.rule_validator import RuleValidator


def valid_rule(**overrides):
    values = dict(
        id="r1",
        label="Base reduzida",
        kind=RuleKind.REDUCED_BASE,
        conditions=[Condition(field="ncm", operator=Op.EQUALS, value="22021000")],
        calculations=[Calculation(result_kind=ResultKind.BASE, formula="base_reduzida_70",
                                  parameters=["amount"])],
    )
    values.update(overrides)
    return Rule(**values)


class TestRuleValidator:
    """Tests for structural checks."""

    def test_valid_rule(self):
        result = RuleValidator(catalog=default_catalog).validate(valid_rule())
        assert result.is_valid
        assert result.issues == []

    def test_default_rules_are_valid(self):
        """Test the shipped rules pass the same validation as any other."""
        validator = RuleValidator(catalog=default_catalog)
        for rule in default_rules():
            assert validator.validate(rule).is_valid, rule.id

    def test_missing_id_and_label(self):
        result = RuleValidator().validate(valid_rule(id=" ", label=""))
        assert not result.is_valid
        assert {i.field for i in result.errors} == {"id", "label"}

    def test_rule_without_calculations_is_rejected(self):
        result = RuleValidator().validate(valid_rule(calculations=[]))
        assert [i.field for i in result.errors] == ["calculations"]

    def test_rule_without_conditions_only_warns(self):
        result = RuleValidator().validate(valid_rule(conditions=[]))
        assert result.is_valid
        assert [i.field for i in result.warnings] == ["conditions"]

    def test_unknown_field_and_formula_only_warn(self):
        rule = valid_rule(
            conditions=[Condition(field="color", operator=Op.EQUALS, value="red")],
            calculations=[Calculation(result_kind=ResultKind.RATE, formula="aliquota_magica")],
        )
        result = RuleValidator(catalog=default_catalog).validate(rule)
        assert result.is_valid
        assert len(result.warnings) == 2

    def test_unknown_parameter_is_rejected(self):
        rule = valid_rule(calculations=[
            Calculation(result_kind=ResultKind.BASE, formula="base_reduzida_70", parameters=["price"]),
        ])
        assert not RuleValidator().validate(rule).is_valid

    def test_between_bounds(self):
        validator = RuleValidator()
        bad_count = valid_rule(conditions=[Condition(field="amount", operator=Op.BETWEEN, value=[1])])
        bad_type = valid_rule(conditions=[Condition(field="amount", operator=Op.BETWEEN, value=["a", 2])])
        good = valid_rule(conditions=[Condition(field="amount", operator=Op.BETWEEN, value=[1, "2.5"])])
        assert not validator.validate(bad_count).is_valid
        assert not validator.validate(bad_type).is_valid
        assert validator.validate(good).is_valid

    def test_numeric_operators_need_scalar_number(self):
        validator = RuleValidator()
        listed = valid_rule(conditions=[Condition(field="amount", operator=Op.GREATER_THAN, value=[1, 2])])
        text = valid_rule(conditions=[Condition(field="amount", operator=Op.LESS_THAN, value="abc")])
        assert not validator.validate(listed).is_valid
        assert not validator.validate(text).is_valid


class TestConfidenceThreshold:
    """Tests for the confidence gate on extracted rules."""

    def test_below_threshold_is_rejected(self):
        result = RuleValidator(confidence_threshold=70).validate(valid_rule(confidence=69))
        assert not result.is_valid
        assert result.errors[0].field == "confidence"

    def test_at_threshold_is_accepted(self):
        assert RuleValidator(confidence_threshold=70).validate(valid_rule(confidence=70)).is_valid

    def test_manual_rule_without_confidence_is_accepted(self):
        assert RuleValidator().validate(valid_rule(confidence=None)).is_valid


class TestCandidateValidation:
    """Tests for raw mappings proposed by the extraction assistant."""

    def test_malformed_candidate(self):
        result = RuleValidator().validate_candidate({"id": "x", "kind": "unknown_kind"})
        assert result.rule is None
        assert not result.is_valid
        assert any(i.field == "label" for i in result.errors)

    def test_well_formed_candidate(self):
        data = {
            "id": "x",
            "label": "Crédito outorgado",
            "kind": "presumed_credit",
            "confidence": 90,
            "conditions": [{"field": "cfop", "operator": "starts_with", "value": "5"}],
            "calculations": [{"result_kind": "credit", "formula": "credito_outorgado_3"}],
        }
        result = RuleValidator().validate_candidate(data)
        assert result.is_valid
        assert result.rule.kind == RuleKind.PRESUMED_CREDIT

    def test_summary_lists_errors(self):
        result = RuleValidator().validate(valid_rule(calculations=[], confidence=10))
        assert "calculations" in result.summary()
        assert "confidence" in result.summary()
