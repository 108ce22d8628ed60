"""Tests for period aggregation."""

import itertools
import random
from decimal import Decimal

from calculator.aggregator import Aggregator, aggregate
from calculator.benefit_stacker import BenefitStacker
from calculator.rule_engine import apply_rules
from models.federal import BenefitRule
from models.rule import Calculation, Condition, Rule
from rules.rule_types import BenefitType, ConditionOperator as Op, ResultKind, RuleKind, SubTax


def sample_rules():
    return [
        Rule(
            id="reduce_beverages",
            label="Base reduzida bebidas",
            kind=RuleKind.REDUCED_BASE,
            priority=20,
            conditions=[Condition(field="ncm", operator=Op.STARTS_WITH, value="2202")],
            calculations=[
                Calculation(result_kind=ResultKind.BASE, formula="base_reduzida_70"),
                Calculation(result_kind=ResultKind.RATE, formula="aliquota_icms_18"),
            ],
        ),
        Rule(
            id="standard_rate",
            label="Alíquota padrão",
            kind=RuleKind.TAX_SUBSTITUTION,
            priority=10,
            conditions=[Condition(field="ncm", operator=Op.NOT_EQUALS, value="22021000")],
            calculations=[
                Calculation(result_kind=ResultKind.RATE, formula="aliquota_icms_12"),
                Calculation(result_kind=ResultKind.SUBSTITUTION_BASE, formula="st_18"),
            ],
        ),
        Rule(
            id="levy",
            label="Protege",
            kind=RuleKind.SPECIAL_PROTECTION_LEVY,
            priority=5,
            conditions=[Condition(field="amount", operator=Op.GREATER_THAN, value=300)],
            calculations=[Calculation(result_kind=ResultKind.LEVY, formula="protege_2")],
        ),
    ]


def sample_lines(line_factory, count=6, seed=7):
    rng = random.Random(seed)
    ncms = ["22021000", "10063000", "84713012"]
    return [
        line_factory(
            item_id=str(n),
            ncm=rng.choice(ncms),
            operation_amount=Decimal(rng.randint(1, 100000)) / 100,
            discounts=Decimal(rng.randint(0, 1000)) / 100,
        )
        for n in range(count)
    ]


class TestAggregate:
    """Tests for ICMS totals."""

    def test_sums_and_segments(self, line_factory):
        lines = [
            line_factory(item_id="1", ncm="22021000"),
            line_factory(item_id="2", ncm="10063000", operation_amount=Decimal("200")),
        ]
        totals = aggregate(apply_rules(lines, sample_rules()))

        # Item 1: base 700, rate 18 -> 126; levy 2% of 700 -> 14
        # Item 2: base 200, rate 12 -> 24; ST 18% of 200 -> 36
        assert totals.operation_amount == Decimal("1200.00")
        assert totals.base == Decimal("900.00")
        assert totals.tax_due == Decimal("150.00")
        assert totals.substitution_due == Decimal("36.00")
        assert totals.secondary_levy_due == Decimal("14.00")
        assert totals.by_rule == {
            "reduce_beverages": Decimal("126.00"),
            "levy": Decimal("126.00"),
            "standard_rate": Decimal("24.00"),
        }
        assert totals.by_benefit["tax_substitution"] == Decimal("24.00")
        assert totals.item_count == 2

    def test_failed_items_are_counted_not_summed(self, line_factory):
        items = apply_rules([line_factory(item_id="1"), line_factory(item_id="2")], sample_rules())
        items[1].error = "ValueError: boom"
        totals = aggregate(items)
        assert totals.item_count == 2
        assert totals.failed_item_count == 1
        assert totals.operation_amount == Decimal("1000.00")

    def test_rule_counted_once_per_item(self, line_factory):
        items = apply_rules([line_factory()], sample_rules())
        items[0].applied_rules.append("reduce_beverages")
        totals = aggregate(items)
        assert totals.by_rule["reduce_beverages"] == items[0].tax_due

    def test_empty(self):
        totals = aggregate([])
        assert totals.tax_due == Decimal("0")
        assert totals.balance == Decimal("0")
        assert totals.item_count == 0

    def test_balance_nets_presumed_credit(self, line_factory):
        rule = Rule(
            id="credit",
            label="Crédito outorgado",
            kind=RuleKind.PRESUMED_CREDIT,
            calculations=[
                Calculation(result_kind=ResultKind.RATE, formula="aliquota_icms_18"),
                Calculation(result_kind=ResultKind.CREDIT, formula="credito_outorgado_5"),
            ],
        )
        totals = aggregate(apply_rules([line_factory()], [rule]))
        assert totals.presumed_credit == Decimal("9.00")
        assert totals.balance == Decimal("171.00")


class TestOrderInvariance:
    """Aggregation must not depend on item order."""

    def test_all_permutations_of_small_batch(self, line_factory):
        items = apply_rules(sample_lines(line_factory, count=5), sample_rules())
        expected = aggregate(items).model_dump()
        for permutation in itertools.permutations(items):
            assert aggregate(permutation).model_dump() == expected

    def test_random_shuffles_of_larger_batch(self, line_factory):
        """Test apply-then-aggregate is invariant under shuffling the input lines."""
        lines = sample_lines(line_factory, count=60, seed=11)
        expected = aggregate(apply_rules(lines, sample_rules())).model_dump()
        rng = random.Random(1234)
        for _ in range(20):
            shuffled = list(lines)
            rng.shuffle(shuffled)
            assert aggregate(apply_rules(shuffled, sample_rules())).model_dump() == expected


class TestAggregateFederal:
    """Tests for federal totals."""

    def test_federal_totals(self, line_factory):
        stacker = BenefitStacker([
            BenefitRule(
                id="presumed",
                label="Crédito presumido",
                benefit_type=BenefitType.PRESUMED_CREDIT,
                percentage=Decimal("60"),
                sub_taxes=[SubTax.PIS],
            ),
        ])
        results = [stacker.stack(line_factory(item_id=str(n), cst="01")) for n in range(3)]
        results[2].error = "boom"
        totals = Aggregator().aggregate_federal(results)

        assert totals.item_count == 3
        assert totals.failed_item_count == 1
        assert totals.base == Decimal("2000.00")
        assert totals.due_by_sub_tax["pis"] == Decimal("13.20")
        assert totals.due_by_sub_tax["cofins"] == Decimal("152.00")
        assert totals.credits_by_type == {"presumed_credit": Decimal("19.80")}
        assert totals.by_benefit == {"presumed": Decimal("13.20") + Decimal("152.00") + Decimal("480.00")}
        assert totals.total_due == Decimal("645.20")
