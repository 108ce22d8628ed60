"""
Federal tax rates and default benefit eligibility.

Eligibility lists (NCM chapter prefixes, CFOP lists) are expressed as
declarative BenefitRules. A benefit type applies to an item when any
active rule of that type matches, so an "A or B" eligibility is written
as two rules of the same type.
"""

from decimal import Decimal
from typing import Dict, List

from models.federal import BenefitRule
from models.rule import Condition
from rules.rule_types import (
    CONTRIBUTION_SUB_TAXES,
    INCOME_SUB_TAXES,
    BenefitType,
    ConditionOperator,
    SubTax,
)

# ---------------------------------------------------------------------------
# Rates
# ---------------------------------------------------------------------------

STANDARD_RATES: Dict[SubTax, Decimal] = {
    SubTax.PIS: Decimal("1.65"),
    SubTax.COFINS: Decimal("7.6"),
    SubTax.IRPJ: Decimal("15"),
    SubTax.CSLL: Decimal("9"),
}

# CST 03-09: exempt, untaxed, suspended, deferred or charged earlier
ZERO_RATE_SITUATION_CODES = frozenset(f"{n:02d}" for n in range(3, 10))


def contribution_rate(sub_tax: SubTax, cst: str) -> Decimal:
    """PIS/COFINS rate by situation code; unknown codes get the standard rate."""
    if (cst or "").strip() in ZERO_RATE_SITUATION_CODES:
        return Decimal("0")
    return STANDARD_RATES[sub_tax]


def income_rate(sub_tax: SubTax) -> Decimal:
    return STANDARD_RATES[sub_tax]


# ---------------------------------------------------------------------------
# NCM chapter prefixes
# ---------------------------------------------------------------------------

CEREALS = [f"10{n:02d}" for n in range(1, 9)]             # 1001-1008
MILLING_PRODUCTS = [f"11{n:02d}" for n in range(1, 10)]   # 1101-1109
SEEDS = [f"12{n:02d}" for n in range(1, 10)]              # 1201-1209
FATS = [f"15{n:02d}" for n in range(1, 10)]               # 1501-1509
FUELS = [f"27{n:02d}" for n in range(1, 10)]              # 2701-2709

ENERGY = [f"27{n}" for n in range(10, 17)] + ["8544", "8545", "8546", "8547"]
FREIGHT = (
    [f"86{n:02d}" for n in range(1, 10)]      # railway
    + [f"87{n:02d}" for n in range(1, 10)]    # road vehicles
    + [f"88{n:02d}" for n in range(1, 6)]     # aircraft
    + [f"89{n:02d}" for n in range(1, 9)]     # vessels
)
PACKAGING = (
    ["3923", "3924", "3925", "3926"]
    + ["4819", "4820", "4821", "4822", "4823"]
    + [f"73{n}" for n in range(10, 20)]
)

ZERO_RATE_NCM = CEREALS + MILLING_PRODUCTS + SEEDS + FATS
PRESUMED_CREDIT_NCM = CEREALS + MILLING_PRODUCTS + SEEDS
INPUT_NCM = CEREALS + MILLING_PRODUCTS + SEEDS + FATS + FUELS
EXEMPTION_NCM = CEREALS + MILLING_PRODUCTS
REDUCTION_NCM = SEEDS

# Inbound CFOPs eligible for zero rate (purchases for industrialization/resale)
ZERO_RATE_CFOP = (
    ["1101", "1102", "1111", "1113", "1116", "1117", "1121", "1122"]
    + ["1124", "1125", "1126", "1128", "1131", "1132", "1135", "1136", "1138"]
    + [str(n) for n in range(1141, 1200) if n % 10 != 0]
)
PRESUMED_CREDIT_CFOP = [
    "1101", "1103", "1104", "1105", "1106", "1107", "1108", "1109", "1110",
    "1112", "1114", "1115", "1118", "1119", "1120", "1123", "1127", "1129",
    "1130", "1133", "1134", "1137", "1139", "1140",
]

CREDIT_SITUATION_CODES = ["01", "02", "03"]

DEFAULT_PRESUMED_CREDIT_PERCENTAGE = Decimal("60")
DEFAULT_REDUCTION_PERCENTAGE = Decimal("75")


def _cond(field: str, operator: ConditionOperator, value) -> Condition:
    return Condition(field=field, operator=operator, value=value)


def _ledger_credit_rule(rule_id: str, label: str, benefit_type: BenefitType, ncm: List[str]) -> BenefitRule:
    return BenefitRule(
        id=rule_id,
        label=label,
        benefit_type=benefit_type,
        sub_taxes=list(CONTRIBUTION_SUB_TAXES),
        conditions=[
            _cond("cfop", ConditionOperator.STARTS_WITH, "1"),
            _cond("cst", ConditionOperator.EQUALS, CREDIT_SITUATION_CODES),
            _cond("ncm", ConditionOperator.STARTS_WITH, ncm),
        ],
    )


def default_benefit_rules(
    presumed_credit_percentage: Decimal = DEFAULT_PRESUMED_CREDIT_PERCENTAGE,
    reduction_percentage: Decimal = DEFAULT_REDUCTION_PERCENTAGE,
) -> List[BenefitRule]:
    """Baseline federal benefit rules."""
    contribution = list(CONTRIBUTION_SUB_TAXES)
    income = list(INCOME_SUB_TAXES)

    return [
        BenefitRule(
            id="fed_zero_rate_cfop",
            label="Alíquota zero - CFOP de entrada",
            benefit_type=BenefitType.ZERO_RATE,
            sub_taxes=contribution,
            conditions=[_cond("cfop", ConditionOperator.EQUALS, ZERO_RATE_CFOP)],
        ),
        BenefitRule(
            id="fed_zero_rate_ncm",
            label="Alíquota zero - produtos agrícolas",
            benefit_type=BenefitType.ZERO_RATE,
            sub_taxes=contribution,
            conditions=[_cond("ncm", ConditionOperator.STARTS_WITH, ZERO_RATE_NCM)],
        ),
        BenefitRule(
            id="fed_presumed_credit_cfop",
            label="Crédito presumido - CFOP de entrada",
            benefit_type=BenefitType.PRESUMED_CREDIT,
            percentage=presumed_credit_percentage,
            sub_taxes=contribution,
            conditions=[_cond("cfop", ConditionOperator.EQUALS, PRESUMED_CREDIT_CFOP)],
        ),
        BenefitRule(
            id="fed_presumed_credit_ncm",
            label="Crédito presumido - agroindústria",
            benefit_type=BenefitType.PRESUMED_CREDIT,
            percentage=presumed_credit_percentage,
            sub_taxes=contribution,
            conditions=[_cond("ncm", ConditionOperator.STARTS_WITH, PRESUMED_CREDIT_NCM)],
        ),
        _ledger_credit_rule("fed_input_credit", "Crédito de insumos", BenefitType.INPUT_CREDIT, INPUT_NCM),
        _ledger_credit_rule("fed_energy_credit", "Crédito de energia", BenefitType.ENERGY_CREDIT, ENERGY),
        _ledger_credit_rule("fed_freight_credit", "Crédito de frete", BenefitType.FREIGHT_CREDIT, FREIGHT),
        _ledger_credit_rule("fed_packaging_credit", "Crédito de embalagens",
                            BenefitType.PACKAGING_CREDIT, PACKAGING),
        BenefitRule(
            id="fed_exemption_cfop",
            label="Isenção IRPJ/CSLL - compras para industrialização",
            benefit_type=BenefitType.EXEMPTION,
            sub_taxes=income,
            conditions=[_cond("cfop", ConditionOperator.STARTS_WITH, ["11", "12"])],
        ),
        BenefitRule(
            id="fed_exemption_ncm",
            label="Isenção IRPJ/CSLL - cereais e moagem",
            benefit_type=BenefitType.EXEMPTION,
            sub_taxes=income,
            conditions=[_cond("ncm", ConditionOperator.STARTS_WITH, EXEMPTION_NCM)],
        ),
        BenefitRule(
            id="fed_reduction_seeds",
            label="Redução de base IRPJ/CSLL - sementes",
            benefit_type=BenefitType.REDUCTION,
            percentage=reduction_percentage,
            sub_taxes=income,
            conditions=[_cond("ncm", ConditionOperator.STARTS_WITH, REDUCTION_NCM)],
        ),
    ]
