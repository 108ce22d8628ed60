"""
Baseline ICMS rules per federative unit.

These are loaded into a rule repository when a taxpayer has no rules of
its own (see InMemoryRuleRepository.seed_defaults). They go through the
same validation as any other rule.
"""

from datetime import datetime
from typing import List, Optional

from models.rule import Calculation, Condition, Rule
from rules.rule_types import ConditionOperator, ResultKind, RuleKind

EFFECTIVE_FROM = datetime(2024, 1, 1)

SIMPLIFIED_REGIME_CSTS = ["102", "202"]


def _sp_rules() -> List[Rule]:
    return [
        Rule(
            id="sp_base_reduzida_1",
            label="Base reduzida para produtos essenciais",
            kind=RuleKind.REDUCED_BASE,
            jurisdiction="SP",
            priority=20,
            source="default",
            conditions=[
                Condition(field="jurisdiction", operator=ConditionOperator.EQUALS, value="SP"),
                Condition(field="ncm", operator=ConditionOperator.EQUALS, value=["21069090", "22021000"]),
                Condition(field="cfop", operator=ConditionOperator.EQUALS, value=["5102", "5405"]),
                Condition(field="cst", operator=ConditionOperator.EQUALS, value=SIMPLIFIED_REGIME_CSTS),
            ],
            calculations=[
                Calculation(result_kind=ResultKind.BASE, formula="base_reduzida_70", parameters=["amount", "discounts"]),
                Calculation(result_kind=ResultKind.RATE, formula="aliquota_icms_18"),
            ],
            created_at=EFFECTIVE_FROM,
        ),
        Rule(
            id="sp_protege_1",
            label="Protege para produtos da cesta básica",
            kind=RuleKind.SPECIAL_PROTECTION_LEVY,
            jurisdiction="SP",
            priority=10,
            source="default",
            conditions=[
                Condition(field="jurisdiction", operator=ConditionOperator.EQUALS, value="SP"),
                Condition(field="ncm", operator=ConditionOperator.EQUALS, value=["10063000", "10064000"]),
                Condition(field="cfop", operator=ConditionOperator.EQUALS, value=["5102", "5405"]),
                Condition(field="cst", operator=ConditionOperator.EQUALS, value=SIMPLIFIED_REGIME_CSTS),
            ],
            calculations=[
                Calculation(result_kind=ResultKind.RATE, formula="aliquota_icms_7"),
                Calculation(result_kind=ResultKind.LEVY, formula="protege_2", parameters=["base"]),
            ],
            created_at=EFFECTIVE_FROM,
        ),
    ]


def _rj_rules() -> List[Rule]:
    return [
        Rule(
            id="rj_difal_1",
            label="DIFAL para operações interestaduais",
            kind=RuleKind.CROSS_STATE_DIFFERENTIAL,
            jurisdiction="RJ",
            priority=10,
            source="default",
            conditions=[
                Condition(field="destination_jurisdiction", operator=ConditionOperator.EQUALS, value="RJ"),
                Condition(field="cfop", operator=ConditionOperator.EQUALS, value=["6102", "6405"]),
                Condition(field="cst", operator=ConditionOperator.EQUALS, value=SIMPLIFIED_REGIME_CSTS),
            ],
            calculations=[
                Calculation(result_kind=ResultKind.RATE, formula="aliquota_interestadual",
                            parameters=["jurisdiction", "destination_jurisdiction"]),
                Calculation(result_kind=ResultKind.DIFFERENTIAL, formula="difal_destino",
                            parameters=["base", "destination_jurisdiction"]),
            ],
            created_at=EFFECTIVE_FROM,
        ),
    ]


_BUILDERS = {
    "SP": _sp_rules,
    "RJ": _rj_rules,
}


def default_rules(jurisdiction: Optional[str] = None) -> List[Rule]:
    """Default rules of one UF, or of every UF when jurisdiction is None."""
    if jurisdiction is None:
        return [rule for build in _BUILDERS.values() for rule in build()]
    build = _BUILDERS.get(jurisdiction.strip().upper())
    return build() if build else []
