"""
Rule type definitions.

Provides the closed vocabularies used by rules, conditions, calculations
and federal benefits. Kept free of imports from the rest of the package so
models and engines can both depend on it without circular imports.
"""

from enum import Enum


class RuleKind(str, Enum):
    """Kinds of ICMS assessment rules."""
    REDUCED_BASE = "reduced_base"                          # Base reduzida
    PRESUMED_CREDIT = "presumed_credit"                    # Crédito outorgado/presumido
    SPECIAL_PROTECTION_LEVY = "special_protection_levy"    # PROTEGE
    CROSS_STATE_DIFFERENTIAL = "cross_state_differential"  # DIFAL
    FIXED_ASSET_CREDIT = "fixed_asset_credit"              # CIAP
    TAX_SUBSTITUTION = "tax_substitution"                  # ST
    EXEMPTION = "exemption"                                # Isenção


class ConditionOperator(str, Enum):
    """Comparison operators available to rule conditions."""
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"
    STARTS_WITH = "starts_with"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    BETWEEN = "between"


class LogicConnector(str, Enum):
    """Connector of a condition relative to its siblings.

    Carried by the data model but not interpreted: conditions of a rule
    are always combined with AND.
    """
    AND = "AND"
    OR = "OR"


class ResultKind(str, Enum):
    """Which working-item field a calculation writes."""
    BASE = "base"
    RATE = "rate"
    CREDIT = "credit"
    SUBSTITUTION_BASE = "substitution_base"
    DIFFERENTIAL = "differential"
    LEVY = "levy"                           # PROTEGE 2%, settled by carryover
    PROTECTION_LEVY = "protection_levy"     # PROTEGE 15%, paid directly


class ConditionField(str, Enum):
    """Item fields addressable by conditions and calculation parameters."""
    CFOP = "cfop"
    NCM = "ncm"
    CST = "cst"
    JURISDICTION = "jurisdiction"
    DESTINATION_JURISDICTION = "destination_jurisdiction"
    CUSTOMER_TYPE = "customer_type"
    DESCRIPTION = "description"
    AMOUNT = "amount"
    DISCOUNTS = "discounts"
    QUANTITY = "quantity"
    BASE = "base"
    RATE = "rate"
    DECLARED_TAX = "declared_tax"


class RunStatus(str, Enum):
    """Lifecycle of an assessment run."""
    PENDING = "pending"
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"


class SubTax(str, Enum):
    """Federal levies computed from the same item base."""
    PIS = "pis"
    COFINS = "cofins"
    IRPJ = "irpj"
    CSLL = "csll"


class BenefitType(str, Enum):
    """Federal fiscal benefits, declared in stacking order."""
    ZERO_RATE = "zero_rate"
    PRESUMED_CREDIT = "presumed_credit"
    INPUT_CREDIT = "input_credit"
    ENERGY_CREDIT = "energy_credit"
    FREIGHT_CREDIT = "freight_credit"
    PACKAGING_CREDIT = "packaging_credit"
    EXEMPTION = "exemption"
    REDUCTION = "reduction"


# Contribution-style sub-taxes take credits; income-style take exemption/reduction.
CONTRIBUTION_SUB_TAXES = (SubTax.PIS, SubTax.COFINS)
INCOME_SUB_TAXES = (SubTax.IRPJ, SubTax.CSLL)

# Ledger-sourced credits, applied in this order after the presumed credit.
LEDGER_CREDIT_ORDER = (
    BenefitType.INPUT_CREDIT,
    BenefitType.ENERGY_CREDIT,
    BenefitType.FREIGHT_CREDIT,
    BenefitType.PACKAGING_CREDIT,
)
