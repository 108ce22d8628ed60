"""
Declarative assessment rules.

A Rule is a list of conditions (all must hold) and a list of calculations
executed in order when it matches. Rules come from the rule repository,
from the built-in default sets, or from the extraction assistant.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Union

from pydantic import Field

from models._frozen import FreezableModel
from rules.rule_types import ConditionOperator, LogicConnector, ResultKind, RuleKind

Scalar = Union[Decimal, int, str]
ConditionValue = Union[Scalar, List[Scalar]]


class Condition(FreezableModel):
    """Test of one item field against a literal or list value."""
    field: str = Field(description="Item field name, e.g. 'cfop', 'ncm', 'amount'")
    operator: ConditionOperator
    value: ConditionValue
    logic: LogicConnector = LogicConnector.AND


class Calculation(FreezableModel):
    """Formula evaluation whose result is written into one item field."""
    result_kind: ResultKind
    formula: str = Field(description="Key resolved against the formula catalog")
    parameters: List[str] = Field(
        default_factory=list, description="Item fields the formula consumes"
    )


class Rule(FreezableModel):
    """
    ICMS assessment rule.

    Invariant: a rule whose confidence is below the configured threshold is
    never active. RuleStore enforces it when rules are loaded or proposed,
    and the rule engine skips such rules if they reach it anyway.
    """
    id: str
    label: str
    kind: RuleKind
    conditions: List[Condition] = Field(default_factory=list)
    calculations: List[Calculation] = Field(default_factory=list)
    priority: int = Field(default=0, description="Higher runs first")
    active: bool = True
    source: str = Field(default="manual", description="Provenance tag")
    confidence: Optional[int] = Field(default=None, ge=0, le=100)
    taxpayer_id: Optional[str] = None
    jurisdiction: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def order_key(self):
        """Priority descending, ties broken by id."""
        return (-self.priority, self.id)
