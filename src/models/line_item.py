"""
Line items and the engine's working copy of them.

A LineItem is one fiscal operation unit produced by the document parser
(an invoice item or a bookkeeping record). It is immutable; the rule engine
derives base, rate and credits onto an AssessedItem instead.
"""

from datetime import date
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field

from models._decimal_utils import money, percent
from models._frozen import FreezableModel
from rules.rule_types import RuleKind


class LineItem(BaseModel):
    """One fiscal operation unit, as extracted from a source document."""
    model_config = ConfigDict(frozen=True)

    item_id: str = Field(description="Identifier of the item within the batch")
    document_ref: str = Field(description="Access key or number of the source document")
    cfop: str = Field(description="Operation classification code (CFOP)")
    ncm: str = Field(default="", description="Product classification code (NCM)")
    cst: str = Field(default="", description="Tax situation code (CST or CSOSN)")
    description: str = Field(default="", description="Product description")
    jurisdiction: str = Field(default="", description="Origin federative unit (UF)")
    destination_jurisdiction: str = Field(
        default="", description="Destination federative unit (UF)"
    )
    customer_type: Optional[str] = Field(
        default=None, description="Recipient profile, e.g. 'contribuinte' or 'nao_contribuinte'"
    )
    operation_amount: Decimal = Field(ge=0, description="Gross operation amount")
    discounts: Decimal = Field(default=Decimal("0"), ge=0, description="Discounts granted")
    quantity: Decimal = Field(default=Decimal("1"), ge=0)
    declared_rate: Decimal = Field(
        default=Decimal("0"), ge=0, description="Rate declared on the document, in percent"
    )
    declared_tax: Decimal = Field(
        default=Decimal("0"), ge=0, description="Tax amount declared on the document"
    )
    issue_date: Optional[date] = None

    @computed_field
    @property
    def net_amount(self) -> Decimal:
        """Operation amount minus discounts, floored at zero."""
        return money(max(Decimal("0"), self.operation_amount - self.discounts))


class AssessedItem(FreezableModel):
    """
    Working copy of a LineItem during rule application.

    Rules mutate base, rate and the credit fields; a later rule sees the
    effects of an earlier one. Amounts due are derived, never stored.
    """
    line: LineItem

    base: Decimal = Decimal("0")
    rate: Decimal = Decimal("0")
    rate_locked: bool = False

    presumed_credit: Decimal = Decimal("0")
    substitution_base: Decimal = Decimal("0")
    substitution_rate: Decimal = Decimal("0")
    differential_due: Decimal = Decimal("0")
    levy_rate: Decimal = Decimal("0")
    protection_levy_rate: Decimal = Decimal("0")

    applied_rules: List[str] = Field(default_factory=list)
    applied_kinds: List[RuleKind] = Field(default_factory=list)
    observations: List[str] = Field(default_factory=list)
    error: Optional[str] = None

    @classmethod
    def from_line(cls, line: LineItem) -> "AssessedItem":
        return cls(line=line, base=line.net_amount, rate=line.declared_rate)

    @property
    def failed(self) -> bool:
        return self.error is not None

    @computed_field
    @property
    def tax_due(self) -> Decimal:
        """Primary tax: base times rate."""
        return percent(self.base, self.rate)

    @computed_field
    @property
    def substitution_due(self) -> Decimal:
        return percent(self.substitution_base, self.substitution_rate)

    @computed_field
    @property
    def levy_due(self) -> Decimal:
        """PROTEGE 2%, the debit settled by carryover."""
        return percent(self.base, self.levy_rate)

    @computed_field
    @property
    def protection_levy_due(self) -> Decimal:
        """PROTEGE 15%, paid in the period it is assessed."""
        return percent(self.base, self.protection_levy_rate)

    @computed_field
    @property
    def net_tax_due(self) -> Decimal:
        return self.tax_due - money(self.presumed_credit)
