"""
Federal multi-tax apuração models (PIS, COFINS, IRPJ, CSLL).

Benefit rules are declarative like ICMS rules but carry a benefit type and
a percentage instead of calculations; the stacking order is fixed by the
benefit stacker, not by priority.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from domain.exceptions import ResultFinalizedError
from models._frozen import FreezableModel
from models.apuracao import FINAL_STATUSES
from models.line_item import LineItem
from models.rule import Condition
from rules.rule_types import BenefitType, RunStatus, SubTax


class BenefitRule(FreezableModel):
    """Eligibility conditions for one federal benefit."""
    id: str
    label: str
    benefit_type: BenefitType
    conditions: List[Condition] = Field(default_factory=list)
    percentage: Decimal = Field(
        default=Decimal("0"), ge=0, le=100,
        description="Presumed credit or base reduction percentage"
    )
    sub_taxes: List[SubTax] = Field(
        default_factory=list, description="Sub-taxes the benefit applies to"
    )
    active: bool = True


class LedgerEntry(BaseModel):
    """Credit line from the contribution bookkeeping ledger."""
    document_ref: str
    item_ref: Optional[str] = Field(
        default=None, description="Restricts the credit to one item of the document"
    )
    credit_type: BenefitType
    sub_tax: SubTax
    amount: Decimal = Field(ge=0)


class SubTaxResult(FreezableModel):
    """One sub-tax of one item after benefit stacking."""
    sub_tax: SubTax
    base: Decimal = Decimal("0")
    rate: Decimal = Decimal("0")
    gross_due: Decimal = Decimal("0")
    credits: Dict[str, Decimal] = Field(
        default_factory=dict, description="Benefit type -> credit applied (only > 0)"
    )
    exempted_amount: Decimal = Decimal("0")
    due: Decimal = Decimal("0")


class FederalItemResult(FreezableModel):
    line: LineItem
    base: Decimal = Decimal("0")
    sub_taxes: Dict[SubTax, SubTaxResult] = Field(default_factory=dict)
    applied_benefits: List[str] = Field(default_factory=list)
    observations: List[str] = Field(default_factory=list)
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error is not None

    def due(self, sub_tax: SubTax) -> Decimal:
        result = self.sub_taxes.get(sub_tax)
        return result.due if result else Decimal("0")


class FederalTotals(FreezableModel):
    operation_amount: Decimal = Decimal("0")
    base: Decimal = Decimal("0")
    due_by_sub_tax: Dict[str, Decimal] = Field(default_factory=dict)
    credits_by_type: Dict[str, Decimal] = Field(default_factory=dict)
    by_benefit: Dict[str, Decimal] = Field(
        default_factory=dict, description="Benefit rule id -> total due of matched items"
    )
    exempted_amount: Decimal = Decimal("0")
    item_count: int = 0
    failed_item_count: int = 0

    @property
    def total_due(self) -> Decimal:
        return sum(self.due_by_sub_tax.values(), Decimal("0"))


class FederalApuracaoResult(FreezableModel):
    """Federal run; frozen once done or failed, like ApuracaoResult."""
    taxpayer_id: str
    period: str
    status: RunStatus = RunStatus.PENDING
    benefit_rules: List[BenefitRule] = Field(default_factory=list)
    items: List[FederalItemResult] = Field(default_factory=list)
    totals: FederalTotals = Field(default_factory=FederalTotals)
    observations: List[str] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)
    confidence: int = Field(default=0, ge=0, le=100)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    def __setattr__(self, name, value):
        if self.__dict__.get("status") in FINAL_STATUSES:
            raise ResultFinalizedError(
                f"Federal result {self.taxpayer_id}/{self.period} is final; cannot set {name}"
            )
        super().__setattr__(name, value)

    def model_post_init(self, __context: Any) -> None:
        if self.status in FINAL_STATUSES:
            self.finalize()

    def finish(self, status: RunStatus) -> "FederalApuracaoResult":
        self.finished_at = datetime.now(timezone.utc)
        self.status = status
        self.finalize()
        return self
