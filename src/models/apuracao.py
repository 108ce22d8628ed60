"""
Assessment run results, period totals and period credits.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, computed_field

from domain.exceptions import ResultFinalizedError
from models._frozen import FreezableModel
from models.line_item import AssessedItem
from models.rule import Rule
from rules.rule_types import RunStatus

FINAL_STATUSES = (RunStatus.DONE, RunStatus.FAILED)


class Totals(FreezableModel):
    """Period totals folded from item results. Derived, never edited."""
    operation_amount: Decimal = Decimal("0")
    base: Decimal = Decimal("0")
    tax_due: Decimal = Decimal("0")
    substitution_base: Decimal = Decimal("0")
    substitution_due: Decimal = Decimal("0")
    differential_due: Decimal = Decimal("0")
    presumed_credit: Decimal = Decimal("0")
    secondary_levy_due: Decimal = Decimal("0")
    protection_levy_due: Decimal = Decimal("0")
    by_rule: Dict[str, Decimal] = Field(
        default_factory=dict, description="Rule id -> tax due of the items it fired on"
    )
    by_benefit: Dict[str, Decimal] = Field(
        default_factory=dict, description="Rule kind -> tax due of the items it fired on"
    )
    item_count: int = 0
    failed_item_count: int = 0

    @computed_field
    @property
    def balance(self) -> Decimal:
        """Tax due after presumed credits."""
        return self.tax_due - self.presumed_credit


class PeriodCredit(BaseModel):
    """
    Stored outcome of one period's secondary-levy settlement.

    The credit available to the following period is payment plus rollover.
    """
    taxpayer_id: str
    period: str = Field(description="YYYYMM")
    debit: Decimal = Decimal("0")
    payment: Decimal = Decimal("0")
    rollover_credit: Decimal = Decimal("0")
    version: int = Field(default=0, description="Incremented on every write")
    updated_at: Optional[datetime] = None

    @computed_field
    @property
    def available_credit(self) -> Decimal:
        return self.payment + self.rollover_credit


class CarryoverBalance(FreezableModel):
    """Outcome of settling one period's debit against the prior credit."""
    taxpayer_id: str
    period: str
    debit: Decimal
    prior_credit: Decimal
    amount_due: Decimal
    rollover_credit: Decimal
    recorded: bool = False


class CarryoverStatementLine(BaseModel):
    period: str
    debit: Decimal = Decimal("0")
    credit_available: Decimal = Decimal("0")
    credit_consumed: Decimal = Decimal("0")
    payment: Decimal = Decimal("0")
    rollover_credit: Decimal = Decimal("0")


class CarryoverStatement(BaseModel):
    """Per-period payments and credits of one taxpayer over a range."""
    taxpayer_id: str
    start_period: str
    end_period: str
    lines: List[CarryoverStatementLine] = Field(default_factory=list)

    @computed_field
    @property
    def total_debit(self) -> Decimal:
        return sum((line.debit for line in self.lines), Decimal("0"))

    @computed_field
    @property
    def total_paid(self) -> Decimal:
        return sum((line.payment for line in self.lines), Decimal("0"))

    @computed_field
    @property
    def total_credit_consumed(self) -> Decimal:
        return sum((line.credit_consumed for line in self.lines), Decimal("0"))

    @computed_field
    @property
    def closing_credit(self) -> Decimal:
        """Credit carried out of the last period of the range."""
        if not self.lines:
            return Decimal("0")
        last = self.lines[-1]
        return last.payment + last.rollover_credit


class ApuracaoResult(FreezableModel):
    """
    One assessment run for a taxpayer and period.

    Created pending, mutated by the service that owns the run, and frozen
    once the status reaches done or failed. Frozen covers nested values too:
    assigning an attribute of the result, its totals or an item, or changing
    one of its lists, raises ResultFinalizedError.
    """
    taxpayer_id: str
    period: str
    status: RunStatus = RunStatus.PENDING
    rules: List[Rule] = Field(default_factory=list)
    rejected_rules: List[str] = Field(default_factory=list)
    items: List[AssessedItem] = Field(default_factory=list)
    totals: Totals = Field(default_factory=Totals)
    carryover: Optional[CarryoverBalance] = None
    observations: List[str] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)
    confidence: int = Field(default=0, ge=0, le=100)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    def __setattr__(self, name, value):
        if self.__dict__.get("status") in FINAL_STATUSES:
            raise ResultFinalizedError(
                f"Result {self.taxpayer_id}/{self.period} is {self.status.value}; "
                f"cannot set {name}"
            )
        super().__setattr__(name, value)

    @property
    def is_final(self) -> bool:
        return self.status in FINAL_STATUSES

    def model_post_init(self, __context: Any) -> None:
        if self.status in FINAL_STATUSES:
            self.finalize()

    def finish(self, status: RunStatus) -> "ApuracaoResult":
        """Stamp the finish time, move to a final status and freeze."""
        self.finished_at = datetime.now(timezone.utc)
        self.status = status
        self.finalize()
        return self
