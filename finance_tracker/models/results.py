"""
Result Models for Finance Tracker

Explicit outcomes of the reconciliation engine:
- PriceResult: what the price resolution chain found for one symbol
- RefreshSummary: the tally of one bulk refresh run
- *Totals: aggregate views over the stored positions

DESIGN DECISION: "No price available" is a value, not an exception.
Callers branch on PriceResult.found instead of catching errors,
so a failing provider can never abort a bulk run.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class PriceResult(BaseModel):
    """Outcome of resolving one symbol through the provider chain."""

    symbol: str
    price: Optional[Decimal] = Field(
        default=None,
        description="Resolved price; None when every provider came back empty"
    )
    source: Optional[str] = Field(
        default=None,
        description="Name of the provider that produced the price"
    )
    errors: list[str] = Field(
        default_factory=list,
        description="One entry per provider that failed, in call order"
    )
    configuration_error: Optional[str] = Field(
        default=None,
        description="Set when a needed provider is not configured (actionable)"
    )

    @property
    def found(self) -> bool:
        return self.price is not None and self.price > 0


class RefreshKind(str, Enum):
    """The refresh entry points a periodic trigger can invoke."""
    PRICES = "prices"
    NAVS = "navs"
    CONTRIBUTIONS = "contributions"
    LOAN_BALANCES = "loan_balances"


class RunStatus(str, Enum):
    """How a refresh run ended."""
    RUNNING = "running"
    COMPLETED = "completed"
    ABORTED = "aborted"                  # nothing to reconcile against
    ALREADY_RUNNING = "already_running"  # single-flight rejected the call
    TIMED_OUT = "timed_out"


class RefreshSummary(BaseModel):
    """
    Tally of one refresh run.

    Partial failure is not an error: the run completes and reports
    how many records were updated, failed or skipped.
    """

    run_id: UUID = Field(
        default_factory=uuid4,
        description="Correlation ID shared by every audit event of the run"
    )
    kind: RefreshKind
    status: RunStatus = RunStatus.RUNNING
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None

    succeeded: int = Field(default=0, ge=0)
    failed: int = Field(default=0, ge=0)
    skipped: int = Field(default=0, ge=0)

    # Actionable problems (e.g. missing credentials), deduplicated
    diagnostics: list[str] = Field(default_factory=list)

    @property
    def processed(self) -> int:
        return self.succeeded + self.failed + self.skipped

    def add_diagnostic(self, message: str) -> None:
        if message not in self.diagnostics:
            self.diagnostics.append(message)

    def finish(self, status: RunStatus = RunStatus.COMPLETED) -> 'RefreshSummary':
        self.status = status
        self.finished_at = datetime.now(timezone.utc)
        return self

    def to_log_dict(self) -> dict:
        return {
            "run_id": str(self.run_id),
            "kind": self.kind.value,
            "status": self.status.value,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "skipped": self.skipped,
            "diagnostics": self.diagnostics,
        }


# =============================================================================
# SUMMARY MODELS
# =============================================================================

class InvestmentTotals(BaseModel):
    """Aggregate value of all investments."""

    count: int = Field(ge=0)
    total_cost: Decimal
    total_current_value: Decimal
    total_profit_loss: Decimal


class LoanTotals(BaseModel):
    """Aggregate outstanding debt."""

    count: int = Field(ge=0)
    total_principal: Decimal
    total_outstanding_balance: Decimal


class PlanTotals(BaseModel):
    """Aggregate value of all recurring plans."""

    count: int = Field(ge=0)
    total_investment: Decimal
    total_current_value: Decimal
    total_profit_loss: Decimal
