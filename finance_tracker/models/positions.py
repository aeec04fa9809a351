"""
Position Models for Finance Tracker

These models define the records the reconciliation engine reads and
writes back through the record store:
1. Investments (market-priced instruments)
2. Loans (amortizing balances)
3. Recurring plans (monthly contributions into a fund scheme)
4. Expenses

DESIGN DECISION: Money, prices and units are Decimal end to end.
Every rounding step in the engine is an explicit quantize with
ROUND_HALF_UP, so results are reproducible across runs.
"""

import calendar
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator


CENTS = Decimal("0.01")
ZERO = Decimal("0")


# =============================================================================
# CALENDAR HELPERS
# =============================================================================

def whole_months_between(start: date, end: date) -> int:
    """
    Whole calendar months from start to end.

    A month only counts once the day-of-month has been reached again:
    Jan 31 -> Feb 28 is 0 months, Jan 15 -> Feb 15 is 1 month.
    Returns 0 when end is not after start.
    """
    if end <= start:
        return 0
    months = (end.year - start.year) * 12 + (end.month - start.month)
    if end.day < start.day:
        months -= 1
    return max(months, 0)


def add_months(start: date, months: int) -> date:
    """Shift a date by whole months, clamping to the last day of the target month."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


# =============================================================================
# ENUMS
# =============================================================================

class InstrumentKind(str, Enum):
    """Kinds of market-priced investments."""
    STOCK = "stock"
    MUTUAL_FUND = "mutual_fund"
    ETF = "etf"
    BOND = "bond"
    OTHER = "other"


class InterestType(str, Enum):
    """Interest regime of a loan."""
    SIMPLE = "simple"
    COMPOUND = "compound"


class CompoundingFrequency(str, Enum):
    """
    Compounding period for compound-interest loans.

    Ignored for simple-interest loans.
    """
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"

    @property
    def months(self) -> int:
        """Number of months in one compounding period."""
        return {"monthly": 1, "quarterly": 3, "yearly": 12}[self.value]


# =============================================================================
# INVESTMENTS
# =============================================================================

class Investment(BaseModel):
    """
    A market-priced position.

    current_price is 0 until the price resolution chain has found a
    price for the symbol at least once.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    name: str = Field(..., min_length=1, max_length=200)
    symbol: str = Field(
        ...,
        min_length=1,
        max_length=40,
        description="Ticker, optionally with an exchange suffix (e.g. INFY.NS)"
    )
    kind: InstrumentKind = InstrumentKind.STOCK
    quantity: Decimal = Field(..., gt=0)
    purchase_price: Decimal = Field(..., gt=0)
    current_price: Decimal = Field(
        default=ZERO,
        ge=0,
        description="Last resolved market price, 0 if never resolved"
    )
    purchase_date: Optional[date] = None
    last_updated: Optional[date] = None

    @property
    def cost_basis(self) -> Decimal:
        return self.quantity * self.purchase_price

    @property
    def current_value(self) -> Decimal:
        return self.quantity * self.current_price

    @property
    def profit_loss(self) -> Decimal:
        return self.current_value - self.cost_basis

    @property
    def return_percentage(self) -> Decimal:
        """Profit/loss as a percentage of cost basis (2 dp)."""
        if self.cost_basis == 0:
            return ZERO
        return (self.profit_loss * 100 / self.cost_basis).quantize(
            CENTS, rounding=ROUND_HALF_UP
        )


# =============================================================================
# LOANS
# =============================================================================

class Loan(BaseModel):
    """
    An amortizing loan.

    emi_amount is computed once when the loan is created and
    current_balance starts at the principal. After that, only the
    amortization engine moves the balance.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    name: str = Field(..., min_length=1, max_length=200)
    principal_amount: Decimal = Field(..., gt=0, decimal_places=2)
    interest_rate: Decimal = Field(
        ...,
        gt=0,
        description="Nominal annual rate, in percent"
    )
    interest_type: InterestType
    compounding_frequency: CompoundingFrequency = CompoundingFrequency.MONTHLY
    start_date: Optional[date] = None
    tenure_months: Optional[int] = Field(default=None, gt=0)
    emi_amount: Optional[Decimal] = Field(default=None, ge=0)
    current_balance: Optional[Decimal] = Field(default=None, ge=0)
    last_updated: Optional[date] = None

    @model_validator(mode='after')
    def validate_balance(self) -> 'Loan':
        """Outstanding balance can never exceed the principal."""
        if self.current_balance is not None:
            if self.current_balance > self.principal_amount:
                raise ValueError("Current balance cannot exceed principal amount")
        return self

    @property
    def end_date(self) -> Optional[date]:
        if self.start_date is None or self.tenure_months is None:
            return None
        return add_months(self.start_date, self.tenure_months)

    def remaining_months(self, today: date) -> Optional[int]:
        """Whole months left until the scheduled end date."""
        end = self.end_date
        if end is None:
            return None
        return whole_months_between(today, end)

    @property
    def total_repayment(self) -> Optional[Decimal]:
        if self.emi_amount is None or self.tenure_months is None:
            return None
        return self.emi_amount * self.tenure_months

    @property
    def total_interest(self) -> Optional[Decimal]:
        total = self.total_repayment
        if total is None:
            return None
        return total - self.principal_amount


# =============================================================================
# RECURRING PLANS
# =============================================================================

class RecurringPlan(BaseModel):
    """
    A systematic investment plan (SIP).

    A fixed amount buys units of a fund scheme once per calendar month.
    total_units only grows, except through an explicit user edit.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    name: str = Field(..., min_length=1, max_length=200)
    scheme_code: str = Field(
        ...,
        min_length=1,
        max_length=20,
        description="AMFI scheme code"
    )
    monthly_amount: Decimal = Field(..., gt=0, decimal_places=2)
    start_date: Optional[date] = None
    duration_months: Optional[int] = Field(default=None, gt=0)
    current_nav: Decimal = Field(default=ZERO, ge=0)
    total_units: Decimal = Field(default=ZERO, ge=0)
    last_investment_date: Optional[date] = None
    last_updated: Optional[date] = None

    @property
    def current_value(self) -> Decimal:
        return self.total_units * self.current_nav

    @property
    def end_date(self) -> Optional[date]:
        if self.start_date is None or self.duration_months is None:
            return None
        return add_months(self.start_date, self.duration_months)

    def completed_installments(self, today: date) -> int:
        """
        Installments paid so far, counting the first month.

        Measured up to the last contribution, or up to today when
        nothing has been contributed yet.
        """
        if self.start_date is None:
            return 0
        end = self.last_investment_date or today
        if self.start_date > end:
            return 0
        return whole_months_between(self.start_date, end) + 1

    def total_invested(self, today: date) -> Decimal:
        return self.monthly_amount * self.completed_installments(today)

    def profit_loss(self, today: date) -> Decimal:
        return self.current_value - self.total_invested(today)


# =============================================================================
# EXPENSES
# =============================================================================

class Expense(BaseModel):
    """A single spend entry."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    description: str = Field(..., min_length=1, max_length=500)
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    expense_date: date
    category: str = Field(..., min_length=1, max_length=50)
    payment_method: str = Field(..., min_length=1, max_length=50)
