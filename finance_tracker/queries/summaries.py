"""
Portfolio Summaries

DESIGN DECISION: Summaries are computed from the stored records on every
call. Nothing here caches or estimates: a total is always the sum of
what the record stores return right now.
"""

from collections import defaultdict
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from finance_tracker.models.positions import (
    CENTS,
    ZERO,
    Expense,
    Investment,
    Loan,
    RecurringPlan,
    add_months,
)
from finance_tracker.models.results import InvestmentTotals, LoanTotals, PlanTotals
from finance_tracker.services.clock import Clock, SystemClock
from finance_tracker.services.storage import RecordStore


AVERAGE_WINDOW_MONTHS = 6


class QueryError(Exception):
    """Invalid summary query."""
    pass


class PortfolioQueries:
    """
    Read-only aggregate views over the record stores.

    GUARANTEES:
    - Only reads; never saves
    - Empty stores give zero totals, not errors
    """

    def __init__(
        self,
        investments: RecordStore[Investment],
        loans: RecordStore[Loan],
        plans: RecordStore[RecurringPlan],
        expenses: RecordStore[Expense],
        clock: Optional[Clock] = None,
    ):
        self._investments = investments
        self._loans = loans
        self._plans = plans
        self._expenses = expenses
        self._clock = clock or SystemClock()

    # =========================================================================
    # POSITIONS
    # =========================================================================

    async def investment_totals(self) -> InvestmentTotals:
        investments = await self._investments.load_all()
        total_cost = sum((i.cost_basis for i in investments), ZERO)
        total_value = sum((i.current_value for i in investments), ZERO)
        return InvestmentTotals(
            count=len(investments),
            total_cost=total_cost,
            total_current_value=total_value,
            total_profit_loss=total_value - total_cost,
        )

    async def loan_totals(self) -> LoanTotals:
        loans = await self._loans.load_all()
        return LoanTotals(
            count=len(loans),
            total_principal=sum((loan.principal_amount for loan in loans), ZERO),
            total_outstanding_balance=sum(
                (loan.current_balance or ZERO for loan in loans), ZERO
            ),
        )

    async def plan_totals(self) -> PlanTotals:
        today = self._clock.today()
        plans = await self._plans.load_all()
        total_investment = sum((p.total_invested(today) for p in plans), ZERO)
        total_value = sum((p.current_value for p in plans), ZERO)
        return PlanTotals(
            count=len(plans),
            total_investment=total_investment,
            total_current_value=total_value,
            total_profit_loss=total_value - total_investment,
        )

    # =========================================================================
    # EXPENSES
    # =========================================================================

    async def expenses_between(self, start: date, end: date) -> list[Expense]:
        """Expenses dated within [start, end], oldest first."""
        if start > end:
            raise QueryError(f"Start date {start} is after end date {end}")
        expenses = [
            e for e in await self._expenses.load_all()
            if start <= e.expense_date <= end
        ]
        expenses.sort(key=lambda e: e.expense_date)
        return expenses

    async def expenses_in_category(self, category: str) -> list[Expense]:
        expenses = [
            e for e in await self._expenses.load_all()
            if e.category == category
        ]
        expenses.sort(key=lambda e: e.expense_date)
        return expenses

    async def total_expenses(self, start: date, end: date) -> Decimal:
        return sum((e.amount for e in await self.expenses_between(start, end)), ZERO)

    async def totals_by_category(self, start: date, end: date) -> dict[str, Decimal]:
        """Spend per category within [start, end]."""
        totals: dict[str, Decimal] = defaultdict(lambda: ZERO)
        for expense in await self.expenses_between(start, end):
            totals[expense.category] += expense.amount
        return dict(totals)

    async def average_monthly_expense(self, category: Optional[str] = None) -> Decimal:
        """
        Average monthly spend over the last six months (2 dp half-up).

        The window runs from the same day six months ago through today,
        and the total is always divided by six, even when the history is
        shorter.
        """
        today = self._clock.today()
        start = add_months(today, -AVERAGE_WINDOW_MONTHS)

        expenses = await self.expenses_between(start, today)
        if category:
            expenses = [e for e in expenses if e.category == category]

        total = sum((e.amount for e in expenses), ZERO)
        return (total / AVERAGE_WINDOW_MONTHS).quantize(CENTS, rounding=ROUND_HALF_UP)
