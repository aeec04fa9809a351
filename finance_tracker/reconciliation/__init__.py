"""
Reconciliation Package

The services that bring stored positions in line with the outside world:
- investments: market prices through the resolution chain
- plans: NAVs and monthly contributions
- loans: EMI computation and balance amortization
"""

from finance_tracker.reconciliation.investments import InvestmentService
from finance_tracker.reconciliation.loans import (
    LoanService,
    amortize,
    calculate_emi,
    monthly_rate_for,
)
from finance_tracker.reconciliation.plans import (
    RecurringPlanService,
    should_contribute,
    units_for,
)

__all__ = [
    "InvestmentService",
    "LoanService",
    "RecurringPlanService",
    "amortize",
    "calculate_emi",
    "monthly_rate_for",
    "should_contribute",
    "units_for",
]
