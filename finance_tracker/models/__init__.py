"""
Data Models Package

This package contains all Pydantic models used by the Finance Tracker
reconciliation engine. Every record read from or written to the record
store conforms to these schemas.
"""

from finance_tracker.models.positions import (
    CompoundingFrequency,
    Expense,
    InstrumentKind,
    InterestType,
    Investment,
    Loan,
    RecurringPlan,
    add_months,
    whole_months_between,
)
from finance_tracker.models.results import (
    InvestmentTotals,
    LoanTotals,
    PlanTotals,
    PriceResult,
    RefreshKind,
    RefreshSummary,
    RunStatus,
)
from finance_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Position models
    "CompoundingFrequency",
    "Expense",
    "InstrumentKind",
    "InterestType",
    "Investment",
    "Loan",
    "RecurringPlan",
    "add_months",
    "whole_months_between",
    # Result models
    "InvestmentTotals",
    "LoanTotals",
    "PlanTotals",
    "PriceResult",
    "RefreshKind",
    "RefreshSummary",
    "RunStatus",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
