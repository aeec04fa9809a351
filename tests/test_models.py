"""
Tests for Finance Tracker models

Test strategy:
1. Unit tests for individual components (models, calendar helpers)
2. Integration tests for refresh runs (with faked providers and stores)
3. No real API calls in tests (use MockTransport and stubs)
"""

import pytest
from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

from finance_tracker.models.positions import (
    CompoundingFrequency,
    Expense,
    InterestType,
    Investment,
    Loan,
    RecurringPlan,
    add_months,
    whole_months_between,
)
from finance_tracker.models.results import (
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


class TestCalendarHelpers:
    """Tests for month arithmetic."""

    def test_whole_months_same_day(self):
        """Test that reaching the same day of month counts a full month."""
        assert whole_months_between(date(2026, 1, 15), date(2026, 2, 15)) == 1

    def test_whole_months_day_not_reached(self):
        """Test that a month only counts once its day is reached."""
        assert whole_months_between(date(2026, 1, 31), date(2026, 2, 28)) == 0
        assert whole_months_between(date(2026, 1, 15), date(2026, 3, 14)) == 1

    def test_whole_months_across_years(self):
        """Test month counting across a year boundary."""
        assert whole_months_between(date(2025, 11, 10), date(2026, 2, 10)) == 3

    def test_whole_months_never_negative(self):
        """Test that an end before the start gives zero."""
        assert whole_months_between(date(2026, 5, 1), date(2026, 1, 1)) == 0
        assert whole_months_between(date(2026, 5, 1), date(2026, 5, 1)) == 0

    def test_add_months_clamps_to_month_end(self):
        """Test that Jan 31 + 1 month lands on the last day of February."""
        assert add_months(date(2026, 1, 31), 1) == date(2026, 2, 28)
        assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)

    def test_add_months_backwards(self):
        """Test negative month shifts across a year boundary."""
        assert add_months(date(2026, 3, 19), -6) == date(2025, 9, 19)


class TestInvestment:
    """Tests for the Investment model."""

    def test_derived_values(self):
        """Test value, profit/loss and return percentage."""
        inv = Investment(
            name="Infosys",
            symbol="INFY.NS",
            quantity=Decimal("10"),
            purchase_price=Decimal("1400"),
            current_price=Decimal("1523.45"),
        )
        assert inv.cost_basis == Decimal("14000")
        assert inv.current_value == Decimal("15234.50")
        assert inv.profit_loss == Decimal("1234.50")
        assert inv.return_percentage == Decimal("8.82")

    def test_current_price_defaults_to_never_resolved(self):
        """Test that a new investment has current price 0."""
        inv = Investment(
            name="TCS",
            symbol="TCS",
            quantity=Decimal("1"),
            purchase_price=Decimal("3000"),
        )
        assert inv.current_price == Decimal("0")
        assert inv.current_value == Decimal("0")

    def test_rejects_zero_quantity(self):
        """Test that quantity must be positive."""
        with pytest.raises(ValueError):
            Investment(
                name="TCS",
                symbol="TCS",
                quantity=Decimal("0"),
                purchase_price=Decimal("3000"),
            )

    def test_strips_whitespace(self):
        """Test that whitespace is stripped from the symbol."""
        inv = Investment(
            name="Infosys",
            symbol="  INFY.NS ",
            quantity=Decimal("1"),
            purchase_price=Decimal("1"),
        )
        assert inv.symbol == "INFY.NS"


class TestLoan:
    """Tests for the Loan model."""

    def _loan(self, **overrides) -> Loan:
        data = dict(
            name="Car loan",
            principal_amount=Decimal("100000.00"),
            interest_rate=Decimal("12"),
            interest_type=InterestType.COMPOUND,
            start_date=date(2026, 1, 10),
            tenure_months=12,
            emi_amount=Decimal("8884.88"),
            current_balance=Decimal("100000.00"),
        )
        data.update(overrides)
        return Loan(**data)

    def test_balance_cannot_exceed_principal(self):
        """Test that the outstanding balance is bounded by the principal."""
        with pytest.raises(ValueError):
            self._loan(current_balance=Decimal("100000.01"))

    def test_compounding_defaults_to_monthly(self):
        """Test the default compounding frequency."""
        assert self._loan().compounding_frequency == CompoundingFrequency.MONTHLY

    def test_end_date_and_remaining_months(self):
        """Test the scheduled end and the months left."""
        loan = self._loan()
        assert loan.end_date == date(2027, 1, 10)
        assert loan.remaining_months(date(2026, 10, 19)) == 2
        assert loan.remaining_months(date(2027, 6, 1)) == 0

    def test_totals(self):
        """Test total repayment and total interest."""
        loan = self._loan()
        assert loan.total_repayment == Decimal("106618.56")
        assert loan.total_interest == Decimal("6618.56")

    def test_totals_unknown_without_emi(self):
        """Test that totals are None until an EMI exists."""
        loan = self._loan(emi_amount=None)
        assert loan.total_repayment is None
        assert loan.total_interest is None

    def test_period_months(self):
        """Test the number of months per compounding period."""
        assert CompoundingFrequency.MONTHLY.months == 1
        assert CompoundingFrequency.QUARTERLY.months == 3
        assert CompoundingFrequency.YEARLY.months == 12


class TestRecurringPlan:
    """Tests for the RecurringPlan model."""

    def test_current_value(self):
        """Test value as units times NAV."""
        plan = RecurringPlan(
            name="Index fund",
            scheme_code="120716",
            monthly_amount=Decimal("1000.00"),
            total_units=Decimal("25.5"),
            current_nav=Decimal("40"),
        )
        assert plan.current_value == Decimal("1020.0")

    def test_completed_installments_counts_first_month(self):
        """Test that the start month itself is an installment."""
        plan = RecurringPlan(
            name="Index fund",
            scheme_code="120716",
            monthly_amount=Decimal("1000.00"),
            start_date=date(2026, 7, 5),
            last_investment_date=date(2026, 10, 5),
        )
        assert plan.completed_installments(date(2026, 10, 19)) == 4
        assert plan.total_invested(date(2026, 10, 19)) == Decimal("4000.00")

    def test_completed_installments_future_start(self):
        """Test that a plan starting in the future has no installments."""
        plan = RecurringPlan(
            name="Index fund",
            scheme_code="120716",
            monthly_amount=Decimal("1000.00"),
            start_date=date(2026, 12, 1),
        )
        assert plan.completed_installments(date(2026, 10, 19)) == 0

    def test_completed_installments_without_start(self):
        """Test that a plan without a start date has no installments."""
        plan = RecurringPlan(
            name="Index fund",
            scheme_code="120716",
            monthly_amount=Decimal("1000.00"),
        )
        assert plan.completed_installments(date(2026, 10, 19)) == 0


class TestExpense:
    """Tests for the Expense model."""

    def test_rejects_negative_amount(self):
        """Test that negative amounts are rejected."""
        with pytest.raises(ValueError):
            Expense(
                description="Groceries",
                amount=Decimal("-10.00"),
                expense_date=date(2026, 10, 1),
                category="Food",
                payment_method="UPI",
            )


class TestResultModels:
    """Tests for PriceResult and RefreshSummary."""

    def test_price_result_found_only_for_positive_price(self):
        """Test that zero and missing prices are not found."""
        assert PriceResult(symbol="X", price=Decimal("1.5")).found
        assert not PriceResult(symbol="X", price=Decimal("0")).found
        assert not PriceResult(symbol="X").found

    def test_summary_tallies(self):
        """Test counters, diagnostics dedup and finishing."""
        summary = RefreshSummary(kind=RefreshKind.PRICES)
        summary.succeeded += 2
        summary.failed += 1
        summary.add_diagnostic("missing key")
        summary.add_diagnostic("missing key")
        summary.finish()

        assert summary.processed == 3
        assert summary.diagnostics == ["missing key"]
        assert summary.status == RunStatus.COMPLETED
        assert summary.finished_at is not None
        assert summary.to_log_dict()["kind"] == "prices"

    def test_summary_times_are_utc(self):
        """Test that start and finish times carry a UTC offset."""
        summary = RefreshSummary(kind=RefreshKind.PRICES).finish()
        assert summary.started_at.tzinfo == timezone.utc
        assert summary.finished_at.tzinfo == timezone.utc


class TestAuditModels:
    """Tests for audit models."""

    def test_audit_event_creation(self):
        """Test AuditEvent creation."""
        event = AuditEvent(
            event_type=AuditEventType.PRICE_UPDATED,
            description="Price updated",
        )
        assert event.event_type == AuditEventType.PRICE_UPDATED
        assert event.severity == AuditSeverity.INFO
        assert event.event_id is not None

    def test_audit_event_timestamp_is_utc(self):
        """Test that new events are stamped with an aware UTC time."""
        event = AuditEvent(event_type=AuditEventType.PRICE_UPDATED, description="Price updated")
        assert event.timestamp.tzinfo == timezone.utc

    def test_naive_timestamp_is_read_as_utc(self):
        """Test that a timestamp without an offset is taken to be UTC."""
        event = AuditEvent(
            event_type=AuditEventType.PRICE_UPDATED,
            description="Price updated",
            timestamp=datetime(2026, 10, 1, 9, 30),
        )
        assert event.timestamp == datetime(2026, 10, 1, 9, 30, tzinfo=timezone.utc)

    def test_audit_event_to_sheets_row(self):
        """Test conversion to sheets row."""
        event = AuditEventBuilder.price_updated(
            investment_id=uuid4(),
            symbol="INFY.NS",
            price="1523.45",
            source="yahoo_finance",
            correlation_id=uuid4(),
        )
        row = event.to_sheets_row()
        assert len(row) == 11
        assert row[2] == "price_updated"
        assert "INFY.NS" in row[8]

    def test_refresh_finished_maps_status(self):
        """Test that each run status gets its own event type."""
        run_id = uuid4()
        completed = AuditEventBuilder.refresh_finished("prices", "completed", 1, 0, 0, run_id)
        timed_out = AuditEventBuilder.refresh_finished("prices", "timed_out", 1, 0, 0, run_id)
        aborted = AuditEventBuilder.refresh_finished("navs", "aborted", 0, 0, 0, run_id)

        assert completed.event_type == AuditEventType.REFRESH_COMPLETED
        assert timed_out.event_type == AuditEventType.REFRESH_TIMED_OUT
        assert timed_out.severity == AuditSeverity.WARNING
        assert aborted.event_type == AuditEventType.REFRESH_ABORTED
        assert completed.correlation_id == run_id

    def test_contribution_applied_details(self):
        """Test the contribution event carries amount, units and NAV."""
        event = AuditEventBuilder.contribution_applied(
            plan_id=uuid4(),
            amount="1000.00",
            units="33.3333",
            nav="30",
            correlation_id=uuid4(),
        )
        assert event.details == {"amount": "1000.00", "units": "33.3333", "nav": "30"}
        assert event.entity_type == "plan"
