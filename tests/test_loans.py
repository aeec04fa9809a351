"""
Tests for the loan EMI and amortization engine.
"""

import asyncio
from datetime import date
from decimal import Decimal

import pytest

from conftest import TODAY
from finance_tracker.audit import AuditLogger
from finance_tracker.models.audit import AuditEventType
from finance_tracker.models.positions import CompoundingFrequency, InterestType, Loan
from finance_tracker.reconciliation import (
    LoanService,
    amortize,
    calculate_emi,
    monthly_rate_for,
)
from finance_tracker.services.storage import InMemoryAuditStorage, InMemoryRecordStore


def loan(**overrides) -> Loan:
    data = dict(
        name="Car loan",
        principal_amount=Decimal("100000.00"),
        interest_rate=Decimal("12"),
        interest_type=InterestType.COMPOUND,
        start_date=date(2026, 8, 19),
        tenure_months=12,
        emi_amount=Decimal("8884.88"),
        current_balance=Decimal("100000.00"),
    )
    data.update(overrides)
    return Loan(**data)


class TestCalculateEmi:
    """Tests for the EMI formula."""

    def test_reference_value(self):
        """Test 100000 at 12% over 12 months."""
        assert calculate_emi(Decimal("100000"), Decimal("12"), 12) == Decimal("8884.88")

    def test_longer_tenure_lowers_emi(self):
        """Test that a longer tenure gives a smaller installment."""
        short = calculate_emi(Decimal("500000"), Decimal("9.5"), 60)
        long = calculate_emi(Decimal("500000"), Decimal("9.5"), 120)
        assert long < short

    def test_rejects_non_positive_inputs(self):
        """Test that zero tenure or zero rate is refused."""
        with pytest.raises(ValueError):
            calculate_emi(Decimal("100000"), Decimal("12"), 0)
        with pytest.raises(ValueError):
            calculate_emi(Decimal("100000"), Decimal("0"), 12)


class TestMonthlyRate:
    """Tests for the effective monthly rate per regime."""

    @pytest.mark.parametrize("interest_type,frequency", [
        (InterestType.SIMPLE, CompoundingFrequency.MONTHLY),
        (InterestType.SIMPLE, CompoundingFrequency.YEARLY),
        (InterestType.COMPOUND, CompoundingFrequency.MONTHLY),
        (InterestType.COMPOUND, CompoundingFrequency.QUARTERLY),
        (InterestType.COMPOUND, CompoundingFrequency.YEARLY),
    ])
    def test_ten_percent(self, interest_type, frequency):
        """Test that every regime gives annual / 12 at 10%."""
        rate = monthly_rate_for(loan(
            interest_rate=Decimal("10"),
            interest_type=interest_type,
            compounding_frequency=frequency,
        ))
        assert rate == Decimal("0.0083333333")


class TestAmortize:
    """Tests for replaying monthly installments."""

    def test_one_month(self):
        """Test interest 1000.00 and principal 7884.88 in month one."""
        assert amortize(Decimal("100000"), Decimal("8884.88"), Decimal("0.01"), 1) == Decimal("92115.12")

    def test_two_months(self):
        """Test that interest is rounded each month."""
        assert amortize(Decimal("100000"), Decimal("8884.88"), Decimal("0.01"), 2) == Decimal("84151.39")

    def test_zero_months(self):
        """Test that no elapsed month leaves the balance alone."""
        assert amortize(Decimal("100000"), Decimal("8884.88"), Decimal("0.01"), 0) == Decimal("100000")

    def test_past_tenure_clamps_at_zero(self):
        """Test that running past the tenure never goes negative."""
        assert amortize(Decimal("100000"), Decimal("8884.88"), Decimal("0.01"), 13) == Decimal("0")

    def test_overpayment_clamps_at_zero(self):
        """Test that an EMI larger than the balance stops at zero."""
        assert amortize(Decimal("100"), Decimal("60"), Decimal("0.01"), 5) == Decimal("0")


class TestUpdateLoanBalances:
    """Tests for the daily catch-up run."""

    def test_catches_up_whole_months(self, clock):
        """Test two elapsed months from the start date."""
        car = loan()
        store = InMemoryRecordStore([car])
        service = LoanService(store, clock)

        summary = asyncio.run(service.update_loan_balances())

        assert summary.succeeded == 1
        saved = asyncio.run(store.load_by_id(car.id))
        assert saved.current_balance == Decimal("84151.39")
        assert saved.last_updated == TODAY

    def test_same_day_rerun_is_idempotent(self, clock):
        """Test that a second run on the same date changes nothing."""
        car = loan()
        store = InMemoryRecordStore([car])
        service = LoanService(store, clock)

        asyncio.run(service.update_loan_balances())
        saves = store.save_count
        summary = asyncio.run(service.update_loan_balances())

        assert summary.skipped == 1
        assert store.save_count == saves
        assert asyncio.run(store.load_by_id(car.id)).current_balance == Decimal("84151.39")

    def test_measured_from_last_update(self, clock):
        """Test that months are counted from last_updated, not the start."""
        car = loan(start_date=date(2025, 1, 1), last_updated=date(2026, 9, 19))
        store = InMemoryRecordStore([car])

        asyncio.run(LoanService(store, clock).update_loan_balances())

        assert asyncio.run(store.load_by_id(car.id)).current_balance == Decimal("92115.12")

    def test_partial_month_is_skipped(self, clock):
        """Test that a loan with no whole month elapsed is skipped."""
        car = loan(start_date=date(2026, 9, 20))
        store = InMemoryRecordStore([car])

        summary = asyncio.run(LoanService(store, clock).update_loan_balances())

        assert summary.skipped == 1
        assert store.save_count == 0

    def test_no_reference_date_is_skipped(self, clock):
        """Test that a loan with neither last_updated nor start_date is skipped."""
        store = InMemoryRecordStore([loan(start_date=None)])
        summary = asyncio.run(LoanService(store, clock).update_loan_balances())
        assert summary.skipped == 1
        assert store.save_count == 0

    def test_missing_balance_starts_from_principal(self, clock):
        """Test that a loan without a balance amortizes from the principal."""
        car = loan(current_balance=None)
        store = InMemoryRecordStore([car])

        asyncio.run(LoanService(store, clock).update_loan_balances())

        assert asyncio.run(store.load_by_id(car.id)).current_balance == Decimal("84151.39")

    def test_emi_below_interest_is_capped_at_principal(self, clock):
        """Test that a hand-edited EMI below the interest never exceeds the principal."""
        car = loan(
            principal_amount=Decimal("1000.00"),
            emi_amount=Decimal("1.00"),
            current_balance=Decimal("1000.00"),
            start_date=date(2000, 1, 1),
        )
        store = InMemoryRecordStore([car])

        summary = asyncio.run(LoanService(store, clock).update_loan_balances())

        assert summary.succeeded == 1
        saved = asyncio.run(store.load_by_id(car.id))
        assert saved.current_balance == Decimal("1000.00")
        # The stored record still passes the model's own validation
        assert Loan.model_validate(saved.model_dump()).current_balance == Decimal("1000.00")

    def test_amortization_is_audited(self, clock):
        """Test the loan_amortized event."""
        storage = InMemoryAuditStorage()
        store = InMemoryRecordStore([loan()])

        summary = asyncio.run(
            LoanService(store, clock, AuditLogger(storage)).update_loan_balances()
        )

        event = storage.events[0]
        assert event.event_type == AuditEventType.LOAN_AMORTIZED
        assert event.correlation_id == summary.run_id
        assert event.details["months"] == 2


class TestSaveLoan:
    """Tests for loan creation."""

    def test_new_loan_gets_emi_and_balance(self, clock):
        """Test that creation computes the EMI and starts at the principal."""
        store = InMemoryRecordStore()
        service = LoanService(store, clock)

        saved = asyncio.run(service.save_loan(loan(emi_amount=None, current_balance=None)))

        assert saved.emi_amount == Decimal("8884.88")
        assert saved.current_balance == Decimal("100000.00")
        assert saved.last_updated == TODAY

    def test_existing_loan_is_not_recalculated(self, clock):
        """Test that an update keeps the stored EMI untouched."""
        car = loan(emi_amount=None)
        store = InMemoryRecordStore([car])
        service = LoanService(store, clock)

        saved = asyncio.run(service.save_loan(car))

        assert saved.emi_amount is None

    def test_creation_is_audited(self, clock):
        """Test the loan_created event."""
        storage = InMemoryAuditStorage()
        service = LoanService(InMemoryRecordStore(), clock, AuditLogger(storage))

        asyncio.run(service.save_loan(loan(emi_amount=None)))

        assert [e.event_type for e in storage.events] == [AuditEventType.LOAN_CREATED]
