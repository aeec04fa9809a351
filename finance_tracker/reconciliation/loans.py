"""
Loan Amortization Engine

1. calculate_emi: the fixed monthly installment, computed once at creation
2. monthly_rate_for: the effective monthly rate of a loan's interest regime
3. amortize: replay whole months of installments against a balance
4. LoanService.update_loan_balances: catch every stored loan up to today

DESIGN DECISION: Amortization has no network dependency and is
idempotent per calendar day. A loan refreshed today is never touched
again today, and the months replayed are always measured from the last
refresh, so re-running the catch-up can never pay the same month twice.
"""

from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional
from uuid import UUID

import structlog

from finance_tracker.audit import AuditLogger
from finance_tracker.models.positions import (
    CENTS,
    ZERO,
    CompoundingFrequency,
    InterestType,
    Loan,
    whole_months_between,
)
from finance_tracker.models.results import RefreshKind, RefreshSummary, RunStatus
from finance_tracker.services.clock import Clock, SystemClock
from finance_tracker.services.storage import RecordStore, StorageError


logger = structlog.get_logger(__name__)

# Intermediate rate precision
RATE_PLACES = Decimal("0.0000000001")

ONE = Decimal("1")


def _rate(value: Decimal) -> Decimal:
    return value.quantize(RATE_PLACES, rounding=ROUND_HALF_UP)


def calculate_emi(principal: Decimal, annual_rate: Decimal, tenure_months: int) -> Decimal:
    """
    Equated monthly installment.

        r = annual_rate / 100 / 12
        EMI = P * r * (1 + r)^n / ((1 + r)^n - 1)

    Rounded to 2 dp half-up. 100000 at 12% over 12 months is 8884.88.
    """
    if tenure_months <= 0:
        raise ValueError("tenure_months must be positive")
    if annual_rate <= 0:
        raise ValueError("annual_rate must be positive")

    monthly_rate = _rate(_rate(annual_rate / 100) / 12)
    growth = (ONE + monthly_rate) ** tenure_months

    emi = principal * monthly_rate * growth / (growth - ONE)
    return emi.quantize(CENTS, rounding=ROUND_HALF_UP)


def monthly_rate_for(loan: Loan) -> Decimal:
    """
    Effective monthly rate for the loan's interest regime.

    Simple interest and monthly compounding use annual / 12. Quarterly and
    yearly compounding take the period rate, convert it to an effective
    period rate and spread that over the months of the period.
    """
    annual = _rate(loan.interest_rate / 100)

    if (
        loan.interest_type == InterestType.SIMPLE
        or loan.compounding_frequency == CompoundingFrequency.MONTHLY
    ):
        return _rate(annual / 12)

    period_months = loan.compounding_frequency.months
    period_rate = _rate(annual / (12 // period_months))
    # TODO: the exponent should arguably be 1 / period_months; kept at 1 until
    # a correction of stored balances is agreed.
    effective_period_rate = (ONE + period_rate) ** 1 - ONE
    return _rate(effective_period_rate / period_months)


def amortize(balance: Decimal, emi: Decimal, monthly_rate: Decimal, months: int) -> Decimal:
    """
    Replay `months` monthly installments against a balance.

    Each month accrues interest (2 dp half-up) and pays the EMI. The
    balance never goes below zero; once it reaches zero the remaining
    months are not applied.
    """
    for _ in range(months):
        interest = (balance * monthly_rate).quantize(CENTS, rounding=ROUND_HALF_UP)
        balance -= emi - interest
        if balance <= 0:
            return ZERO
    return balance


class LoanService:
    """Loan creation with EMI computation, and the daily balance catch-up."""

    def __init__(
        self,
        store: RecordStore[Loan],
        clock: Optional[Clock] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._clock = clock or SystemClock()
        self._audit_logger = audit_logger

    async def list_loans(self) -> list[Loan]:
        return await self._store.load_all()

    async def get_loan(self, loan_id: UUID) -> Optional[Loan]:
        return await self._store.load_by_id(loan_id)

    async def delete_loan(self, loan_id: UUID) -> bool:
        return await self._store.delete(loan_id)

    async def save_loan(self, loan: Loan) -> Loan:
        """
        Save a loan.

        For a loan not yet in the store, with a tenure and no EMI, the EMI
        is computed once and the balance starts at the principal. An
        existing loan keeps whatever EMI it has.
        """
        is_new = await self._store.load_by_id(loan.id) is None
        created = False

        if is_new and loan.emi_amount is None and loan.tenure_months is not None:
            loan.emi_amount = calculate_emi(
                loan.principal_amount, loan.interest_rate, loan.tenure_months
            )
            if loan.current_balance is None:
                loan.current_balance = loan.principal_amount
            created = True

        if loan.last_updated is None:
            loan.last_updated = self._clock.today()

        saved = await self._store.save(loan)

        if created:
            logger.info(
                "loan_created",
                loan_id=str(loan.id),
                principal=str(loan.principal_amount),
                emi=str(loan.emi_amount),
            )
            if self._audit_logger:
                await self._audit_logger.log_loan_created(
                    loan_id=loan.id,
                    principal=loan.principal_amount,
                    emi=loan.emi_amount,
                )
        return saved

    async def update_loan_balances(
        self,
        summary: Optional[RefreshSummary] = None,
    ) -> RefreshSummary:
        """
        Catch every loan's balance up to today.

        Skipped: loans refreshed today, loans with neither last_updated nor
        start_date, loans with no whole month elapsed, loans without an EMI.
        The new balance is capped at the principal, so an EMI edited below
        the monthly interest can never produce an invalid record.
        """
        summary = summary or RefreshSummary(kind=RefreshKind.LOAN_BALANCES)
        log = logger.bind(run_id=str(summary.run_id))

        today = self._clock.today()
        loans = await self._store.load_all()
        log.info("loan_refresh_started", loans=len(loans), today=str(today))

        for loan in loans:
            months = self._months_due(loan, today)
            if months == 0:
                summary.skipped += 1
                continue

            previous = loan.current_balance if loan.current_balance is not None else loan.principal_amount
            balance = amortize(previous, loan.emi_amount, monthly_rate_for(loan), months)

            # An EMI edited below the monthly interest grows the balance
            if balance > loan.principal_amount:
                log.warning(
                    "loan_balance_capped",
                    loan_id=str(loan.id),
                    emi=str(loan.emi_amount),
                    uncapped_balance=str(balance),
                    principal=str(loan.principal_amount),
                )
                balance = loan.principal_amount

            loan.current_balance = balance
            loan.last_updated = today
            try:
                await self._store.save(loan)
            except StorageError as e:
                summary.failed += 1
                log.error("loan_save_failed", loan_id=str(loan.id), error=str(e))
                if self._audit_logger:
                    await self._audit_logger.log_save_failed(
                        entity_type="loan",
                        entity_id=loan.id,
                        error_message=str(e),
                        correlation_id=summary.run_id,
                    )
                continue

            summary.succeeded += 1
            log.info(
                "loan_amortized",
                loan_id=str(loan.id),
                months=months,
                previous_balance=str(previous),
                new_balance=str(balance),
            )
            if self._audit_logger:
                await self._audit_logger.log_loan_amortized(
                    loan_id=loan.id,
                    months=months,
                    previous_balance=previous,
                    new_balance=balance,
                    correlation_id=summary.run_id,
                )

        summary.finish(RunStatus.COMPLETED)
        log.info("loan_refresh_completed", **summary.to_log_dict())
        return summary

    def _months_due(self, loan: Loan, today: date) -> int:
        """Whole months to replay for this loan today; 0 means skip."""
        if loan.last_updated == today:
            return 0

        reference = loan.last_updated or loan.start_date
        if reference is None:
            logger.debug("loan_without_reference_date", loan_id=str(loan.id))
            return 0

        if loan.emi_amount is None:
            logger.debug("loan_without_emi", loan_id=str(loan.id))
            return 0

        return whole_months_between(reference, today)
