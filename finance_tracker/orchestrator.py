"""
Refresh Orchestrator for Finance Tracker

This module ties the reconciliation services together behind the four
entry points a periodic trigger (or the operator console) calls:
1. refresh_prices          (investments <- price resolution chain)
2. refresh_navs            (recurring plans <- NAV table)
3. process_contributions   (recurring plans: monthly units)
4. refresh_loan_balances   (loans: amortization catch-up)

DESIGN DECISION: Single-flight per refresh kind. At most one run of each
kind is in flight; a call made while the same kind is running returns
immediately with status ALREADY_RUNNING instead of racing on the shared
throttle and cache state. Different kinds may run side by side.

Every run:
- Has a run ID used as correlation ID for all of its audit events
- May carry a deadline; a run past its deadline is cancelled at its
  next await and reports TIMED_OUT with the counts reached so far
- Never raises for per-record failures; only the summary tells
"""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

import structlog

from finance_tracker.audit import AuditLogger, configure_logging
from finance_tracker.config import get_settings
from finance_tracker.models.positions import Expense, Investment, Loan, RecurringPlan
from finance_tracker.models.results import RefreshKind, RefreshSummary, RunStatus
from finance_tracker.queries import PortfolioQueries
from finance_tracker.reconciliation import InvestmentService, LoanService, RecurringPlanService
from finance_tracker.services.clock import Clock, ProviderThrottle, SystemClock
from finance_tracker.services.nav import AmfiNavSource, ReferencePriceCache
from finance_tracker.services.pricing import PriceResolver, TwelveDataSource, YahooFinanceSource
from finance_tracker.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsRecordStore,
    InMemoryRecordStore,
    RecordStore,
    StorageError,
)


logger = structlog.get_logger(__name__)

RunOperation = Callable[[RefreshSummary], Awaitable[RefreshSummary]]


class RefreshCoordinator:
    """
    Single-flight, deadline-aware front door to the refresh runs.

    Scheduling (cron, intervals) is the caller's business; this class
    only guarantees what happens once a run is requested.
    """

    def __init__(
        self,
        investments: InvestmentService,
        plans: RecurringPlanService,
        loans: LoanService,
        audit_logger: Optional[AuditLogger] = None,
        deadline_seconds: Optional[float] = None,
    ):
        self._investments = investments
        self._plans = plans
        self._loans = loans
        self._audit_logger = audit_logger
        self._deadline_seconds = deadline_seconds
        self._locks = {kind: asyncio.Lock() for kind in RefreshKind}

    @property
    def investments(self) -> InvestmentService:
        return self._investments

    @property
    def plans(self) -> RecurringPlanService:
        return self._plans

    @property
    def loans(self) -> LoanService:
        return self._loans

    def is_running(self, kind: RefreshKind) -> bool:
        return self._locks[kind].locked()

    async def refresh_prices(
        self,
        is_user_action: bool = False,
        deadline_seconds: Optional[float] = None,
    ) -> RefreshSummary:
        return await self._run(
            RefreshKind.PRICES,
            self._investments.update_current_prices,
            is_user_action,
            deadline_seconds,
        )

    async def refresh_navs(
        self,
        is_user_action: bool = False,
        deadline_seconds: Optional[float] = None,
    ) -> RefreshSummary:
        return await self._run(
            RefreshKind.NAVS,
            self._plans.update_current_navs,
            is_user_action,
            deadline_seconds,
        )

    async def process_contributions(
        self,
        is_user_action: bool = False,
        deadline_seconds: Optional[float] = None,
    ) -> RefreshSummary:
        return await self._run(
            RefreshKind.CONTRIBUTIONS,
            self._plans.process_monthly_contributions,
            is_user_action,
            deadline_seconds,
        )

    async def refresh_loan_balances(
        self,
        is_user_action: bool = False,
        deadline_seconds: Optional[float] = None,
    ) -> RefreshSummary:
        return await self._run(
            RefreshKind.LOAN_BALANCES,
            self._loans.update_loan_balances,
            is_user_action,
            deadline_seconds,
        )

    async def _run(
        self,
        kind: RefreshKind,
        operation: RunOperation,
        is_user_action: bool,
        deadline_seconds: Optional[float],
    ) -> RefreshSummary:
        lock = self._locks[kind]

        # No await between the check and the acquire, so this cannot race
        if lock.locked():
            summary = RefreshSummary(kind=kind).finish(RunStatus.ALREADY_RUNNING)
            logger.info("refresh_already_running", kind=kind.value)
            return summary

        async with lock:
            summary = RefreshSummary(kind=kind)
            log = logger.bind(run_id=str(summary.run_id), kind=kind.value)
            deadline = deadline_seconds if deadline_seconds is not None else self._deadline_seconds

            if self._audit_logger:
                await self._audit_logger.log_refresh_started(
                    kind=kind.value,
                    run_id=summary.run_id,
                    is_user_action=is_user_action,
                )

            try:
                if deadline is not None:
                    await asyncio.wait_for(operation(summary), timeout=deadline)
                else:
                    await operation(summary)
            except asyncio.TimeoutError:
                summary.finish(RunStatus.TIMED_OUT)
                log.warning("refresh_timed_out", deadline_seconds=deadline, **summary.to_log_dict())
            except StorageError as e:
                summary.add_diagnostic(f"Record store unavailable: {e}")
                summary.finish(RunStatus.ABORTED)
                log.error("refresh_storage_failed", error=str(e))
                if self._audit_logger:
                    await self._audit_logger.log_error(
                        error_type="storage",
                        error_message=str(e),
                        details={"kind": kind.value},
                        correlation_id=summary.run_id,
                    )

            if summary.status == RunStatus.RUNNING:
                summary.finish(RunStatus.COMPLETED)

            if self._audit_logger:
                await self._audit_logger.log_refresh_finished(
                    kind=kind.value,
                    status=summary.status.value,
                    succeeded=summary.succeeded,
                    failed=summary.failed,
                    skipped=summary.skipped,
                    run_id=summary.run_id,
                )
            return summary


@dataclass
class AppComponents:
    """Everything the operator console needs, wired together."""

    coordinator: RefreshCoordinator
    queries: PortfolioQueries
    expenses: RecordStore[Expense]
    sheets_client: Optional[GoogleSheetsClient] = None


def create_app_components(
    use_storage: bool = True,
    clock: Optional[Clock] = None,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to initialize Google Sheets storage.
                    Set to False to run on in-memory stores.
        clock: Time source; the system clock when omitted.
    """
    settings = get_settings()
    app_settings = settings.app
    configure_logging(app_settings.log_level, json_output=app_settings.log_json)

    clock = clock or SystemClock()
    sheets_client = None
    audit_logger = AuditLogger()  # Local-only logging until storage is up

    investment_store: RecordStore[Investment] = InMemoryRecordStore()
    loan_store: RecordStore[Loan] = InMemoryRecordStore()
    plan_store: RecordStore[RecurringPlan] = InMemoryRecordStore()
    expense_store: RecordStore[Expense] = InMemoryRecordStore()

    if use_storage:
        try:
            sheets_settings = settings.google_sheets
            sheets_client = GoogleSheetsClient(sheets_settings)
            investment_store = GoogleSheetsRecordStore(
                Investment, sheets_settings.investments_sheet_name, sheets_client
            )
            loan_store = GoogleSheetsRecordStore(
                Loan, sheets_settings.loans_sheet_name, sheets_client
            )
            plan_store = GoogleSheetsRecordStore(
                RecurringPlan, sheets_settings.plans_sheet_name, sheets_client
            )
            expense_store = GoogleSheetsRecordStore(
                Expense, sheets_settings.expenses_sheet_name, sheets_client
            )
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except Exception as e:
            # Storage not configured - continue in memory
            logger.warning("storage_not_configured", error=str(e))
            sheets_client = None

    throttle = ProviderThrottle(clock)
    resolver = PriceResolver(
        [
            YahooFinanceSource(settings.yahoo, clock=clock, app_settings=app_settings),
            TwelveDataSource(settings.twelve_data, app_settings=app_settings),
        ],
        throttle,
    )
    cache = ReferencePriceCache(
        AmfiNavSource(settings.amfi, app_settings=app_settings),
        clock=clock,
        audit_logger=audit_logger,
    )

    coordinator = RefreshCoordinator(
        investments=InvestmentService(investment_store, resolver, clock, audit_logger),
        plans=RecurringPlanService(plan_store, cache, clock, audit_logger),
        loans=LoanService(loan_store, clock, audit_logger),
        audit_logger=audit_logger,
        deadline_seconds=app_settings.refresh_deadline_seconds,
    )
    queries = PortfolioQueries(investment_store, loan_store, plan_store, expense_store, clock)

    return AppComponents(
        coordinator=coordinator,
        queries=queries,
        expenses=expense_store,
        sheets_client=sheets_client,
    )
