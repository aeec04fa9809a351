"""
Recurring Plan Service

Two refresh runs over the stored plans, both backed by the day-scoped
NAV cache:
1. update_current_navs: mark every plan to the latest NAV
2. process_monthly_contributions: turn each due monthly amount into units

DESIGN DECISION: At most one contribution per plan per calendar month.
The cadence depends only on the (month, year) of the last contribution,
never on the day of month, so a run that slips from the 31st to the 1st
still contributes exactly once per month.
"""

from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional
from uuid import UUID

import structlog

from finance_tracker.audit import AuditLogger
from finance_tracker.models.positions import ZERO, RecurringPlan
from finance_tracker.models.results import RefreshKind, RefreshSummary, RunStatus
from finance_tracker.services.clock import Clock, SystemClock
from finance_tracker.services.nav import ReferencePriceCache
from finance_tracker.services.storage import RecordStore, StorageError


logger = structlog.get_logger(__name__)

UNITS = Decimal("0.0001")


def should_contribute(plan: RecurringPlan, today: date) -> bool:
    """
    Is a monthly contribution due for this plan today?

    - Never contributed: due unless the start date is still in the future
    - Otherwise: due when today is in a different (month, year) than the
      last contribution
    """
    if plan.last_investment_date is None:
        return plan.start_date is None or plan.start_date <= today

    last = plan.last_investment_date
    return (last.year, last.month) != (today.year, today.month)


def units_for(amount: Decimal, nav: Decimal) -> Decimal:
    """Units bought by amount at nav, 4 dp half-up."""
    return (amount / nav).quantize(UNITS, rounding=ROUND_HALF_UP)


class RecurringPlanService:
    """CRUD pass-through plus the NAV refresh and the contribution processor."""

    def __init__(
        self,
        store: RecordStore[RecurringPlan],
        cache: ReferencePriceCache,
        clock: Optional[Clock] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._cache = cache
        self._clock = clock or SystemClock()
        self._audit_logger = audit_logger

    async def list_plans(self) -> list[RecurringPlan]:
        return await self._store.load_all()

    async def get_plan(self, plan_id: UUID) -> Optional[RecurringPlan]:
        return await self._store.load_by_id(plan_id)

    async def save_plan(self, plan: RecurringPlan) -> RecurringPlan:
        """Save a plan, stamping last_updated when it has none."""
        if plan.last_updated is None:
            plan.last_updated = self._clock.today()
        return await self._store.save(plan)

    async def delete_plan(self, plan_id: UUID) -> bool:
        return await self._store.delete(plan_id)

    async def update_current_navs(
        self,
        summary: Optional[RefreshSummary] = None,
    ) -> RefreshSummary:
        """
        Set current_nav on every plan from a fresh NAV table.

        Aborts (status ABORTED, nothing saved) when the table cannot be
        obtained at all; a single missing scheme only fails that plan.
        """
        summary = summary or RefreshSummary(kind=RefreshKind.NAVS)
        log = logger.bind(run_id=str(summary.run_id))

        if not await self._cache.ensure_fresh():
            summary.add_diagnostic("NAV table unavailable; no plan was updated")
            summary.finish(RunStatus.ABORTED)
            log.error("nav_refresh_aborted", **summary.to_log_dict())
            return summary

        today = self._clock.today()
        plans = await self._store.load_all()
        log.info("nav_refresh_started", plans=len(plans))

        for plan in plans:
            nav = await self._cache.lookup(plan.scheme_code)
            if nav is None or nav <= 0:
                summary.failed += 1
                log.warning("nav_missing", plan_id=str(plan.id), scheme_code=plan.scheme_code)
                if self._audit_logger:
                    await self._audit_logger.log_nav_unavailable(
                        plan_id=plan.id,
                        scheme_code=plan.scheme_code,
                        correlation_id=summary.run_id,
                    )
                continue

            plan.current_nav = nav
            plan.last_updated = today
            if not await self._save(plan, summary):
                continue

            summary.succeeded += 1
            if self._audit_logger:
                await self._audit_logger.log_nav_updated(
                    plan_id=plan.id,
                    scheme_code=plan.scheme_code,
                    nav=nav,
                    correlation_id=summary.run_id,
                )

        summary.finish(RunStatus.COMPLETED)
        log.info("nav_refresh_completed", **summary.to_log_dict())
        return summary

    async def process_monthly_contributions(
        self,
        summary: Optional[RefreshSummary] = None,
    ) -> RefreshSummary:
        """
        Apply this month's contribution to every due plan.

        Not-due plans are counted as skipped; a due plan whose NAV cannot
        be found is counted as failed and retried on the next run.
        """
        summary = summary or RefreshSummary(kind=RefreshKind.CONTRIBUTIONS)
        log = logger.bind(run_id=str(summary.run_id))

        today = self._clock.today()
        plans = await self._store.load_all()
        log.info("contributions_started", plans=len(plans), today=str(today))

        for plan in plans:
            if not should_contribute(plan, today):
                summary.skipped += 1
                log.debug("contribution_not_due", plan_id=str(plan.id))
                continue

            nav = await self._cache.lookup(plan.scheme_code)
            if nav is None or nav <= 0:
                summary.failed += 1
                log.warning(
                    "contribution_nav_missing",
                    plan_id=str(plan.id),
                    scheme_code=plan.scheme_code,
                )
                if self._audit_logger:
                    await self._audit_logger.log_nav_unavailable(
                        plan_id=plan.id,
                        scheme_code=plan.scheme_code,
                        correlation_id=summary.run_id,
                    )
                continue

            units = units_for(plan.monthly_amount, nav)
            plan.total_units = (plan.total_units or ZERO) + units
            plan.current_nav = nav
            plan.last_investment_date = today
            plan.last_updated = today
            if not await self._save(plan, summary):
                continue

            summary.succeeded += 1
            log.info(
                "contribution_applied",
                plan_id=str(plan.id),
                amount=str(plan.monthly_amount),
                units=str(units),
                nav=str(nav),
            )
            if self._audit_logger:
                await self._audit_logger.log_contribution_applied(
                    plan_id=plan.id,
                    amount=plan.monthly_amount,
                    units=units,
                    nav=nav,
                    correlation_id=summary.run_id,
                )

        summary.finish(RunStatus.COMPLETED)
        log.info("contributions_completed", **summary.to_log_dict())
        return summary

    async def _save(self, plan: RecurringPlan, summary: RefreshSummary) -> bool:
        """Persist one plan; a failure is logged and counted, never raised."""
        try:
            await self._store.save(plan)
            return True
        except StorageError as e:
            summary.failed += 1
            logger.error("plan_save_failed", plan_id=str(plan.id), error=str(e))
            if self._audit_logger:
                await self._audit_logger.log_save_failed(
                    entity_type="plan",
                    entity_id=plan.id,
                    error_message=str(e),
                    correlation_id=summary.run_id,
                )
            return False
