"""
Investment Service

Keeps the current_price of every stored investment in line with the
market, through the price resolution chain.

DESIGN DECISION: A bulk price refresh never aborts on one investment.
Each investment ends the run either updated (positive price found and
saved) or unchanged and counted as failed. Configuration problems with
a provider are collected as run diagnostics, once per run.
"""

from typing import Optional
from uuid import UUID

import structlog

from finance_tracker.audit import AuditLogger
from finance_tracker.models.positions import Investment
from finance_tracker.models.results import PriceResult, RefreshKind, RefreshSummary, RunStatus
from finance_tracker.services.clock import Clock, SystemClock
from finance_tracker.services.errors import DataUnavailableError
from finance_tracker.services.pricing import PriceResolver
from finance_tracker.services.storage import NotFoundError, RecordStore, StorageError


logger = structlog.get_logger(__name__)


class InvestmentService:
    """CRUD pass-through plus the bulk price refresh."""

    def __init__(
        self,
        store: RecordStore[Investment],
        resolver: PriceResolver,
        clock: Optional[Clock] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._resolver = resolver
        self._clock = clock or SystemClock()
        self._audit_logger = audit_logger

    async def list_investments(self) -> list[Investment]:
        return await self._store.load_all()

    async def get_investment(self, investment_id: UUID) -> Optional[Investment]:
        return await self._store.load_by_id(investment_id)

    async def save_investment(self, investment: Investment) -> Investment:
        """Save an investment, stamping last_updated when it has none."""
        if investment.last_updated is None:
            investment.last_updated = self._clock.today()
        return await self._store.save(investment)

    async def delete_investment(self, investment_id: UUID) -> bool:
        return await self._store.delete(investment_id)

    async def refresh_price(self, investment_id: UUID) -> Investment:
        """
        Refresh one investment on demand.

        Raises:
            NotFoundError: If no investment has this ID
            DataUnavailableError: If no provider produced a positive price
        """
        investment = await self._store.load_by_id(investment_id)
        if investment is None:
            raise NotFoundError(f"Investment not found: {investment_id}")

        result = await self._resolver.resolve(investment.symbol, investment.kind)
        if not result.found:
            raise DataUnavailableError(
                result.configuration_error
                or f"No price for {investment.symbol} from any provider"
            )

        self._apply_price(investment, result)
        return await self._store.save(investment)

    async def update_current_prices(
        self,
        summary: Optional[RefreshSummary] = None,
    ) -> RefreshSummary:
        """
        Resolve and store the current price of every investment.

        Args:
            summary: Tally to fill in; a new one is created when omitted.
                    Passing one in lets a caller read partial counts if
                    the run is cancelled.
        """
        summary = summary or RefreshSummary(kind=RefreshKind.PRICES)
        log = logger.bind(run_id=str(summary.run_id))

        investments = await self._store.load_all()
        log.info("price_refresh_started", investments=len(investments))

        for investment in investments:
            result = await self._resolver.resolve(investment.symbol, investment.kind)

            if (
                result.configuration_error
                and result.configuration_error not in summary.diagnostics
            ):
                summary.add_diagnostic(result.configuration_error)
                if self._audit_logger:
                    await self._audit_logger.log_configuration_error(
                        service="pricing",
                        error_message=result.configuration_error,
                        correlation_id=summary.run_id,
                    )

            if not result.found:
                summary.failed += 1
                if self._audit_logger:
                    await self._audit_logger.log_price_unavailable(
                        investment_id=investment.id,
                        symbol=investment.symbol,
                        errors=result.errors,
                        correlation_id=summary.run_id,
                    )
                continue

            self._apply_price(investment, result)
            try:
                await self._store.save(investment)
            except StorageError as e:
                summary.failed += 1
                log.error("investment_save_failed", investment_id=str(investment.id), error=str(e))
                if self._audit_logger:
                    await self._audit_logger.log_save_failed(
                        entity_type="investment",
                        entity_id=investment.id,
                        error_message=str(e),
                        correlation_id=summary.run_id,
                    )
                continue

            summary.succeeded += 1
            if self._audit_logger:
                await self._audit_logger.log_price_updated(
                    investment_id=investment.id,
                    symbol=investment.symbol,
                    price=result.price,
                    source=result.source,
                    correlation_id=summary.run_id,
                )

        summary.finish(RunStatus.COMPLETED)
        log.info("price_refresh_completed", **summary.to_log_dict())
        return summary

    def _apply_price(self, investment: Investment, result: PriceResult) -> None:
        investment.current_price = result.price
        investment.last_updated = self._clock.today()
