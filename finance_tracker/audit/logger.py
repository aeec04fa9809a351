"""
Audit Logger

DESIGN DECISION: Every change the engine makes to a stored position is
logged. This provides:
1. Complete traceability of prices, NAVs and balances
2. Debugging capability when a provider misbehaves
3. A per-run history, correlated by run ID

The audit logger:
- Is async to not block the refresh loop
- Gracefully handles failures (a broken audit store never breaks a run)
- Supports correlation IDs to trace all events of one run
"""

import logging
import sys
from decimal import Decimal
from typing import Optional
from uuid import UUID

import structlog

from finance_tracker.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from finance_tracker.services.storage import AuditStorageInterface


def configure_logging(level: str = "INFO", json_output: bool = True) -> None:
    """
    Configure structlog for the whole application.

    Call once at process start. Modules log through
    structlog.get_logger(__name__).
    """
    log_level = getattr(logging, level.upper())

    logging.basicConfig(
        level=log_level,
        stream=sys.stdout,
        format="%(message)s",  # structlog does the formatting
    )

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. An optional audit store (for persistence and operator visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger(__name__)

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_refresh_started(
        self,
        kind: str,
        run_id: UUID,
        is_user_action: bool = False,
    ) -> None:
        await self.log(AuditEventBuilder.refresh_started(
            kind=kind,
            run_id=run_id,
            is_user_action=is_user_action,
        ))

    async def log_refresh_finished(
        self,
        kind: str,
        status: str,
        succeeded: int,
        failed: int,
        skipped: int,
        run_id: UUID,
    ) -> None:
        """Log the end of a run, whatever its status."""
        await self.log(AuditEventBuilder.refresh_finished(
            kind=kind,
            status=status,
            succeeded=succeeded,
            failed=failed,
            skipped=skipped,
            run_id=run_id,
        ))

    async def log_price_updated(
        self,
        investment_id: UUID,
        symbol: str,
        price: Decimal,
        source: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.price_updated(
            investment_id=investment_id,
            symbol=symbol,
            price=str(price),
            source=source,
            correlation_id=correlation_id,
        ))

    async def log_price_unavailable(
        self,
        investment_id: UUID,
        symbol: str,
        errors: list[str],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.price_unavailable(
            investment_id=investment_id,
            symbol=symbol,
            errors=errors,
            correlation_id=correlation_id,
        ))

    async def log_nav_table_refreshed(
        self,
        scheme_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.nav_table_refreshed(
            scheme_count=scheme_count,
            correlation_id=correlation_id,
        ))

    async def log_nav_table_failed(
        self,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.nav_table_failed(
            correlation_id=correlation_id,
        ))

    async def log_nav_updated(
        self,
        plan_id: UUID,
        scheme_code: str,
        nav: Decimal,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.nav_updated(
            plan_id=plan_id,
            scheme_code=scheme_code,
            nav=str(nav),
            correlation_id=correlation_id,
        ))

    async def log_nav_unavailable(
        self,
        plan_id: UUID,
        scheme_code: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.nav_unavailable(
            plan_id=plan_id,
            scheme_code=scheme_code,
            correlation_id=correlation_id,
        ))

    async def log_contribution_applied(
        self,
        plan_id: UUID,
        amount: Decimal,
        units: Decimal,
        nav: Decimal,
        correlation_id: UUID,
    ) -> None:
        """Log a monthly contribution turned into units."""
        await self.log(AuditEventBuilder.contribution_applied(
            plan_id=plan_id,
            amount=str(amount),
            units=str(units),
            nav=str(nav),
            correlation_id=correlation_id,
        ))

    async def log_loan_created(
        self,
        loan_id: UUID,
        principal: Decimal,
        emi: Decimal,
    ) -> None:
        await self.log(AuditEventBuilder.loan_created(
            loan_id=loan_id,
            principal=str(principal),
            emi=str(emi),
        ))

    async def log_loan_amortized(
        self,
        loan_id: UUID,
        months: int,
        previous_balance: Decimal,
        new_balance: Decimal,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.loan_amortized(
            loan_id=loan_id,
            months=months,
            previous_balance=str(previous_balance),
            new_balance=str(new_balance),
            correlation_id=correlation_id,
        ))

    async def log_save_failed(
        self,
        entity_type: str,
        entity_id: UUID,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.save_failed(
            entity_type=entity_type,
            entity_id=entity_id,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_configuration_error(
        self,
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.configuration_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))
