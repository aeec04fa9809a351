"""
Audit Models for Finance Tracker

Every change the reconciliation engine makes to a stored position is
logged for audit purposes. This provides:
1. Traceability of every price, NAV and balance that was written
2. Debugging information when a provider misbehaves
3. A history of each scheduled run, correlated by run ID

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, field_validator


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Each refresh pipeline has its own set of event types.
    """
    # Run lifecycle
    REFRESH_STARTED = "refresh_started"
    REFRESH_COMPLETED = "refresh_completed"
    REFRESH_ABORTED = "refresh_aborted"
    REFRESH_TIMED_OUT = "refresh_timed_out"

    # Price resolution
    PRICE_UPDATED = "price_updated"
    PRICE_UNAVAILABLE = "price_unavailable"

    # Reference prices / recurring plans
    NAV_TABLE_REFRESHED = "nav_table_refreshed"
    NAV_TABLE_FAILED = "nav_table_failed"
    NAV_UPDATED = "nav_updated"
    NAV_UNAVAILABLE = "nav_unavailable"
    CONTRIBUTION_APPLIED = "contribution_applied"

    # Loans
    LOAN_CREATED = "loan_created"
    LOAN_AMORTIZED = "loan_amortized"

    # Persistence
    SAVE_FAILED = "save_failed"

    # System events
    CONFIGURATION_ERROR = "configuration_error"
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'investment', 'loan', 'plan', 'run')"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - the refresh run this event belongs to
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="Run ID shared by all events of one refresh run"
    )

    # Event details
    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered manually rather than by the scheduler?"
    )

    @field_validator('timestamp')
    @classmethod
    def assume_utc(cls, value: datetime) -> datetime:
        """Rows written before timestamps carried an offset were UTC."""
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         correlation_id, description, details_json, error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            str(self.entity_id) if self.entity_id else "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.price_updated(investment_id, "INFY.NS", ...)
        event = AuditEventBuilder.refresh_completed(summary_dict, run_id)
    """

    @staticmethod
    def refresh_started(
        kind: str,
        run_id: UUID,
        is_user_action: bool = False,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REFRESH_STARTED,
            entity_type="run",
            entity_id=run_id,
            correlation_id=run_id,
            description=f"Refresh started: {kind}",
            details={"kind": kind},
            is_user_action=is_user_action,
        )

    @staticmethod
    def refresh_finished(
        kind: str,
        status: str,
        succeeded: int,
        failed: int,
        skipped: int,
        run_id: UUID,
    ) -> AuditEvent:
        event_type = {
            "aborted": AuditEventType.REFRESH_ABORTED,
            "timed_out": AuditEventType.REFRESH_TIMED_OUT,
        }.get(status, AuditEventType.REFRESH_COMPLETED)
        severity = (
            AuditSeverity.INFO
            if event_type == AuditEventType.REFRESH_COMPLETED
            else AuditSeverity.WARNING
        )
        return AuditEvent(
            event_type=event_type,
            severity=severity,
            entity_type="run",
            entity_id=run_id,
            correlation_id=run_id,
            description=(
                f"Refresh {status}: {kind} "
                f"(updated {succeeded}, failed {failed}, skipped {skipped})"
            ),
            details={
                "kind": kind,
                "status": status,
                "succeeded": succeeded,
                "failed": failed,
                "skipped": skipped,
            },
        )

    @staticmethod
    def price_updated(
        investment_id: UUID,
        symbol: str,
        price: str,
        source: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PRICE_UPDATED,
            entity_type="investment",
            entity_id=investment_id,
            correlation_id=correlation_id,
            description=f"Price updated: {symbol} = {price} ({source})",
            details={"symbol": symbol, "price": price, "source": source},
        )

    @staticmethod
    def price_unavailable(
        investment_id: UUID,
        symbol: str,
        errors: list[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PRICE_UNAVAILABLE,
            severity=AuditSeverity.WARNING,
            entity_type="investment",
            entity_id=investment_id,
            correlation_id=correlation_id,
            description=f"No valid price for {symbol} from any provider",
            details={"symbol": symbol, "errors": errors},
        )

    @staticmethod
    def nav_table_refreshed(
        scheme_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.NAV_TABLE_REFRESHED,
            entity_type="nav_table",
            correlation_id=correlation_id,
            description=f"NAV table refreshed with {scheme_count} schemes",
            details={"scheme_count": scheme_count},
        )

    @staticmethod
    def nav_table_failed(
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.NAV_TABLE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="nav_table",
            correlation_id=correlation_id,
            description="Failed to fetch the NAV table",
        )

    @staticmethod
    def nav_updated(
        plan_id: UUID,
        scheme_code: str,
        nav: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.NAV_UPDATED,
            entity_type="plan",
            entity_id=plan_id,
            correlation_id=correlation_id,
            description=f"NAV updated: scheme {scheme_code} = {nav}",
            details={"scheme_code": scheme_code, "nav": nav},
        )

    @staticmethod
    def nav_unavailable(
        plan_id: UUID,
        scheme_code: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.NAV_UNAVAILABLE,
            severity=AuditSeverity.WARNING,
            entity_type="plan",
            entity_id=plan_id,
            correlation_id=correlation_id,
            description=f"No NAV found for scheme {scheme_code}",
            details={"scheme_code": scheme_code},
        )

    @staticmethod
    def contribution_applied(
        plan_id: UUID,
        amount: str,
        units: str,
        nav: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CONTRIBUTION_APPLIED,
            entity_type="plan",
            entity_id=plan_id,
            correlation_id=correlation_id,
            description=f"Contribution of {amount} bought {units} units at {nav}",
            details={"amount": amount, "units": units, "nav": nav},
        )

    @staticmethod
    def loan_created(
        loan_id: UUID,
        principal: str,
        emi: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOAN_CREATED,
            entity_type="loan",
            entity_id=loan_id,
            description=f"Loan created: principal {principal}, EMI {emi}",
            details={"principal": principal, "emi": emi},
            is_user_action=True,
        )

    @staticmethod
    def loan_amortized(
        loan_id: UUID,
        months: int,
        previous_balance: str,
        new_balance: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOAN_AMORTIZED,
            entity_type="loan",
            entity_id=loan_id,
            correlation_id=correlation_id,
            description=(
                f"Loan balance moved from {previous_balance} to {new_balance} "
                f"over {months} month(s)"
            ),
            details={
                "months": months,
                "previous_balance": previous_balance,
                "new_balance": new_balance,
            },
        )

    @staticmethod
    def save_failed(
        entity_type: str,
        entity_id: UUID,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SAVE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"Failed to save {entity_type}",
            error_message=error_message,
        )

    @staticmethod
    def configuration_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CONFIGURATION_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"Configuration error: {service}",
            error_code="configuration",
            error_message=error_message,
            details={"service": service},
            correlation_id=correlation_id,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
