"""
Day-scoped reference-price cache.

DESIGN DECISION: The NAV table is fetched at most once per calendar day.
The mapping and its stamp date are replaced together, under one lock,
and only after a complete parse. A failed refresh leaves the previous
table and stamp untouched, so a stale table is never half-replaced.

Read policy:
- Fresh (stamped today) -> answer from the table
- Stale -> refresh first; if the refresh fails, answer None
"""

import asyncio
from datetime import date
from decimal import Decimal
from typing import Optional, Protocol

import structlog

from finance_tracker.audit import AuditLogger
from finance_tracker.services.clock import Clock, SystemClock


logger = structlog.get_logger(__name__)


class NavTableSource(Protocol):
    """Anything that can fetch the whole scheme -> NAV mapping."""

    async def fetch_all(self) -> Optional[dict[str, Decimal]]:
        ...


class ReferencePriceCache:
    """Process-wide scheme -> NAV table stamped with the date it was fetched."""

    def __init__(
        self,
        source: NavTableSource,
        clock: Optional[Clock] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._source = source
        self._clock = clock or SystemClock()
        self._audit = audit_logger
        self._lock = asyncio.Lock()
        self._table: dict[str, Decimal] = {}
        self._stamped_on: Optional[date] = None
        self.fetch_count = 0

    @property
    def stamped_on(self) -> Optional[date]:
        return self._stamped_on

    def __len__(self) -> int:
        return len(self._table)

    def is_fresh(self) -> bool:
        return self._stamped_on is not None and self._stamped_on == self._clock.today()

    async def refresh(self) -> bool:
        """Fetch unconditionally. Returns False (table untouched) on failure."""
        async with self._lock:
            return await self._refresh_locked()

    async def ensure_fresh(self) -> bool:
        """
        Refresh only when stale.

        Concurrent callers wait on the same lock, so a stale cache
        triggers one fetch no matter how many lookups race for it.
        """
        async with self._lock:
            if self.is_fresh():
                return True
            return await self._refresh_locked()

    async def lookup(self, scheme_code: str) -> Optional[Decimal]:
        """NAV for a scheme, or None if unknown or the table is unavailable."""
        if not await self.ensure_fresh():
            return None
        return self._table.get(scheme_code.strip())

    async def _refresh_locked(self) -> bool:
        self.fetch_count += 1
        table = await self._source.fetch_all()

        if not table:
            logger.warning(
                "nav_cache_refresh_failed",
                stale_since=str(self._stamped_on) if self._stamped_on else None,
            )
            if self._audit:
                await self._audit.log_nav_table_failed()
            return False

        self._table = dict(table)
        self._stamped_on = self._clock.today()
        logger.info("nav_cache_refreshed", schemes=len(table), stamped_on=str(self._stamped_on))
        if self._audit:
            await self._audit.log_nav_table_refreshed(scheme_count=len(table))
        return True
