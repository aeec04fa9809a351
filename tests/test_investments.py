"""
Tests for the investment price refresh.
"""

import asyncio
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from conftest import TODAY, StubPriceSource
from finance_tracker.audit import AuditLogger
from finance_tracker.models.audit import AuditEventType
from finance_tracker.models.positions import Investment
from finance_tracker.models.results import RunStatus
from finance_tracker.reconciliation import InvestmentService
from finance_tracker.services.errors import DataUnavailableError
from finance_tracker.services.pricing import PriceResolver
from finance_tracker.services.storage import (
    InMemoryAuditStorage,
    InMemoryRecordStore,
    NotFoundError,
)


class SymbolPriceSource(StubPriceSource):
    """Answers by symbol instead of by call order."""

    def __init__(self, name: str, prices: dict, configured: bool = True):
        super().__init__(name, [None], configured=configured)
        self.prices = prices

    async def fetch_price(self, symbol, kind=None):
        self.calls.append(symbol)
        return self.prices.get(symbol)


def investment(symbol: str, **overrides) -> Investment:
    data = dict(
        name=symbol,
        symbol=symbol,
        quantity=Decimal("10"),
        purchase_price=Decimal("100"),
        last_updated=date(2026, 10, 1),
    )
    data.update(overrides)
    return Investment(**data)


class TestUpdateCurrentPrices:
    """Tests for the bulk price refresh."""

    def test_found_price_is_saved(self, clock):
        """Test that a resolved price and today's date are stored."""
        infy = investment("INFY.NS")
        store = InMemoryRecordStore([infy])
        source = SymbolPriceSource("primary", {"INFY.NS": Decimal("1520.40")})

        summary = asyncio.run(
            InvestmentService(store, PriceResolver([source]), clock).update_current_prices()
        )

        assert summary.status == RunStatus.COMPLETED
        assert summary.succeeded == 1
        saved = asyncio.run(store.load_by_id(infy.id))
        assert saved.current_price == Decimal("1520.40")
        assert saved.last_updated == TODAY

    def test_missing_price_leaves_record_unchanged(self, clock):
        """Test that one unresolved symbol is counted as failed and not saved."""
        infy = investment("INFY.NS")
        gone = investment("DELISTED.NS")
        store = InMemoryRecordStore([infy, gone])
        source = SymbolPriceSource("primary", {"INFY.NS": Decimal("1520.40")})

        summary = asyncio.run(
            InvestmentService(store, PriceResolver([source]), clock).update_current_prices()
        )

        assert summary.succeeded == 1
        assert summary.failed == 1
        assert store.save_count == 1
        untouched = asyncio.run(store.load_by_id(gone.id))
        assert untouched.current_price == Decimal("0")
        assert untouched.last_updated == date(2026, 10, 1)

    def test_falls_back_to_secondary(self, clock):
        """Test that the second source answers when the first has nothing."""
        infy = investment("INFY.NS")
        store = InMemoryRecordStore([infy])
        primary = SymbolPriceSource("primary", {})
        secondary = SymbolPriceSource("secondary", {"INFY.NS": Decimal("1519.95")})

        asyncio.run(
            InvestmentService(store, PriceResolver([primary, secondary]), clock).update_current_prices()
        )

        assert asyncio.run(store.load_by_id(infy.id)).current_price == Decimal("1519.95")
        assert primary.calls == ["INFY.NS"]
        assert secondary.calls == ["INFY.NS"]

    def test_configuration_diagnostic_reported_once(self, clock):
        """Test that an unconfigured source is reported once for the whole run."""
        storage = InMemoryAuditStorage()
        store = InMemoryRecordStore([investment("A"), investment("B"), investment("C")])
        primary = SymbolPriceSource("primary", {})
        secondary = SymbolPriceSource("secondary", {}, configured=False)

        summary = asyncio.run(
            InvestmentService(
                store, PriceResolver([primary, secondary]), clock, AuditLogger(storage)
            ).update_current_prices()
        )

        assert summary.failed == 3
        assert summary.diagnostics == ["secondary is not configured"]
        assert secondary.calls == []
        config_events = [
            e for e in storage.events if e.event_type == AuditEventType.CONFIGURATION_ERROR
        ]
        assert len(config_events) == 1
        assert config_events[0].correlation_id == summary.run_id
        unavailable = [
            e for e in storage.events if e.event_type == AuditEventType.PRICE_UNAVAILABLE
        ]
        assert len(unavailable) == 3

    def test_empty_store_completes(self, clock):
        """Test that a run with no investments still finishes."""
        source = SymbolPriceSource("primary", {})
        summary = asyncio.run(
            InvestmentService(InMemoryRecordStore(), PriceResolver([source]), clock).update_current_prices()
        )
        assert summary.status == RunStatus.COMPLETED
        assert summary.processed == 0
        assert summary.finished_at is not None


class TestRefreshPrice:
    """Tests for refreshing a single investment on demand."""

    def test_unknown_id(self, clock):
        """Test that an unknown investment ID raises NotFoundError."""
        source = SymbolPriceSource("primary", {})
        svc = InvestmentService(InMemoryRecordStore(), PriceResolver([source]), clock)

        with pytest.raises(NotFoundError):
            asyncio.run(svc.refresh_price(uuid4()))
        assert source.calls == []

    def test_no_price_raises(self, clock):
        """Test that an unresolved symbol raises DataUnavailableError."""
        gone = investment("DELISTED.NS")
        store = InMemoryRecordStore([gone])
        svc = InvestmentService(store, PriceResolver([SymbolPriceSource("primary", {})]), clock)

        with pytest.raises(DataUnavailableError, match="DELISTED.NS"):
            asyncio.run(svc.refresh_price(gone.id))
        assert store.save_count == 0

    def test_configuration_error_is_the_message(self, clock):
        """Test that a missing configuration is surfaced to the caller."""
        infy = investment("INFY.NS")
        source = SymbolPriceSource("secondary", {}, configured=False)
        svc = InvestmentService(InMemoryRecordStore([infy]), PriceResolver([source]), clock)

        with pytest.raises(DataUnavailableError, match="secondary is not configured"):
            asyncio.run(svc.refresh_price(infy.id))

    def test_found_price_is_returned(self, clock):
        """Test that the refreshed investment is saved and returned."""
        infy = investment("INFY.NS")
        store = InMemoryRecordStore([infy])
        source = SymbolPriceSource("primary", {"INFY.NS": Decimal("1520.40")})
        svc = InvestmentService(store, PriceResolver([source]), clock)

        refreshed = asyncio.run(svc.refresh_price(infy.id))

        assert refreshed.current_price == Decimal("1520.40")
        assert refreshed.last_updated == TODAY
        assert asyncio.run(store.load_by_id(infy.id)).current_price == Decimal("1520.40")
