"""
Tests for CollectionService.

Covers:
- Payable credited to the owner, gap credited to the house
- Service point advances to the engine clock
- Too-soon, wrong owner, wrong mode and wrong state rejections
- Collection after a catalog yield change reads the live terms
"""

from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from economy_kernel.domain.values import LedgerEntryKind, PositionStatus
from economy_kernel.exceptions import (
    InvalidModeError,
    InvalidStateError,
    NotOwnerError,
    PositionNotFoundError,
    TooSoonError,
)
from economy_kernel.selectors.ledger_selector import LedgerSelector
from economy_kernel.selectors.position_selector import PositionSelector

HOUR = 3600
DAY = 86_400


@pytest.fixture
def owner(funded_account):
    return funded_account(Decimal("5000"))


@pytest.fixture
def worker(lifecycle_service, owner, catalog_entry):
    return lifecycle_service.buy(owner.id, catalog_entry.id, "worker").position


class TestCollect:
    def test_half_day_collects_one_coin(self, collection_service, ledger, clock, owner, worker):
        start = ledger.get(owner.id).balance
        clock.advance(12 * HOUR)

        receipt = collection_service.collect(worker.id, owner.id)

        assert receipt.payable == Decimal("1")
        assert receipt.gap == Decimal("0")
        assert receipt.serviced_at == clock.now()
        assert receipt.balance_after == start + Decimal("1")
        assert ledger.get(owner.id).balance == start + Decimal("1")

    def test_uncollected_two_days_splits_with_house(
        self, collection_service, ledger, clock, session, owner, worker
    ):
        house_id = ledger.house_account_id()
        clock.advance(2 * DAY)

        receipt = collection_service.collect(worker.id, owner.id)

        assert receipt.payable == Decimal("2")
        assert receipt.gap == Decimal("2")
        assert ledger.get(house_id).balance == Decimal("2")

        gap_entries = LedgerSelector(session).entries_for_account(house_id, kind=LedgerEntryKind.GAP)
        assert [e.amount for e in gap_entries] == [Decimal("2")]
        assert gap_entries[0].reference == worker.id

    def test_service_point_advances(self, collection_service, session, clock, owner, worker):
        clock.advance(2 * DAY)
        collection_service.collect(worker.id, owner.id)

        position = PositionSelector(session).get(worker.id)

        assert position.last_serviced_at == clock.now()
        assert position.last_serviced_at == worker.purchased_at + timedelta(days=2)

    def test_second_collect_starts_from_new_service_point(
        self, collection_service, clock, owner, worker
    ):
        clock.advance(12 * HOUR)
        collection_service.collect(worker.id, owner.id)
        clock.advance(6 * HOUR)

        receipt = collection_service.collect(worker.id, owner.id)

        assert receipt.payable == Decimal("0.5")
        assert receipt.elapsed_seconds == Decimal(6 * HOUR)

    def test_immediate_second_collect_is_too_soon(self, collection_service, clock, owner, worker):
        clock.advance(12 * HOUR)
        collection_service.collect(worker.id, owner.id)

        with pytest.raises(TooSoonError) as exc_info:
            collection_service.collect(worker.id, owner.id)

        assert exc_info.value.code == "TOO_SOON"

    def test_below_minimum_interval_is_too_soon(
        self, collection_service, ledger, clock, owner, worker, config
    ):
        clock.advance(config.min_collection_interval_seconds - 1)
        before = ledger.get(owner.id).balance

        with pytest.raises(TooSoonError):
            collection_service.collect(worker.id, owner.id)

        assert ledger.get(owner.id).balance == before

    def test_catalog_yield_change_applies_live(
        self, collection_service, catalog_service, catalog_entry, clock, owner, worker
    ):
        catalog_service.update_entry(catalog_entry.id, worker_gross_yield_pct=Decimal("12"))
        clock.advance(12 * HOUR)

        receipt = collection_service.collect(worker.id, owner.id)

        assert receipt.payable == Decimal("2")

    def test_collection_logged(self, collection_service, clock, owner, worker, captured_logs):
        clock.advance(12 * HOUR)
        collection_service.collect(worker.id, owner.id)

        records = [r for r in captured_logs() if r["message"] == "collection_completed"]
        assert len(records) == 1
        assert records[0]["payable"] == "1.000000000"


class TestRejections:
    def test_unknown_position(self, collection_service, owner):
        with pytest.raises(PositionNotFoundError):
            collection_service.collect(uuid4(), owner.id)

    def test_not_owner(self, collection_service, funded_account, clock, worker):
        stranger = funded_account(Decimal("0"))
        clock.advance(HOUR)

        with pytest.raises(NotOwnerError):
            collection_service.collect(worker.id, stranger.id)

    def test_investor_cannot_collect(
        self, collection_service, lifecycle_service, clock, owner, catalog_entry
    ):
        investor = lifecycle_service.buy(owner.id, catalog_entry.id, "investor").position
        clock.advance(DAY)

        with pytest.raises(InvalidModeError):
            collection_service.collect(investor.id, owner.id)

    def test_paused_cannot_collect(
        self, collection_service, lifecycle_service, ledger, clock, owner, worker
    ):
        # Drain the owner so the first maintenance fee goes unpaid
        ledger.adjust(owner.id, -ledger.get(owner.id).balance)
        clock.advance(DAY)
        outcome = lifecycle_service.apply_maintenance(worker.id)
        assert outcome.paused

        with pytest.raises(InvalidStateError) as exc_info:
            collection_service.collect(worker.id, owner.id)

        assert exc_info.value.status == PositionStatus.PAUSED.value

    def test_closed_cannot_collect(self, collection_service, lifecycle_service, clock, owner, worker):
        lifecycle_service.close(worker.id, owner.id)
        clock.advance(DAY)

        with pytest.raises(InvalidStateError):
            collection_service.collect(worker.id, owner.id)

    def test_partially_damaged_worker_still_collects(
        self, collection_service, lifecycle_service, clock, owner, worker
    ):
        clock.advance(DAY)
        outcome = lifecycle_service.apply_maintenance(worker.id)
        assert outcome.health_pct == Decimal("90")
        assert not outcome.paused

        clock.advance(12 * HOUR)
        receipt = collection_service.collect(worker.id, owner.id)

        # Full rate over 36h: 24h payable, 12h gap
        assert receipt.payable == Decimal("2")
        assert receipt.gap == Decimal("1")
