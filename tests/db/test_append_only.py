"""
Append-only enforcement at the ORM layer.

Ledger entries can never be rewritten or removed; a position's mode is
fixed at purchase and positions are closed rather than deleted.
"""

from decimal import Decimal

import pytest
from sqlalchemy import select

from economy_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from economy_kernel.domain.values import LedgerEntryKind, PositionMode, PositionStatus
from economy_kernel.exceptions import ImmutabilityViolationError
from economy_kernel.models.ledger import LedgerEntry
from economy_kernel.models.position import Position


@pytest.fixture
def purchase(session, lifecycle_service, funded_account, catalog_entry):
    owner = funded_account(Decimal("2000"))
    position_id = lifecycle_service.buy(owner.id, catalog_entry.id, "worker").position.id
    entry = session.execute(
        select(LedgerEntry).where(
            LedgerEntry.account_id == owner.id,
            LedgerEntry.kind == LedgerEntryKind.PURCHASE,
        )
    ).scalar_one()
    return session.get(Position, position_id), entry


class TestLedgerEntryImmutability:
    def test_update_blocked(self, session, purchase):
        _, entry = purchase
        entry.amount = Decimal("-1")

        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()

        assert exc_info.value.entity_type == "LedgerEntry"

    def test_delete_blocked(self, session, purchase):
        _, entry = purchase
        session.delete(entry)

        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_violation_is_logged(self, session, purchase, captured_logs):
        _, entry = purchase
        entry.note = "rewritten"

        with pytest.raises(ImmutabilityViolationError):
            session.flush()

        blocked = [r for r in captured_logs() if r["message"] == "immutability_violation_blocked"]
        assert blocked[0]["entity_id"] == str(entry.id)


class TestPositionImmutability:
    def test_mode_change_blocked(self, session, purchase):
        position, _ = purchase
        position.mode = PositionMode.INVESTOR

        with pytest.raises(ImmutabilityViolationError, match="mode is immutable"):
            session.flush()

    def test_status_change_allowed(self, session, purchase):
        position, _ = purchase
        version = position.version
        position.status = PositionStatus.PAUSED

        session.flush()

        assert position.version == version + 1

    def test_delete_blocked(self, session, purchase):
        position, _ = purchase
        session.delete(position)

        with pytest.raises(ImmutabilityViolationError):
            session.flush()


class TestListenerRegistration:
    def test_unregister_then_register(self, session, purchase):
        _, entry = purchase
        unregister_immutability_listeners()
        try:
            entry.note = "maintenance script"
            session.flush()
        finally:
            register_immutability_listeners()

        entry.note = "again"
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
