"""
Tests for LedgerSelector: history, reconciliation and vault totals.
"""

from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import text

from economy_kernel.domain.values import LedgerEntryKind
from economy_kernel.exceptions import AccountNotFoundError
from economy_kernel.selectors.ledger_selector import LedgerSelector

DAY = 86_400


@pytest.fixture
def selector(session):
    return LedgerSelector(session)


class TestReconciliation:
    def test_fresh_account_balances(self, selector, ledger):
        account = ledger.open_account("empty")

        result = selector.reconcile(account.id)

        assert result.is_balanced
        assert result.entry_count == 0
        assert result.ledger_sum == Decimal("0")

    def test_all_accounts_after_activity(
        self, selector, funded_account, lifecycle_service, collection_service, catalog_entry, clock
    ):
        owner = funded_account(Decimal("3000"))
        worker = lifecycle_service.buy(owner.id, catalog_entry.id, "worker").position
        clock.advance(3 * DAY)
        lifecycle_service.apply_maintenance(worker.id)
        collection_service.collect(worker.id, owner.id)

        results = selector.reconcile_all()

        assert len(results) == 2
        assert all(r.is_balanced for r in results)

    def test_tampered_balance_detected(self, selector, session, funded_account):
        account = funded_account(Decimal("100"))
        session.execute(
            text("UPDATE accounts SET balance = balance + 1 WHERE id = :id"),
            {"id": str(account.id)},
        )

        result = selector.reconcile(account.id)

        assert not result.is_balanced
        assert result.difference == Decimal("1")

    def test_unknown_account(self, selector):
        with pytest.raises(AccountNotFoundError):
            selector.reconcile(uuid4())


class TestHistory:
    def test_filter_by_kind(self, selector, funded_account, lifecycle_service, catalog_entry):
        owner = funded_account(Decimal("3000"))
        lifecycle_service.buy(owner.id, catalog_entry.id, "worker")
        lifecycle_service.buy(owner.id, catalog_entry.id, "investor")

        purchases = selector.entries_for_account(owner.id, kind=LedgerEntryKind.PURCHASE)

        assert len(purchases) == 2
        assert selector.ledger_sum(owner.id, LedgerEntryKind.PURCHASE) == Decimal("-2000")
        assert selector.ledger_sum(owner.id) == Decimal("1000")

    def test_limit(self, selector, ledger):
        account = ledger.open_account("busy")
        for _ in range(5):
            ledger.adjust(account.id, Decimal("1"))

        assert len(selector.entries_for_account(account.id, limit=3)) == 3


class TestVaultTotals:
    def test_gap_and_maintenance_income(
        self, selector, funded_account, lifecycle_service, collection_service, catalog_entry, clock
    ):
        owner = funded_account(Decimal("3000"))
        worker = lifecycle_service.buy(owner.id, catalog_entry.id, "worker").position
        clock.advance(2 * DAY)
        lifecycle_service.apply_maintenance(worker.id)
        collection_service.collect(worker.id, owner.id)

        totals = selector.vault_totals()

        assert totals.gap_total == Decimal("2")
        assert totals.maintenance_total == Decimal("0.666666666")
        assert totals.income_total == totals.balance

    def test_no_house_account(self, session):
        totals = LedgerSelector(session).vault_totals()

        assert totals.house_account_id is None
        assert totals.balance == Decimal("0")
