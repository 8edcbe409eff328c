"""
LedgerSelector -- ledger history, reconciliation and vault totals.

The reconciliation check is the audit anchor of the balance store: for
every account the stored balance must equal the sum of its ledger entries.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from economy_kernel.db.types import round_money
from economy_kernel.domain.dtos import LedgerEntryInfo
from economy_kernel.domain.values import LedgerEntryKind
from economy_kernel.exceptions import AccountNotFoundError
from economy_kernel.models.account import Account
from economy_kernel.models.ledger import LedgerEntry
from economy_kernel.selectors.base import BaseSelector

ZERO = Decimal("0")


@dataclass(frozen=True)
class ReconciliationResult:
    """Stored balance vs. ledger sum for one account."""

    account_id: UUID
    code: str
    balance: Decimal
    ledger_sum: Decimal
    entry_count: int

    @property
    def difference(self) -> Decimal:
        return self.balance - self.ledger_sum

    @property
    def is_balanced(self) -> bool:
        return self.difference == ZERO


@dataclass(frozen=True)
class VaultTotals:
    """House vault income split by source."""

    house_account_id: UUID | None
    balance: Decimal
    gap_total: Decimal
    maintenance_total: Decimal

    @property
    def income_total(self) -> Decimal:
        return self.gap_total + self.maintenance_total


def _to_info(entry: LedgerEntry) -> LedgerEntryInfo:
    return LedgerEntryInfo(
        id=entry.id,
        account_id=entry.account_id,
        amount=entry.amount,
        kind=LedgerEntryKind(entry.kind),
        created_at=entry.created_at,
        balance_after=entry.balance_after,
        reference=entry.reference,
        note=entry.note,
    )


class LedgerSelector(BaseSelector[LedgerEntry]):
    """Read side of the append-only ledger."""

    def __init__(self, session: Session):
        super().__init__(session)

    def entries_for_account(
        self,
        account_id: UUID,
        kind: LedgerEntryKind | None = None,
        limit: int | None = None,
    ) -> list[LedgerEntryInfo]:
        """Entries for one account, oldest first."""
        query = select(LedgerEntry).where(LedgerEntry.account_id == account_id)
        if kind is not None:
            query = query.where(LedgerEntry.kind == LedgerEntryKind(kind).value)
        query = query.order_by(LedgerEntry.created_at, LedgerEntry.id)
        if limit is not None:
            query = query.limit(limit)

        return [_to_info(e) for e in self.session.execute(query).scalars().all()]

    def entries_for_position(self, position_id: UUID) -> list[LedgerEntryInfo]:
        query = (
            select(LedgerEntry)
            .where(LedgerEntry.reference == position_id)
            .order_by(LedgerEntry.created_at, LedgerEntry.id)
        )
        return [_to_info(e) for e in self.session.execute(query).scalars().all()]

    def ledger_sum(self, account_id: UUID, kind: LedgerEntryKind | None = None) -> Decimal:
        """Sum of entry amounts for an account (optionally one kind)."""
        query = select(func.coalesce(func.sum(LedgerEntry.amount), 0)).where(
            LedgerEntry.account_id == account_id
        )
        if kind is not None:
            query = query.where(LedgerEntry.kind == LedgerEntryKind(kind).value)
        return round_money(Decimal(self.session.execute(query).scalar_one()))

    def reconcile(self, account_id: UUID) -> ReconciliationResult:
        """
        Compare an account's stored balance with its ledger sum.

        Raises:
            AccountNotFoundError: unknown account.
        """
        account = self.session.execute(
            select(Account)
            .where(Account.id == account_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if account is None:
            raise AccountNotFoundError(str(account_id))
        count = self.session.execute(
            select(func.count(LedgerEntry.id)).where(LedgerEntry.account_id == account_id)
        ).scalar_one()
        return ReconciliationResult(
            account_id=account.id,
            code=account.code,
            balance=round_money(account.balance),
            ledger_sum=self.ledger_sum(account_id),
            entry_count=count,
        )

    def reconcile_all(self) -> list[ReconciliationResult]:
        ids = self.session.execute(select(Account.id).order_by(Account.code)).scalars().all()
        return [self.reconcile(account_id) for account_id in ids]

    def vault_totals(self) -> VaultTotals:
        house = self.session.execute(
            select(Account).where(Account.is_house == True)  # noqa: E712
        ).scalar_one_or_none()
        if house is None:
            return VaultTotals(
                house_account_id=None,
                balance=ZERO,
                gap_total=ZERO,
                maintenance_total=ZERO,
            )
        return VaultTotals(
            house_account_id=house.id,
            balance=round_money(house.balance),
            gap_total=self.ledger_sum(house.id, LedgerEntryKind.GAP),
            maintenance_total=self.ledger_sum(house.id, LedgerEntryKind.MAINTENANCE),
        )
