"""
Immutable data transfer objects for the economy kernel.

Pure domain objects with no ORM dependencies.  Services convert ORM rows to
these before handing them to the accrual/pricing functions or returning
them to callers, so nothing outside a transaction ever holds a live row.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from economy_kernel.domain.values import LedgerEntryKind, PositionMode, PositionStatus


@dataclass(frozen=True)
class CatalogEntryInfo:
    """One purchasable asset type as seen by the engine."""

    id: UUID
    code: str
    name: str
    base_price_coins: Decimal
    worker_gross_yield_pct: Decimal
    maintenance_fee_pct: Decimal
    investor_fixed_yield_pct: Decimal
    active: bool
    version: int = 1
    sort_order: int = 0
    description: str | None = None


@dataclass(frozen=True)
class PositionInfo:
    """Snapshot of an owned asset's accrual and lifecycle state."""

    id: UUID
    owner_id: UUID
    catalog_entry_id: UUID
    mode: PositionMode
    status: PositionStatus
    purchased_at: datetime
    last_serviced_at: datetime
    health_pct: Decimal | None = None
    maturity_at: datetime | None = None
    bonus_yield_pct: Decimal = Decimal("0")
    applied_discount_pct: Decimal = Decimal("0")
    price_paid: Decimal = Decimal("0")
    paused_at: datetime | None = None
    last_maintenance_at: datetime | None = None
    closed_at: datetime | None = None
    catalog_version: int = 1

    @property
    def is_worker(self) -> bool:
        return self.mode == PositionMode.WORKER

    @property
    def is_investor(self) -> bool:
        return self.mode == PositionMode.INVESTOR

    @property
    def is_damaged(self) -> bool:
        """Worker with health below 100 (partial damage does not pause)."""
        return self.health_pct is not None and self.health_pct < Decimal("100")

    def is_mature(self, now: datetime) -> bool:
        """Investor whose lock period has ended."""
        return self.maturity_at is not None and now >= self.maturity_at


@dataclass(frozen=True)
class AccountInfo:
    """Balance holder snapshot."""

    id: UUID
    code: str
    balance: Decimal
    verified: bool
    is_house: bool = False


@dataclass(frozen=True)
class LedgerEntryInfo:
    """One appended ledger entry."""

    id: UUID
    account_id: UUID
    amount: Decimal
    kind: LedgerEntryKind
    created_at: datetime
    balance_after: Decimal
    reference: UUID | None = None
    note: str | None = None
