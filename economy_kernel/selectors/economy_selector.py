"""
EconomySelector -- aggregate figures for the admin economy panel.

Read-only; nothing computed here feeds back into engine invariants.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from economy_kernel.db.types import round_money
from economy_kernel.domain.values import PositionMode, PositionStatus
from economy_kernel.models.account import Account
from economy_kernel.models.catalog import AssetCatalogEntry
from economy_kernel.models.position import Position
from economy_kernel.selectors.base import BaseSelector
from economy_kernel.selectors.ledger_selector import LedgerSelector, VaultTotals

ZERO = Decimal("0")
HUNDRED = Decimal("100")
DAYS_PER_MONTH = 30


@dataclass(frozen=True)
class EconomyStats:
    total_user_balances: Decimal
    user_count: int
    investor_capital: Decimal
    investor_count: int
    worker_count: int
    paused_worker_count: int
    daily_worker_yield: Decimal
    daily_maintenance: Decimal
    vault: VaultTotals

    @property
    def net_daily_worker_yield(self) -> Decimal:
        return self.daily_worker_yield - self.daily_maintenance


class EconomySelector(BaseSelector[Position]):
    """System-wide totals computed from accounts, positions and the ledger."""

    def __init__(self, session: Session):
        super().__init__(session)
        self.ledger = LedgerSelector(session)

    def economy_stats(self) -> EconomyStats:
        balances, user_count = self.session.execute(
            select(
                func.coalesce(func.sum(Account.balance), 0),
                func.count(Account.id),
            ).where(Account.is_house == False)  # noqa: E712
        ).one()

        rows = self.session.execute(
            select(Position, AssetCatalogEntry)
            .join(AssetCatalogEntry, Position.catalog_entry_id == AssetCatalogEntry.id)
            .where(Position.status != PositionStatus.CLOSED.value)
        ).all()

        investor_capital = ZERO
        investor_count = 0
        worker_count = 0
        paused_count = 0
        daily_yield = ZERO
        daily_upkeep = ZERO

        for position, entry in rows:
            if position.mode == PositionMode.INVESTOR:
                investor_count += 1
                investor_capital += position.price_paid
                continue
            if position.status == PositionStatus.PAUSED:
                paused_count += 1
                continue
            worker_count += 1
            daily_yield += (
                entry.base_price_coins
                * (entry.worker_gross_yield_pct + position.bonus_yield_pct)
                / HUNDRED
                / DAYS_PER_MONTH
            )
            daily_upkeep += (
                entry.base_price_coins * entry.maintenance_fee_pct / HUNDRED / DAYS_PER_MONTH
            )

        return EconomyStats(
            total_user_balances=round_money(Decimal(balances)),
            user_count=user_count,
            investor_capital=round_money(investor_capital),
            investor_count=investor_count,
            worker_count=worker_count,
            paused_worker_count=paused_count,
            daily_worker_yield=round_money(daily_yield),
            daily_maintenance=round_money(daily_upkeep),
            vault=self.ledger.vault_totals(),
        )
