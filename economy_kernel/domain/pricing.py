"""
Pricing -- purchase price and the per-day economics shown before a purchase.

Pure functions over a catalog entry and a PromotionState read once by the
caller.  The purchase path and the shop quote share these so a quoted
price is exactly the debited price.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from economy_kernel.db.types import round_money
from economy_kernel.domain.accrual import DAYS_PER_MONTH
from economy_kernel.domain.dtos import CatalogEntryInfo
from economy_kernel.domain.maintenance import daily_maintenance_fee
from economy_kernel.domain.promotion import PromotionState
from economy_kernel.domain.values import PositionMode

ZERO = Decimal("0")
HUNDRED = Decimal("100")


@dataclass(frozen=True)
class PriceQuote:
    """What a buyer would pay and earn for one catalog entry right now."""

    catalog_entry_id: object
    mode: PositionMode
    base_price: Decimal
    discount_pct: Decimal
    effective_price: Decimal
    bonus_yield_pct: Decimal
    daily_earn: Decimal
    daily_maintenance: Decimal
    net_per_day: Decimal
    investor_payout: Decimal | None
    promotion_active: bool
    quoted_at: datetime


def effective_discount_pct(promotion: PromotionState, now: datetime) -> Decimal:
    return promotion.effective_discount_pct(now)


def effective_bonus_pct(promotion: PromotionState, now: datetime) -> Decimal:
    return promotion.effective_bonus_yield_pct(now)


def effective_price(base_price: Decimal, discount_pct: Decimal) -> Decimal:
    """base * (1 - discount/100), rounded to the stored precision."""
    return round_money(base_price * (HUNDRED - discount_pct) / HUNDRED)


def investor_payout(base_price: Decimal, investor_yield_pct: Decimal) -> Decimal:
    """Principal plus fixed yield, paid once at maturity on the base price."""
    return round_money(base_price * (HUNDRED + investor_yield_pct) / HUNDRED)


def worker_daily_earn(
    base_price: Decimal, gross_yield_pct: Decimal, bonus_yield_pct: Decimal = ZERO
) -> Decimal:
    return round_money(
        base_price * (gross_yield_pct + bonus_yield_pct) / HUNDRED / DAYS_PER_MONTH
    )


def quote(
    entry: CatalogEntryInfo,
    mode: PositionMode,
    promotion: PromotionState,
    now: datetime,
) -> PriceQuote:
    """
    Build the shop-card numbers for ``entry`` bought in ``mode`` at ``now``.

    Investor quotes carry no daily figures; their payout is fixed at the
    base price regardless of the discount paid.  The bonus is reported for
    both modes because purchase snapshots it for both.
    """
    mode = PositionMode(mode)
    discount = effective_discount_pct(promotion, now)
    bonus = effective_bonus_pct(promotion, now)
    price = effective_price(entry.base_price_coins, discount)

    if mode == PositionMode.WORKER:
        earn = worker_daily_earn(
            entry.base_price_coins, entry.worker_gross_yield_pct, bonus
        )
        upkeep = daily_maintenance_fee(
            entry.base_price_coins, entry.maintenance_fee_pct
        )
        payout = None
    else:
        earn = ZERO
        upkeep = ZERO
        payout = investor_payout(
            entry.base_price_coins, entry.investor_fixed_yield_pct
        )

    return PriceQuote(
        catalog_entry_id=entry.id,
        mode=mode,
        base_price=entry.base_price_coins,
        discount_pct=discount,
        effective_price=price,
        bonus_yield_pct=bonus,
        daily_earn=earn,
        daily_maintenance=upkeep,
        net_per_day=earn - upkeep,
        investor_payout=payout,
        promotion_active=promotion.effective(now),
        quoted_at=now,
    )
