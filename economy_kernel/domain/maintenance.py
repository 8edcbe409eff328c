"""
Maintenance math for worker positions.

Maintenance is charged in whole periods (one day by default).  Each period
debits the owner ``base * fee% / 100 / 30`` and wears ``fee% * factor``
health points off the asset.  Partial periods are never charged; the
marker only advances by whole periods, so re-running a sweep at the same
instant charges nothing.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal

from economy_kernel.db.types import round_money

ZERO = Decimal("0")
HUNDRED = Decimal("100")
DAYS_PER_MONTH = 30


def daily_maintenance_fee(base_price: Decimal, fee_pct: Decimal) -> Decimal:
    return round_money(base_price * fee_pct / HUNDRED / DAYS_PER_MONTH)


def health_decay_per_period(fee_pct: Decimal, factor: Decimal | int) -> Decimal:
    """Health points lost per charged period (a 1 %/month fee at factor 10 -> 10)."""
    return fee_pct * Decimal(factor)


def due_periods(
    last_maintenance_at: datetime | None, now: datetime, interval_seconds: int
) -> int:
    """Whole maintenance periods elapsed since the marker; 0 without a marker."""
    if last_maintenance_at is None or interval_seconds <= 0:
        return 0
    elapsed = (now - last_maintenance_at).total_seconds()
    if elapsed <= 0:
        return 0
    return int(elapsed // interval_seconds)


def advance_marker(
    last_maintenance_at: datetime, periods: int, interval_seconds: int
) -> datetime:
    """The maintenance marker after charging ``periods`` whole periods."""
    return last_maintenance_at + timedelta(seconds=periods * interval_seconds)


def decayed_health(health_pct: Decimal | None, decay: Decimal) -> Decimal:
    """Health after one period's decay, floored at zero."""
    current = health_pct if health_pct is not None else HUNDRED
    return max(ZERO, current - decay)
