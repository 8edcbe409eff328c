"""
Accrual engine -- how much a worker position has earned, and who gets it.

Responsibility:
    Given a position snapshot, its catalog entry and the engine clock's
    ``now``, compute the owner-payable amount and the house gap amount.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  Never reads the
    clock or the database; ``now`` is passed in.

Formula:
    rate/second = base_price * (gross_yield_pct + bonus_yield_pct)
                  / 100 / 30 / 86400
    elapsed     = now - last_serviced_at (clamped to >= 0; a paused worker
                  stops at paused_at)
    payable     = rate * min(elapsed, window)
    gap         = rate * max(0, min(elapsed, max_gap_window) - window)

    Each amount is computed as one product divided once, then truncated to
    MONEY_DECIMAL_PLACES.  Truncation keeps sub-quantum dust off the ledger
    and makes the whole-coin reference cases exact (12h on a 1000-coin,
    6 %/month worker pays exactly 1.00).

Invariants enforced:
    - payable is monotonically non-decreasing in ``now`` until collection.
    - payable + gap never exceeds rate * max_gap_window.
    - The bonus is the position's purchase-time snapshot.  The live
      promotion is not an input.

Failure modes:
    - InvalidModeError for investor positions (they do not accrue).
    - ValueError if the catalog entry is not the position's own.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal

from economy_kernel.db.types import round_money, truncate_money
from economy_kernel.domain.dtos import CatalogEntryInfo, PositionInfo
from economy_kernel.domain.values import PositionMode, PositionStatus
from economy_kernel.exceptions import InvalidModeError

DEFAULT_COLLECTION_WINDOW_SECONDS = 86_400
DEFAULT_MAX_GAP_WINDOW_SECONDS = 2_592_000

SECONDS_PER_DAY = 86_400
DAYS_PER_MONTH = 30

# 100 (percent) * 30 (days) * 86400 (seconds)
_RATE_DIVISOR = Decimal(100 * DAYS_PER_MONTH * SECONDS_PER_DAY)

ZERO = Decimal("0")
HUNDRED = Decimal("100")


@dataclass(frozen=True)
class Accrual:
    """Result of one accrual computation."""

    position_id: object
    payable: Decimal
    gap: Decimal
    rate_per_second: Decimal
    elapsed_seconds: Decimal
    window_seconds: int
    progress_pct: Decimal
    computed_at: datetime

    @property
    def is_overdue(self) -> bool:
        """Elapsed time has run past the collection window."""
        return self.elapsed_seconds > self.window_seconds

    @property
    def total(self) -> Decimal:
        return self.payable + self.gap


def seconds_between(start: datetime, end: datetime) -> Decimal:
    """Exact elapsed seconds as a Decimal, clamped to zero."""
    delta: timedelta = end - start
    seconds = (
        Decimal(delta.days) * SECONDS_PER_DAY
        + Decimal(delta.seconds)
        + Decimal(delta.microseconds) / Decimal(1_000_000)
    )
    return seconds if seconds > ZERO else ZERO


def yield_pct(position: PositionInfo, catalog_entry: CatalogEntryInfo) -> Decimal:
    """Monthly yield percent in force for the position (gross + snapshot bonus)."""
    return catalog_entry.worker_gross_yield_pct + (position.bonus_yield_pct or ZERO)


def rate_per_second(position: PositionInfo, catalog_entry: CatalogEntryInfo) -> Decimal:
    """Coins per second, for display.  Amounts never multiply this rounded rate."""
    return (
        catalog_entry.base_price_coins * yield_pct(position, catalog_entry)
    ) / _RATE_DIVISOR


def accrual_end(position: PositionInfo, now: datetime) -> datetime:
    """The instant accrual stops counting: now, or paused_at/closed_at."""
    if position.status == PositionStatus.PAUSED and position.paused_at is not None:
        return min(now, position.paused_at)
    if position.status == PositionStatus.CLOSED:
        return position.last_serviced_at
    return now


def accrued(
    position: PositionInfo,
    catalog_entry: CatalogEntryInfo,
    now: datetime,
    *,
    collection_window_seconds: int = DEFAULT_COLLECTION_WINDOW_SECONDS,
    max_gap_window_seconds: int = DEFAULT_MAX_GAP_WINDOW_SECONDS,
) -> Accrual:
    """
    Compute (payable, gap) for a worker position at ``now``.

    There is no promotion parameter.  The bonus in force is the one the
    position snapshotted at purchase (``position.bonus_yield_pct``), so a
    promotion that starts or ends later never changes what a position earns.

    Preconditions:
        - ``catalog_entry.id == position.catalog_entry_id``.
        - ``max_gap_window_seconds >= collection_window_seconds``.

    Raises:
        InvalidModeError: position is an investor position.
        ValueError: catalog entry does not belong to the position.
    """
    if position.mode != PositionMode.WORKER:
        raise InvalidModeError(
            position_id=str(position.id),
            mode=str(getattr(position.mode, "value", position.mode)),
            operation="accrue",
        )
    if catalog_entry.id != position.catalog_entry_id:
        raise ValueError(
            f"Catalog entry {catalog_entry.id} does not match position "
            f"{position.id} (expects {position.catalog_entry_id})"
        )

    elapsed = seconds_between(position.last_serviced_at, accrual_end(position, now))
    window = Decimal(collection_window_seconds)
    gap_window = Decimal(max(max_gap_window_seconds, collection_window_seconds))

    payable_seconds = min(elapsed, window)
    gap_seconds = max(ZERO, min(elapsed, gap_window) - window)

    numerator = catalog_entry.base_price_coins * yield_pct(position, catalog_entry)
    payable = truncate_money(numerator * payable_seconds / _RATE_DIVISOR)
    gap = truncate_money(numerator * gap_seconds / _RATE_DIVISOR)

    progress = min(HUNDRED, elapsed * HUNDRED / window) if window > ZERO else HUNDRED

    return Accrual(
        position_id=position.id,
        payable=payable,
        gap=gap,
        rate_per_second=round_money(rate_per_second(position, catalog_entry)),
        elapsed_seconds=elapsed,
        window_seconds=collection_window_seconds,
        progress_pct=round_money(progress, decimal_places=2),
        computed_at=now,
    )
