"""
Module: economy_kernel.db.types
Responsibility: The UTC timestamp column type and the rounding helpers for
    coin amounts.  Centralizes precision so every model and service stores and
    rounds currency identically.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - No floats.  Coin amounts and percentages are Decimal with
      MONEY_DECIMAL_PLACES of precision.
    - Timestamps are always timezone-aware UTC when read back, on every
      backend (UTCDateTime).
"""

from datetime import timezone
from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal

from sqlalchemy import DateTime
from sqlalchemy.types import TypeDecorator

MONEY_DECIMAL_PLACES = 9
DEFAULT_ROUNDING = ROUND_HALF_UP

_QUANTUM = Decimal(1).scaleb(-MONEY_DECIMAL_PLACES)


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware UTC timestamp on every backend.

    PostgreSQL keeps the offset natively.  SQLite has no timezone support,
    so values are stored as naive UTC and re-tagged with UTC on load.
    Naive values handed in by callers are interpreted as UTC.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        value = value.astimezone(timezone.utc)
        if dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a coin amount to the stored precision.

    The sanctioned rounding function for prices, fees and payouts.  Accrued
    yield uses truncate_money() instead so fractions below the quantum stay
    with the house rather than being paid out.
    """
    quantize_str = "0." + "0" * decimal_places
    return value.quantize(Decimal(quantize_str), rounding=rounding)


def truncate_money(value: Decimal) -> Decimal:
    """Round toward zero at the stored precision."""
    return value.quantize(_QUANTUM, rounding=ROUND_DOWN)
