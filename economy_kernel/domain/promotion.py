"""
PromotionState -- the explicitly-read promotion value.

Responsibility:
    Carries one read of the global promotion into a computation.  The
    effectiveness predicate ``active AND now < ends_at`` lives here and
    nowhere else; callers read the row once per operation and pass this
    value down, so every step of one purchase agrees on whether the
    promotion applies.

Architecture position:
    Kernel > Domain -- pure, zero I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

ZERO = Decimal("0")


@dataclass(frozen=True)
class PromotionState:
    """Immutable snapshot of the global promotion."""

    active: bool = False
    discount_pct: Decimal = ZERO
    bonus_yield_pct: Decimal = ZERO
    ends_at: datetime | None = None
    version: int = 0

    @classmethod
    def inactive(cls) -> PromotionState:
        return cls()

    def effective(self, now: datetime) -> bool:
        """True only while the flag is set AND the window has not ended."""
        return self.active and self.ends_at is not None and now < self.ends_at

    def effective_discount_pct(self, now: datetime) -> Decimal:
        return self.discount_pct if self.effective(now) else ZERO

    def effective_bonus_yield_pct(self, now: datetime) -> Decimal:
        return self.bonus_yield_pct if self.effective(now) else ZERO

    def seconds_remaining(self, now: datetime) -> int:
        """Whole seconds left in the window; 0 when not effective."""
        if not self.effective(now):
            return 0
        return int((self.ends_at - now).total_seconds())
