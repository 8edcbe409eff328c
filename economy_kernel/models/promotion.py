"""
Module: economy_kernel.models.promotion
Responsibility: ORM persistence for the single global promotion row.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - Exactly one row, keyed PROMOTION_KEY.
    - The raw ``active`` flag is never the effective truth on its own;
      readers go through domain.promotion.PromotionState.effective(now).
    - version increments on every write (last-writer-wins, but observable).
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from economy_kernel.db.base import TrackedBase
from economy_kernel.db.types import UTCDateTime

PROMOTION_KEY = "global"


class Promotion(TrackedBase):
    """Global time-windowed purchase discount and yield bonus."""

    __tablename__ = "promotions"

    __table_args__ = (
        UniqueConstraint("key", name="uq_promotion_key"),
    )

    key: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=PROMOTION_KEY,
    )

    active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    discount_pct: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
        default=Decimal("0"),
    )

    bonus_yield_pct: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
        default=Decimal("0"),
    )

    ends_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(),
        nullable=True,
    )

    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    def __repr__(self) -> str:
        return (
            f"<Promotion active={self.active} -{self.discount_pct}% "
            f"+{self.bonus_yield_pct}% until {self.ends_at}>"
        )
