"""
PromotionService -- administrative control of the global promotion.

Responsibility:
    Writes the singleton promotion row and reads it back as a
    ``PromotionState``.  Callers read the state once per operation and pass
    it down; nothing else consults the row.

Architecture position:
    Kernel > Services -- imperative shell.

Invariants enforced:
    - Singleton: one row keyed PROMOTION_KEY, created lazily.
    - Last-writer-wins, with ``version`` incremented on every write.
    - ``ends_at`` is derived from the engine clock, never caller-supplied.

Failure modes:
    - InvalidInputError: discount outside [0, 100), negative bonus,
      non-positive duration.
"""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

from sqlalchemy import select

from economy_kernel.domain.promotion import PromotionState
from economy_kernel.exceptions import InvalidInputError
from economy_kernel.logging_config import get_logger
from economy_kernel.models.promotion import PROMOTION_KEY, Promotion
from economy_kernel.services.base import BaseService

logger = get_logger("services.promotion")


def promotion_to_state(row: Promotion | None) -> PromotionState:
    if row is None:
        return PromotionState.inactive()
    return PromotionState(
        active=row.active,
        discount_pct=row.discount_pct,
        bonus_yield_pct=row.bonus_yield_pct,
        ends_at=row.ends_at,
        version=row.version,
    )


class PromotionService(BaseService[Promotion]):
    """Activate, deactivate and read the global promotion."""

    def _row(self, for_update: bool = False) -> Promotion | None:
        stmt = select(Promotion).where(Promotion.key == PROMOTION_KEY)
        if for_update:
            stmt = stmt.with_for_update()
        return self.session.execute(
            stmt.execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _row_or_create(self) -> Promotion:
        row = self._row(for_update=True)
        if row is None:
            row = Promotion(key=PROMOTION_KEY, active=False, version=0)
            self.session.add(row)
        return row

    def current(self) -> PromotionState:
        """One read of the promotion, for passing into a computation."""
        return promotion_to_state(self._row())

    def activate(
        self,
        discount_pct: Decimal,
        bonus_yield_pct: Decimal,
        duration_seconds: int,
    ) -> PromotionState:
        """
        Start (or restart) the promotion for ``duration_seconds`` from now.

        Raises:
            InvalidInputError: out-of-range parameters.
        """
        discount_pct = Decimal(discount_pct)
        bonus_yield_pct = Decimal(bonus_yield_pct)
        if not (Decimal("0") <= discount_pct < Decimal("100")):
            raise InvalidInputError(
                "discount_pct", str(discount_pct), "must be in [0, 100)"
            )
        if bonus_yield_pct < 0:
            raise InvalidInputError(
                "bonus_yield_pct", str(bonus_yield_pct), "must not be negative"
            )
        if duration_seconds <= 0:
            raise InvalidInputError(
                "duration_seconds", str(duration_seconds), "must be positive"
            )

        now = self.clock.now()
        row = self._row_or_create()
        row.active = True
        row.discount_pct = discount_pct
        row.bonus_yield_pct = bonus_yield_pct
        row.ends_at = now + timedelta(seconds=duration_seconds)
        row.version = (row.version or 0) + 1
        self.session.flush()

        logger.info(
            "promotion_activated",
            extra={
                "discount_pct": str(discount_pct),
                "bonus_yield_pct": str(bonus_yield_pct),
                "ends_at": row.ends_at.isoformat(),
                "version": row.version,
            },
        )
        return promotion_to_state(row)

    def deactivate(self) -> PromotionState:
        """End the promotion immediately; percentages are kept for reference."""
        row = self._row_or_create()
        row.active = False
        row.version = (row.version or 0) + 1
        self.session.flush()
        logger.info("promotion_deactivated", extra={"version": row.version})
        return promotion_to_state(row)
