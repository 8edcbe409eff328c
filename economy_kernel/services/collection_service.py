"""
CollectionService -- realizes accrued worker yield into balances.

Responsibility:
    The only state-changing path for worker yield.  Validates the request,
    computes (payable, gap) with the engine clock, advances the position's
    service point and posts the owner and house credits.

Architecture position:
    Kernel > Services -- imperative shell.  Invoked by EconomyEngine.collect()
    inside one transaction while the position lock is held.

Invariants enforced:
    - At most one successful collection per accrual window.  The service
      point is advanced and flushed FIRST, before any credit: the version-
      checked UPDATE is the claim, and a concurrent writer that read the
      same version fails with StaleDataError before paying anything.
    - Time comes from the injected Clock only; no caller timestamp reaches
      the payout math.
    - Flush-only; the facade commits or rolls back the whole unit.

Failure modes:
    - PositionNotFoundError, NotOwnerError, InvalidModeError,
      InvalidStateError, TooSoonError: deterministic rejections, nothing
      written.
    - StaleDataError: another process claimed the window first.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from economy_kernel.domain.accrual import (
    DEFAULT_COLLECTION_WINDOW_SECONDS,
    DEFAULT_MAX_GAP_WINDOW_SECONDS,
    Accrual,
    accrued,
)
from economy_kernel.domain.clock import Clock
from economy_kernel.domain.values import LedgerEntryKind, PositionMode, PositionStatus
from economy_kernel.exceptions import (
    InvalidModeError,
    InvalidStateError,
    TooSoonError,
)
from economy_kernel.logging_config import get_logger
from economy_kernel.models.position import Position
from economy_kernel.services.base import BaseService
from economy_kernel.services.ledger_service import LedgerService
from economy_kernel.services.positions import (
    check_owner,
    load_catalog_for,
    load_position,
)

logger = get_logger("services.collection")

DEFAULT_MIN_COLLECTION_INTERVAL_SECONDS = 60


@dataclass(frozen=True)
class CollectionReceipt:
    """Outcome of a successful collection."""

    position_id: UUID
    account_id: UUID
    payable: Decimal
    gap: Decimal
    balance_after: Decimal
    serviced_at: datetime
    elapsed_seconds: Decimal


class CollectionService(BaseService[Position]):
    """Worker yield collection."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        ledger: LedgerService | None = None,
        *,
        collection_window_seconds: int = DEFAULT_COLLECTION_WINDOW_SECONDS,
        max_gap_window_seconds: int = DEFAULT_MAX_GAP_WINDOW_SECONDS,
        min_collection_interval_seconds: int = DEFAULT_MIN_COLLECTION_INTERVAL_SECONDS,
    ):
        super().__init__(session, clock)
        self.ledger = ledger or LedgerService(session, self.clock)
        self.collection_window_seconds = collection_window_seconds
        self.max_gap_window_seconds = max_gap_window_seconds
        self.min_collection_interval_seconds = min_collection_interval_seconds

    def preview(self, position: Position, now: datetime) -> Accrual:
        return accrued(
            position.to_dto(),
            load_catalog_for(self.session, position),
            now,
            collection_window_seconds=self.collection_window_seconds,
            max_gap_window_seconds=self.max_gap_window_seconds,
        )

    def collect(self, position_id: UUID, requester_id: UUID) -> CollectionReceipt:
        """
        Collect a worker position's payable yield for its owner.

        Preconditions:
            - Caller holds the per-position lock and an open transaction.

        Postconditions:
            - ``last_serviced_at == now``.
            - Owner credited ``payable`` (collection entry), house credited
              ``gap`` (gap entry) when positive.

        Raises:
            PositionNotFoundError, NotOwnerError, InvalidModeError,
            InvalidStateError, TooSoonError.
        """
        now = self.clock.now()
        position = load_position(self.session, position_id)

        check_owner(position, requester_id)
        if position.mode != PositionMode.WORKER:
            raise InvalidModeError(str(position_id), str(position.mode), "collect")
        if position.status != PositionStatus.ACTIVE:
            raise InvalidStateError(str(position_id), str(position.status), "collect")

        accrual = self.preview(position, now)

        # Zero elapsed is always too soon, even with no configured floor
        if (
            accrual.elapsed_seconds <= 0
            or accrual.elapsed_seconds < self.min_collection_interval_seconds
        ):
            logger.info(
                "collection_too_soon",
                extra={
                    "position_id": str(position_id),
                    "elapsed_seconds": str(accrual.elapsed_seconds),
                },
            )
            raise TooSoonError(
                position_id=str(position_id),
                elapsed_seconds=str(accrual.elapsed_seconds),
                required_seconds=str(self.min_collection_interval_seconds),
            )

        # Claim the window before paying; StaleDataError here means another
        # writer got there first
        position.last_serviced_at = now
        self.session.flush()

        balance_after = None
        if accrual.payable > 0:
            entry = self.ledger.post(
                position.owner_id,
                accrual.payable,
                LedgerEntryKind.COLLECTION,
                reference=position.id,
            )
            balance_after = entry.balance_after
        if accrual.gap > 0:
            self.ledger.post(
                self.ledger.house_account_id(),
                accrual.gap,
                LedgerEntryKind.GAP,
                reference=position.id,
            )
        if balance_after is None:
            balance_after = self.ledger.get(position.owner_id).balance

        logger.info(
            "collection_completed",
            extra={
                "position_id": str(position_id),
                "payable": str(accrual.payable),
                "gap": str(accrual.gap),
                "elapsed_seconds": str(accrual.elapsed_seconds),
            },
        )

        return CollectionReceipt(
            position_id=position.id,
            account_id=position.owner_id,
            payable=accrual.payable,
            gap=accrual.gap,
            balance_after=balance_after,
            serviced_at=now,
            elapsed_seconds=accrual.elapsed_seconds,
        )
