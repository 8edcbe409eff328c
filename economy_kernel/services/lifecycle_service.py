"""
LifecycleService -- purchase, repair, maintenance, maturity and closure.

Responsibility:
    Every position state change other than collection.  Each method is one
    unit of work inside the caller's transaction; the EconomyEngine holds
    the per-position lock around the ones that touch an existing position.

Architecture position:
    Kernel > Services -- imperative shell.

Invariants enforced:
    - Transitions follow domain.lifecycle (illegal moves raise
      InvalidStateError).
    - Purchase snapshots the promotion bonus and discount; the position
      never follows the live promotion afterwards.
    - Maturity pays exactly once: the status is checked on the freshly
      loaded row in the same transaction that credits.
    - Maintenance charges whole periods only, so a repeated sweep at the
      same instant charges nothing.
    - Paused time earns nothing: repair shifts the service point forward
      by the paused duration.
    - Flush-only.

Failure modes:
    - NotFoundError family, NotOwnerError, InvalidModeError,
      InvalidStateError, TooSoonError, InsufficientBalanceError,
      CatalogInactiveError, NotDamagedError.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from economy_kernel.db.types import round_money
from economy_kernel.domain import lifecycle
from economy_kernel.domain.accrual import seconds_between
from economy_kernel.domain.clock import Clock
from economy_kernel.domain.dtos import PositionInfo
from economy_kernel.domain.maintenance import (
    advance_marker,
    daily_maintenance_fee,
    decayed_health,
    due_periods,
    health_decay_per_period,
)
from economy_kernel.domain.pricing import investor_payout, quote
from economy_kernel.domain.promotion import PromotionState
from economy_kernel.domain.values import LedgerEntryKind, PositionMode, PositionStatus
from economy_kernel.exceptions import (
    CatalogInactiveError,
    InsufficientBalanceError,
    InvalidModeError,
    InvalidStateError,
    NotDamagedError,
    TooSoonError,
)
from economy_kernel.logging_config import get_logger
from economy_kernel.models.position import Position
from economy_kernel.services.base import BaseService
from economy_kernel.services.catalog_service import CatalogService
from economy_kernel.services.ledger_service import LedgerService
from economy_kernel.services.positions import (
    check_owner,
    load_catalog_for,
    load_position,
)
from economy_kernel.services.promotion_service import PromotionService

logger = get_logger("services.lifecycle")

FULL_HEALTH = Decimal("100")


# ---------------------------------------------------------------------------
# Receipts
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PurchaseReceipt:
    position: PositionInfo
    price_paid: Decimal
    discount_pct: Decimal
    bonus_yield_pct: Decimal
    balance_after: Decimal


@dataclass(frozen=True)
class RepairReceipt:
    position: PositionInfo
    cost: Decimal
    balance_after: Decimal
    resumed: bool


@dataclass(frozen=True)
class MaturityReceipt:
    position_id: UUID
    account_id: UUID
    amount: Decimal
    already_released: bool
    balance_after: Decimal | None = None
    released_at: datetime | None = None


@dataclass(frozen=True)
class MaintenanceOutcome:
    """What one maintenance pass did to one position."""

    position_id: UUID
    periods_charged: int
    fee_charged: Decimal
    health_pct: Decimal | None
    paused: bool
    unpaid: bool = False


@dataclass(frozen=True)
class ClosureReceipt:
    position: PositionInfo
    forfeited: bool
    reason: str | None = None


@dataclass
class SweepReport:
    """Summary of a maintenance or maturity sweep."""

    processed: list = field(default_factory=list)
    skipped: list = field(default_factory=list)
    failed: list = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.processed) + len(self.skipped) + len(self.failed)


def _status(position: Position) -> str:
    return PositionStatus(position.status).value


def _mode(position: Position) -> str:
    return PositionMode(position.mode).value


class LifecycleService(BaseService[Position]):
    """Position lifecycle manager."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        ledger: LedgerService | None = None,
        *,
        investor_term_seconds: int = 2_592_000,
        repair_cost_pct: Decimal = Decimal("10"),
        maintenance_interval_seconds: int = 86_400,
        health_decay_factor: Decimal = Decimal("10"),
    ):
        super().__init__(session, clock)
        self.ledger = ledger or LedgerService(session, self.clock)
        self.catalog = CatalogService(session, self.clock)
        self.promotions = PromotionService(session, self.clock)
        self.investor_term_seconds = investor_term_seconds
        self.repair_cost_pct = Decimal(repair_cost_pct)
        self.maintenance_interval_seconds = maintenance_interval_seconds
        self.health_decay_factor = Decimal(health_decay_factor)

    def _transition(self, position: Position, target: PositionStatus, operation: str) -> None:
        new_status = lifecycle.validate_transition(
            position.id, position.mode, position.status, target, operation
        )
        position.status = new_status.value

    # ------------------------------------------------------------------
    # Purchase
    # ------------------------------------------------------------------

    def buy(
        self,
        account_id: UUID,
        catalog_entry_id: UUID,
        mode: PositionMode | str,
        promotion: PromotionState | None = None,
    ) -> PurchaseReceipt:
        """
        Buy one asset for ``account_id``.

        Args:
            promotion: the promotion as read once for this request; read
                here when not supplied.

        Raises:
            AccountNotFoundError, CatalogEntryNotFoundError,
            CatalogInactiveError, InsufficientBalanceError.
        """
        mode = lifecycle.parse_mode(mode)
        now = self.clock.now()

        self.ledger.get(account_id)
        entry = self.catalog.get(catalog_entry_id)
        if not entry.active:
            raise CatalogInactiveError(str(catalog_entry_id))

        if promotion is None:
            promotion = self.promotions.current()
        price = quote(entry, mode, promotion, now)

        position_id = uuid4()
        debit = self.ledger.post(
            account_id,
            -price.effective_price,
            LedgerEntryKind.PURCHASE,
            reference=position_id,
            note=f"{entry.code} ({mode.value})",
        )

        position = Position(
            id=position_id,
            owner_id=account_id,
            catalog_entry_id=entry.id,
            catalog_version=entry.version,
            mode=mode.value,
            status=PositionStatus.ACTIVE.value,
            purchased_at=now,
            last_serviced_at=now,
            health_pct=FULL_HEALTH if mode == PositionMode.WORKER else None,
            maturity_at=(
                now + timedelta(seconds=self.investor_term_seconds)
                if mode == PositionMode.INVESTOR
                else None
            ),
            bonus_yield_pct=price.bonus_yield_pct,
            applied_discount_pct=price.discount_pct,
            price_paid=price.effective_price,
            last_maintenance_at=now if mode == PositionMode.WORKER else None,
        )
        self.session.add(position)
        self.session.flush()

        logger.info(
            "position_purchased",
            extra={
                "position_id": str(position.id),
                "catalog_code": entry.code,
                "mode": mode.value,
                "price_paid": str(price.effective_price),
                "discount_pct": str(price.discount_pct),
                "bonus_yield_pct": str(price.bonus_yield_pct),
            },
        )
        return PurchaseReceipt(
            position=position.to_dto(),
            price_paid=price.effective_price,
            discount_pct=price.discount_pct,
            bonus_yield_pct=price.bonus_yield_pct,
            balance_after=debit.balance_after,
        )

    # ------------------------------------------------------------------
    # Repair
    # ------------------------------------------------------------------

    def repair(self, position_id: UUID, requester_id: UUID) -> RepairReceipt:
        """
        Restore a worker to full health, resuming it if paused.

        Raises:
            NotOwnerError, InvalidModeError, InvalidStateError (closed),
            NotDamagedError, InsufficientBalanceError.
        """
        now = self.clock.now()
        position = load_position(self.session, position_id)
        check_owner(position, requester_id)
        if position.mode != PositionMode.WORKER:
            raise InvalidModeError(str(position_id), _mode(position), "repair")
        if position.status == PositionStatus.CLOSED:
            raise InvalidStateError(str(position_id), _status(position), "repair")

        paused = position.status == PositionStatus.PAUSED
        health = position.health_pct if position.health_pct is not None else FULL_HEALTH
        if not paused and health >= FULL_HEALTH:
            raise NotDamagedError(str(position_id), str(health))

        entry = load_catalog_for(self.session, position)
        cost = round_money(entry.base_price_coins * self.repair_cost_pct / Decimal("100"))

        if paused:
            # Paused time earns nothing; pre-pause accrual is kept
            paused_for = now - position.paused_at if position.paused_at else timedelta(0)
            if paused_for < timedelta(0):
                paused_for = timedelta(0)
            position.last_serviced_at = position.last_serviced_at + paused_for
            position.paused_at = None
            position.last_maintenance_at = now
            self._transition(position, PositionStatus.ACTIVE, "repair")
        position.health_pct = FULL_HEALTH
        self.session.flush()

        debit = self.ledger.post(
            position.owner_id,
            -cost,
            LedgerEntryKind.REPAIR,
            reference=position.id,
        )

        logger.info(
            "position_repaired",
            extra={
                "position_id": str(position_id),
                "cost": str(cost),
                "resumed": paused,
            },
        )
        return RepairReceipt(
            position=position.to_dto(),
            cost=cost,
            balance_after=debit.balance_after,
            resumed=paused,
        )

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def apply_maintenance(self, position_id: UUID) -> MaintenanceOutcome:
        """
        Charge every whole maintenance period due on an active worker.

        The owner pays the daily fee to the house per period and the asset
        loses health.  An unpaid fee or health reaching zero pauses the
        position.  Positions that are not active workers are left alone.
        """
        now = self.clock.now()
        position = load_position(self.session, position_id)

        if position.mode != PositionMode.WORKER or position.status != PositionStatus.ACTIVE:
            return MaintenanceOutcome(
                position_id=position.id,
                periods_charged=0,
                fee_charged=Decimal("0"),
                health_pct=position.health_pct,
                paused=position.status == PositionStatus.PAUSED,
            )

        if position.last_maintenance_at is None:
            position.last_maintenance_at = position.purchased_at

        periods = due_periods(
            position.last_maintenance_at, now, self.maintenance_interval_seconds
        )
        if periods == 0:
            return MaintenanceOutcome(
                position_id=position.id,
                periods_charged=0,
                fee_charged=Decimal("0"),
                health_pct=position.health_pct,
                paused=False,
            )

        entry = load_catalog_for(self.session, position)
        fee = daily_maintenance_fee(entry.base_price_coins, entry.maintenance_fee_pct)
        decay = health_decay_per_period(entry.maintenance_fee_pct, self.health_decay_factor)
        house_id = self.ledger.house_account_id()

        charged = 0
        total_fee = Decimal("0")
        unpaid = False
        health = position.health_pct if position.health_pct is not None else FULL_HEALTH

        for _ in range(periods):
            if fee > 0:
                try:
                    self.ledger.post(
                        position.owner_id,
                        -fee,
                        LedgerEntryKind.MAINTENANCE,
                        reference=position.id,
                    )
                except InsufficientBalanceError:
                    unpaid = True
                    break
                self.ledger.post(
                    house_id,
                    fee,
                    LedgerEntryKind.MAINTENANCE,
                    reference=position.id,
                )
                total_fee += fee
            charged += 1
            health = decayed_health(health, decay)
            if health <= 0:
                break

        position.health_pct = health
        position.last_maintenance_at = advance_marker(
            position.last_maintenance_at, charged, self.maintenance_interval_seconds
        )

        paused = unpaid or health <= 0
        if paused:
            self._transition(position, PositionStatus.PAUSED, "maintenance")
            position.paused_at = now
        self.session.flush()

        log = logger.warning if paused else logger.info
        log(
            "maintenance_applied",
            extra={
                "position_id": str(position_id),
                "periods_charged": charged,
                "fee_charged": str(total_fee),
                "health_pct": str(health),
                "paused": paused,
                "unpaid": unpaid,
            },
        )
        return MaintenanceOutcome(
            position_id=position.id,
            periods_charged=charged,
            fee_charged=total_fee,
            health_pct=health,
            paused=paused,
            unpaid=unpaid,
        )

    # ------------------------------------------------------------------
    # Maturity
    # ------------------------------------------------------------------

    def release(self, position_id: UUID, requester_id: UUID | None = None) -> MaturityReceipt:
        """
        Pay out a matured investor position and close it.

        Idempotent: a closed position yields a no-op receipt with
        ``already_released=True``.

        Raises:
            NotOwnerError (when a requester is given), InvalidModeError,
            TooSoonError (before maturity_at).
        """
        now = self.clock.now()
        position = load_position(self.session, position_id)
        if requester_id is not None:
            check_owner(position, requester_id)
        if position.mode != PositionMode.INVESTOR:
            raise InvalidModeError(str(position_id), _mode(position), "release")

        if position.status == PositionStatus.CLOSED:
            logger.info(
                "maturity_already_released",
                extra={"position_id": str(position_id)},
            )
            return MaturityReceipt(
                position_id=position.id,
                account_id=position.owner_id,
                amount=Decimal("0"),
                already_released=True,
                released_at=position.closed_at,
            )

        if now < position.maturity_at:
            raise TooSoonError(
                position_id=str(position_id),
                elapsed_seconds=str(seconds_between(position.purchased_at, now)),
                required_seconds=str(
                    seconds_between(position.purchased_at, position.maturity_at)
                ),
            )

        if position.status == PositionStatus.ACTIVE:
            self._transition(position, PositionStatus.MATURED, "release")

        entry = load_catalog_for(self.session, position)
        amount = investor_payout(entry.base_price_coins, entry.investor_fixed_yield_pct)

        self._transition(position, PositionStatus.CLOSED, "release")
        position.closed_at = now
        self.session.flush()

        credit = self.ledger.post(
            position.owner_id,
            amount,
            LedgerEntryKind.MATURITY,
            reference=position.id,
        )

        logger.info(
            "maturity_released",
            extra={"position_id": str(position_id), "amount": str(amount)},
        )
        return MaturityReceipt(
            position_id=position.id,
            account_id=position.owner_id,
            amount=amount,
            already_released=False,
            balance_after=credit.balance_after,
            released_at=now,
        )

    # ------------------------------------------------------------------
    # Closure
    # ------------------------------------------------------------------

    def _close_worker(self, position: Position, operation: str, reason: str | None) -> ClosureReceipt:
        if position.mode != PositionMode.WORKER:
            raise InvalidModeError(str(position.id), _mode(position), operation)
        self._transition(position, PositionStatus.CLOSED, operation)
        position.closed_at = self.clock.now()
        position.paused_at = None
        self.session.flush()
        logger.info(
            "position_closed",
            extra={
                "position_id": str(position.id),
                "operation": operation,
                "reason": reason,
            },
        )
        return ClosureReceipt(
            position=position.to_dto(), forfeited=True, reason=reason
        )

    def close(self, position_id: UUID, requester_id: UUID) -> ClosureReceipt:
        """
        Owner closes a worker position; uncollected yield is forfeited.

        Raises:
            NotOwnerError, InvalidModeError (investor), InvalidStateError.
        """
        position = load_position(self.session, position_id)
        check_owner(position, requester_id)
        return self._close_worker(position, "close", None)

    def deactivate(self, position_id: UUID, reason: str | None = None) -> ClosureReceipt:
        """Administrative close of a worker position."""
        position = load_position(self.session, position_id)
        return self._close_worker(position, "deactivate", reason)
