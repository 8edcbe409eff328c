"""
EconomyEngine -- the transaction-owning facade over the kernel services.

Responsibility:
    Every external request (identity-authenticated user calls, admin
    calls, the scheduled job runner) enters here.  For each request the
    engine opens a session, binds a correlation id into the log context,
    holds the per-position lock where a position is involved, runs the
    flush-only services, and commits on success or rolls back on any
    error.

Architecture position:
    Kernel > Services -- the outermost kernel layer.  Consumes the frozen
    ``economy_config.EconomyConfig``.

Invariants enforced:
    - Expected business conditions never raise out of the facade: they
      come back as ``OperationResult`` with a typed ``error`` and an
      ``OperationStatus``.
    - A failed request has no visible effect (full rollback).
    - Only ALREADY_IN_PROGRESS and INTERNAL results are retryable.
    - Sweeps run each position in its own transaction; one failure never
      blocks the rest, and positions held by a live request are skipped.

Failure modes:
    - StaleDataError (another process won the version race) becomes
      AlreadyInProgressError.
    - Any other SQLAlchemyError becomes InternalError after rollback.
    - Programming errors (anything that is not an EconomyKernelError or a
      SQLAlchemyError) are rolled back and re-raised.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Generic, TypeVar
from uuid import UUID, uuid4

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from economy_config import EconomyConfig
from economy_kernel.domain.clock import Clock, SystemClock
from economy_kernel.domain.lifecycle import parse_mode
from economy_kernel.domain.pricing import quote as build_quote
from economy_kernel.domain.values import PositionMode
from economy_kernel.exceptions import (
    AlreadyInProgressError,
    CatalogInactiveError,
    ConcurrencyError,
    EconomyKernelError,
    ImmutabilityError,
    InsufficientBalanceError,
    InternalError,
    InvalidInputError,
    InvalidModeError,
    InvalidStateError,
    NotDamagedError,
    NotFoundError,
    NotOwnerError,
    TooSoonError,
)
from economy_kernel.logging_config import LogContext, get_logger
from economy_kernel.selectors.economy_selector import EconomySelector
from economy_kernel.selectors.ledger_selector import LedgerSelector
from economy_kernel.selectors.position_selector import PositionSelector
from economy_kernel.services.catalog_service import CatalogService
from economy_kernel.services.collection_service import CollectionService
from economy_kernel.services.ledger_service import LedgerService
from economy_kernel.services.lifecycle_service import LifecycleService, SweepReport
from economy_kernel.services.locks import PositionLockRegistry
from economy_kernel.services.promotion_service import PromotionService

logger = get_logger("services.economy_engine")

T = TypeVar("T")


class OperationStatus(str, Enum):
    """Machine-readable outcome of a facade call."""

    SUCCESS = "success"
    NOT_FOUND = "not_found"
    NOT_OWNER = "not_owner"
    INVALID_MODE = "invalid_mode"
    INVALID_STATE = "invalid_state"
    TOO_SOON = "too_soon"
    INSUFFICIENT_BALANCE = "insufficient_balance"
    ALREADY_IN_PROGRESS = "already_in_progress"
    CATALOG_INACTIVE = "catalog_inactive"
    NOT_DAMAGED = "not_damaged"
    INVALID_INPUT = "invalid_input"
    INTERNAL = "internal"


_RETRYABLE = frozenset({OperationStatus.ALREADY_IN_PROGRESS, OperationStatus.INTERNAL})

# Most specific first
_STATUS_BY_ERROR: tuple[tuple[type[EconomyKernelError], OperationStatus], ...] = (
    (NotFoundError, OperationStatus.NOT_FOUND),
    (NotOwnerError, OperationStatus.NOT_OWNER),
    (InvalidModeError, OperationStatus.INVALID_MODE),
    (InvalidStateError, OperationStatus.INVALID_STATE),
    (TooSoonError, OperationStatus.TOO_SOON),
    (InsufficientBalanceError, OperationStatus.INSUFFICIENT_BALANCE),
    (ConcurrencyError, OperationStatus.ALREADY_IN_PROGRESS),
    (CatalogInactiveError, OperationStatus.CATALOG_INACTIVE),
    (NotDamagedError, OperationStatus.NOT_DAMAGED),
    (InvalidInputError, OperationStatus.INVALID_INPUT),
    (ImmutabilityError, OperationStatus.INTERNAL),
    (InternalError, OperationStatus.INTERNAL),
)


def status_for(error: EconomyKernelError) -> OperationStatus:
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return status
    return OperationStatus.INTERNAL


@dataclass(frozen=True)
class OperationResult(Generic[T]):
    """Either a value (receipt / DTO) or one typed error."""

    status: OperationStatus
    value: T | None = None
    error: EconomyKernelError | None = None
    correlation_id: str | None = None

    @property
    def is_success(self) -> bool:
        return self.status == OperationStatus.SUCCESS

    @property
    def is_retryable(self) -> bool:
        return self.status in _RETRYABLE

    @property
    def error_code(self) -> str | None:
        return self.error.code if self.error is not None else None

    @classmethod
    def ok(cls, value: T, correlation_id: str | None = None) -> OperationResult[T]:
        return cls(status=OperationStatus.SUCCESS, value=value, correlation_id=correlation_id)

    @classmethod
    def failed(
        cls, error: EconomyKernelError, correlation_id: str | None = None
    ) -> OperationResult[T]:
        return cls(status=status_for(error), error=error, correlation_id=correlation_id)

    def unwrap(self) -> T:
        """Return the value, or raise the carried error."""
        if self.error is not None:
            raise self.error
        return self.value


@dataclass
class _Services:
    ledger: LedgerService
    catalog: CatalogService
    promotions: PromotionService
    collection: CollectionService
    lifecycle: LifecycleService


class EconomyEngine:
    """
    Facade over the economy kernel.

    Contract:
        Each public method is one request and one transaction.  Callers
        supply identities (account ids); the engine supplies time.

    Usage:
        engine = EconomyEngine(get_session_factory(), config=get_active_config())
        result = engine.collect(position_id, requester_id=account_id)
        if result.is_success:
            receipt = result.value
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        clock: Clock | None = None,
        config: EconomyConfig | None = None,
        locks: PositionLockRegistry | None = None,
    ):
        self.session_factory = session_factory
        self.clock = clock or SystemClock()
        self.config = config or EconomyConfig()
        self.locks = locks or PositionLockRegistry()

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    def _services(self, session: Session) -> _Services:
        cfg = self.config
        ledger = LedgerService(
            session, self.clock, house_account_code=cfg.house_account_code
        )
        return _Services(
            ledger=ledger,
            catalog=CatalogService(session, self.clock),
            promotions=PromotionService(session, self.clock),
            collection=CollectionService(
                session,
                self.clock,
                ledger,
                collection_window_seconds=cfg.collection_window_seconds,
                max_gap_window_seconds=cfg.max_gap_window_seconds,
                min_collection_interval_seconds=cfg.min_collection_interval_seconds,
            ),
            lifecycle=LifecycleService(
                session,
                self.clock,
                ledger,
                investor_term_seconds=cfg.investor_term_seconds,
                repair_cost_pct=cfg.repair_cost_pct,
                maintenance_interval_seconds=cfg.maintenance_interval_seconds,
                health_decay_factor=cfg.health_decay_factor,
            ),
        )

    def _position_selector(self, session: Session) -> PositionSelector:
        return PositionSelector(
            session,
            collection_window_seconds=self.config.collection_window_seconds,
            max_gap_window_seconds=self.config.max_gap_window_seconds,
        )

    def _transact(
        self,
        operation: str,
        work: Callable[[Session], T],
        position_id: UUID | None = None,
    ) -> T:
        session = self.session_factory()
        try:
            value = work(session)
            session.commit()
            return value
        except EconomyKernelError:
            session.rollback()
            raise
        except StaleDataError as exc:
            session.rollback()
            logger.warning(
                "position_version_conflict",
                extra={"position_id": str(position_id) if position_id else None},
            )
            raise AlreadyInProgressError(
                entity_type="Position",
                entity_id=str(position_id) if position_id else "unknown",
            ) from exc
        except SQLAlchemyError as exc:
            session.rollback()
            logger.error("operation_storage_failure", exc_info=True)
            raise InternalError(operation=operation, detail=str(exc)) from exc
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def _run(
        self,
        operation: str,
        work: Callable[[Session], T],
        *,
        position_id: UUID | None = None,
        actor_id: UUID | None = None,
        account_id: UUID | None = None,
    ) -> OperationResult[T]:
        correlation_id = str(uuid4())
        with LogContext.bind(
            correlation_id=correlation_id,
            operation=operation,
            actor_id=actor_id,
            account_id=account_id,
            position_id=position_id,
        ):
            try:
                if position_id is not None:
                    with self.locks.hold(position_id):
                        value = self._transact(operation, work, position_id)
                else:
                    value = self._transact(operation, work)
            except EconomyKernelError as exc:
                result = OperationResult.failed(exc, correlation_id)
                log = logger.warning if result.is_retryable else logger.info
                log(
                    "operation_rejected",
                    extra={"status": result.status.value, "error_code": exc.code},
                )
                return result

            logger.info("operation_completed")
            return OperationResult.ok(value, correlation_id)

    # ------------------------------------------------------------------
    # Accounts and ledger
    # ------------------------------------------------------------------

    def open_account(self, code: str, verified: bool = False) -> OperationResult:
        return self._run(
            "open_account",
            lambda s: self._services(s).ledger.open_account(code, verified),
        )

    def ensure_house_account(self) -> OperationResult:
        return self._run(
            "ensure_house_account",
            lambda s: self._services(s).ledger.ensure_house_account(),
        )

    def get_account(self, account_id: UUID) -> OperationResult:
        return self._run(
            "get_account",
            lambda s: self._services(s).ledger.get(account_id),
            account_id=account_id,
        )

    def adjust_balance(
        self, account_id: UUID, amount: Decimal, note: str | None = None
    ) -> OperationResult:
        """Administrative (or referral commission) credit/debit."""
        return self._run(
            "adjust_balance",
            lambda s: self._services(s).ledger.adjust(account_id, amount, note),
            account_id=account_id,
        )

    def set_verified(self, account_id: UUID, verified: bool = True) -> OperationResult:
        return self._run(
            "set_verified",
            lambda s: self._services(s).ledger.set_verified(account_id, verified),
            account_id=account_id,
        )

    def account_history(self, account_id: UUID, limit: int | None = None) -> OperationResult:
        return self._run(
            "account_history",
            lambda s: LedgerSelector(s).entries_for_account(account_id, limit=limit),
            account_id=account_id,
        )

    # ------------------------------------------------------------------
    # Positions
    # ------------------------------------------------------------------

    def buy(
        self, account_id: UUID, catalog_entry_id: UUID, mode: PositionMode | str
    ) -> OperationResult:
        def work(session: Session):
            svc = self._services(session)
            promotion = svc.promotions.current()
            return svc.lifecycle.buy(account_id, catalog_entry_id, mode, promotion)

        return self._run("buy", work, actor_id=account_id, account_id=account_id)

    def collect(self, position_id: UUID, requester_id: UUID) -> OperationResult:
        return self._run(
            "collect",
            lambda s: self._services(s).collection.collect(position_id, requester_id),
            position_id=position_id,
            actor_id=requester_id,
        )

    def repair(self, position_id: UUID, requester_id: UUID) -> OperationResult:
        return self._run(
            "repair",
            lambda s: self._services(s).lifecycle.repair(position_id, requester_id),
            position_id=position_id,
            actor_id=requester_id,
        )

    def close_position(self, position_id: UUID, requester_id: UUID) -> OperationResult:
        return self._run(
            "close_position",
            lambda s: self._services(s).lifecycle.close(position_id, requester_id),
            position_id=position_id,
            actor_id=requester_id,
        )

    def deactivate_position(self, position_id: UUID, reason: str | None = None) -> OperationResult:
        return self._run(
            "deactivate_position",
            lambda s: self._services(s).lifecycle.deactivate(position_id, reason),
            position_id=position_id,
        )

    def release(self, position_id: UUID, requester_id: UUID | None = None) -> OperationResult:
        return self._run(
            "release",
            lambda s: self._services(s).lifecycle.release(position_id, requester_id),
            position_id=position_id,
            actor_id=requester_id,
        )

    def apply_maintenance(self, position_id: UUID) -> OperationResult:
        return self._run(
            "apply_maintenance",
            lambda s: self._services(s).lifecycle.apply_maintenance(position_id),
            position_id=position_id,
        )

    def preview(self, position_id: UUID) -> OperationResult:
        """Live accrual for one position at the engine's current time."""
        now = self.clock.now()
        return self._run(
            "preview",
            lambda s: self._position_selector(s).preview(position_id, now),
        )

    def list_positions(self, owner_id: UUID, include_closed: bool = False) -> OperationResult:
        now = self.clock.now()
        return self._run(
            "list_positions",
            lambda s: self._position_selector(s).list_for_owner(
                owner_id, now, include_closed=include_closed
            ),
            account_id=owner_id,
        )

    # ------------------------------------------------------------------
    # Scheduled sweeps
    # ------------------------------------------------------------------

    def _sweep(
        self,
        operation: str,
        due: Callable[[Session], list[UUID]],
        apply: Callable[[UUID], OperationResult],
    ) -> OperationResult[SweepReport]:
        correlation_id = str(uuid4())
        with LogContext.bind(correlation_id=correlation_id, operation=operation):
            try:
                position_ids = self._transact(operation, due)
            except EconomyKernelError as exc:
                return OperationResult.failed(exc, correlation_id)

            report = SweepReport()
            for position_id in position_ids:
                result = apply(position_id)
                if result.is_success:
                    report.processed.append(result.value)
                elif result.status == OperationStatus.ALREADY_IN_PROGRESS:
                    report.skipped.append(position_id)
                else:
                    report.failed.append((position_id, result.error_code))

            logger.info(
                f"{operation}_completed",
                extra={
                    "processed": len(report.processed),
                    "skipped": len(report.skipped),
                    "failed": len(report.failed),
                },
            )
            return OperationResult.ok(report, correlation_id)

    def run_maintenance(self) -> OperationResult[SweepReport]:
        """Charge maintenance on every active worker with a period due."""
        now = self.clock.now()
        interval = self.config.maintenance_interval_seconds
        return self._sweep(
            "maintenance_sweep",
            lambda s: self._position_selector(s).due_for_maintenance(now, interval),
            self.apply_maintenance,
        )

    def run_maturity_sweep(self) -> OperationResult[SweepReport]:
        """Release every investor position past its maturity (idempotent)."""
        now = self.clock.now()
        return self._sweep(
            "maturity_sweep",
            lambda s: self._position_selector(s).due_for_maturity(now),
            self.release,
        )

    # ------------------------------------------------------------------
    # Promotion
    # ------------------------------------------------------------------

    def activate_promotion(
        self, discount_pct: Decimal, bonus_yield_pct: Decimal, duration_seconds: int
    ) -> OperationResult:
        return self._run(
            "activate_promotion",
            lambda s: self._services(s).promotions.activate(
                discount_pct, bonus_yield_pct, duration_seconds
            ),
        )

    def deactivate_promotion(self) -> OperationResult:
        return self._run(
            "deactivate_promotion",
            lambda s: self._services(s).promotions.deactivate(),
        )

    def current_promotion(self) -> OperationResult:
        return self._run(
            "current_promotion",
            lambda s: self._services(s).promotions.current(),
        )

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    def create_catalog_entry(self, **fields: Any) -> OperationResult:
        return self._run(
            "create_catalog_entry",
            lambda s: self._services(s).catalog.create_entry(**fields),
        )

    def update_catalog_entry(self, entry_id: UUID, **changes: Any) -> OperationResult:
        return self._run(
            "update_catalog_entry",
            lambda s: self._services(s).catalog.update_entry(entry_id, **changes),
        )

    def list_catalog(self) -> OperationResult:
        return self._run(
            "list_catalog",
            lambda s: self._services(s).catalog.list_active(),
        )

    def quote(self, catalog_entry_id: UUID, mode: PositionMode | str) -> OperationResult:
        """Shop-card price and daily economics under the current promotion."""
        now = self.clock.now()

        def work(session: Session):
            svc = self._services(session)
            entry = svc.catalog.get(catalog_entry_id)
            if not entry.active:
                raise CatalogInactiveError(str(catalog_entry_id))
            return build_quote(entry, parse_mode(mode), svc.promotions.current(), now)

        return self._run("quote", work)

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def economy_stats(self) -> OperationResult:
        return self._run("economy_stats", lambda s: EconomySelector(s).economy_stats())

    def reconcile(self, account_id: UUID | None = None) -> OperationResult:
        """One account's reconciliation, or every account's when no id is given."""
        if account_id is None:
            return self._run("reconcile", lambda s: LedgerSelector(s).reconcile_all())
        return self._run(
            "reconcile",
            lambda s: LedgerSelector(s).reconcile(account_id),
            account_id=account_id,
        )
