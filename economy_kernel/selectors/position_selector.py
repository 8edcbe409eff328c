"""
PositionSelector -- read access to positions and their live accrual.

Also answers the scheduled job runner's questions: which investor
positions are due for release and which workers are due for maintenance.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from economy_kernel.domain.accrual import (
    DEFAULT_COLLECTION_WINDOW_SECONDS,
    DEFAULT_MAX_GAP_WINDOW_SECONDS,
    Accrual,
    accrued,
)
from economy_kernel.domain.dtos import CatalogEntryInfo, PositionInfo
from economy_kernel.domain.lifecycle import status_at
from economy_kernel.domain.values import PositionMode, PositionStatus
from economy_kernel.exceptions import PositionNotFoundError
from economy_kernel.models.catalog import AssetCatalogEntry
from economy_kernel.models.position import Position
from economy_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class PositionView:
    """
    A position with its catalog terms and, for workers, live accrual.

    ``position.status`` is the status at the view's ``now``, so an unreleased
    investor past maturity reads as matured.
    """

    position: PositionInfo
    catalog_entry: CatalogEntryInfo
    accrual: Accrual | None

    @property
    def is_collectible(self) -> bool:
        return (
            self.accrual is not None
            and self.position.status == PositionStatus.ACTIVE
            and self.accrual.payable > 0
        )


class PositionSelector(BaseSelector[Position]):
    """Read-only position queries."""

    def __init__(
        self,
        session: Session,
        collection_window_seconds: int = DEFAULT_COLLECTION_WINDOW_SECONDS,
        max_gap_window_seconds: int = DEFAULT_MAX_GAP_WINDOW_SECONDS,
    ):
        super().__init__(session)
        self.collection_window_seconds = collection_window_seconds
        self.max_gap_window_seconds = max_gap_window_seconds

    def get(self, position_id: UUID) -> PositionInfo:
        """
        Raises:
            PositionNotFoundError: unknown id.
        """
        position = self.session.execute(
            select(Position)
            .where(Position.id == position_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if position is None:
            raise PositionNotFoundError(str(position_id))
        return position.to_dto()

    def _view(self, position: Position, catalog_entry: AssetCatalogEntry, now: datetime) -> PositionView:
        info = position.to_dto()
        status = status_at(info, now)
        if status != info.status:
            info = replace(info, status=status)
        entry = catalog_entry.to_dto()
        accrual = None
        if info.is_worker and info.status != PositionStatus.CLOSED:
            accrual = accrued(
                info,
                entry,
                now,
                collection_window_seconds=self.collection_window_seconds,
                max_gap_window_seconds=self.max_gap_window_seconds,
            )
        return PositionView(position=info, catalog_entry=entry, accrual=accrual)

    def preview(self, position_id: UUID, now: datetime) -> PositionView:
        """Live accrual for one position at ``now`` (display only)."""
        row = self.session.execute(
            select(Position, AssetCatalogEntry)
            .join(AssetCatalogEntry, Position.catalog_entry_id == AssetCatalogEntry.id)
            .where(Position.id == position_id)
        ).first()
        if row is None:
            raise PositionNotFoundError(str(position_id))
        return self._view(row[0], row[1], now)

    def list_for_owner(
        self,
        owner_id: UUID,
        now: datetime,
        include_closed: bool = False,
    ) -> list[PositionView]:
        """An owner's positions, newest purchase first, with live accrual."""
        query = (
            select(Position, AssetCatalogEntry)
            .join(AssetCatalogEntry, Position.catalog_entry_id == AssetCatalogEntry.id)
            .where(Position.owner_id == owner_id)
        )
        if not include_closed:
            query = query.where(Position.status != PositionStatus.CLOSED.value)
        query = query.order_by(Position.purchased_at.desc(), Position.id)
        return [self._view(p, e, now) for p, e in self.session.execute(query).all()]

    def due_for_maturity(self, now: datetime) -> list[UUID]:
        """Investor positions past maturity and not yet closed."""
        query = (
            select(Position.id)
            .where(Position.mode == PositionMode.INVESTOR.value)
            .where(
                Position.status.in_(
                    [PositionStatus.ACTIVE.value, PositionStatus.MATURED.value]
                )
            )
            .where(Position.maturity_at <= now)
            .order_by(Position.maturity_at, Position.id)
        )
        return list(self.session.execute(query).scalars().all())

    def due_for_maintenance(self, now: datetime, interval_seconds: int) -> list[UUID]:
        """Active workers with at least one whole maintenance period due."""
        cutoff = now - timedelta(seconds=interval_seconds)
        query = (
            select(Position.id)
            .where(Position.mode == PositionMode.WORKER.value)
            .where(Position.status == PositionStatus.ACTIVE.value)
            .where(
                or_(
                    Position.last_maintenance_at <= cutoff,
                    Position.last_maintenance_at.is_(None),
                )
            )
            .order_by(Position.purchased_at, Position.id)
        )
        return list(self.session.execute(query).scalars().all())
