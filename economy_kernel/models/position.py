"""
Module: economy_kernel.models.position
Responsibility: ORM persistence for a user's owned asset instance and its
    accrual/servicing state.
Architecture position: Kernel > Models.  May import from db/, domain/values.py
    and domain/dtos.py only.

Invariants enforced:
    - mode is immutable after creation (ORM listener in db/immutability.py).
    - health_pct is only meaningful for worker positions; maturity_at only
      for investor positions.
    - bonus_yield_pct and applied_discount_pct are purchase-time snapshots
      and never follow the live promotion.
    - version is the optimistic-lock counter (SQLAlchemy version_id_col).
      Every UPDATE carries ``WHERE version = <read version>``; a concurrent
      writer that read the same row fails with StaleDataError instead of
      overwriting, which is what prevents double collection across
      processes.
"""

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from economy_kernel.db.base import Base, UUIDString
from economy_kernel.db.types import UTCDateTime
from economy_kernel.domain.dtos import PositionInfo
from economy_kernel.domain.values import PositionMode, PositionStatus

if TYPE_CHECKING:
    from economy_kernel.models.account import Account
    from economy_kernel.models.catalog import AssetCatalogEntry


class Position(Base):
    """
    One owned asset.

    Worker:   active -> {active, paused, closed}; paused -> {active, closed}
    Investor: active -> matured -> closed
    """

    __tablename__ = "positions"

    __table_args__ = (
        Index("idx_position_owner_status", "owner_id", "status"),
        Index("idx_position_mode_status", "mode", "status"),
        Index("idx_position_maturity", "maturity_at"),
    )

    owner_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )

    catalog_entry_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("asset_catalog.id"),
        nullable=False,
    )

    # Catalog version in force at purchase
    catalog_version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    mode: Mapped[PositionMode] = mapped_column(
        String(20),
        nullable=False,
    )

    status: Mapped[PositionStatus] = mapped_column(
        String(20),
        nullable=False,
        default=PositionStatus.ACTIVE.value,
    )

    purchased_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
    )

    # Last collection (or purchase) time; accrual runs from here
    last_serviced_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
    )

    health_pct: Mapped[Decimal | None] = mapped_column(
        Numeric(38, 9),
        nullable=True,
    )

    maturity_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(),
        nullable=True,
    )

    bonus_yield_pct: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
        default=Decimal("0"),
    )

    applied_discount_pct: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
        default=Decimal("0"),
    )

    price_paid: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
    )

    # Set while paused; accrual is frozen at this instant
    paused_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(),
        nullable=True,
    )

    # Maintenance is charged in whole periods from this marker
    last_maintenance_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(),
        nullable=True,
    )

    closed_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(),
        nullable=True,
    )

    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    owner: Mapped["Account"] = relationship(back_populates="positions")

    catalog_entry: Mapped["AssetCatalogEntry"] = relationship()

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<Position {self.id} {self.mode}/{self.status}>"

    def to_dto(self) -> PositionInfo:
        """Convert ORM model to frozen domain DTO."""
        return PositionInfo(
            id=self.id,
            owner_id=self.owner_id,
            catalog_entry_id=self.catalog_entry_id,
            mode=PositionMode(self.mode),
            status=PositionStatus(self.status),
            purchased_at=self.purchased_at,
            last_serviced_at=self.last_serviced_at,
            health_pct=self.health_pct,
            maturity_at=self.maturity_at,
            bonus_yield_pct=self.bonus_yield_pct,
            applied_discount_pct=self.applied_discount_pct,
            price_paid=self.price_paid,
            paused_at=self.paused_at,
            last_maintenance_at=self.last_maintenance_at,
            closed_at=self.closed_at,
            catalog_version=self.catalog_version,
        )

    @property
    def is_worker(self) -> bool:
        return self.mode == PositionMode.WORKER

    @property
    def is_investor(self) -> bool:
        return self.mode == PositionMode.INVESTOR
