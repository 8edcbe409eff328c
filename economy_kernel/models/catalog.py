"""
Module: economy_kernel.models.catalog
Responsibility: ORM persistence for the asset catalog: the configuration of
    every purchasable asset type.
Architecture position: Kernel > Models.  May import from db/ and
    domain/dtos.py only.

Invariants enforced:
    - Written only by CatalogService (the administrative interface); the
      accrual, collection and lifecycle paths only read it.
    - version increments on every administrative update, so a Position can
      record which configuration it was bought under.
"""

from decimal import Decimal

from sqlalchemy import Boolean, CheckConstraint, Index, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from economy_kernel.db.base import TrackedBase
from economy_kernel.domain.dtos import CatalogEntryInfo


class AssetCatalogEntry(TrackedBase):
    """
    One purchasable asset type.

    Percentages are expressed in percent (6 means 6 %), monthly for worker
    yield and maintenance, per 30-day term for the investor yield.
    """

    __tablename__ = "asset_catalog"

    __table_args__ = (
        UniqueConstraint("code", name="uq_catalog_code"),
        CheckConstraint("base_price_coins > 0", name="ck_catalog_price_positive"),
        Index("idx_catalog_active_sort", "active", "sort_order"),
    )

    code: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    description: Mapped[str | None] = mapped_column(
        String(4000),
        nullable=True,
    )

    sort_order: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    base_price_coins: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
    )

    worker_gross_yield_pct: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
    )

    maintenance_fee_pct: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
        default=Decimal("0"),
    )

    investor_fixed_yield_pct: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
        default=Decimal("0"),
    )

    active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
    )

    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
    )

    def __repr__(self) -> str:
        return f"<AssetCatalogEntry {self.code} v{self.version}: {self.base_price_coins}>"

    def to_dto(self) -> CatalogEntryInfo:
        """Convert ORM model to frozen domain DTO."""
        return CatalogEntryInfo(
            id=self.id,
            code=self.code,
            name=self.name,
            base_price_coins=self.base_price_coins,
            worker_gross_yield_pct=self.worker_gross_yield_pct,
            maintenance_fee_pct=self.maintenance_fee_pct,
            investor_fixed_yield_pct=self.investor_fixed_yield_pct,
            active=self.active,
            version=self.version,
            sort_order=self.sort_order,
            description=self.description,
        )
