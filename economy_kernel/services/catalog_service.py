"""
Service layer for asset catalog administration.

The catalog is written only here (the admin interface).  Every update bumps
the entry's version so positions record which terms they were bought under.
Returns CatalogEntryInfo DTOs instead of ORM entities.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from economy_kernel.domain.dtos import CatalogEntryInfo
from economy_kernel.exceptions import CatalogEntryNotFoundError, InvalidInputError
from economy_kernel.logging_config import get_logger
from economy_kernel.models.catalog import AssetCatalogEntry
from economy_kernel.services.base import BaseService

logger = get_logger("services.catalog")

_PERCENT_FIELDS = (
    "worker_gross_yield_pct",
    "maintenance_fee_pct",
    "investor_fixed_yield_pct",
)

_UPDATABLE_FIELDS = frozenset(
    {
        "name",
        "description",
        "sort_order",
        "base_price_coins",
        "active",
        *_PERCENT_FIELDS,
    }
)


def _validate_terms(values: dict) -> None:
    price = values.get("base_price_coins")
    if price is not None and Decimal(price) <= 0:
        raise InvalidInputError("base_price_coins", str(price), "must be positive")
    for name in _PERCENT_FIELDS:
        value = values.get(name)
        if value is not None and Decimal(value) < 0:
            raise InvalidInputError(name, str(value), "must not be negative")


class CatalogService(BaseService[AssetCatalogEntry]):
    """Create, update, activate and look up catalog entries."""

    def _get_orm(self, entry_id: UUID) -> AssetCatalogEntry:
        entry = self.session.get(AssetCatalogEntry, entry_id)
        if entry is None:
            raise CatalogEntryNotFoundError(str(entry_id))
        return entry

    def get(self, entry_id: UUID) -> CatalogEntryInfo:
        """
        Raises:
            CatalogEntryNotFoundError: If the entry doesn't exist.
        """
        return self._get_orm(entry_id).to_dto()

    def list_active(self) -> list[CatalogEntryInfo]:
        """Entries for sale, in shop display order."""
        rows = self.session.execute(
            select(AssetCatalogEntry)
            .where(AssetCatalogEntry.active == True)  # noqa: E712
            .order_by(AssetCatalogEntry.sort_order, AssetCatalogEntry.code)
        ).scalars().all()
        return [e.to_dto() for e in rows]

    def create_entry(
        self,
        code: str,
        name: str,
        base_price_coins: Decimal,
        worker_gross_yield_pct: Decimal,
        maintenance_fee_pct: Decimal = Decimal("0"),
        investor_fixed_yield_pct: Decimal = Decimal("0"),
        sort_order: int = 0,
        description: str | None = None,
        active: bool = True,
    ) -> CatalogEntryInfo:
        """
        Create a catalog entry at version 1.

        Raises:
            InvalidInputError: non-positive price, negative percentage, or a
                code already in use.
        """
        _validate_terms(
            {
                "base_price_coins": base_price_coins,
                "worker_gross_yield_pct": worker_gross_yield_pct,
                "maintenance_fee_pct": maintenance_fee_pct,
                "investor_fixed_yield_pct": investor_fixed_yield_pct,
            }
        )
        existing = self.session.execute(
            select(AssetCatalogEntry).where(AssetCatalogEntry.code == code)
        ).scalar_one_or_none()
        if existing is not None:
            raise InvalidInputError("code", code, "catalog code already exists")

        entry = AssetCatalogEntry(
            code=code,
            name=name,
            description=description,
            sort_order=sort_order,
            base_price_coins=Decimal(base_price_coins),
            worker_gross_yield_pct=Decimal(worker_gross_yield_pct),
            maintenance_fee_pct=Decimal(maintenance_fee_pct),
            investor_fixed_yield_pct=Decimal(investor_fixed_yield_pct),
            active=active,
            version=1,
        )
        self.session.add(entry)
        self.session.flush()

        logger.info(
            "catalog_entry_created",
            extra={"catalog_entry_id": str(entry.id), "code": code},
        )
        return entry.to_dto()

    def update_entry(self, entry_id: UUID, **changes) -> CatalogEntryInfo:
        """
        Apply administrative changes and bump the version.

        Existing positions keep their purchase-time snapshots; only the
        catalog terms they read at accrual time change.

        Raises:
            CatalogEntryNotFoundError: unknown entry.
            InvalidInputError: unknown field or out-of-range value.
        """
        unknown = sorted(set(changes) - _UPDATABLE_FIELDS)
        if unknown:
            raise InvalidInputError("fields", ",".join(unknown), "not updatable")
        _validate_terms(changes)

        entry = self._get_orm(entry_id)
        for name, value in changes.items():
            if name == "base_price_coins" or name in _PERCENT_FIELDS:
                value = Decimal(value)
            setattr(entry, name, value)
        entry.version = entry.version + 1
        self.session.flush()

        logger.info(
            "catalog_entry_updated",
            extra={
                "catalog_entry_id": str(entry_id),
                "version": entry.version,
                "fields": sorted(changes),
            },
        )
        return entry.to_dto()

    def set_active(self, entry_id: UUID, active: bool) -> CatalogEntryInfo:
        return self.update_entry(entry_id, active=active)
