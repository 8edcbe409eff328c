"""
Shared position loading and ownership checks for the write side.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from economy_kernel.domain.dtos import CatalogEntryInfo
from economy_kernel.exceptions import NotOwnerError, PositionNotFoundError
from economy_kernel.models.catalog import AssetCatalogEntry
from economy_kernel.models.position import Position


def load_position(
    session: Session, position_id: UUID, for_update: bool = True
) -> Position:
    """
    Load a position, fresh from the database.

    ``for_update`` emits SELECT ... FOR UPDATE on PostgreSQL; SQLite
    ignores it and relies on the version column instead.

    Raises:
        PositionNotFoundError: unknown id.
    """
    stmt = select(Position).where(Position.id == position_id)
    if for_update:
        stmt = stmt.with_for_update()
    position = session.execute(
        stmt.execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if position is None:
        raise PositionNotFoundError(str(position_id))
    return position


def load_catalog_for(session: Session, position: Position) -> CatalogEntryInfo:
    entry = session.get(AssetCatalogEntry, position.catalog_entry_id)
    return entry.to_dto()


def check_owner(position: Position, requester_id: UUID) -> None:
    if position.owner_id != requester_id:
        raise NotOwnerError(str(position.id), str(requester_id))
