"""ORM models for the economy kernel."""

from economy_kernel.domain.values import LedgerEntryKind, PositionMode, PositionStatus
from economy_kernel.models.account import Account
from economy_kernel.models.catalog import AssetCatalogEntry
from economy_kernel.models.ledger import LedgerEntry
from economy_kernel.models.position import Position
from economy_kernel.models.promotion import PROMOTION_KEY, Promotion

__all__ = [
    "Account",
    "AssetCatalogEntry",
    "LedgerEntry",
    "LedgerEntryKind",
    "PROMOTION_KEY",
    "Position",
    "PositionMode",
    "PositionStatus",
    "Promotion",
]
