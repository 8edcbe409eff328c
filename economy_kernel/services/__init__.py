"""
Write-side services (flush-only) and the transaction-owning EconomyEngine.
"""

from economy_kernel.services.catalog_service import CatalogService
from economy_kernel.services.collection_service import CollectionReceipt, CollectionService
from economy_kernel.services.economy_engine import (
    EconomyEngine,
    OperationResult,
    OperationStatus,
)
from economy_kernel.services.ledger_service import LedgerService
from economy_kernel.services.lifecycle_service import (
    ClosureReceipt,
    LifecycleService,
    MaintenanceOutcome,
    MaturityReceipt,
    PurchaseReceipt,
    RepairReceipt,
    SweepReport,
)
from economy_kernel.services.locks import PositionLockRegistry
from economy_kernel.services.promotion_service import PromotionService

__all__ = [
    "CatalogService",
    "ClosureReceipt",
    "CollectionReceipt",
    "CollectionService",
    "EconomyEngine",
    "LedgerService",
    "LifecycleService",
    "MaintenanceOutcome",
    "MaturityReceipt",
    "OperationResult",
    "OperationStatus",
    "PositionLockRegistry",
    "PromotionService",
    "PurchaseReceipt",
    "RepairReceipt",
    "SweepReport",
]
