"""Read-only selectors returning frozen DTOs."""

from economy_kernel.selectors.economy_selector import EconomySelector, EconomyStats
from economy_kernel.selectors.ledger_selector import (
    LedgerSelector,
    ReconciliationResult,
    VaultTotals,
)
from economy_kernel.selectors.position_selector import PositionSelector, PositionView

__all__ = [
    "EconomySelector",
    "EconomyStats",
    "LedgerSelector",
    "PositionSelector",
    "PositionView",
    "ReconciliationResult",
    "VaultTotals",
]
