"""
Pure domain core: clock, value enums, DTOs, accrual, pricing, maintenance
and lifecycle rules.  Nothing here touches the database.
"""

from economy_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from economy_kernel.domain.values import LedgerEntryKind, PositionMode, PositionStatus

__all__ = [
    "Clock",
    "DeterministicClock",
    "LedgerEntryKind",
    "PositionMode",
    "PositionStatus",
    "SystemClock",
]
