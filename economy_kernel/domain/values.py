"""
Value enums shared by the pure domain and the ORM models.

Architecture position:
    Kernel > Domain -- zero I/O, zero imports from models/ or services/.
    Models import these enums so that the stored strings and the domain
    vocabulary can never drift apart.
"""

from enum import Enum


class PositionMode(str, Enum):
    """How a purchased asset pays out."""

    WORKER = "worker"  # continuous per-second yield, 24h collection window
    INVESTOR = "investor"  # fixed-term locked deposit, single payout at maturity


class PositionStatus(str, Enum):
    """Lifecycle state of a position."""

    ACTIVE = "active"
    PAUSED = "paused"  # worker only: health exhausted or maintenance unpaid
    MATURED = "matured"  # investor only: lock period over, payout pending
    CLOSED = "closed"


class LedgerEntryKind(str, Enum):
    """Reason for a single signed balance change."""

    PURCHASE = "purchase"
    COLLECTION = "collection"
    GAP = "gap"  # house share of yield beyond the collection window
    REPAIR = "repair"
    MAINTENANCE = "maintenance"
    MATURITY = "maturity"
    ADMIN_ADJUSTMENT = "admin_adjustment"
