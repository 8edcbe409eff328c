"""
Module: economy_kernel.models.ledger
Responsibility: ORM persistence for the append-only transaction log.
Architecture position: Kernel > Models.  May import from db/ and
    domain/values.py only.

Invariants enforced:
    - Append-only: UPDATE and DELETE are rejected by the listeners in
      db/immutability.py.
    - Reconciliation: for every account, sum(amount) == Account.balance.
    - balance_after records the account balance immediately after this
      entry was applied, giving a per-entry audit trail.
"""

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from economy_kernel.db.base import Base, UUIDString
from economy_kernel.db.types import UTCDateTime
from economy_kernel.domain.values import LedgerEntryKind

if TYPE_CHECKING:
    from economy_kernel.models.account import Account


class LedgerEntry(Base):
    """A single signed balance change; the unit of audit and reconciliation."""

    __tablename__ = "ledger_entries"

    __table_args__ = (
        Index("idx_ledger_account_created", "account_id", "created_at"),
        Index("idx_ledger_reference", "reference"),
        Index("idx_ledger_kind", "kind"),
    )

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )

    # Signed: credits positive, debits negative
    amount: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
    )

    kind: Mapped[LedgerEntryKind] = mapped_column(
        String(30),
        nullable=False,
    )

    # Engine clock time, never the database server's
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
    )

    # Position id the entry relates to, if any
    reference: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    note: Mapped[str | None] = mapped_column(
        String(4000),
        nullable=True,
    )

    balance_after: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
    )

    account: Mapped["Account"] = relationship(back_populates="entries")

    def __repr__(self) -> str:
        return f"<LedgerEntry {self.kind} {self.amount} -> {self.account_id}>"
