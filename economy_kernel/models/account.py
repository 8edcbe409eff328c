"""
Module: economy_kernel.models.account
Responsibility: ORM persistence for currency accounts (users and the house
    vault).
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - balance >= 0 (check constraint; the ledger service additionally guards
      every debit with a conditional UPDATE).
    - balance equals the sum of the account's ledger entries.  The balance
      column is only ever changed by LedgerService.post(), in the same
      transaction that appends the matching LedgerEntry.
    - At most one house account (partial uniqueness enforced at bootstrap by
      LedgerService.ensure_house_account()).
"""

from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, CheckConstraint, Index, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from economy_kernel.db.base import TrackedBase

if TYPE_CHECKING:
    from economy_kernel.models.ledger import LedgerEntry
    from economy_kernel.models.position import Position


class Account(TrackedBase):
    """
    A single currency balance.

    Contract:
        Mutated exclusively through ledger postings (purchase debit,
        collection credit, repair debit, maintenance debit, maturity credit,
        administrative adjustment).  UI-facing code never writes balance.
    """

    __tablename__ = "accounts"

    __table_args__ = (
        UniqueConstraint("code", name="uq_account_code"),
        CheckConstraint("balance >= 0", name="ck_account_balance_non_negative"),
        Index("idx_account_house", "is_house"),
    )

    # External handle supplied by the identity provider
    code: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    balance: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
        default=Decimal("0"),
    )

    verified: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    # The system-owned vault receiving gap yield and maintenance fees
    is_house: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    entries: Mapped[list["LedgerEntry"]] = relationship(
        back_populates="account",
        lazy="dynamic",
    )

    positions: Mapped[list["Position"]] = relationship(
        back_populates="owner",
        lazy="dynamic",
    )

    def __repr__(self) -> str:
        return f"<Account {self.code}: {self.balance}>"
