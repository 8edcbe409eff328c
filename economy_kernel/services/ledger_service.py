"""
LedgerService -- the only writer of account balances.

Responsibility:
    Applies signed amounts to accounts and appends the matching ledger
    entry in the same flush.  Owns account creation, the house vault
    bootstrap and the verification flag.

Architecture position:
    Kernel > Services -- imperative shell.  Called by the collection and
    lifecycle services and by the facade for administrative adjustments.

Invariants enforced:
    - Balance changes are one atomic conditional UPDATE:
          balance = balance + :amount  WHERE id = :id AND balance + :amount >= 0
      so two concurrent debits can never both pass a stale balance check.
    - Every balance change appends exactly one LedgerEntry carrying
      ``balance_after``; sum(entries) == balance per account.
    - Flush-only: never commits or rolls back.

Failure modes:
    - AccountNotFoundError: unknown account id or code.
    - InsufficientBalanceError: the debit would take the balance below 0.
    - InvalidInputError: duplicate account code, zero adjustment.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from economy_kernel.db.types import round_money
from economy_kernel.domain.clock import Clock
from economy_kernel.domain.dtos import AccountInfo, LedgerEntryInfo
from economy_kernel.domain.values import LedgerEntryKind
from economy_kernel.exceptions import (
    AccountNotFoundError,
    InsufficientBalanceError,
    InvalidInputError,
)
from economy_kernel.logging_config import get_logger
from economy_kernel.models.account import Account
from economy_kernel.models.ledger import LedgerEntry
from economy_kernel.services.base import BaseService

logger = get_logger("services.ledger")

DEFAULT_HOUSE_ACCOUNT_CODE = "house-vault"


def account_to_dto(account: Account) -> AccountInfo:
    return AccountInfo(
        id=account.id,
        code=account.code,
        balance=account.balance,
        verified=account.verified,
        is_house=account.is_house,
    )


def entry_to_dto(entry: LedgerEntry) -> LedgerEntryInfo:
    return LedgerEntryInfo(
        id=entry.id,
        account_id=entry.account_id,
        amount=entry.amount,
        kind=LedgerEntryKind(entry.kind),
        created_at=entry.created_at,
        balance_after=entry.balance_after,
        reference=entry.reference,
        note=entry.note,
    )


class LedgerService(BaseService[Account]):
    """
    Balance store and append-only ledger writer.

    All public methods return AccountInfo / LedgerEntryInfo DTOs.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        house_account_code: str = DEFAULT_HOUSE_ACCOUNT_CODE,
    ):
        super().__init__(session, clock)
        self.house_account_code = house_account_code

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    def _get_orm(self, account_id: UUID) -> Account:
        account = self.session.execute(
            select(Account)
            .where(Account.id == account_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if account is None:
            raise AccountNotFoundError(str(account_id))
        return account

    def _find_by_code(self, code: str) -> Account | None:
        return self.session.execute(
            select(Account).where(Account.code == code)
        ).scalar_one_or_none()

    def get(self, account_id: UUID) -> AccountInfo:
        """
        Get an account by id.

        Raises:
            AccountNotFoundError: If the account doesn't exist.
        """
        return account_to_dto(self._get_orm(account_id))

    def get_by_code(self, code: str) -> AccountInfo:
        account = self._find_by_code(code)
        if account is None:
            raise AccountNotFoundError(code)
        return account_to_dto(account)

    def open_account(self, code: str, verified: bool = False) -> AccountInfo:
        """
        Create a zero-balance user account.

        Args:
            code: Unique external handle supplied by the identity provider.
            verified: Initial verification flag.

        Raises:
            InvalidInputError: If the code is empty or already taken.
        """
        if not code or not code.strip():
            raise InvalidInputError("code", repr(code), "must not be empty")
        if self._find_by_code(code) is not None:
            raise InvalidInputError("code", code, "account code already exists")

        account = Account(code=code, balance=Decimal("0"), verified=verified)
        self.session.add(account)
        self.session.flush()

        logger.info(
            "account_opened",
            extra={"account_id": str(account.id), "code": code},
        )
        return account_to_dto(account)

    def ensure_house_account(self) -> AccountInfo:
        """Return the house vault, creating it on first call (idempotent)."""
        account = self.session.execute(
            select(Account).where(Account.is_house == True)  # noqa: E712
        ).scalar_one_or_none()
        if account is not None:
            return account_to_dto(account)

        account = Account(
            code=self.house_account_code,
            balance=Decimal("0"),
            verified=True,
            is_house=True,
        )
        self.session.add(account)
        self.session.flush()
        logger.info(
            "house_account_created",
            extra={"account_id": str(account.id), "code": account.code},
        )
        return account_to_dto(account)

    def house_account_id(self) -> UUID:
        return self.ensure_house_account().id

    def set_verified(self, account_id: UUID, verified: bool) -> AccountInfo:
        account = self._get_orm(account_id)
        account.verified = verified
        self.session.flush()
        logger.info(
            "account_verification_changed",
            extra={"account_id": str(account_id), "verified": verified},
        )
        return account_to_dto(account)

    # ------------------------------------------------------------------
    # Postings
    # ------------------------------------------------------------------

    def post(
        self,
        account_id: UUID,
        amount: Decimal,
        kind: LedgerEntryKind,
        reference: UUID | None = None,
        note: str | None = None,
    ) -> LedgerEntryInfo:
        """
        Apply a signed amount to an account and append its ledger entry.

        Preconditions:
            - Caller holds an open transaction; nothing is committed here.

        Postconditions:
            - Account balance changed by exactly ``amount``.
            - One LedgerEntry appended with ``balance_after`` = new balance.

        Raises:
            AccountNotFoundError: unknown account.
            InsufficientBalanceError: a debit larger than the balance.
        """
        amount = round_money(Decimal(amount))
        kind = LedgerEntryKind(kind)

        # INVARIANT: balance >= 0, checked and applied in one statement
        result = self.session.execute(
            update(Account)
            .where(Account.id == account_id)
            .where(Account.balance + amount >= 0)
            .values(balance=Account.balance + amount)
            .execution_options(synchronize_session=False)
        )

        if result.rowcount != 1:
            account = self.session.execute(
                select(Account)
                .where(Account.id == account_id)
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
            if account is None:
                raise AccountNotFoundError(str(account_id))
            logger.warning(
                "insufficient_balance",
                extra={
                    "account_id": str(account_id),
                    "balance": str(account.balance),
                    "required": str(-amount),
                    "kind": kind.value,
                },
            )
            raise InsufficientBalanceError(
                account_id=str(account_id),
                balance=str(account.balance),
                required=str(-amount),
            )

        account = self._get_orm(account_id)
        entry = LedgerEntry(
            account_id=account_id,
            amount=amount,
            kind=kind.value,
            created_at=self.clock.now(),
            reference=reference,
            note=note,
            balance_after=account.balance,
        )
        self.session.add(entry)
        self.session.flush()

        logger.debug(
            "ledger_entry_posted",
            extra={
                "account_id": str(account_id),
                "amount": str(amount),
                "kind": kind.value,
                "balance_after": str(account.balance),
            },
        )
        return entry_to_dto(entry)

    def adjust(self, account_id: UUID, amount: Decimal, note: str | None = None) -> LedgerEntryInfo:
        """
        Administrative credit or debit (also the referral commission path).

        Raises:
            InvalidInputError: amount is zero.
            InsufficientBalanceError: debit larger than the balance.
        """
        amount = Decimal(amount)
        if amount == 0:
            raise InvalidInputError("amount", str(amount), "adjustment must be non-zero")
        entry = self.post(account_id, amount, LedgerEntryKind.ADMIN_ADJUSTMENT, note=note)
        logger.info(
            "balance_adjusted",
            extra={"account_id": str(account_id), "amount": str(entry.amount)},
        )
        return entry
