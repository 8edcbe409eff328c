"""
Typed exception hierarchy for the economy kernel.

Every error carries a machine-readable ``code`` class attribute and its
context as structured attributes, so callers branch on type and API layers
serialize ``code`` instead of parsing messages.

    EconomyKernelError (base)
    |
    +-- NotFoundError
    |   +-- AccountNotFoundError
    |   +-- PositionNotFoundError
    |   +-- CatalogEntryNotFoundError
    |
    +-- NotOwnerError
    +-- InvalidModeError
    +-- InvalidStateError
    +-- TooSoonError
    +-- InsufficientBalanceError
    +-- CatalogInactiveError
    +-- NotDamagedError
    +-- InvalidInputError
    |
    +-- ConcurrencyError
    |   +-- AlreadyInProgressError
    |
    +-- ImmutabilityError
    |   +-- ImmutabilityViolationError
    |
    +-- InternalError

Error codes
-----------

Code                   | When raised
-----------------------|-----------------------------------------------------
ACCOUNT_NOT_FOUND      | Account id does not exist
POSITION_NOT_FOUND     | Position id does not exist
CATALOG_ENTRY_NOT_FOUND| Catalog entry id does not exist
NOT_OWNER              | Requester does not own the position
INVALID_MODE           | Operation not valid for worker/investor mode
INVALID_STATE          | Position status forbids the operation
TOO_SOON               | Minimum collection interval / maturity not reached
INSUFFICIENT_BALANCE   | Debit would take the balance below zero
CATALOG_INACTIVE       | Catalog entry is not for sale
NOT_DAMAGED            | Repair requested on a healthy, active position
INVALID_INPUT          | Administrative input out of range
ALREADY_IN_PROGRESS    | Another request holds the position (retry later)
IMMUTABILITY_VIOLATION | Attempt to modify an append-only record
INTERNAL               | Storage or transaction failure (safe to retry)

Validation errors are deterministic outcomes of current state: retrying
without a state change reproduces them.  ``ALREADY_IN_PROGRESS`` and
``INTERNAL`` are the only retryable codes.
"""


class EconomyKernelError(Exception):
    """Base exception for all economy kernel errors."""

    code: str = "ECONOMY_KERNEL_ERROR"
    retryable: bool = False


# Lookup failures


class NotFoundError(EconomyKernelError):
    """Base exception for missing entities."""

    code: str = "NOT_FOUND"


class AccountNotFoundError(NotFoundError):
    """Account with given ID was not found."""

    code: str = "ACCOUNT_NOT_FOUND"

    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__(f"Account not found: {account_id}")


class PositionNotFoundError(NotFoundError):
    """Position with given ID was not found."""

    code: str = "POSITION_NOT_FOUND"

    def __init__(self, position_id: str):
        self.position_id = position_id
        super().__init__(f"Position not found: {position_id}")


class CatalogEntryNotFoundError(NotFoundError):
    """Catalog entry with given ID was not found."""

    code: str = "CATALOG_ENTRY_NOT_FOUND"

    def __init__(self, catalog_entry_id: str):
        self.catalog_entry_id = catalog_entry_id
        super().__init__(f"Catalog entry not found: {catalog_entry_id}")


# Business-rule rejections


class NotOwnerError(EconomyKernelError):
    """Requester does not own the position."""

    code: str = "NOT_OWNER"

    def __init__(self, position_id: str, requester_id: str):
        self.position_id = position_id
        self.requester_id = requester_id
        super().__init__(
            f"Account {requester_id} does not own position {position_id}"
        )


class InvalidModeError(EconomyKernelError):
    """Operation is not defined for the position's mode."""

    code: str = "INVALID_MODE"

    def __init__(self, position_id: str, mode: str, operation: str):
        self.position_id = position_id
        self.mode = mode
        self.operation = operation
        super().__init__(
            f"Operation '{operation}' is not valid for {mode} position {position_id}"
        )


class InvalidStateError(EconomyKernelError):
    """Position status does not permit the operation."""

    code: str = "INVALID_STATE"

    def __init__(self, position_id: str, status: str, operation: str):
        self.position_id = position_id
        self.status = status
        self.operation = operation
        super().__init__(
            f"Operation '{operation}' is not allowed while position "
            f"{position_id} is {status}"
        )


class TooSoonError(EconomyKernelError):
    """The operation's time threshold has not been reached."""

    code: str = "TOO_SOON"

    def __init__(self, position_id: str, elapsed_seconds: str, required_seconds: str):
        self.position_id = position_id
        self.elapsed_seconds = elapsed_seconds
        self.required_seconds = required_seconds
        super().__init__(
            f"Too soon for position {position_id}: "
            f"{elapsed_seconds}s elapsed, {required_seconds}s required"
        )


class InsufficientBalanceError(EconomyKernelError):
    """Account balance cannot cover the debit."""

    code: str = "INSUFFICIENT_BALANCE"

    def __init__(self, account_id: str, balance: str, required: str):
        self.account_id = account_id
        self.balance = balance
        self.required = required
        super().__init__(
            f"Insufficient balance on account {account_id}: "
            f"balance={balance}, required={required}"
        )


class CatalogInactiveError(EconomyKernelError):
    """Catalog entry is not available for purchase."""

    code: str = "CATALOG_INACTIVE"

    def __init__(self, catalog_entry_id: str):
        self.catalog_entry_id = catalog_entry_id
        super().__init__(f"Catalog entry {catalog_entry_id} is inactive")


class NotDamagedError(EconomyKernelError):
    """Repair requested on a position that is neither paused nor damaged."""

    code: str = "NOT_DAMAGED"

    def __init__(self, position_id: str, health_pct: str):
        self.position_id = position_id
        self.health_pct = health_pct
        super().__init__(
            f"Position {position_id} is not damaged (health {health_pct}%)"
        )


class InvalidInputError(EconomyKernelError):
    """Administrative input is out of range."""

    code: str = "INVALID_INPUT"

    def __init__(self, field: str, value: str, reason: str):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid {field}={value}: {reason}")


# Concurrency-related exceptions


class ConcurrencyError(EconomyKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"
    retryable: bool = True


class AlreadyInProgressError(ConcurrencyError):
    """Another request is already operating on the same position."""

    code: str = "ALREADY_IN_PROGRESS"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"{entity_type} {entity_id} is being modified by another request"
        )


# Immutability-related exceptions


class ImmutabilityError(EconomyKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempted to modify or delete an append-only record or frozen field."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


# Infrastructure


class InternalError(EconomyKernelError):
    """Storage or transaction failure; no partial state was committed."""

    code: str = "INTERNAL"
    retryable: bool = True

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Internal failure during {operation}: {detail}")
