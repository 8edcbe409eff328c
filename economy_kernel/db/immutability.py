"""
ORM-level append-only enforcement.

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity       | Rule                                  | Why
-------------|---------------------------------------|------------------------------
LedgerEntry  | No UPDATE, no DELETE, ever            | Audit trail and reconciliation
Position     | mode never changes after INSERT       | Worker/investor terms are fixed
Position     | No DELETE                             | Positions are closed, not removed

SQLAlchemy fires mapper events before the UPDATE/DELETE SQL is emitted:

    session.flush()
         |
         v
    [before_update] --> _check_*() --> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

A failed check aborts the flush; the caller's transaction rolls back and the
database is never modified.

Usage:

    from economy_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # idempotent, called by create_tables()

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()
"""

from sqlalchemy import event
from sqlalchemy.orm.attributes import get_history

from economy_kernel.exceptions import ImmutabilityViolationError
from economy_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _blocked(entity_type: str, entity_id, operation: str, reason: str) -> None:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(entity_id),
        reason=reason,
    )


def _check_ledger_entry_update(mapper, connection, target):
    """Ledger entries are never modified."""
    _blocked(
        "LedgerEntry",
        target.id,
        "UPDATE",
        "Ledger entries are append-only and cannot be modified",
    )


def _check_ledger_entry_delete(mapper, connection, target):
    """Ledger entries are never deleted."""
    _blocked(
        "LedgerEntry",
        target.id,
        "DELETE",
        "Ledger entries are append-only and cannot be deleted",
    )


def _check_position_mode_immutability(mapper, connection, target):
    """
    Block any change to Position.mode after creation.

    get_history().deleted holds the previously persisted value; a non-empty
    deleted list with a different added value means the mode is being
    rewritten.
    """
    history = get_history(target, "mode")
    if not history.deleted or not history.added:
        return
    old, new = history.deleted[0], history.added[0]
    if str(getattr(old, "value", old)) != str(getattr(new, "value", new)):
        _blocked(
            "Position",
            target.id,
            "UPDATE",
            f"Position mode is immutable ({old} -> {new})",
        )


def _check_position_delete(mapper, connection, target):
    """Positions are closed through the lifecycle, never deleted."""
    _blocked(
        "Position",
        target.id,
        "DELETE",
        "Positions cannot be deleted; close them instead",
    )


def _listeners():
    from economy_kernel.models.ledger import LedgerEntry
    from economy_kernel.models.position import Position

    return (
        (LedgerEntry, "before_update", _check_ledger_entry_update),
        (LedgerEntry, "before_delete", _check_ledger_entry_delete),
        (Position, "before_update", _check_position_mode_immutability),
        (Position, "before_delete", _check_position_delete),
    )


def register_immutability_listeners():
    """
    Register all append-only enforcement listeners (idempotent).

    Call after the models are imported and before any write.
    """
    for target, event_name, listener_fn in _listeners():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove the enforcement listeners.

    WARNING: Only use this in tests that need to violate the rules on purpose.
    """
    for target, event_name, listener_fn in _listeners():
        if event.contains(target, event_name, listener_fn):
            event.remove(target, event_name, listener_fn)
