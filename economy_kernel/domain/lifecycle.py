"""
Position lifecycle transitions.

    Worker:   active -> {active, paused, closed}
              paused -> {active, closed}
    Investor: active -> matured -> closed

Closed is terminal for both modes.  The table below is the single source of
truth; services call validate_transition() before writing a new status.

An investor position becomes matured as soon as the clock reaches
maturity_at, whether or not release has run yet.  status_at() reports that
without a write; release() stores it on the way to closed.
"""

from __future__ import annotations

from datetime import datetime

from economy_kernel.domain.dtos import PositionInfo
from economy_kernel.domain.values import PositionMode, PositionStatus
from economy_kernel.exceptions import InvalidInputError, InvalidStateError

_ALLOWED: dict[PositionMode, dict[PositionStatus, frozenset[PositionStatus]]] = {
    PositionMode.WORKER: {
        PositionStatus.ACTIVE: frozenset(
            {PositionStatus.ACTIVE, PositionStatus.PAUSED, PositionStatus.CLOSED}
        ),
        PositionStatus.PAUSED: frozenset(
            {PositionStatus.ACTIVE, PositionStatus.CLOSED}
        ),
        PositionStatus.CLOSED: frozenset(),
    },
    PositionMode.INVESTOR: {
        PositionStatus.ACTIVE: frozenset({PositionStatus.MATURED}),
        PositionStatus.MATURED: frozenset({PositionStatus.CLOSED}),
        PositionStatus.CLOSED: frozenset(),
    },
}


def parse_mode(mode) -> PositionMode:
    """Coerce a caller-supplied mode, rejecting anything but worker/investor."""
    try:
        return PositionMode(mode)
    except ValueError as exc:
        raise InvalidInputError("mode", str(mode), "must be worker or investor") from exc


def allowed_transitions(mode, status) -> frozenset[PositionStatus]:
    return _ALLOWED[PositionMode(mode)].get(PositionStatus(status), frozenset())


def can_transition(mode, current, target) -> bool:
    return PositionStatus(target) in allowed_transitions(mode, current)


def validate_transition(position_id, mode, current, target, operation: str) -> PositionStatus:
    """
    Return the target status if the move is legal.

    Raises:
        InvalidStateError: the transition is not in the table for this mode.
    """
    if not can_transition(mode, current, target):
        raise InvalidStateError(
            position_id=str(position_id),
            status=PositionStatus(current).value,
            operation=operation,
        )
    return PositionStatus(target)


def status_at(position: PositionInfo, now: datetime) -> PositionStatus:
    """Status as seen at ``now``: active investors past maturity read as matured."""
    status = PositionStatus(position.status)
    if (
        position.mode == PositionMode.INVESTOR
        and status == PositionStatus.ACTIVE
        and position.maturity_at is not None
        and now >= position.maturity_at
    ):
        return PositionStatus.MATURED
    return status
