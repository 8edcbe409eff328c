"""
Per-position in-process exclusivity.

A request that finds the position already held by another request in this
process fails fast with AlreadyInProgressError instead of queueing.  The
position's version column covers writers in other processes.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from uuid import UUID

from economy_kernel.exceptions import AlreadyInProgressError
from economy_kernel.logging_config import get_logger

logger = get_logger("services.locks")


class PositionLockRegistry:
    """Non-blocking, per-key locks; entries are dropped when released."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._held: set[str] = set()

    def try_acquire(self, key: UUID | str) -> bool:
        key = str(key)
        with self._guard:
            if key in self._held:
                return False
            self._held.add(key)
            return True

    def release(self, key: UUID | str) -> None:
        with self._guard:
            self._held.discard(str(key))

    def is_held(self, key: UUID | str) -> bool:
        with self._guard:
            return str(key) in self._held

    @contextmanager
    def hold(self, key: UUID | str, entity_type: str = "Position") -> Iterator[None]:
        """
        Hold ``key`` for the duration of the block.

        Raises:
            AlreadyInProgressError: another request holds the key.
        """
        if not self.try_acquire(key):
            logger.warning(
                "position_lock_contended",
                extra={"entity_type": entity_type, "entity_id": str(key)},
            )
            raise AlreadyInProgressError(entity_type=entity_type, entity_id=str(key))
        try:
            yield
        finally:
            self.release(key)
