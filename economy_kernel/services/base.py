"""
BaseService -- common constructor for every write-side service.

Responsibility:
    Holds the caller's SQLAlchemy ``Session`` and the injected ``Clock``.
    Services persist with ``session.flush()`` only; the EconomyEngine
    facade (or a test) owns commit and rollback, so a multi-step operation
    such as collect (claim position, credit owner, credit house) is one
    atomic unit.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Failure modes:
    - A subclass that calls ``session.commit()`` breaks the all-or-nothing
      guarantee of the facade's operations.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from economy_kernel.db.base import Base
from economy_kernel.domain.clock import Clock, SystemClock

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for kernel services.

    Contract:
        Accepts a Session from the caller and flushes within its
        transaction.  Never commits or rolls back.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()

    @property
    def _is_postgres(self) -> bool:
        bind = self.session.get_bind()
        return bind.dialect.name == "postgresql"
