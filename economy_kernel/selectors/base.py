"""
Module: economy_kernel.selectors.base
Responsibility: Abstract base class for the read-only query selectors.
Architecture position: Kernel > Selectors.  May import from db/, domain/
    and models/.  MUST NOT import from services/.

Invariants enforced:
    - Read-only: selectors never add, delete, flush or commit.
    - DTO return convention: frozen dataclasses, never ORM rows.
    - Session ownership: the caller owns the session and its transaction.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from economy_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):
    """Selectors accept a Session from the caller and only read through it."""

    def __init__(self, session: Session):
        self.session = session
