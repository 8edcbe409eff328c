"""Database layer - engine, base classes, types, and append-only guards."""

from economy_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from economy_kernel.db.engine import (
    build_engine,
    create_tables,
    get_engine,
    get_session,
    get_session_factory,
    init_engine_from_url,
    session_scope,
)
from economy_kernel.db.types import UTCDateTime, round_money, truncate_money

__all__ = [
    "Base",
    "TrackedBase",
    "UUID",
    "UUIDString",
    "UTCDateTime",
    "build_engine",
    "create_tables",
    "get_engine",
    "get_session",
    "get_session_factory",
    "init_engine_from_url",
    "round_money",
    "session_scope",
    "truncate_money",
]
