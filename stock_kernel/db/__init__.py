"""Database layer - engine, base classes, and immutability listeners."""

from stock_kernel.db.base import UUID, Base, TimestampedBase, UUIDString
from stock_kernel.db.engine import (
    build_engine,
    create_tables,
    get_engine,
    get_session,
    get_session_factory,
    session_scope,
)

__all__ = [
    "build_engine",
    "get_engine",
    "get_session",
    "get_session_factory",
    "session_scope",
    "create_tables",
    "Base",
    "TimestampedBase",
    "UUIDString",
    "UUID",
]
