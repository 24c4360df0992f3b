"""Database layer - engine, base classes, column types, atomic blocks."""

from microfinance_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from microfinance_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
    session_scope,
)
from microfinance_kernel.db.transaction import atomic
from microfinance_kernel.db.types import Money, round_money

__all__ = [
    "get_engine",
    "get_session",
    "session_scope",
    "create_tables",
    "atomic",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
    "Money",
    "round_money",
]
