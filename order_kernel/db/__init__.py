"""Database layer - engine, session factory and declarative base."""

from order_kernel.db.base import Base, TrackedBase
from order_kernel.db.engine import (
    configure_sqlite,
    create_tables,
    get_engine,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)

__all__ = [
    "get_engine",
    "get_session_factory",
    "init_engine_from_url",
    "configure_sqlite",
    "reset_engine",
    "create_tables",
    "Base",
    "TrackedBase",
]
