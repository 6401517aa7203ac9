"""Database utilities for the remote progress store."""

from .base import Base
from .session import (
    dispose_engine,
    ensure_schema,
    get_engine,
    get_session_factory,
    session_scope,
)

__all__ = [
    "Base",
    "dispose_engine",
    "ensure_schema",
    "get_engine",
    "get_session_factory",
    "session_scope",
]
