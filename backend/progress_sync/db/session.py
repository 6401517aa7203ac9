"""Engine and session helpers for the remote progress store.

The engine follows ``PROGRESS_SYNC_DATABASE_URL``: when the configured URL
changes (tests clear the settings cache between runs) the cached engine is
disposed and rebuilt on next use.
"""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Generator, Optional

from sqlalchemy import Engine, create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..config import get_settings
from . import models as _models  # noqa: F401  registers tables on Base.metadata
from .base import Base

_engine: Optional[Engine] = None
_engine_url: Optional[str] = None
_session_factory: Optional[sessionmaker[Session]] = None
_schema_ready = False


def _engine_options(database_url: str, echo: bool) -> Dict[str, Any]:
    options: Dict[str, Any] = {"echo": echo, "pool_pre_ping": True}
    url = make_url(database_url)
    if url.get_backend_name() != "sqlite":
        return options
    options["connect_args"] = {"check_same_thread": False}
    if url.database in (None, "", ":memory:"):
        # one shared connection, otherwise each checkout sees an empty database
        options["poolclass"] = StaticPool
    else:
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)
    return options


def get_engine() -> Engine:
    global _engine, _engine_url, _session_factory, _schema_ready
    settings = get_settings()
    database_url = settings.database_url
    if not database_url:
        raise RuntimeError("PROGRESS_SYNC_DATABASE_URL must be configured before using the database.")
    if _engine is not None and _engine_url == database_url:
        return _engine

    dispose_engine()
    _engine = create_engine(database_url, **_engine_options(database_url, settings.database_echo))
    _engine_url = database_url
    _session_factory = sessionmaker(bind=_engine, autoflush=False, expire_on_commit=False)
    _schema_ready = False
    return _engine


def ensure_schema() -> Engine:
    """Create the progress tables on the current engine if this process has not yet done so."""
    global _schema_ready
    engine = get_engine()
    if not _schema_ready:
        Base.metadata.create_all(engine)
        _schema_ready = True
    return engine


def get_session_factory() -> sessionmaker[Session]:
    get_engine()
    assert _session_factory is not None
    return _session_factory


@contextmanager
def session_scope(*, commit: bool = True) -> Generator[Session, None, None]:
    session = get_session_factory()()
    try:
        yield session
        if commit:
            session.commit()
    except Exception:  # noqa: BLE001
        session.rollback()
        raise
    finally:
        session.close()


def dispose_engine() -> None:
    global _engine, _engine_url, _session_factory, _schema_ready
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _engine_url = None
    _session_factory = None
    _schema_ready = False


__all__ = [
    "dispose_engine",
    "ensure_schema",
    "get_engine",
    "get_session_factory",
    "session_scope",
]
