"""SQLAlchemy engine factory and session factory.

This module provides:

* ``create_jobspine_engine``   -- Create a SA engine from a URL.
* ``JobSpineSession``          -- Session with ``expire_on_commit=False``.
* ``jobspine_session_factory`` -- ``sessionmaker`` producing ``JobSpineSession``.
* ``init_schema``              -- Create all mapped tables.

Tags:
    jobspine, orm, sqlalchemy, session, engine
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import create_engine as _sa_create_engine
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from jobspine.core.orm.base import JobSpineBase


def _is_memory_sqlite(url: str) -> bool:
    return url in ("sqlite://", "sqlite:///:memory:") or "mode=memory" in url


def create_jobspine_engine(
    url: str = "sqlite:///jobspine.db",
    *,
    echo: bool = False,
    pool_size: int | None = None,
    max_overflow: int | None = None,
    **kwargs: Any,
) -> Engine:
    """Create a SQLAlchemy engine with sane defaults.

    Parameters
    ----------
    url:
        Database URL (``sqlite:///…``, ``postgresql://…``, etc.)
    echo:
        If ``True``, log all SQL to stdout.
    pool_size, max_overflow:
        Connection pool parameters (ignored for SQLite).
    **kwargs:
        Extra arguments forwarded to ``sqlalchemy.create_engine``.
    """
    if url.startswith("sqlite"):
        # Engine callbacks and API requests run on different threads.
        kwargs.setdefault("connect_args", {"check_same_thread": False})
        if _is_memory_sqlite(url):
            # One shared connection, otherwise every session sees an empty DB.
            kwargs.setdefault("poolclass", StaticPool)

        engine = _sa_create_engine(url, echo=echo, **kwargs)

        @event.listens_for(engine, "connect")
        def _set_sqlite_pragma(dbapi_connection: Any, _rec: Any) -> None:
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine

    pool_kwargs: dict[str, Any] = {"pool_pre_ping": True}
    if pool_size is not None:
        pool_kwargs["pool_size"] = pool_size
    if max_overflow is not None:
        pool_kwargs["max_overflow"] = max_overflow

    return _sa_create_engine(url, echo=echo, **pool_kwargs, **kwargs)


class JobSpineSession(Session):
    """Pre-configured session with ``expire_on_commit=False``.

    Rows converted to dataclasses after commit must not trigger lazy loads.
    """

    def __init__(self, bind: Engine | None = None, **kwargs: Any) -> None:
        kwargs.setdefault("expire_on_commit", False)
        super().__init__(bind=bind, **kwargs)


def jobspine_session_factory(engine: Engine) -> sessionmaker[JobSpineSession]:
    """Return a ``sessionmaker`` bound to *engine* that produces ``JobSpineSession`` instances."""
    return sessionmaker(bind=engine, class_=JobSpineSession)


def init_schema(engine: Engine) -> None:
    """Create every jobspine table that does not exist yet."""
    import jobspine.core.orm.tables  # noqa: F401  (registers mappers)

    JobSpineBase.metadata.create_all(engine)
