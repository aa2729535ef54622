"""Database engine and helpers.

The engine is built explicitly by :func:`build_engine` and handed to the
FastAPI app factory, which keeps it on ``app.state.engine``. Request
handlers receive sessions through :func:`get_session`, so nothing in the
package depends on a module-level database client.
"""

from fastapi import Request
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine, Session

from . import models  # noqa: F401  (registers table metadata)


def _is_memory_sqlite(url: str) -> bool:
    return url in ("sqlite://", "sqlite:///:memory:") or ":memory:" in url


def build_engine(url: str, timeout_seconds: float = 10.0, echo: bool = False) -> Engine:
    """Create an engine with a bounded wait for connections/locks.

    SQLite gets ``check_same_thread=False`` (FastAPI runs sync handlers in a
    thread pool) and its busy timeout; in-memory URLs share one connection
    through ``StaticPool`` so every session sees the same database.
    """
    if url.startswith("sqlite"):
        connect_args = {"check_same_thread": False, "timeout": timeout_seconds}
        if _is_memory_sqlite(url):
            return create_engine(url, echo=echo, connect_args=connect_args, poolclass=StaticPool)
        return create_engine(url, echo=echo, connect_args=connect_args)
    return create_engine(url, echo=echo, pool_timeout=timeout_seconds, pool_pre_ping=True)


def create_db_and_tables(engine: Engine):
    """Create database tables using SQLModel metadata.

    Intended for local development and tests; production deployments
    should rely on a proper migration tool (alembic) instead.
    """
    SQLModel.metadata.create_all(engine)


def get_session(request: Request):
    """Yield a database `Session` bound to the app's engine.

    The generator yields a session and ensures it is closed when the
    request scope finishes.
    """
    with Session(request.app.state.engine) as session:
        yield session
