"""
Module: inventory_kernel.db.engine
Responsibility: Process-wide SQLAlchemy engine and session factory for the
    shared (server-backed) read-state store, plus a transactional scope.
Architecture position: Kernel > DB.  May import from db/base.py and models/.

Invariants enforced:
    - One engine per process; ``init_engine_from_url`` replaces it.
    - In-memory SQLite shares one connection so every session sees the
      same tables.

Failure modes:
    - RuntimeError from every accessor until ``init_engine_from_url`` ran.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from inventory_kernel.logging_config import get_logger

logger = get_logger("db.engine")

_IN_MEMORY_URLS = frozenset({"sqlite://", "sqlite:///:memory:"})

_engine: Engine | None = None
_session_factory: sessionmaker[Session] | None = None


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_pre_ping: bool = True,
) -> Engine:
    """Create the process engine and session factory for ``database_url``."""
    global _engine, _session_factory

    options: dict = {"echo": echo, "pool_pre_ping": pool_pre_ping}
    if database_url in _IN_MEMORY_URLS:
        options.update(poolclass=StaticPool, connect_args={"check_same_thread": False})

    _engine = create_engine(database_url, **options)
    _session_factory = sessionmaker(bind=_engine, expire_on_commit=False)

    logger.info("engine_initialized", extra={"dialect": _engine.dialect.name, "echo": echo})
    return _engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    if _session_factory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _session_factory


def get_session() -> Session:
    """A new session bound to the process engine."""
    return get_session_factory()()


@contextmanager
def session_scope() -> Iterator[Session]:
    """
    Commit on normal exit, roll back and re-raise on error; always close.
    """
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables() -> None:
    """Create the tables of every model in ``inventory_kernel.models``."""
    from inventory_kernel.db.base import Base
    import inventory_kernel.models  # noqa: F401

    Base.metadata.create_all(get_engine())
    logger.info("tables_created", extra={"tables": sorted(Base.metadata.tables)})


def drop_tables() -> None:
    from inventory_kernel.db.base import Base
    import inventory_kernel.models  # noqa: F401

    Base.metadata.drop_all(get_engine())


def reset_engine() -> None:
    """Dispose the engine and forget the session factory. FOR TESTING ONLY."""
    global _engine, _session_factory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None
