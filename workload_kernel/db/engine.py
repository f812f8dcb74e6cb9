"""
Engine and session management.

Responsibility:
    Builds SQLAlchemy engines for the configured database URL, owns the
    process-wide session factory used by the reset script, and provides
    ``session_scope()``, the one place a unit of work is committed.

Architecture position:
    Kernel > DB.  Imports models only inside ``create_tables()`` so their
    tables are registered on the metadata.

Invariants:
    - Services flush; ``session_scope()`` commits or rolls back.
    - SQLite engines honour SAVEPOINTs.  Bulk transitions and the
      semester reset open one SAVEPOINT per course, and pysqlite's
      implicit transaction handling would otherwise swallow them.
    - ``sqlite:///:memory:`` uses a single shared connection, so every
      session sees the same in-memory database.
    - PostgreSQL runs at READ COMMITTED; concurrent writers are caught
      by the version columns on courses and payments.

Failure modes:
    - RuntimeError from ``session_scope()`` before ``init_engine_from_url()``.
"""

import atexit
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from workload_kernel.logging_config import get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_session_factory: sessionmaker[Session] | None = None


def enable_sqlite_savepoints(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")


def build_engine(database_url: str, echo: bool = False) -> Engine:
    if database_url.startswith("sqlite"):
        options = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in database_url:
            options["poolclass"] = StaticPool
        engine = create_engine(database_url, echo=echo, **options)
        enable_sqlite_savepoints(engine)
        return engine

    return create_engine(
        database_url,
        echo=echo,
        pool_pre_ping=True,
        pool_recycle=1800,
        isolation_level="READ COMMITTED",
    )


def init_engine_from_url(database_url: str, echo: bool = False) -> Engine:
    """Install the process-wide engine, replacing any previous one."""
    global _engine, _session_factory
    reset_engine()
    _engine = build_engine(database_url, echo=echo)
    _session_factory = sessionmaker(bind=_engine, expire_on_commit=False)
    logger.info("engine_initialized", extra={"dialect": _engine.dialect.name})
    return _engine


@contextmanager
def session_scope() -> Iterator[Session]:
    """
    Commit on normal exit, roll back and re-raise on error, always close.

        with session_scope() as session:
            WorkflowOrchestrator(session, ...).reset_semester(...)
    """
    if _session_factory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    session = _session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables(engine: Engine) -> None:
    from workload_kernel.db.base import Base
    from workload_kernel.models import import_all_models

    import_all_models()
    Base.metadata.create_all(engine)


def reset_engine() -> None:
    global _engine, _session_factory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None


atexit.register(reset_engine)
