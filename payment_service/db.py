"""Database configuration and session management."""
from __future__ import annotations

from collections.abc import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from payment_service.config import get_settings
from payment_service.models.base import Base

READ_ONLY = "payment_service_read_only"

engine: Engine | None = None
SessionLocal: sessionmaker[Session] | None = None


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def _engine_kwargs(url: str) -> dict[str, object]:
    settings = get_settings()
    if _is_sqlite(url):
        return {
            "connect_args": {
                "check_same_thread": False,
                "timeout": settings.SQLITE_BUSY_TIMEOUT_SECONDS,
            }
        }
    return {"pool_pre_ping": True}


def _install_sqlite_transaction_hooks(sqlite_engine: Engine, journal_mode: str) -> None:
    """Make pysqlite emit explicit ``BEGIN IMMEDIATE`` transactions.

    pysqlite defers BEGIN and breaks SAVEPOINT handling. Taking the write lock
    up front makes concurrent writers queue on the busy timeout instead of
    failing to upgrade a shared lock, so a losing insert observes the unique
    constraint rather than ``database is locked``.

    Connections marked with the ``READ_ONLY`` execution option start with a
    plain ``BEGIN`` and never take the write lock. In WAL mode such readers
    also do not block a writer's commit.
    """

    @event.listens_for(sqlite_engine, "connect")
    def _on_connect(dbapi_connection, connection_record) -> None:
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        if journal_mode:
            cursor.execute(f"PRAGMA journal_mode={journal_mode}")
        cursor.close()

    @event.listens_for(sqlite_engine, "begin")
    def _on_begin(conn) -> None:
        if conn.get_execution_options().get(READ_ONLY):
            conn.exec_driver_sql("BEGIN")
        else:
            conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(url: str) -> Engine:
    """Create an engine for ``url`` with dialect-specific hooks applied."""

    built = create_engine(url, future=True, echo=False, **_engine_kwargs(url))
    if _is_sqlite(url):
        _install_sqlite_transaction_hooks(built, get_settings().SQLITE_JOURNAL_MODE)
    return built


def begin_read_only(db: Session) -> None:
    """Open ``db``'s transaction as a reader.

    Must run before the first statement of the transaction; a session that is
    already inside one keeps it unchanged.
    """

    if not db.in_transaction():
        db.connection(execution_options={READ_ONLY: True})


def build_sessionmaker(bind: Engine) -> sessionmaker[Session]:
    return sessionmaker(
        bind=bind,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
        future=True,
    )


def init_engine() -> Engine:
    """Initialise the synchronous SQLAlchemy engine lazily."""

    global engine, SessionLocal
    if engine is None:
        settings = get_settings()
        engine = build_engine(settings.database_url)
        SessionLocal = build_sessionmaker(engine)
    return engine


def get_engine() -> Engine:
    """Return the active SQLAlchemy engine, creating it if necessary."""

    if engine is None:
        return init_engine()
    return engine


def get_sessionmaker() -> sessionmaker[Session]:
    """Return the configured session factory, initialising the engine on demand."""

    if SessionLocal is None:
        init_engine()
    assert SessionLocal is not None  # for type-checkers
    return SessionLocal


def create_all() -> None:
    """Create all database tables using the shared declarative metadata."""

    Base.metadata.create_all(bind=get_engine())


def close_engine() -> None:
    """Dispose of the SQLAlchemy engine and reset the session factory."""

    global engine, SessionLocal
    if engine is not None:
        engine.dispose()
        engine = None
        SessionLocal = None


def get_db() -> Generator[Session, None, None]:
    """Provide a database session for FastAPI dependencies."""

    session = get_sessionmaker()()
    try:
        yield session
    finally:
        session.close()


__all__ = [
    "Base",
    "SessionLocal",
    "engine",
    "READ_ONLY",
    "begin_read_only",
    "build_engine",
    "build_sessionmaker",
    "create_all",
    "get_db",
    "get_engine",
    "get_sessionmaker",
    "init_engine",
    "close_engine",
]
