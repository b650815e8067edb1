"""
Module: ledger_kernel.db.engine
Responsibility: Engine initialization, session factory management and
    transactional scopes.  Single point of database connection configuration.
Architecture position: Kernel > DB.  May import from db/base.py.  MUST NOT
    import from services/, selectors/ or outer layers (create_tables imports
    the model modules lazily so their tables register on Base.metadata).

Invariants enforced:
    - PostgreSQL runs READ COMMITTED; row locks (FOR UPDATE) and the document
      compare-and-set provide the stronger guarantees where needed.
    - Report reads use snapshot_scope(): REPEATABLE READ on PostgreSQL, a
      single deferred transaction on SQLite.
    - SQLite connections enforce foreign keys and support SAVEPOINT (the
      pysqlite driver's own transaction handling is disabled).

Failure modes:
    - RuntimeError if get_engine/get_session/get_session_factory is called
      before init_engine_from_url().

Audit relevance:
    session_scope() gives every unit of work commit-or-rollback semantics:
    a failed booking leaves no partial rows behind.
"""

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from ledger_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None


def _install_sqlite_hooks(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # Let SQLAlchemy emit BEGIN itself so SAVEPOINT works
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 10,
    max_overflow: int = 10,
    pool_pre_ping: bool = True,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
) -> Engine:
    """
    Initialize the module-level engine and session factory.

    Args:
        database_url: ``postgresql://...`` (psycopg2) for production,
            ``sqlite://`` (in-memory) or ``sqlite:///path.db`` for tests
            and embedded use.
        echo: If True, log all SQL statements.

    Returns:
        SQLAlchemy Engine instance.
    """
    global _engine, _SessionFactory

    url = make_url(database_url)
    dialect = url.get_backend_name()

    if dialect == "sqlite":
        in_memory = url.database in (None, "", ":memory:")
        kwargs: dict = {"connect_args": {"check_same_thread": False, "timeout": 30}}
        if in_memory:
            # One shared connection, otherwise every checkout sees an empty db
            kwargs["poolclass"] = StaticPool
        _engine = create_engine(url, echo=echo, **kwargs)
        _install_sqlite_hooks(_engine)
    else:
        _engine = create_engine(
            url,
            echo=echo,
            poolclass=QueuePool,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=pool_pre_ping,
            pool_timeout=pool_timeout,
            pool_recycle=pool_recycle,
            isolation_level="READ COMMITTED",
        )

    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    configure_logging()
    logger.info(
        "engine_initialized",
        extra={"dialect": dialect, "echo": echo},
    )
    return _engine


def get_engine() -> Engine:
    """
    Get the current engine instance.

    Raises:
        RuntimeError: If engine has not been initialized.
    """
    if _engine is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _engine


def get_session() -> Session:
    """Get a new session instance."""
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory()


def get_session_factory() -> sessionmaker[Session]:
    """Session factory, for callers that need one session per thread or request."""
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory


@contextmanager
def session_scope(
    factory: sessionmaker[Session] | None = None,
) -> Generator[Session, None, None]:
    """
    Provide a transactional scope around a series of operations.

    Commits on normal exit, rolls back and re-raises on exception, always
    closes the session.

    Usage:
        with session_scope() as session:
            DocumentService(session, ...).book(document_id)
    """
    session = factory() if factory is not None else get_session()
    logger.debug("transaction_started")
    try:
        yield session
        session.commit()
        logger.debug("transaction_committed")
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


@contextmanager
def snapshot_scope(session: Session) -> Generator[Session, None, None]:
    """
    Run read-only work against one consistent snapshot.

    On PostgreSQL the transaction is switched to REPEATABLE READ before the
    first statement.  The transaction is rolled back on exit; nothing is
    written inside a snapshot.
    """
    if session.in_transaction():
        # Already inside the caller's transaction; its snapshot applies
        yield session
        return
    if session.get_bind().dialect.name == "postgresql":
        session.connection(execution_options={"isolation_level": "REPEATABLE READ"})
    try:
        yield session
    finally:
        session.rollback()


def create_tables() -> None:
    """
    Create all tables of the kernel and of the document module.

    Raises:
        RuntimeError: If engine is not initialized.
    """
    from ledger_kernel.db.base import Base
    from ledger_kernel.models import import_all_models

    import_all_models()
    Base.metadata.create_all(get_engine())


def drop_tables() -> None:
    """Drop all tables. Testing only."""
    from ledger_kernel.db.base import Base
    from ledger_kernel.models import import_all_models

    import_all_models()
    Base.metadata.drop_all(get_engine())


def reset_engine() -> None:
    """Dispose the engine and forget the session factory."""
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
        _engine = None

    _SessionFactory = None

