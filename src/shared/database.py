"""Database plumbing shared by all contexts.

Provides the declarative ``Base``, engine and session-factory construction,
schema setup/teardown, and ``transaction()``, the unit-of-work helper every
service uses to either join the caller's transaction or open its own.

SQLite does not honour ``SELECT ... FOR UPDATE``. For SQLite engines every
transaction is started with ``BEGIN IMMEDIATE`` so writers serialise on the
database lock, which gives the same ordering guarantee the row lock gives on
PostgreSQL.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool

from shared.config import get_settings


class Base(DeclarativeBase):
    pass


def utcnow() -> datetime:
    return datetime.now(UTC)


def _install_sqlite_locking(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):  # noqa: ARG001
        # Hand transaction control to the "begin" hook below
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(url: str | None = None, echo: bool | None = None) -> Engine:
    """Create an engine for ``url`` (defaults to the configured database)."""
    settings = get_settings()
    url = url or settings.database_url
    echo = settings.database_echo if echo is None else echo

    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False, "timeout": 30}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        engine = create_engine(url, echo=echo, **kwargs)
        _install_sqlite_locking(engine)
        return engine

    return create_engine(url, echo=echo, pool_pre_ping=True)


def build_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, expire_on_commit=False)


def setup_db(engine: Engine) -> None:
    """Create all tables known to the metadata."""
    # Importing the model modules registers their tables on Base.metadata
    import catalogue.product.product  # noqa: F401
    import catalogue.store.store  # noqa: F401
    import inventory.movement  # noqa: F401
    import ordering.order.order  # noqa: F401
    import pricing.config  # noqa: F401

    Base.metadata.create_all(engine)


def drop_db(engine: Engine) -> None:
    """Drop all tables known to the metadata."""
    Base.metadata.drop_all(engine)


@contextmanager
def transaction(session_factory: sessionmaker[Session], session: Session | None = None) -> Iterator[Session]:
    """Yield a session bound to a transaction.

    With ``session`` given, the work joins the caller's transaction and the
    caller decides when to commit. Otherwise a new session is opened, committed
    on success and rolled back on any exception.
    """
    if session is not None:
        yield session
        return

    with session_factory.begin() as new_session:
        yield new_session
