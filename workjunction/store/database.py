import logging
from typing import Iterator, Optional

from fastapi import Request
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from workjunction.config import settings
from workjunction.store.models import Base

logger = logging.getLogger(__name__)

SQLITE_BUSY_TIMEOUT_SEC = 30


def build_engine(database_url: Optional[str] = None, echo: Optional[bool] = None) -> Engine:
    """Create an engine for ``database_url`` (defaults to configuration).

    SQLite gets ``check_same_thread=False`` so request threads can share the
    pool, a busy timeout so concurrent writers wait instead of failing, and
    foreign keys switched on. In-memory SQLite uses a single static
    connection so every session sees the same database.
    """
    url = database_url or settings.store.database_url
    echo = settings.store.echo if echo is None else echo

    if not url.startswith("sqlite"):
        return create_engine(url, echo=echo, pool_pre_ping=True)

    kwargs = {
        "echo": echo,
        "connect_args": {"check_same_thread": False, "timeout": SQLITE_BUSY_TIMEOUT_SEC},
    }
    if url in ("sqlite://", "sqlite:///:memory:"):
        kwargs["poolclass"] = StaticPool
    engine = create_engine(url, **kwargs)

    @event.listens_for(engine, "connect")
    def enable_sqlite_fk(dbapi_connection, _):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def init_db(engine: Engine) -> None:
    """Create all tables and indexes, including the live-slot unique index."""
    Base.metadata.create_all(engine)
    logger.info("Database schema ensured on %s", engine.url.render_as_string(hide_password=True))


# Dependency for FastAPI
def get_db(request: Request) -> Iterator[Session]:
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()
