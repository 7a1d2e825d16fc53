"""
Database engine and session management.

Builds the SQLAlchemy engine from settings and exposes the FastAPI
dependency that scopes one session to one request. Engines are created
lazily and cached; nothing here connects at import time.
"""
import logging
from functools import lru_cache
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from collector.config import get_settings

logger = logging.getLogger(__name__)

# Connection execution options read by the SQLite "begin" hook.
SQLITE_BEGIN_MODE_OPTION = "collector_sqlite_begin_mode"
SQLITE_BUSY_TIMEOUT_OPTION = "collector_sqlite_busy_timeout_ms"

_SQLITE_BEGIN_MODES = {"DEFERRED", "IMMEDIATE", "EXCLUSIVE"}
# pysqlite's own default (sqlite3.connect timeout=5.0)
DEFAULT_SQLITE_BUSY_TIMEOUT_MS = 5000


def install_sqlite_transaction_hooks(engine: Engine) -> None:
    """Let SQLAlchemy (not pysqlite) emit BEGIN so the mode can be chosen.

    pysqlite starts transactions lazily and always DEFERRED. With its own
    transaction handling disabled, a connection carrying the
    ``SQLITE_BEGIN_MODE_OPTION`` execution option starts with
    ``BEGIN <mode>``. ``PRAGMA busy_timeout`` is set on every begin, so a
    short allocator timeout never outlives its transaction on a pooled
    connection.
    """

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        options = conn.get_execution_options()
        busy_timeout_ms = options.get(SQLITE_BUSY_TIMEOUT_OPTION, DEFAULT_SQLITE_BUSY_TIMEOUT_MS)
        conn.exec_driver_sql(f"PRAGMA busy_timeout = {int(busy_timeout_ms)}")
        mode = str(options.get(SQLITE_BEGIN_MODE_OPTION, "")).upper()
        if mode in _SQLITE_BEGIN_MODES:
            conn.exec_driver_sql(f"BEGIN {mode}")
        else:
            conn.exec_driver_sql("BEGIN")


def normalize_database_url(url: str) -> str:
    """Pin bare ``postgresql://`` URLs to psycopg2, the installed driver."""
    parsed = make_url(url)
    if parsed.drivername == "postgresql":
        parsed = parsed.set(drivername="postgresql+psycopg2")
    return parsed.render_as_string(hide_password=False)


def create_database_engine(url: str) -> Engine:
    """Create an engine for ``url`` with per-dialect connection settings."""
    url = normalize_database_url(url)
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in url or url.rstrip("/").endswith("sqlite:"):
            # In-memory SQLite with StaticPool so the schema persists across connections
            kwargs["poolclass"] = StaticPool
        engine = create_engine(url, **kwargs)
        install_sqlite_transaction_hooks(engine)
        return engine
    return create_engine(url, pool_pre_ping=True)


@lru_cache(maxsize=None)
def get_engine() -> Engine:
    settings = get_settings()
    engine = create_database_engine(settings.database_url)
    logger.info("database engine created: dialect=%s", engine.dialect.name)
    return engine


@lru_cache(maxsize=None)
def get_sessionmaker() -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=get_engine())


def dispose_engine() -> None:
    """Dispose the cached engine and forget it (used on shutdown and in tests)."""
    if get_engine.cache_info().currsize:
        get_engine().dispose()
    get_sessionmaker.cache_clear()
    get_engine.cache_clear()


def get_db() -> Iterator[Session]:
    """Dependency to get a database session."""
    db = get_sessionmaker()()
    try:
        yield db
    finally:
        db.close()
