import os
import pytest
from sqlalchemy import text
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient

from collector.api.deps import get_captcha_verifier
from collector.api.main import app
from collector.config import Settings, get_settings, refresh_settings_cache
from collector.db import models
from collector.db.database import create_database_engine, get_db
from collector.db.provisioning import provision
from collector.db.registry import build_registry, get_table_registry
from collector.utils.feature_flags import refresh_feature_flag_cache


def _postgres_enabled() -> bool:
    return os.getenv("TEST_POSTGRES") == "1"


# Session-wide Postgres test container (opt-in)
@pytest.fixture(scope="session")
def _test_postgres():
    if not _postgres_enabled():
        pytest.skip("set TEST_POSTGRES=1 to run against a PostgreSQL testcontainer")
    from testcontainers.postgres import PostgresContainer

    image = os.getenv("TEST_POSTGRES_IMAGE", "postgres:16-alpine")
    with PostgresContainer(image, driver="psycopg2") as pg:
        # Keep the explicit psycopg2 driver; a bare postgresql:// URL may resolve to psycopg 3
        yield pg.get_connection_url()


def _make_settings(engine, **overrides) -> Settings:
    values = dict(
        database_url=engine.url.render_as_string(hide_password=False),
        lock_timeout_seconds=5.0,
        allocation_retry_backoff_seconds=0.0,
        admin_extra_tables=("notes",),
        provision_on_startup=False,
    )
    values.update(overrides)
    return Settings(**values)


def _sqlite_engine(tmp_path):
    return create_database_engine(f"sqlite+pysqlite:///{tmp_path / 'forms.db'}")


def _postgres_engine(url):
    engine = create_database_engine(url)
    with engine.begin() as conn:
        conn.execute(text("DROP SCHEMA public CASCADE"))
        conn.execute(text("CREATE SCHEMA public"))
    return engine


@pytest.fixture
def engine(tmp_path):
    eng = _sqlite_engine(tmp_path)
    yield eng
    eng.dispose()


@pytest.fixture(params=["sqlite", pytest.param("postgresql", marks=pytest.mark.postgres)])
def any_engine(request, tmp_path):
    """Same test body against SQLite and (when enabled) PostgreSQL."""
    if request.param == "postgresql":
        eng = _postgres_engine(request.getfixturevalue("_test_postgres"))
    else:
        eng = _sqlite_engine(tmp_path)
    yield eng
    eng.dispose()


@pytest.fixture
def settings(engine):
    return _make_settings(engine)


@pytest.fixture
def registry(settings):
    return build_registry(settings)


@pytest.fixture
def provisioned(engine, settings, registry):
    provision(engine, settings, registry)
    return engine


@pytest.fixture
def session_factory(provisioned):
    return sessionmaker(bind=provisioned, autoflush=False, autocommit=False)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def submissions_table():
    return models.Submission.__table__


@pytest.fixture
def any_settings(any_engine):
    return _make_settings(any_engine)


@pytest.fixture
def any_session_factory(any_engine, any_settings):
    provision(any_engine, any_settings, build_registry(any_settings))
    return sessionmaker(bind=any_engine, autoflush=False, autocommit=False)


@pytest.fixture(autouse=True)
def _production_environment(monkeypatch):
    """Error bodies stay terse unless a test opts into diagnostics."""
    monkeypatch.delenv("ENVIRONMENT", raising=False)
    monkeypatch.delenv("APP_BASE_URL", raising=False)


@pytest.fixture(autouse=True)
def _reset_cached_config():
    refresh_settings_cache()
    refresh_feature_flag_cache()
    yield
    refresh_settings_cache()
    refresh_feature_flag_cache()


@pytest.fixture
def captcha_verifier():
    """Replace to enable CAPTCHA in API tests; None means disabled."""
    return None


# FastAPI dependency overrides so app endpoints use the per-test database
@pytest.fixture
def client(session_factory, settings, registry, captcha_verifier):
    def _override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_table_registry] = lambda: registry
    app.dependency_overrides[get_captcha_verifier] = lambda: captcha_verifier
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
