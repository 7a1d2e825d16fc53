"""
Explicit schema provisioning.

Runs once at service startup (or through ``collector-provision``) instead of
on the request path: create the database when it is missing, apply Alembic
migrations and create the registered generic data tables. Every step is
idempotent; any failure raises :class:`ProvisioningError`.
"""
from __future__ import annotations

import logging
from pathlib import Path

from alembic import command
from alembic.config import Config
from alembic.util import CommandError
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy_utils import create_database, database_exists

from collector.config import Settings
from collector.db.registry import TableRegistry
from collector.errors import ProvisioningError

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parent / "migrations"


def alembic_config(engine: Engine) -> Config:
    cfg = Config()
    cfg.set_main_option("script_location", str(MIGRATIONS_DIR))
    # configparser interpolation treats '%' specially
    url = engine.url.render_as_string(hide_password=False).replace("%", "%%")
    cfg.set_main_option("sqlalchemy.url", url)
    return cfg


def ensure_database(engine: Engine) -> bool:
    """Create the target database if it does not exist. Returns True if created."""
    url = engine.url
    if url.get_backend_name() == "sqlite" and url.database in (None, "", ":memory:"):
        return False
    if database_exists(url):
        return False
    logger.warning("database %r does not exist; creating it", url.database)
    create_database(url)
    return True


def apply_migrations(engine: Engine) -> None:
    cfg = alembic_config(engine)
    with engine.begin() as connection:
        cfg.attributes["connection"] = connection
        command.upgrade(cfg, "head")


def provision(engine: Engine, settings: Settings, registry: TableRegistry) -> None:
    """Bring the database to the state the service expects."""
    try:
        if settings.provision_create_database:
            ensure_database(engine)
        apply_migrations(engine)
        for table in registry.data_tables():
            table.create(bind=engine, checkfirst=True)
    except (SQLAlchemyError, CommandError, OSError) as e:
        logger.error("provisioning failed: %s", e)
        raise ProvisioningError(detail=f"Database provisioning failed: {e}") from e
    logger.info("provisioning complete: tables=%s", registry.names())
