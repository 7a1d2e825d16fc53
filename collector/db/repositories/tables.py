"""
Table browser repository functions.

Implements listing, paging, searching, row deletion and create/drop for
registered tables. Every statement is built from a registered ``Table``;
caller-supplied strings only ever reach the database as bound parameters.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Tuple

from sqlalchemy import String, cast, delete, inspect, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.sql.schema import Table

from collector.db.registry import TableRegistry
from collector.errors import NotFoundError, StorageError, ValidationError

logger = logging.getLogger(__name__)

SEARCH_RESULT_LIMIT = 100
# Largest value an id or offset may take in a 64-bit integer column.
MAX_BIGINT = 2**63 - 1


def existing_table_names(bind: Engine) -> List[str]:
    return inspect(bind).get_table_names()


def list_tables(bind: Engine, registry: TableRegistry) -> Tuple[List[str], List[str]]:
    """Return (registered tables that exist, registered tables not yet created)."""
    present = set(existing_table_names(bind))
    existing = [name for name in registry.names() if name in present]
    missing = [name for name in registry.names() if name not in present]
    return existing, missing


def check_read_only(bind: Engine) -> bool:
    """Probe write permission by creating and dropping a temporary table."""
    with bind.connect() as conn:
        trans = conn.begin()
        try:
            conn.execute(text("CREATE TEMPORARY TABLE collector_perm_check (id integer)"))
            conn.execute(text("DROP TABLE collector_perm_check"))
            return False
        except DBAPIError as e:
            logger.info("write probe failed, reporting read-only: %s", e.orig)
            return True
        finally:
            trans.rollback()


def ensure_table_exists(bind: Engine, table: Table) -> None:
    if not inspect(bind).has_table(table.name):
        raise NotFoundError("table_not_created", f"Table '{table.name}' has not been created")


def create_table(bind: Engine, table: Table) -> None:
    try:
        table.create(bind=bind, checkfirst=True)
    except SQLAlchemyError as e:
        raise StorageError(detail=f"Failed to create table {table.name}: {str(e)}")
    logger.info("admin created table %s", table.name)


def drop_table(bind: Engine, table: Table) -> None:
    try:
        table.drop(bind=bind, checkfirst=True)
    except SQLAlchemyError as e:
        raise StorageError(detail=f"Failed to drop table {table.name}: {str(e)}")
    logger.info("admin dropped table %s", table.name)


def _rows_as_dicts(result) -> Tuple[List[str], List[Dict[str, Any]]]:
    columns = list(result.keys())
    rows = [dict(row._mapping) for row in result]
    return columns, rows


def get_rows(db: Session, table: Table, *, limit: int = 100, page: int = 1):
    offset = (page - 1) * limit
    if offset > MAX_BIGINT:
        raise ValidationError("page_out_of_range", f"page {page} with limit {limit} is past the last possible row")
    ensure_table_exists(db.get_bind(), table)
    result = db.execute(select(table).order_by(table.c.id.asc()).limit(limit).offset(offset))
    return _rows_as_dicts(result)


def get_table_columns(db: Session, table: Table) -> List[Dict[str, Any]]:
    ensure_table_exists(db.get_bind(), table)
    columns = []
    for col in inspect(db.get_bind()).get_columns(table.name):
        columns.append(
            {
                "name": col["name"],
                "type": str(col["type"]),
                "nullable": bool(col.get("nullable", True)),
                "primary_key": col["name"] in table.primary_key.columns,
            }
        )
    return columns


def search_rows(db: Session, table: Table, column: str, term: str):
    if column not in table.c:
        raise ValidationError("unknown_column", f"Table '{table.name}' has no column '{column}'")
    ensure_table_exists(db.get_bind(), table)
    stmt = (
        select(table)
        .where(cast(table.c[column], String).icontains(term, autoescape=True))
        .order_by(table.c.id.asc())
        .limit(SEARCH_RESULT_LIMIT)
    )
    return _rows_as_dicts(db.execute(stmt))


def delete_row(db: Session, table: Table, row_id: int) -> int:
    ensure_table_exists(db.get_bind(), table)
    try:
        result = db.execute(delete(table).where(table.c.id == row_id))
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise StorageError(detail=f"Failed to delete row {row_id} from {table.name}: {str(e)}")
    logger.info("admin deleted row id=%s from %s (rows=%s)", row_id, table.name, result.rowcount)
    return result.rowcount
