"""
Table browser endpoints.

List, page, search and delete rows of registered tables, and create/drop
registered tables. Table identifiers from the URL are resolved through the
registry allow-list before any statement is built.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.orm import Session

from collector.api.deps import require_admin_enabled, require_schema_changes_enabled
from collector.config import Settings, get_settings
from collector.db import schemas
from collector.db.database import get_db
from collector.db.registry import TableRegistry, get_table_registry
from collector.db.repositories import tables as repo_tables
from collector.errors import ProtectedResourceError

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/admin",
    tags=["admin"],
    dependencies=[Depends(require_admin_enabled)],
)


@router.get("/tables", response_model=schemas.TableList)
def list_tables(
    db: Session = Depends(get_db),
    registry: TableRegistry = Depends(get_table_registry),
):
    bind = db.get_bind()
    existing, missing = repo_tables.list_tables(bind, registry)
    return schemas.TableList(
        tables=existing,
        available=missing,
        read_only=repo_tables.check_read_only(bind),
    )


@router.post("/tables", response_model=schemas.OkResponse, dependencies=[Depends(require_schema_changes_enabled)])
def create_table(
    payload: schemas.TableCreate,
    db: Session = Depends(get_db),
    registry: TableRegistry = Depends(get_table_registry),
):
    table = registry.resolve(payload.name)
    repo_tables.create_table(db.get_bind(), table)
    return schemas.OkResponse()


@router.delete("/tables", response_model=schemas.OkResponse, dependencies=[Depends(require_schema_changes_enabled)])
def drop_table(
    name: Optional[str] = None,
    db: Session = Depends(get_db),
    registry: TableRegistry = Depends(get_table_registry),
):
    table = registry.resolve(name)
    if registry.is_protected(table.name):
        raise ProtectedResourceError(detail=f"Table '{table.name}' is provisioned by the service and cannot be dropped")
    repo_tables.drop_table(db.get_bind(), table)
    return schemas.OkResponse()


@router.get("/tables/{table}/rows", response_model=schemas.TableRows)
def get_table_rows(
    table: str,
    limit: Optional[int] = Query(default=None, ge=1, le=repo_tables.MAX_BIGINT),
    page: int = Query(default=1, ge=1, le=repo_tables.MAX_BIGINT),
    db: Session = Depends(get_db),
    registry: TableRegistry = Depends(get_table_registry),
    settings: Settings = Depends(get_settings),
):
    target = registry.resolve(table)
    effective_limit = min(limit or settings.admin_default_row_limit, settings.admin_max_row_limit)
    columns, rows = repo_tables.get_rows(db, target, limit=effective_limit, page=page)
    return schemas.TableRows(columns=columns, rows=rows, page=page, limit=effective_limit)


@router.get("/tables/{table}/schema", response_model=schemas.TableSchema)
def get_table_schema(
    table: str,
    db: Session = Depends(get_db),
    registry: TableRegistry = Depends(get_table_registry),
):
    target = registry.resolve(table)
    columns = repo_tables.get_table_columns(db, target)
    return schemas.TableSchema(table=target.name, columns=columns)


@router.get("/tables/{table}/search", response_model=schemas.TableRows)
def search_table(
    table: str,
    column: str,
    q: str = "",
    db: Session = Depends(get_db),
    registry: TableRegistry = Depends(get_table_registry),
):
    target = registry.resolve(table)
    columns, rows = repo_tables.search_rows(db, target, column, q)
    return schemas.TableRows(columns=columns, rows=rows, page=1, limit=repo_tables.SEARCH_RESULT_LIMIT)


@router.delete("/tables/{table}/rows/{row_id}", response_model=schemas.RowDeleteResult)
def delete_table_row(
    table: str,
    row_id: int = Path(ge=1, le=repo_tables.MAX_BIGINT),
    db: Session = Depends(get_db),
    registry: TableRegistry = Depends(get_table_registry),
):
    target = registry.resolve(table)
    deleted = repo_tables.delete_row(db, target, row_id)
    return schemas.RowDeleteResult(ok=True, deleted=deleted)
