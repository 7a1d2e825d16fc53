from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field


class TableCreate(BaseModel):
    name: str


class TableList(BaseModel):
    tables: List[str]
    available: List[str] = []
    read_only: bool = Field(default=False, alias="readOnly")

    model_config = ConfigDict(populate_by_name=True)


class TableRows(BaseModel):
    columns: List[str]
    rows: List[Dict[str, Any]]
    page: int = 1
    limit: int = 100


class ColumnInfo(BaseModel):
    name: str
    type: str
    nullable: bool
    primary_key: bool = False


class TableSchema(BaseModel):
    table: str
    columns: List[ColumnInfo]


class RowDeleteResult(BaseModel):
    ok: bool = True
    deleted: int = 0


class OkResponse(BaseModel):
    ok: bool = True
