"""
Pydantic request/response schemas, re-exported from their domain modules.
"""

from .submissions import SubmissionCreate, SubmissionAck
from .admin import (
    TableCreate,
    TableList,
    TableRows,
    ColumnInfo,
    TableSchema,
    RowDeleteResult,
    OkResponse,
)

__all__ = [
    "SubmissionCreate",
    "SubmissionAck",
    "TableCreate",
    "TableList",
    "TableRows",
    "ColumnInfo",
    "TableSchema",
    "RowDeleteResult",
    "OkResponse",
]
