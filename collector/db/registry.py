"""
Allow-list of tables reachable from the table browser.

External table identifiers are only ever used as lookup keys into this
registry; queries are built from the registered ``Table`` objects so the
dialect quotes identifiers itself.
"""
from __future__ import annotations

import logging
from functools import lru_cache
from typing import Dict, List, Optional, Set

from sqlalchemy import JSON, Column, DateTime, Integer, MetaData, Table, func

from collector.config import TABLE_NAME_PATTERN, Settings, get_settings
from collector.db import models
from collector.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


def validate_table_name(name: Optional[str]) -> str:
    if not name or not TABLE_NAME_PATTERN.match(name):
        raise ValidationError("invalid_table_name", f"Invalid table name: {name!r}")
    return name


class TableRegistry:
    """Maps external table identifiers to validated ``Table`` objects."""

    def __init__(self) -> None:
        self._tables: Dict[str, Table] = {}
        self._protected: Set[str] = set()
        # Generic data tables live outside the migrated ORM metadata.
        self.data_metadata = MetaData()

    def register(self, table: Table, *, protected: bool = False) -> Table:
        name = validate_table_name(table.name)
        self._tables[name] = table
        if protected:
            self._protected.add(name)
        return table

    def register_data_table(self, name: str) -> Table:
        """Register a generic ``(id, data, created_at)`` table."""
        name = validate_table_name(name)
        if name in self._tables:
            return self._tables[name]
        table = Table(
            name,
            self.data_metadata,
            Column("id", Integer, primary_key=True, autoincrement=False),
            Column("data", JSON, nullable=True),
            Column("created_at", DateTime, server_default=func.now()),
        )
        return self.register(table)

    def resolve(self, name: Optional[str]) -> Table:
        name = validate_table_name(name)
        table = self._tables.get(name)
        if table is None:
            raise NotFoundError("unknown_table", f"Table '{name}' is not registered")
        return table

    def is_protected(self, name: str) -> bool:
        return name in self._protected

    def names(self) -> List[str]:
        return sorted(self._tables)

    def data_tables(self) -> List[Table]:
        return [self._tables[name] for name in self.names() if self._tables[name].metadata is self.data_metadata]


def build_registry(settings: Settings) -> TableRegistry:
    registry = TableRegistry()
    registry.register(models.Submission.__table__, protected=True)
    for name in settings.admin_extra_tables:
        registry.register_data_table(name)
    logger.debug("table registry: %s", registry.names())
    return registry


@lru_cache(maxsize=None)
def get_table_registry() -> TableRegistry:
    return build_registry(get_settings())
