"""
Schema introspection against the PostgreSQL catalog.

The batch engine needs each column's declared storage type to cast bound
values inside `VALUES` lists, and the serial sequence behind a key column when
generated keys are inferred from the sequence.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Protocol, runtime_checkable

from batchaudit.domain.models import ColumnInfo
from batchaudit.infrastructure.executor import SqlExecutor
from batchaudit.utils.logging import get_logger

log = get_logger(__name__)

_COLUMNS_SQL = """
SELECT a.attname,
       format_type(a.atttypid, a.atttypmod),
       NOT a.attnotnull
FROM pg_catalog.pg_attribute AS a
WHERE a.attrelid = %s::regclass
  AND a.attnum > 0
  AND NOT a.attisdropped
ORDER BY a.attnum
"""


@runtime_checkable
class SchemaIntrospector(Protocol):
    def columns(self, table: str) -> List[ColumnInfo]: ...

    def sequence_name(self, table: str, column: str) -> Optional[str]: ...


class PostgresSchemaIntrospector:
    """
    Catalog-backed introspector with a per-table cache.

    Table definitions are assumed stable for the lifetime of the instance;
    call `invalidate()` after DDL.
    """

    def __init__(self, executor: SqlExecutor) -> None:
        self._executor = executor
        self._columns: Dict[str, List[ColumnInfo]] = {}

    def columns(self, table: str) -> List[ColumnInfo]:
        if table not in self._columns:
            rows = self._executor.fetch_all(_COLUMNS_SQL, (table,))
            self._columns[table] = [
                ColumnInfo(name=name, storage_type=storage_type, nullable=nullable)
                for name, storage_type, nullable in rows
            ]
            log.debug(
                "Introspected table columns",
                extra={"table": table, "columns": len(self._columns[table])},
            )
        return self._columns[table]

    def sequence_name(self, table: str, column: str) -> Optional[str]:
        rows = self._executor.fetch_all("SELECT pg_get_serial_sequence(%s, %s)", (table, column))
        return rows[0][0] if rows else None

    def invalidate(self, table: Optional[str] = None) -> None:
        if table is None:
            self._columns.clear()
        else:
            self._columns.pop(table, None)


def storage_types(introspector: SchemaIntrospector, table: str) -> Dict[str, str]:
    """Map column name to declared storage type."""
    return {column.name: column.storage_type for column in introspector.columns(table)}


__all__ = ["PostgresSchemaIntrospector", "SchemaIntrospector", "storage_types"]
