"""
Batch-wide optimistic version check.

One query per batch: the (primary key, expected version) pairs of every
persisted versioned record are supplied as a typed VALUES set and left-joined
to the live table. A pair is stale when its row is gone or carries another
version.
"""

from __future__ import annotations

from typing import Any, List, Mapping, Optional, Sequence, Tuple

from psycopg import sql

from batchaudit.domain.errors import StaleWrite, UnknownColumn
from batchaudit.domain.models import Record
from batchaudit.infrastructure.executor import SqlExecutor, table_identifier
from batchaudit.infrastructure.schema import SchemaIntrospector, storage_types
from batchaudit.utils.logging import get_logger

log = get_logger(__name__)


class StaleVersionChecker:
    def __init__(self, executor: SqlExecutor, schema: SchemaIntrospector) -> None:
        self.executor = executor
        self.schema = schema

    def build_query(
        self,
        records: Sequence[Record],
        table: str,
        expected_versions: Optional[Mapping[Record, Any]] = None,
    ) -> Optional[Tuple[sql.Composed, Tuple[Any, ...]]]:
        """
        Compose the check, or return None when no record participates.
        """
        participants = [r for r in records if not r.is_new and r.version_field]
        if not participants:
            return None
        expected_versions = expected_versions or {}
        primary_key = participants[0].primary_key
        version_field = participants[0].version_field
        types = storage_types(self.schema, table)
        columns = [*primary_key, version_field]
        missing = [name for name in columns if name not in types]
        if missing:
            raise UnknownColumn(table, missing)

        row = sql.SQL("({})").format(
            sql.SQL(", ").join(
                sql.SQL("{}::{}").format(sql.Placeholder(), sql.SQL(types[name])) for name in columns
            )
        )
        params: List[Any] = []
        for record in participants:
            params.extend(record.primary_key_values())
            params.append(expected_versions.get(record, record.version))

        query = sql.SQL(
            "SELECT {} FROM (VALUES {}) AS v({}) LEFT JOIN {} AS t ON {} "
            "WHERE {} IS NULL OR {} IS DISTINCT FROM {}"
        ).format(
            sql.SQL(", ").join(sql.Identifier("v", pk) for pk in primary_key),
            sql.SQL(", ").join([row] * len(participants)),
            sql.SQL(", ").join(sql.Identifier(name) for name in columns),
            table_identifier(table),
            sql.SQL(" AND ").join(
                sql.SQL("{} = {}").format(sql.Identifier("t", pk), sql.Identifier("v", pk))
                for pk in primary_key
            ),
            sql.Identifier("t", primary_key[0]),
            sql.Identifier("t", version_field),
            sql.Identifier("v", version_field),
        )
        return query, tuple(params)

    def check(
        self,
        records: Sequence[Record],
        table: str,
        expected_versions: Optional[Mapping[Record, Any]] = None,
    ) -> None:
        """
        Raise `StaleWrite` if any persisted record is out of date.
        """
        built = self.build_query(records, table, expected_versions)
        if built is None:
            return
        query, params = built
        stale = self.executor.fetch_all(query, params)
        log.debug(
            "[STALE CHECK] %s", table, extra={"table": table, "stale": len(stale)}
        )
        if stale:
            raise StaleWrite(table, [tuple(row) for row in stale])


__all__ = ["StaleVersionChecker"]
