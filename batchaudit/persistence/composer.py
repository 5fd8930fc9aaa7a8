"""
Bulk statement composition for a batch of records.

A batch becomes at most two statements: one multi-row INSERT for new records
and one UPDATE ... FROM (VALUES ...) for persisted ones. Both use the union of
attribute names across the batch, in first-seen order; a record lacking an
attribute contributes NULL in that slot.

Every value is bound as a parameter and cast to its column's declared type
(`%s::numeric(12,2)`), which keeps VALUES lists unambiguous when a column
holds only NULLs.

Example of the update shape::

    UPDATE "documents" AS t
    SET "title" = v."title", "version" = v."version"
    FROM (VALUES (%s::integer, %s::text, %s::bigint, %s::bigint))
        AS v("id", "title", "version", "__expected_version")
    WHERE t."id" = v."id"
      AND t."version" IS NOT DISTINCT FROM v."__expected_version"
"""

from __future__ import annotations

from dataclasses import dataclass
from itertools import chain
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from psycopg import sql

from batchaudit.domain.errors import UnknownColumn
from batchaudit.domain.models import Record
from batchaudit.infrastructure.executor import table_identifier
from batchaudit.infrastructure.schema import SchemaIntrospector, storage_types

EXPECTED_VERSION_COLUMN = "__expected_version"


@dataclass(frozen=True)
class InsertPlan:
    table: str
    columns: Tuple[str, ...]
    records: Tuple[Record, ...]
    query: sql.Composed
    params: Tuple[Any, ...]
    returning: Tuple[str, ...] = ()


@dataclass(frozen=True)
class UpdatePlan:
    table: str
    columns: Tuple[str, ...]
    records: Tuple[Record, ...]
    query: sql.Composed
    params: Tuple[Any, ...]
    version_field: Optional[str] = None


def attribute_union(records: Sequence[Record]) -> Tuple[str, ...]:
    """All attribute names present on any record, in first-seen order."""
    return tuple(dict.fromkeys(chain.from_iterable(r.attributes for r in records)))


def _typed_row(casts: Sequence[str]) -> sql.Composed:
    cells = [sql.SQL("{}::{}").format(sql.Placeholder(), sql.SQL(cast)) for cast in casts]
    return sql.SQL("({})").format(sql.SQL(", ").join(cells))


def _identifiers(names: Sequence[str], alias: Optional[str] = None) -> sql.Composed:
    if alias is None:
        return sql.SQL(", ").join(sql.Identifier(name) for name in names)
    return sql.SQL(", ").join(sql.Identifier(alias, name) for name in names)


def _join_on(primary_key: Sequence[str]) -> sql.Composed:
    return sql.SQL(" AND ").join(
        sql.SQL("{} = {}").format(sql.Identifier("t", pk), sql.Identifier("v", pk))
        for pk in primary_key
    )


class BulkWriteComposer:
    """
    Build the INSERT and UPDATE plans for one homogeneous batch.

    Parameters
    ----------
    schema : SchemaIntrospector
        Source of column storage types.
    returning : bool
        Whether the INSERT reports generated primary keys row by row.
    """

    def __init__(self, schema: SchemaIntrospector, returning: bool = True) -> None:
        self.schema = schema
        self.returning = returning

    def compose(
        self,
        records: Sequence[Record],
        table: str,
        primary_key: Sequence[str],
        expected_versions: Optional[Mapping[Record, Any]] = None,
    ) -> Tuple[Optional[InsertPlan], Optional[UpdatePlan]]:
        union = attribute_union(records)
        types = storage_types(self.schema, table)
        unknown = [name for name in union if name not in types]
        if unknown:
            raise UnknownColumn(table, unknown)

        inserts = [record for record in records if record.is_new]
        updates = [record for record in records if not record.is_new]

        insert_plan = self._insert_plan(inserts, table, union, primary_key, types) if inserts else None
        update_plan = (
            self._update_plan(updates, table, union, primary_key, types, expected_versions or {})
            if updates
            else None
        )
        return insert_plan, update_plan

    def _insert_plan(
        self,
        records: List[Record],
        table: str,
        union: Tuple[str, ...],
        primary_key: Sequence[str],
        types: Dict[str, str],
    ) -> InsertPlan:
        columns = tuple(name for name in union if name not in primary_key)
        returning = tuple(primary_key) if self.returning else ()

        if columns:
            row = _typed_row([types[name] for name in columns])
            query = sql.SQL("INSERT INTO {} ({}) VALUES {}").format(
                table_identifier(table),
                _identifiers(columns),
                sql.SQL(", ").join([row] * len(records)),
            )
            params = tuple(record.get(name) for record in records for name in columns)
        else:
            # Nothing but server-generated keys: let every column default.
            query = sql.SQL("INSERT INTO {} ({}) VALUES {}").format(
                table_identifier(table),
                sql.Identifier(primary_key[0]),
                sql.SQL(", ").join([sql.SQL("(DEFAULT)")] * len(records)),
            )
            params = ()

        if returning:
            query = sql.Composed([query, sql.SQL(" RETURNING {}").format(_identifiers(returning))])
        return InsertPlan(
            table=table,
            columns=columns,
            records=tuple(records),
            query=query,
            params=params,
            returning=returning,
        )

    def _update_plan(
        self,
        records: List[Record],
        table: str,
        union: Tuple[str, ...],
        primary_key: Sequence[str],
        types: Dict[str, str],
        expected_versions: Mapping[Record, Any],
    ) -> Optional[UpdatePlan]:
        assignments = [name for name in union if name not in primary_key]
        if not assignments:
            return None
        version_field = records[0].version_field
        versioned = bool(version_field) and version_field in types

        value_columns = list(union)
        casts = [types[name] for name in union]
        if versioned:
            value_columns.append(EXPECTED_VERSION_COLUMN)
            casts.append(types[version_field])

        params: List[Any] = []
        for record in records:
            params.extend(record.get(name) for name in union)
            if versioned:
                params.append(expected_versions.get(record, record.version))

        where = _join_on(primary_key)
        if versioned:
            where = sql.SQL("{} AND {} IS NOT DISTINCT FROM {}").format(
                where,
                sql.Identifier("t", version_field),
                sql.Identifier("v", EXPECTED_VERSION_COLUMN),
            )

        query = sql.SQL("UPDATE {} AS t SET {} FROM (VALUES {}) AS v({}) WHERE {}").format(
            table_identifier(table),
            sql.SQL(", ").join(
                sql.SQL("{} = {}").format(sql.Identifier(name), sql.Identifier("v", name))
                for name in assignments
            ),
            sql.SQL(", ").join([_typed_row(casts)] * len(records)),
            _identifiers(value_columns),
            where,
        )
        return UpdatePlan(
            table=table,
            columns=union,
            records=tuple(records),
            query=query,
            params=tuple(params),
            version_field=version_field if versioned else None,
        )


__all__ = [
    "EXPECTED_VERSION_COLUMN",
    "BulkWriteComposer",
    "InsertPlan",
    "UpdatePlan",
    "attribute_union",
]
