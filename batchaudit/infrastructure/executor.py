"""
SQL execution layer used by the batch engine.

`SqlExecutor` is the narrow interface the coordinator, stale checker and audit
reader depend on; `PsycopgExecutor` implements it over one psycopg connection.
Tests substitute an in-memory fake with the same methods.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import (
    Any,
    ContextManager,
    Dict,
    Generator,
    List,
    Optional,
    Protocol,
    Sequence,
    Tuple,
    Union,
    runtime_checkable,
)

from psycopg import Connection, sql
from psycopg.rows import dict_row

Query = Union[str, sql.Composable]
Params = Optional[Sequence[Any]]


def table_identifier(table: str) -> sql.Identifier:
    """Quote a possibly schema-qualified table name ("public.documents")."""
    return sql.Identifier(*table.split("."))


@runtime_checkable
class SqlExecutor(Protocol):
    """
    Statement execution contract.

    `execute` returns the affected row count; `transaction` opens an atomic
    scope (nested scopes become savepoints).
    """

    def execute(self, query: Query, params: Params = None) -> int: ...

    def fetch_all(self, query: Query, params: Params = None) -> List[Tuple[Any, ...]]: ...

    def fetch_mappings(self, query: Query, params: Params = None) -> List[Dict[str, Any]]: ...

    def last_insert_id(self, sequence: str) -> int: ...

    def transaction(self) -> ContextManager[None]: ...


class PsycopgExecutor:
    """
    `SqlExecutor` over a psycopg connection.

    The connection should be in autocommit mode (as handed out by
    `batchaudit.infrastructure.db_factory`) so that `transaction()` delimits
    the only open transaction.
    """

    def __init__(self, conn: Connection) -> None:
        self.conn = conn

    def execute(self, query: Query, params: Params = None) -> int:
        with self.conn.cursor() as cur:
            cur.execute(query, params)
            return cur.rowcount

    def fetch_all(self, query: Query, params: Params = None) -> List[Tuple[Any, ...]]:
        with self.conn.cursor() as cur:
            cur.execute(query, params)
            return list(cur.fetchall())

    def fetch_mappings(self, query: Query, params: Params = None) -> List[Dict[str, Any]]:
        with self.conn.cursor(row_factory=dict_row) as cur:
            cur.execute(query, params)
            return list(cur.fetchall())

    def last_insert_id(self, sequence: str) -> int:
        with self.conn.cursor() as cur:
            cur.execute("SELECT currval(%s::regclass)", (sequence,))
            row = cur.fetchone()
        return int(row[0])

    @contextmanager
    def transaction(self) -> Generator[None, None, None]:
        with self.conn.transaction():
            yield


__all__ = ["PsycopgExecutor", "Query", "SqlExecutor", "table_identifier"]
