"""
Pytest configuration for batch-audit.

Provides fixtures for:
- Database connection management and schema setup (integration tests)
- An in-memory SQL executor and schema introspector (unit tests)
- Settings override for integration tests
"""

from __future__ import annotations

import os
import re
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Generator, List, Optional, Sequence, Tuple

import psycopg
import pytest

from batchaudit.config import Settings
from batchaudit.domain.models import ColumnInfo
from batchaudit.infrastructure.executor import PsycopgExecutor

DOCUMENT_COLUMNS: List[Tuple[str, str]] = [
    ("id", "bigint"),
    ("name", "text"),
    ("category", "text"),
    ("amount", "numeric(12,2)"),
    ("is_active", "boolean"),
    ("atime", "timestamp with time zone"),
    ("version", "bigint"),
]

DOCUMENT_LOG_COLUMNS: List[Tuple[str, str]] = [
    ("id", "bigint"),
    ("doc_id", "bigint"),
    ("name", "text"),
    ("category", "text"),
    ("amount", "numeric(12,2)"),
    ("changed_attributes", "text[]"),
    ("changed_by", "text"),
    ("atime", "timestamp with time zone"),
    ("version", "character varying(50)"),
]

_TABLE_IN_STATEMENT = re.compile(r'^(?:INSERT INTO|UPDATE) "([^"]+)"(?:\."([^"]+)")?')


class FakeSchema:
    """Introspector over fixed table definitions."""

    def __init__(self, tables: Optional[Dict[str, List[Tuple[str, str]]]] = None) -> None:
        self.tables = tables or {
            "documents": DOCUMENT_COLUMNS,
            "documents_log": DOCUMENT_LOG_COLUMNS,
        }

    def columns(self, table: str) -> List[ColumnInfo]:
        return [
            ColumnInfo(name=name, storage_type=storage_type)
            for name, storage_type in self.tables[table]
        ]

    def sequence_name(self, table: str, column: str) -> Optional[str]:
        return f"public.{table}_{column}_seq"


class FakeExecutor:
    """
    Records every statement and simulates the effects the coordinator relies on.

    INSERTs hand out sequential ids per table. UPDATEs report one affected row
    per VALUES row unless `update_rowcount` is set. Stale checks return
    `stale_rows`. Anything matching `fail_on` raises `psycopg.DatabaseError`.
    """

    def __init__(self) -> None:
        self.statements: List[Tuple[str, Tuple[Any, ...]]] = []
        self.next_ids: Dict[str, int] = {}
        self.stale_rows: List[Tuple[Any, ...]] = []
        self.update_rowcount: Optional[int] = None
        self.insert_rowcount: Optional[int] = None
        self.mapping_rows: List[Dict[str, Any]] = []
        self.fail_on: Optional[str] = None
        self.depth = 0
        self.commits = 0
        self.rollbacks = 0

    # helpers -------------------------------------------------------------

    def _record(self, query: Any, params: Optional[Sequence[Any]]) -> str:
        text = query if isinstance(query, str) else query.as_string()
        self.statements.append((text, tuple(params or ())))
        if self.fail_on and self.fail_on in text:
            raise psycopg.DatabaseError(f"simulated failure on {self.fail_on}")
        return text

    @staticmethod
    def _rows_in(text: str) -> int:
        return text.count("(%s::") + text.count("(DEFAULT)")

    @staticmethod
    def _table_of(text: str) -> str:
        match = _TABLE_IN_STATEMENT.match(text)
        if match is None:
            return ""
        return match.group(2) or match.group(1)

    def _allocate(self, table: str, count: int) -> List[int]:
        start = self.next_ids.get(table, 1)
        self.next_ids[table] = start + count
        return list(range(start, start + count))

    def sql_of(self, prefix: str) -> List[str]:
        return [text for text, _ in self.statements if text.startswith(prefix)]

    def params_of(self, prefix: str) -> List[Tuple[Any, ...]]:
        return [params for text, params in self.statements if text.startswith(prefix)]

    # SqlExecutor ----------------------------------------------------------

    def execute(self, query: Any, params: Optional[Sequence[Any]] = None) -> int:
        text = self._record(query, params)
        if text.startswith("INSERT"):
            rows = self._rows_in(text)
            self._allocate(self._table_of(text), rows)
            return rows if self.insert_rowcount is None else self.insert_rowcount
        if text.startswith("UPDATE"):
            rows = self._rows_in(text)
            return rows if self.update_rowcount is None else self.update_rowcount
        return 0

    def fetch_all(self, query: Any, params: Optional[Sequence[Any]] = None) -> List[Tuple[Any, ...]]:
        text = self._record(query, params)
        if text.startswith("INSERT"):
            ids = self._allocate(self._table_of(text), self._rows_in(text))
            if self.insert_rowcount is not None:
                ids = ids[: self.insert_rowcount]
            return [(value,) for value in ids]
        if text.startswith("SELECT"):
            return list(self.stale_rows)
        return []

    def fetch_mappings(
        self, query: Any, params: Optional[Sequence[Any]] = None
    ) -> List[Dict[str, Any]]:
        self._record(query, params)
        return list(self.mapping_rows)

    def last_insert_id(self, sequence: str) -> int:
        table = sequence.split(".")[-1].rsplit("_", 2)[0]
        return self.next_ids.get(table, 1) - 1

    @contextmanager
    def transaction(self) -> Generator[None, None, None]:
        self.depth += 1
        try:
            yield
        except BaseException:
            self.rollbacks += 1
            raise
        else:
            self.commits += 1
        finally:
            self.depth -= 1


@pytest.fixture
def fake_schema() -> FakeSchema:
    return FakeSchema()


@pytest.fixture
def fake_executor() -> FakeExecutor:
    return FakeExecutor()


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """
    Settings fixture with test-specific overrides.

    Can be overridden via environment variables in CI or local testing.
    """
    return Settings(
        db_host=os.getenv("DB_HOST", "localhost"),
        db_port=int(os.getenv("DB_PORT", "5432")),
        db_user=os.getenv("DB_USER", "postgres"),
        db_password=os.getenv("DB_PASSWORD", "postgres"),
        db_name=os.getenv("DB_NAME", "batch_audit"),
        log_level="DEBUG",
    )


@pytest.fixture(scope="session")
def test_dsn(test_settings: Settings) -> str:
    """
    Database connection string for tests.
    """
    return (
        f"postgresql://{test_settings.db_user}:{test_settings.db_password}"
        f"@{test_settings.db_host}:{test_settings.db_port}/{test_settings.db_name}"
    )


@pytest.fixture(scope="session")
def db_connection_available(test_dsn: str) -> bool:
    """
    Check if database is reachable.

    Used to conditionally skip integration tests when DB is not available.
    """
    try:
        with psycopg.connect(test_dsn, connect_timeout=5) as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1;")
                cur.fetchone()
        return True
    except psycopg.Error:
        return False


@pytest.fixture(scope="session")
def db_connection(
    test_dsn: str, db_connection_available: bool
) -> Generator[psycopg.Connection, None, None]:
    """
    Provide a session-scoped autocommit connection for integration tests.

    Skips tests if database is not available.
    """
    if not db_connection_available:
        pytest.skip("Database not available for integration tests")

    conn = psycopg.connect(test_dsn, autocommit=True)
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture(scope="session")
def db_schema_initialized(db_connection: psycopg.Connection) -> bool:
    """
    Ensure the demo tables exist (db/init.sql is idempotent).
    """
    init_sql_path = Path(__file__).parent.parent / "db" / "init.sql"
    with db_connection.cursor() as cur:
        cur.execute(init_sql_path.read_text(encoding="utf-8"))
    return True


@pytest.fixture(scope="function")
def clean_tables(db_connection: psycopg.Connection, db_schema_initialized: bool):
    """
    Empty the documents and log tables around each test function.
    """
    truncate = "TRUNCATE TABLE public.documents, public.documents_log RESTART IDENTITY CASCADE;"
    with db_connection.cursor() as cur:
        cur.execute(truncate)
    yield
    with db_connection.cursor() as cur:
        cur.execute(truncate)


@pytest.fixture(scope="function")
def db_executor(db_connection: psycopg.Connection, clean_tables) -> PsycopgExecutor:
    return PsycopgExecutor(db_connection)
