"""
Connection handling for batch-audit.

Connections are always handed out in autocommit mode: a batch save delimits
its own transaction through `SqlExecutor.transaction()`, so no implicit
transaction may be left open around it.

Two ways to get one:

- `get_sync_connection()` opens a dedicated connection (CLI, scripts), retrying
  transient failures with tenacity.
- `PoolManager().executor()` borrows a pooled connection wrapped in a
  `PsycopgExecutor`; the pool is created on first use and closed at exit.
"""

from __future__ import annotations

import atexit
import threading
from contextlib import contextmanager
from typing import Generator, Optional

import psycopg
from psycopg import Connection
from psycopg_pool import ConnectionPool
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from batchaudit.config import Settings, get_settings
from batchaudit.infrastructure.executor import PsycopgExecutor
from batchaudit.utils.logging import get_logger

log = get_logger(__name__)

_TRANSIENT = (psycopg.OperationalError, psycopg.InterfaceError)


def build_dsn(settings: Optional[Settings] = None) -> str:
    settings = settings or get_settings()
    return (
        f"postgresql://{settings.db_user}:{settings.db_password}"
        f"@{settings.db_host}:{settings.db_port}/{settings.db_name}"
    )


def apply_statement_timeout(cursor: psycopg.Cursor, timeout_ms: int) -> None:
    """Cap statement runtime for the cursor's session; 0 keeps the server default."""
    if timeout_ms > 0:
        cursor.execute(f"SET statement_timeout = {int(timeout_ms)}")


def _prepare(conn: Connection) -> None:
    conn.autocommit = True
    with conn.cursor() as cur:
        apply_statement_timeout(cur, get_settings().db_statement_timeout_ms)


class PoolManager:
    """
    Process-wide owner of the shared connection pool.

    Example
    -------
        with PoolManager().executor() as executor:
            BatchCoordinator(executor).save_all(context)
    """

    _instance: Optional["PoolManager"] = None
    _pool: Optional[ConnectionPool]
    _lock = threading.Lock()

    def __new__(cls) -> "PoolManager":
        with cls._lock:
            if cls._instance is None:
                instance = super().__new__(cls)
                instance._pool = None
                atexit.register(instance.close)
                cls._instance = instance
            return cls._instance

    def pool(self, conninfo: Optional[str] = None) -> ConnectionPool:
        """
        Return the pool, opening it on first call.

        Parameters
        ----------
        conninfo : str | None
            DSN used when the pool is created; ignored afterwards.
        """
        with self._lock:
            if self._pool is None:
                settings = get_settings()
                self._pool = ConnectionPool(
                    conninfo=conninfo or build_dsn(settings),
                    min_size=settings.db_pool_min_size,
                    max_size=settings.db_pool_max_size,
                    configure=_prepare,
                    open=True,
                )
                log.debug(
                    "Connection pool opened",
                    extra={"min_size": settings.db_pool_min_size, "max_size": settings.db_pool_max_size},
                )
            return self._pool

    @contextmanager
    def executor(self, conninfo: Optional[str] = None) -> Generator[PsycopgExecutor, None, None]:
        """Borrow a pooled connection for the duration of the block."""
        with self.pool(conninfo).connection() as conn:
            yield PsycopgExecutor(conn)

    def close(self) -> None:
        with self._lock:
            if self._pool is None:
                return
            try:
                self._pool.close()
            except psycopg.Error as exc:
                log.warning("Closing connection pool failed", extra={"error": str(exc)})
            finally:
                self._pool = None


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type(_TRANSIENT),
    reraise=True,
)
def get_sync_connection(dsn: Optional[str] = None) -> Connection:
    """
    Open a dedicated autocommit connection.

    Raises
    ------
    psycopg.OperationalError
        When the server is still unreachable after three attempts.
    """
    conn = psycopg.connect(dsn or build_dsn())
    _prepare(conn)
    return conn


__all__ = [
    "PoolManager",
    "apply_statement_timeout",
    "build_dsn",
    "get_sync_connection",
]
