"""
Infrastructure package for batch-audit.

Centralizes database concerns (connection factories, pooling, statement
execution, catalog introspection). Keep this layer focused on I/O and resource
management, decoupled from batch orchestration logic.
"""

from batchaudit.infrastructure.db_factory import (
    PoolManager,
    apply_statement_timeout,
    build_dsn,
    get_sync_connection,
)
from batchaudit.infrastructure.executor import PsycopgExecutor, SqlExecutor, table_identifier
from batchaudit.infrastructure.schema import (
    PostgresSchemaIntrospector,
    SchemaIntrospector,
    storage_types,
)

__all__ = [
    "PoolManager",
    "PostgresSchemaIntrospector",
    "PsycopgExecutor",
    "SchemaIntrospector",
    "SqlExecutor",
    "apply_statement_timeout",
    "build_dsn",
    "get_sync_connection",
    "storage_types",
    "table_identifier",
]
