"""
Read access to audit log tables.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Sequence

from psycopg import sql

from batchaudit.config import Settings, get_settings
from batchaudit.infrastructure.executor import SqlExecutor, table_identifier


class AuditHistory:
    """
    Fetch the logged changes of one source record.

    Example
    -------
        history = AuditHistory(PsycopgExecutor(conn))
        rows = history.fetch("documents_log", 42, attributes=["title"])
    """

    def __init__(
        self,
        executor: SqlExecutor,
        settings: Optional[Settings] = None,
        log_primary_key: Sequence[str] = ("id",),
    ) -> None:
        self.executor = executor
        self.settings = settings or get_settings()
        self.log_primary_key = tuple(log_primary_key)

    def build_query(
        self, log_table: str, doc_id: Any, attributes: Optional[Iterable[str]] = None
    ) -> tuple[sql.Composed, tuple[Any, ...]]:
        names = list(attributes or [])
        conditions = [
            sql.SQL("{} = %s").format(sql.Identifier(self.settings.audit_doc_id_field))
        ]
        params: List[Any] = [doc_id]
        if names:
            # Entries whose changed-attribute set overlaps the requested names.
            conditions.append(
                sql.SQL("{} && %s::text[]").format(
                    sql.Identifier(self.settings.audit_changed_attributes_field)
                )
            )
            params.append(names)
        # Entries sharing a timestamp keep their insertion order.
        order = [self.settings.audit_time_field, *self.log_primary_key]
        query = sql.SQL("SELECT * FROM {} WHERE {} ORDER BY {}").format(
            table_identifier(log_table),
            sql.SQL(" AND ").join(conditions),
            sql.SQL(", ").join(sql.Identifier(name) for name in order),
        )
        return query, tuple(params)

    def fetch(
        self, log_table: str, doc_id: Any, attributes: Optional[Iterable[str]] = None
    ) -> List[Dict[str, Any]]:
        query, params = self.build_query(log_table, doc_id, attributes)
        return self.executor.fetch_mappings(query, params)


__all__ = ["AuditHistory"]
