from __future__ import annotations

import json
import sys
from typing import List, Optional

import psycopg
import typer

from batchaudit.audit.history import AuditHistory
from batchaudit.config import get_settings
from batchaudit.infrastructure.db_factory import get_sync_connection
from batchaudit.infrastructure.executor import PsycopgExecutor
from batchaudit.reporter import print_history
from batchaudit.utils.logging import configure_logging

app = typer.Typer(help="batch-audit operator CLI.")


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    typer.echo(
        f"DB={settings.db_user}@{settings.db_host}:{settings.db_port}/{settings.db_name} | "
        f"log_suffix={settings.audit_log_table_suffix} doc_id={settings.audit_doc_id_field} "
        f"time={settings.audit_time_field} version={settings.audit_version_field} "
        f"keys={settings.batch_key_assignment}"
    )


@app.command()
def history(
    table: str = typer.Argument(..., help="Source table, e.g. documents."),
    doc_id: str = typer.Argument(..., help="Primary key of the source record."),
    attribute: Optional[List[str]] = typer.Option(
        None,
        "--attribute",
        "-a",
        help="Only entries that changed this attribute (repeatable).",
    ),
    log_table: Optional[str] = typer.Option(
        None,
        "--log-table",
        help="Log table name (default: TABLE + AUDIT_LOG_TABLE_SUFFIX).",
    ),
    as_json: bool = typer.Option(False, "--json", help="Print raw rows as JSON."),
) -> None:
    """
    Print the audit trail of one record.
    """
    settings = get_settings()
    configure_logging()
    target = log_table or f"{table}{settings.audit_log_table_suffix}"

    try:
        conn = get_sync_connection()
    except psycopg.OperationalError as exc:
        typer.echo(f"Cannot connect to the database: {exc}", err=True)
        raise typer.Exit(code=2)
    try:
        rows = AuditHistory(PsycopgExecutor(conn), settings).fetch(target, doc_id, attribute)
    finally:
        conn.close()

    if as_json:
        typer.echo(json.dumps(rows, indent=2, default=str))
        return
    print_history(rows, title=f"{target} for {settings.audit_doc_id_field}={doc_id}")


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
