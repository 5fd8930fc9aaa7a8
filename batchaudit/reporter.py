from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from rich import box
from rich.console import Console
from rich.table import Table

from batchaudit.config import Settings, get_settings


def _render(value: Any) -> str:
    if value is None:
        return "[dim]-[/dim]"
    if isinstance(value, datetime):
        return value.isoformat(sep=" ", timespec="seconds")
    if isinstance(value, (list, tuple, set)):
        return ", ".join(str(item) for item in value)
    return str(value)


def history_columns(
    rows: Sequence[Dict[str, Any]], settings: Optional[Settings] = None
) -> List[str]:
    """
    Order log-table columns for display: bookkeeping first, mirrored attributes after.
    """
    settings = settings or get_settings()
    leading = [
        "id",
        settings.audit_doc_id_field,
        settings.audit_time_field,
        settings.audit_changed_by_field,
        settings.audit_changed_attributes_field,
        settings.audit_version_field,
    ]
    seen = list(dict.fromkeys(name for row in rows for name in row))
    ordered = [name for name in leading if name in seen]
    return ordered + [name for name in seen if name not in leading]


def print_history(
    rows: List[Dict[str, Any]],
    title: str = "Audit history",
    console: Optional[Console] = None,
    settings: Optional[Settings] = None,
) -> None:
    """
    Render audit log rows as a rich table, oldest change first.
    """
    console = console or Console()

    if not rows:
        console.print("[yellow]No audit entries found.[/yellow]")
        return

    settings = settings or get_settings()
    columns = history_columns(rows, settings)
    changed_field = settings.audit_changed_attributes_field

    table = Table(title=title, box=box.ROUNDED, caption=f"{len(rows)} entries")
    for name in columns:
        if name == changed_field:
            table.add_column(name, style="bold yellow")
        elif name in ("id", settings.audit_doc_id_field):
            table.add_column(name, justify="right", style="cyan", no_wrap=True)
        elif name == settings.audit_time_field:
            table.add_column(name, style="green", no_wrap=True)
        else:
            table.add_column(name)

    for row in rows:
        table.add_row(*(_render(row.get(name)) for name in columns))

    console.print(table)


__all__ = ["history_columns", "print_history"]
