from __future__ import annotations

from datetime import datetime

from rich.console import Console

from batchaudit.config import Settings
from batchaudit.reporter import history_columns, print_history

ROWS = [
    {
        "name": "a",
        "version": "42",
        "id": 1,
        "changed_attributes": ["name", "atime", "version"],
        "atime": datetime(2024, 5, 1, 9, 30, 15),
        "doc_id": 7,
        "changed_by": None,
    }
]


def _console() -> Console:
    return Console(record=True, width=200, color_system=None)


def test_bookkeeping_columns_come_first() -> None:
    columns = history_columns(ROWS, Settings())

    assert columns == [
        "id",
        "doc_id",
        "atime",
        "changed_by",
        "changed_attributes",
        "version",
        "name",
    ]


def test_print_history_renders_rows() -> None:
    console = _console()

    print_history(ROWS, title="documents_log", console=console, settings=Settings())

    text = console.export_text()
    assert "documents_log" in text
    assert "name, atime, version" in text
    assert "2024-05-01 09:30:15" in text
    assert "1 entries" in text


def test_print_history_without_rows() -> None:
    console = _console()

    print_history([], console=console)

    assert "No audit entries found." in console.export_text()
