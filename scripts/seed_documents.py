"""
Seed script for batch-audit.

Generates deterministic pseudo-random documents and saves them through the
batch engine with auditing enabled, so every seeded row also gets its first
audit-log entry. Optionally edits a share of them afterwards to build history.
"""

from __future__ import annotations

import random
import sys
import time
from typing import Any, Dict, List

import typer

from batchaudit.audit.composer import attach_audit_log
from batchaudit.config import get_settings
from batchaudit.domain.models import Record
from batchaudit.infrastructure.db_factory import PoolManager, build_dsn
from batchaudit.infrastructure.executor import PsycopgExecutor
from batchaudit.persistence.context import BatchContext
from batchaudit.persistence.coordinator import BatchCoordinator
from batchaudit.utils.logging import configure_logging

app = typer.Typer(help="Seed demo documents through the batch engine (with audit log).")

TABLE = "documents"
LOG_ATTRIBUTES = ["name", "category", "amount", "atime", "version"]
CATEGORIES = ["alpha", "beta", "gamma", "delta"]


def _generate_documents(rows: int, seed: int) -> List[Dict[str, Any]]:
    rng = random.Random(seed)
    documents: List[Dict[str, Any]] = []
    for i in range(rows):
        documents.append(
            {
                "name": f"doc-{i:06d}",
                "category": rng.choice(CATEGORIES),
                "amount": round(rng.uniform(1, 10_000), 2),
                "is_active": rng.choice([True, False]),
            }
        )
    return documents


def _audited_coordinator(executor: PsycopgExecutor) -> BatchCoordinator:
    coordinator = BatchCoordinator(executor)
    attach_audit_log(coordinator, TABLE, LOG_ATTRIBUTES)
    return coordinator


def _seed(dsn: str, documents: List[Dict[str, Any]], batch_size: int) -> List[Record]:
    """Insert `documents` in batches of `batch_size`; returns the saved records."""
    settings = get_settings()
    saved: List[Record] = []
    with PoolManager().executor(dsn) as executor:
        coordinator = _audited_coordinator(executor)
        for offset in range(0, len(documents), batch_size):
            context = BatchContext(TABLE)
            chunk = [
                Record.new(TABLE, doc, version_field=settings.audit_version_field)
                for doc in documents[offset : offset + batch_size]
            ]
            coordinator.save_all(context, chunk)
            saved.extend(chunk)
    return saved


def _edit(dsn: str, records: List[Record], share: float, seed: int) -> int:
    """Change the category of a random share of `records`; returns how many."""
    rng = random.Random(seed)
    chosen = [record for record in records if rng.random() < share]
    if not chosen:
        return 0
    for record in chosen:
        record.set("category", rng.choice(CATEGORIES))
    with PoolManager().executor(dsn) as executor:
        _audited_coordinator(executor).save_all(BatchContext(TABLE), chosen)
    return len(chosen)


@app.command()
def main(
    rows: int = typer.Option(
        1_000,
        "--rows",
        "-r",
        help="Number of documents to generate.",
    ),
    batch_size: int = typer.Option(
        500,
        "--batch-size",
        "-b",
        help="Records per batch save.",
    ),
    seed: int = typer.Option(
        42,
        "--seed",
        help="Deterministic RNG seed.",
    ),
    edit_share: float = typer.Option(
        0.0,
        "--edit-share",
        help="Share of documents (0..1) to edit once after seeding.",
    ),
    dsn: str | None = typer.Option(
        None,
        "--dsn",
        help="Optional DSN override for Postgres.",
    ),
) -> None:
    """
    Generate documents and save them through the batch engine.
    """
    settings = get_settings()
    configure_logging()
    conn_dsn = dsn or build_dsn(settings)

    start = time.perf_counter()
    typer.echo(f"Seeding {rows:,} documents (batch={batch_size}, seed={seed})")
    records = _seed(conn_dsn, _generate_documents(rows, seed), batch_size)
    duration = time.perf_counter() - start
    typer.echo(f"Saved {len(records):,} documents in {duration:.2f}s")

    if edit_share > 0:
        edited = _edit(conn_dsn, records, edit_share, seed)
        typer.echo(f"Edited {edited:,} documents.")


if __name__ == "__main__":
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)
