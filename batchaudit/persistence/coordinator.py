"""
Batch coordinator: saves every record of a `BatchContext` with two statements.

Lifecycle of `save_all`::

    COLLECTING -> VALIDATING -> PRE_SAVE_HOOKS -> STALE_CHECKING -> WRITING
        -> KEY_RECONCILIATION -> POST_SAVE_HOOKS -> FLUSHED

Any veto or error moves to ABORTED. Nothing touches storage before WRITING.
From WRITING onwards everything, the batch-complete observers included, runs
in one transaction; on failure it is rolled back and every record of the batch
is restored to its state before the save. The context is emptied whatever the
outcome.

Usage:
    coordinator = BatchCoordinator(PsycopgExecutor(conn))
    context = BatchContext("documents")
    context.enqueue([doc_a, doc_b])
    coordinator.save_all(context)
"""

from __future__ import annotations

import enum
import time
from contextlib import contextmanager
from types import MappingProxyType
from typing import Any, Dict, Generator, Iterable, List, Optional, Sequence, Tuple

import psycopg

from batchaudit.config import get_settings
from batchaudit.domain.errors import (
    BatchError,
    ExecutionFailed,
    HookVetoed,
    StaleWrite,
    ValidationFailed,
)
from batchaudit.domain.models import Record, RecordSnapshot
from batchaudit.domain.versioning import VersionTokenGenerator
from batchaudit.infrastructure.executor import SqlExecutor
from batchaudit.infrastructure.schema import PostgresSchemaIntrospector, SchemaIntrospector
from batchaudit.persistence.composer import BulkWriteComposer, InsertPlan, UpdatePlan
from batchaudit.persistence.context import BatchContext
from batchaudit.persistence.hooks import (
    AfterSaveEvent,
    BatchObserver,
    BatchReport,
    BeforeSaveEvent,
    HookOutcome,
)
from batchaudit.persistence.stale_check import StaleVersionChecker
from batchaudit.utils.logging import get_logger

log = get_logger(__name__)


class BatchState(str, enum.Enum):
    EMPTY = "empty"
    COLLECTING = "collecting"
    VALIDATING = "validating"
    PRE_SAVE_HOOKS = "pre_save_hooks"
    STALE_CHECKING = "stale_checking"
    WRITING = "writing"
    KEY_RECONCILIATION = "key_reconciliation"
    POST_SAVE_HOOKS = "post_save_hooks"
    FLUSHED = "flushed"
    ABORTED = "aborted"


class BatchCoordinator:
    """
    Persist batches of records and announce each lifecycle point to observers.

    Parameters
    ----------
    executor : SqlExecutor
        Statement execution; its `transaction()` scopes the write phase.
    schema : SchemaIntrospector | None
        Column types and sequences; defaults to catalog introspection over `executor`.
    observers : iterable of BatchObserver
        Notified in registration order.
    versions : VersionTokenGenerator | None
        Source of fresh version tokens.
    key_assignment : "returning" | "sequence" | None
        How generated primary keys are read back after the INSERT
        (default from settings).
    """

    def __init__(
        self,
        executor: SqlExecutor,
        schema: Optional[SchemaIntrospector] = None,
        observers: Iterable[BatchObserver] = (),
        versions: Optional[VersionTokenGenerator] = None,
        key_assignment: Optional[str] = None,
    ) -> None:
        self.executor = executor
        self.schema = schema or PostgresSchemaIntrospector(executor)
        self.observers: List[BatchObserver] = list(observers)
        self.versions = versions or VersionTokenGenerator()
        self.key_assignment = key_assignment or get_settings().batch_key_assignment
        if self.key_assignment not in ("returning", "sequence"):
            raise ValueError(f"Unknown key assignment '{self.key_assignment}'")
        self.composer = BulkWriteComposer(self.schema, returning=self.key_assignment == "returning")
        self.stale_checker = StaleVersionChecker(executor, self.schema)
        self.state = BatchState.EMPTY

    def add_observer(self, observer: BatchObserver) -> None:
        self.observers.append(observer)

    def save(self, record: Record, validate: bool = True, raise_on_veto: bool = False) -> bool:
        """Save a single record through the batch protocol."""
        context = BatchContext(record.table)
        return self.save_all(context, [record], validate=validate, raise_on_veto=raise_on_veto)

    def save_all(
        self,
        context: BatchContext,
        records: Optional[Iterable[Record]] = None,
        validate: bool = True,
        raise_on_veto: bool = False,
    ) -> bool:
        """
        Save every record queued on `context` (plus `records`, if given).

        Returns
        -------
        bool
            True once the batch is written; False when an observer vetoed it
            (or raises `HookVetoed` if `raise_on_veto`).

        Raises
        ------
        ValidationFailed, StaleWrite, ExecutionFailed, LogWriteFailed, UnknownColumn
        """
        try:
            if records is not None:
                context.enqueue(records)
            self.state = BatchState.COLLECTING
            return self._save(context, validate, raise_on_veto)
        except BaseException:
            self.state = BatchState.ABORTED
            raise
        finally:
            context.clear()

    def _save(self, context: BatchContext, validate: bool, raise_on_veto: bool) -> bool:
        batch = context.records
        table = context.table
        if not batch:
            log.debug("Nothing to save", extra={"table": table})
            self.state = BatchState.FLUSHED
            return True

        start = time.perf_counter()
        log.info(f"[BATCH START] {table}", extra={"table": table, "records": len(batch)})

        for observer in self.observers:
            if observer.on_before_batch(context) is HookOutcome.ABORT:
                return self._vetoed(table, "before batch", None, raise_on_veto)

        self.state = BatchState.VALIDATING
        if validate:
            for record in batch:
                if not record.validate():
                    log.warning(
                        f"[BATCH ABORTED] {table}: validation failed",
                        extra={"table": table, "errors": record.errors},
                    )
                    raise ValidationFailed(record, dict(record.errors))

        snapshots = [(record, record.snapshot()) for record in batch]
        try:
            self.state = BatchState.PRE_SAVE_HOOKS
            expected_versions: Dict[Record, Any] = {}
            for record in batch:
                event = BeforeSaveEvent(record=record, insert=record.is_new)
                for observer in self.observers:
                    if observer.on_before_save(event) is HookOutcome.ABORT:
                        _restore(snapshots)
                        return self._vetoed(table, "before save", record, raise_on_veto)
                if record.version_field:
                    if not record.is_new:
                        expected_versions[record] = record.version
                    record.set(record.version_field, self.versions.next(record.version))

            self.state = BatchState.STALE_CHECKING
            self.stale_checker.check(batch, table, expected_versions)

            primary_key = batch[0].primary_key
            insert_plan, update_plan = self.composer.compose(
                batch, table, primary_key, expected_versions
            )

            self.state = BatchState.WRITING
            with self.executor.transaction():
                keys = self._execute_insert(insert_plan, primary_key)
                self._execute_update(update_plan)

                self.state = BatchState.KEY_RECONCILIATION
                inserted = insert_plan.records if insert_plan else ()
                for record, key in zip(inserted, keys):
                    for name, value in zip(primary_key, key):
                        record.set(name, value)

                self.state = BatchState.POST_SAVE_HOOKS
                inserted_ids = {id(record) for record in inserted}
                for record in batch:
                    changes = record.mark_saved()
                    event = AfterSaveEvent(
                        record=record,
                        insert=id(record) in inserted_ids,
                        changed_attributes=MappingProxyType(changes),
                    )
                    for observer in self.observers:
                        observer.on_after_save(event)

                report = BatchReport(
                    table=table,
                    inserted=tuple(inserted),
                    updated=tuple(r for r in batch if id(r) not in inserted_ids),
                    duration_seconds=time.perf_counter() - start,
                )
                for observer in self.observers:
                    observer.on_batch_complete(report)
        except BaseException as exc:
            _restore(snapshots)
            level = log.warning if isinstance(exc, BatchError) else log.error
            level(
                f"[BATCH ABORTED] {table}: {exc}",
                extra={"table": table, "stage": self.state.value, "error_type": type(exc).__name__},
            )
            raise

        self.state = BatchState.FLUSHED
        log.info(
            f"[BATCH SAVED] {table}",
            extra={
                "table": table,
                "inserts": len(report.inserted),
                "updates": len(report.updated),
                "duration_seconds": round(time.perf_counter() - start, 4),
            },
        )
        return True

    def _vetoed(
        self, table: str, stage: str, record: Optional[Record], raise_on_veto: bool
    ) -> bool:
        self.state = BatchState.ABORTED
        log.info(f"[BATCH ABORTED] {table}: vetoed {stage}", extra={"table": table, "stage": stage})
        if raise_on_veto:
            raise HookVetoed(stage, record)
        return False

    def _execute_insert(
        self, plan: Optional[InsertPlan], primary_key: Sequence[str]
    ) -> List[Tuple[Any, ...]]:
        if plan is None:
            return []
        expected = len(plan.records)
        try:
            if plan.returning:
                keys = [tuple(row) for row in self.executor.fetch_all(plan.query, plan.params)]
                affected = len(keys)
            else:
                affected = self.executor.execute(plan.query, plan.params)
        except psycopg.Error as exc:
            raise ExecutionFailed(plan.table, "INSERT", str(exc)) from exc
        if affected != expected:
            raise ExecutionFailed(
                plan.table, "INSERT", f"expected {expected} inserted rows, got {affected}"
            )
        if plan.returning:
            return keys
        return self._infer_sequence_keys(plan.table, primary_key, affected)

    def _infer_sequence_keys(
        self, table: str, primary_key: Sequence[str], affected: int
    ) -> List[Tuple[Any, ...]]:
        # Assumes the sequence handed out one contiguous range to this INSERT.
        if len(primary_key) != 1:
            raise BatchError("Sequence key assignment needs a single-column primary key.")
        sequence = self.schema.sequence_name(table, primary_key[0])
        if sequence is None:
            raise ExecutionFailed(table, "INSERT", f"no sequence behind '{primary_key[0]}'")
        try:
            last_id = self.executor.last_insert_id(sequence)
        except psycopg.Error as exc:
            raise ExecutionFailed(table, "INSERT", str(exc)) from exc
        first_id = last_id - affected + 1
        return [(first_id + offset,) for offset in range(affected)]

    def _execute_update(self, plan: Optional[UpdatePlan]) -> None:
        if plan is None:
            return
        expected = len(plan.records)
        try:
            affected = self.executor.execute(plan.query, plan.params)
        except psycopg.Error as exc:
            raise ExecutionFailed(plan.table, "UPDATE", str(exc)) from exc
        if affected == expected:
            return
        if plan.version_field:
            # Another writer changed a row between the stale check and this UPDATE.
            raise StaleWrite(plan.table)
        raise ExecutionFailed(
            plan.table, "UPDATE", f"expected {expected} updated rows, got {affected}"
        )


def _restore(snapshots: Sequence[Tuple[Record, RecordSnapshot]]) -> None:
    for record, snapshot in snapshots:
        record.restore(snapshot)


@contextmanager
def batch_scope(
    coordinator: BatchCoordinator, table: str, validate: bool = True
) -> Generator[BatchContext, None, None]:
    """
    Collect records for `table` and save them when the block exits normally.

    If the block raises, the queued records are dropped unsaved. A vetoed
    flush raises `HookVetoed`, since the block has no return value to report it.

    Example
    -------
        with batch_scope(coordinator, "documents") as batch:
            for row in incoming:
                batch.enqueue(Record.new("documents", row, version_field="version"))
    """
    context = BatchContext(table)
    try:
        yield context
    except BaseException:
        context.clear()
        raise
    coordinator.save_all(context, validate=validate, raise_on_veto=True)


__all__ = ["BatchCoordinator", "BatchState", "batch_scope"]
