"""
Audit logging for batch saves.

`AuditLogComposer` observes a source table's batches. Before each record is
saved it diffs the logged attributes against the persisted values and stamps
the change time; after the write it turns the record into an `AuditLogEntry`
and queues it on its own log-table batch. When the source batch completes the
log batch is saved in one bulk INSERT through the log coordinator.

The log coordinator must share the source coordinator's executor: the flush
then runs inside the source transaction, and a failed flush (`LogWriteFailed`)
rolls back the source write as well.

Logged attributes are given as names to mirror, or as a mapping whose values
are `MIRROR`, a static value, or a callable computing the value from the
record::

    AuditLogComposer(
        "documents",
        log_coordinator,
        {"title": MIRROR, "atime": MIRROR, "version": MIRROR,
         "source": "import", "title_length": lambda r: len(r.get("title") or "")},
    )
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from batchaudit.audit.identity import ContextIdentity, IdentityProvider
from batchaudit.config import Settings, get_settings
from batchaudit.domain.diff import changed_attribute_names, diff
from batchaudit.domain.errors import BatchError, LogWriteFailed
from batchaudit.domain.models import AuditLogEntry, Record, timestamp
from batchaudit.persistence.context import BatchContext
from batchaudit.persistence.coordinator import BatchCoordinator
from batchaudit.persistence.hooks import (
    AbstractBatchObserver,
    AfterSaveEvent,
    BatchReport,
    BeforeSaveEvent,
    HookOutcome,
)
from batchaudit.utils.logging import get_logger

log = get_logger(__name__)


class _Mirror:
    def __repr__(self) -> str:
        return "MIRROR"


MIRROR: Any = _Mirror()

LogAttributes = Union[Iterable[str], Mapping[str, Any]]


class _PendingChange:
    __slots__ = ("names", "atime")

    def __init__(self, names: List[str], atime: str) -> None:
        self.names = names
        self.atime = atime


class AuditLogComposer(AbstractBatchObserver):
    """
    Mirror changes of `source_table` records into its log table.

    Parameters
    ----------
    source_table : str
        Table whose records are audited; records of other tables are ignored.
    log_coordinator : BatchCoordinator
        Coordinator used to save log rows (same executor as the source).
    log_attributes : iterable of str | mapping
        Attributes written to every log row; see module docstring.
    log_table : str | None
        Defaults to `source_table` + settings.audit_log_table_suffix.
    identity : IdentityProvider | None
        Source of the acting user; defaults to `ContextIdentity`.
    clock : callable | None
        Returns the current datetime (injectable for tests).
    """

    def __init__(
        self,
        source_table: str,
        log_coordinator: BatchCoordinator,
        log_attributes: LogAttributes,
        log_table: Optional[str] = None,
        identity: Optional[IdentityProvider] = None,
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], datetime]] = None,
        log_primary_key: Sequence[str] = ("id",),
        record_actor: bool = True,
    ) -> None:
        settings = settings or get_settings()
        self.source_table = source_table
        self.log_coordinator = log_coordinator
        self.log_table = log_table or f"{source_table}{settings.audit_log_table_suffix}"
        self.identity = identity or ContextIdentity()
        self.clock = clock or datetime.now
        self.log_primary_key = tuple(log_primary_key)

        self.doc_id_field = settings.audit_doc_id_field
        self.changed_attributes_field = settings.audit_changed_attributes_field
        self.changed_by_field: Optional[str] = (
            settings.audit_changed_by_field if record_actor else None
        )
        self.time_field = settings.audit_time_field
        self.version_field = settings.audit_version_field

        if isinstance(log_attributes, Mapping):
            self.log_attributes: Dict[str, Any] = dict(log_attributes)
        else:
            self.log_attributes = {name: MIRROR for name in log_attributes}

        self._pending: Dict[Record, _PendingChange] = {}
        self._log_batch = BatchContext(self.log_table)

    def _resolve(self, record: Record) -> Dict[str, Any]:
        values: Dict[str, Any] = {}
        for name, source in self.log_attributes.items():
            if source is MIRROR:
                if record.has_attribute(name):
                    values[name] = record.get(name)
            elif callable(source):
                values[name] = source(record)
            else:
                values[name] = source
        return values

    def on_before_batch(self, context: BatchContext) -> HookOutcome:
        if context.table == self.source_table:
            self._pending.clear()
            self._log_batch.clear()
        return HookOutcome.CONTINUE

    def on_before_save(self, event: BeforeSaveEvent) -> HookOutcome:
        record = event.record
        if record.table != self.source_table:
            return HookOutcome.CONTINUE

        values = self._resolve(record)
        tracked = [name for name in self.log_attributes if record.has_attribute(name)]
        changes = diff(tracked, values, record.old_attributes, time_field=self.time_field)
        if not changes:
            self._pending.pop(record, None)
            return HookOutcome.CONTINUE

        atime = timestamp(self.clock())
        if self.time_field in self.log_attributes:
            record.set(self.time_field, atime)
        names = changed_attribute_names(
            self.log_attributes, changes, rewritten=(self.time_field, record.version_field or "")
        )
        self._pending[record] = _PendingChange(names, atime)
        return HookOutcome.CONTINUE

    def on_after_save(self, event: AfterSaveEvent) -> None:
        record = event.record
        pending = self._pending.get(record)
        if record.table != self.source_table or pending is None:
            return

        key_field = record.primary_key[0]
        values = self._resolve(record)
        values.pop(key_field, None)
        version = record.version
        entry = AuditLogEntry(
            doc_id=record.get(key_field),
            changed_attributes=tuple(pending.names),
            changed_by=self.identity.current_actor() if self.changed_by_field else None,
            atime=pending.atime,
            version=None if version is None else str(version),
            attributes=values,
        )
        row = entry.to_row(
            doc_id_field=self.doc_id_field,
            changed_attributes_field=self.changed_attributes_field,
            changed_by_field=self.changed_by_field,
            time_field=self.time_field,
            version_field=self.version_field,
        )
        self._log_batch.enqueue(
            Record.new(self.log_table, self._fit_to_log_table(row), primary_key=self.log_primary_key)
        )

    def _fit_to_log_table(self, row: Dict[str, Any]) -> Dict[str, Any]:
        columns = {column.name for column in self.log_coordinator.schema.columns(self.log_table)}
        dropped = [name for name in row if name not in columns]
        if dropped:
            log.debug(
                "Dropping attributes absent from log table",
                extra={"log_table": self.log_table, "dropped": dropped},
            )
        return {name: value for name, value in row.items() if name in columns}

    def on_batch_complete(self, report: BatchReport) -> None:
        if report.table != self.source_table:
            return
        self._pending.clear()
        if not self._log_batch:
            return
        entries = len(self._log_batch)
        try:
            saved = self.log_coordinator.save_all(self._log_batch, validate=False)
        except BatchError as exc:
            raise LogWriteFailed(self.log_table, str(exc)) from exc
        if not saved:
            raise LogWriteFailed(self.log_table, "log batch was vetoed")
        log.info(
            f"[AUDIT FLUSH] {self.log_table}",
            extra={"log_table": self.log_table, "entries": entries},
        )


def attach_audit_log(
    coordinator: BatchCoordinator,
    source_table: str,
    log_attributes: LogAttributes,
    **options: Any,
) -> AuditLogComposer:
    """
    Register an `AuditLogComposer` for `source_table` on `coordinator`.

    The log coordinator is built over the same executor and schema so log
    writes join the source transaction. Extra keyword arguments are passed to
    `AuditLogComposer`.
    """
    log_coordinator = BatchCoordinator(
        coordinator.executor,
        schema=coordinator.schema,
        key_assignment=coordinator.key_assignment,
    )
    composer = AuditLogComposer(source_table, log_coordinator, log_attributes, **options)
    coordinator.add_observer(composer)
    return composer


__all__ = ["MIRROR", "AuditLogComposer", "LogAttributes", "attach_audit_log"]
