"""
Observer interfaces for batch save lifecycle points.

Observers registered on a `BatchCoordinator` are called at four points:

- `on_before_batch`  once, before validation; may abort the batch
- `on_before_save`   per record, before anything is written; may abort the batch
- `on_after_save`    per record, after the write, with prior attribute values
- `on_batch_complete` once, after every record has been notified

Before-hooks return a `HookOutcome`; after-hooks receive immutable payloads.
"""

from __future__ import annotations

import abc
import enum
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Mapping, Protocol, Tuple, runtime_checkable

if TYPE_CHECKING:
    from batchaudit.domain.models import Record
    from batchaudit.persistence.context import BatchContext


class HookOutcome(str, enum.Enum):
    CONTINUE = "continue"
    ABORT = "abort"


@dataclass(frozen=True)
class BeforeSaveEvent:
    record: "Record"
    insert: bool


@dataclass(frozen=True)
class AfterSaveEvent:
    """
    Post-write notification for one record.

    `changed_attributes` maps every attribute written with a new value to the
    value it had before the save; the record itself already holds the new one.
    """

    record: "Record"
    insert: bool
    changed_attributes: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))


@dataclass(frozen=True)
class BatchReport:
    table: str
    inserted: Tuple["Record", ...]
    updated: Tuple["Record", ...]
    duration_seconds: float

    @property
    def records(self) -> Tuple["Record", ...]:
        return self.inserted + self.updated


@runtime_checkable
class BatchObserver(Protocol):
    """
    Common interface every batch observer implements.
    """

    def on_before_batch(self, context: "BatchContext") -> HookOutcome: ...

    def on_before_save(self, event: BeforeSaveEvent) -> HookOutcome: ...

    def on_after_save(self, event: AfterSaveEvent) -> None: ...

    def on_batch_complete(self, report: BatchReport) -> None: ...


class AbstractBatchObserver(abc.ABC):
    """
    Convenience base with pass-through defaults.

    Subclasses override only the lifecycle points they care about.
    """

    def on_before_batch(self, context: "BatchContext") -> HookOutcome:
        return HookOutcome.CONTINUE

    def on_before_save(self, event: BeforeSaveEvent) -> HookOutcome:
        return HookOutcome.CONTINUE

    def on_after_save(self, event: AfterSaveEvent) -> None:
        return None

    def on_batch_complete(self, report: BatchReport) -> None:
        return None


__all__ = [
    "AbstractBatchObserver",
    "AfterSaveEvent",
    "BatchObserver",
    "BatchReport",
    "BeforeSaveEvent",
    "HookOutcome",
]
