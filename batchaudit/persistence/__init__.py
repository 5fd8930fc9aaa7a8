"""
Persistence package for batch-audit.

Re-exports the batch context, observer interfaces, statement composer, stale
version checker and the coordinator tying them together.
"""

from batchaudit.persistence.composer import (
    BulkWriteComposer,
    InsertPlan,
    UpdatePlan,
    attribute_union,
)
from batchaudit.persistence.context import BatchContext
from batchaudit.persistence.coordinator import BatchCoordinator, BatchState, batch_scope
from batchaudit.persistence.hooks import (
    AbstractBatchObserver,
    AfterSaveEvent,
    BatchObserver,
    BatchReport,
    BeforeSaveEvent,
    HookOutcome,
)
from batchaudit.persistence.stale_check import StaleVersionChecker

__all__ = [
    "AbstractBatchObserver",
    "AfterSaveEvent",
    "BatchContext",
    "BatchCoordinator",
    "BatchObserver",
    "BatchReport",
    "BatchState",
    "BeforeSaveEvent",
    "BulkWriteComposer",
    "HookOutcome",
    "InsertPlan",
    "StaleVersionChecker",
    "UpdatePlan",
    "attribute_union",
    "batch_scope",
]
