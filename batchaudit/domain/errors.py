"""
Exception hierarchy for batch saves.

Every failure of `BatchCoordinator.save_all` surfaces as a `BatchError`
subclass, except hook vetoes which are reported as a `False` return unless the
caller asks for `HookVetoed`.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence, Tuple

if TYPE_CHECKING:
    from batchaudit.domain.models import Record


class BatchError(Exception):
    """Base class for all batch persistence failures."""


class HeterogeneousBatch(BatchError):
    """A record targeting another table was enqueued on a batch."""

    def __init__(self, expected: str, actual: str) -> None:
        super().__init__(f"Batch for table '{expected}' cannot accept a record of '{actual}'.")
        self.expected = expected
        self.actual = actual


class ValidationFailed(BatchError):
    """One record failed validation; nothing was written."""

    def __init__(self, record: "Record", errors: Dict[str, List[str]]) -> None:
        summary = "; ".join(f"{name}: {', '.join(msgs)}" for name, msgs in errors.items())
        super().__init__(f"Validation failed for a '{record.table}' record ({summary}).")
        self.record = record
        self.errors = errors


class HookVetoed(BatchError):
    """An observer declined to proceed; nothing was written."""

    def __init__(self, stage: str, record: Optional["Record"] = None) -> None:
        super().__init__(f"Batch save vetoed during {stage}.")
        self.stage = stage
        self.record = record


class StaleWrite(BatchError):
    """
    At least one record carries a version token that no longer matches storage.

    The whole batch is rejected; callers must re-fetch and retry themselves.
    """

    def __init__(self, table: str, stale_keys: Sequence[Tuple[Any, ...]] = ()) -> None:
        super().__init__(
            f"Some or all objects being updated in '{table}' are outdated "
            f"({len(stale_keys) or 'unknown number of'} stale)."
        )
        self.table = table
        self.stale_keys = list(stale_keys)


class ExecutionFailed(BatchError):
    """The database rejected or failed to run a composed statement."""

    def __init__(self, table: str, statement: str, reason: str = "") -> None:
        message = f"{statement} on '{table}' failed"
        super().__init__(f"{message}: {reason}" if reason else message)
        self.table = table
        self.statement = statement


class LogWriteFailed(BatchError):
    """The nested audit-log batch could not be saved."""

    def __init__(self, log_table: str, reason: str = "") -> None:
        message = f"Writing audit log '{log_table}' failed"
        super().__init__(f"{message}: {reason}" if reason else message)
        self.log_table = log_table


class UnknownColumn(BatchError):
    """Records carry attributes the target table does not have."""

    def __init__(self, table: str, columns: Sequence[str]) -> None:
        super().__init__(f"Table '{table}' has no column(s): {', '.join(columns)}.")
        self.table = table
        self.columns = list(columns)


__all__ = [
    "BatchError",
    "ExecutionFailed",
    "HeterogeneousBatch",
    "HookVetoed",
    "LogWriteFailed",
    "StaleWrite",
    "UnknownColumn",
    "ValidationFailed",
]
