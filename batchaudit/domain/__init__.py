"""
Domain package for batch-audit.

Exports the record container, value objects, diffing, version tokens and the
error hierarchy. Keep this package free of database I/O.
"""

from batchaudit.domain.diff import changed_attribute_names, diff
from batchaudit.domain.errors import (
    BatchError,
    ExecutionFailed,
    HeterogeneousBatch,
    HookVetoed,
    LogWriteFailed,
    StaleWrite,
    UnknownColumn,
    ValidationFailed,
)
from batchaudit.domain.models import AuditLogEntry, ColumnInfo, Record, timestamp
from batchaudit.domain.versioning import VersionTokenGenerator, next_version

__all__ = [
    "AuditLogEntry",
    "BatchError",
    "ColumnInfo",
    "ExecutionFailed",
    "HeterogeneousBatch",
    "HookVetoed",
    "LogWriteFailed",
    "Record",
    "StaleWrite",
    "UnknownColumn",
    "ValidationFailed",
    "VersionTokenGenerator",
    "changed_attribute_names",
    "diff",
    "next_version",
    "timestamp",
]
