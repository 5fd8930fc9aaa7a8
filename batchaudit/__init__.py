"""
batch-audit - batched persistence with optimistic versioning and change auditing.

This package saves many rows of a PostgreSQL table with one multi-row INSERT and
one UPDATE ... FROM (VALUES ...), and mirrors selected attribute changes into a
companion log table, including:

- Attribute diffing against the last persisted values
- Random version tokens with a batch-wide stale-write check
- Typed bulk statement composition and generated-key reconciliation
- An observer protocol around every save lifecycle point
- Coalesced audit-log writes inside the same transaction
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from batchaudit.audit import (
    MIRROR,
    AnonymousIdentity,
    AuditHistory,
    AuditLogComposer,
    ContextIdentity,
    StaticIdentity,
    attach_audit_log,
)
from batchaudit.config import Settings, get_settings
from batchaudit.domain import (
    AuditLogEntry,
    BatchError,
    ExecutionFailed,
    HookVetoed,
    LogWriteFailed,
    Record,
    StaleWrite,
    ValidationFailed,
    VersionTokenGenerator,
    diff,
)
from batchaudit.persistence import (
    AbstractBatchObserver,
    BatchContext,
    BatchCoordinator,
    BatchObserver,
    HookOutcome,
    batch_scope,
)
from batchaudit.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    # Records and errors
    "AuditLogEntry",
    "BatchError",
    "ExecutionFailed",
    "HookVetoed",
    "LogWriteFailed",
    "Record",
    "StaleWrite",
    "ValidationFailed",
    "VersionTokenGenerator",
    "diff",
    # Batch persistence
    "AbstractBatchObserver",
    "BatchContext",
    "BatchCoordinator",
    "BatchObserver",
    "HookOutcome",
    "batch_scope",
    # Auditing
    "MIRROR",
    "AnonymousIdentity",
    "AuditHistory",
    "AuditLogComposer",
    "ContextIdentity",
    "StaticIdentity",
    "attach_audit_log",
    # Logging
    "configure_logging",
    "get_logger",
]
