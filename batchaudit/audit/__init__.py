"""
Audit package for batch-audit.

Change logging observers, acting-user providers and log history access.
"""

from batchaudit.audit.composer import MIRROR, AuditLogComposer, attach_audit_log
from batchaudit.audit.history import AuditHistory
from batchaudit.audit.identity import (
    AnonymousIdentity,
    ContextIdentity,
    IdentityProvider,
    StaticIdentity,
)

__all__ = [
    "MIRROR",
    "AnonymousIdentity",
    "AuditHistory",
    "AuditLogComposer",
    "ContextIdentity",
    "IdentityProvider",
    "StaticIdentity",
    "attach_audit_log",
]
