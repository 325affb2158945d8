"""Domain models. Audit records and attribution."""

from audit_trail.domain.models.audit import (
    UNKNOWN,
    ActionKind,
    AuditRecord,
    AuditRecordFactory,
    Change,
    FreeTextLabel,
    IdentityReference,
)

__all__ = [
    "ActionKind",
    "AuditRecord",
    "AuditRecordFactory",
    "Change",
    "FreeTextLabel",
    "IdentityReference",
    "UNKNOWN",
]
