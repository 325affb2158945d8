"""Domain schemas. API responses."""

from audit_trail.domain.schemas.audit import (
    AttributionResponse,
    AuditRecordResponse,
    RevisionResponse,
    UndoResponse,
)

__all__ = [
    "AttributionResponse",
    "AuditRecordResponse",
    "RevisionResponse",
    "UndoResponse",
]
