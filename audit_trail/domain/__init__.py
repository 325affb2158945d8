"""Domain layer: audit records, codec, registry, revisions, exceptions. Pure logic only."""

from audit_trail.domain.exceptions import (
    AttributionKeyError,
    AttributionRestoreFailure,
    AuditError,
    AuditRecordNotFoundError,
    DiffEncodingError,
    EntityNotAuditedError,
    EntityNotFoundError,
    HistoryIntegrityError,
    InvalidActionKindError,
    RevisionNotFoundError,
    UnknownActionKindError,
    VersionConflictError,
)
from audit_trail.domain.models import UNKNOWN, ActionKind, AuditRecord, Change
from audit_trail.domain.registry import AuditedEntityRegistry
from audit_trail.domain.codec import DiffCodec
from audit_trail.domain.revision import Revision, reconstruct, reconstruct_all

__all__ = [
    "ActionKind",
    "AttributionKeyError",
    "AttributionRestoreFailure",
    "AuditError",
    "AuditRecord",
    "AuditRecordNotFoundError",
    "AuditedEntityRegistry",
    "Change",
    "DiffCodec",
    "DiffEncodingError",
    "EntityNotAuditedError",
    "EntityNotFoundError",
    "HistoryIntegrityError",
    "InvalidActionKindError",
    "Revision",
    "RevisionNotFoundError",
    "UNKNOWN",
    "UnknownActionKindError",
    "VersionConflictError",
    "reconstruct",
    "reconstruct_all",
]
