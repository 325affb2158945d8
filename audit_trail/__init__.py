"""Versioned attribute-level audit history: record, reconstruct, undo, attribute."""

from audit_trail.application.audit_service import AuditRecorder
from audit_trail.application.history_service import HistoryService
from audit_trail.application.undo_service import UndoEngine
from audit_trail.core.context import as_actor, attribution, current_attribution, with_attribution
from audit_trail.domain.codec import DiffCodec
from audit_trail.domain.models.audit import (
    UNKNOWN,
    ActionKind,
    AuditRecord,
    Change,
    FreeTextLabel,
    IdentityReference,
)
from audit_trail.domain.registry import AuditedEntityRegistry, registry
from audit_trail.domain.revision import Revision, reconstruct, reconstruct_all

__all__ = [
    "ActionKind",
    "AuditRecord",
    "AuditRecorder",
    "AuditedEntityRegistry",
    "Change",
    "DiffCodec",
    "FreeTextLabel",
    "HistoryService",
    "IdentityReference",
    "Revision",
    "UNKNOWN",
    "UndoEngine",
    "as_actor",
    "attribution",
    "current_attribution",
    "reconstruct",
    "reconstruct_all",
    "registry",
    "with_attribution",
]
