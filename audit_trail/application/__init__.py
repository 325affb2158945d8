# Application layer: services that orchestrate domain and infrastructure.

from audit_trail.application.audit_repository import AuditRepository, EntityStore
from audit_trail.application.audit_service import AuditRecorder
from audit_trail.application.history_service import HistoryService
from audit_trail.application.undo_service import UndoEngine

__all__ = [
    "AuditRecorder",
    "AuditRepository",
    "EntityStore",
    "HistoryService",
    "UndoEngine",
]
