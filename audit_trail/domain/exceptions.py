"""Audit-domain exceptions. Typed, no HTTP."""

from typing import Any


class AuditError(Exception):
    """Base for all audit errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class InvalidActionKindError(AuditError):
    """Raised when an action value is outside create/update/destroy (construction or read time)."""

    def __init__(self, action: Any, message: str | None = None) -> None:
        self.action = action
        super().__init__(message or f"invalid action kind {action!r}")


class UnknownActionKindError(InvalidActionKindError):
    """Raised by undo when the record's action is not recognised. Carries the literal value."""

    def __init__(self, action: Any) -> None:
        super().__init__(action, f"invalid action given {action}")


class DiffEncodingError(AuditError):
    """Raised when a change value cannot be represented in the diff payload."""


class AttributionKeyError(AuditError):
    """Raised when an attribution scope names a key outside the supported set."""


class AttributionRestoreFailure(AuditError):
    """Raised when the attribution store cannot be restored on scope exit. Not recoverable."""


class VersionConflictError(AuditError):
    """Raised when a version would be reused or a create does not start at version 1."""


class HistoryIntegrityError(AuditError):
    """Raised when a record sequence mixes entities or repeats a version."""


class RevisionNotFoundError(AuditError):
    """Raised when no record exists at or below the requested version."""


class AuditRecordNotFoundError(AuditError):
    """Raised when a specific audit record (entity, version) does not exist."""


class EntityNotFoundError(AuditError):
    """Raised when the live entity targeted by an undo cannot be loaded."""


class EntityNotAuditedError(AuditError):
    """Raised when an entity type is not registered for auditing."""
