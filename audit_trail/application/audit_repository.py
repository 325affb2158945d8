"""Audit repository protocol. Application layer depends on this; infrastructure implements it."""

from typing import ContextManager, List, Protocol

from audit_trail.domain.models.audit import AuditRecord


class AuditRepository(Protocol):
    """
    Durable store of audit records keyed by entity identity and version.
    next_version() and insert() must be called inside serialize() for the same entity,
    so that two concurrent writers never obtain the same version.
    """

    def serialize(self, entity_type: str, entity_id: str) -> ContextManager[None]:
        """Hold the per-entity serialization for version assignment and insert."""
        ...

    def next_version(self, entity_type: str, entity_id: str) -> int:
        """Return the highest stored version for the entity plus one (1 when none)."""
        ...

    def insert(self, record: AuditRecord) -> AuditRecord:
        """Persist an immutable record. Raises VersionConflictError if the version is taken."""
        ...

    def query_records(self, entity_type: str, entity_id: str) -> List[AuditRecord]:
        """All records for the entity, ascending by version."""
        ...

    def get_record(self, entity_type: str, entity_id: str, version: int) -> AuditRecord:
        """One record. Raises AuditRecordNotFoundError when absent."""
        ...


class EntityStore(Protocol):
    """Access to live host entities for undo and revision materialization."""

    def create(self, entity_type: str, attributes: dict):
        """Build a new entity from attributes and persist it. Returns the entity."""
        ...

    def update(self, entity_type: str, entity_id: str, attributes: dict):
        """Assign attributes to the live entity and persist it in one step. Returns the entity."""
        ...

    def delete(self, entity_type: str, entity_id: str) -> None:
        """Delete the live entity. Raises EntityNotFoundError when absent."""
        ...

    def materialize(self, entity_type: str, attributes: dict):
        """Build a transient (never persisted) entity carrying attributes."""
        ...
