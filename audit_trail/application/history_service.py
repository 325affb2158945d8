"""History application service: browse, reconstruct and undo the audit trail of one entity."""

import logging
from typing import Any, Dict, List, Optional

from audit_trail.application.audit_repository import AuditRepository, EntityStore
from audit_trail.application.undo_service import UndoEngine
from audit_trail.domain.exceptions import EntityNotAuditedError, RevisionNotFoundError
from audit_trail.domain.models.audit import AuditRecord
from audit_trail.domain.registry import AuditedEntityRegistry
from audit_trail.domain.revision import Revision, reconstruct, reconstruct_all


class HistoryService:
    """
    Application-layer orchestration only. No HTTP, no transaction handling:
    the caller commits or rolls back the unit of work around undo().
    """

    def __init__(
        self,
        repository: AuditRepository,
        entity_store: EntityStore,
        registry: AuditedEntityRegistry,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._repository = repository
        self._store = entity_store
        self._registry = registry
        self._logger = logger or logging.getLogger(__name__)
        self._undo = UndoEngine(entity_store, repository=repository, logger=self._logger)

    def _check_audited(self, entity_type: str) -> None:
        if not self._registry.is_audited(entity_type):
            raise EntityNotAuditedError(f"Entity type '{entity_type}' is not audited")

    def history(self, entity_type: str, entity_id: str) -> List[AuditRecord]:
        self._check_audited(entity_type)
        return self._repository.query_records(entity_type, entity_id)

    def revision(self, entity_type: str, entity_id: str, version: Optional[int] = None) -> Revision:
        records = self.history(entity_type, entity_id)
        if not records:
            raise RevisionNotFoundError(f"No history for {entity_type}#{entity_id}")
        return reconstruct(records, version)

    def revisions(self, entity_type: str, entity_id: str) -> Dict[int, Revision]:
        return reconstruct_all(self.history(entity_type, entity_id))

    def materialize_revision(self, entity_type: str, entity_id: str, version: Optional[int] = None) -> Any:
        """Transient entity carrying the attributes of a revision."""
        revision = self.revision(entity_type, entity_id, version)
        return self._store.materialize(entity_type, dict(revision.attributes))

    def undo(self, entity_type: str, entity_id: str, version: int) -> Any:
        self._check_audited(entity_type)
        record = self._repository.get_record(entity_type, entity_id, version)
        return self._undo.undo(record)
