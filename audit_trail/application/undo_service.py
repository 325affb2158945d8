"""Undo engine: reverse the effect of exactly one audit record on the live entity."""

import logging
from typing import Any, Dict, Optional

from audit_trail.application.audit_repository import AuditRepository, EntityStore
from audit_trail.domain.codec import FALLBACK_KEY
from audit_trail.domain.exceptions import RevisionNotFoundError, UnknownActionKindError
from audit_trail.domain.models.audit import ActionKind, AuditRecord
from audit_trail.domain.revision import reconstruct


class UndoEngine:
    """
    Applies the inverse of one record:
      create  -> delete the live entity
      destroy -> recreate it from the pre-delete snapshot
      update  -> assign the old values back
    Batches are the caller's concern; each call touches one record.
    """

    def __init__(
        self,
        entity_store: EntityStore,
        repository: Optional[AuditRepository] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._store = entity_store
        self._repository = repository
        self._logger = logger or logging.getLogger(__name__)

    def undo(self, record: AuditRecord) -> Any:
        """Undo record. Returns the recreated or updated entity, or None after undoing a create."""
        try:
            kind = ActionKind(record.action)
        except ValueError:
            raise UnknownActionKindError(record.action) from None

        extra = {
            "entity_type": record.entity_type,
            "entity_id": record.entity_id,
            "version": record.version,
            "action": kind.value,
        }

        if kind is ActionKind.CREATE:
            self._store.delete(record.entity_type, record.entity_id)
            self._logger.info("audit_undo_create", extra=extra)
            return None

        if kind is ActionKind.DESTROY:
            entity = self._store.create(record.entity_type, self._snapshot(record))
            self._logger.info("audit_undo_destroy", extra=extra)
            return entity

        entity = self._store.update(record.entity_type, record.entity_id, self._previous_values(record))
        self._logger.info("audit_undo_update", extra=extra)
        return entity

    @staticmethod
    def _snapshot(record: AuditRecord) -> Dict[str, Any]:
        """Pre-delete attributes of a destroy record (legacy records keep them on the new side)."""
        return {
            name: change.old if change.old_known else change.new
            for name, change in record.changes.items()
            if name != FALLBACK_KEY
        }

    def _previous_values(self, record: AuditRecord) -> Dict[str, Any]:
        """
        Old values of an update. An old value that was never stored is taken from the
        reconstructed state just before this version; if that is unavailable the
        attribute is left as it is.
        """
        values = record.old_attributes()
        values.pop(FALLBACK_KEY, None)
        missing = [
            name for name, change in record.changes.items()
            if not change.old_known and name != FALLBACK_KEY
        ]
        if not missing:
            return values

        prior: Dict[str, Any] = {}
        if self._repository is not None and record.version > 1:
            history = self._repository.query_records(record.entity_type, record.entity_id)
            try:
                prior = dict(reconstruct(history, record.version - 1).attributes)
            except RevisionNotFoundError:
                prior = {}
        for name in missing:
            if name in prior:
                values[name] = prior[name]
            else:
                self._logger.warning(
                    "audit_undo_old_value_unknown",
                    extra={
                        "entity_type": record.entity_type,
                        "entity_id": record.entity_id,
                        "version": record.version,
                        "attribute": name,
                    },
                )
        return values
