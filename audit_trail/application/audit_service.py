"""Audit recorder: turns one entity mutation into one versioned, attributed audit record."""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence, Tuple, Union

from audit_trail.application.audit_repository import AuditRepository
from audit_trail.core.context import current_attribution
from audit_trail.domain.exceptions import VersionConflictError
from audit_trail.domain.models.audit import (
    ActionKind,
    AuditRecord,
    AuditRecordFactory,
    Change,
    IdentifyFn,
    to_attribution,
)
from audit_trail.domain.registry import AuditedEntityRegistry


def default_identify(entity: Any) -> Tuple[str, Optional[str]]:
    """(class name, str(id)) for plain objects exposing an id attribute. id is None while unset."""
    entity_id = getattr(entity, "id")
    return type(entity).__name__, None if entity_id is None else str(entity_id)


def _normalize(raw_changes: Mapping[str, Union[Change, Sequence[Any]]]) -> Dict[str, Change]:
    changes: Dict[str, Change] = {}
    for name, value in raw_changes.items():
        if isinstance(value, Change):
            changes[name] = value
        else:
            old, new = value
            changes[name] = Change(old, new)
    return changes


class AuditRecorder:
    """
    Builds and persists audit records.
    The record type is chosen by the injected factory; persistence and version
    serialization belong to the repository.
    """

    def __init__(
        self,
        repository: AuditRepository,
        registry: AuditedEntityRegistry,
        *,
        ignored_attributes: Iterable[str] = (),
        identify: Optional[IdentifyFn] = None,
        record_factory: Optional[AuditRecordFactory] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._repository = repository
        self._registry = registry
        self._ignored = frozenset(ignored_attributes)
        self._identify = identify or default_identify
        self._record_factory = record_factory or AuditRecord
        self._logger = logger or logging.getLogger(__name__)

    def begin_audit(
        self,
        entity: Any,
        action: Union[ActionKind, str],
        raw_changes: Mapping[str, Union[Change, Sequence[Any]]],
    ) -> Optional[AuditRecord]:
        """
        Record one state transition of entity. Returns the stored record, or None for an
        update whose changes are empty after filtering (a no-op save leaves no history).
        """
        kind = ActionKind.parse(action)
        entity_type, entity_id = self._identify(entity)
        changes = self._registry.filter_changes(type(entity), _normalize(raw_changes), self._ignored)

        if kind is ActionKind.UPDATE and not changes:
            self._logger.debug(
                "audit_skipped_noop",
                extra={"entity_type": entity_type, "entity_id": entity_id},
            )
            return None

        # Deferred actor/tenant accessors are resolved now, at record time
        context = current_attribution()
        actor = to_attribution(context.actor, self._identify)
        tenant = to_attribution(context.tenant, self._identify)

        with self._repository.serialize(entity_type, entity_id):
            version = self._repository.next_version(entity_type, entity_id)
            if kind is ActionKind.CREATE and version != 1:
                raise VersionConflictError(
                    f"{entity_type}#{entity_id} already has history; create must be version 1, got {version}"
                )
            record = self._record_factory(
                entity_type=entity_type,
                entity_id=entity_id,
                action=kind,
                changes=changes,
                version=version,
                actor=actor,
                tenant=tenant,
                remote_address=context.remote_address,
                request_id=context.request_id,
                created_at=datetime.now(timezone.utc),
            )
            stored = self._repository.insert(record)

        self._logger.info(
            "audit_recorded",
            extra={
                "entity_type": entity_type,
                "entity_id": entity_id,
                "action": kind.value,
                "version": version,
            },
        )
        return stored
