"""
ORM change tracking: SQLAlchemy session events that feed AuditRecorder.

Records are added to the same session as the mutation, so they commit and roll back
with it: one record per committed create/update/destroy, none after a rollback.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import event, inspect
from sqlalchemy.orm import Mapper, Session

from audit_trail.application.audit_service import AuditRecorder
from audit_trail.config.settings import get_settings
from audit_trail.domain.models.audit import ActionKind, AuditRecordFactory, Change
from audit_trail.domain.registry import AuditedEntityRegistry
from audit_trail.infrastructure.database.audit_repository_db import SqlAlchemyAuditRepository

logger = logging.getLogger(__name__)

_DESTROY_SNAPSHOTS = "audit_trail.destroy_snapshots"


def orm_identity(obj: Any) -> Tuple[str, Optional[str]]:
    """
    (class name, primary key) of a mapped instance. Composite keys are comma-joined.
    The key is None until the instance has been flushed.
    """
    mapper = inspect(type(obj))
    values = mapper.primary_key_from_instance(obj)
    if any(v is None for v in values):
        return type(obj).__name__, None
    return type(obj).__name__, ",".join(str(v) for v in values)


def _tracked_keys(mapper: Mapper) -> List[str]:
    """Column attributes, minus primary key and polymorphic discriminator."""
    excluded = {mapper.get_property_by_column(column).key for column in mapper.primary_key}
    discriminator = mapper.polymorphic_on
    return [
        prop.key
        for prop in mapper.column_attrs
        if prop.key not in excluded
        and not any(column is discriminator for column in prop.columns)
    ]


def _current_values(obj: Any) -> Dict[str, Any]:
    mapper = inspect(type(obj))
    return {key: getattr(obj, key) for key in _tracked_keys(mapper)}


def _update_changes(obj: Any) -> Dict[str, Change]:
    state = inspect(obj)
    changes: Dict[str, Change] = {}
    for key in _tracked_keys(state.mapper):
        history = state.attrs[key].history
        if not history.has_changes():
            continue
        old = history.deleted[0] if history.deleted else None
        new = history.added[0] if history.added else None
        if old == new:
            continue
        changes[key] = Change(old, new)
    return changes


class AuditTracker:
    """Listens to flushes on a session or sessionmaker and records audited mutations."""

    def __init__(
        self,
        registry: AuditedEntityRegistry,
        *,
        ignored_attributes: Optional[Iterable[str]] = None,
        record_factory: Optional[AuditRecordFactory] = None,
    ) -> None:
        self._registry = registry
        if ignored_attributes is None:
            ignored_attributes = get_settings().audit_ignored_attributes
        self._ignored = tuple(ignored_attributes)
        self._record_factory = record_factory
        # Per-tracker key: several trackers may listen on the same session
        self._snapshot_key = (_DESTROY_SNAPSHOTS, id(self))

    def install(self, target: Any = Session) -> None:
        event.listen(target, "before_flush", self._before_flush)
        event.listen(target, "after_flush", self._after_flush)

    def remove(self, target: Any = Session) -> None:
        event.remove(target, "before_flush", self._before_flush)
        event.remove(target, "after_flush", self._after_flush)

    def _audited(self, objects: Iterable[Any]) -> List[Any]:
        return [obj for obj in objects if self._registry.is_audited(type(obj))]

    def _before_flush(self, session: Session, flush_context, instances) -> None:
        # Deleted rows can no longer load attributes after the flush; take their snapshot now
        session.info[self._snapshot_key] = {
            id(obj): _current_values(obj) for obj in self._audited(session.deleted)
        }

    def _after_flush(self, session: Session, flush_context) -> None:
        recorder = AuditRecorder(
            SqlAlchemyAuditRepository(session),
            self._registry,
            ignored_attributes=self._ignored,
            identify=orm_identity,
            record_factory=self._record_factory,
        )
        snapshots = session.info.pop(self._snapshot_key, {})

        for obj in self._audited(session.new):
            values = _current_values(obj)
            recorder.begin_audit(obj, ActionKind.CREATE, {k: Change(None, v) for k, v in values.items()})

        for obj in self._audited(session.dirty):
            if obj in session.deleted:
                continue
            changes = _update_changes(obj)
            if changes:
                recorder.begin_audit(obj, ActionKind.UPDATE, changes)

        for obj in self._audited(session.deleted):
            values = snapshots.get(id(obj))
            if values is None:
                logger.warning(
                    "audit_destroy_snapshot_missing",
                    extra={"entity_type": type(obj).__name__},
                )
                values = {}
            recorder.begin_audit(obj, ActionKind.DESTROY, {k: Change(v, None) for k, v in values.items()})
