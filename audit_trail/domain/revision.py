"""
Revision reconstruction: replay an entity's audit records to rebuild its attributes at any version.

Replay is forward-only. Each record contributes the new side of its changes; a
destroy record contributes the snapshot it took of the entity before deletion.
Old values are never needed, so legacy single-value records replay unchanged.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional

from audit_trail.domain.codec import FALLBACK_KEY
from audit_trail.domain.exceptions import HistoryIntegrityError, RevisionNotFoundError
from audit_trail.domain.models.audit import ActionKind, AuditRecord, Change


@dataclass(frozen=True)
class Revision:
    """Attribute state of one entity as of a version. Never persisted."""

    entity_type: str
    entity_id: str
    version: int
    action: ActionKind
    attributes: Mapping[str, Any]

    @property
    def destroyed(self) -> bool:
        return self.action is ActionKind.DESTROY


def _ordered(records: Iterable[AuditRecord]) -> List[AuditRecord]:
    """Sort by version and check that all records belong to one entity without repeated versions."""
    ordered = sorted(records, key=lambda r: r.version)
    if not ordered:
        return ordered
    identity = (ordered[0].entity_type, ordered[0].entity_id)
    previous: Optional[int] = None
    for record in ordered:
        if (record.entity_type, record.entity_id) != identity:
            raise HistoryIntegrityError(
                f"Records for {record.entity_type}#{record.entity_id} mixed into history of "
                f"{identity[0]}#{identity[1]}"
            )
        if record.version == previous:
            raise HistoryIntegrityError(
                f"Version {record.version} appears twice in history of {identity[0]}#{identity[1]}"
            )
        previous = record.version
    return ordered


def _replayed_value(action: ActionKind, change: Change) -> Any:
    if action is ActionKind.DESTROY and change.old_known:
        return change.old
    return change.new


def _apply(state: Dict[str, Any], record: AuditRecord) -> ActionKind:
    action = ActionKind.parse(record.action)
    for name, change in record.changes.items():
        if name == FALLBACK_KEY:
            continue
        state[name] = _replayed_value(action, change)
    return action


def reconstruct_attributes(records: Iterable[AuditRecord]) -> Dict[str, Any]:
    """Replay every record in the given order and return the resulting attribute map."""
    state: Dict[str, Any] = {}
    for record in records:
        _apply(state, record)
    return state


def reconstruct(records: Iterable[AuditRecord], target_version: Optional[int] = None) -> Revision:
    """
    Rebuild the entity as of target_version (latest when None).
    Raises RevisionNotFoundError when no record is at or below the target.
    """
    ordered = _ordered(records)
    state: Dict[str, Any] = {}
    last: Optional[AuditRecord] = None
    action: Optional[ActionKind] = None
    for record in ordered:
        if target_version is not None and record.version > target_version:
            break
        action = _apply(state, record)
        last = record
    if last is None or action is None:
        raise RevisionNotFoundError(f"No revision at or below version {target_version}")
    return Revision(
        entity_type=last.entity_type,
        entity_id=last.entity_id,
        version=last.version,
        action=action,
        attributes=MappingProxyType(state),
    )


def reconstruct_all(records: Iterable[AuditRecord]) -> Dict[int, Revision]:
    """Revision for every version, built in one pass. Does not modify the records."""
    revisions: Dict[int, Revision] = {}
    state: Dict[str, Any] = {}
    for record in _ordered(records):
        action = _apply(state, record)
        revisions[record.version] = Revision(
            entity_type=record.entity_type,
            entity_id=record.entity_id,
            version=record.version,
            action=action,
            attributes=MappingProxyType(dict(state)),
        )
    return revisions
