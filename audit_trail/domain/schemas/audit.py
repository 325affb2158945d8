"""Pydantic schemas for the history API. Response-only, no DB or infrastructure."""

from datetime import datetime
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field

from audit_trail.domain.codec import FALLBACK_KEY
from audit_trail.domain.models.audit import (
    ActionKind,
    Attribution,
    AuditRecord,
    FreeTextLabel,
    IdentityReference,
)
from audit_trail.domain.revision import Revision


class AttributionResponse(BaseModel):
    """Either a reference (type + id) or a free-text label."""

    kind: Literal["reference", "label"]
    type: Optional[str] = None
    id: Optional[str] = None
    label: Optional[str] = None

    @classmethod
    def from_attribution(cls, value: Attribution) -> Optional["AttributionResponse"]:
        if isinstance(value, IdentityReference):
            return cls(kind="reference", type=value.type, id=value.id)
        if isinstance(value, FreeTextLabel):
            return cls(kind="label", label=value.text)
        return None


class ChangeResponse(BaseModel):
    old: Any = None
    new: Any = None
    old_known: bool = True


class AuditRecordResponse(BaseModel):
    entity_type: str
    entity_id: str
    action: ActionKind
    version: int = Field(..., ge=1)
    changes: Dict[str, ChangeResponse]
    actor: Optional[AttributionResponse] = None
    tenant: Optional[AttributionResponse] = None
    remote_address: Optional[str] = None
    request_id: Optional[str] = None
    created_at: Optional[datetime] = None
    degraded: bool = Field(False, description="Payload could not be parsed; changes hold its raw rendering")

    @classmethod
    def from_record(cls, record: AuditRecord) -> "AuditRecordResponse":
        return cls(
            entity_type=record.entity_type,
            entity_id=record.entity_id,
            action=ActionKind.parse(record.action),
            version=record.version,
            changes={
                name: ChangeResponse(
                    old=change.old if change.old_known else None,
                    new=change.new,
                    old_known=change.old_known,
                )
                for name, change in record.changes.items()
            },
            actor=AttributionResponse.from_attribution(record.actor),
            tenant=AttributionResponse.from_attribution(record.tenant),
            remote_address=record.remote_address,
            request_id=record.request_id,
            created_at=record.created_at,
            degraded=FALLBACK_KEY in record.changes,
        )


class RevisionResponse(BaseModel):
    entity_type: str
    entity_id: str
    version: int
    action: ActionKind
    destroyed: bool
    attributes: Dict[str, Any]

    @classmethod
    def from_revision(cls, revision: Revision) -> "RevisionResponse":
        return cls(
            entity_type=revision.entity_type,
            entity_id=revision.entity_id,
            version=revision.version,
            action=revision.action,
            destroyed=revision.destroyed,
            attributes=dict(revision.attributes),
        )


class UndoResponse(BaseModel):
    entity_type: str
    entity_id: str
    undone_version: int
    entity_removed: bool
    result_entity_id: Optional[str] = None
