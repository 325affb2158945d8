"""History API router: audit records, revisions and undo for one entity."""

import logging
from typing import Annotated, List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from audit_trail.api.dependencies import build_history_service, get_registry
from audit_trail.domain.registry import AuditedEntityRegistry
from audit_trail.domain.schemas.audit import AuditRecordResponse, RevisionResponse, UndoResponse
from audit_trail.infrastructure.database.session import get_db
from audit_trail.infrastructure.database.tracking import orm_identity

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/{entity_type}/{entity_id}", response_model=List[AuditRecordResponse])
async def list_history(
    entity_type: str,
    entity_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    audited: Annotated[AuditedEntityRegistry, Depends(get_registry)],
):
    """All audit records of one entity, ascending by version."""
    records = await db.run_sync(
        lambda session: build_history_service(session, audited).history(entity_type, entity_id)
    )
    return [AuditRecordResponse.from_record(record) for record in records]


@router.get("/{entity_type}/{entity_id}/revisions", response_model=List[RevisionResponse])
async def list_revisions(
    entity_type: str,
    entity_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    audited: Annotated[AuditedEntityRegistry, Depends(get_registry)],
):
    """Reconstructed state at every version."""
    revisions = await db.run_sync(
        lambda session: build_history_service(session, audited).revisions(entity_type, entity_id)
    )
    return [RevisionResponse.from_revision(revisions[v]) for v in sorted(revisions)]


@router.get("/{entity_type}/{entity_id}/revisions/{version}", response_model=RevisionResponse)
async def get_revision(
    entity_type: str,
    entity_id: str,
    version: int,
    db: Annotated[AsyncSession, Depends(get_db)],
    audited: Annotated[AuditedEntityRegistry, Depends(get_registry)],
):
    """Reconstructed state as of version."""
    revision = await db.run_sync(
        lambda session: build_history_service(session, audited).revision(entity_type, entity_id, version)
    )
    return RevisionResponse.from_revision(revision)


@router.post("/{entity_type}/{entity_id}/versions/{version}/undo", response_model=UndoResponse)
async def undo_version(
    entity_type: str,
    entity_id: str,
    version: int,
    db: Annotated[AsyncSession, Depends(get_db)],
    audited: Annotated[AuditedEntityRegistry, Depends(get_registry)],
):
    """Undo one audit record. The undo and its own audit record commit together."""

    def _undo(session):
        entity = build_history_service(session, audited).undo(entity_type, entity_id, version)
        if entity is None:
            return None
        return orm_identity(entity)[1]

    try:
        result_entity_id = await db.run_sync(_undo)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(
        "history_undo_committed",
        extra={"entity_type": entity_type, "entity_id": entity_id, "version": version},
    )
    return UndoResponse(
        entity_type=entity_type,
        entity_id=entity_id,
        undone_version=version,
        entity_removed=result_entity_id is None,
        result_entity_id=result_entity_id,
    )
