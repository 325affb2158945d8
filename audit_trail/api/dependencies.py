"""FastAPI dependency injection: DB session, audited registry, history service factory."""

from typing import Callable

from sqlalchemy.orm import Session

from audit_trail.application.history_service import HistoryService
from audit_trail.domain.registry import AuditedEntityRegistry, registry
from audit_trail.infrastructure.database.audit_repository_db import SqlAlchemyAuditRepository
from audit_trail.infrastructure.database.entity_store import SqlAlchemyEntityStore

HistoryServiceFactory = Callable[[Session], HistoryService]


def get_registry() -> AuditedEntityRegistry:
    """Return the process-wide audited entity registry."""
    return registry


def build_history_service(session: Session, audited: AuditedEntityRegistry) -> HistoryService:
    """HistoryService bound to a sync Session (inside AsyncSession.run_sync)."""
    return HistoryService(
        repository=SqlAlchemyAuditRepository(session),
        entity_store=SqlAlchemyEntityStore(session, audited),
        registry=audited,
    )
