# audit_trail/infrastructure/database/models.py

from sqlalchemy import Column, DateTime, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.sql import func

from audit_trail.domain.models.audit import (
    Attribution,
    attribution_from_columns,
    attribution_to_columns,
)
from audit_trail.infrastructure.database.session import Base


class AuditRow(Base):
    """
    ORM model for persisted audit records. One table covers every audited entity type.
    Actor and tenant are stored either as a reference (id + type) or as a free-text label, never both.
    """

    __tablename__ = "audits"
    __table_args__ = (
        UniqueConstraint("entity_type", "entity_id", "version", name="uq_audits_entity_version"),
        Index("ix_audits_entity", "entity_type", "entity_id"),
        Index("ix_audits_request_id", "request_id"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)

    entity_type = Column(String, nullable=False)
    entity_id = Column(String, nullable=False)
    action = Column(String, nullable=False)
    changes = Column(Text, nullable=True)
    version = Column(Integer, nullable=False, default=1)

    actor_id = Column(String, nullable=True)
    actor_type = Column(String, nullable=True)
    actor_label = Column(String, nullable=True)

    tenant_id = Column(String, nullable=True)
    tenant_type = Column(String, nullable=True)
    tenant_label = Column(String, nullable=True)

    remote_address = Column(String, nullable=True)
    request_id = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    @property
    def actor(self) -> Attribution:
        return attribution_from_columns(self.actor_id, self.actor_type, self.actor_label)

    @actor.setter
    def actor(self, value: Attribution) -> None:
        self.actor_id, self.actor_type, self.actor_label = attribution_to_columns(value)

    @property
    def tenant(self) -> Attribution:
        return attribution_from_columns(self.tenant_id, self.tenant_type, self.tenant_label)

    @tenant.setter
    def tenant(self, value: Attribution) -> None:
        self.tenant_id, self.tenant_type, self.tenant_label = attribution_to_columns(value)
