"""DB-backed audit repository. Persists audit records to the audits table through a sync Session."""

from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from audit_trail.domain.codec import DiffCodec
from audit_trail.domain.exceptions import AuditRecordNotFoundError, VersionConflictError
from audit_trail.domain.models.audit import ActionKind, AuditRecord
from audit_trail.infrastructure.database.models import AuditRow


class SqlAlchemyAuditRepository:
    """
    Implements AuditRepository protocol on a SQLAlchemy Session.

    Records are added to the caller's session and commit or roll back with it.
    Per-entity serialization comes from the database: audits are written after the
    host row's UPDATE/DELETE in the same transaction, so a concurrent writer to the
    same entity blocks on that row until commit. The unique (entity_type, entity_id,
    version) constraint rejects anything that slips through.
    An AsyncSession reaches this class via AsyncSession.run_sync.
    """

    def __init__(self, session: Session, codec: Optional[DiffCodec] = None) -> None:
        self._session = session
        self._codec = codec or DiffCodec()

    @contextmanager
    def serialize(self, entity_type: str, entity_id: str) -> Iterator[None]:
        yield

    def _pending_rows(self, entity_type: str, entity_id: str) -> List[AuditRow]:
        return [
            obj for obj in self._session.new
            if isinstance(obj, AuditRow)
            and obj.entity_type == entity_type
            and obj.entity_id == entity_id
        ]

    def next_version(self, entity_type: str, entity_id: str) -> int:
        stmt = select(func.max(AuditRow.version)).where(
            AuditRow.entity_type == entity_type,
            AuditRow.entity_id == entity_id,
        )
        stored = self._session.execute(stmt).scalar() or 0
        pending = max((row.version for row in self._pending_rows(entity_type, entity_id)), default=0)
        return max(stored, pending) + 1

    def insert(self, record: AuditRecord) -> AuditRecord:
        if any(row.version == record.version for row in self._pending_rows(record.entity_type, record.entity_id)):
            raise VersionConflictError(
                f"Version {record.version} already pending for {record.entity_type}#{record.entity_id}"
            )
        row = AuditRow(
            entity_type=record.entity_type,
            entity_id=record.entity_id,
            action=ActionKind.parse(record.action).value,
            changes=self._codec.encode(record.changes),
            version=record.version,
            remote_address=record.remote_address,
            request_id=record.request_id,
            created_at=record.created_at,
        )
        row.actor = record.actor
        row.tenant = record.tenant
        self._session.add(row)
        return record

    @staticmethod
    def _read_action(value: str):
        # Unrecognised actions are kept verbatim; replay and undo reject them
        try:
            return ActionKind(value)
        except ValueError:
            return value

    def _to_record(self, row: AuditRow) -> AuditRecord:
        return AuditRecord(
            entity_type=row.entity_type,
            entity_id=row.entity_id,
            action=self._read_action(row.action),
            changes=self._codec.decode(row.changes if row.changes is not None else "{}"),
            version=row.version,
            actor=row.actor,
            tenant=row.tenant,
            remote_address=row.remote_address,
            request_id=row.request_id,
            created_at=row.created_at,
            id=row.id,
        )

    def query_records(self, entity_type: str, entity_id: str) -> List[AuditRecord]:
        stmt = (
            select(AuditRow)
            .where(AuditRow.entity_type == entity_type, AuditRow.entity_id == entity_id)
            .order_by(AuditRow.version)
        )
        return [self._to_record(row) for row in self._session.execute(stmt).scalars().all()]

    def get_record(self, entity_type: str, entity_id: str, version: int) -> AuditRecord:
        stmt = select(AuditRow).where(
            AuditRow.entity_type == entity_type,
            AuditRow.entity_id == entity_id,
            AuditRow.version == version,
        )
        row = self._session.execute(stmt).scalar_one_or_none()
        if row is None:
            raise AuditRecordNotFoundError(
                f"No audit record for {entity_type}#{entity_id} at version {version}"
            )
        return self._to_record(row)

    def correct_timestamp(self, entity_type: str, entity_id: str, version: int, created_at: datetime) -> None:
        """Administrative fix of created_at. The only change allowed to a stored record."""
        stmt = (
            update(AuditRow)
            .where(
                AuditRow.entity_type == entity_type,
                AuditRow.entity_id == entity_id,
                AuditRow.version == version,
            )
            .values(created_at=created_at)
        )
        result = self._session.execute(stmt)
        if result.rowcount == 0:
            raise AuditRecordNotFoundError(
                f"No audit record for {entity_type}#{entity_id} at version {version}"
            )
