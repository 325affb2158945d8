"""In-memory audit repository. Implements AuditRepository protocol without database infrastructure."""

import threading
from contextlib import contextmanager
from dataclasses import replace
from itertools import count
from typing import Dict, Iterator, List, Tuple

from audit_trail.domain.exceptions import AuditRecordNotFoundError, VersionConflictError
from audit_trail.domain.models.audit import AuditRecord

EntityKey = Tuple[str, str]


class InMemoryAuditRepository:
    """
    Records are kept per entity, sorted by version. Version assignment is serialized
    per entity with a re-entrant lock; different entities never contend.
    Writers replace an entity's list rather than mutating it, so readers need no lock
    and never see a partially updated history.
    One lock is created per entity and kept for the life of the repository; the lock
    table only grows, which is acceptable for an in-process store.
    """

    def __init__(self) -> None:
        self._records: Dict[EntityKey, List[AuditRecord]] = {}
        self._locks: Dict[EntityKey, threading.RLock] = {}
        # Guards creation of per-entity locks only
        self._registry_lock = threading.Lock()
        self._ids = count(1)

    def _lock_for(self, key: EntityKey) -> threading.RLock:
        with self._registry_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.RLock()
            return lock

    @contextmanager
    def serialize(self, entity_type: str, entity_id: str) -> Iterator[None]:
        with self._lock_for((entity_type, entity_id)):
            yield

    def next_version(self, entity_type: str, entity_id: str) -> int:
        records = self._records.get((entity_type, entity_id))
        if not records:
            return 1
        return records[-1].version + 1

    def insert(self, record: AuditRecord) -> AuditRecord:
        key = (record.entity_type, record.entity_id)
        with self._lock_for(key):
            records = self._records.get(key, [])
            if any(r.version == record.version for r in records):
                raise VersionConflictError(
                    f"Version {record.version} already recorded for {key[0]}#{key[1]}"
                )
            stored = replace(record, id=next(self._ids))
            self._records[key] = sorted(records + [stored], key=lambda r: r.version)
        return stored

    def query_records(self, entity_type: str, entity_id: str) -> List[AuditRecord]:
        return list(self._records.get((entity_type, entity_id), []))

    def get_record(self, entity_type: str, entity_id: str, version: int) -> AuditRecord:
        for record in self._records.get((entity_type, entity_id), []):
            if record.version == version:
                return record
        raise AuditRecordNotFoundError(
            f"No audit record for {entity_type}#{entity_id} at version {version}"
        )

    def count(self) -> int:
        return sum(len(records) for records in self._records.values())
