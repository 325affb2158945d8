"""SQLAlchemy entity store: load, create, update, delete and materialize audited host entities."""

import logging
from typing import Any, Dict, Optional, Tuple, Type

from sqlalchemy import inspect
from sqlalchemy.orm import Mapper, Session
from sqlalchemy.orm.attributes import set_committed_value

from audit_trail.domain.exceptions import EntityNotFoundError
from audit_trail.domain.registry import AuditedEntityRegistry

logger = logging.getLogger(__name__)


def _coerce(column, raw: str) -> Any:
    try:
        python_type = column.type.python_type
    except NotImplementedError:
        return raw
    if python_type is str:
        return raw
    try:
        return python_type(raw)
    except (TypeError, ValueError):
        return raw


def parse_identity(mapper: Mapper, entity_id: str) -> Tuple[Any, ...]:
    """Inverse of the comma-joined entity id written by orm_identity()."""
    columns = mapper.primary_key
    parts = entity_id.split(",") if len(columns) > 1 else [entity_id]
    return tuple(_coerce(column, part) for column, part in zip(columns, parts))


class SqlAlchemyEntityStore:
    """Implements EntityStore protocol. Changes are flushed, never committed; the caller owns the transaction."""

    def __init__(self, session: Session, registry: AuditedEntityRegistry) -> None:
        self._session = session
        self._registry = registry

    def _class(self, entity_type: str) -> Type[Any]:
        return self._registry.entity_class(entity_type)

    @staticmethod
    def _assignable(cls: Type[Any], attributes: Dict[str, Any]) -> Dict[str, Any]:
        """Keep mapped, non primary-key column attributes. Others are ignored."""
        mapper = inspect(cls)
        pk_keys = {mapper.get_property_by_column(c).key for c in mapper.primary_key}
        allowed = {prop.key for prop in mapper.column_attrs} - pk_keys
        ignored = set(attributes) - allowed
        if ignored:
            logger.debug(
                "entity_attributes_ignored",
                extra={"entity_type": cls.__name__, "attributes": sorted(ignored)},
            )
        return {name: value for name, value in attributes.items() if name in allowed}

    def load(self, entity_type: str, entity_id: str) -> Any:
        cls = self._class(entity_type)
        entity = self._session.get(cls, parse_identity(inspect(cls), entity_id))
        if entity is None:
            raise EntityNotFoundError(f"{entity_type}#{entity_id} does not exist")
        return entity

    def create(self, entity_type: str, attributes: Dict[str, Any]) -> Any:
        cls = self._class(entity_type)
        values = self._assignable(cls, attributes)
        entity = cls()
        for name, value in values.items():
            setattr(entity, name, value)
        self._session.add(entity)
        self._session.flush()
        return entity

    def update(self, entity_type: str, entity_id: str, attributes: Dict[str, Any]) -> Any:
        entity = self.load(entity_type, entity_id)
        values = self._assignable(type(entity), attributes)
        for name, value in values.items():
            setattr(entity, name, value)
        self._session.flush()
        return entity

    def delete(self, entity_type: str, entity_id: str) -> None:
        entity = self.load(entity_type, entity_id)
        self._session.delete(entity)
        self._session.flush()

    def materialize(self, entity_type: str, attributes: Dict[str, Any], cls: Optional[Type[Any]] = None) -> Any:
        """
        Transient instance carrying attributes. Values are written with set_committed_value,
        bypassing @validates and attribute events, and the instance is never added to a session.
        """
        cls = cls or self._class(entity_type)
        mapper = inspect(cls)
        # Instrumented instance without running __init__
        entity = mapper.class_manager.new_instance()
        allowed = {prop.key for prop in mapper.column_attrs}
        for name, value in attributes.items():
            if name in allowed:
                set_committed_value(entity, name, value)
        return entity
