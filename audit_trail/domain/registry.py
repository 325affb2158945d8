"""Audited entity registry: which entity classes are audited and which of their attributes count."""

from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Type

from audit_trail.domain.exceptions import EntityNotAuditedError


@dataclass(frozen=True)
class AuditOptions:
    """Allow/deny configuration for one registered class. only=None means every attribute."""

    only: Optional[FrozenSet[str]] = None
    exclude: FrozenSet[str] = frozenset()

    def allows(self, attribute: str) -> bool:
        if attribute in self.exclude:
            return False
        return self.only is None or attribute in self.only


class AuditedEntityRegistry:
    """
    Tracks audited entity classes. A subclass of a registered class is audited with
    the options of its nearest registered ancestor. Entity type names are class names.
    """

    def __init__(self) -> None:
        self._registered: Dict[Type[Any], AuditOptions] = {}

    def register(
        self,
        cls: Type[Any],
        *,
        only: Optional[Iterable[str]] = None,
        exclude: Iterable[str] = (),
    ) -> Type[Any]:
        self._registered[cls] = AuditOptions(
            only=frozenset(only) if only is not None else None,
            exclude=frozenset(exclude),
        )
        return cls

    def audited(self, only: Optional[Iterable[str]] = None, exclude: Iterable[str] = ()):
        """Class decorator form of register()."""

        def decorator(cls: Type[Any]) -> Type[Any]:
            return self.register(cls, only=only, exclude=exclude)

        return decorator

    def unregister(self, cls: Type[Any]) -> None:
        self._registered.pop(cls, None)

    @staticmethod
    def type_name(cls: Type[Any]) -> str:
        return cls.__name__

    def options_for(self, cls: Type[Any]) -> Optional[AuditOptions]:
        for klass in cls.__mro__:
            if klass in self._registered:
                return self._registered[klass]
        return None

    def is_audited(self, entity: Any) -> bool:
        """Accepts a class or an entity type name."""
        if isinstance(entity, str):
            return self._find_class(entity) is not None
        return self.options_for(entity) is not None

    def audited_classes(self) -> List[Type[Any]]:
        """Registered classes plus all of their subclasses."""
        seen: List[Type[Any]] = []
        pending = list(self._registered)
        while pending:
            cls = pending.pop(0)
            if cls in seen:
                continue
            seen.append(cls)
            pending.extend(cls.__subclasses__())
        return seen

    def entity_class(self, type_name: str) -> Type[Any]:
        cls = self._find_class(type_name)
        if cls is None:
            raise EntityNotAuditedError(f"Entity type '{type_name}' is not audited")
        return cls

    def filter_changes(
        self,
        cls: Type[Any],
        changes: Mapping[str, Any],
        ignored: Iterable[str] = (),
    ) -> Dict[str, Any]:
        """Drop attributes excluded by the class options or globally ignored. Keeps input order."""
        options = self.options_for(cls)
        if options is None:
            raise EntityNotAuditedError(f"Entity type '{self.type_name(cls)}' is not audited")
        ignored_set = frozenset(ignored)
        return {
            name: value
            for name, value in changes.items()
            if name not in ignored_set and options.allows(name)
        }

    def _find_class(self, type_name: str) -> Optional[Type[Any]]:
        for cls in self.audited_classes():
            if self.type_name(cls) == type_name:
                return cls
        return None


# Default registry for direct import (e.g. model modules using @registry.audited())
registry = AuditedEntityRegistry()
