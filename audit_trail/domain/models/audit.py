"""Audit record model: action kinds, attribute changes, actor/tenant attribution. Domain-level immutability."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, NamedTuple, Optional, Protocol, Tuple, Union

from audit_trail.domain.exceptions import InvalidActionKindError


class ActionKind(str, Enum):
    """Closed set of audited actions."""

    CREATE = "create"
    UPDATE = "update"
    DESTROY = "destroy"

    @classmethod
    def parse(cls, value: Any) -> "ActionKind":
        """Return the ActionKind for value. Raises InvalidActionKindError for anything else."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise InvalidActionKindError(value) from None


class _Unknown:
    """Marker for a value the record never stored (legacy single-value payloads)."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNKNOWN"

    def __reduce__(self):
        return (_Unknown, ())


UNKNOWN = _Unknown()


class Change(NamedTuple):
    """Old and new value of one attribute. old is UNKNOWN for legacy records."""

    old: Any
    new: Any

    @property
    def old_known(self) -> bool:
        return self.old is not UNKNOWN


# ---------------------------------------------------------------------------
# Attribution: who or what made the change
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class IdentityReference:
    """Reference to an identity entity by (type, id)."""

    type: str
    id: str


@dataclass(frozen=True)
class FreeTextLabel:
    """Free-text attribution, e.g. a system process name."""

    text: str


Attribution = Union[IdentityReference, FreeTextLabel, None]

IdentifyFn = Callable[[Any], Tuple[str, Optional[str]]]


def to_attribution(value: Any, identify: IdentifyFn) -> Attribution:
    """
    Normalise a resolved context value into the attribution union.
    None stays None, strings become labels, other objects are identified by (type, id).
    An object without an id yet (e.g. an unsaved entity) gives no attribution.
    """
    if value is None:
        return None
    if isinstance(value, (IdentityReference, FreeTextLabel)):
        return value
    if isinstance(value, str):
        return FreeTextLabel(value)
    type_name, entity_id = identify(value)
    if entity_id is None:
        return None
    return IdentityReference(type=type_name, id=entity_id)


def attribution_to_columns(
    value: Union[Attribution, str]
) -> Tuple[Optional[str], Optional[str], Optional[str]]:
    """Split attribution into (reference id, reference type, label). At most one form is populated."""
    if isinstance(value, str):
        return None, None, value
    if isinstance(value, IdentityReference):
        return value.id, value.type, None
    if isinstance(value, FreeTextLabel):
        return None, None, value.text
    return None, None, None


def attribution_from_columns(
    ref_id: Optional[str], ref_type: Optional[str], label: Optional[str]
) -> Attribution:
    if ref_id is not None and ref_type is not None:
        return IdentityReference(type=ref_type, id=ref_id)
    if label is not None:
        return FreeTextLabel(label)
    return None


# ---------------------------------------------------------------------------
# Audit record
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AuditRecord:
    """
    Immutable unit of history for one entity state transition.
    action is kept as given so that records read from storage can be inspected even when corrupted.
    """

    entity_type: str
    entity_id: str
    action: Union[ActionKind, str]
    changes: Dict[str, Change]
    version: int
    actor: Attribution = None
    tenant: Attribution = None
    remote_address: Optional[str] = None
    request_id: Optional[str] = None
    created_at: Optional[datetime] = None
    id: Optional[int] = field(default=None, compare=False)

    def new_attributes(self) -> Dict[str, Any]:
        """New value of every changed attribute."""
        return {name: change.new for name, change in self.changes.items()}

    def old_attributes(self) -> Dict[str, Any]:
        """Old value of every changed attribute whose old value was stored."""
        return {
            name: change.old
            for name, change in self.changes.items()
            if change.old_known
        }

    def to_dict(self) -> Dict[str, Any]:
        """Structured representation for JSON logging."""
        action = self.action.value if isinstance(self.action, ActionKind) else self.action
        return {
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "action": action,
            "version": self.version,
            "attributes": list(self.changes),
            "request_id": self.request_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class AuditRecordFactory(Protocol):
    """Builds the record representation persisted by the repository."""

    def __call__(
        self,
        *,
        entity_type: str,
        entity_id: str,
        action: ActionKind,
        changes: Dict[str, Change],
        version: int,
        actor: Attribution,
        tenant: Attribution,
        remote_address: Optional[str],
        request_id: Optional[str],
        created_at: datetime,
    ) -> AuditRecord:
        ...
