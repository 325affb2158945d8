# audit_trail/core/context.py
"""
Attribution context: who is making the current change.

Each thread and each asyncio task sees its own copy of the store (contextvars),
so concurrent requests never observe each other's values and no locking is needed.
Values are kept as zero-argument accessors and resolved when read, not when a
scope is entered.
"""

import contextvars
from contextlib import contextmanager
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Iterator, Mapping, Optional, TypeVar

from audit_trail.domain.exceptions import AttributionKeyError, AttributionRestoreFailure

ATTRIBUTION_KEYS = frozenset({"actor", "tenant", "remote_address", "request_id"})

Accessor = Callable[[], Any]
T = TypeVar("T")

_EMPTY: Mapping[str, Accessor] = MappingProxyType({})

attribution_ctx: contextvars.ContextVar[Mapping[str, Accessor]] = contextvars.ContextVar(
    "attribution", default=_EMPTY
)


@dataclass(frozen=True)
class AttributionSnapshot:
    """Attribution values resolved at one point in time."""

    actor: Any = None
    tenant: Any = None
    remote_address: Optional[str] = None
    request_id: Optional[str] = None


class _Value:
    """Accessor for a value given directly rather than as a callable."""

    __slots__ = ("value",)

    def __init__(self, value: Any) -> None:
        self.value = value

    def __call__(self) -> Any:
        return self.value


def _accessor(value: Any) -> Accessor:
    # Callables are treated as deferred accessors and called on read
    if callable(value):
        return value
    return _Value(value)


@contextmanager
def attribution(**overrides: Any) -> Iterator[None]:
    """
    Install attribution values for the duration of the block.

    Only the given keys are overridden; the enclosing scope's values for every key
    come back on exit, including when the block raises.
    """
    unknown = set(overrides) - ATTRIBUTION_KEYS
    if unknown:
        raise AttributionKeyError(f"Unsupported attribution keys: {', '.join(sorted(unknown))}")

    current = attribution_ctx.get()
    merged = dict(current)
    merged.update({key: _accessor(value) for key, value in overrides.items()})
    token = attribution_ctx.set(MappingProxyType(merged))
    try:
        yield
    finally:
        try:
            attribution_ctx.reset(token)
        except (RuntimeError, ValueError) as e:
            raise AttributionRestoreFailure(f"Attribution store could not be restored: {e}") from e


def with_attribution(overrides: Mapping[str, Any], body: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """Run body inside an attribution scope and return its result."""
    with attribution(**overrides):
        return body(*args, **kwargs)


def as_actor(actor: Any):
    """Shorthand for attribution(actor=actor)."""
    return attribution(actor=actor)


def current_attribution() -> AttributionSnapshot:
    """Resolve the nearest enclosing value of every key. Missing keys are None."""
    store = attribution_ctx.get()
    resolved = {key: accessor() for key, accessor in store.items()}
    return AttributionSnapshot(**resolved)


def peek(key: str) -> Any:
    """
    Return a value only if it was stored as a plain value, without calling a deferred accessor.
    Used by logging, which must not trigger lazy actor lookups.
    """
    accessor = attribution_ctx.get().get(key)
    if isinstance(accessor, _Value):
        return accessor.value
    return None
