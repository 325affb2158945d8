"""
Diff codec: attribute changes to and from the stored payload.

Payloads are JSON. The current format is an envelope
    {"format": 1, "changes": {"name": {"old": "John", "new": "Joe"}}}
where "old" is omitted when it was never known. Values outside plain JSON are
written as tagged objects ({"__type__": "datetime", "value": "..."}).

decode() tries each entry of DECODE_CHAIN in order and returns the first result:
    1. structured - the envelope above
    2. legacy     - a bare mapping; [old, new] pairs or a single stored new value
    3. fallback   - anything else; {FALLBACK_KEY: Change(UNKNOWN, str(payload))}
The fallback is a degraded success, not an error.
"""

import base64
import json
import logging
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Tuple, Union
from uuid import UUID

from audit_trail.domain.exceptions import DiffEncodingError
from audit_trail.domain.models.audit import UNKNOWN, Change

logger = logging.getLogger(__name__)

CODEC_FORMAT = 1
TYPE_TAG = "__type__"
FALLBACK_KEY = "__raw__"

Payload = Union[str, bytes, Mapping[str, Any]]
ChangesInput = Mapping[str, Union[Change, Sequence[Any]]]


# ---------------------------------------------------------------------------
# Typed values
# ---------------------------------------------------------------------------

def _dump(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, Enum):
        return _dump(value.value)
    if isinstance(value, datetime):
        return {TYPE_TAG: "datetime", "value": value.isoformat()}
    if isinstance(value, date):
        return {TYPE_TAG: "date", "value": value.isoformat()}
    if isinstance(value, time):
        return {TYPE_TAG: "time", "value": value.isoformat()}
    if isinstance(value, Decimal):
        return {TYPE_TAG: "decimal", "value": str(value)}
    if isinstance(value, UUID):
        return {TYPE_TAG: "uuid", "value": str(value)}
    if isinstance(value, bytes):
        return {TYPE_TAG: "bytes", "value": base64.b64encode(value).decode("ascii")}
    if isinstance(value, tuple):
        return {TYPE_TAG: "tuple", "items": [_dump(v) for v in value]}
    if isinstance(value, (set, frozenset)):
        kind = "frozenset" if isinstance(value, frozenset) else "set"
        return {TYPE_TAG: kind, "items": [_dump(v) for v in value]}
    if isinstance(value, list):
        return [_dump(v) for v in value]
    if isinstance(value, dict):
        if all(isinstance(k, str) for k in value) and TYPE_TAG not in value:
            return {k: _dump(v) for k, v in value.items()}
        return {TYPE_TAG: "dict", "items": [[_dump(k), _dump(v)] for k, v in value.items()]}
    raise DiffEncodingError(f"Cannot encode value of type {type(value).__name__}")


_LOADERS: Dict[str, Callable[[Dict[str, Any]], Any]] = {
    "datetime": lambda o: datetime.fromisoformat(o["value"]),
    "date": lambda o: date.fromisoformat(o["value"]),
    "time": lambda o: time.fromisoformat(o["value"]),
    "decimal": lambda o: Decimal(o["value"]),
    "uuid": lambda o: UUID(o["value"]),
    "bytes": lambda o: base64.b64decode(o["value"]),
    "tuple": lambda o: tuple(_load(v) for v in o["items"]),
    "set": lambda o: {_load(v) for v in o["items"]},
    "frozenset": lambda o: frozenset(_load(v) for v in o["items"]),
    "dict": lambda o: {_load(k): _load(v) for k, v in o["items"]},
}


def _load(value: Any) -> Any:
    if isinstance(value, list):
        return [_load(v) for v in value]
    if isinstance(value, dict):
        loader = _LOADERS.get(value.get(TYPE_TAG)) if isinstance(value.get(TYPE_TAG), str) else None
        if loader is not None:
            return loader(value)
        return {k: _load(v) for k, v in value.items()}
    return value


def _as_change(value: Union[Change, Sequence[Any]]) -> Change:
    if isinstance(value, Change):
        return value
    old, new = value
    return Change(old, new)


# ---------------------------------------------------------------------------
# Decode chain
# ---------------------------------------------------------------------------

def _parse_json(payload: Payload) -> Any:
    if isinstance(payload, Mapping):
        return payload
    if isinstance(payload, bytes):
        payload = payload.decode("utf-8")
    return json.loads(payload)


def _is_envelope(data: Any) -> bool:
    """An integer format plus a changes mapping of {"new": ...} entries. Anything looser is a legacy mapping."""
    if not isinstance(data, Mapping) or "format" not in data or "changes" not in data:
        return False
    fmt, entries = data["format"], data["changes"]
    if not isinstance(fmt, int) or isinstance(fmt, bool) or not isinstance(entries, Mapping):
        return False
    return all(isinstance(entry, Mapping) and "new" in entry for entry in entries.values())


def _decode_structured(payload: Payload) -> Optional[Dict[str, Change]]:
    try:
        data = _parse_json(payload)
    except (TypeError, ValueError):
        return None
    if not _is_envelope(data) or data["format"] != CODEC_FORMAT:
        return None
    entries = data["changes"]
    if not isinstance(entries, Mapping):
        return None
    result: Dict[str, Change] = {}
    try:
        for name, entry in entries.items():
            if not isinstance(entry, Mapping) or "new" not in entry:
                return None
            old = _load(entry["old"]) if "old" in entry else UNKNOWN
            result[name] = Change(old, _load(entry["new"]))
    except (ArithmeticError, KeyError, TypeError, ValueError):
        return None
    return result


def _decode_legacy(payload: Payload) -> Optional[Dict[str, Change]]:
    try:
        data = _parse_json(payload)
    except (TypeError, ValueError):
        return None
    # An envelope the structured decoder rejected is not a legacy mapping
    if not isinstance(data, Mapping) or _is_envelope(data):
        return None
    result: Dict[str, Change] = {}
    for name, value in data.items():
        if isinstance(value, (list, tuple)) and len(value) == 2:
            result[str(name)] = Change(value[0], value[1])
        else:
            # Old single-value form: only the new value was stored
            result[str(name)] = Change(UNKNOWN, value)
    return result


def _decode_fallback(payload: Payload) -> Dict[str, Change]:
    logger.warning(
        "diff_decode_fallback",
        extra={"payload_type": type(payload).__name__},
    )
    return {FALLBACK_KEY: Change(UNKNOWN, str(payload))}


DECODE_CHAIN: Tuple[Tuple[str, Callable[[Payload], Optional[Dict[str, Change]]]], ...] = (
    ("structured", _decode_structured),
    ("legacy", _decode_legacy),
    ("fallback", _decode_fallback),
)


def is_fallback(changes: Mapping[str, Change]) -> bool:
    """True when changes came from the fallback decoder rather than a parsed payload."""
    return FALLBACK_KEY in changes


class DiffCodec:
    """Encodes attribute changes for storage and decodes stored payloads of any historical format."""

    def encode(self, changes: ChangesInput) -> str:
        entries: Dict[str, Dict[str, Any]] = {}
        for name, value in changes.items():
            change = _as_change(value)
            entry: Dict[str, Any] = {}
            if change.old_known:
                entry["old"] = _dump(change.old)
            entry["new"] = _dump(change.new)
            entries[name] = entry
        return json.dumps({"format": CODEC_FORMAT, "changes": entries}, separators=(",", ":"))

    def decode(self, payload: Payload) -> Dict[str, Change]:
        # The last decoder in the chain never declines
        for _name, decoder in DECODE_CHAIN:
            result = decoder(payload)
            if result is not None:
                break
        return result


codec = DiffCodec()
