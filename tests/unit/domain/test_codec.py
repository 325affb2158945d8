"""Diff codec: current format, legacy payloads, fallback decoding, typed values."""

import json
import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import UUID

import pytest

from audit_trail.domain.codec import FALLBACK_KEY, DiffCodec, is_fallback
from audit_trail.domain.exceptions import DiffEncodingError
from audit_trail.domain.models.audit import UNKNOWN, Change


@pytest.fixture
def codec():
    return DiffCodec()


def test_encode_writes_versioned_envelope(codec):
    payload = json.loads(codec.encode({"name": Change("John", "Joe")}))
    assert payload == {"format": 1, "changes": {"name": {"old": "John", "new": "Joe"}}}


def test_decode_current_format(codec):
    stored = codec.encode({"name": ("John", "Joe"), "logins": Change(0, 1)})
    changes = codec.decode(stored)
    assert changes == {"name": Change("John", "Joe"), "logins": Change(0, 1)}
    assert not is_fallback(changes)


def test_unknown_old_value_is_omitted_and_restored(codec):
    stored = codec.encode({"name": Change(UNKNOWN, "Joe")})
    assert "old" not in json.loads(stored)["changes"]["name"]
    change = codec.decode(stored)["name"]
    assert change.old is UNKNOWN
    assert change.new == "Joe"
    assert not change.old_known


def test_typed_values_survive_storage(codec):
    moment = datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc)
    ident = UUID("12345678-1234-5678-1234-567812345678")
    changes = {
        "seen_at": Change(None, moment),
        "birthday": Change(date(1990, 1, 1), date(1991, 2, 2)),
        "balance": Change(Decimal("1.10"), Decimal("2.25")),
        "token": Change(None, ident),
        "blob": Change(b"\x00\x01", b"\xff"),
        "tags": Change(("a", "b"), {"c"}),
        "settings": Change({1: "one"}, {"theme": "dark"}),
    }
    decoded = codec.decode(codec.encode(changes))
    assert decoded == changes
    assert isinstance(decoded["tags"].old, tuple)
    assert isinstance(decoded["tags"].new, set)


def test_unencodable_value_raises(codec):
    with pytest.raises(DiffEncodingError):
        codec.encode({"handle": Change(None, object())})


def test_decode_legacy_pairs(codec):
    changes = codec.decode('{"name": ["John", "Joe"]}')
    assert changes == {"name": Change("John", "Joe")}


def test_decode_legacy_single_values(codec):
    """Old records stored only the new value; the old one is unknown."""
    changes = codec.decode({"name": "Joe", "logins": 3})
    assert changes["name"].old is UNKNOWN
    assert changes["name"].new == "Joe"
    assert changes["logins"].new == 3


def test_decode_malformed_payload_falls_back(codec, caplog):
    with caplog.at_level(logging.WARNING):
        changes = codec.decode("--- not json")
    assert is_fallback(changes)
    assert changes[FALLBACK_KEY].new == "--- not json"
    assert changes[FALLBACK_KEY].old is UNKNOWN
    assert "diff_decode_fallback" in caplog.text


def test_decode_non_mapping_json_falls_back(codec):
    changes = codec.decode("[1, 2, 3]")
    assert is_fallback(changes)
    assert changes[FALLBACK_KEY].new == "[1, 2, 3]"


def test_envelope_with_unsupported_format_falls_back(codec):
    payload = json.dumps({"format": 99, "changes": {"name": {"new": "x"}}})
    assert is_fallback(codec.decode(payload))


def test_decode_accepts_bytes(codec):
    stored = codec.encode({"name": Change(None, "Joe")}).encode("utf-8")
    assert codec.decode(stored) == {"name": Change(None, "Joe")}


def test_legacy_mapping_with_format_and_changes_attributes(codec):
    """Entities may have attributes named format and changes; their legacy payloads stay readable."""
    changes = codec.decode('{"format": "A4", "changes": 3, "name": "x"}')
    assert not is_fallback(changes)
    assert changes["format"] == Change(UNKNOWN, "A4")
    assert changes["changes"] == Change(UNKNOWN, 3)
    assert changes["name"] == Change(UNKNOWN, "x")


def test_legacy_pairs_with_format_attribute(codec):
    changes = codec.decode('{"format": ["A4", "A5"], "changes": {"count": 1}}')
    assert changes["format"] == Change("A4", "A5")
    assert changes["changes"] == Change(UNKNOWN, {"count": 1})
