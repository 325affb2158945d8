"""Attribution context: scoping, restoration on error, lazy accessors, isolation."""

import asyncio
import threading

import pytest

from audit_trail.core.context import (
    as_actor,
    attribution,
    current_attribution,
    peek,
    with_attribution,
)
from audit_trail.domain.exceptions import AttributionKeyError


def test_defaults_are_none():
    snapshot = current_attribution()
    assert snapshot.actor is None
    assert snapshot.tenant is None
    assert snapshot.remote_address is None
    assert snapshot.request_id is None


def test_nested_scopes_override_only_given_keys():
    with attribution(actor="outer", request_id="req-1"):
        with as_actor("inner"):
            snapshot = current_attribution()
            assert snapshot.actor == "inner"
            assert snapshot.request_id == "req-1"
        assert current_attribution().actor == "outer"
    assert current_attribution().actor is None


def test_scope_restored_when_block_raises():
    with attribution(actor="outer"):
        with pytest.raises(ZeroDivisionError):
            with as_actor("inner"):
                1 / 0
        assert current_attribution().actor == "outer"
    assert current_attribution().actor is None


def test_with_attribution_returns_body_result():
    result = with_attribution({"tenant": "acme"}, lambda suffix: current_attribution().tenant + suffix, "-1")
    assert result == "acme-1"
    assert current_attribution().tenant is None


def test_unknown_key_rejected():
    with pytest.raises(AttributionKeyError):
        with attribution(user="someone"):
            pass


def test_callable_values_resolved_on_read():
    holder = {"actor": None}
    with attribution(actor=lambda: holder["actor"]):
        assert current_attribution().actor is None
        holder["actor"] = "late-bound"
        assert current_attribution().actor == "late-bound"


def test_peek_skips_deferred_accessors():
    calls = []

    def lookup():
        calls.append(1)
        return "expensive"

    with attribution(actor=lookup, request_id="req-9"):
        assert peek("request_id") == "req-9"
        assert peek("actor") is None
    assert calls == []


def test_threads_do_not_observe_each_other():
    barrier = threading.Barrier(2)
    seen = {}

    def worker(name):
        with as_actor(name):
            barrier.wait(timeout=5)
            seen[name] = current_attribution().actor

    threads = [threading.Thread(target=worker, args=(n,)) for n in ("alice", "bob")]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert seen == {"alice": "alice", "bob": "bob"}
    assert current_attribution().actor is None


async def test_tasks_do_not_observe_each_other():
    gate = asyncio.Event()

    async def worker(name):
        with attribution(actor=name, request_id=f"req-{name}"):
            await gate.wait()
            snapshot = current_attribution()
            return snapshot.actor, snapshot.request_id

    tasks = [asyncio.create_task(worker(n)) for n in ("alice", "bob")]
    await asyncio.sleep(0)
    gate.set()
    results = await asyncio.gather(*tasks)

    assert results == [("alice", "req-alice"), ("bob", "req-bob")]
    assert current_attribution().actor is None
