"""
Tests for the durable store gateway, the keyed lock and logging setup.
"""
import asyncio
import json

import pytest
import structlog

from conftest import SlowStore
from contextcore.exceptions import StoreError
from contextcore.infrastructure.concurrency.keyed_lock import KeyedLock
from contextcore.infrastructure.observability.logging import (
    add_service_context,
    bind_request_context,
    clear_request_context,
    setup_logging,
)
from contextcore.infrastructure.storage.durable_store import InMemoryDurableStore, StoreGateway


class TestStoreGateway:

    @pytest.mark.asyncio
    async def test_json_round_trip(self, gateway, store):
        assert await gateway.put_json("k", {"a": [1, 2]}) is True
        assert await gateway.get_json("k") == {"a": [1, 2]}
        assert json.loads(store.data["k"]) == {"a": [1, 2]}

    @pytest.mark.asyncio
    async def test_missing_key_returns_default(self, gateway):
        assert await gateway.get_json("missing", default=[]) == []

    @pytest.mark.asyncio
    async def test_malformed_json_returns_default(self, gateway, store):
        store.data["k"] = "{oops"

        assert await gateway.get_json("k", default={}) == {}

    @pytest.mark.asyncio
    async def test_failures_degrade(self, failing_gateway):
        assert await failing_gateway.get_raw("k") is None
        assert await failing_gateway.put_raw("k", "v") is False

    @pytest.mark.asyncio
    async def test_strict_put_raises_store_error(self, failing_gateway):
        with pytest.raises(StoreError) as excinfo:
            await failing_gateway.put_raw("k", "v", strict=True)

        assert excinfo.value.key == "k"

    @pytest.mark.asyncio
    async def test_timeouts_degrade(self):
        gateway = StoreGateway(SlowStore(delay=0.5, initial={"k": "\"v\""}), timeout=0.01)

        assert await gateway.get_json("k", default="fallback") == "fallback"
        assert await gateway.put_raw("k", "v") is False

    @pytest.mark.asyncio
    async def test_non_string_values_are_rejected(self, store):
        with pytest.raises(StoreError):
            await store.put("k", {"not": "a string"})

    @pytest.mark.asyncio
    async def test_concurrent_appends_are_not_lost(self):
        gateway = StoreGateway(SlowStore(delay=0.001))

        await asyncio.gather(*(gateway.append_capped("items", index, limit=100) for index in range(20)))

        assert sorted(await gateway.get_json("items")) == list(range(20))

    @pytest.mark.asyncio
    async def test_append_replaces_non_list_values(self, gateway, store):
        store.data["items"] = json.dumps({"not": "a list"})

        await gateway.append_capped("items", 1, limit=10)

        assert await gateway.get_json("items") == [1]

    @pytest.mark.asyncio
    async def test_keys_by_prefix(self):
        store = InMemoryDurableStore({"metrics:a": "[]", "metrics:b": "[]", "feedback": "[]"})

        assert sorted(await store.keys("metrics:")) == ["metrics:a", "metrics:b"]


class TestKeyedLock:

    @pytest.mark.asyncio
    async def test_same_key_is_serialized(self):
        locks = KeyedLock()
        order = []

        async def worker(name):
            async with locks.acquire("k"):
                order.append(f"{name}-in")
                await asyncio.sleep(0.01)
                order.append(f"{name}-out")

        await asyncio.gather(worker("a"), worker("b"))

        assert order in (["a-in", "a-out", "b-in", "b-out"], ["b-in", "b-out", "a-in", "a-out"])

    @pytest.mark.asyncio
    async def test_locks_are_released_when_idle(self):
        locks = KeyedLock()

        async with locks.acquire("k"):
            assert locks.locked("k")
            assert len(locks) == 1

        assert not locks.locked("k")
        assert len(locks) == 0


class TestLogging:

    def test_setup_logging_accepts_both_formats(self):
        setup_logging(log_level="DEBUG", log_format="console")
        setup_logging(log_level="INFO", log_format="json", service_name="contextcore-tests")

        structlog.get_logger("tests").info("configured")

    def test_request_context_is_added_to_events(self):
        bind_request_context(trace_id="trace-1", session_id="s1")
        try:
            event = add_service_context(None, "info", {"event": "hello"})
        finally:
            clear_request_context()

        assert event["trace_id"] == "trace-1"
        assert event["session_id"] == "s1"
        assert "timestamp" in event

    def test_cleared_context_is_not_added(self):
        bind_request_context(trace_id="trace-1", session_id="s1")
        clear_request_context()

        event = add_service_context(None, "info", {"event": "hello"})

        assert "trace_id" not in event
