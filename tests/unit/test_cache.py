"""Unit tests for the refreshing cache, storage backends and partial JSON."""

import asyncio

import pytest

from interviewprep_core.cache import RefreshingCache
from interviewprep_core.llm.partial_json import merge_partial, parse_partial_json
from tests.fakes import ManualClock


class CountingLoader:
    def __init__(self, *outcomes, delay: float = 0):
        self.outcomes = list(outcomes)
        self.calls = 0
        self.delay = delay

    async def __call__(self):
        outcome = self.outcomes[min(self.calls, len(self.outcomes) - 1)]
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class TestRefreshingCache:
    """Tests for RefreshingCache."""

    @pytest.mark.asyncio
    async def test_concurrent_readers_share_one_load(self):
        loader = CountingLoader({"a": 1}, delay=0.01)
        cache = RefreshingCache(loader, ttl_seconds=60, clock=ManualClock())

        values = await asyncio.gather(*(cache.get() for _ in range(10)))

        assert loader.calls == 1
        assert all(v == {"a": 1} for v in values)

    @pytest.mark.asyncio
    async def test_ttl_expiry_reloads(self):
        clock = ManualClock()
        loader = CountingLoader("one", "two")
        cache = RefreshingCache(loader, ttl_seconds=60, clock=clock)

        assert await cache.get() == "one"
        clock.advance(59)
        assert await cache.get() == "one"
        clock.advance(1)
        assert await cache.get() == "two"

    @pytest.mark.asyncio
    async def test_failure_keeps_previous_value(self):
        clock = ManualClock()
        cache = RefreshingCache(CountingLoader("good", RuntimeError("boom")), ttl_seconds=60, clock=clock)
        await cache.get()
        clock.advance(120)

        assert await cache.get() == "good"
        info = cache.info()
        assert info.is_stale is True
        assert info.refresh_failures == 1
        assert info.last_error == "boom"

    @pytest.mark.asyncio
    async def test_fallback_when_never_loaded(self):
        cache = RefreshingCache(CountingLoader(RuntimeError("boom")), ttl_seconds=60, fallback="static")

        assert await cache.get() == "static"
        assert cache.peek() is None

    @pytest.mark.asyncio
    async def test_failure_waits_out_retry_delay(self):
        clock = ManualClock()
        loader = CountingLoader(RuntimeError("boom"), "fresh")
        cache = RefreshingCache(loader, ttl_seconds=60, clock=clock, fallback="static", retry_delay_seconds=10)

        assert await cache.get() == "static"
        clock.advance(5)
        assert await cache.get() == "static"
        assert cache.in_retry_delay()
        assert loader.calls == 1

        clock.advance(5)
        assert await cache.get() == "fresh"
        assert loader.calls == 2
        assert not cache.in_retry_delay()

    @pytest.mark.asyncio
    async def test_without_anything_to_serve_failures_retry_immediately(self):
        loader = CountingLoader(RuntimeError("boom"), "loaded")
        cache = RefreshingCache(loader, ttl_seconds=60, clock=ManualClock())

        with pytest.raises(RuntimeError):
            await cache.get()

        assert await cache.get() == "loaded"

    @pytest.mark.asyncio
    async def test_raises_without_value_or_fallback(self):
        cache = RefreshingCache(CountingLoader(RuntimeError("boom")), ttl_seconds=60)

        with pytest.raises(RuntimeError, match="boom"):
            await cache.get()

    @pytest.mark.asyncio
    async def test_invalidate(self):
        loader = CountingLoader("one", "two")
        cache = RefreshingCache(loader, ttl_seconds=60, clock=ManualClock())
        await cache.get()

        cache.invalidate()

        assert await cache.get() == "two"
        assert loader.calls == 2


class TestInMemoryStores:
    """Tests for the in-memory storage backends."""

    @pytest.mark.asyncio
    async def test_key_value_roundtrip_is_copied(self, kv_store):
        value = {"nested": [1, 2]}
        await kv_store.set("k", value)
        value["nested"].append(3)

        stored = await kv_store.get("k")
        stored["nested"].append(4)

        assert await kv_store.get("k") == {"nested": [1, 2]}

    @pytest.mark.asyncio
    async def test_delete_missing_key(self, kv_store):
        await kv_store.delete("missing")

        assert await kv_store.get("missing") is None

    @pytest.mark.asyncio
    async def test_record_store_keeps_order_and_limit(self, record_store):
        for i in range(5):
            await record_store.append("logs", {"i": i})

        assert [r["i"] for r in await record_store.list("logs")] == [0, 1, 2, 3, 4]
        assert [r["i"] for r in await record_store.list("logs", limit=2)] == [3, 4]
        assert await record_store.list("other") == []

    @pytest.mark.asyncio
    async def test_counter_refuses_over_limit(self, counter_store):
        first = await counter_store.try_increment("c", 3, limit=5)
        second = await counter_store.try_increment("c", 3, limit=5)

        assert (first.applied, first.value) == (True, 3)
        assert (second.applied, second.value) == (False, 3)
        assert await counter_store.read("c") == 3


class TestPartialJson:
    """Tests for partial JSON parsing and merging."""

    def test_truncated_string_kept_as_prefix(self):
        assert parse_partial_json('{"question": "What is a') == {"question": "What is a"}

    def test_leading_text_skipped(self):
        assert parse_partial_json('Here you go: {"a": 1') == {"a": 1}

    def test_nothing_parsed_before_object(self):
        assert parse_partial_json("Sure") is None
        assert parse_partial_json("[1, 2]") is None

    def test_merge_keeps_missing_keys(self):
        assert merge_partial({"a": "x", "b": [1]}, {"a": "xy"}) == {"a": "xy", "b": [1]}

    def test_merge_never_shortens_lists(self):
        assert merge_partial({"o": ["a", "b"]}, {"o": ["a2"]}) == {"o": ["a2", "b"]}

    def test_merge_ignores_emptied_values(self):
        assert merge_partial({"a": "x"}, {"a": ""}) == {"a": "x"}
        assert merge_partial({"a": "x"}, {"a": None}) == {"a": "x"}
