"""Unit tests for model pricing and cost estimation."""

import httpx
import pytest

from interviewprep_core.llm.base import ModelInfo
from interviewprep_core.observability.pricing import (
    DEFAULT_PRICING,
    FALLBACK_PRICING,
    ModelPricing,
    openrouter_pricing_source,
    strip_tier_prefix,
)
from tests.fakes import ManualClock


class ScriptedSource:
    """Pricing source returning scripted listings or raising."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = 0

    async def __call__(self):
        outcome = self.outcomes[min(self.calls, len(self.outcomes) - 1)]
        self.calls += 1
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def listing(prompt: float, completion: float, model: str = "vendor/model"):
    return [ModelInfo(id=model, prompt_price_per_token=prompt, completion_price_per_token=completion)]


class TestEstimateCost:
    """Tests for cost estimation."""

    @pytest.mark.asyncio
    async def test_one_million_input_tokens_costs_input_price(self):
        pricing = ModelPricing(ScriptedSource(listing(0.000002, 0.000008)), clock=ManualClock())

        assert await pricing.estimate_cost("vendor/model", 1_000_000, 0) == 2.0
        assert await pricing.estimate_cost("vendor/model", 0, 1_000_000) == 8.0

    @pytest.mark.asyncio
    async def test_cost_rounded_to_six_places(self):
        pricing = ModelPricing(ScriptedSource(listing(0.000003, 0.000015)), clock=ManualClock())

        cost = await pricing.estimate_cost("vendor/model", 1234, 567)

        assert cost == pytest.approx(0.012207)

    @pytest.mark.asyncio
    async def test_unknown_model_uses_default_row(self):
        pricing = ModelPricing(ScriptedSource(listing(0.000002, 0.000008)), clock=ManualClock())

        assert await pricing.get_model_pricing("nobody/knows") == DEFAULT_PRICING
        assert await pricing.estimate_cost("nobody/knows", 1_000_000, 0) == DEFAULT_PRICING.input

    @pytest.mark.asyncio
    async def test_tier_prefixed_ids_are_priced(self):
        pricing = ModelPricing(ScriptedSource(listing(0.000002, 0.000008)), clock=ManualClock())

        row = await pricing.get_model_pricing("high - vendor/model")

        assert row.input == pytest.approx(2.0)
        assert row.output == pytest.approx(8.0)

    def test_strip_tier_prefix(self):
        assert strip_tier_prefix("medium - openai/gpt-4o-mini") == "openai/gpt-4o-mini"
        assert strip_tier_prefix("openai/gpt-4o-mini") == "openai/gpt-4o-mini"
        assert strip_tier_prefix("team - vendor/model") == "team - vendor/model"


class TestPricingCache:
    """Tests for TTL refresh and failure handling."""

    @pytest.mark.asyncio
    async def test_refreshes_after_ttl(self):
        clock = ManualClock()
        source = ScriptedSource(listing(0.000001, 0.000001), listing(0.000004, 0.000004))
        pricing = ModelPricing(source, ttl_seconds=900, clock=clock)

        assert (await pricing.get_model_pricing("vendor/model")).input == pytest.approx(1.0)
        clock.advance(899)
        assert (await pricing.get_model_pricing("vendor/model")).input == pytest.approx(1.0)
        assert source.calls == 1

        clock.advance(1)
        assert pricing.is_stale()
        assert (await pricing.get_model_pricing("vendor/model")).input == pytest.approx(4.0)
        assert source.calls == 2

    @pytest.mark.asyncio
    async def test_failed_refresh_serves_stale_table(self):
        clock = ManualClock()
        source = ScriptedSource(listing(0.000001, 0.000001), httpx.ConnectError("down"))
        pricing = ModelPricing(source, ttl_seconds=900, clock=clock)
        await pricing.get_all()

        clock.advance(1000)

        assert (await pricing.get_model_pricing("vendor/model")).input == pytest.approx(1.0)
        info = pricing.cache_info()
        assert info["refresh_failures"] == 1
        assert info["last_error"] == "down"

    @pytest.mark.asyncio
    async def test_source_outage_not_retried_within_ttl(self):
        clock = ManualClock()
        source = ScriptedSource(httpx.ConnectError("down"), listing(0.000004, 0.000004, "openai/gpt-4o"))
        pricing = ModelPricing(source, ttl_seconds=900, clock=clock)

        for _ in range(5):
            assert await pricing.estimate_cost("openai/gpt-4o", 1_000_000, 0) == 2.5
            clock.advance(60)

        assert source.calls == 1

        clock.advance(600)
        assert await pricing.estimate_cost("openai/gpt-4o", 1_000_000, 0) == 4.0
        assert source.calls == 2

    @pytest.mark.asyncio
    async def test_failed_refresh_of_loaded_table_not_retried_within_ttl(self):
        clock = ManualClock()
        source = ScriptedSource(listing(0.000001, 0.000001), RuntimeError("down"))
        pricing = ModelPricing(source, ttl_seconds=900, clock=clock)
        await pricing.get_all()
        clock.advance(900)

        for _ in range(3):
            assert (await pricing.get_model_pricing("vendor/model")).input == pytest.approx(1.0)

        assert source.calls == 2

    @pytest.mark.asyncio
    async def test_static_table_when_never_loaded(self):
        pricing = ModelPricing(ScriptedSource(RuntimeError("down")), clock=ManualClock())

        table = await pricing.get_all()

        assert table == FALLBACK_PRICING
        assert await pricing.estimate_cost("openai/gpt-4o", 1_000_000, 0) == 2.5

    @pytest.mark.asyncio
    async def test_static_row_for_model_missing_from_listing(self):
        pricing = ModelPricing(ScriptedSource(listing(0.000002, 0.000008)), clock=ManualClock())

        row = await pricing.get_model_pricing("openai/gpt-4o-mini")

        assert row == FALLBACK_PRICING["openai/gpt-4o-mini"]

    @pytest.mark.asyncio
    async def test_cache_info(self):
        clock = ManualClock()
        pricing = ModelPricing(ScriptedSource(listing(0.000002, 0.000008)), ttl_seconds=900, clock=clock)

        assert pricing.cache_info()["is_cached"] is False

        await pricing.get_all()
        clock.advance(100)

        info = pricing.cache_info()
        assert info["is_cached"] is True
        assert info["model_count"] == 1
        assert info["age_seconds"] == 100
        assert info["expires_in_seconds"] == 800

    @pytest.mark.asyncio
    async def test_forced_refresh(self):
        source = ScriptedSource(listing(0.000001, 0.000001), listing(0.000003, 0.000003))
        pricing = ModelPricing(source, clock=ManualClock())
        await pricing.get_all()

        table = await pricing.refresh()

        assert table["vendor/model"].input == pytest.approx(3.0)


class TestOpenRouterSource:
    """Tests for the OpenRouter listing source."""

    @pytest.mark.asyncio
    async def test_parses_listing(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={
                "data": [
                    {
                        "id": "openai/gpt-4o",
                        "pricing": {"prompt": "0.0000025", "completion": "0.00001"},
                        "supported_parameters": ["tools", "temperature"],
                    },
                    {"id": "free/model", "pricing": {"prompt": None}},
                ],
            })

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            models = await openrouter_pricing_source(client=client)()

        assert models[0].id == "openai/gpt-4o"
        assert models[0].supports_tools is True
        assert models[0].prompt_price_per_token == 0.0000025
        assert models[1].prompt_price_per_token == 0.0
        assert models[1].supports_tools is False

    @pytest.mark.asyncio
    async def test_http_error_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            with pytest.raises(httpx.HTTPStatusError):
                await openrouter_pricing_source(client=client)()
