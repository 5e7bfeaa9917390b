"""
Model Pricing
=============

Per-model token prices used to estimate generation cost.

Features:
    - Prices fetched from the OpenRouter model listing (per token) and
      stored per million tokens
    - Process-wide cache with a 15 minute TTL and single-flight refresh
    - Stale cache, then a static table, served when a refresh fails
    - Unknown models priced with a default row
"""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx
import structlog

from interviewprep_core.cache import Clock, RefreshingCache
from interviewprep_core.llm.base import ModelInfo
from interviewprep_core.tiers.base import Tier

logger = structlog.get_logger(__name__)

PRICING_CACHE_TTL_SECONDS = 15 * 60
TOKENS_PER_MILLION = 1_000_000


@dataclass(frozen=True)
class PriceRow:
    """USD per one million tokens."""

    input: float
    output: float


# Used when the pricing source is unavailable
FALLBACK_PRICING: Dict[str, PriceRow] = {
    "anthropic/claude-sonnet-4": PriceRow(3.0, 15.0),
    "anthropic/claude-3.5-sonnet": PriceRow(3.0, 15.0),
    "anthropic/claude-3-opus": PriceRow(15.0, 75.0),
    "anthropic/claude-3-haiku": PriceRow(0.25, 1.25),
    "openai/gpt-4o": PriceRow(2.5, 10.0),
    "openai/gpt-4o-mini": PriceRow(0.15, 0.6),
    "openai/gpt-4-turbo": PriceRow(10.0, 30.0),
    "openai/gpt-3.5-turbo": PriceRow(0.5, 1.5),
    "google/gemini-pro-1.5": PriceRow(1.25, 5.0),
    "meta-llama/llama-3.1-70b-instruct": PriceRow(0.52, 0.75),
}

DEFAULT_PRICING = PriceRow(1.0, 3.0)

PricingSource = Callable[[], Awaitable[List[ModelInfo]]]


def strip_tier_prefix(model_id: str) -> str:
    """"high - vendor/model" -> "vendor/model"; other ids unchanged."""
    prefix, sep, rest = model_id.partition(" - ")
    if sep and prefix in {t.value for t in Tier}:
        return rest
    return model_id


def openrouter_pricing_source(
    url: str = "https://openrouter.ai/api/v1/models",
    timeout: float = 10.0,
    client: Optional[httpx.AsyncClient] = None,
) -> PricingSource:
    """Pricing source reading OpenRouter's public model listing."""

    async def fetch() -> List[ModelInfo]:
        if client is not None:
            response = await client.get(url, timeout=timeout)
        else:
            async with httpx.AsyncClient(timeout=timeout) as http:
                response = await http.get(url)
        response.raise_for_status()
        return [_model_info(item) for item in response.json().get("data", [])]

    return fetch


def _model_info(item: Dict[str, Any]) -> ModelInfo:
    pricing = item.get("pricing") or {}

    def price(value: Any) -> float:
        try:
            return float(value)
        except (TypeError, ValueError):
            return 0.0

    return ModelInfo(
        id=item["id"],
        supports_tools="tools" in (item.get("supported_parameters") or []),
        prompt_price_per_token=price(pricing.get("prompt")),
        completion_price_per_token=price(pricing.get("completion")),
    )


class ModelPricing:
    """Cached model price table."""

    def __init__(
        self,
        source: PricingSource,
        ttl_seconds: float = PRICING_CACHE_TTL_SECONDS,
        clock: Optional[Clock] = None,
    ):
        self._source = source
        self._cache: RefreshingCache[Dict[str, PriceRow]] = RefreshingCache(
            loader=self._load,
            ttl_seconds=ttl_seconds,
            clock=clock,
            fallback=dict(FALLBACK_PRICING),
            name="model_pricing",
        )

    async def _load(self) -> Dict[str, PriceRow]:
        models = await self._source()
        table = {
            m.id: PriceRow(
                input=(m.prompt_price_per_token or 0.0) * TOKENS_PER_MILLION,
                output=(m.completion_price_per_token or 0.0) * TOKENS_PER_MILLION,
            )
            for m in models
        }
        logger.debug("Model pricing loaded", model_count=len(table))
        return table

    async def get_all(self) -> Dict[str, PriceRow]:
        """Full price table, refreshed when stale."""
        return await self._cache.get()

    async def get_model_pricing(self, model_id: str) -> PriceRow:
        model_id = strip_tier_prefix(model_id)
        table = await self._cache.get()
        return table.get(model_id) or FALLBACK_PRICING.get(model_id) or DEFAULT_PRICING

    async def estimate_cost(self, model_id: str, input_tokens: int, output_tokens: int) -> float:
        """Estimated USD cost, rounded to 6 decimal places."""
        price = await self.get_model_pricing(model_id)
        cost = (
            input_tokens / TOKENS_PER_MILLION * price.input
            + output_tokens / TOKENS_PER_MILLION * price.output
        )
        return round(cost, 6)

    async def refresh(self) -> Dict[str, PriceRow]:
        """Refresh now regardless of age."""
        return await self._cache.refresh()

    def is_stale(self) -> bool:
        return self._cache.is_stale()

    def cache_info(self) -> Dict[str, Any]:
        info = self._cache.info()
        table = self._cache.peek() or {}
        expires_in = 0.0
        if info.age_seconds is not None:
            expires_in = max(0.0, info.ttl_seconds - info.age_seconds)
        return {
            "is_cached": info.has_value,
            "age_seconds": info.age_seconds or 0.0,
            "model_count": len(table),
            "expires_in_seconds": expires_in,
            "refresh_failures": info.refresh_failures,
            "last_error": info.last_error,
        }


__all__ = [
    "PRICING_CACHE_TTL_SECONDS",
    "PriceRow",
    "FALLBACK_PRICING",
    "DEFAULT_PRICING",
    "PricingSource",
    "strip_tier_prefix",
    "openrouter_pricing_source",
    "ModelPricing",
]
