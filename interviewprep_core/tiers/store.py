"""Tier configuration storage."""

from abc import ABC, abstractmethod
from typing import Dict, Optional

import structlog

from interviewprep_core.cache import Clock, RefreshingCache
from interviewprep_core.storage.base import KeyValueStore
from interviewprep_core.tiers.base import Tier, TierConfig, tier_setting_key

logger = structlog.get_logger(__name__)


class TierConfigStore(ABC):
    """Read/write access to per-tier configuration."""

    @abstractmethod
    async def get_tier_config(self, tier: Tier) -> TierConfig:
        """Get a tier's config. Missing tiers come back unconfigured."""
        pass

    @abstractmethod
    async def set_tier_config(self, tier: Tier, config: TierConfig) -> None:
        pass


class KeyValueTierConfigStore(TierConfigStore):
    """Tier configs stored as one settings document per tier."""

    def __init__(self, store: KeyValueStore):
        self._store = store

    async def get_tier_config(self, tier: Tier) -> TierConfig:
        tier = Tier(tier)
        doc = await self._store.get(tier_setting_key(tier))
        return TierConfig.from_dict(tier, doc)

    async def set_tier_config(self, tier: Tier, config: TierConfig) -> None:
        tier = Tier(tier)
        await self._store.set(tier_setting_key(tier), config.to_dict())
        logger.info(
            "Tier config updated",
            tier=tier.value,
            primary_model=config.primary_model,
        )


class CachedTierConfigStore(TierConfigStore):
    """Caches another store's reads per tier for a short TTL."""

    def __init__(
        self,
        inner: TierConfigStore,
        ttl_seconds: float = 60.0,
        clock: Optional[Clock] = None,
    ):
        self._inner = inner
        self._caches: Dict[Tier, RefreshingCache[TierConfig]] = {}
        for tier in Tier:
            self._caches[tier] = RefreshingCache(
                loader=self._loader_for(tier),
                ttl_seconds=ttl_seconds,
                clock=clock,
                name=f"tier_config:{tier.value}",
            )

    def _loader_for(self, tier: Tier):
        async def load() -> TierConfig:
            return await self._inner.get_tier_config(tier)
        return load

    async def get_tier_config(self, tier: Tier) -> TierConfig:
        return await self._caches[Tier(tier)].get()

    async def set_tier_config(self, tier: Tier, config: TierConfig) -> None:
        await self._inner.set_tier_config(tier, config)
        self._caches[Tier(tier)].invalidate()


__all__ = ["TierConfigStore", "KeyValueTierConfigStore", "CachedTierConfigStore"]
