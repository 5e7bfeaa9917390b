"""
Tier Configuration Resolver
===========================

Merges plan-based tier selection, user BYOK overrides and the system tier
configuration into one effective generation config.

Precedence, highest first:
    1. Candidate tier: the plan-based tier when a plan is known, except for
       plan-independent tasks which always use their mapped tier.
    2. A BYOK override with a model for the candidate tier, used verbatim.
    3. The stored tier config. An unconfigured tier is an error; no default
       model is ever substituted.
"""

import asyncio
from dataclasses import replace
from typing import List, Optional, Tuple

import structlog

from interviewprep_core.tiers.base import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_TEMPERATURE,
    PLAN_INDEPENDENT_TASKS,
    BYOKConfig,
    EffectiveConfig,
    Plan,
    PlanContext,
    Provider,
    Tier,
    TierNotConfiguredError,
    get_plan_based_tier,
    get_task_tier,
)
from interviewprep_core.tiers.store import TierConfigStore

logger = structlog.get_logger(__name__)

GOOGLE_MODEL_PREFIX = "google:"


class TierConfigResolver:
    """Resolves the effective model configuration for a task."""

    def __init__(self, store: TierConfigStore):
        self._store = store

    def candidate_tier(self, task: str, plan_context: Optional[PlanContext] = None) -> Tier:
        """Tier a task runs on for the given plan."""
        if plan_context is not None and task not in PLAN_INDEPENDENT_TASKS:
            return get_plan_based_tier(plan_context.plan)
        return get_task_tier(task)

    async def resolve(
        self,
        task: str,
        byok: Optional[BYOKConfig] = None,
        plan_context: Optional[PlanContext] = None,
    ) -> EffectiveConfig:
        """Resolve the effective config for a task.

        Args:
            task: Task identifier
            byok: Optional per-tier user overrides
            plan_context: Optional caller plan

        Returns:
            EffectiveConfig for the candidate tier

        Raises:
            TierNotConfiguredError: If no BYOK model applies and the tier has
                no primary model
        """
        tier = self.candidate_tier(task, plan_context)

        override = (byok or {}).get(tier)
        if override is not None and override.model:
            logger.debug("Resolved tier from BYOK", task=task, tier=tier.value, model=override.model)
            return EffectiveConfig(
                model=override.model,
                tier=tier,
                provider=override.provider or Provider.OPENROUTER,
                fallback_model=override.fallback or None,
                temperature=(
                    DEFAULT_TEMPERATURE if override.temperature is None else override.temperature
                ),
                max_tokens=(
                    DEFAULT_MAX_TOKENS if override.max_tokens is None else override.max_tokens
                ),
                byok=True,
                api_key=override.api_key,
            )

        config = await self._store.get_tier_config(tier)
        if not config.primary_model:
            raise TierNotConfiguredError(tier, task)

        logger.debug("Resolved tier from settings", task=task, tier=tier.value, model=config.primary_model)
        return EffectiveConfig(
            model=config.primary_model,
            tier=tier,
            provider=config.provider,
            fallback_model=config.fallback_model,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
        )

    async def check_tiers_configured(self) -> Tuple[bool, List[Tier]]:
        """Return whether every tier has a primary model, and which do not."""
        tiers = [Tier.HIGH, Tier.MEDIUM, Tier.LOW]
        configs = await asyncio.gather(*(self._store.get_tier_config(t) for t in tiers))
        missing = [t for t, config in zip(tiers, configs) if not config.primary_model]
        return len(missing) == 0, missing


def apply_model_selection(
    config: EffectiveConfig,
    plan_context: Optional[PlanContext],
) -> EffectiveConfig:
    """Apply a MAX user's own model choice on top of a resolved config.

    A "google:" prefix routes to the Google provider; any other id goes
    through the OpenRouter gateway.
    """
    if plan_context is None or plan_context.plan != Plan.MAX or not plan_context.selected_model_id:
        return config

    selected = plan_context.selected_model_id
    if selected.startswith(GOOGLE_MODEL_PREFIX):
        provider = Provider.GOOGLE
        model = selected[len(GOOGLE_MODEL_PREFIX):]
    else:
        provider = Provider.OPENROUTER
        model = selected

    logger.debug("Applied model selection", provider=provider.value, model=model)
    return replace(config, provider=provider, model=model)


__all__ = ["TierConfigResolver", "apply_model_selection", "GOOGLE_MODEL_PREFIX"]
