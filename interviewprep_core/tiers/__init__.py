"""Model tier configuration and resolution."""

from interviewprep_core.tiers.base import (
    PLAN_INDEPENDENT_TASKS,
    TASK_DESCRIPTIONS,
    TASK_TIER_MAPPING,
    BYOKConfig,
    BYOKTierConfig,
    EffectiveConfig,
    Plan,
    PlanContext,
    Provider,
    Tier,
    TierConfig,
    TierNotConfiguredError,
    format_model_id,
    get_plan_based_tier,
    get_task_tier,
)
from interviewprep_core.tiers.resolver import TierConfigResolver, apply_model_selection
from interviewprep_core.tiers.store import (
    CachedTierConfigStore,
    KeyValueTierConfigStore,
    TierConfigStore,
)

__all__ = [
    "PLAN_INDEPENDENT_TASKS",
    "TASK_DESCRIPTIONS",
    "TASK_TIER_MAPPING",
    "BYOKConfig",
    "BYOKTierConfig",
    "EffectiveConfig",
    "Plan",
    "PlanContext",
    "Provider",
    "Tier",
    "TierConfig",
    "TierNotConfiguredError",
    "format_model_id",
    "get_plan_based_tier",
    "get_task_tier",
    "TierConfigResolver",
    "apply_model_selection",
    "CachedTierConfigStore",
    "KeyValueTierConfigStore",
    "TierConfigStore",
]
