"""
Observability

Cost estimation and audit logging for model generations.
"""

from interviewprep_core.observability.logger import (
    AI_LOG_COLLECTION,
    AIAction,
    AIStatus,
    GenerationLogEntry,
    LoggerContext,
    ObservabilityLogger,
    SearchResultSummary,
    status_for_error,
)
from interviewprep_core.observability.pricing import (
    DEFAULT_PRICING,
    FALLBACK_PRICING,
    PRICING_CACHE_TTL_SECONDS,
    ModelPricing,
    PriceRow,
    openrouter_pricing_source,
    strip_tier_prefix,
)

__all__ = [
    "AI_LOG_COLLECTION",
    "AIAction",
    "AIStatus",
    "GenerationLogEntry",
    "LoggerContext",
    "ObservabilityLogger",
    "SearchResultSummary",
    "status_for_error",
    "DEFAULT_PRICING",
    "FALLBACK_PRICING",
    "PRICING_CACHE_TTL_SECONDS",
    "ModelPricing",
    "PriceRow",
    "openrouter_pricing_source",
    "strip_tier_prefix",
]
