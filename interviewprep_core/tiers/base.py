"""
Tier Base Types

Core types for model tier configuration and resolution.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional

from interviewprep_core.errors import InterviewPrepError


DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 4096


class Tier(str, Enum):
    """Model capability tiers, ordered low to high by cost."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Plan(str, Enum):
    """Subscription plans."""
    FREE = "FREE"
    PRO = "PRO"
    MAX = "MAX"


class Provider(str, Enum):
    """Upstream model providers."""
    OPENROUTER = "openrouter"
    OPENAI = "openai"
    GOOGLE = "google"


# Mapping of tasks to the tier they need
TASK_TIER_MAPPING: Dict[str, Tier] = {
    # High capability - complex reasoning and content generation
    "generate_topics": Tier.HIGH,
    "generate_opening_brief": Tier.HIGH,
    "regenerate_topic_analogy": Tier.HIGH,
    "generate_mcqs": Tier.HIGH,

    # Medium capability - structured generation with moderate complexity
    "generate_rapid_fire": Tier.MEDIUM,

    # Low capability - simple parsing and extraction
    "parse_interview_prompt": Tier.LOW,
    "generate_conversation_title": Tier.LOW,

    # Feedback
    "analyze_feedback_entry": Tier.HIGH,
    "aggregate_feedback_analysis": Tier.HIGH,
    "stream_improvement_activity": Tier.MEDIUM,

    # Learning paths
    "parse_learning_goal": Tier.MEDIUM,
    "generate_topic": Tier.HIGH,
    "select_next_topic": Tier.MEDIUM,

    # Activities
    "generate_mcq_activity": Tier.HIGH,
    "generate_coding_challenge": Tier.HIGH,
    "generate_debugging_task": Tier.HIGH,
    "generate_concept_explanation": Tier.MEDIUM,

    # Assistant
    "ai_assistant_chat": Tier.HIGH,
}

TASK_DESCRIPTIONS: Dict[str, str] = {
    "generate_topics": "Generate revision topics with detailed explanations",
    "generate_opening_brief": "Create comprehensive interview opening brief",
    "regenerate_topic_analogy": "Rewrite topics with different analogy styles",
    "generate_mcqs": "Generate multiple choice questions",
    "generate_rapid_fire": "Generate rapid-fire Q&A pairs",
    "parse_interview_prompt": "Parse natural language to structured data",
    "generate_conversation_title": "Generate conversation title from message",
    "analyze_feedback_entry": "Analyze interview feedback to identify skill gaps",
    "aggregate_feedback_analysis": "Aggregate feedback entries into weakness analysis",
    "stream_improvement_activity": "Stream improvement activity content in real-time",
    "parse_learning_goal": "Parse learning goal into skill clusters",
    "generate_topic": "Generate learning topic with detailed content",
    "select_next_topic": "Select next topic based on progress",
    "generate_mcq_activity": "Generate MCQ learning activity",
    "generate_coding_challenge": "Generate coding challenge activity",
    "generate_debugging_task": "Generate debugging task activity",
    "generate_concept_explanation": "Generate concept explanation activity",
    "ai_assistant_chat": "Chat with the AI assistant using tools",
}

# Tasks whose mapped tier wins over the plan-based tier
PLAN_INDEPENDENT_TASKS: FrozenSet[str] = frozenset({
    "generate_concept_explanation",
    "parse_interview_prompt",
    "generate_conversation_title",
    "ai_assistant_chat",
})


def get_task_tier(task: str) -> Tier:
    """Mapped tier for a task; unknown tasks use the high tier."""
    return TASK_TIER_MAPPING.get(task, Tier.HIGH)


def get_plan_based_tier(plan: Plan) -> Tier:
    """FREE users get the medium tier, paid plans the high tier."""
    return Tier.MEDIUM if Plan(plan) == Plan.FREE else Tier.HIGH


def tier_setting_key(tier: Tier) -> str:
    """Settings-store key holding a tier's configuration."""
    return f"model_tier_{Tier(tier).value}"


def format_model_id(tier: Tier, model: str) -> str:
    """Model id reported for tier-resolved generations: "<tier> - <model>"."""
    return f"{Tier(tier).value} - {model}"


class TierNotConfiguredError(InterviewPrepError):
    """The tier needed for a task has no primary model."""

    def __init__(self, tier: Tier, task: str):
        self.tier = Tier(tier)
        self.task = task
        super().__init__(
            f'Model tier "{self.tier.value}" is not configured. Please configure '
            f"it in admin settings before using {task}.",
            code="tier_not_configured",
        )


@dataclass
class TierConfig:
    """Persisted configuration of one tier."""

    tier: Tier
    provider: Provider = Provider.OPENROUTER
    primary_model: Optional[str] = None
    fallback_model: Optional[str] = None
    temperature: float = DEFAULT_TEMPERATURE
    max_tokens: int = DEFAULT_MAX_TOKENS

    @property
    def is_configured(self) -> bool:
        return bool(self.primary_model)

    @classmethod
    def unconfigured(cls, tier: Tier) -> "TierConfig":
        return cls(tier=Tier(tier))

    @classmethod
    def from_dict(cls, tier: Tier, data: Optional[Dict[str, Any]]) -> "TierConfig":
        """Build from a stored document, defaulting absent fields."""
        if not data:
            return cls.unconfigured(tier)

        temperature = data.get("temperature")
        max_tokens = data.get("maxTokens")
        return cls(
            tier=Tier(tier),
            provider=Provider(data.get("provider") or Provider.OPENROUTER.value),
            primary_model=data.get("primaryModel") or None,
            fallback_model=data.get("fallbackModel") or None,
            temperature=DEFAULT_TEMPERATURE if temperature is None else float(temperature),
            max_tokens=DEFAULT_MAX_TOKENS if max_tokens is None else int(max_tokens),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provider": self.provider.value,
            "primaryModel": self.primary_model,
            "fallbackModel": self.fallback_model,
            "temperature": self.temperature,
            "maxTokens": self.max_tokens,
        }


@dataclass
class BYOKTierConfig:
    """User-supplied override for one tier."""

    model: str
    provider: Provider = Provider.OPENROUTER
    fallback: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    api_key: Optional[str] = field(default=None, repr=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BYOKTierConfig":
        return cls(
            model=data.get("model") or "",
            provider=Provider(data.get("provider") or Provider.OPENROUTER.value),
            fallback=data.get("fallback") or None,
            temperature=data.get("temperature"),
            max_tokens=data.get("maxTokens", data.get("max_tokens")),
            api_key=data.get("apiKey", data.get("api_key")),
        )


# Per-tier user overrides
BYOKConfig = Dict[Tier, BYOKTierConfig]


@dataclass
class PlanContext:
    """Caller's plan plus optional model selection and requested provider tools."""

    plan: Plan
    selected_model_id: Optional[str] = None
    provider_tool_ids: List[str] = field(default_factory=list)

    def __post_init__(self):
        self.plan = Plan(self.plan)


@dataclass
class EffectiveConfig:
    """Resolved generation configuration for a task."""

    model: str
    tier: Tier
    provider: Provider = Provider.OPENROUTER
    fallback_model: Optional[str] = None
    temperature: float = DEFAULT_TEMPERATURE
    max_tokens: int = DEFAULT_MAX_TOKENS
    byok: bool = False
    api_key: Optional[str] = field(default=None, repr=False)

    @property
    def model_id(self) -> str:
        return format_model_id(self.tier, self.model)


__all__ = [
    "DEFAULT_TEMPERATURE",
    "DEFAULT_MAX_TOKENS",
    "Tier",
    "Plan",
    "Provider",
    "TASK_TIER_MAPPING",
    "TASK_DESCRIPTIONS",
    "PLAN_INDEPENDENT_TASKS",
    "get_task_tier",
    "get_plan_based_tier",
    "tier_setting_key",
    "format_model_id",
    "TierNotConfiguredError",
    "TierConfig",
    "BYOKTierConfig",
    "BYOKConfig",
    "PlanContext",
    "EffectiveConfig",
]
