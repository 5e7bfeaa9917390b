"""
LLM Layer

Provider contract and clients, the tool framework and built-in tools.

The orchestration loop and the streaming generator live in
``interviewprep_core.llm.orchestrator`` and ``interviewprep_core.llm.streaming``.
"""

from interviewprep_core.llm.base import (
    ChatMessage,
    LLMProvider,
    MessageRole,
    ModelInfo,
    ModelResponse,
    ModelUnavailableError,
    ObjectChunk,
    ProviderError,
    ProviderTimeoutError,
    RateLimitedError,
    SchemaValidationError,
    StructuredResult,
    TokenUsage,
    ToolCall,
    ToolSpec,
)
from interviewprep_core.llm.builtin_tools import builtin_tools, create_default_registry
from interviewprep_core.llm.context import InterviewContext, LearningContext, OrchestratorContext
from interviewprep_core.llm.partial_json import merge_partial, parse_partial_json
from interviewprep_core.llm.providers import (
    OpenAICompatibleProvider,
    ProviderFactory,
    create_provider,
    default_provider_factory,
)
from interviewprep_core.llm.tools import (
    ModelCapabilities,
    Tool,
    ToolContext,
    ToolDescriptor,
    ToolExecutionError,
    ToolInvocation,
    ToolInvocationStatus,
    ToolRegistry,
    ToolResult,
    ToolServices,
    ToolSet,
    ToolStatusChannel,
)

__all__ = [
    "ChatMessage",
    "LLMProvider",
    "MessageRole",
    "ModelInfo",
    "ModelResponse",
    "ModelUnavailableError",
    "ObjectChunk",
    "ProviderError",
    "ProviderTimeoutError",
    "RateLimitedError",
    "SchemaValidationError",
    "StructuredResult",
    "TokenUsage",
    "ToolCall",
    "ToolSpec",
    "builtin_tools",
    "create_default_registry",
    "InterviewContext",
    "LearningContext",
    "OrchestratorContext",
    "merge_partial",
    "parse_partial_json",
    "OpenAICompatibleProvider",
    "ProviderFactory",
    "create_provider",
    "default_provider_factory",
    "ModelCapabilities",
    "Tool",
    "ToolContext",
    "ToolDescriptor",
    "ToolExecutionError",
    "ToolInvocation",
    "ToolInvocationStatus",
    "ToolRegistry",
    "ToolResult",
    "ToolServices",
    "ToolSet",
    "ToolStatusChannel",
]
