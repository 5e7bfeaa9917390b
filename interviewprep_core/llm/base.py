"""
LLM Base Types

Provider contract, conversation types and provider error hierarchy.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterator, Dict, List, Optional

from interviewprep_core.errors import InterviewPrepError


class ProviderError(InterviewPrepError):
    """The upstream provider call failed."""

    def __init__(self, message: str, code: str = "provider_error", model: Optional[str] = None):
        self.model = model
        super().__init__(message, code=code)


class RateLimitedError(ProviderError):
    """Provider rejected the request with a rate limit."""

    def __init__(self, message: str = "Rate limited, try again shortly.", model: Optional[str] = None):
        super().__init__(message, code="rate_limited", model=model)


class ProviderTimeoutError(ProviderError):
    def __init__(self, message: str = "Provider request timed out.", model: Optional[str] = None):
        super().__init__(message, code="timeout", model=model)


class ModelUnavailableError(ProviderError):
    """Requested model does not exist or is not currently served."""

    def __init__(self, message: str, model: Optional[str] = None):
        super().__init__(message, code="model_unavailable", model=model)


class SchemaValidationError(InterviewPrepError):
    """Provider output did not match the requested structure."""

    def __init__(self, message: str, errors: Optional[List[Dict[str, Any]]] = None):
        self.errors = errors or []
        super().__init__(message, code="schema_validation_failed")


class MessageRole(str, Enum):
    """Conversation roles."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


@dataclass
class TokenUsage:
    """Token counts reported by a provider."""

    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    def __add__(self, other: "TokenUsage") -> "TokenUsage":
        return TokenUsage(
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
        )

    @classmethod
    def from_raw(cls, raw: Any) -> "TokenUsage":
        """Read usage from either naming convention.

        Accepts prompt_tokens/completion_tokens and input_tokens/output_tokens,
        as a mapping or an object with those attributes.
        """
        if raw is None:
            return cls()
        if isinstance(raw, TokenUsage):
            return raw

        def read(*names: str) -> int:
            for name in names:
                value = raw.get(name) if isinstance(raw, dict) else getattr(raw, name, None)
                if value is not None:
                    return int(value)
            return 0

        return cls(
            input_tokens=read("prompt_tokens", "input_tokens", "promptTokens", "inputTokens"),
            output_tokens=read("completion_tokens", "output_tokens", "completionTokens", "outputTokens"),
        )


@dataclass
class ToolCall:
    """A tool call requested by the model."""

    id: str
    name: str
    arguments: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ChatMessage:
    """A conversation message."""

    role: MessageRole
    content: str = ""
    tool_calls: List[ToolCall] = field(default_factory=list)
    tool_call_id: Optional[str] = None  # For tool messages
    name: Optional[str] = None

    @classmethod
    def user(cls, content: str) -> "ChatMessage":
        return cls(role=MessageRole.USER, content=content)

    @classmethod
    def assistant(cls, content: str, tool_calls: Optional[List[ToolCall]] = None) -> "ChatMessage":
        return cls(role=MessageRole.ASSISTANT, content=content, tool_calls=tool_calls or [])

    @classmethod
    def tool(cls, tool_call_id: str, name: str, content: str) -> "ChatMessage":
        return cls(role=MessageRole.TOOL, content=content, tool_call_id=tool_call_id, name=name)


@dataclass
class ToolSpec:
    """A tool advertised to the model."""

    name: str
    description: str
    parameters: Dict[str, Any]  # JSON Schema


@dataclass
class ModelResponse:
    """One model turn, or a streamed fragment of it."""

    text: str = ""
    tool_calls: List[ToolCall] = field(default_factory=list)
    finish_reason: Optional[str] = None
    usage: Optional[TokenUsage] = None
    model: Optional[str] = None  # As reported by the provider

    # For streaming
    is_partial: bool = False
    is_complete: bool = False


@dataclass
class StructuredResult:
    """Final structured generation."""

    object: Dict[str, Any]
    usage: TokenUsage
    model: Optional[str] = None


@dataclass
class ObjectChunk:
    """Streamed structured generation fragment.

    Partial chunks carry the best-effort parse of everything received so far;
    the final chunk carries the complete object and usage.
    """

    object: Dict[str, Any]
    is_complete: bool = False
    usage: Optional[TokenUsage] = None
    model: Optional[str] = None


@dataclass
class ModelInfo:
    """Model metadata from a provider's model listing."""

    id: str
    supports_tools: bool = False
    prompt_price_per_token: Optional[float] = None
    completion_price_per_token: Optional[float] = None


class LLMProvider(ABC):
    """Abstract base class for model providers."""

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @abstractmethod
    async def complete(
        self,
        model: str,
        messages: List[ChatMessage],
        system_prompt: Optional[str] = None,
        tools: Optional[List[ToolSpec]] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> ModelResponse:
        """Run one model turn.

        Raises:
            ProviderError: On any transport or upstream failure
        """
        pass

    @abstractmethod
    def stream_complete(
        self,
        model: str,
        messages: List[ChatMessage],
        system_prompt: Optional[str] = None,
        tools: Optional[List[ToolSpec]] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> AsyncIterator[ModelResponse]:
        """Stream one model turn.

        Yields partial text fragments, then one complete response holding
        the full text, tool calls and usage.
        """
        pass

    @abstractmethod
    async def generate_object(
        self,
        model: str,
        system_prompt: str,
        user_prompt: str,
        schema: Dict[str, Any],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> StructuredResult:
        """Generate one object matching a JSON schema."""
        pass

    @abstractmethod
    def stream_object(
        self,
        model: str,
        system_prompt: str,
        user_prompt: str,
        schema: Dict[str, Any],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> AsyncIterator[ObjectChunk]:
        """Stream a schema-constrained object as progressively fuller partials."""
        pass

    @abstractmethod
    async def list_models(self) -> List[ModelInfo]:
        pass

    async def supports_tools(self, model: str) -> bool:
        """Whether the model accepts tool definitions."""
        return True

    async def close(self) -> None:
        """Clean up resources."""
        pass


__all__ = [
    "ProviderError",
    "RateLimitedError",
    "ProviderTimeoutError",
    "ModelUnavailableError",
    "SchemaValidationError",
    "MessageRole",
    "TokenUsage",
    "ToolCall",
    "ChatMessage",
    "ToolSpec",
    "ModelResponse",
    "StructuredResult",
    "ObjectChunk",
    "ModelInfo",
    "LLMProvider",
]
