"""
LLM Providers

OpenAI-compatible chat completion providers for the OpenRouter gateway,
OpenAI and Google's OpenAI-compatible endpoint.

Automatic retries are disabled so rate limits reach the caller
immediately. SDK exceptions are translated into ProviderError subclasses.
"""

import json
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

import openai
import structlog
from openai import AsyncOpenAI

from interviewprep_core.config import Settings, get_settings
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
from interviewprep_core.llm.partial_json import merge_partial, parse_partial_json
from interviewprep_core.tiers.base import Provider

logger = structlog.get_logger(__name__)

_MODEL_MISSING_HINTS = ("not a valid model", "model not found", "does not exist", "no endpoints found")


def translate_error(error: Exception, model: Optional[str] = None) -> ProviderError:
    """Map an OpenAI SDK exception onto the provider error hierarchy."""
    if isinstance(error, ProviderError):
        return error
    if isinstance(error, openai.RateLimitError):
        return RateLimitedError(model=model)
    if isinstance(error, openai.APITimeoutError):
        return ProviderTimeoutError(model=model)
    if isinstance(error, openai.NotFoundError):
        return ModelUnavailableError(f"Model {model} is not available: {error}", model=model)
    if isinstance(error, openai.BadRequestError):
        message = str(error).lower()
        if any(hint in message for hint in _MODEL_MISSING_HINTS):
            return ModelUnavailableError(f"Model {model} is not available: {error}", model=model)
    return ProviderError(f"Provider request failed: {error}", model=model)


def _to_openai_messages(
    messages: List[ChatMessage],
    system_prompt: Optional[str] = None,
) -> List[Dict[str, Any]]:
    result: List[Dict[str, Any]] = []
    if system_prompt:
        result.append({"role": "system", "content": system_prompt})

    for msg in messages:
        message: Dict[str, Any] = {"role": MessageRole(msg.role).value, "content": msg.content}
        if msg.tool_calls:
            message["tool_calls"] = [
                {
                    "id": call.id,
                    "type": "function",
                    "function": {
                        "name": call.name,
                        "arguments": json.dumps(call.arguments),
                    },
                }
                for call in msg.tool_calls
            ]
        if msg.role == MessageRole.TOOL:
            message["tool_call_id"] = msg.tool_call_id
        result.append(message)

    return result


def _to_openai_tools(tools: List[ToolSpec]) -> List[Dict[str, Any]]:
    return [
        {
            "type": "function",
            "function": {
                "name": tool.name,
                "description": tool.description,
                "parameters": tool.parameters,
            },
        }
        for tool in tools
    ]


def _parse_arguments(raw: Optional[str]) -> Dict[str, Any]:
    if not raw:
        return {}
    try:
        value = json.loads(raw)
    except json.JSONDecodeError:
        return {"_raw": raw}
    return value if isinstance(value, dict) else {"value": value}


def _response_format(schema: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "type": "json_schema",
        "json_schema": {
            "name": schema.get("title", "response"),
            "schema": schema,
        },
    }


class OpenAICompatibleProvider(LLMProvider):
    """Chat completions through any OpenAI-compatible endpoint."""

    def __init__(
        self,
        provider: Provider,
        api_key: str,
        base_url: Optional[str] = None,
        timeout: float = 60.0,
        client: Optional[AsyncOpenAI] = None,
    ):
        self._provider = Provider(provider)
        self._client = client or AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=0,
        )
        self.logger = logger.bind(provider=self._provider.value)

    @property
    def name(self) -> str:
        return self._provider.value

    def _request_params(
        self,
        model: str,
        temperature: Optional[float],
        max_tokens: Optional[int],
    ) -> Dict[str, Any]:
        params: Dict[str, Any] = {"model": model}
        if temperature is not None:
            params["temperature"] = temperature
        if max_tokens is not None:
            params["max_tokens"] = max_tokens
        return params

    async def complete(
        self,
        model: str,
        messages: List[ChatMessage],
        system_prompt: Optional[str] = None,
        tools: Optional[List[ToolSpec]] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> ModelResponse:
        params = self._request_params(model, temperature, max_tokens)
        params["messages"] = _to_openai_messages(messages, system_prompt)
        if tools:
            params["tools"] = _to_openai_tools(tools)

        try:
            response = await self._client.chat.completions.create(**params)
        except openai.OpenAIError as e:
            self.logger.error("Completion failed", model=model, error=str(e))
            raise translate_error(e, model) from e

        choice = response.choices[0]
        message = choice.message
        tool_calls = [
            ToolCall(id=tc.id, name=tc.function.name, arguments=_parse_arguments(tc.function.arguments))
            for tc in (message.tool_calls or [])
            if tc.type == "function"
        ]

        return ModelResponse(
            text=message.content or "",
            tool_calls=tool_calls,
            finish_reason=choice.finish_reason,
            usage=TokenUsage.from_raw(response.usage),
            model=response.model or model,
            is_complete=True,
        )

    async def stream_complete(
        self,
        model: str,
        messages: List[ChatMessage],
        system_prompt: Optional[str] = None,
        tools: Optional[List[ToolSpec]] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> AsyncIterator[ModelResponse]:
        params = self._request_params(model, temperature, max_tokens)
        params["messages"] = _to_openai_messages(messages, system_prompt)
        params["stream"] = True
        params["stream_options"] = {"include_usage": True}
        if tools:
            params["tools"] = _to_openai_tools(tools)

        full_text = ""
        finish_reason = None
        reported_model = None
        usage = TokenUsage()
        # Accumulate tool calls across chunks
        tool_call_accumulator: Dict[int, Dict[str, str]] = {}

        try:
            stream = await self._client.chat.completions.create(**params)
            async for chunk in stream:
                reported_model = chunk.model or reported_model
                if chunk.usage:
                    usage = TokenUsage.from_raw(chunk.usage)
                if not chunk.choices:
                    continue

                delta = chunk.choices[0].delta
                if chunk.choices[0].finish_reason:
                    finish_reason = chunk.choices[0].finish_reason

                if delta.content:
                    full_text += delta.content
                    yield ModelResponse(text=delta.content, is_partial=True)

                for tc in delta.tool_calls or []:
                    entry = tool_call_accumulator.setdefault(
                        tc.index, {"id": "", "name": "", "arguments": ""}
                    )
                    if tc.id:
                        entry["id"] = tc.id
                    if tc.function:
                        if tc.function.name:
                            entry["name"] = tc.function.name
                        if tc.function.arguments:
                            entry["arguments"] += tc.function.arguments
        except openai.OpenAIError as e:
            self.logger.error("Streaming completion failed", model=model, error=str(e))
            raise translate_error(e, model) from e

        tool_calls = [
            ToolCall(
                id=entry["id"] or f"call_{idx}",
                name=entry["name"],
                arguments=_parse_arguments(entry["arguments"]),
            )
            for idx, entry in sorted(tool_call_accumulator.items())
        ]

        yield ModelResponse(
            text=full_text,
            tool_calls=tool_calls,
            finish_reason=finish_reason,
            usage=usage,
            model=reported_model or model,
            is_complete=True,
        )

    async def generate_object(
        self,
        model: str,
        system_prompt: str,
        user_prompt: str,
        schema: Dict[str, Any],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> StructuredResult:
        params = self._request_params(model, temperature, max_tokens)
        params["messages"] = _to_openai_messages([ChatMessage.user(user_prompt)], system_prompt)
        params["response_format"] = _response_format(schema)

        try:
            response = await self._client.chat.completions.create(**params)
        except openai.OpenAIError as e:
            self.logger.error("Structured generation failed", model=model, error=str(e))
            raise translate_error(e, model) from e

        content = response.choices[0].message.content or ""
        try:
            obj = json.loads(content)
        except json.JSONDecodeError as e:
            raise SchemaValidationError(f"Model returned invalid JSON: {e}") from e
        if not isinstance(obj, dict):
            raise SchemaValidationError("Model returned a non-object JSON value")

        return StructuredResult(
            object=obj,
            usage=TokenUsage.from_raw(response.usage),
            model=response.model or model,
        )

    async def stream_object(
        self,
        model: str,
        system_prompt: str,
        user_prompt: str,
        schema: Dict[str, Any],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> AsyncIterator[ObjectChunk]:
        params = self._request_params(model, temperature, max_tokens)
        params["messages"] = _to_openai_messages([ChatMessage.user(user_prompt)], system_prompt)
        params["response_format"] = _response_format(schema)
        params["stream"] = True
        params["stream_options"] = {"include_usage": True}

        buffer = ""
        current: Dict[str, Any] = {}
        reported_model = None
        usage = TokenUsage()

        try:
            stream = await self._client.chat.completions.create(**params)
            async for chunk in stream:
                reported_model = chunk.model or reported_model
                if chunk.usage:
                    usage = TokenUsage.from_raw(chunk.usage)
                if not chunk.choices or not chunk.choices[0].delta.content:
                    continue

                buffer += chunk.choices[0].delta.content
                parsed = parse_partial_json(buffer)
                if parsed is None:
                    continue
                merged = merge_partial(current, parsed)
                if merged != current:
                    current = merged
                    yield ObjectChunk(object=current)
        except openai.OpenAIError as e:
            self.logger.error("Structured streaming failed", model=model, error=str(e))
            raise translate_error(e, model) from e

        try:
            final = json.loads(buffer)
        except json.JSONDecodeError as e:
            raise SchemaValidationError(f"Model returned invalid JSON: {e}") from e
        if not isinstance(final, dict):
            raise SchemaValidationError("Model returned a non-object JSON value")

        yield ObjectChunk(
            object=final,
            is_complete=True,
            usage=usage,
            model=reported_model or model,
        )

    async def list_models(self) -> List[ModelInfo]:
        try:
            page = await self._client.models.list()
        except openai.OpenAIError as e:
            raise translate_error(e) from e

        models = []
        for item in page.data:
            data = item.model_dump()
            pricing = data.get("pricing") or {}
            supported = data.get("supported_parameters") or []
            models.append(ModelInfo(
                id=data["id"],
                supports_tools="tools" in supported,
                prompt_price_per_token=_to_float(pricing.get("prompt")),
                completion_price_per_token=_to_float(pricing.get("completion")),
            ))
        return models

    async def supports_tools(self, model: str) -> bool:
        """OpenRouter models declare tool support; direct providers are assumed capable."""
        if self._provider != Provider.OPENROUTER:
            return True
        models = await self.list_models()
        for info in models:
            if info.id == model:
                return info.supports_tools
        return False

    async def close(self) -> None:
        await self._client.close()


def _to_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def create_provider(
    provider: Provider,
    api_key: Optional[str] = None,
    settings: Optional[Settings] = None,
) -> OpenAICompatibleProvider:
    """Create a provider client, preferring a caller-supplied key."""
    settings = settings or get_settings()
    provider = Provider(provider)

    if provider == Provider.OPENROUTER:
        key, base_url = settings.openrouter_api_key, settings.openrouter_base_url
    elif provider == Provider.OPENAI:
        key, base_url = settings.openai_api_key, settings.openai_base_url
    elif provider == Provider.GOOGLE:
        key, base_url = settings.google_api_key, settings.google_base_url
    else:
        raise ValueError(f"Unknown provider: {provider}")

    api_key = api_key or key
    if not api_key:
        raise ProviderError(f"No API key configured for {provider.value}")

    return OpenAICompatibleProvider(
        provider=provider,
        api_key=api_key,
        base_url=base_url,
        timeout=settings.request_timeout,
    )


ProviderFactory = Callable[[Provider, Optional[str]], LLMProvider]


def default_provider_factory(provider: Provider, api_key: Optional[str] = None) -> LLMProvider:
    """Provider factory used when callers do not inject one."""
    return create_provider(provider, api_key=api_key)


__all__ = [
    "OpenAICompatibleProvider",
    "ProviderFactory",
    "create_provider",
    "default_provider_factory",
    "translate_error",
]
