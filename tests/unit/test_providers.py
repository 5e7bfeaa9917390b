"""Unit tests for the OpenAI-compatible provider."""

import json

import httpx
import pytest
from openai import AsyncOpenAI

from interviewprep_core.config import Settings
from interviewprep_core.llm.base import (
    ChatMessage,
    ModelUnavailableError,
    ProviderError,
    RateLimitedError,
    SchemaValidationError,
    TokenUsage,
    ToolSpec,
)
from interviewprep_core.llm.providers import OpenAICompatibleProvider, create_provider
from interviewprep_core.tiers.base import Provider

BASE_URL = "https://gateway.test/v1"


def completion(content: str, tool_calls=None, model: str = "vendor/model"):
    message = {"role": "assistant", "content": content}
    if tool_calls:
        message["tool_calls"] = tool_calls
    return {
        "id": "cmpl-1",
        "object": "chat.completion",
        "created": 0,
        "model": model,
        "choices": [{"index": 0, "message": message, "finish_reason": "stop"}],
        "usage": {"prompt_tokens": 12, "completion_tokens": 4, "total_tokens": 16},
    }


def sse(*payloads) -> httpx.Response:
    body = "".join(f"data: {json.dumps(p)}\n\n" for p in payloads) + "data: [DONE]\n\n"
    return httpx.Response(200, content=body.encode(), headers={"content-type": "text/event-stream"})


def delta_chunk(content: str):
    return {
        "id": "cmpl-1",
        "object": "chat.completion.chunk",
        "created": 0,
        "model": "vendor/model",
        "choices": [{"index": 0, "delta": {"content": content}, "finish_reason": None}],
    }


def usage_chunk():
    return {
        "id": "cmpl-1",
        "object": "chat.completion.chunk",
        "created": 0,
        "model": "vendor/model",
        "choices": [],
        "usage": {"prompt_tokens": 20, "completion_tokens": 8, "total_tokens": 28},
    }


def make_provider(handler, provider=Provider.OPENROUTER, requests=None) -> OpenAICompatibleProvider:
    def recording(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(request)
        return handler(request)

    client = AsyncOpenAI(
        api_key="sk-test",
        base_url=BASE_URL,
        max_retries=0,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(recording)),
    )
    return OpenAICompatibleProvider(provider, api_key="sk-test", client=client)


class TestComplete:
    """Tests for non-streaming completions."""

    @pytest.mark.asyncio
    async def test_text_completion(self):
        requests = []
        provider = make_provider(lambda r: httpx.Response(200, json=completion("Hello")), requests=requests)

        response = await provider.complete(
            "vendor/model", [ChatMessage.user("Hi")], system_prompt="Be brief", temperature=0.2,
        )

        body = json.loads(requests[0].content)
        assert body["messages"][0] == {"role": "system", "content": "Be brief"}
        assert body["temperature"] == 0.2
        assert "max_tokens" not in body
        assert response.text == "Hello"
        assert response.usage == TokenUsage(12, 4)
        assert response.is_complete

    @pytest.mark.asyncio
    async def test_tool_calls_parsed(self):
        tool_calls = [{
            "id": "call-1",
            "type": "function",
            "function": {"name": "searchWeb", "arguments": '{"query": "rust"}'},
        }]
        requests = []
        provider = make_provider(
            lambda r: httpx.Response(200, json=completion("", tool_calls)), requests=requests,
        )

        response = await provider.complete(
            "vendor/model",
            [ChatMessage.user("Search")],
            tools=[ToolSpec(name="searchWeb", description="Search", parameters={"type": "object"})],
        )

        assert json.loads(requests[0].content)["tools"][0]["function"]["name"] == "searchWeb"
        assert response.tool_calls[0].name == "searchWeb"
        assert response.tool_calls[0].arguments == {"query": "rust"}


class TestErrors:
    """Tests for SDK error translation."""

    @pytest.mark.asyncio
    async def test_rate_limit(self):
        provider = make_provider(lambda r: httpx.Response(429, json={"error": {"message": "slow down"}}))

        with pytest.raises(RateLimitedError):
            await provider.complete("vendor/model", [ChatMessage.user("Hi")])

    @pytest.mark.asyncio
    async def test_missing_model(self):
        provider = make_provider(lambda r: httpx.Response(404, json={"error": {"message": "No endpoints found"}}))

        with pytest.raises(ModelUnavailableError):
            await provider.complete("vendor/gone", [ChatMessage.user("Hi")])

    @pytest.mark.asyncio
    async def test_server_error(self):
        provider = make_provider(lambda r: httpx.Response(500, json={"error": {"message": "boom"}}))

        with pytest.raises(ProviderError) as exc_info:
            await provider.complete("vendor/model", [ChatMessage.user("Hi")])

        assert exc_info.value.code == "provider_error"


class TestStructured:
    """Tests for structured generation."""

    @pytest.mark.asyncio
    async def test_generate_object(self):
        requests = []
        provider = make_provider(
            lambda r: httpx.Response(200, json=completion('{"question": "Why?"}')), requests=requests,
        )

        result = await provider.generate_object(
            "vendor/model", "system", "user", {"title": "MCQActivity", "type": "object"},
        )

        body = json.loads(requests[0].content)
        assert body["response_format"]["json_schema"]["name"] == "MCQActivity"
        assert result.object == {"question": "Why?"}
        assert result.usage == TokenUsage(12, 4)

    @pytest.mark.asyncio
    async def test_generate_object_invalid_json(self):
        provider = make_provider(lambda r: httpx.Response(200, json=completion("not json")))

        with pytest.raises(SchemaValidationError):
            await provider.generate_object("vendor/model", "system", "user", {"type": "object"})

    @pytest.mark.asyncio
    async def test_stream_object(self):
        provider = make_provider(lambda r: sse(
            delta_chunk('{"question": "Wh'),
            delta_chunk('y?", "options": ["a"'),
            delta_chunk(', "b"]}'),
            usage_chunk(),
        ))

        chunks = [c async for c in provider.stream_object("vendor/model", "system", "user", {"type": "object"})]

        partials = [c.object for c in chunks if not c.is_complete]
        assert partials[0] == {"question": "Wh"}
        assert chunks[-1].is_complete
        assert chunks[-1].object == {"question": "Why?", "options": ["a", "b"]}
        assert chunks[-1].usage == TokenUsage(20, 8)


class TestStreamComplete:
    """Tests for streamed chat completions."""

    @pytest.mark.asyncio
    async def test_text_deltas_then_complete(self):
        provider = make_provider(lambda r: sse(delta_chunk("Hel"), delta_chunk("lo"), usage_chunk()))

        chunks = [c async for c in provider.stream_complete("vendor/model", [ChatMessage.user("Hi")])]

        assert [c.text for c in chunks if c.is_partial] == ["Hel", "lo"]
        assert chunks[-1].text == "Hello"
        assert chunks[-1].usage == TokenUsage(20, 8)


class TestCapabilities:
    """Tests for model listing and tool support."""

    @pytest.mark.asyncio
    async def test_supports_tools_from_listing(self):
        listing = {
            "object": "list",
            "data": [
                {"id": "vendor/tools", "object": "model", "created": 0, "owned_by": "v",
                 "supported_parameters": ["tools"], "pricing": {"prompt": "0.000001", "completion": "0.000002"}},
                {"id": "vendor/plain", "object": "model", "created": 0, "owned_by": "v",
                 "supported_parameters": ["temperature"]},
            ],
        }
        provider = make_provider(lambda r: httpx.Response(200, json=listing))

        assert await provider.supports_tools("vendor/tools") is True
        assert await provider.supports_tools("vendor/plain") is False
        assert await provider.supports_tools("vendor/unknown") is False

    @pytest.mark.asyncio
    async def test_direct_providers_assumed_capable(self):
        provider = make_provider(lambda r: httpx.Response(500), provider=Provider.OPENAI)

        assert await provider.supports_tools("gpt-4o") is True


class TestCreateProvider:
    """Tests for create_provider."""

    def test_missing_key_raises(self):
        with pytest.raises(ProviderError):
            create_provider(Provider.OPENAI, settings=Settings(openai_api_key=""))

    def test_caller_key_preferred(self):
        provider = create_provider(Provider.GOOGLE, api_key="user-key", settings=Settings(google_api_key=""))

        assert provider.name == "google"
