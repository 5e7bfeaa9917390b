"""Unit tests for streamed and one-shot activity generation."""

import asyncio

import pytest

from interviewprep_core.content.activities import ActivityType, MCQActivity
from interviewprep_core.llm.base import (
    ModelUnavailableError,
    ObjectChunk,
    RateLimitedError,
    SchemaValidationError,
    StructuredResult,
    TokenUsage,
)
from interviewprep_core.llm.streaming import (
    ACTIVITY_ACTIONS,
    GenerationEventType,
    StreamingGenerator,
    completed_activity_key,
)
from interviewprep_core.observability.logger import AI_LOG_COLLECTION, AIAction, ObservabilityLogger
from interviewprep_core.storage.memory import InMemoryKeyValueStore
from interviewprep_core.tiers.base import TierNotConfiguredError
from interviewprep_core.tiers.resolver import TierConfigResolver
from interviewprep_core.tiers.store import KeyValueTierConfigStore
from tests.fakes import FakeProvider, provider_factory_for

MCQ = {
    "type": "mcq",
    "question": "What is the time complexity of binary search?",
    "options": ["O(1)", "O(log n)", "O(n)", "O(n log n)"],
    "correctAnswer": "O(log n)",
    "explanation": "Each step halves the search range.",
}


def mcq_chunks():
    return [
        ObjectChunk(object={"question": "What is"}),
        ObjectChunk(object={"question": "What is the time complexity"}),
        ObjectChunk(object={"question": MCQ["question"], "options": ["O(1)", "O(log"]}),
        ObjectChunk(object={"question": MCQ["question"], "options": MCQ["options"]}),
        ObjectChunk(object=dict(MCQ), is_complete=True, usage=TokenUsage(100, 50), model="vendor/model"),
    ]


def make_generator(resolver, provider, store=None, observability=None) -> StreamingGenerator:
    return StreamingGenerator(
        resolver,
        provider_factory=provider_factory_for(provider),
        store=store,
        observability=observability,
    )


async def collect(stream):
    return [event async for event in stream]


class StallingProvider(FakeProvider):
    """Provider whose object stream hangs after its scripted chunks."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.upstream_closed = False

    async def stream_object(
        self, model, system_prompt, user_prompt, schema, temperature=None, max_tokens=None,
    ):
        self.object_stream_calls += 1
        try:
            for chunk in self.object_chunks:
                self.object_chunks_sent += 1
                yield chunk
            await asyncio.Event().wait()
        finally:
            self.upstream_closed = True


class TestStreaming:
    """Tests for GenerationStream events."""

    @pytest.mark.asyncio
    async def test_partials_then_complete(self, resolver, activity_context):
        provider = FakeProvider(object_chunks=mcq_chunks())
        stream = await make_generator(resolver, provider).start(activity_context, ActivityType.MCQ)

        events = await collect(stream)

        assert [e.type for e in events] == [GenerationEventType.PARTIAL] * 4 + [GenerationEventType.COMPLETE]
        complete = events[-1]
        assert isinstance(complete.activity, MCQActivity)
        assert complete.activity.correct_answer == "O(log n)"
        assert complete.object["correctAnswer"] == "O(log n)"
        assert stream.usage == TokenUsage(100, 50)
        assert stream.model_id == "high - anthropic/claude-sonnet-4"
        assert provider.close_count == 1

    @pytest.mark.asyncio
    async def test_partials_never_lose_values(self, resolver, activity_context):
        chunks = [
            ObjectChunk(object={"question": "What", "options": ["O(1)", "O(n)"]}),
            ObjectChunk(object={"question": "What is"}),
            ObjectChunk(object={"question": "What is", "options": ["O(1)"]}),
            ObjectChunk(object={"question": "", "options": ["O(1)", "O(n)", "O(log n)"]}),
        ]
        provider = FakeProvider(object_chunks=chunks)
        stream = await make_generator(resolver, provider).start(activity_context, ActivityType.MCQ)

        partials = [e.object for e in await collect(stream) if e.type == GenerationEventType.PARTIAL]

        for before, after in zip(partials, partials[1:]):
            for key, value in before.items():
                assert key in after
                if isinstance(value, list):
                    assert len(after[key]) >= len(value)
        assert partials[-1]["question"] == "What is"
        assert partials[-1]["options"] == ["O(1)", "O(n)", "O(log n)"]

    @pytest.mark.asyncio
    async def test_unchanged_partials_are_not_repeated(self, resolver, activity_context):
        chunks = [
            ObjectChunk(object={"question": "What"}),
            ObjectChunk(object={"question": "What"}),
            ObjectChunk(object={"question": "What is"}),
        ]
        provider = FakeProvider(object_chunks=chunks)
        stream = await make_generator(resolver, provider).start(activity_context, ActivityType.MCQ)

        await collect(stream)

        assert stream.partial_count == 2

    @pytest.mark.asyncio
    async def test_cancel_mid_stream_emits_no_complete(self, resolver, activity_context):
        provider = FakeProvider(object_chunks=mcq_chunks())
        stream = await make_generator(resolver, provider).start(activity_context, ActivityType.MCQ)

        events = []
        async for event in stream:
            events.append(event)
            if len(events) == 2:
                stream.cancel()

        assert len(events) == 2
        assert all(e.type == GenerationEventType.PARTIAL for e in events)
        assert provider.object_chunks_sent == 2
        assert stream.result is None
        assert provider.close_count == 1

    @pytest.mark.asyncio
    async def test_cancel_before_iteration(self, resolver, activity_context):
        provider = FakeProvider(object_chunks=mcq_chunks())
        stream = await make_generator(resolver, provider).start(activity_context, ActivityType.MCQ)

        stream.cancel()
        events = await collect(stream)

        assert events == []
        assert provider.object_stream_calls == 0

    @pytest.mark.asyncio
    async def test_cancel_from_another_task_interrupts_stalled_upstream(self, resolver, activity_context):
        provider = StallingProvider(object_chunks=mcq_chunks()[:1])
        stream = await make_generator(resolver, provider).start(activity_context, ActivityType.MCQ)
        events = []
        first_partial = asyncio.Event()

        async def consume():
            async for event in stream:
                events.append(event)
                first_partial.set()

        consumer = asyncio.ensure_future(consume())
        await asyncio.wait_for(first_partial.wait(), timeout=1)
        await asyncio.sleep(0)

        stream.cancel()
        await asyncio.wait_for(consumer, timeout=1)

        assert [e.type for e in events] == [GenerationEventType.PARTIAL]
        assert provider.upstream_closed is True
        assert provider.close_count == 1
        assert stream.result is None

    @pytest.mark.asyncio
    async def test_invalid_final_object_is_an_error_event(self, resolver, activity_context):
        bad = dict(MCQ, correctAnswer="O(2^n)")
        provider = FakeProvider(object_chunks=[
            ObjectChunk(object={"question": "What"}),
            ObjectChunk(object=bad, is_complete=True),
        ])
        stream = await make_generator(resolver, provider).start(activity_context, ActivityType.MCQ)

        events = await collect(stream)

        assert [e.type for e in events] == [GenerationEventType.PARTIAL, GenerationEventType.ERROR]
        assert events[-1].error_code == "schema_validation_failed"
        assert stream.result is None

    @pytest.mark.asyncio
    async def test_provider_error_is_an_error_event(self, resolver, activity_context):
        provider = FakeProvider(
            object_chunks=[ObjectChunk(object={"question": "What"})],
            object_stream_error=RateLimitedError(),
        )
        stream = await make_generator(resolver, provider).start(activity_context, ActivityType.MCQ)

        events = await collect(stream)

        assert events[-1].type == GenerationEventType.ERROR
        assert events[-1].error_code == "rate_limited"

    @pytest.mark.asyncio
    async def test_stream_consumed_once(self, resolver, activity_context):
        provider = FakeProvider(object_chunks=mcq_chunks())
        stream = await make_generator(resolver, provider).start(activity_context, ActivityType.MCQ)
        await collect(stream)

        with pytest.raises(RuntimeError):
            stream.__aiter__()

    @pytest.mark.asyncio
    async def test_unconfigured_tier_raises_at_start(self, activity_context):
        resolver = TierConfigResolver(KeyValueTierConfigStore(InMemoryKeyValueStore()))
        generator = make_generator(resolver, FakeProvider())

        with pytest.raises(TierNotConfiguredError):
            await generator.start(activity_context, ActivityType.MCQ)

    @pytest.mark.asyncio
    async def test_medium_tier_task_uses_medium_model(self, resolver, activity_context):
        provider = FakeProvider()
        stream = await make_generator(resolver, provider).start(
            activity_context, ActivityType.CONCEPT_EXPLANATION,
        )

        assert stream.model_id == "medium - openai/gpt-4o-mini"

    @pytest.mark.asyncio
    async def test_type_selected_when_omitted(self, resolver, activity_context):
        stream = await make_generator(resolver, FakeProvider()).start(activity_context)

        assert stream.activity_type in {
            ActivityType.MCQ,
            ActivityType.CODING_CHALLENGE,
            ActivityType.DEBUGGING_TASK,
            ActivityType.CONCEPT_EXPLANATION,
        }


class TestStreamKeys:
    """Tests for per-key stream tracking and replay."""

    @pytest.mark.asyncio
    async def test_completed_activity_saved_and_replayed(self, resolver, activity_context, kv_store):
        generator = make_generator(resolver, FakeProvider(object_chunks=mcq_chunks()), store=kv_store)
        await collect(await generator.start(activity_context, ActivityType.MCQ))

        assert (await kv_store.get(completed_activity_key("topic-1")))["correctAnswer"] == "O(log n)"

        replay = await generator.start(activity_context, ActivityType.MCQ)
        events = await collect(replay)

        assert replay.is_cached
        assert replay.model_id == "cached"
        assert len(events) == 1
        assert events[0].type == GenerationEventType.COMPLETE
        assert events[0].cached is True

    @pytest.mark.asyncio
    async def test_regenerate_ignores_and_removes_stored(self, resolver, activity_context, kv_store):
        await kv_store.set(completed_activity_key("topic-1"), dict(MCQ))
        provider = FakeProvider(object_chunks=mcq_chunks())
        generator = make_generator(resolver, provider, store=kv_store)

        stream = await generator.start(activity_context, ActivityType.MCQ, regenerate=True)

        assert not stream.is_cached
        assert await kv_store.get(completed_activity_key("topic-1")) is None
        events = await collect(stream)
        assert events[-1].cached is False

    @pytest.mark.asyncio
    async def test_new_start_cancels_in_flight_stream(self, resolver, activity_context):
        provider = FakeProvider(object_chunks=mcq_chunks())
        generator = make_generator(resolver, provider)
        first = await generator.start(activity_context, ActivityType.MCQ)

        iterator = first.__aiter__()
        await iterator.__anext__()
        second = await generator.start(activity_context, ActivityType.MCQ, regenerate=True)

        remaining = [e async for e in iterator]

        assert first.cancelled
        assert remaining == []
        assert generator.active_stream("topic-1") is second

    @pytest.mark.asyncio
    async def test_finished_stream_released(self, resolver, activity_context):
        generator = make_generator(resolver, FakeProvider(object_chunks=mcq_chunks()))
        stream = await generator.start(activity_context, ActivityType.MCQ)

        assert generator.active_stream("topic-1") is stream
        await collect(stream)

        assert generator.active_stream("topic-1") is None

    @pytest.mark.asyncio
    async def test_invalid_stored_activity_is_ignored(self, resolver, activity_context, kv_store):
        await kv_store.set(completed_activity_key("topic-1"), {"type": "mcq", "question": "?"})
        generator = make_generator(resolver, FakeProvider(object_chunks=mcq_chunks()), store=kv_store)

        stream = await generator.start(activity_context, ActivityType.MCQ)

        assert not stream.is_cached


class TestStreamingObservability:
    """Tests for generation logging of streams."""

    def test_every_action_has_a_caller(self):
        assert set(ACTIVITY_ACTIONS) == set(ActivityType)
        assert set(AIAction) == set(ACTIVITY_ACTIONS.values()) | {AIAction.AI_ASSISTANT_CHAT}

    @pytest.mark.asyncio
    async def test_completed_stream_logged(self, resolver, activity_context, record_store):
        generator = make_generator(
            resolver,
            FakeProvider(object_chunks=mcq_chunks()),
            observability=ObservabilityLogger(records=record_store),
        )

        await collect(await generator.start(activity_context, ActivityType.MCQ, user_id="user-1"))

        [entry] = await record_store.list(AI_LOG_COLLECTION)
        assert entry["action"] == "GENERATE_ACTIVITY_MCQ"
        assert entry["status"] == "success"
        assert entry["user_id"] == "user-1"
        assert entry["token_usage"] == {"input": 100, "output": 50}
        assert entry["time_to_first_token"] is not None

    @pytest.mark.asyncio
    async def test_cancelled_stream_logged_as_cancelled(self, resolver, activity_context, record_store):
        generator = make_generator(
            resolver,
            FakeProvider(object_chunks=mcq_chunks()),
            observability=ObservabilityLogger(records=record_store),
        )
        stream = await generator.start(activity_context, ActivityType.MCQ)

        async for _ in stream:
            stream.cancel()

        [entry] = await record_store.list(AI_LOG_COLLECTION)
        assert entry["status"] == "cancelled"


class TestGenerate:
    """Tests for one-shot generation and model fallback."""

    @pytest.mark.asyncio
    async def test_generates_validated_activity(self, resolver, activity_context):
        provider = FakeProvider(objects={
            "anthropic/claude-sonnet-4": StructuredResult(object=dict(MCQ), usage=TokenUsage(80, 40)),
        })

        result = await make_generator(resolver, provider).generate(activity_context, ActivityType.MCQ)

        assert isinstance(result.activity, MCQActivity)
        assert result.used_fallback is False
        assert result.model_id == "high - anthropic/claude-sonnet-4"
        assert result.usage == TokenUsage(80, 40)
        assert provider.close_count == 1

    @pytest.mark.asyncio
    async def test_falls_back_when_model_unavailable(self, resolver, activity_context):
        provider = FakeProvider(objects={
            "anthropic/claude-sonnet-4": ModelUnavailableError("No endpoints found"),
            "openai/gpt-4o": StructuredResult(object=dict(MCQ), usage=TokenUsage(80, 40)),
        })

        result = await make_generator(resolver, provider).generate(activity_context, ActivityType.MCQ)

        assert provider.generate_calls == ["anthropic/claude-sonnet-4", "openai/gpt-4o"]
        assert result.used_fallback is True
        assert result.model_id == "high - openai/gpt-4o"

    @pytest.mark.asyncio
    async def test_rate_limit_does_not_fall_back(self, resolver, activity_context):
        provider = FakeProvider(objects={
            "anthropic/claude-sonnet-4": RateLimitedError(),
            "openai/gpt-4o": StructuredResult(object=dict(MCQ), usage=TokenUsage(80, 40)),
        })

        with pytest.raises(RateLimitedError):
            await make_generator(resolver, provider).generate(activity_context, ActivityType.MCQ)

        assert provider.generate_calls == ["anthropic/claude-sonnet-4"]
        assert provider.close_count == 1

    @pytest.mark.asyncio
    async def test_no_fallback_configured_raises(self, resolver, activity_context):
        provider = FakeProvider(objects={"openai/gpt-4o-mini": ModelUnavailableError("gone")})

        with pytest.raises(ModelUnavailableError):
            await make_generator(resolver, provider).generate(
                activity_context, ActivityType.CONCEPT_EXPLANATION,
            )

    @pytest.mark.asyncio
    async def test_invalid_output_raises_schema_error(self, resolver, activity_context, record_store):
        provider = FakeProvider(objects={
            "anthropic/claude-sonnet-4": StructuredResult(object={"question": "?"}, usage=TokenUsage(1, 1)),
        })
        generator = make_generator(
            resolver, provider, observability=ObservabilityLogger(records=record_store),
        )

        with pytest.raises(SchemaValidationError):
            await generator.generate(activity_context, ActivityType.MCQ)

        [entry] = await record_store.list(AI_LOG_COLLECTION)
        assert entry["status"] == "error"
        assert entry["error_code"] == "schema_validation_failed"
