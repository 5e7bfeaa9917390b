"""
Streaming Generator
===================

Single-shot structured generation of learning activities, streamed as
progressively fuller partial objects.

Features:
    - Partial objects never lose a value once it has appeared
    - Final object validated against the activity's content model
    - Cancellation: no further partials and no complete event
    - One live stream per stream key; a new start supersedes the old one
    - Completed activities replayed from the store unless regenerating
    - Non-streaming generation with one fallback attempt on an unavailable model

Usage:
    generator = StreamingGenerator(resolver, store=settings_store)
    stream = await generator.start(context, ActivityType.MCQ)

    async for event in stream:
        if event.type == GenerationEventType.PARTIAL:
            render(event.object)
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterator, Dict, Optional

import structlog
from pydantic import ValidationError

from interviewprep_core.content.activities import (
    ACTIVITY_TASKS,
    ActivityContent,
    ActivityType,
    activity_json_schema,
    content_model_for,
    validate_activity,
)
from interviewprep_core.content.prompts import (
    ACTIVITY_SYSTEM_PROMPT,
    ActivityContext,
    build_activity_prompt,
)
from interviewprep_core.content.selection import select_activity_type
from interviewprep_core.errors import InterviewPrepError
from interviewprep_core.llm.base import (
    LLMProvider,
    ModelUnavailableError,
    ObjectChunk,
    SchemaValidationError,
    StructuredResult,
    TokenUsage,
)
from interviewprep_core.llm.partial_json import merge_partial
from interviewprep_core.llm.providers import ProviderFactory, default_provider_factory
from interviewprep_core.observability.logger import AIAction, ObservabilityLogger
from interviewprep_core.storage.base import KeyValueStore
from interviewprep_core.tiers.base import BYOKConfig, EffectiveConfig, PlanContext, format_model_id
from interviewprep_core.tiers.resolver import TierConfigResolver

logger = structlog.get_logger(__name__)

ACTIVITY_ACTIONS: Dict[ActivityType, AIAction] = {
    ActivityType.MCQ: AIAction.GENERATE_ACTIVITY_MCQ,
    ActivityType.CODING_CHALLENGE: AIAction.GENERATE_ACTIVITY_CODING_CHALLENGE,
    ActivityType.DEBUGGING_TASK: AIAction.GENERATE_ACTIVITY_DEBUGGING_TASK,
    ActivityType.CONCEPT_EXPLANATION: AIAction.GENERATE_ACTIVITY_CONCEPT_EXPLANATION,
    ActivityType.REAL_WORLD_ASSIGNMENT: AIAction.GENERATE_ACTIVITY_REAL_WORLD_ASSIGNMENT,
    ActivityType.MINI_CASE_STUDY: AIAction.GENERATE_ACTIVITY_MINI_CASE_STUDY,
}


def completed_activity_key(stream_key: str) -> str:
    return f"activity:{stream_key}"


class GenerationEventType(str, Enum):
    PARTIAL = "partial"
    COMPLETE = "complete"
    ERROR = "error"


@dataclass
class GenerationEvent:
    """One event of an activity stream."""

    type: GenerationEventType
    object: Dict[str, Any] = field(default_factory=dict)
    activity: Optional[ActivityContent] = None  # Set on complete
    cached: bool = False
    error: Optional[str] = None
    error_code: Optional[str] = None


@dataclass
class GeneratedActivity:
    """Result of a non-streaming generation."""

    activity: ActivityContent
    activity_type: ActivityType
    model_id: str
    usage: TokenUsage
    used_fallback: bool = False


async def _next_chunk(source: AsyncIterator[ObjectChunk]) -> Optional[ObjectChunk]:
    try:
        return await source.__anext__()
    except StopAsyncIteration:
        return None


def _validate_final(obj: Dict[str, Any], activity_type: ActivityType) -> ActivityContent:
    data = dict(obj)
    data.setdefault("type", content_model_for(activity_type).model_fields["type"].default)
    try:
        return validate_activity(data)
    except ValidationError as e:
        raise SchemaValidationError(
            f"Generated {activity_type.value} activity failed validation",
            errors=e.errors(include_url=False),
        ) from e


class GenerationStream:
    """A started activity generation.

    Iterate it once for its events. ``cancel()`` may be called from the
    consumer or from another task. A cancel from another task interrupts a
    pending upstream read at once and closes the source.
    """

    def __init__(
        self,
        key: str,
        activity_type: ActivityType,
        model_id: str,
        source: Optional[AsyncIterator[ObjectChunk]] = None,
        cached_activity: Optional[ActivityContent] = None,
        on_complete=None,
        on_finish=None,
    ):
        self.key = key
        self.activity_type = activity_type
        self.model_id = model_id
        self._source = source
        self._cached_activity = cached_activity
        self._on_complete = on_complete
        self._on_finish = on_finish

        self.result: Optional[ActivityContent] = None
        self.usage = TokenUsage()
        self.partial_count = 0
        self._cancelled = False
        self._consumed = False
        # Upstream read in flight, if any
        self._pending: Optional["asyncio.Future[Optional[ObjectChunk]]"] = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def is_cached(self) -> bool:
        return self._cached_activity is not None

    def cancel(self) -> None:
        """Stop forwarding events. No complete event follows a cancel."""
        if not self._cancelled:
            logger.debug("Activity stream cancelled", key=self.key, partials=self.partial_count)
        self._cancelled = True
        pending = self._pending
        if pending is not None and not pending.done():
            pending.cancel()

    def __aiter__(self) -> AsyncIterator[GenerationEvent]:
        if self._consumed:
            raise RuntimeError("Generation stream already consumed")
        self._consumed = True
        return self._events()

    async def _events(self) -> AsyncIterator[GenerationEvent]:
        if self._cached_activity is not None:
            if not self._cancelled:
                self.result = self._cached_activity
                yield GenerationEvent(
                    GenerationEventType.COMPLETE,
                    object=self._cached_activity.model_dump(by_alias=True),
                    activity=self._cached_activity,
                    cached=True,
                )
            return

        source = self._source
        if self._cancelled:
            await source.aclose()
            if self._on_finish is not None:
                self._on_finish(self)
            return

        current: Dict[str, Any] = {}
        final: Optional[ObjectChunk] = None
        try:
            while not self._cancelled:
                self._pending = asyncio.ensure_future(_next_chunk(source))
                try:
                    chunk = await self._pending
                except asyncio.CancelledError:
                    # Only a cancel() of this stream ends iteration quietly
                    if self._cancelled and self._pending.cancelled():
                        break
                    raise
                finally:
                    self._pending = None
                if chunk is None or self._cancelled:
                    break
                if chunk.is_complete:
                    final = chunk
                    continue
                merged = merge_partial(current, chunk.object)
                if merged == current:
                    continue
                current = merged
                self.partial_count += 1
                yield GenerationEvent(GenerationEventType.PARTIAL, object=current)
                if self._cancelled:
                    break
        except InterviewPrepError as e:
            if not self._cancelled:
                logger.warning("Activity generation failed", key=self.key, error=e.message, code=e.code)
                yield GenerationEvent(GenerationEventType.ERROR, error=e.message, error_code=e.code)
            return
        finally:
            await source.aclose()
            if self._on_finish is not None:
                self._on_finish(self)

        if self._cancelled or final is None:
            return

        self.result = final.activity
        self.usage = TokenUsage.from_raw(final.usage)
        if self._on_complete is not None:
            await self._on_complete(self)
        yield GenerationEvent(
            GenerationEventType.COMPLETE,
            object=self.result.model_dump(by_alias=True),
            activity=self.result,
        )


@dataclass
class _ValidatedChunk(ObjectChunk):
    activity: Optional[ActivityContent] = None


class StreamingGenerator:
    """Starts activity generations and tracks the live stream per key."""

    def __init__(
        self,
        resolver: TierConfigResolver,
        provider_factory: Optional[ProviderFactory] = None,
        store: Optional[KeyValueStore] = None,
        observability: Optional[ObservabilityLogger] = None,
    ):
        self._resolver = resolver
        self._provider_factory = provider_factory or default_provider_factory
        self._store = store
        self._observability = observability
        self._active: Dict[str, GenerationStream] = {}

    def active_stream(self, key: str) -> Optional[GenerationStream]:
        return self._active.get(key)

    async def start(
        self,
        context: ActivityContext,
        activity_type: Optional[ActivityType] = None,
        regenerate: bool = False,
        stream_key: Optional[str] = None,
        byok: Optional[BYOKConfig] = None,
        plan_context: Optional[PlanContext] = None,
        api_key: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> GenerationStream:
        """Start streaming an activity.

        Args:
            context: Goal, topic and difficulty to generate for
            activity_type: Type to generate; chosen by weighted selection when omitted
            regenerate: Ignore a completed activity stored for the key
            stream_key: Identity of the stream, defaults to the topic id

        Raises:
            TierNotConfiguredError: If the activity's tier has no model
        """
        key = stream_key or context.topic.id

        previous = self._active.pop(key, None)
        if previous is not None:
            previous.cancel()

        if not regenerate:
            cached = await self._load_completed(key)
            if cached is not None:
                logger.debug("Replaying completed activity", key=key, type=cached.type)
                return GenerationStream(
                    key=key,
                    activity_type=ActivityType(cached.type),
                    model_id="cached",
                    cached_activity=cached,
                )
        elif self._store is not None:
            await self._store.delete(completed_activity_key(key))

        if activity_type is None:
            activity_type = select_activity_type(context.skill_cluster, context.previous_activities)
        activity_type = ActivityType(activity_type)

        config = await self._resolver.resolve(
            ACTIVITY_TASKS[activity_type], byok=byok, plan_context=plan_context
        )
        prompt = build_activity_prompt(context, activity_type)

        source = self._stream_source(config, api_key or config.api_key, activity_type, prompt)
        if self._observability is not None:
            log_context = self._observability.create_context()
            log_context.set_metadata(
                temperature=config.temperature,
                max_tokens=config.max_tokens,
                byok_used=config.byok,
            )
            source = self._observability.track_stream(
                source,
                action=ACTIVITY_ACTIONS[activity_type],
                model=config.model_id,
                prompt=prompt,
                system_prompt=ACTIVITY_SYSTEM_PROMPT,
                user_id=user_id,
                context=log_context,
            )

        stream = GenerationStream(
            key=key,
            activity_type=activity_type,
            model_id=config.model_id,
            source=source,
            on_complete=self._save_completed,
            on_finish=self._release,
        )
        self._active[key] = stream
        logger.info(
            "Activity stream started",
            key=key,
            type=activity_type.value,
            model=config.model_id,
            regenerate=regenerate,
        )
        return stream

    async def generate(
        self,
        context: ActivityContext,
        activity_type: ActivityType,
        byok: Optional[BYOKConfig] = None,
        plan_context: Optional[PlanContext] = None,
        api_key: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> GeneratedActivity:
        """Generate an activity in one call.

        When the primary model is unavailable and a fallback model is
        configured, the call is repeated once against the fallback.

        Raises:
            TierNotConfiguredError: If the activity's tier has no model
            ProviderError: If the provider call fails
            SchemaValidationError: If the output is not a valid activity
        """
        activity_type = ActivityType(activity_type)
        config = await self._resolver.resolve(
            ACTIVITY_TASKS[activity_type], byok=byok, plan_context=plan_context
        )
        provider = self._provider_factory(config.provider, api_key or config.api_key)
        prompt = build_activity_prompt(context, activity_type)

        try:
            try:
                result = await self._generate_once(provider, config, config.model, activity_type, prompt, user_id)
                used_fallback = False
            except ModelUnavailableError as e:
                if not config.fallback_model:
                    raise
                logger.warning(
                    "Primary model unavailable, retrying with fallback",
                    model=config.model,
                    fallback=config.fallback_model,
                    error=e.message,
                )
                result = await self._generate_once(
                    provider, config, config.fallback_model, activity_type, prompt, user_id
                )
                used_fallback = True
        finally:
            await provider.close()

        model = config.fallback_model if used_fallback else config.model
        return GeneratedActivity(
            activity=_validate_final(result.object, activity_type),
            activity_type=activity_type,
            model_id=format_model_id(config.tier, model),
            usage=result.usage,
            used_fallback=used_fallback,
        )

    async def _generate_once(
        self,
        provider: LLMProvider,
        config: EffectiveConfig,
        model: str,
        activity_type: ActivityType,
        prompt: str,
        user_id: Optional[str],
    ) -> StructuredResult:
        async def call() -> StructuredResult:
            result = await provider.generate_object(
                model=model,
                system_prompt=ACTIVITY_SYSTEM_PROMPT,
                user_prompt=prompt,
                schema=activity_json_schema(activity_type),
                temperature=config.temperature,
                max_tokens=config.max_tokens,
            )
            # Validation failures are logged as failed generations
            _validate_final(result.object, activity_type)
            return result

        if self._observability is None:
            return await call()

        log_context = self._observability.create_context()
        log_context.set_metadata(
            temperature=config.temperature,
            max_tokens=config.max_tokens,
            streaming=False,
            byok_used=config.byok,
        )
        return await self._observability.wrap(
            call,
            action=ACTIVITY_ACTIONS[activity_type],
            model=format_model_id(config.tier, model),
            prompt=prompt,
            system_prompt=ACTIVITY_SYSTEM_PROMPT,
            user_id=user_id,
            context=log_context,
        )

    async def _stream_source(
        self,
        config: EffectiveConfig,
        api_key: Optional[str],
        activity_type: ActivityType,
        prompt: str,
    ) -> AsyncIterator[ObjectChunk]:
        # The provider is created on first iteration so an unread stream holds no client
        provider = self._provider_factory(config.provider, api_key)
        stream = provider.stream_object(
            model=config.model,
            system_prompt=ACTIVITY_SYSTEM_PROMPT,
            user_prompt=prompt,
            schema=activity_json_schema(activity_type),
            temperature=config.temperature,
            max_tokens=config.max_tokens,
        )
        try:
            async for chunk in stream:
                if chunk.is_complete:
                    yield _ValidatedChunk(
                        object=chunk.object,
                        is_complete=True,
                        usage=chunk.usage,
                        model=chunk.model,
                        activity=_validate_final(chunk.object, activity_type),
                    )
                else:
                    yield chunk
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()
            await provider.close()

    async def _load_completed(self, key: str) -> Optional[ActivityContent]:
        if self._store is None:
            return None
        saved = await self._store.get(completed_activity_key(key))
        if not saved:
            return None
        try:
            return validate_activity(saved)
        except ValidationError:
            logger.warning("Discarding invalid stored activity", key=key)
            return None

    async def _save_completed(self, stream: GenerationStream) -> None:
        if self._store is None or stream.result is None:
            return
        await self._store.set(
            completed_activity_key(stream.key),
            stream.result.model_dump(by_alias=True),
        )

    def _release(self, stream: GenerationStream) -> None:
        if self._active.get(stream.key) is stream:
            del self._active[stream.key]


__all__ = [
    "ACTIVITY_ACTIONS",
    "completed_activity_key",
    "GenerationEventType",
    "GenerationEvent",
    "GeneratedActivity",
    "GenerationStream",
    "StreamingGenerator",
]
