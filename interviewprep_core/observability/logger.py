"""
Generation Logger
=================

Audit and cost records for every model generation.

Features:
    - Timing of the whole call and of the first streamed token
    - Token usage and estimated cost per generation
    - Tools used, search queries and search result summaries per request
    - Error path records with zero usage and a status derived from the error
    - Best-effort persistence: a failing log store never fails the caller

Usage:
    obs = ObservabilityLogger(records=record_store, pricing=pricing)

    result = await obs.wrap(
        lambda: provider.generate_object(...),
        action=AIAction.GENERATE_ACTIVITY_MCQ,
        model=config.model_id,
        prompt=user_prompt,
    )
"""

import asyncio
import json
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, TypeVar

import structlog

from interviewprep_core.llm.base import (
    ProviderTimeoutError,
    RateLimitedError,
    TokenUsage,
)
from interviewprep_core.observability.pricing import ModelPricing
from interviewprep_core.storage.base import RecordStore

logger = structlog.get_logger(__name__)

T = TypeVar("T")

AI_LOG_COLLECTION = "ai_logs"


class AIAction(str, Enum):
    """Logged generation actions."""
    # Learning path activities
    GENERATE_ACTIVITY_MCQ = "GENERATE_ACTIVITY_MCQ"
    GENERATE_ACTIVITY_CODING_CHALLENGE = "GENERATE_ACTIVITY_CODING_CHALLENGE"
    GENERATE_ACTIVITY_DEBUGGING_TASK = "GENERATE_ACTIVITY_DEBUGGING_TASK"
    GENERATE_ACTIVITY_CONCEPT_EXPLANATION = "GENERATE_ACTIVITY_CONCEPT_EXPLANATION"
    GENERATE_ACTIVITY_REAL_WORLD_ASSIGNMENT = "GENERATE_ACTIVITY_REAL_WORLD_ASSIGNMENT"
    GENERATE_ACTIVITY_MINI_CASE_STUDY = "GENERATE_ACTIVITY_MINI_CASE_STUDY"

    # Assistant
    AI_ASSISTANT_CHAT = "AI_ASSISTANT_CHAT"


class AIStatus(str, Enum):
    """Outcome of a logged generation."""
    SUCCESS = "success"
    ERROR = "error"
    TIMEOUT = "timeout"
    RATE_LIMITED = "rate_limited"
    CANCELLED = "cancelled"


def status_for_error(error: BaseException) -> AIStatus:
    """Map an exception to the log status it is recorded under."""
    if isinstance(error, RateLimitedError):
        return AIStatus.RATE_LIMITED
    if isinstance(error, (ProviderTimeoutError, asyncio.TimeoutError)):
        return AIStatus.TIMEOUT
    if isinstance(error, asyncio.CancelledError):
        return AIStatus.CANCELLED
    return AIStatus.ERROR


@dataclass(frozen=True)
class SearchResultSummary:
    """What one search returned, without the result bodies."""

    query: str
    result_count: int
    sources: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "query": self.query,
            "result_count": self.result_count,
            "sources": list(self.sources),
        }


@dataclass(frozen=True)
class GenerationLogEntry:
    """One generation attempt. Written once, never updated."""

    action: AIAction
    model: str
    prompt: str
    response: str
    token_usage: TokenUsage
    latency_ms: float
    status: AIStatus = AIStatus.SUCCESS
    system_prompt: Optional[str] = None
    estimated_cost: Optional[float] = None
    time_to_first_token: Optional[float] = None
    tools_used: List[str] = field(default_factory=list)
    search_queries: List[str] = field(default_factory=list)
    search_results: List[SearchResultSummary] = field(default_factory=list)
    error_message: Optional[str] = None
    error_code: Optional[str] = None
    user_id: Optional[str] = None
    interview_id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "action": self.action.value,
            "model": self.model,
            "prompt": self.prompt,
            "system_prompt": self.system_prompt,
            "response": self.response,
            "token_usage": {
                "input": self.token_usage.input_tokens,
                "output": self.token_usage.output_tokens,
            },
            "estimated_cost": self.estimated_cost,
            "latency_ms": self.latency_ms,
            "time_to_first_token": self.time_to_first_token,
            "tools_used": list(self.tools_used),
            "search_queries": list(self.search_queries),
            "search_results": [r.to_dict() for r in self.search_results],
            "status": self.status.value,
            "error_message": self.error_message,
            "error_code": self.error_code,
            "user_id": self.user_id,
            "interview_id": self.interview_id,
            "metadata": dict(self.metadata),
            "timestamp": self.timestamp.isoformat(),
        }


class LoggerContext:
    """Per-request collector for what a generation did.

    Tools may report into the context while the generation runs; the
    logger reads it once the outcome is known.
    """

    def __init__(self, clock: Optional[Callable[[], float]] = None):
        self._clock = clock or time.monotonic
        self.started_at = self._clock()
        self.first_token_at: Optional[float] = None
        self.tools_used: List[str] = []
        self.search_queries: List[str] = []
        self.search_results: List[SearchResultSummary] = []
        self.metadata: Dict[str, Any] = {}

    def add_tool(self, tool_id: str) -> None:
        if tool_id not in self.tools_used:
            self.tools_used.append(tool_id)

    def add_search(self, query: str, sources: Optional[List[str]] = None) -> None:
        """Record a search query and the URLs it returned."""
        sources = list(sources or [])
        self.search_queries.append(query)
        self.search_results.append(
            SearchResultSummary(query=query, result_count=len(sources), sources=sources)
        )

    def mark_first_token(self) -> None:
        # Only the first call counts
        if self.first_token_at is None:
            self.first_token_at = self._clock()

    def set_metadata(self, **values: Any) -> None:
        self.metadata.update({k: v for k, v in values.items() if v is not None})

    @property
    def latency_ms(self) -> float:
        return round((self._clock() - self.started_at) * 1000, 3)

    @property
    def time_to_first_token_ms(self) -> Optional[float]:
        if self.first_token_at is None:
            return None
        return round((self.first_token_at - self.started_at) * 1000, 3)


def _response_text(result: Any) -> str:
    if result is None:
        return ""
    if isinstance(result, str):
        return result
    obj = getattr(result, "object", None)
    if obj is not None:
        return json.dumps(obj, default=str)
    text = getattr(result, "text", None)
    if text is not None:
        return text
    return json.dumps(result, default=str)


class ObservabilityLogger:
    """Records a GenerationLogEntry for every wrapped generation."""

    def __init__(
        self,
        records: RecordStore,
        pricing: Optional[ModelPricing] = None,
        collection: str = AI_LOG_COLLECTION,
        clock: Optional[Callable[[], float]] = None,
    ):
        self._records = records
        self._pricing = pricing
        self._collection = collection
        self._clock = clock

    def create_context(self) -> LoggerContext:
        return LoggerContext(clock=self._clock)

    async def wrap(
        self,
        call: Callable[[], Awaitable[T]],
        action: AIAction,
        model: str,
        prompt: str,
        system_prompt: Optional[str] = None,
        user_id: Optional[str] = None,
        interview_id: Optional[str] = None,
        context: Optional[LoggerContext] = None,
    ) -> T:
        """Run a generation call and log its outcome.

        The call's own result or exception is returned or re-raised
        unchanged; the log write happens after the outcome is known.
        """
        ctx = context or self.create_context()
        try:
            result = await call()
        except BaseException as e:
            await self.log_error(
                e, action=action, model=model, prompt=prompt, context=ctx,
                system_prompt=system_prompt, user_id=user_id, interview_id=interview_id,
            )
            raise

        await self.log_success(
            action=action,
            model=getattr(result, "model", None) or model,
            prompt=prompt,
            response=_response_text(result),
            usage=TokenUsage.from_raw(getattr(result, "usage", None)),
            context=ctx,
            system_prompt=system_prompt,
            user_id=user_id,
            interview_id=interview_id,
        )
        return result

    async def track_stream(
        self,
        stream: AsyncIterator[T],
        action: AIAction,
        model: str,
        prompt: str,
        system_prompt: Optional[str] = None,
        user_id: Optional[str] = None,
        interview_id: Optional[str] = None,
        context: Optional[LoggerContext] = None,
    ) -> AsyncIterator[T]:
        """Pass a stream through, logging once it ends.

        The first chunk marks time-to-first-token. The last chunk carrying
        usage supplies the token counts and the reported model. A consumer
        that stops early is logged as cancelled.
        """
        ctx = context or self.create_context()
        ctx.set_metadata(streaming=True)
        last: Any = None
        usage = TokenUsage()
        reported_model = model

        try:
            async for chunk in stream:
                ctx.mark_first_token()
                last = chunk
                chunk_usage = getattr(chunk, "usage", None)
                if chunk_usage is not None:
                    usage = TokenUsage.from_raw(chunk_usage)
                reported_model = getattr(chunk, "model", None) or reported_model
                yield chunk
        except (GeneratorExit, asyncio.CancelledError) as e:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()
            await self.log_error(
                asyncio.CancelledError() if isinstance(e, GeneratorExit) else e,
                action=action, model=reported_model, prompt=prompt, context=ctx,
                system_prompt=system_prompt, user_id=user_id, interview_id=interview_id,
                response=_response_text(last),
            )
            raise
        except Exception as e:
            await self.log_error(
                e, action=action, model=reported_model, prompt=prompt, context=ctx,
                system_prompt=system_prompt, user_id=user_id, interview_id=interview_id,
                response=_response_text(last),
            )
            raise

        await self.log_success(
            action=action,
            model=reported_model,
            prompt=prompt,
            response=_response_text(last),
            usage=usage,
            context=ctx,
            system_prompt=system_prompt,
            user_id=user_id,
            interview_id=interview_id,
        )

    async def log_success(
        self,
        action: AIAction,
        model: str,
        prompt: str,
        response: str,
        usage: TokenUsage,
        context: LoggerContext,
        system_prompt: Optional[str] = None,
        user_id: Optional[str] = None,
        interview_id: Optional[str] = None,
    ) -> Optional[GenerationLogEntry]:
        latency = context.latency_ms
        if latency > 0 and usage.output_tokens:
            context.set_metadata(throughput=round(usage.output_tokens / (latency / 1000), 2))

        entry = GenerationLogEntry(
            action=action,
            model=model,
            prompt=prompt,
            system_prompt=system_prompt,
            response=response,
            token_usage=usage,
            estimated_cost=await self._estimate_cost(model, usage),
            latency_ms=latency,
            time_to_first_token=context.time_to_first_token_ms,
            tools_used=list(context.tools_used),
            search_queries=list(context.search_queries),
            search_results=list(context.search_results),
            status=AIStatus.SUCCESS,
            user_id=user_id,
            interview_id=interview_id,
            metadata=dict(context.metadata),
        )
        await self.write(entry)
        return entry

    async def log_error(
        self,
        error: BaseException,
        action: AIAction,
        model: str,
        prompt: str,
        context: LoggerContext,
        system_prompt: Optional[str] = None,
        user_id: Optional[str] = None,
        interview_id: Optional[str] = None,
        response: str = "",
    ) -> Optional[GenerationLogEntry]:
        """Record a failed attempt with zero token usage."""
        entry = GenerationLogEntry(
            action=action,
            model=model,
            prompt=prompt,
            system_prompt=system_prompt,
            response=response,
            token_usage=TokenUsage(),
            estimated_cost=0.0,
            latency_ms=context.latency_ms,
            time_to_first_token=context.time_to_first_token_ms,
            tools_used=list(context.tools_used),
            search_queries=list(context.search_queries),
            search_results=list(context.search_results),
            status=status_for_error(error),
            error_message=str(error) or type(error).__name__,
            error_code=getattr(error, "code", None) or type(error).__name__,
            user_id=user_id,
            interview_id=interview_id,
            metadata=dict(context.metadata),
        )
        await self.write(entry)
        return entry

    async def write(self, entry: GenerationLogEntry) -> bool:
        """Persist an entry. Failures are logged locally and swallowed."""
        try:
            await self._records.append(self._collection, entry.to_dict())
        except Exception as e:
            logger.warning(
                "Failed to write generation log",
                action=entry.action.value,
                model=entry.model,
                error=str(e),
            )
            return False
        return True

    async def _estimate_cost(self, model: str, usage: TokenUsage) -> Optional[float]:
        if self._pricing is None:
            return None
        try:
            return await self._pricing.estimate_cost(
                model, usage.input_tokens, usage.output_tokens
            )
        except Exception as e:
            logger.warning("Cost estimation failed", model=model, error=str(e))
            return None


__all__ = [
    "AI_LOG_COLLECTION",
    "AIAction",
    "AIStatus",
    "status_for_error",
    "SearchResultSummary",
    "GenerationLogEntry",
    "LoggerContext",
    "ObservabilityLogger",
]
