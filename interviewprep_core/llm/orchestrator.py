"""
Orchestration Loop
==================

Bounded multi-step tool-calling conversation for the interview assistant.

Each step is one streamed model turn. When the turn requests tools, all of
them run concurrently, their results are appended to the conversation and
the model is called again. The loop ends when a turn has no tool calls or
the step ceiling is reached, whichever comes first.

Features:
    - Tier resolution and tool allow-list loaded in parallel
    - MAX plan model selection
    - Tool capability check with a user-facing warning when tools are dropped
    - Tool status published on a ToolStatusChannel
    - Tool failures fed back to the model; provider failures end the run

Usage:
    loop = OrchestrationLoop(resolver, registry, settings_store)
    run = await loop.run(messages, context)

    async for event in run.stream():
        if event.type == StreamEventType.TEXT_DELTA:
            print(event.text, end="")
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import AsyncIterator, Callable, List, Optional

import structlog

from interviewprep_core.llm.base import (
    ChatMessage,
    LLMProvider,
    MessageRole,
    ModelResponse,
    ProviderError,
    TokenUsage,
    ToolCall,
)
from interviewprep_core.llm.context import OrchestratorContext
from interviewprep_core.llm.providers import ProviderFactory, default_provider_factory
from interviewprep_core.llm.tools import (
    ModelCapabilities,
    ToolContext,
    ToolInvocation,
    ToolInvocationStatus,
    ToolRegistry,
    ToolResult,
    ToolSet,
    ToolStatusChannel,
)
from interviewprep_core.observability.logger import AIAction, LoggerContext, ObservabilityLogger
from interviewprep_core.storage.base import KeyValueStore
from interviewprep_core.tiers.base import BYOKConfig, EffectiveConfig, Provider
from interviewprep_core.tiers.resolver import TierConfigResolver, apply_model_selection

logger = structlog.get_logger(__name__)

ASSISTANT_TASK = "ai_assistant_chat"
DEFAULT_MAX_STEPS = 5


class OrchestrationState(str, Enum):
    IDLE = "idle"
    GENERATING = "generating"
    TOOL_CALLING = "tool_calling"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"


class StreamEventType(str, Enum):
    TEXT_DELTA = "text-delta"
    TOOL_CALL = "tool-call"
    TOOL_RESULT = "tool-result"
    STEP_FINISH = "step-finish"
    FINISH = "finish"


@dataclass
class StreamEvent:
    """One event of an orchestration stream."""

    type: StreamEventType
    step: int = 0
    text: str = ""
    tool_call: Optional[ToolCall] = None
    tool_result: Optional[ToolResult] = None
    finish_reason: Optional[str] = None
    usage: Optional[TokenUsage] = None
    model: Optional[str] = None


@dataclass
class OrchestratorOptions:
    """Per-run options."""

    max_steps: Optional[int] = None
    byok: Optional[BYOKConfig] = None
    api_key: Optional[str] = field(default=None, repr=False)


def build_system_prompt(context: OrchestratorContext, now: Optional[datetime] = None) -> str:
    """Assistant system prompt for the caller's current context."""
    now = now or datetime.now(timezone.utc)
    formatted_date = f"{now:%A, %B} {now.day}, {now.year}"
    formatted_time = f"{now:%I:%M %p} {now.tzname() or 'UTC'}"

    prompt = f"""You are MyInterviewPrep's AI Interview Assistant, an expert at helping software engineers prepare for technical interviews.

Current Context:
- Date: {formatted_date}
- Time: {formatted_time}
- ISO Date: {now.isoformat()}

Your capabilities include:
- Analyzing technology trends and job market demand
- Generating tailored mock interview questions
- Helping structure behavioral answers using STAR framework
- Creating system design templates
- Finding learning resources
- Analyzing GitHub repositories for learning opportunities

Guidelines:
1. Be concise but thorough in your responses
2. Use tools when they would enhance your answer
3. You can call multiple tools in parallel when appropriate
4. Provide actionable advice
5. Reference specific examples when possible"""

    if context.interview:
        prompt += f"""

Current Interview Context:
- Job Title: {context.interview.job_title}
- Company: {context.interview.company}"""
        if context.interview.resume_text:
            prompt += "\n- Resume context is available for personalized advice"

    if context.learning:
        prompt += f"""

Current Learning Context:
- Goal: {context.learning.goal}
- Current Topic: {context.learning.current_topic or "Not specified"}
- Difficulty Level: {context.learning.difficulty}"""

    return prompt


def _last_user_prompt(messages: List[ChatMessage]) -> str:
    for message in reversed(messages):
        if message.role == MessageRole.USER:
            return message.content
    return ""


class OrchestrationRun:
    """A prepared orchestration.

    Nothing is sent to the model until the stream is consumed. Tool status
    is available on ``channel`` while the stream runs and in
    ``tool_invocations`` afterwards.
    """

    def __init__(
        self,
        provider: LLMProvider,
        config: EffectiveConfig,
        messages: List[ChatMessage],
        system_prompt: str,
        tools: ToolSet,
        tool_context: ToolContext,
        max_steps: int,
        warnings: List[str],
        observability: Optional[ObservabilityLogger] = None,
    ):
        self._provider = provider
        self._config = config
        self._messages = list(messages)
        self.system_prompt = system_prompt
        self.tools = tools
        self._tool_context = tool_context
        self.max_steps = max_steps
        self.warnings = warnings
        self._observability = observability

        self.channel = ToolStatusChannel()
        self.state = OrchestrationState.IDLE
        self.steps = 0
        self.usage = TokenUsage()
        self.text = ""
        self._log_context: Optional[LoggerContext] = None
        self._started = False

    @property
    def model_id(self) -> str:
        return self._config.model

    @property
    def config(self) -> EffectiveConfig:
        return self._config

    @property
    def tool_invocations(self) -> List[ToolInvocation]:
        return self.channel.invocations

    def stream(self) -> AsyncIterator[StreamEvent]:
        """Event stream of the conversation. May be consumed once."""
        if self._started:
            raise RuntimeError("Orchestration stream already consumed")
        self._started = True

        if self._observability is None:
            return self._drive()

        self._log_context = self._observability.create_context()
        self._log_context.set_metadata(
            temperature=self._config.temperature,
            max_tokens=self._config.max_tokens,
            byok_used=self._config.byok,
        )
        return self._observability.track_stream(
            self._drive(),
            action=AIAction.AI_ASSISTANT_CHAT,
            model=self._config.model_id,
            prompt=_last_user_prompt(self._messages),
            system_prompt=self.system_prompt,
            user_id=self._tool_context.request.user_id,
            context=self._log_context,
        )

    async def collect(self) -> str:
        """Consume the whole stream and return the generated text."""
        async for _ in self.stream():
            pass
        return self.text

    async def _drive(self) -> AsyncIterator[StreamEvent]:
        conversation = list(self._messages)
        specs = self.tools.to_tool_specs() or None

        try:
            while True:
                self.steps += 1
                self.state = OrchestrationState.GENERATING
                turn = None

                async for chunk in self._provider.stream_complete(
                    model=self._config.model,
                    messages=conversation,
                    system_prompt=self.system_prompt,
                    tools=specs,
                    temperature=self._config.temperature,
                    max_tokens=self._config.max_tokens,
                ):
                    if chunk.is_complete:
                        turn = chunk
                    elif chunk.text:
                        yield StreamEvent(StreamEventType.TEXT_DELTA, step=self.steps, text=chunk.text)

                turn = turn or ModelResponse(is_complete=True, finish_reason="stop")
                self.text += turn.text
                if turn.usage is not None:
                    self.usage = self.usage + turn.usage

                for call in turn.tool_calls:
                    yield StreamEvent(StreamEventType.TOOL_CALL, step=self.steps, tool_call=call)

                if not turn.tool_calls:
                    yield StreamEvent(
                        StreamEventType.STEP_FINISH,
                        step=self.steps,
                        finish_reason=turn.finish_reason or "stop",
                        usage=turn.usage,
                    )
                    break

                if self.steps >= self.max_steps:
                    logger.warning(
                        "Step ceiling reached, ending orchestration",
                        max_steps=self.max_steps,
                        pending_tool_calls=[c.name for c in turn.tool_calls],
                    )
                    yield StreamEvent(
                        StreamEventType.STEP_FINISH,
                        step=self.steps,
                        finish_reason="max_steps",
                        usage=turn.usage,
                    )
                    break

                self.state = OrchestrationState.TOOL_CALLING
                conversation.append(ChatMessage.assistant(turn.text, turn.tool_calls))
                results = await asyncio.gather(*(self._execute(call) for call in turn.tool_calls))

                for call, result in zip(turn.tool_calls, results):
                    conversation.append(ChatMessage.tool(call.id, call.name, result.to_message_content()))
                    yield StreamEvent(StreamEventType.TOOL_RESULT, step=self.steps, tool_result=result)

                yield StreamEvent(
                    StreamEventType.STEP_FINISH,
                    step=self.steps,
                    finish_reason="tool_calls",
                    usage=turn.usage,
                )

            self.state = OrchestrationState.DONE
            yield StreamEvent(
                StreamEventType.FINISH,
                step=self.steps,
                text=self.text,
                usage=self.usage,
                model=turn.model or self._config.model_id,
                finish_reason=turn.finish_reason or "stop",
            )

        except ProviderError as e:
            self.state = OrchestrationState.FAILED
            logger.error("Orchestration failed", model=self._config.model, step=self.steps, error=e.message)
            raise
        except (asyncio.CancelledError, GeneratorExit):
            self.state = OrchestrationState.CANCELLED
            raise
        finally:
            self.channel.close()
            await self._provider.close()

    async def _execute(self, call: ToolCall) -> ToolResult:
        tool = self.tools.get(call.name)
        if tool is None:
            error = f"Unknown tool: {call.name}"
            logger.warning("Model called a tool outside the request tool set", tool=call.name)
            self.channel.publish(ToolInvocation(
                tool_id=call.name, status=ToolInvocationStatus.CALLING, input=dict(call.arguments), call_id=call.id,
            ))
            self.channel.publish(ToolInvocation(
                tool_id=call.name, status=ToolInvocationStatus.ERROR, input=dict(call.arguments),
                error=error, call_id=call.id,
            ))
            return ToolResult(tool_call_id=call.id, tool_id=call.name, success=False, error=error)

        result = await tool.execute(call.id, call.arguments, self._tool_context, self.channel)
        self._record_tool_use(call, result)
        return result

    def _record_tool_use(self, call: ToolCall, result: ToolResult) -> None:
        if self._log_context is None:
            return
        self._log_context.add_tool(call.name)
        query = call.arguments.get("query")
        if not query or not result.success:
            return
        hits = result.output
        if isinstance(hits, dict):
            hits = hits.get("searchResults", [])
        if isinstance(hits, list):
            sources = [h["url"] for h in hits if isinstance(h, dict) and h.get("url")]
            self._log_context.add_search(str(query), sources)


class OrchestrationLoop:
    """Prepares assistant conversations."""

    def __init__(
        self,
        resolver: TierConfigResolver,
        registry: ToolRegistry,
        settings_store: KeyValueStore,
        provider_factory: Optional[ProviderFactory] = None,
        observability: Optional[ObservabilityLogger] = None,
        max_steps: int = DEFAULT_MAX_STEPS,
        now: Optional[Callable[[], datetime]] = None,
    ):
        self._resolver = resolver
        self._registry = registry
        self._settings_store = settings_store
        self._provider_factory = provider_factory or default_provider_factory
        self._observability = observability
        self._max_steps = max_steps
        self._now = now or (lambda: datetime.now(timezone.utc))

    async def run(
        self,
        messages: List[ChatMessage],
        context: OrchestratorContext,
        options: Optional[OrchestratorOptions] = None,
    ) -> OrchestrationRun:
        """Resolve model and tools for a conversation.

        Raises:
            TierNotConfiguredError: If the assistant tier has no model
            ProviderError: If no provider client can be created
        """
        options = options or OrchestratorOptions()
        plan_context = context.plan_context

        config, enabled_tool_ids = await asyncio.gather(
            self._resolver.resolve(ASSISTANT_TASK, byok=options.byok, plan_context=plan_context),
            self._registry.load_enabled_tool_ids(self._settings_store),
        )
        config = apply_model_selection(config, plan_context)

        api_key = options.api_key or config.api_key or context.api_key
        provider = self._provider_factory(config.provider, api_key)

        try:
            tools_requested = bool(enabled_tool_ids) or bool(plan_context.provider_tool_ids)
            supports_tools = True
            if tools_requested and config.provider == Provider.OPENROUTER:
                supports_tools = await self._check_tool_support(provider, config.model)

            tools = self._registry.build(
                plan_context,
                enabled_tool_ids,
                ModelCapabilities(model=config.model, supports_tools=supports_tools),
            )

            # Only tools in the built set are advertised to the model
            system_prompt = build_system_prompt(context, self._now())
            if tools_requested and not supports_tools:
                system_prompt += (
                    f"\n\nNote: Tool use was requested but the current model ({config.model}) "
                    "does not support tools. Please provide responses without using external tools."
                )

            warnings: List[str] = []
            if tools_requested and not supports_tools:
                warnings.append(
                    f"Model {config.model} does not support tool use. "
                    "Tools have been disabled for this conversation."
                )
        except BaseException:
            await provider.close()
            raise

        # A tool-less conversation is a single turn
        max_steps = options.max_steps or self._max_steps
        if not tools:
            max_steps = 1

        logger.info(
            "Orchestration prepared",
            user_id=context.user_id,
            plan=plan_context.plan.value,
            provider=config.provider.value,
            model=config.model,
            tools=sorted(tools.ids),
            max_steps=max_steps,
        )

        return OrchestrationRun(
            provider=provider,
            config=config,
            messages=messages,
            system_prompt=system_prompt,
            tools=tools,
            tool_context=ToolContext(request=context, services=self._registry.services),
            max_steps=max_steps,
            warnings=warnings,
            observability=self._observability,
        )

    async def _check_tool_support(self, provider: LLMProvider, model: str) -> bool:
        try:
            supported = await provider.supports_tools(model)
        except Exception as e:
            logger.warning("Failed to check model capabilities, disabling tools", model=model, error=str(e))
            return False
        if not supported:
            logger.warning("Model does not support tools, disabling tool use", model=model)
        return supported


__all__ = [
    "ASSISTANT_TASK",
    "DEFAULT_MAX_STEPS",
    "OrchestrationState",
    "StreamEventType",
    "StreamEvent",
    "OrchestratorOptions",
    "OrchestrationRun",
    "OrchestrationLoop",
    "build_system_prompt",
]
