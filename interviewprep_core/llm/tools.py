"""
LLM Tool Framework

Tools the model may call mid-conversation, the per-request registry that
gates them, and the status channel their invocations are published on.
"""

import asyncio
import json
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import (
    Any,
    AsyncIterator,
    Awaitable,
    Callable,
    Dict,
    FrozenSet,
    Iterable,
    Iterator,
    List,
    Mapping,
    Optional,
    Set,
)

import structlog

from interviewprep_core.errors import InterviewPrepError
from interviewprep_core.integrations.base import CrawlProvider, SearchProvider
from interviewprep_core.llm.base import ToolSpec
from interviewprep_core.llm.context import OrchestratorContext
from interviewprep_core.quota.guard import QuotaGuard
from interviewprep_core.storage.base import KeyValueStore
from interviewprep_core.tiers.base import Plan, PlanContext

logger = structlog.get_logger(__name__)

ENABLED_TOOLS_SETTING_KEY = "ai_tools.enabled"


class ParameterType(str, Enum):
    """JSON Schema parameter types."""
    STRING = "string"
    INTEGER = "integer"
    NUMBER = "number"
    BOOLEAN = "boolean"
    ARRAY = "array"
    OBJECT = "object"


@dataclass
class ToolParameter:
    """Definition of a tool parameter."""

    name: str
    type: ParameterType
    description: str = ""
    required: bool = True
    default: Any = None

    # For string type
    enum: Optional[List[str]] = None
    format: Optional[str] = None

    # For numeric types
    minimum: Optional[float] = None
    maximum: Optional[float] = None

    # For array type
    items: Optional[Dict[str, Any]] = None
    min_items: Optional[int] = None
    max_items: Optional[int] = None

    def to_json_schema(self) -> Dict[str, Any]:
        """Convert to JSON Schema format."""
        schema: Dict[str, Any] = {"type": self.type.value}

        if self.description:
            schema["description"] = self.description
        if self.default is not None:
            schema["default"] = self.default

        if self.type == ParameterType.STRING:
            if self.enum:
                schema["enum"] = self.enum
            if self.format:
                schema["format"] = self.format

        if self.type in (ParameterType.INTEGER, ParameterType.NUMBER):
            if self.minimum is not None:
                schema["minimum"] = self.minimum
            if self.maximum is not None:
                schema["maximum"] = self.maximum

        if self.type == ParameterType.ARRAY:
            if self.items:
                schema["items"] = self.items
            if self.min_items is not None:
                schema["minItems"] = self.min_items
            if self.max_items is not None:
                schema["maxItems"] = self.max_items

        return schema


class ToolInvocationStatus(str, Enum):
    CALLING = "calling"
    COMPLETE = "complete"
    ERROR = "error"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ToolInvocation:
    """One status transition of one tool call."""

    tool_id: str
    status: ToolInvocationStatus
    input: Dict[str, Any] = field(default_factory=dict)
    output: Any = None
    error: Optional[str] = None
    call_id: Optional[str] = None
    timestamp: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tool_id": self.tool_id,
            "status": self.status.value,
            "input": self.input,
            "output": self.output,
            "error": self.error,
            "call_id": self.call_id,
            "timestamp": self.timestamp.isoformat(),
        }


_CLOSED = object()


class ToolStatusChannel:
    """Publish/subscribe channel for tool invocation events.

    The orchestrator publishes; UI and logging layers subscribe. Every
    published event is also kept, in order, for the request's lifetime.
    """

    def __init__(self):
        self._history: List[ToolInvocation] = []
        self._subscribers: List[asyncio.Queue] = []
        self._closed = False

    @property
    def invocations(self) -> List[ToolInvocation]:
        return list(self._history)

    @property
    def closed(self) -> bool:
        return self._closed

    def publish(self, invocation: ToolInvocation) -> None:
        if self._closed:
            raise RuntimeError("Tool status channel is closed")
        self._history.append(invocation)
        for queue in self._subscribers:
            queue.put_nowait(invocation)

    def close(self) -> None:
        """End every subscription once its queued events are drained."""
        if self._closed:
            return
        self._closed = True
        for queue in self._subscribers:
            queue.put_nowait(_CLOSED)

    async def subscribe(self, replay: bool = True) -> AsyncIterator[ToolInvocation]:
        """Iterate invocation events until the channel closes.

        Args:
            replay: Deliver events published before subscribing first
        """
        queue: asyncio.Queue = asyncio.Queue()
        if replay:
            for invocation in self._history:
                queue.put_nowait(invocation)
        if self._closed:
            queue.put_nowait(_CLOSED)
        self._subscribers.append(queue)
        try:
            while True:
                item = await queue.get()
                if item is _CLOSED:
                    return
                yield item
        finally:
            self._subscribers.remove(queue)


class ToolExecutionError(InterviewPrepError):
    """A tool could not do its work.

    The payload, when given, is what the model sees as the tool result.
    """

    def __init__(self, message: str, payload: Optional[Dict[str, Any]] = None):
        self.payload = payload
        super().__init__(message, code="tool_execution_failed")


@dataclass
class ToolServices:
    """Collaborators available to tool handlers."""

    search: Optional[SearchProvider] = None
    crawl: Optional[CrawlProvider] = None
    quota: Optional[QuotaGuard] = None


@dataclass
class ToolContext:
    """What a handler gets besides its arguments."""

    request: OrchestratorContext
    services: ToolServices


@dataclass(frozen=True)
class ToolDescriptor:
    """Static description and gating flags of a tool."""

    id: str
    display_name: str
    description: str
    parameters: List[ToolParameter] = field(default_factory=list)
    plans: FrozenSet[Plan] = frozenset({Plan.PRO, Plan.MAX})
    requires_quota: bool = False
    requires_search: bool = False
    requires_crawl: bool = False

    def is_enabled_for_plan(self, plan: Plan) -> bool:
        return Plan(plan) in self.plans

    def input_schema(self) -> Dict[str, Any]:
        return {
            "type": "object",
            "properties": {p.name: p.to_json_schema() for p in self.parameters},
            "required": [p.name for p in self.parameters if p.required],
            "additionalProperties": False,
        }

    def to_tool_spec(self) -> ToolSpec:
        return ToolSpec(name=self.id, description=self.description, parameters=self.input_schema())


ToolHandler = Callable[[Dict[str, Any], ToolContext], Awaitable[Any]]


@dataclass
class ToolResult:
    """Result of tool execution."""

    tool_call_id: str
    tool_id: str
    success: bool
    output: Any = None
    error: Optional[str] = None

    # Timing
    execution_time_ms: float = 0.0

    def to_message_content(self) -> str:
        """Convert to message content for the model."""
        if self.success or self.output is not None:
            if isinstance(self.output, (dict, list)):
                return json.dumps(self.output, default=str)
            return str(self.output) if self.output is not None else "Success"
        return json.dumps({"success": False, "error": self.error})


@dataclass
class Tool:
    """A tool bound to its handler."""

    descriptor: ToolDescriptor
    handler: ToolHandler
    timeout_seconds: float = 60.0
    # Reduces handler output to what status subscribers see
    summarize: Optional[Callable[[Any], Any]] = None

    @property
    def id(self) -> str:
        return self.descriptor.id

    def _apply_defaults(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        args = dict(arguments)
        for param in self.descriptor.parameters:
            if param.name not in args and param.default is not None:
                args[param.name] = param.default
        missing = [
            p.name for p in self.descriptor.parameters
            if p.required and args.get(p.name) in (None, "", [])
        ]
        if missing:
            raise ToolExecutionError(f"Missing required arguments: {', '.join(missing)}")
        return args

    async def execute(
        self,
        call_id: str,
        arguments: Dict[str, Any],
        context: ToolContext,
        channel: ToolStatusChannel,
    ) -> ToolResult:
        """Run the handler, publishing calling then complete or error.

        Never raises: failures become an unsuccessful ToolResult.
        """
        start = time.monotonic()
        channel.publish(ToolInvocation(
            tool_id=self.id,
            status=ToolInvocationStatus.CALLING,
            input=dict(arguments),
            call_id=call_id,
        ))

        payload = None
        try:
            args = self._apply_defaults(arguments)
            output = await asyncio.wait_for(
                self.handler(args, context),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            error = f"Tool '{self.id}' timed out after {self.timeout_seconds}s"
        except ToolExecutionError as e:
            error = e.message
            payload = e.payload
        except Exception as e:
            error = str(e) or e.__class__.__name__
        else:
            channel.publish(ToolInvocation(
                tool_id=self.id,
                status=ToolInvocationStatus.COMPLETE,
                input=dict(arguments),
                output=self.summarize(output) if self.summarize else output,
                call_id=call_id,
            ))
            return ToolResult(
                tool_call_id=call_id,
                tool_id=self.id,
                success=True,
                output=output,
                execution_time_ms=(time.monotonic() - start) * 1000,
            )

        logger.warning("Tool execution failed", tool=self.id, error=error)
        channel.publish(ToolInvocation(
            tool_id=self.id,
            status=ToolInvocationStatus.ERROR,
            input=dict(arguments),
            error=error,
            call_id=call_id,
        ))
        return ToolResult(
            tool_call_id=call_id,
            tool_id=self.id,
            success=False,
            output=payload,
            error=error,
            execution_time_ms=(time.monotonic() - start) * 1000,
        )


@dataclass(frozen=True)
class ModelCapabilities:
    """What the resolved model can do."""

    model: str
    supports_tools: bool


class ToolSet(Mapping[str, Tool]):
    """Immutable set of tools built for one request."""

    def __init__(self, tools: Iterable[Tool] = ()):
        self._tools: Dict[str, Tool] = {t.id: t for t in tools}

    def __getitem__(self, tool_id: str) -> Tool:
        return self._tools[tool_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self._tools)

    def __len__(self) -> int:
        return len(self._tools)

    @property
    def ids(self) -> FrozenSet[str]:
        return frozenset(self._tools)

    def to_tool_specs(self) -> List[ToolSpec]:
        return [t.descriptor.to_tool_spec() for t in self._tools.values()]


class ToolRegistry:
    """Catalog of known tools and per-request gating."""

    def __init__(self, tools: Iterable[Tool] = (), services: Optional[ToolServices] = None):
        self._tools: Dict[str, Tool] = {}
        self._services = services or ToolServices()
        for t in tools:
            self.register(t)

    @property
    def services(self) -> ToolServices:
        return self._services

    def register(self, tool: Tool) -> None:
        self._tools[tool.id] = tool
        logger.debug("Registered tool", tool=tool.id)

    def get(self, tool_id: str) -> Optional[Tool]:
        return self._tools.get(tool_id)

    def list_tools(self) -> List[Tool]:
        return list(self._tools.values())

    def _services_available(self, descriptor: ToolDescriptor) -> bool:
        if descriptor.requires_search and self._services.search is None:
            return False
        if descriptor.requires_crawl and self._services.crawl is None:
            return False
        if descriptor.requires_quota and self._services.quota is None:
            return False
        return True

    def build(
        self,
        plan_context: PlanContext,
        enabled_tool_ids: Set[str],
        model_capabilities: ModelCapabilities,
    ) -> ToolSet:
        """Tools for one request.

        A tool is included only when the plan allows it, the administrator
        enabled it, and its backing services are configured. A model without
        tool support gets an empty set.
        """
        if not model_capabilities.supports_tools:
            logger.debug("Model lacks tool support, no tools built", model=model_capabilities.model)
            return ToolSet()

        selected = []
        for tool in self._tools.values():
            descriptor = tool.descriptor
            if not descriptor.is_enabled_for_plan(plan_context.plan):
                logger.debug("Tool excluded by plan", tool=tool.id, plan=plan_context.plan.value)
                continue
            if tool.id not in enabled_tool_ids:
                logger.debug("Tool excluded by admin settings", tool=tool.id)
                continue
            if not self._services_available(descriptor):
                logger.debug("Tool excluded, backing service not configured", tool=tool.id)
                continue
            selected.append(tool)

        return ToolSet(selected)

    async def load_enabled_tool_ids(self, store: KeyValueStore) -> Set[str]:
        """Administrator allow-list from the settings store.

        Stored as a mapping of tool id to flag; tools missing from the
        mapping are enabled.
        """
        saved = await store.get(ENABLED_TOOLS_SETTING_KEY) or {}
        return {tool_id for tool_id in self._tools if saved.get(tool_id, True)}


__all__ = [
    "ENABLED_TOOLS_SETTING_KEY",
    "ParameterType",
    "ToolParameter",
    "ToolInvocationStatus",
    "ToolInvocation",
    "ToolStatusChannel",
    "ToolExecutionError",
    "ToolServices",
    "ToolContext",
    "ToolDescriptor",
    "ToolHandler",
    "ToolResult",
    "Tool",
    "ModelCapabilities",
    "ToolSet",
    "ToolRegistry",
]
