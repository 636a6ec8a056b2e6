"""
session_events.py - Typed session events emitted by the agent runtime.

The runtime hands us loosely typed messages with a string discriminant:

    system        subtype: init | compact_boundary
    assistant     a completed turn
    stream_event  event.type: message_start | content_block_start |
                  content_block_delta | content_block_stop |
                  message_delta | message_stop
    result        subtype: success | <anything else = failure>

Each one becomes a frozen dataclass here, so consumers dispatch on the
class instead of poking at dict keys. Messages outside this set (user
echoes of tool results, unknown subtypes) convert to None.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union

from claude_agent_sdk import AssistantMessage, ResultMessage, SystemMessage
from claude_agent_sdk.types import StreamEvent as SdkStreamEvent


class BlockKind(Enum):
    TEXT = "text"
    TOOL_USE = "tool_use"
    THINKING = "thinking"
    OTHER = "other"

    @classmethod
    def parse(cls, value: Optional[str]) -> "BlockKind":
        try:
            return cls(value)
        except ValueError:
            return cls.OTHER


# =============================================================================
# system
# =============================================================================

@dataclass(frozen=True)
class SystemInit:
    session_id: Optional[str]
    model: Optional[str] = None
    cwd: Optional[str] = None
    tools: tuple = ()
    mcp_servers: tuple = ()


@dataclass(frozen=True)
class CompactBoundary:
    trigger: Optional[str] = None
    pre_tokens: Optional[int] = None


# =============================================================================
# assistant
# =============================================================================

@dataclass(frozen=True)
class AssistantTurn:
    content: Any
    model: Optional[str] = None


# =============================================================================
# stream_event
# =============================================================================

@dataclass(frozen=True)
class StreamEventBase:
    pass


@dataclass(frozen=True)
class MessageStart(StreamEventBase):
    message_id: Optional[str] = None
    model: Optional[str] = None


@dataclass(frozen=True)
class ContentBlockStart(StreamEventBase):
    kind: BlockKind = BlockKind.TEXT
    index: int = 0
    tool_name: Optional[str] = None


@dataclass(frozen=True)
class ContentBlockDelta(StreamEventBase):
    text: Optional[str] = None
    thinking: Optional[str] = None
    partial_json: Optional[str] = None
    index: int = 0


@dataclass(frozen=True)
class ContentBlockStop(StreamEventBase):
    index: int = 0


@dataclass(frozen=True)
class MessageDelta(StreamEventBase):
    stop_reason: Optional[str] = None
    usage: dict = field(default_factory=dict)


@dataclass(frozen=True)
class MessageStop(StreamEventBase):
    pass


# =============================================================================
# result
# =============================================================================

@dataclass(frozen=True)
class ResultSuccess:
    duration_ms: int
    total_cost_usd: Optional[float]
    num_turns: int
    session_id: Optional[str] = None
    result: Optional[str] = None


@dataclass(frozen=True)
class ResultFailure:
    subtype: str
    payload: dict = field(default_factory=dict)


StreamSessionEvent = Union[
    MessageStart, ContentBlockStart, ContentBlockDelta,
    ContentBlockStop, MessageDelta, MessageStop,
]

SessionEvent = Union[
    SystemInit, CompactBoundary, AssistantTurn,
    StreamSessionEvent, ResultSuccess, ResultFailure,
]


# =============================================================================
# Parsing
# =============================================================================

def _server_names(servers: Any) -> tuple:
    # init reports servers either as a list of {"name", "status"} or a name map
    if isinstance(servers, dict):
        return tuple(servers)
    names = []
    for srv in servers or []:
        names.append(srv.get("name", "unknown") if isinstance(srv, dict) else str(srv))
    return tuple(names)


def parse_system(subtype: Optional[str], data: dict) -> Optional[SessionEvent]:
    if subtype == "init":
        return SystemInit(
            session_id=data.get("session_id"),
            model=data.get("model"),
            cwd=data.get("cwd"),
            tools=tuple(data.get("tools") or ()),
            mcp_servers=_server_names(data.get("mcp_servers")),
        )
    if subtype == "compact_boundary":
        meta = data.get("compact_metadata") or {}
        return CompactBoundary(trigger=meta.get("trigger"), pre_tokens=meta.get("pre_tokens"))
    return None


def parse_stream_event(event: dict) -> Optional[StreamSessionEvent]:
    """Convert one inner Anthropic stream event dict."""
    etype = event.get("type")
    index = event.get("index", 0)

    if etype == "content_block_delta":
        delta = event.get("delta") or {}
        return ContentBlockDelta(
            text=delta.get("text"),
            thinking=delta.get("thinking"),
            partial_json=delta.get("partial_json"),
            index=index,
        )
    if etype == "content_block_start":
        block = event.get("content_block") or {}
        return ContentBlockStart(
            kind=BlockKind.parse(block.get("type")),
            index=index,
            tool_name=block.get("name"),
        )
    if etype == "content_block_stop":
        return ContentBlockStop(index=index)
    if etype == "message_start":
        message = event.get("message") or {}
        return MessageStart(message_id=message.get("id"), model=message.get("model"))
    if etype == "message_delta":
        delta = event.get("delta") or {}
        return MessageDelta(stop_reason=delta.get("stop_reason"), usage=event.get("usage") or {})
    if etype == "message_stop":
        return MessageStop()
    return None


def parse_result(subtype: Optional[str], data: dict) -> SessionEvent:
    if subtype == "success":
        return ResultSuccess(
            duration_ms=data.get("duration_ms", 0),
            total_cost_usd=data.get("total_cost_usd"),
            num_turns=data.get("num_turns", 0),
            session_id=data.get("session_id"),
            result=data.get("result"),
        )
    return ResultFailure(subtype=subtype or "unknown", payload=dict(data))


def parse_event(msg: dict) -> Optional[SessionEvent]:
    """
    Convert a runtime message in its JSON shape.

    Raises ValueError when the top-level type is missing or unknown;
    known types with unknown subtypes return None.
    """
    mtype = msg.get("type")
    if mtype == "system":
        return parse_system(msg.get("subtype"), msg)
    if mtype == "assistant":
        message = msg.get("message") or {}
        return AssistantTurn(content=message.get("content"), model=message.get("model"))
    if mtype == "stream_event":
        return parse_stream_event(msg.get("event") or {})
    if mtype == "result":
        return parse_result(msg.get("subtype"), msg)
    if mtype == "user":
        return None
    raise ValueError(f"Unknown session event type: {mtype!r}")


def from_sdk_message(message: Any) -> Optional[SessionEvent]:
    """Convert a claude_agent_sdk message object. Never raises on unknown input."""
    if isinstance(message, SdkStreamEvent):
        return parse_stream_event(message.event or {})
    if isinstance(message, SystemMessage):
        return parse_system(message.subtype, message.data or {})
    if isinstance(message, AssistantMessage):
        return AssistantTurn(content=message.content, model=message.model)
    if isinstance(message, ResultMessage):
        return parse_result(message.subtype, {
            "duration_ms": message.duration_ms,
            "duration_api_ms": message.duration_api_ms,
            "is_error": message.is_error,
            "num_turns": message.num_turns,
            "session_id": message.session_id,
            "total_cost_usd": message.total_cost_usd,
            "usage": message.usage,
            "result": message.result,
        })
    if isinstance(message, dict):
        try:
            return parse_event(message)
        except ValueError:
            return None
    return None
