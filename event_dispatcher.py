"""
event_dispatcher.py - Consume one session's event stream and render it.

    runtime ──> SessionEvent ──> EventDispatcher.dispatch()
                                   ├─ system/init        -> report metadata, session_start hooks
                                   ├─ system/compact     -> notice
                                   ├─ assistant          -> print turn content
                                   ├─ stream_event       -> ContentBlockTracker (+ DebugThrottle)
                                   └─ result             -> ResultReporter, loop ends

Events are pulled one at a time and handled to completion before the next
one is awaited. All mutable state lives on the SessionContext, so two
sessions never share a tracker, a throttle or a pipeline.
"""

import json
import sys
import time
from dataclasses import dataclass, field
from typing import AsyncIterable, Callable, Optional

from content_blocks import ContentBlockTracker, OutputSink
from debug_throttle import DebugThrottle
from hook_pipeline import HookPhase, HookPipeline, SessionEndInput, SessionStartInput
from session_events import (
    AssistantTurn,
    BlockKind,
    CompactBoundary,
    ContentBlockDelta,
    ContentBlockStart,
    ContentBlockStop,
    MessageDelta,
    MessageStart,
    MessageStop,
    ResultFailure,
    ResultSuccess,
    SessionEvent,
    SystemInit,
)


def _print_error(line: str) -> None:
    print(line, file=sys.stderr)


@dataclass
class SessionReport:
    """Summary of a finished session, built from its terminal result event."""
    success: bool
    subtype: str
    duration_ms: Optional[int] = None
    total_cost_usd: Optional[float] = None
    num_turns: Optional[int] = None
    result: Optional[str] = None
    payload: dict = field(default_factory=dict)
    lines: list[str] = field(default_factory=list)


class ResultReporter:
    """Turns a result event into a report. Holds no state between calls."""

    def __init__(
        self,
        emit: Callable[[str], None] = print,
        emit_error: Callable[[str], None] = _print_error,
    ):
        self.emit = emit
        self.emit_error = emit_error

    def report(self, event) -> SessionReport:
        if isinstance(event, ResultSuccess):
            cost = "n/a" if event.total_cost_usd is None else f"${event.total_cost_usd:.6f}"
            lines = [
                "\nBriefing complete!",
                f"Duration: {event.duration_ms} ms",
                f"Cost: {cost}",
                f"Turns: {event.num_turns}",
            ]
            for line in lines:
                self.emit(line)
            return SessionReport(
                success=True,
                subtype="success",
                duration_ms=event.duration_ms,
                total_cost_usd=event.total_cost_usd,
                num_turns=event.num_turns,
                result=event.result,
                lines=lines,
            )

        lines = [f"\nExecution failed: {event.subtype}"]
        if event.payload:
            lines.append(f"Details: {json.dumps(event.payload, ensure_ascii=False, indent=2, default=str)}")
        for line in lines:
            self.emit_error(line)
        return SessionReport(
            success=False,
            subtype=event.subtype,
            duration_ms=event.payload.get("duration_ms"),
            total_cost_usd=event.payload.get("total_cost_usd"),
            num_turns=event.payload.get("num_turns"),
            payload=dict(event.payload),
            lines=lines,
        )


class SessionContext:
    """Per-session state handed to every component."""

    def __init__(
        self,
        pipeline: HookPipeline,
        sink: Optional[OutputSink] = None,
        cwd: Optional[str] = None,
        debug: bool = False,
        emit: Callable[[str], None] = print,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.session_id: Optional[str] = None
        self.cwd = cwd
        self.debug = debug
        self.pipeline = pipeline
        self.tracker = ContentBlockTracker(sink if sink is not None else sys.stdout)
        self.throttle = DebugThrottle(enabled=debug, emit=emit, clock=clock)
        self.started = False


class EventDispatcher:
    def __init__(
        self,
        context: SessionContext,
        reporter: Optional[ResultReporter] = None,
        emit: Callable[[str], None] = print,
    ):
        self.context = context
        self.reporter = reporter or ResultReporter(emit=emit)
        self.emit = emit

    def _debug(self, message: str) -> None:
        if self.context.debug:
            self.emit(f"[debug] {message}")

    async def run(self, events: AsyncIterable[Optional[SessionEvent]]) -> Optional[SessionReport]:
        """
        Drive the loop until a result event arrives or the stream is exhausted.

        An exception from the event source propagates unchanged, after the
        open block is released and the session_end hooks have run.
        """
        report = None
        iterator = events.__aiter__()
        try:
            async for event in iterator:
                if event is None:
                    continue
                report = await self.dispatch(event)
                if report is not None:
                    break
        finally:
            self.context.tracker.reset()
            aclose = getattr(iterator, "aclose", None)
            if aclose is not None:
                await aclose()
            await self.context.pipeline.run(
                HookPhase.SESSION_END, SessionEndInput(session_id=self.context.session_id)
            )
        return report

    async def dispatch(self, event: SessionEvent) -> Optional[SessionReport]:
        """Handle one event. Returns a report for terminal events, else None."""
        if isinstance(event, SystemInit):
            await self._on_init(event)
        elif isinstance(event, CompactBoundary):
            self.emit("Conversation history compacted by the runtime")
        elif isinstance(event, AssistantTurn):
            self.emit(f"Assistant: {event.content}")
        elif isinstance(event, (MessageStart, ContentBlockStart, ContentBlockDelta,
                                ContentBlockStop, MessageDelta, MessageStop)):
            self._on_stream_event(event)
        elif isinstance(event, (ResultSuccess, ResultFailure)):
            return self.reporter.report(event)
        else:
            raise TypeError(f"Unhandled session event: {event!r}")
        return None

    async def _on_init(self, event: SystemInit) -> None:
        ctx = self.context
        ctx.session_id = event.session_id
        if event.cwd:
            ctx.cwd = event.cwd

        self.emit(f"Session started, model: {event.model}")
        self.emit(f"  cwd: {event.cwd}")
        self.emit(f"  tools: {list(event.tools)}")
        self.emit(f"  mcp_servers: {list(event.mcp_servers)}")

        if not ctx.started:
            ctx.started = True
            ctx.throttle.reset()
            await ctx.pipeline.run(HookPhase.SESSION_START, SessionStartInput(session_id=event.session_id))

    def _on_stream_event(self, event) -> None:
        tracker = self.context.tracker

        if isinstance(event, ContentBlockDelta):
            self.context.throttle.on_delta()
            if not tracker.delta(text=event.text, thinking=event.thinking):
                self._debug("content_block_delta with no open block ignored")

        elif isinstance(event, ContentBlockStart):
            tracker.start(event.kind, tool_name=event.tool_name)
            if event.kind == BlockKind.THINKING:
                self.emit("\n[thinking]")
            elif event.kind == BlockKind.TOOL_USE:
                self._debug(f"tool_use block opened: {event.tool_name}")

        elif isinstance(event, ContentBlockStop):
            if not tracker.stop():
                self._debug("content_block_stop with no open block ignored")

        elif isinstance(event, MessageStart):
            self._debug(f"message_start id={event.message_id} model={event.model}")

        elif isinstance(event, MessageDelta):
            self._debug(f"message_delta stop_reason={event.stop_reason} usage={event.usage}")

        elif isinstance(event, MessageStop):
            self._debug("message_stop")
