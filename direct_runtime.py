"""
direct_runtime.py - Run a session straight against the Anthropic Messages API.

No agent runtime in between: this module plays the runtime's part and emits
the same SessionEvents, so the dispatcher cannot tell the two apart.

    SystemInit
    while True:
        stream one model response  -> stream events, then AssistantTurn
        no tool_use blocks?        -> ResultSuccess, done
        each tool_use block        -> execute_tool_with_hooks (pre / tool / post)
        post hook said stop?       -> ResultFailure("hook_stopped_continuation")
        over max_turns?            -> ResultFailure("error_max_turns")

API errors end the session with ResultFailure("error_during_execution").
There is no retry.
"""

import time
import uuid
from typing import AsyncIterator, Optional

import anthropic

from fetch_tool import FETCH_SERVER_NAME
from hook_pipeline import HookPipeline, execute_tool_with_hooks
from session_events import (
    AssistantTurn,
    ResultFailure,
    ResultSuccess,
    SessionEvent,
    SystemInit,
    parse_stream_event,
)

MAX_TURNS = 30
MAX_TOKENS = 8192

# The SDK's message stream also yields helper events (text, input_json, ...);
# only the raw protocol events are forwarded.
RAW_EVENT_TYPES = {
    "message_start", "content_block_start", "content_block_delta",
    "content_block_stop", "message_delta", "message_stop",
}


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


async def stream_session(
    prompt: str,
    system_prompt: str,
    tools: dict,
    pipeline: HookPipeline,
    client: anthropic.AsyncAnthropic,
    model: str,
    cwd: Optional[str] = None,
    max_turns: int = MAX_TURNS,
    max_tokens: int = MAX_TOKENS,
) -> AsyncIterator[SessionEvent]:
    session_id = str(uuid.uuid4())
    start = time.monotonic()

    yield SystemInit(
        session_id=session_id,
        model=model,
        cwd=cwd,
        tools=tuple(tools),
        mcp_servers=(FETCH_SERVER_NAME,),
    )

    tools_api = [
        {"name": t.name, "description": t.description, "input_schema": t.input_schema}
        for t in tools.values()
    ]
    messages: list = [{"role": "user", "content": prompt}]
    turn_count = 0

    while True:
        turn_count += 1
        if turn_count > max_turns:
            yield ResultFailure("error_max_turns", {
                "session_id": session_id,
                "num_turns": max_turns,
                "duration_ms": _elapsed_ms(start),
            })
            return

        try:
            async with client.messages.stream(
                model=model,
                system=system_prompt,
                messages=messages,
                tools=tools_api,
                max_tokens=max_tokens,
            ) as stream:
                async for raw in stream:
                    if raw.type not in RAW_EVENT_TYPES:
                        continue
                    event = parse_stream_event(raw.model_dump())
                    if event is not None:
                        yield event
                response = await stream.get_final_message()
        except anthropic.APIError as e:
            yield ResultFailure("error_during_execution", {
                "session_id": session_id,
                "num_turns": turn_count,
                "duration_ms": _elapsed_ms(start),
                "error": str(e),
            })
            return

        yield AssistantTurn(content=response.content, model=response.model)

        tool_calls = [b for b in response.content if b.type == "tool_use"]
        if not tool_calls:
            yield ResultSuccess(
                duration_ms=_elapsed_ms(start),
                total_cost_usd=None,
                num_turns=turn_count,
                session_id=session_id,
                result="".join(b.text for b in response.content if b.type == "text"),
            )
            return

        results = []
        stopped_by = None
        for tc in tool_calls:
            invocation = await execute_tool_with_hooks(pipeline, tools, tc.name, tc.input, session_id)
            results.append({
                "type": "tool_result",
                "tool_use_id": tc.id,
                "content": invocation.outcome.text,
                "is_error": invocation.outcome.is_error,
            })
            if invocation.stop_session:
                stopped_by = invocation
                break

        if stopped_by is not None:
            yield ResultFailure("hook_stopped_continuation", {
                "session_id": session_id,
                "num_turns": turn_count,
                "duration_ms": _elapsed_ms(start),
                "tool_name": stopped_by.tool_name,
                "reason": stopped_by.verdict.reason,
            })
            return

        messages.append({"role": "assistant", "content": response.content})
        messages.append({"role": "user", "content": results})
