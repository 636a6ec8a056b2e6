"""
console_hooks.py - Default lifecycle hooks: print what the session is doing.

All of them are observers and always continue.
"""

import json
from typing import Any

from fetch_tool import FETCH_TOOL_NAME
from hook_pipeline import (
    CONTINUE,
    HookDecision,
    HookPhase,
    HookPipeline,
    PostToolCallInput,
    PreToolCallInput,
    SessionEndInput,
    SessionStartInput,
)


def is_fetch_tool(tool_name: str) -> bool:
    """The runtime qualifies MCP tools as mcp__<server>__<tool>; match either form."""
    return tool_name == FETCH_TOOL_NAME or tool_name.endswith(f"__{FETCH_TOOL_NAME}")


def format_tool_input(tool_input: Any) -> str:
    return json.dumps(tool_input, ensure_ascii=False, indent=2, default=str)


def announce_session_start(hook_input: SessionStartInput) -> HookDecision:
    print(f"Briefing session started, id: {hook_input.session_id}")
    return CONTINUE


def log_tool_call(hook_input: PreToolCallInput) -> HookDecision:
    print(f"\n> {hook_input.tool_name}")
    if is_fetch_tool(hook_input.tool_name):
        print(f"  fetching: {hook_input.tool_input.get('url')}")
    else:
        print(f"  input: {format_tool_input(hook_input.tool_input)}")
    return CONTINUE


def log_tool_result(hook_input: PostToolCallInput) -> HookDecision:
    print(f"  {hook_input.tool_name} done")
    if is_fetch_tool(hook_input.tool_name):
        print(f"  fetched: {hook_input.tool_input.get('url')}")
    return CONTINUE


def announce_session_end(hook_input: SessionEndInput) -> HookDecision:
    print("Briefing session ended.")
    return CONTINUE


def default_pipeline() -> HookPipeline:
    pipeline = HookPipeline()
    pipeline.add(HookPhase.SESSION_START, "announce_session_start", announce_session_start)
    pipeline.add(HookPhase.PRE_TOOL_CALL, "log_tool_call", log_tool_call)
    pipeline.add(HookPhase.POST_TOOL_CALL, "log_tool_result", log_tool_result)
    pipeline.add(HookPhase.SESSION_END, "announce_session_end", announce_session_end)
    return pipeline
