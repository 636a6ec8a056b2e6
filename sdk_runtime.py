"""
sdk_runtime.py - Run a session on the Claude Agent SDK runtime.

The runtime plans turns and makes the tool calls itself. We hand it:
    - the system prompt, working directory and env snapshot
    - the fetch tool, on one in-process MCP server
    - a deny-list covering every built-in tool, so only the fetch tool is reachable
    - the pipeline's pre/post tool hooks
and read back its messages as SessionEvents.
"""

from contextlib import aclosing
from typing import AsyncIterator, Optional

from claude_agent_sdk import ClaudeAgentOptions, query

from fetch_tool import FETCH_SERVER_NAME, FetchTool
from hook_pipeline import HookPipeline
from session_events import SessionEvent, from_sdk_message

# Built-in runtime tools the briefing agent must not use.
BUILTIN_TOOLS = [
    "WebFetch", "WebSearch", "Task", "Bash", "Glob", "Grep", "ExitPlanMode",
    "Read", "Edit", "Write", "NotebookEdit", "TodoWrite", "BashOutput",
    "KillShell", "SlashCommand",
]


def qualified_tool_name(tool_name: str, server_name: str = FETCH_SERVER_NAME) -> str:
    return f"mcp__{server_name}__{tool_name}"


def build_options(
    system_prompt: str,
    fetch_tool: FetchTool,
    pipeline: HookPipeline,
    cwd: Optional[str] = None,
    env: Optional[dict] = None,
    model: Optional[str] = None,
    max_turns: Optional[int] = None,
) -> ClaudeAgentOptions:
    return ClaudeAgentOptions(
        system_prompt=system_prompt,
        cwd=cwd,
        env=env or {},
        model=model,
        max_turns=max_turns,
        permission_mode="bypassPermissions",
        include_partial_messages=True,
        mcp_servers={FETCH_SERVER_NAME: fetch_tool.as_sdk_server()},
        disallowed_tools=list(BUILTIN_TOOLS),
        hooks=pipeline.to_sdk_hooks(),
    )


async def stream_session(prompt: str, options: ClaudeAgentOptions) -> AsyncIterator[SessionEvent]:
    """Yield the session's events; runtime messages outside the event model are skipped."""
    async with aclosing(query(prompt=prompt, options=options)) as messages:
        async for message in messages:
            event = from_sdk_message(message)
            if event is not None:
                yield event
