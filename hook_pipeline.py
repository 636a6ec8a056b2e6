"""
hook_pipeline.py - Ordered lifecycle hooks around the session and every tool call.

    +--------------------------------------------------------------+
    |  session_start  ─── once, when the runtime reports init       |
    |        |                                                      |
    |        v                                                      |
    |  ┌─────────────┐                                              |
    |  │  Tool Call  │── pre_tool_call ─── log, validate, DENY      |
    |  │  [execute]  │                                              |
    |  │             │── post_tool_call ── log, stop session        |
    |  └──────┬──────┘                                              |
    |        v                                                      |
    |  session_end ──── once, when the event stream is done         |
    +--------------------------------------------------------------+

Execution model:
    - Hooks of one phase run strictly in registration order, one at a time.
    - Each returns a HookDecision. The first deny ends the phase and is its
      verdict; if every hook continues, the verdict is continue.
    - A deny at pre_tool_call means the tool is NOT executed.
    - A hook that raises counts as continue. The fault is kept as a
      warning.

Handlers may be plain functions or coroutines, and may return a
HookDecision, a contract dict ({"continueExecution": bool, "reason": str}),
or None for continue.
"""

import fnmatch
import inspect
import sys
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Union

from claude_agent_sdk import HookMatcher

from fetch_tool import ToolResult


class HookPhase(Enum):
    """
    Points in the session lifecycle where hooks run.

    SESSION_START:   Once, with the runtime-assigned session id
    PRE_TOOL_CALL:   Before each tool execution (CAN BLOCK the call)
    POST_TOOL_CALL:  After each tool execution (CAN STOP the session)
    SESSION_END:     Once, after the last event
    """
    SESSION_START = "session_start"
    PRE_TOOL_CALL = "pre_tool_call"
    POST_TOOL_CALL = "post_tool_call"
    SESSION_END = "session_end"


TOOL_PHASES = (HookPhase.PRE_TOOL_CALL, HookPhase.POST_TOOL_CALL)


@dataclass(frozen=True)
class HookDecision:
    continue_execution: bool = True
    reason: Optional[str] = None

    @classmethod
    def deny(cls, reason: Optional[str] = None) -> "HookDecision":
        return cls(continue_execution=False, reason=reason)

    def to_dict(self) -> dict:
        out: dict = {"continueExecution": self.continue_execution}
        if self.reason:
            out["reason"] = self.reason
        return out


CONTINUE = HookDecision()


# =============================================================================
# Phase inputs
# =============================================================================

@dataclass(frozen=True)
class SessionStartInput:
    session_id: Optional[str]


@dataclass(frozen=True)
class PreToolCallInput:
    session_id: Optional[str]
    tool_name: str
    tool_input: dict


@dataclass(frozen=True)
class PostToolCallInput:
    session_id: Optional[str]
    tool_name: str
    tool_input: dict
    tool_output: Any = None


@dataclass(frozen=True)
class SessionEndInput:
    session_id: Optional[str]


HookInput = Union[SessionStartInput, PreToolCallInput, PostToolCallInput, SessionEndInput]

HookHandler = Callable[[Any], Union[HookDecision, dict, None, Awaitable[Any]]]


@dataclass
class Hook:
    """
    A named handler registered on one phase.

    Fields:
        name: Shown in warnings and in list_hooks()
        handler: Callable receiving the phase input
        tool: Tool name filter (fnmatch pattern, * = all), only used for tool phases
    """
    name: str
    handler: HookHandler
    tool: str = "*"

    def applies_to(self, tool_name: Optional[str]) -> bool:
        if self.tool == "*" or tool_name is None:
            return True
        return fnmatch.fnmatchcase(tool_name, self.tool)


def _to_decision(value: Any) -> HookDecision:
    if value is None:
        return CONTINUE
    if isinstance(value, HookDecision):
        return value
    if isinstance(value, dict):
        for key in ("continueExecution", "continue", "continue_"):
            if key in value:
                cont = value[key]
                if not isinstance(cont, bool):
                    raise TypeError(f"hook returned {key}={cont!r}, expected a bool")
                break
        else:
            cont = True
        reason = value.get("reason") or value.get("stopReason")
        return HookDecision(continue_execution=cont, reason=reason)
    raise TypeError(f"hook returned {type(value).__name__}, expected HookDecision, dict or None")


class HookPipeline:
    """Four phases, each an ordered list of named hooks."""

    def __init__(self):
        self.hooks: dict[HookPhase, list[Hook]] = {phase: [] for phase in HookPhase}
        self.warnings: list[str] = []

    def register(self, phase: HookPhase, hook: Hook) -> Hook:
        self.hooks[phase].append(hook)
        return hook

    def add(self, phase: HookPhase, name: str, handler: HookHandler, tool: str = "*") -> Hook:
        return self.register(phase, Hook(name=name, handler=handler, tool=tool))

    def has_hooks(self, phase: HookPhase) -> bool:
        return bool(self.hooks.get(phase))

    def matching(self, phase: HookPhase, tool_name: Optional[str] = None) -> list[Hook]:
        hooks = self.hooks.get(phase, [])
        if phase not in TOOL_PHASES:
            return list(hooks)
        return [h for h in hooks if h.applies_to(tool_name)]

    async def run(self, phase: HookPhase, hook_input: HookInput) -> HookDecision:
        """Fold the phase's hooks into one verdict, stopping at the first deny."""
        tool_name = getattr(hook_input, "tool_name", None)
        verdict = CONTINUE
        for hook in self.matching(phase, tool_name):
            if not verdict.continue_execution:
                break
            verdict = await self._invoke(phase, hook, hook_input)
        return verdict

    async def _invoke(self, phase: HookPhase, hook: Hook, hook_input: HookInput) -> HookDecision:
        try:
            result = hook.handler(hook_input)
            if inspect.isawaitable(result):
                result = await result
            return _to_decision(result)
        except Exception as e:
            self._warn(f"hook {hook.name!r} ({phase.value}) failed: {e!r}; continuing")
            return CONTINUE

    def _warn(self, message: str) -> None:
        self.warnings.append(message)
        try:
            print(f"Warning: {message}", file=sys.stderr)
        except (OSError, ValueError):
            pass

    def list_hooks(self) -> str:
        """List all registered hooks."""
        if not any(self.hooks.values()):
            return "No hooks registered."

        lines = ["Registered hooks:"]
        for phase, hooks in self.hooks.items():
            if hooks:
                lines.append(f"\n  {phase.value}:")
                for h in hooks:
                    tool_filter = f" [tool={h.tool}]" if h.tool != "*" else ""
                    lines.append(f"    {h.name}{tool_filter}")
        return "\n".join(lines)

    # -------------------------------------------------------------------------
    # Agent runtime bridge
    # -------------------------------------------------------------------------

    def to_sdk_hooks(self) -> dict[str, list[HookMatcher]]:
        """
        Expose the tool phases as claude_agent_sdk hook callbacks.

        The runtime calls PreToolUse / PostToolUse around every tool call it
        makes; our fold decides, and the verdict is translated back into the
        runtime's hook output. Session start/end are driven by the dispatcher.
        """
        sdk_hooks: dict[str, list[HookMatcher]] = {}
        for phase, event_name in ((HookPhase.PRE_TOOL_CALL, "PreToolUse"),
                                  (HookPhase.POST_TOOL_CALL, "PostToolUse")):
            if self.has_hooks(phase):
                sdk_hooks[event_name] = [HookMatcher(matcher=None, hooks=[self._sdk_callback(phase)])]
        return sdk_hooks

    def _sdk_callback(self, phase: HookPhase):
        async def callback(input_data: dict, tool_use_id: Optional[str], context: Any) -> dict:
            if phase == HookPhase.PRE_TOOL_CALL:
                hook_input = PreToolCallInput(
                    session_id=input_data.get("session_id"),
                    tool_name=input_data.get("tool_name", ""),
                    tool_input=input_data.get("tool_input") or {},
                )
            else:
                hook_input = PostToolCallInput(
                    session_id=input_data.get("session_id"),
                    tool_name=input_data.get("tool_name", ""),
                    tool_input=input_data.get("tool_input") or {},
                    tool_output=input_data.get("tool_response"),
                )

            decision = await self.run(phase, hook_input)
            if decision.continue_execution:
                return {}

            reason = decision.reason or f"Denied by {phase.value} hook"
            if phase == HookPhase.PRE_TOOL_CALL:
                return {
                    "hookSpecificOutput": {
                        "hookEventName": "PreToolUse",
                        "permissionDecision": "deny",
                        "permissionDecisionReason": reason,
                    }
                }
            return {"continue_": False, "stopReason": reason}

        return callback


# =============================================================================
# Tool gate
# =============================================================================

@dataclass
class ToolInvocation:
    """One attempted tool call and what came of it."""
    tool_name: str
    tool_input: dict
    outcome: Optional[ToolResult] = None
    executed: bool = False
    verdict: HookDecision = field(default=CONTINUE)

    @property
    def stop_session(self) -> bool:
        """True when a post_tool_call hook asked to end the session."""
        return self.executed and not self.verdict.continue_execution


async def execute_tool_with_hooks(
    pipeline: HookPipeline,
    tools: dict,
    tool_name: str,
    tool_input: dict,
    session_id: Optional[str] = None,
) -> ToolInvocation:
    """
    Execute a tool with pre/post hook support.

    1. Run pre_tool_call hooks (a deny skips the tool)
    2. Execute the tool
    3. Run post_tool_call hooks (a deny asks the runtime to stop)
    """
    invocation = ToolInvocation(tool_name=tool_name, tool_input=tool_input)

    # PRE hooks
    verdict = await pipeline.run(
        HookPhase.PRE_TOOL_CALL,
        PreToolCallInput(session_id=session_id, tool_name=tool_name, tool_input=tool_input),
    )
    if not verdict.continue_execution:
        invocation.verdict = verdict
        invocation.outcome = ToolResult.error(
            f"Blocked by pre-tool-call hook: {verdict.reason or tool_name}"
        )
        return invocation

    # Execute tool
    tool = tools.get(tool_name)
    if tool is None:
        invocation.outcome = ToolResult.error(f"Unknown tool: {tool_name}")
    else:
        try:
            invocation.outcome = await tool(tool_input)
        except Exception as e:
            invocation.outcome = ToolResult.error(f"Error: {e}")
    invocation.executed = True

    # POST hooks
    invocation.verdict = await pipeline.run(
        HookPhase.POST_TOOL_CALL,
        PostToolCallInput(
            session_id=session_id,
            tool_name=tool_name,
            tool_input=tool_input,
            tool_output=invocation.outcome.to_dict(),
        ),
    )
    return invocation
