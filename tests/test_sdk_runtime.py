"""
Tests for the agent SDK session stream.
"""
import asyncio
import os
import sys
from unittest.mock import patch

from claude_agent_sdk import SystemMessage, UserMessage

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import sdk_runtime
from session_events import SystemInit


def make_query(closed):
    async def fake_query(prompt, options):
        try:
            yield UserMessage(content="echo")
            yield SystemMessage(subtype="init", data={"session_id": "s1"})
            yield SystemMessage(subtype="init", data={"session_id": "s2"})
        finally:
            closed.append(True)
    return fake_query


def test_stream_skips_messages_outside_event_model():
    closed = []

    async def collect():
        return [e async for e in sdk_runtime.stream_session("brief me", options=None)]

    with patch.object(sdk_runtime, "query", make_query(closed)):
        events = asyncio.run(collect())

    assert events == [SystemInit(session_id="s1"), SystemInit(session_id="s2")]
    assert closed == [True]


def test_closing_stream_early_closes_runtime_query():
    closed = []

    async def first_then_close():
        stream = sdk_runtime.stream_session("brief me", options=None)
        first = await stream.__anext__()
        await stream.aclose()
        return first, list(closed)

    with patch.object(sdk_runtime, "query", make_query(closed)):
        first, closed_at_aclose = asyncio.run(first_then_close())

    assert first == SystemInit(session_id="s1")
    assert closed_at_aclose == [True]


if __name__ == "__main__":
    tests = [v for k, v in sorted(globals().items()) if k.startswith("test_")]
    for test_fn in tests:
        test_fn()
        print(f"PASS: {test_fn.__name__}")
