#!/usr/bin/env python3
"""
briefing_agent.py - News briefing agent: read a list of URLs, write a briefing.

The agent has exactly one tool, jinaReader, which fetches a page as
markdown. Everything it does is streamed back as session events:

    URLs ──> prompt ──> runtime ──> events ──> EventDispatcher ──> console
                          │
                          └── jinaReader calls, gated by the HookPipeline

Two runtimes produce those events:

    sdk     Claude Agent SDK (default). The SDK runs the turns and calls the
            tool; our pre/post tool hooks are plugged into it.
    direct  Anthropic Messages API. We run the turns and call the tool.

Configuration (.env.local, then the environment):
    ANTHROPIC_AUTH_TOKEN, ANTHROPIC_BASE_URL, ANTHROPIC_MODEL
    TARGET_DIR        working directory for the runtime (default ./test)
    DEBUG_LOG         "true" for debug output
    AGENT_RUNTIME     sdk | direct
    JINA_READER_URL, FETCH_TIMEOUT, FETCH_MAX_CHARS, MAX_TURNS

Usage:
    python briefing_agent.py https://example.com https://example.org
    python briefing_agent.py --runtime direct --debug https://example.com
"""

import argparse
import asyncio
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import anthropic
from dotenv import load_dotenv

import direct_runtime
import sdk_runtime
from console_hooks import default_pipeline
from content_blocks import OutputSink
from event_dispatcher import EventDispatcher, SessionContext, SessionReport
from fetch_tool import DEFAULT_TIMEOUT, JINA_READER_URL, FetchTool
from hook_pipeline import HookPipeline


# =============================================================================
# Configuration
# =============================================================================

DEFAULT_MODEL = "claude-sonnet-4-5-20250929"
RUNTIMES = ("sdk", "direct")

EXAMPLE_URLS = [
    "https://codenow.wiki",
    "https://www.producthunt.com/products/instruct-2",
]


@dataclass
class Settings:
    model: Optional[str] = None
    base_url: Optional[str] = None
    auth_token: Optional[str] = None
    target_dir: Path = field(default_factory=lambda: Path.cwd() / "test")
    debug: bool = False
    runtime: str = "sdk"
    reader_url: str = JINA_READER_URL
    fetch_timeout: float = DEFAULT_TIMEOUT
    fetch_max_chars: Optional[int] = None
    max_turns: int = direct_runtime.MAX_TURNS
    env: dict = field(default_factory=dict)


def load_settings(env_file: Optional[Path] = None) -> Settings:
    """Load .env.local over the process environment and read the settings from it."""
    env_file = env_file or Path.cwd() / ".env.local"
    if env_file.exists():
        load_dotenv(env_file, override=True)

    runtime = os.getenv("AGENT_RUNTIME", "sdk").lower()
    if runtime not in RUNTIMES:
        raise ValueError(f"AGENT_RUNTIME must be one of {RUNTIMES}, got {runtime!r}")

    max_chars = os.getenv("FETCH_MAX_CHARS")
    target_dir = os.getenv("TARGET_DIR")

    return Settings(
        model=os.getenv("ANTHROPIC_MODEL") or os.getenv("MODEL_ID"),
        base_url=os.getenv("ANTHROPIC_BASE_URL"),
        auth_token=os.getenv("ANTHROPIC_AUTH_TOKEN"),
        target_dir=Path(target_dir) if target_dir else Path.cwd() / "test",
        debug=os.getenv("DEBUG_LOG", "false").lower() == "true",
        runtime=runtime,
        reader_url=os.getenv("JINA_READER_URL", JINA_READER_URL),
        fetch_timeout=float(os.getenv("FETCH_TIMEOUT", DEFAULT_TIMEOUT)),
        fetch_max_chars=int(max_chars) if max_chars else None,
        max_turns=int(os.getenv("MAX_TURNS", direct_runtime.MAX_TURNS)),
        env=dict(os.environ),
    )


# =============================================================================
# Prompts
# =============================================================================

SYSTEM_PROMPT = """You are an assistant that merges many sources into a short, professional briefing.
The user gives you a list of URLs. Analyse them quickly and write a clearly structured briefing
of at most 800 words.

Workflow:
1. Use the jinaReader tool to fetch every URL. Group the sources by topic
   (policy, market, technology, expert opinion, ...) and note how authoritative
   and recent each one is.
2. For each source extract the core claim, the key data behind it, any novel
   angle, and possible bias or limits.
3. Write the briefing:
   - Overview (about 100 words): scope, time span, main trend.
   - 3-4 topic sections (550-600 words total): merged information, key points,
     short source attribution.
   - Trends and outlook (100-150 words).

Style:
- Merge related information, show differing views side by side with their sources.
- Cite the source and date of every figure. Separate facts from analysis.
- Plain, concise briefing language, most important information first.
- Blank line between paragraphs. Stay within 800 words.

Before finishing, check that every important source is covered, that nothing is
repeated or missing, and that key facts are attributed."""


def build_user_prompt(urls: list[str]) -> str:
    listing = "\n".join(f"{i}. {url}" for i, url in enumerate(urls, 1))
    return (
        "Please write a briefing from the following URLs:\n\n"
        f"{listing}\n\n"
        "Use the jinaReader tool to read each URL, analyse the content, and write a clearly "
        "structured briefing of at most 800 words as described in the system prompt."
    )


# =============================================================================
# Session
# =============================================================================

def build_fetch_tool(settings: Settings) -> FetchTool:
    return FetchTool(
        reader_base=settings.reader_url,
        timeout=settings.fetch_timeout,
        max_chars=settings.fetch_max_chars,
    )


def open_event_stream(prompt: str, settings: Settings, fetch_tool: FetchTool, pipeline: HookPipeline):
    cwd = str(settings.target_dir)
    if settings.runtime == "direct":
        client = anthropic.AsyncAnthropic(base_url=settings.base_url, auth_token=settings.auth_token)
        return direct_runtime.stream_session(
            prompt,
            SYSTEM_PROMPT,
            {fetch_tool.name: fetch_tool},
            pipeline,
            client,
            model=settings.model or DEFAULT_MODEL,
            cwd=cwd,
            max_turns=settings.max_turns,
        )

    options = sdk_runtime.build_options(
        SYSTEM_PROMPT,
        fetch_tool,
        pipeline,
        cwd=cwd,
        env=settings.env,
        model=settings.model,
        max_turns=settings.max_turns,
    )
    return sdk_runtime.stream_session(prompt, options)


async def create_news_briefing(
    urls: list[str],
    settings: Settings,
    pipeline: Optional[HookPipeline] = None,
    sink: Optional[OutputSink] = None,
) -> Optional[SessionReport]:
    pipeline = pipeline or default_pipeline()
    settings.target_dir.mkdir(parents=True, exist_ok=True)

    events = open_event_stream(build_user_prompt(urls), settings, build_fetch_tool(settings), pipeline)
    context = SessionContext(pipeline, sink=sink, cwd=str(settings.target_dir), debug=settings.debug)
    return await EventDispatcher(context).run(events)


# =============================================================================
# CLI
# =============================================================================

def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Write a news briefing from a list of URLs")
    parser.add_argument("urls", nargs="*", help="URLs to read (default: built-in examples)")
    parser.add_argument("--debug", action="store_true", help="Print debug output (same as DEBUG_LOG=true)")
    parser.add_argument("--runtime", choices=RUNTIMES, help="Agent runtime (default: AGENT_RUNTIME or sdk)")
    parser.add_argument("--list-hooks", action="store_true", help="List the registered hooks and exit")
    args = parser.parse_args(argv)

    pipeline = default_pipeline()
    if args.list_hooks:
        print(pipeline.list_hooks())
        return 0

    settings = load_settings()
    if args.debug:
        settings.debug = True
    if args.runtime:
        settings.runtime = args.runtime

    urls = args.urls or EXAMPLE_URLS
    print("Creating news briefing...")
    print("URLs:")
    for i, url in enumerate(urls, 1):
        print(f"  {i}. {url}")
    print()

    try:
        report = asyncio.run(create_news_briefing(urls, settings, pipeline=pipeline))
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0 if report is not None and report.success else 1


if __name__ == "__main__":
    sys.exit(main())
