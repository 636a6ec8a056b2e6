"""
Tests for configuration loading, prompts, console hooks and the CLI entry point.
"""
import asyncio
import os
import sys
import tempfile
from pathlib import Path
from unittest.mock import patch

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import briefing_agent
from briefing_agent import Settings, build_fetch_tool, build_user_prompt, load_settings, main
from console_hooks import default_pipeline, is_fetch_tool, log_tool_call
from hook_pipeline import HookPhase, PreToolCallInput
from sdk_runtime import BUILTIN_TOOLS, build_options, qualified_tool_name


def test_load_settings_reads_env_file():
    with tempfile.TemporaryDirectory() as tmpdir:
        env_file = Path(tmpdir) / ".env.local"
        env_file.write_text(
            "ANTHROPIC_AUTH_TOKEN=sk-test\n"
            "ANTHROPIC_BASE_URL=http://proxy.local\n"
            "ANTHROPIC_MODEL=claude-test\n"
            f"TARGET_DIR={tmpdir}/out\n"
            "DEBUG_LOG=true\n"
            "AGENT_RUNTIME=direct\n"
            "FETCH_TIMEOUT=12.5\n"
            "FETCH_MAX_CHARS=5000\n"
            "MAX_TURNS=7\n"
        )
        with patch.dict(os.environ, {}, clear=True):
            settings = load_settings(env_file)

    assert settings.auth_token == "sk-test"
    assert settings.base_url == "http://proxy.local"
    assert settings.model == "claude-test"
    assert settings.target_dir == Path(tmpdir) / "out"
    assert settings.debug is True
    assert settings.runtime == "direct"
    assert settings.fetch_timeout == 12.5
    assert settings.fetch_max_chars == 5000
    assert settings.max_turns == 7
    assert settings.env["ANTHROPIC_AUTH_TOKEN"] == "sk-test"


def test_load_settings_defaults():
    with patch.dict(os.environ, {}, clear=True):
        settings = load_settings(Path("/nonexistent/.env.local"))

    assert settings.runtime == "sdk"
    assert settings.debug is False
    assert settings.model is None
    assert settings.target_dir.name == "test"
    assert settings.fetch_max_chars is None


def test_env_file_overrides_environment():
    with tempfile.TemporaryDirectory() as tmpdir:
        env_file = Path(tmpdir) / ".env.local"
        env_file.write_text("ANTHROPIC_MODEL=from-file\n")
        with patch.dict(os.environ, {"ANTHROPIC_MODEL": "from-env"}, clear=True):
            settings = load_settings(env_file)
    assert settings.model == "from-file"


def test_model_id_fallback():
    with patch.dict(os.environ, {"MODEL_ID": "legacy-model"}, clear=True):
        settings = load_settings(Path("/nonexistent/.env.local"))
    assert settings.model == "legacy-model"


def test_invalid_runtime_rejected():
    with patch.dict(os.environ, {"AGENT_RUNTIME": "local"}, clear=True):
        with pytest.raises(ValueError):
            load_settings(Path("/nonexistent/.env.local"))


def test_user_prompt_lists_urls_in_order():
    prompt = build_user_prompt(["https://a.example", "https://b.example"])
    assert "1. https://a.example\n2. https://b.example" in prompt
    assert "jinaReader" in prompt


def test_fetch_tool_built_from_settings():
    tool = build_fetch_tool(Settings(reader_url="http://reader.local/", fetch_timeout=3.0, fetch_max_chars=100))
    assert tool.reader_base == "http://reader.local/"
    assert tool.timeout == 3.0
    assert tool.max_chars == 100


# =============================================================================
# Console hooks
# =============================================================================

def test_fetch_tool_name_matching():
    assert is_fetch_tool("jinaReader")
    assert is_fetch_tool(qualified_tool_name("jinaReader"))
    assert not is_fetch_tool("WebFetch")


def test_default_pipeline_registers_every_phase():
    pipeline = default_pipeline()
    for phase in HookPhase:
        assert pipeline.has_hooks(phase), phase


def test_log_tool_call_prints_url(capsys):
    log_tool_call(PreToolCallInput(session_id="s1", tool_name="mcp__news-briefing-server__jinaReader",
                                   tool_input={"url": "https://example.com"}))
    out = capsys.readouterr().out
    assert "fetching: https://example.com" in out


# =============================================================================
# Agent SDK options
# =============================================================================

def test_sdk_options_expose_only_the_fetch_tool():
    pipeline = default_pipeline()
    options = build_options("system", build_fetch_tool(Settings()), pipeline, cwd="/tmp/test", model="m")

    assert options.permission_mode == "bypassPermissions"
    assert options.include_partial_messages is True
    assert list(options.mcp_servers) == ["news-briefing-server"]
    assert set(BUILTIN_TOOLS) <= set(options.disallowed_tools)
    assert set(options.hooks) == {"PreToolUse", "PostToolUse"}


# =============================================================================
# CLI
# =============================================================================

def test_list_hooks(capsys):
    assert main(["--list-hooks"]) == 0
    out = capsys.readouterr().out
    assert "log_tool_call" in out
    assert "session_end" in out


def test_main_exit_codes():
    async def succeed(urls, settings, pipeline=None, sink=None):
        assert urls == ["https://example.com"]
        assert settings.runtime == "direct"
        assert settings.debug is True
        return briefing_agent.SessionReport(success=True, subtype="success")

    async def fail(urls, settings, pipeline=None, sink=None):
        return briefing_agent.SessionReport(success=False, subtype="error_max_turns")

    async def explode(urls, settings, pipeline=None, sink=None):
        raise RuntimeError("no credentials")

    argv = ["--runtime", "direct", "--debug", "https://example.com"]
    with patch.dict(os.environ, {}, clear=True), \
            patch.object(briefing_agent, "load_settings", lambda: Settings()):
        with patch.object(briefing_agent, "create_news_briefing", succeed):
            assert main(argv) == 0
        with patch.object(briefing_agent, "create_news_briefing", fail):
            assert main(argv) == 1
        with patch.object(briefing_agent, "create_news_briefing", explode):
            assert main(argv) == 1


def test_create_news_briefing_runs_one_session():
    """Test: settings, prompt, runtime and dispatcher are wired together."""
    from session_events import ResultSuccess, SystemInit

    seen = {}

    async def fake_stream(prompt, settings, fetch_tool, pipeline):
        seen["prompt"] = prompt
        yield SystemInit(session_id="s1")
        yield ResultSuccess(duration_ms=1, total_cost_usd=0.0, num_turns=1)

    class Sink:
        def write(self, text):
            pass

    with tempfile.TemporaryDirectory() as tmpdir:
        settings = Settings(target_dir=Path(tmpdir) / "briefing")
        with patch.object(briefing_agent, "open_event_stream", fake_stream):
            report = asyncio.run(briefing_agent.create_news_briefing(
                ["https://example.com"], settings, sink=Sink()))
        assert settings.target_dir.is_dir()

    assert report.success
    assert "https://example.com" in seen["prompt"]
