"""
fetch_tool.py - jinaReader: fetch a web page and return it as markdown text.

The one custom tool the briefing agent may call. It sits behind the MCP
tool-call contract:

    input:   {"url": "<page url>"}
    output:  {"content": [{"type": "text", "text": "..."}], "isError": bool}

Every failure (transport error, timeout, non-2xx status, bad input) is
converted into an error result. Nothing raises past `FetchTool.fetch()`.
"""

import sys
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx
from claude_agent_sdk import create_sdk_mcp_server, tool


FETCH_TOOL_NAME = "jinaReader"
FETCH_TOOL_DESCRIPTION = "Fetch a web page and return its main content as markdown"
FETCH_SERVER_NAME = "news-briefing-server"
FETCH_SERVER_VERSION = "1.0.0"

JINA_READER_URL = "https://r.jina.ai/"
FAILURE_PREFIX = "Unable to fetch page content: "
TRUNCATION_MARKER = "...(content truncated)"

DEFAULT_TIMEOUT = 30.0


@dataclass
class TextContent:
    """One content item of a tool result. Only text is produced."""
    value: str
    kind: str = "text"

    def to_dict(self) -> dict:
        return {"type": self.kind, "text": self.value}


@dataclass
class ToolResult:
    """Structured outcome of a tool call."""
    content: list[TextContent] = field(default_factory=list)
    is_error: bool = False

    @classmethod
    def ok(cls, text: str) -> "ToolResult":
        return cls(content=[TextContent(text)], is_error=False)

    @classmethod
    def error(cls, message: str) -> "ToolResult":
        return cls(content=[TextContent(message)], is_error=True)

    @property
    def text(self) -> str:
        return "".join(c.value for c in self.content if c.kind == "text")

    def to_dict(self) -> dict:
        return {
            "content": [c.to_dict() for c in self.content],
            "isError": self.is_error,
        }


def _log(message: str) -> None:
    # A closed or broken stderr must not change the tool result.
    try:
        print(message, file=sys.stderr)
    except (OSError, ValueError):
        pass


def truncate_content(content: str, max_chars: Optional[int]) -> str:
    if not max_chars or len(content) <= max_chars:
        return content
    return content[:max_chars] + TRUNCATION_MARKER


class FetchTool:
    """
    Fetch-and-convert adapter over the Jina reader endpoint.

    The reader is asked for markdown via the `X-Return-Format` header.
    A client may be injected (tests pass one built on httpx.MockTransport);
    otherwise a short-lived AsyncClient is opened per call.
    """

    name = FETCH_TOOL_NAME
    description = FETCH_TOOL_DESCRIPTION
    input_schema = {
        "type": "object",
        "properties": {
            "url": {"type": "string", "description": "URL of the page to fetch"},
        },
        "required": ["url"],
    }

    def __init__(
        self,
        reader_base: str = JINA_READER_URL,
        timeout: float = DEFAULT_TIMEOUT,
        max_chars: Optional[int] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.reader_base = reader_base
        self.timeout = timeout
        self.max_chars = max_chars
        self._client = client

    def reader_url(self, url: str) -> str:
        return f"{self.reader_base}{url}"

    async def fetch(self, url: Any) -> ToolResult:
        if not isinstance(url, str) or not url.strip():
            return ToolResult.error(f"{FAILURE_PREFIX}missing or empty url")

        _log(f"[{self.name}] fetching {url}")
        try:
            response = await self._get(self.reader_url(url))
            if not response.is_success:
                raise RuntimeError(f"Failed to fetch {url}: {response.reason_phrase}")
            content = response.text
        except httpx.TimeoutException:
            _log(f"[{self.name}] timed out after {self.timeout}s: {url}")
            return ToolResult.error(f"{FAILURE_PREFIX}timed out after {self.timeout}s fetching {url}")
        except (httpx.HTTPError, httpx.InvalidURL, RuntimeError) as e:
            _log(f"[{self.name}] error fetching {url}: {e}")
            return ToolResult.error(f"{FAILURE_PREFIX}{e}")

        _log(f"[{self.name}] fetched {url} ({len(content)} chars)")
        return ToolResult.ok(truncate_content(content, self.max_chars))

    async def _get(self, reader_url: str) -> httpx.Response:
        headers = {"X-Return-Format": "markdown"}
        if self._client is not None:
            return await self._client.get(
                reader_url, headers=headers, timeout=self.timeout, follow_redirects=True
            )
        async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
            return await client.get(reader_url, headers=headers)

    async def __call__(self, args: dict) -> ToolResult:
        return await self.fetch((args or {}).get("url"))

    def as_sdk_server(self):
        """Register this tool on an in-process MCP server for the agent runtime."""

        @tool(self.name, self.description, {"url": str})
        async def jina_reader(args: dict[str, Any]) -> dict[str, Any]:
            result = await self(args)
            payload = result.to_dict()
            payload["is_error"] = result.is_error
            return payload

        return create_sdk_mcp_server(
            name=FETCH_SERVER_NAME,
            version=FETCH_SERVER_VERSION,
            tools=[jina_reader],
        )
