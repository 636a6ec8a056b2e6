"""
content_blocks.py - Tracks the currently open content block of a turn.

    Idle --content_block_start(kind)--> Open(kind)
    Open(kind) --content_block_delta--> Open(kind)   (text/thinking -> sink)
    Open(kind) --content_block_stop--> Idle

Deltas and stops that arrive while Idle are ignored: the upstream stream
can repeat or drop events and that must never crash the consumer.
"""

from typing import Optional, Protocol

from session_events import BlockKind


class OutputSink(Protocol):
    def write(self, text: str) -> object: ...


class ContentBlockTracker:
    """One per session. Writes every non-empty text/thinking fragment to the sink in order."""

    def __init__(self, sink: OutputSink):
        self.sink = sink
        self.kind: Optional[BlockKind] = None
        self.thinking: list[str] = []
        self.tool_name: Optional[str] = None

    @property
    def is_idle(self) -> bool:
        return self.kind is None

    @property
    def thinking_text(self) -> str:
        return "".join(self.thinking)

    def start(self, kind: BlockKind, tool_name: Optional[str] = None) -> None:
        # A start while a block is open implicitly closes the previous block.
        self.kind = kind
        self.tool_name = tool_name
        self.thinking = []

    def delta(self, text: Optional[str] = None, thinking: Optional[str] = None) -> bool:
        """Apply one delta. Returns False when it was dropped because no block is open."""
        if self.kind is None:
            return False
        if thinking and self.kind == BlockKind.THINKING:
            self.thinking.append(thinking)
        if text:
            self._write(text)
        if thinking:
            self._write(thinking)
        return True

    def stop(self) -> bool:
        if self.kind is None:
            return False
        self.reset()
        return True

    def reset(self) -> None:
        self.kind = None
        self.tool_name = None
        self.thinking = []

    def _write(self, text: str) -> None:
        self.sink.write(text)
        flush = getattr(self.sink, "flush", None)
        if flush is not None:
            flush()
