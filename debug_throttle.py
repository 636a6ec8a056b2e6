"""
debug_throttle.py - Rate-limited liveness logging for content_block_delta bursts.

A long answer streams thousands of deltas. Logging each one drowns the
output, so in debug mode we log every BATCH_SIZE-th delta, or when
INTERVAL_SECONDS have passed since the last line, whichever comes first.
"""

import time
from typing import Callable

BATCH_SIZE = 100
INTERVAL_SECONDS = 5.0


class DebugThrottle:
    def __init__(
        self,
        enabled: bool = False,
        emit: Callable[[str], None] = print,
        clock: Callable[[], float] = time.monotonic,
        batch_size: int = BATCH_SIZE,
        interval: float = INTERVAL_SECONDS,
    ):
        self.enabled = enabled
        self.emit = emit
        self.clock = clock
        self.batch_size = batch_size
        self.interval = interval
        self.count = 0
        self.last_log = 0.0
        self.emitted = 0
        if enabled:
            self.reset()

    def reset(self) -> None:
        """Called at session start."""
        self.count = 0
        self.emitted = 0
        self.last_log = self.clock() if self.enabled else 0.0

    def on_delta(self) -> bool:
        """Count one delta event. Returns True when a diagnostic line was emitted."""
        if not self.enabled:
            return False

        self.count += 1
        now = self.clock()
        if self.count % self.batch_size == 0:
            reason = "batch"
        elif now - self.last_log > self.interval:
            reason = "interval"
        else:
            return False

        self.last_log = now
        self.emitted += 1
        self.emit(f"[debug] {self.count} delta events received ({reason})")
        return True
