"""Rate limiting for drag-time recompute and write-through."""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Any


class Throttle:
    """Run a callable at most once per interval, keeping the latest skipped call.

    The clock is injectable so tests can drive time explicitly. A skipped call
    is remembered (latest wins) and can be run with flush().
    """

    def __init__(self, interval_ms: float, clock: Callable[[], float] = time.monotonic) -> None:
        self.interval = interval_ms / 1000
        self.clock = clock
        self._last: float | None = None
        self._pending: tuple[Callable[..., Any], tuple[Any, ...]] | None = None
        self.skipped = 0

    def ready(self) -> bool:
        """True (and start a new interval) when the interval has elapsed."""
        now = self.clock()
        if self._last is None or now - self._last >= self.interval:
            self._last = now
            return True
        return False

    def call(self, func: Callable[..., Any], *args: Any) -> bool:
        """Run func now if allowed, else keep it as the pending call.

        Returns:
            True if func ran
        """
        if self.ready():
            self._pending = None
            func(*args)
            return True
        self._pending = (func, args)
        self.skipped += 1
        return False

    @property
    def has_pending(self) -> bool:
        return self._pending is not None

    def flush(self) -> bool:
        """Run the pending call, if any, regardless of the interval."""
        if self._pending is None:
            return False
        func, args = self._pending
        self._pending = None
        self._last = self.clock()
        func(*args)
        return True

    def reset(self) -> None:
        self._last = None
        self._pending = None
        self.skipped = 0
