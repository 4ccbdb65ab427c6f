"""Sliding-window accounting of remote API calls."""
from __future__ import annotations

import time
from collections import deque
from typing import Deque, Iterable, List, Optional

MAX_CALLS = 15
WINDOW_MS = 15 * 60 * 1000


def now_ms() -> int:
    """Current wall clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class CallWindowTracker:
    """Decides whether another call fits in the rolling quota window.

    A timestamp ``t`` counts against the quota at instant ``now`` while
    ``now - window_ms < t``. Timestamps that left the window are evicted when
    a new call is registered, so memory stays bounded by the quota.
    """

    def __init__(
        self,
        calls: Iterable[int] = (),
        *,
        max_calls: int = MAX_CALLS,
        window_ms: int = WINDOW_MS,
    ) -> None:
        self.max_calls = max_calls
        self.window_ms = window_ms
        self._calls: Deque[int] = deque(int(ts) for ts in calls)

    def __len__(self) -> int:
        return len(self._calls)

    def _window_start(self, now: int) -> int:
        return now - self.window_ms

    def register_call(self, now: Optional[int] = None) -> None:
        """Record a call made at ``now`` and evict calls that aged out."""
        now = now_ms() if now is None else now
        self._calls.append(now)
        start = self._window_start(now)
        while self._calls and self._calls[0] <= start:
            self._calls.popleft()

    def calls_in_window(self, now: Optional[int] = None) -> int:
        now = now_ms() if now is None else now
        start = self._window_start(now)
        return sum(1 for ts in self._calls if ts > start)

    def can_make_call(self, now: Optional[int] = None) -> bool:
        """Return True when fewer than ``max_calls`` calls are in the window."""
        return self.calls_in_window(now) < self.max_calls

    def next_available_at(self, now: Optional[int] = None) -> int:
        """Instant at which the oldest in-window call leaves the window.

        The search for the oldest call starts from ``now`` itself, so an empty
        window reports ``now + window_ms`` even though a call is allowed.
        Callers should check :meth:`can_make_call` first.
        """
        now = now_ms() if now is None else now
        start = self._window_start(now)
        oldest = now
        for ts in self._calls:
            if start < ts < oldest:
                oldest = ts
        return oldest + self.window_ms

    def wait_seconds(self, now: Optional[int] = None) -> int:
        """Seconds until a call is allowed, rounded up; 0 only when one is allowed now."""
        now = now_ms() if now is None else now
        if self.can_make_call(now):
            return 0
        remaining = max(self.next_available_at(now) - now, 1)
        return -(-remaining // 1000)

    def timestamps(self) -> List[int]:
        return list(self._calls)
