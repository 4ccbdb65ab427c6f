"""The persisted unit of crawl progress for a single target."""
from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Tuple

import structlog

from relcrawl.errors import InvalidTargetIdentifier, PersistenceFailure
from relcrawl.orchestrator.cursor import START_CURSOR, CrawlCursor, Token
from relcrawl.orchestrator.window import MAX_CALLS, WINDOW_MS, CallWindowTracker, now_ms
from relcrawl.quality.similarity import format_wait

LOGGER = structlog.get_logger(__name__)

TARGET_PROMPT = "What is the ID of the user you wish to target?"
MAX_TARGET_ID = 2**63 - 1


def parse_target_id(value: object) -> int:
    """Coerce user input into a positive integer target identifier."""
    if isinstance(value, bool):
        raise InvalidTargetIdentifier(value)
    if isinstance(value, int):
        target = value
    else:
        try:
            target = int(str(value).strip())
        except ValueError as exc:
            raise InvalidTargetIdentifier(value) from exc
    if not 0 < target <= MAX_TARGET_ID:
        raise InvalidTargetIdentifier(value)
    return target


def prompt_target_id(
    read_line: Callable[[], Optional[str]],
    write: Callable[[str], None] = print,
) -> int:
    """Ask for a target identifier until a valid one is supplied.

    ``read_line`` returns ``None`` (or raises ``EOFError``) once input is
    exhausted, which aborts the prompt with :class:`InvalidTargetIdentifier`.
    """
    while True:
        write(TARGET_PROMPT)
        try:
            line = read_line()
        except EOFError:
            line = None
        if line is None:
            raise InvalidTargetIdentifier(None)
        try:
            return parse_target_id(line)
        except InvalidTargetIdentifier as exc:
            LOGGER.warning("invalid_target", value=line, error=str(exc))


@dataclass(frozen=True)
class CrawlSnapshot:
    """Point-in-time copy of a crawl state, safe to hand to other threads."""

    target_id: int
    subset: int
    cursor: Token
    calls: Tuple[int, ...]


class CrawlState:
    """Target identity, pagination cursor and call accounting for one crawl."""

    def __init__(self, target_id: int, cursor: CrawlCursor, window: CallWindowTracker) -> None:
        self._target_id = target_id
        self._cursor = cursor
        self._window = window
        self._lock = threading.RLock()

    @classmethod
    def create(
        cls,
        target_id: object,
        *,
        max_calls: int = MAX_CALLS,
        window_ms: int = WINDOW_MS,
    ) -> "CrawlState":
        """Start a fresh crawl at subset 1 with the start cursor and no calls."""
        target = parse_target_id(target_id)
        LOGGER.info("crawl_state_created", target_id=target)
        return cls(target, CrawlCursor(), CallWindowTracker(max_calls=max_calls, window_ms=window_ms))

    @classmethod
    def restore(
        cls,
        *,
        target_id: object,
        subset: int,
        cursor: Token = START_CURSOR,
        calls: Iterable[int] = (),
        max_calls: int = MAX_CALLS,
        window_ms: int = WINDOW_MS,
    ) -> "CrawlState":
        """Rebuild a state from persisted fields, rejecting broken invariants."""
        try:
            target = parse_target_id(target_id)
        except InvalidTargetIdentifier as exc:
            raise PersistenceFailure(str(exc)) from exc
        if subset < 1:
            raise PersistenceFailure(f"Subset must be at least 1, got {subset}")
        history = [int(ts) for ts in calls]
        if any(later < earlier for earlier, later in zip(history, history[1:])):
            raise PersistenceFailure("Call history is not in chronological order")
        return cls(
            target,
            CrawlCursor(subset=subset, cursor=cursor),
            CallWindowTracker(history, max_calls=max_calls, window_ms=window_ms),
        )

    @property
    def target_id(self) -> int:
        return self._target_id

    @property
    def subset(self) -> int:
        with self._lock:
            return self._cursor.subset

    @property
    def cursor(self) -> Token:
        with self._lock:
            return self._cursor.cursor

    def can_make_call(self, now: Optional[int] = None) -> bool:
        now = now_ms() if now is None else now
        with self._lock:
            allowed = self._window.can_make_call(now)
            LOGGER.info(
                "call_window",
                target_id=self._target_id,
                calls=self._window.calls_in_window(now),
                allowed=allowed,
                report=self._window_report(now),
            )
        return allowed

    def calls_in_window(self, now: Optional[int] = None) -> int:
        with self._lock:
            return self._window.calls_in_window(now)

    def register_call(self, now: Optional[int] = None) -> None:
        with self._lock:
            self._window.register_call(now)

    def next_available_at(self, now: Optional[int] = None) -> int:
        with self._lock:
            return self._window.next_available_at(now)

    def wait_seconds(self, now: Optional[int] = None) -> int:
        with self._lock:
            return self._window.wait_seconds(now)

    def advance_subset(self) -> int:
        with self._lock:
            subset = self._cursor.advance_subset()
        LOGGER.info("subset_advanced", target_id=self._target_id, subset=subset)
        return subset

    def set_cursor(self, token: Token) -> None:
        with self._lock:
            self._cursor.set_cursor(token)

    def reset_cursor(self) -> None:
        with self._lock:
            self._cursor.reset_cursor()

    def snapshot(self) -> CrawlSnapshot:
        with self._lock:
            return CrawlSnapshot(
                target_id=self._target_id,
                subset=self._cursor.subset,
                cursor=self._cursor.cursor,
                calls=tuple(self._window.timestamps()),
            )

    def _window_report(self, now: int) -> str:
        count = self._window.calls_in_window(now)
        if self._window.can_make_call(now):
            status = "able"
        else:
            status = f"unable ({format_wait(self._window.wait_seconds(now))})"
        minutes = self._window.window_ms // 60000
        return (
            f"Identified {count} API calls in the past {minutes} minutes, "
            f"the system is {status} to make more calls"
        )

    def window_report(self, now: Optional[int] = None) -> str:
        """Human readable summary of the quota window at ``now``."""
        now = now_ms() if now is None else now
        with self._lock:
            return self._window_report(now)

    def describe(self) -> str:
        snap = self.snapshot()
        return (
            f"Subsets: {snap.subset}\n"
            f"Target ID: {snap.target_id}\n"
            f"Cursor: {snap.cursor}\n"
            f"Access times: {len(snap.calls)}"
        )

    def __repr__(self) -> str:
        snap = self.snapshot()
        return f"CrawlState(target_id={snap.target_id}, subset={snap.subset}, cursor={snap.cursor!r})"
