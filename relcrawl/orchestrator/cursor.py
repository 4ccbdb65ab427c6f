"""Pagination position within the subsets of a target's relation graph."""
from __future__ import annotations

from typing import Union

Token = Union[int, str]

START_CURSOR: Token = -1


class CrawlCursor:
    """Tracks the current subset and the opaque pagination token inside it."""

    def __init__(self, *, subset: int = 1, cursor: Token = START_CURSOR) -> None:
        self._subset = subset
        self._cursor = cursor

    @property
    def subset(self) -> int:
        return self._subset

    @property
    def cursor(self) -> Token:
        return self._cursor

    @property
    def at_start(self) -> bool:
        """True while the cursor points at the start of the collection."""
        return self._cursor == START_CURSOR

    def advance_subset(self) -> int:
        """Move on to the next subset and return its number."""
        self._subset += 1
        return self._subset

    def set_cursor(self, token: Token) -> None:
        """Store the token returned by the latest fetch, verbatim."""
        self._cursor = token

    def reset_cursor(self) -> None:
        self._cursor = START_CURSOR
