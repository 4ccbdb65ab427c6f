"""Error types raised by the crawl state core."""
from __future__ import annotations


class RelcrawlError(Exception):
    """Base class for all relcrawl errors."""


class InvalidTargetIdentifier(RelcrawlError, ValueError):
    """The supplied target is not a positive integer identifier."""

    def __init__(self, value: object) -> None:
        super().__init__(f"Invalid target identifier: {value!r}")
        self.value = value


class PersistenceFailure(RelcrawlError):
    """Persisted crawl data could not be decoded or breaks an invariant."""
