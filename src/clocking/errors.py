"""Error types raised by the clocking store and its helpers."""

from __future__ import annotations


class ClockingError(Exception):
    """Base class for every error surfaced by the clocking core."""


class UnderlyingFailure(ClockingError):
    """The storage backend failed or returned data that cannot be decoded."""


class ImpossibleState(ClockingError):
    """A write touched an unexpected number of rows."""

    def __init__(self, detail: str) -> None:
        super().__init__(f"This should never happen: {detail}")
        self.detail = detail


class InvalidInput(ClockingError):
    """Input was rejected before reaching storage."""

    def __init__(self, detail: str) -> None:
        super().__init__(f"Input invalid: {detail}")
        self.detail = detail


class UnfinishedExists(ClockingError):
    """Another entry is still running."""

    def __init__(self, title: str) -> None:
        super().__init__(
            "Starting new entry is not allowed when there is unfinished entry: "
            f"{title}"
        )
        self.title = title


class DuplicateEntry(ClockingError):
    """An entry with the same title and start already exists."""

    def __init__(self, title: str) -> None:
        super().__init__(f"Entry already exists: {title}")
        self.title = title
