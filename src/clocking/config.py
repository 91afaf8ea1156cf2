"""Configuration models and helpers for clocking."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, time

from .errors import InvalidInput

TIME_FMT = "%H:%M"


@dataclass(slots=True)
class ClockingSettings:
    """Runtime configuration for reports and listings."""

    day_start: time = time(8, 0)
    day_end: time = time(21, 0)
    recent_limit: int = 5
    unfinished_limit: int = 10

    def __post_init__(self) -> None:
        if self.day_end <= self.day_start:
            raise InvalidInput("day_end must be after day_start")
        if self.recent_limit < 1 or self.unfinished_limit < 1:
            raise InvalidInput("limits must be positive")

    @classmethod
    def from_strings(
        cls,
        day_start: str | None = None,
        day_end: str | None = None,
        recent_limit: int | None = None,
        unfinished_limit: int | None = None,
    ) -> "ClockingSettings":
        defaults = cls()
        return cls(
            day_start=_parse_time(day_start) if day_start else defaults.day_start,
            day_end=_parse_time(day_end) if day_end else defaults.day_end,
            recent_limit=recent_limit if recent_limit is not None else defaults.recent_limit,
            unfinished_limit=(
                unfinished_limit
                if unfinished_limit is not None
                else defaults.unfinished_limit
            ),
        )


def _parse_time(value: str) -> time:
    try:
        return datetime.strptime(value, TIME_FMT).time()
    except ValueError as exc:
        raise InvalidInput(f"Invalid time of day {value!r}, expected HH:MM") from exc
