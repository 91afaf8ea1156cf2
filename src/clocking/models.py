"""Domain models for clocking entries."""

from __future__ import annotations

import html
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from .errors import InvalidInput

LOCAL_FORMAT = "%Y-%m-%d %a %H:%M"
LOCAL_NO_DATE_FORMAT = "%H:%M"


@dataclass(frozen=True, slots=True)
class EntryId:
    """Natural key of an entry: its title and its start instant."""

    title: str
    start: datetime


@dataclass(frozen=True, slots=True)
class UnfinishedEntry:
    """An entry that has been started but not ended."""

    id: EntryId
    notes: str = ""

    def started_minutes(self, now: Optional[datetime] = None) -> int:
        current = now or datetime.now(timezone.utc)
        return int((current - self.id.start).total_seconds() // 60)

    def __str__(self) -> str:
        lines = [
            f"{self.id.title}:",
            f"\tStarted at: {_local(self.id.start).strftime(LOCAL_FORMAT)}",
        ]
        lines.extend(_notes_lines(self.notes))
        return "\n".join(lines) + "\n"


@dataclass(frozen=True, slots=True)
class FinishedEntry:
    """An entry with both ends set; ``end`` is always after ``id.start``."""

    id: EntryId
    end: datetime
    notes: str = ""

    @property
    def duration(self) -> timedelta:
        return self.end - self.id.start

    def __str__(self) -> str:
        lines = [
            f"{self.id.title}:",
            "\t{} ~ {}".format(
                _local(self.id.start).strftime(LOCAL_FORMAT),
                _local(self.end).strftime(LOCAL_FORMAT),
            ),
        ]
        lines.extend(_notes_lines(self.notes))
        return "\n".join(lines) + "\n"

    def html_segment(self) -> str:
        """Render the entry as an HTML fragment."""
        parts = [
            f"<h2>{html.escape(self.id.title)}</h2>",
            "<p><strong>{}</strong> ~ <strong>{}</strong></p>".format(
                _local(self.id.start).strftime(LOCAL_FORMAT),
                _local(self.end).strftime(LOCAL_FORMAT),
            ),
        ]
        if self.notes.strip():
            body = "<br>\n".join(html.escape(line) for line in self.notes.splitlines())
            parts.append(f"<p>{body}</p>")
        return "\n".join(parts) + "\n"


@dataclass(frozen=True, slots=True)
class TimeSpan:
    """A validated ``[start, end)`` interval with positive duration.

    Use :meth:`build` to construct one.
    """

    start: datetime
    end: datetime

    @classmethod
    def build(cls, start: datetime, end: datetime) -> "TimeSpan":
        if end <= start:
            raise InvalidInput("Invalid TimeSpan: end must be after start.")
        return cls(start=start, end=end)

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def __lt__(self, other: "TimeSpan") -> bool:
        return self.start < other.start

    def format(self, time_only: bool = False) -> str:
        fmt = LOCAL_NO_DATE_FORMAT if time_only else LOCAL_FORMAT
        return "{} ~ {}, {}".format(
            self.start.strftime(fmt),
            self.end.strftime(fmt),
            format_duration(self.duration),
        )

    def __str__(self) -> str:
        return self.format()


HOUR_MINUTES = 60
DAY_MINUTES = HOUR_MINUTES * 24


def format_duration(duration: timedelta) -> str:
    """Render a duration as ``0:MM``, ``H:MM`` or ``D:HH:MM``."""
    total_minutes = int(duration.total_seconds() / 60)
    if total_minutes < HOUR_MINUTES:
        return f"0:{total_minutes:02d}"
    if total_minutes < DAY_MINUTES:
        hours, minutes = divmod(total_minutes, HOUR_MINUTES)
        return f"{hours}:{minutes:02d}"
    days, remainder = divmod(total_minutes, DAY_MINUTES)
    hours, minutes = divmod(remainder, HOUR_MINUTES)
    return f"{days}:{hours:02d}:{minutes:02d}"


def _local(value: datetime) -> datetime:
    return value.astimezone()


def _notes_lines(notes: str) -> list[str]:
    if not notes:
        return []
    return ["\tNotes:"] + [f"\t  {line}" for line in notes.splitlines()]
