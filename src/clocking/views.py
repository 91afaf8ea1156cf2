"""Report views computed from finished entries.

Every view is a pure function of the entries it is built from. Dates are the
local calendar dates of each entry's start. Without an explicit ``tz`` each
instant is converted with the system zone rules in force at that instant.
"""

from __future__ import annotations

import html
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Iterable, Optional, Sequence, Union

from .config import ClockingSettings
from .models import FinishedEntry, TimeSpan, format_duration

IDLE_LABEL = "<idle>"
TOTAL_LABEL = "(Total)"

VIEW_DAILY = "daily"
VIEW_DETAIL = "detail"
VIEW_DIST = "dist"
VIEW_DAILY_DETAIL = "daily_detail"


def _entry_span(entry: FinishedEntry, tz: Optional[tzinfo]) -> TimeSpan:
    return TimeSpan.build(entry.id.start.astimezone(tz), entry.end.astimezone(tz))


def _entry_date(entry: FinishedEntry, tz: Optional[tzinfo]) -> date:
    return entry.id.start.astimezone(tz).date()


def _window_bound(day: date, at: time, tz: Optional[tzinfo]) -> datetime:
    if tz is None:
        return datetime.combine(day, at).astimezone()
    return datetime.combine(day, at, tzinfo=tz)


class DailySummaryView:
    """Total tracked time per date."""

    def __init__(self, entries: Iterable[FinishedEntry], tz: Optional[tzinfo] = None) -> None:
        self.tz = tz
        totals: defaultdict[date, timedelta] = defaultdict(timedelta)
        for entry in entries:
            totals[_entry_date(entry, self.tz)] += entry.duration
        self.totals: dict[date, timedelta] = dict(sorted(totals.items()))

    @property
    def total(self) -> timedelta:
        return sum(self.totals.values(), timedelta())

    def render_text(self) -> str:
        lines = [f"{day.isoformat()}: {format_duration(duration)}" for day, duration in self.totals.items()]
        if len(self.totals) > 1:
            lines.append(f"{TOTAL_LABEL}: {format_duration(self.total)}")
        return "".join(f"{line}\n" for line in lines)

    def render_html(self) -> str:
        rows = [
            f"<tr><td>{day.isoformat()}</td><td>{format_duration(duration)}</td></tr>"
            for day, duration in self.totals.items()
        ]
        if len(self.totals) > 1:
            rows.append(
                f"<tr><th>{html.escape(TOTAL_LABEL)}</th>"
                f"<th>{format_duration(self.total)}</th></tr>"
            )
        return '<table class="daily-summary">\n' + "\n".join(rows) + "\n</table>\n"

    def __str__(self) -> str:
        return self.render_text()


class EntryDetailView:
    """Every span of each title, with a per-title total."""

    def __init__(self, entries: Iterable[FinishedEntry], tz: Optional[tzinfo] = None) -> None:
        self.tz = tz
        self.spans: dict[str, list[TimeSpan]] = {}
        for entry in entries:
            self.spans.setdefault(entry.id.title, []).append(_entry_span(entry, self.tz))

    def total_for(self, title: str) -> timedelta:
        return sum((span.duration for span in self.spans[title]), timedelta())

    def render_text(self) -> str:
        blocks = []
        for title, spans in self.spans.items():
            lines = [f"{title}:"]
            lines.extend(f"\t{span}" for span in spans)
            lines.append(f"\t{TOTAL_LABEL}: {format_duration(self.total_for(title))}")
            blocks.append("\n".join(lines) + "\n")
        return "\n".join(blocks)

    def render_html(self) -> str:
        parts = []
        for title, spans in self.spans.items():
            items = "\n".join(f"<li>{html.escape(str(span))}</li>" for span in spans)
            parts.append(
                f"<h3>{html.escape(title)}</h3>\n<ul>\n{items}\n</ul>\n"
                f"<p>{html.escape(TOTAL_LABEL)}: {format_duration(self.total_for(title))}</p>\n"
            )
        return "".join(parts)

    def __str__(self) -> str:
        return self.render_text()


class DailyDetailView:
    """Per date, the summed time of each title."""

    def __init__(self, entries: Iterable[FinishedEntry], tz: Optional[tzinfo] = None) -> None:
        self.tz = tz
        grouped: defaultdict[date, defaultdict[str, timedelta]] = defaultdict(
            lambda: defaultdict(timedelta)
        )
        for entry in entries:
            grouped[_entry_date(entry, self.tz)][entry.id.title] += entry.duration
        self.days: dict[date, dict[str, timedelta]] = {
            day: dict(sorted(titles.items())) for day, titles in sorted(grouped.items())
        }

    def total_for(self, day: date) -> timedelta:
        return sum(self.days[day].values(), timedelta())

    @property
    def total(self) -> timedelta:
        return sum((self.total_for(day) for day in self.days), timedelta())

    def render_text(self) -> str:
        out = []
        for day, titles in self.days.items():
            out.append(f"{day.isoformat()}:\n")
            for title, duration in titles.items():
                out.append(f"\t{title}: {format_duration(duration)}\n")
            out.append(f"\t{TOTAL_LABEL}: {format_duration(self.total_for(day))}\n\n")
        if len(self.days) > 1:
            out.append(f"{TOTAL_LABEL}: {format_duration(self.total)}\n")
        return "".join(out)

    def render_html(self) -> str:
        parts = []
        for day, titles in self.days.items():
            rows = "\n".join(
                f"<tr><td>{html.escape(title)}</td><td>{format_duration(duration)}</td></tr>"
                for title, duration in titles.items()
            )
            parts.append(
                f"<h3>{day.isoformat()}</h3>\n<table>\n{rows}\n"
                f"<tr><th>{html.escape(TOTAL_LABEL)}</th>"
                f"<th>{format_duration(self.total_for(day))}</th></tr>\n</table>\n"
            )
        if len(self.days) > 1:
            parts.append(f"<p>{html.escape(TOTAL_LABEL)}: {format_duration(self.total)}</p>\n")
        return "".join(parts)

    def __str__(self) -> str:
        return self.render_text()


@dataclass(frozen=True, slots=True)
class LabeledSpan:
    label: str
    span: TimeSpan
    idle: bool = False


def fill_idle(
    spans: Sequence[LabeledSpan], window_start: datetime, window_end: datetime
) -> list[LabeledSpan]:
    """Partition ``[window_start, window_end)`` with idle spans around ``spans``.

    Real spans are kept in start order. A span that starts at or before the
    running cursor leaves no gap.
    """
    result: list[LabeledSpan] = []
    cursor = window_start
    for item in sorted(spans, key=lambda labeled: labeled.span.start):
        gap_end = min(item.span.start, window_end)
        if cursor < gap_end:
            result.append(LabeledSpan(IDLE_LABEL, TimeSpan.build(cursor, gap_end), idle=True))
        result.append(item)
        cursor = max(cursor, item.span.end)
    if cursor < window_end:
        result.append(LabeledSpan(IDLE_LABEL, TimeSpan.build(cursor, window_end), idle=True))
    return result


class DailyDistributionView:
    """Spans of each date in start order, optionally with idle gaps filled in."""

    def __init__(
        self,
        entries: Iterable[FinishedEntry],
        tz: Optional[tzinfo] = None,
        days: Iterable[date] = (),
    ) -> None:
        self.tz = tz
        grouped: dict[date, list[LabeledSpan]] = {day: [] for day in days}
        for entry in entries:
            grouped.setdefault(_entry_date(entry, self.tz), []).append(
                LabeledSpan(entry.id.title, _entry_span(entry, self.tz))
            )
        self.days: dict[date, list[LabeledSpan]] = {
            day: sorted(spans, key=lambda labeled: labeled.span.start)
            for day, spans in sorted(grouped.items())
        }

    def with_idle(
        self, day_start: time = time(8, 0), day_end: time = time(21, 0)
    ) -> "DailyDistributionView":
        filled = DailyDistributionView((), tz=self.tz)
        filled.days = {
            day: fill_idle(
                spans,
                _window_bound(day, day_start, self.tz),
                _window_bound(day, day_end, self.tz),
            )
            for day, spans in self.days.items()
        }
        return filled

    def _visible(self, spans: list[LabeledSpan], show_all: bool) -> list[LabeledSpan]:
        if show_all:
            return spans
        return [item for item in spans if not item.idle or item.span.duration >= timedelta(minutes=1)]

    def render_text(self, show_all: bool = False, time_only: bool = True) -> str:
        out = []
        for day, spans in self.days.items():
            out.append(f"{day.isoformat()}:\n")
            for item in self._visible(spans, show_all):
                out.append(f"\t{item.label}: {item.span.format(time_only)}\n")
        return "".join(out)

    def render_html(self, show_all: bool = False, time_only: bool = True) -> str:
        parts = []
        for day, spans in self.days.items():
            items = "\n".join(
                '<li class="{}">{}: {}</li>'.format(
                    "idle" if item.idle else "busy",
                    html.escape(item.label),
                    html.escape(item.span.format(time_only)),
                )
                for item in self._visible(spans, show_all)
            )
            parts.append(f"<h3>{day.isoformat()}</h3>\n<ul>\n{items}\n</ul>\n")
        return "".join(parts)

    def __str__(self) -> str:
        return self.render_text()


View = Union[DailySummaryView, EntryDetailView, DailyDetailView, DailyDistributionView]


def build_view(
    view_type: Optional[str],
    entries: Sequence[FinishedEntry],
    settings: Optional[ClockingSettings] = None,
    tz: Optional[tzinfo] = None,
    days: Iterable[date] = (),
) -> View:
    """Map a view selector to a view; unknown selectors give the daily detail view.

    ``days`` only matters for the distribution view, where it lists dates to
    show even when they hold no entries.
    """
    if view_type == VIEW_DAILY:
        return DailySummaryView(entries, tz=tz)
    if view_type == VIEW_DETAIL:
        return EntryDetailView(entries, tz=tz)
    if view_type == VIEW_DIST:
        resolved = settings or ClockingSettings()
        return DailyDistributionView(entries, tz=tz, days=days).with_idle(
            resolved.day_start, resolved.day_end
        )
    return DailyDetailView(entries, tz=tz)
