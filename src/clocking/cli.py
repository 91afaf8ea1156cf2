"""Command-line interface for clocking."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional

import typer

from .config import ClockingSettings
from .errors import ClockingError
from . import ranges
from .paths import resolve_store_location
from .store import ClockingStore, open_store
from .views import (
    VIEW_DAILY,
    VIEW_DAILY_DETAIL,
    VIEW_DETAIL,
    VIEW_DIST,
    DailyDistributionView,
    build_view,
)

app = typer.Typer(help="Clock the time you spend on things.")

logger = logging.getLogger(__name__)

FILE_HELP = "SQLite file holding the entries; defaults to $CLOCKING_FILE, then the user data dir."


@app.callback(no_args_is_help=True)
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logs.")) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


@contextmanager
def _store(file: Optional[Path]) -> Iterator[ClockingStore]:
    try:
        with open_store(resolve_store_location(file)) as store:
            yield store
    except ClockingError as exc:
        typer.secho(str(exc).rstrip(), err=True, fg=typer.colors.RED)
        raise typer.Exit(code=1) from exc


def _read_stdin() -> str:
    return typer.get_text_stream("stdin").read()


def read_title(recent_titles: List[str]) -> str:
    """Ask for a title, offering the recent ones by index when there are any."""
    if not recent_titles:
        title = typer.prompt("Input Title", default="", show_default=False).strip()
        if not title:
            raise typer.BadParameter("Title cannot be empty.")
        return title

    for index, title in enumerate(recent_titles, start=1):
        typer.echo(f"{index}: {title}")
    choice = typer.prompt("Choose by index", default="1").strip()
    try:
        index = int(choice)
    except ValueError as exc:
        raise typer.BadParameter(f"Invalid input: {choice}.") from exc
    if not 1 <= index <= len(recent_titles):
        raise typer.BadParameter(f"Invalid index: {index}.")
    return recent_titles[index - 1]


@app.command()
def start(
    title: Optional[str] = typer.Argument(
        None, help="If not specified, interactively choose from recent titles."
    ),
    no_wait: bool = typer.Option(
        False,
        "--no-wait",
        "-n",
        help="Do not wait for notes input, exit with the entry left unfinished.",
    ),
    notes: str = typer.Option("", "--notes", help="Initial notes for the entry."),
    file: Optional[Path] = typer.Option(None, "--file", help=FILE_HELP),
) -> None:
    """Start clocking.

    Unless --no-wait is given, waits for Ctrl-D and saves everything typed
    before it as notes when finishing the entry.
    """
    settings = ClockingSettings()
    with _store(file) as store:
        if not title or not title.strip():
            title = read_title(store.recent_titles(settings.recent_limit))
        entry_id = store.start(title, notes=notes)
        typer.echo("(Started)")
        if no_wait:
            return
        typer.echo("(Ctrl-D to finish clocking)")
        extra_notes = _read_stdin()
        if store.finish_exact_now(entry_id, extra_notes):
            typer.echo("(Finished)")
        else:
            typer.echo("(Already finished)")


@app.command()
def finish(
    title: Optional[str] = typer.Argument(
        None, help="Title to finish; finishes whatever is unfinished if omitted."
    ),
    notes: Optional[List[str]] = typer.Option(
        None,
        "--notes",
        "-n",
        help="Can be given several times, one line each. A single '-' reads notes from stdin.",
    ),
    file: Optional[Path] = typer.Option(None, "--file", help=FILE_HELP),
) -> None:
    """Finish the latest unfinished entry."""
    lines = notes or []
    text = _read_stdin() if lines == ["-"] else "\n".join(lines)
    with _store(file) as store:
        finished = store.finish_latest(title, notes=text)
    if finished is None:
        typer.echo(f"(No unfinished entry found by {title})" if title else "(No unfinished entry)")
    else:
        typer.echo(f"(Finished {finished})")


@app.command()
def report(
    from_: int = typer.Option(0, "--from", "-f", min=0, help="Days back from today; 0 is today."),
    days: Optional[int] = typer.Option(
        None, "--days", "-d", min=0, help="Days to cover from the offset. Defaults to until now."
    ),
    daily: bool = typer.Option(False, "--daily", help="Show the daily summary."),
    detail: bool = typer.Option(False, "--detail", help="Show every span grouped by title."),
    dist: bool = typer.Option(False, "--dist", help="Show the daily distribution with idle gaps."),
    show_all: bool = typer.Option(
        False, "--all", help="With --dist, also show idle gaps shorter than a minute."
    ),
    start_date: Optional[str] = typer.Option(
        None, "--start", help="First local date (YYYY-MM-DD); overrides --from/--days."
    ),
    end_date: Optional[str] = typer.Option(
        None, "--end", help="Last local date (YYYY-MM-DD), inclusive. Defaults to --start."
    ),
    html_output: bool = typer.Option(False, "--html", help="Render an HTML fragment."),
    day_start: Optional[str] = typer.Option(None, "--day-start", help="Working window start (HH:MM)."),
    day_end: Optional[str] = typer.Option(None, "--day-end", help="Working window end (HH:MM)."),
    file: Optional[Path] = typer.Option(None, "--file", help=FILE_HELP),
) -> None:
    """Report finished entries."""
    if daily:
        view_type = VIEW_DAILY
    elif detail:
        view_type = VIEW_DETAIL
    elif dist:
        view_type = VIEW_DIST
    else:
        view_type = VIEW_DAILY_DETAIL

    with _store(file) as store:
        settings = ClockingSettings.from_strings(day_start, day_end)
        if start_date:
            range_start, range_end = ranges.date_range(start_date, end_date or start_date)
        else:
            range_start, range_end = ranges.offset_range(from_, days)
        entries = store.query_finished(range_start, range_end)
        if not entries:
            typer.echo("(No finished entries)")
            return
        view = build_view(
            view_type, entries, settings, days=ranges.local_dates(range_start, range_end)
        )

    if isinstance(view, DailyDistributionView):
        output = view.render_html(show_all) if html_output else view.render_text(show_all)
    else:
        output = view.render_html() if html_output else view.render_text()
    typer.echo(output, nl=False)


@app.command()
def latest(
    title: str = typer.Argument(..., help="Title of the entry to display."),
    file: Optional[Path] = typer.Option(None, "--file", help=FILE_HELP),
) -> None:
    """Show the latest finished entry of a title."""
    with _store(file) as store:
        entry = store.latest_finished(title)
    if entry is None:
        typer.echo("(Not found)")
    else:
        typer.echo(str(entry), nl=False)


@app.command()
def unfinished(
    limit: int = typer.Option(10, "--limit", min=1, help="Maximum entries to list."),
    file: Optional[Path] = typer.Option(None, "--file", help=FILE_HELP),
) -> None:
    """List unfinished entries, latest first."""
    with _store(file) as store:
        entries = store.query_unfinished(limit)
    if not entries:
        typer.echo("(Nothing unfinished)")
        return
    for entry in entries:
        typer.echo(str(entry), nl=False)
        typer.echo(f"\tRunning for {entry.started_minutes()} minutes")


@app.command()
def server(
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind the server."),
    port: int = typer.Option(8000, "--port", min=1, max=65535, help="TCP port for the server."),
    day_start: Optional[str] = typer.Option(None, "--day-start", help="Working window start (HH:MM)."),
    day_end: Optional[str] = typer.Option(None, "--day-end", help="Working window end (HH:MM)."),
    open_browser: bool = typer.Option(
        False,
        "--open-browser/--no-open-browser",
        help="Open the web page in your default browser.",
    ),
    file: Optional[Path] = typer.Option(None, "--file", help=FILE_HELP),
) -> None:
    """Serve the HTTP API and web page."""
    from .server_runner import run_server

    try:
        settings = ClockingSettings.from_strings(day_start, day_end)
    except ClockingError as exc:
        typer.secho(str(exc).rstrip(), err=True, fg=typer.colors.RED)
        raise typer.Exit(code=1) from exc
    logger.info("Starting server on %s:%d", host, port)
    run_server(
        host=host,
        port=port,
        db_location=resolve_store_location(file),
        settings=settings,
        open_browser=open_browser,
    )
