"""SQLite database layer for clocking entries."""

from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

from .errors import UnderlyingFailure
from .models import EntryId, FinishedEntry, UnfinishedEntry

IN_MEMORY = ":memory:"

Location = Union[str, Path]


def open_database(location: Location, *, check_same_thread: bool = True) -> sqlite3.Connection:
    """Open (and initialize) the SQLite database."""
    if str(location) != IN_MEMORY:
        Path(location).parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(
        str(location),
        isolation_level=None,
        check_same_thread=check_same_thread,
    )
    conn.row_factory = sqlite3.Row
    initialize_schema(conn)
    return conn


def initialize_schema(conn: sqlite3.Connection) -> None:
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS clocking (
            id INTEGER PRIMARY KEY,
            title TEXT NOT NULL,
            start TEXT NOT NULL,
            "end" TEXT NULL,
            notes TEXT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_clocking_start
            ON clocking(start);
        """
    )


def encode_timestamp(value: datetime) -> str:
    """Encode an aware datetime as fixed-width RFC 3339 text in UTC."""
    if value.tzinfo is None:
        raise ValueError("timestamps must be timezone-aware")
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def decode_timestamp(text: str) -> datetime:
    try:
        parsed = datetime.fromisoformat(text)
    except (TypeError, ValueError) as exc:
        raise UnderlyingFailure(f"Stored timestamp is not valid: {text!r}") from exc
    if parsed.tzinfo is None:
        raise UnderlyingFailure(f"Stored timestamp has no timezone: {text!r}")
    return parsed.astimezone(timezone.utc)


def row_to_finished_entry(row: sqlite3.Row) -> FinishedEntry:
    if row["end"] is None:
        raise UnderlyingFailure(f"Row for {row['title']!r} is not finished")
    return FinishedEntry(
        id=EntryId(title=row["title"], start=decode_timestamp(row["start"])),
        end=decode_timestamp(row["end"]),
        notes=row["notes"] or "",
    )


def row_to_unfinished_entry(row: sqlite3.Row) -> UnfinishedEntry:
    return UnfinishedEntry(
        id=EntryId(title=row["title"], start=decode_timestamp(row["start"])),
        notes=row["notes"] or "",
    )


def entry_exists(conn: sqlite3.Connection, title: str, start: datetime) -> bool:
    row = conn.execute(
        "SELECT id FROM clocking WHERE title = ? AND start = ?",
        (title, encode_timestamp(start)),
    ).fetchone()
    return row is not None


def fetch_any_unfinished_title(conn: sqlite3.Connection) -> Optional[str]:
    row = conn.execute(
        'SELECT title FROM clocking WHERE "end" IS NULL LIMIT 1'
    ).fetchone()
    return row["title"] if row else None


def insert_entry(conn: sqlite3.Connection, entry: UnfinishedEntry) -> int:
    """Insert an unfinished row and return the affected row count."""
    cur = conn.execute(
        "INSERT INTO clocking (title, start, notes) VALUES (?, ?, ?)",
        (entry.id.title, encode_timestamp(entry.id.start), entry.notes),
    )
    return cur.rowcount


def fetch_latest_unfinished(
    conn: sqlite3.Connection, title: Optional[str] = None
) -> Optional[sqlite3.Row]:
    """Return the most recently started unfinished row, optionally by title."""
    if title is None:
        query = (
            'SELECT id, title, start FROM clocking WHERE "end" IS NULL '
            "ORDER BY start DESC, id DESC LIMIT 1"
        )
        return conn.execute(query).fetchone()
    query = (
        'SELECT id, title, start FROM clocking WHERE title = ? AND "end" IS NULL '
        "ORDER BY start DESC, id DESC LIMIT 1"
    )
    return conn.execute(query, (title,)).fetchone()


# Appended notes start on their own line unless either side is empty.
_APPEND_NOTES = """
    notes = CASE
        WHEN IFNULL(notes, '') = '' THEN :notes
        WHEN :notes = '' OR substr(notes, -1) = char(10) THEN notes || :notes
        ELSE notes || char(10) || :notes
    END
"""


def finish_row(
    conn: sqlite3.Connection, row_id: int, end: datetime, notes: str
) -> int:
    """Close an unfinished row by primary key; returns the affected row count."""
    end_text = encode_timestamp(end)
    cur = conn.execute(
        f"""
        UPDATE clocking
        SET "end" = :end, {_APPEND_NOTES}
        WHERE id = :id AND "end" IS NULL AND start < :end
        """,
        {"end": end_text, "notes": notes, "id": row_id},
    )
    return cur.rowcount


def finish_by_id(
    conn: sqlite3.Connection, entry_id: EntryId, end: datetime, notes: str
) -> int:
    """Close the unfinished row keyed by ``(title, start)``."""
    end_text = encode_timestamp(end)
    cur = conn.execute(
        f"""
        UPDATE clocking
        SET "end" = :end, {_APPEND_NOTES}
        WHERE title = :title AND start = :start AND "end" IS NULL AND start < :end
        """,
        {
            "end": end_text,
            "notes": notes,
            "title": entry_id.title,
            "start": encode_timestamp(entry_id.start),
        },
    )
    return cur.rowcount


def fetch_finished_between(
    conn: sqlite3.Connection, start: datetime, end: datetime
) -> list[sqlite3.Row]:
    return list(
        conn.execute(
            """
            SELECT title, start, "end", notes
            FROM clocking
            WHERE start >= ? AND "end" IS NOT NULL AND "end" <= ?
            ORDER BY start;
            """,
            (encode_timestamp(start), encode_timestamp(end)),
        )
    )


def fetch_latest_finished(conn: sqlite3.Connection, title: str) -> Optional[sqlite3.Row]:
    return conn.execute(
        """
        SELECT title, start, "end", notes
        FROM clocking
        WHERE title = ? AND "end" IS NOT NULL
        ORDER BY start DESC
        LIMIT 1
        """,
        (title,),
    ).fetchone()


def fetch_recent_titles(conn: sqlite3.Connection, limit: int) -> list[str]:
    rows = conn.execute(
        """
        SELECT title, MAX(start) AS latest
        FROM clocking
        WHERE "end" IS NOT NULL
        GROUP BY title
        ORDER BY latest DESC
        LIMIT ?
        """,
        (limit,),
    )
    return [row["title"] for row in rows]


def fetch_unfinished(conn: sqlite3.Connection, limit: int) -> list[sqlite3.Row]:
    return list(
        conn.execute(
            """
            SELECT title, start, notes
            FROM clocking
            WHERE "end" IS NULL
            ORDER BY start DESC
            LIMIT ?
            """,
            (limit,),
        )
    )
