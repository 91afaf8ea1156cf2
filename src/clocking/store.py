"""Invariant-enforcing store for clocking entries.

At most one entry may be unfinished at a time across the whole store. Every
check-then-write sequence runs inside a single ``BEGIN IMMEDIATE``
transaction while holding the store lock, so concurrent callers cannot slip
between the check and the write.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, Optional

from . import db, ranges
from .errors import (
    ClockingError,
    DuplicateEntry,
    ImpossibleState,
    InvalidInput,
    UnderlyingFailure,
    UnfinishedExists,
)
from .models import EntryId, FinishedEntry, UnfinishedEntry

logger = logging.getLogger(__name__)


class ClockingStore:
    """Durable storage for entries; the only writer of state transitions."""

    def __init__(self, location: db.Location = db.IN_MEMORY) -> None:
        self.location = location
        self._lock = threading.RLock()
        try:
            self._conn = db.open_database(location, check_same_thread=False)
        except sqlite3.Error as exc:
            raise UnderlyingFailure(f"Failed to open store at {location}: {exc}") from exc
        logger.debug("Opened clocking store at %s", location)

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            try:
                self._conn.execute("BEGIN IMMEDIATE")
            except sqlite3.Error as exc:
                raise UnderlyingFailure(str(exc)) from exc
            try:
                yield self._conn
            except BaseException:
                self._conn.execute("ROLLBACK")
                raise
            else:
                try:
                    self._conn.execute("COMMIT")
                except sqlite3.Error as exc:
                    raise UnderlyingFailure(str(exc)) from exc

    @contextmanager
    def _reading(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            yield self._conn

    # -- writes -----------------------------------------------------------

    def start(
        self,
        title: str,
        start_time: Optional[datetime] = None,
        notes: str = "",
    ) -> EntryId:
        """Start a new entry, by default at the current time."""
        entry = UnfinishedEntry(
            id=EntryId(title=title, start=start_time or _utcnow()),
            notes=notes,
        )
        self.start_entry(entry)
        return entry.id

    def start_entry(self, entry: UnfinishedEntry) -> None:
        if not entry.id.title or not entry.id.title.strip():
            raise InvalidInput("Empty title")
        if entry.id.start.tzinfo is None:
            raise InvalidInput("start time must be timezone-aware")

        with _translate_errors(), self._transaction() as conn:
            if db.entry_exists(conn, entry.id.title, entry.id.start):
                raise DuplicateEntry(entry.id.title)
            blocking = db.fetch_any_unfinished_title(conn)
            if blocking is not None:
                raise UnfinishedExists(blocking)
            inserted = db.insert_entry(conn, entry)
            if inserted != 1:
                logger.error("Abnormal inserted count %d for %s", inserted, entry.id.title)
                raise ImpossibleState(f"abnormal inserted count: {inserted}")
        logger.info("Started %s at %s", entry.id.title, entry.id.start.isoformat())

    def finish_latest(
        self,
        title: Optional[str] = None,
        end_time: Optional[datetime] = None,
        notes: str = "",
    ) -> Optional[str]:
        """Finish the latest unfinished entry, optionally restricted to ``title``.

        Notes are appended to whatever the entry already holds. Returns the
        finished title, or ``None`` when nothing unfinished matches.
        """
        end = end_time or _utcnow()
        if end.tzinfo is None:
            raise InvalidInput("end time must be timezone-aware")

        with _translate_errors(), self._transaction() as conn:
            row = db.fetch_latest_unfinished(conn, title)
            if row is None:
                return None
            updated = db.finish_row(conn, row["id"], end, notes)
            if updated == 0:
                return None
            if updated != 1:
                logger.error("Abnormal updated count %d for %s", updated, row["title"])
                raise ImpossibleState(f"abnormal updated count: {updated}")
            finished_title = row["title"]
        logger.info("Finished %s at %s", finished_title, end.isoformat())
        return finished_title

    def finish_title(self, title: str, notes: str = "") -> bool:
        return self.finish_latest(title, notes=notes) is not None

    def finish_any(self, notes: str = "") -> Optional[str]:
        return self.finish_latest(None, notes=notes)

    def finish_exact(
        self,
        entry_id: EntryId,
        end_time: Optional[datetime] = None,
        notes: str = "",
    ) -> bool:
        """Finish one specific entry.

        Returns ``False`` when the entry does not exist or is already finished.
        """
        end = end_time or _utcnow()
        if end.tzinfo is None:
            raise InvalidInput("end time must be timezone-aware")
        if end <= entry_id.start:
            raise InvalidInput("end time must be after start time")

        with _translate_errors(), self._transaction() as conn:
            updated = db.finish_by_id(conn, entry_id, end, notes)
            if updated > 1:
                logger.error("Abnormal updated count %d for %s", updated, entry_id.title)
                raise ImpossibleState(f"abnormal updated count: {updated}")
        if updated:
            logger.info("Finished %s at %s", entry_id.title, end.isoformat())
        return updated == 1

    def finish_exact_now(self, entry_id: EntryId, notes: str = "") -> bool:
        return self.finish_exact(entry_id, _utcnow(), notes)

    # -- reads ------------------------------------------------------------

    def query_finished(
        self, range_start: datetime, range_end: Optional[datetime] = None
    ) -> list[FinishedEntry]:
        """Finished entries starting at or after ``range_start`` and ending by ``range_end``."""
        if range_start.tzinfo is None or (range_end is not None and range_end.tzinfo is None):
            raise InvalidInput("range bounds must be timezone-aware")
        end = range_end or _utcnow()
        with _translate_errors(), self._reading() as conn:
            rows = db.fetch_finished_between(conn, range_start, end)
            return [db.row_to_finished_entry(row) for row in rows]

    def finished_by_offset(
        self, days_offset: int, days: Optional[int] = None
    ) -> list[FinishedEntry]:
        start, end = ranges.offset_range(days_offset, days)
        return self.query_finished(start, end)

    def finished_by_date_str(self, day_start: str, day_end: str) -> list[FinishedEntry]:
        start, end = ranges.date_range(day_start, day_end)
        return self.query_finished(start, end)

    def query_unfinished(self, limit: int) -> list[UnfinishedEntry]:
        with _translate_errors(), self._reading() as conn:
            return [db.row_to_unfinished_entry(row) for row in db.fetch_unfinished(conn, limit)]

    def recent_titles(self, limit: int) -> list[str]:
        """Distinct titles of finished entries, most recently started first."""
        with _translate_errors(), self._reading() as conn:
            return db.fetch_recent_titles(conn, limit)

    def latest_finished(self, title: str) -> Optional[FinishedEntry]:
        with _translate_errors(), self._reading() as conn:
            row = db.fetch_latest_finished(conn, title)
            return db.row_to_finished_entry(row) if row else None


@contextmanager
def open_store(location: db.Location = db.IN_MEMORY) -> Iterator[ClockingStore]:
    store = ClockingStore(location)
    try:
        yield store
    finally:
        store.close()


@contextmanager
def _translate_errors() -> Iterator[None]:
    try:
        yield
    except ClockingError:
        raise
    except sqlite3.Error as exc:
        logger.exception("Storage failure")
        raise UnderlyingFailure(str(exc)) from exc


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)
