from __future__ import annotations

import time
from datetime import datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import pytest

from clocking.store import ClockingStore


def at(hour: int, minute: int = 0, second: int = 0, day: int = 4) -> datetime:
    """A fixed UTC instant on 2024-03-<day>."""
    return datetime(2024, 3, day, hour, minute, second, tzinfo=timezone.utc)


@pytest.fixture
def store():
    mem_store = ClockingStore(":memory:")
    yield mem_store
    mem_store.close()


@pytest.fixture
def berlin_zone() -> ZoneInfo:
    try:
        return ZoneInfo("Europe/Berlin")
    except ZoneInfoNotFoundError:
        pytest.skip("Europe/Berlin zone data is not installed")


@pytest.fixture
def berlin_local_time(monkeypatch, berlin_zone):
    """Make Europe/Berlin (CET in winter, CEST in summer) the process local zone."""
    if not hasattr(time, "tzset"):
        pytest.skip("time.tzset is not available on this platform")
    monkeypatch.setenv("TZ", "Europe/Berlin")
    time.tzset()
    yield
    monkeypatch.undo()
    time.tzset()
