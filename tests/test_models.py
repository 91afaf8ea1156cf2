from __future__ import annotations

from datetime import time, timedelta
from pathlib import Path

import pytest

from clocking.config import ClockingSettings
from clocking.db import IN_MEMORY, decode_timestamp, encode_timestamp
from clocking.errors import InvalidInput, UnderlyingFailure
from clocking.models import LOCAL_FORMAT, EntryId, FinishedEntry, UnfinishedEntry
from clocking.paths import STORE_FILE_VAR, resolve_store_location

from conftest import at


def local(value):
    return value.astimezone().strftime(LOCAL_FORMAT)


def test_finished_entry_text():
    entry = FinishedEntry(EntryId("Writing", at(8)), at(9), "draft\nsecond line")
    assert str(entry) == (
        "Writing:\n"
        f"\t{local(at(8))} ~ {local(at(9))}\n"
        "\tNotes:\n"
        "\t  draft\n"
        "\t  second line\n"
    )
    assert entry.duration == timedelta(hours=1)


def test_unfinished_entry_text_without_notes():
    entry = UnfinishedEntry(EntryId("Writing", at(8)))
    assert str(entry) == f"Writing:\n\tStarted at: {local(at(8))}\n"
    assert entry.started_minutes(now=at(9, 30)) == 90


def test_html_segment_escapes():
    entry = FinishedEntry(EntryId("<script>", at(8)), at(9), "a & b\nc")
    fragment = entry.html_segment()
    assert "<h2>&lt;script&gt;</h2>" in fragment
    assert "<p>a &amp; b<br>\nc</p>" in fragment


def test_timestamp_encoding_is_sortable_text():
    first = encode_timestamp(at(8))
    second = encode_timestamp(at(8, 0, 1))
    assert first == "2024-03-04T08:00:00.000000+00:00"
    assert first < second
    assert decode_timestamp(first) == at(8)


def test_decode_timestamp_rejects_bad_text():
    with pytest.raises(UnderlyingFailure):
        decode_timestamp("not a time")
    with pytest.raises(UnderlyingFailure):
        decode_timestamp("2024-03-04T08:00:00")


def test_settings_defaults_and_parsing():
    settings = ClockingSettings()
    assert (settings.day_start, settings.day_end) == (time(8), time(21))

    parsed = ClockingSettings.from_strings("07:30", "18:00", recent_limit=3)
    assert parsed.day_start == time(7, 30)
    assert parsed.day_end == time(18)
    assert parsed.recent_limit == 3
    assert parsed.unfinished_limit == 10


@pytest.mark.parametrize("day_start, day_end", [("9", "18:00"), ("18:00", "09:00")])
def test_settings_reject_bad_window(day_start, day_end):
    with pytest.raises(InvalidInput):
        ClockingSettings.from_strings(day_start, day_end)


def test_store_location_resolution(monkeypatch, tmp_path):
    monkeypatch.delenv(STORE_FILE_VAR, raising=False)
    assert resolve_store_location(IN_MEMORY) == IN_MEMORY
    assert resolve_store_location(tmp_path / "a.db") == tmp_path / "a.db"

    monkeypatch.setenv(STORE_FILE_VAR, str(tmp_path / "env.db"))
    assert resolve_store_location() == Path(tmp_path / "env.db")
    assert resolve_store_location(Path(IN_MEMORY)) == IN_MEMORY
