from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from clocking.errors import InvalidInput
from clocking.ranges import date_range, local_dates, offset_range

PLUS_TWO = timezone(timedelta(hours=2))
NOW = datetime(2024, 3, 4, 15, 30, tzinfo=PLUS_TWO)


def test_offset_today_until_now():
    start, end = offset_range(0, None, now=NOW)
    assert start == datetime(2024, 3, 4, 0, 0, tzinfo=PLUS_TWO)
    assert end == NOW
    assert start.tzinfo == timezone.utc


def test_offset_with_days_spans_whole_days():
    start, end = offset_range(2, 1, now=NOW)
    assert start == datetime(2024, 3, 2, 0, 0, tzinfo=PLUS_TWO)
    assert end == datetime(2024, 3, 3, 0, 0, tzinfo=PLUS_TWO)


def test_offset_zero_days_is_empty_range():
    start, end = offset_range(1, 0, now=NOW)
    assert start == end


@pytest.mark.parametrize("offset, days", [(-1, None), (0, -2)])
def test_offset_rejects_negative(offset, days):
    with pytest.raises(InvalidInput):
        offset_range(offset, days, now=NOW)


def test_date_range_is_inclusive_in_local_time():
    start, end = date_range("2024-03-01", "2024-03-02", now=NOW)
    assert start == datetime(2024, 2, 29, 22, 0, tzinfo=timezone.utc)
    assert end == datetime(2024, 3, 2, 21, 59, 59, tzinfo=timezone.utc)


def test_date_range_single_day():
    start, end = date_range("2024-03-04", "2024-03-04", now=NOW)
    assert end - start == timedelta(hours=23, minutes=59, seconds=59)


@pytest.mark.parametrize(
    "day_start, day_end",
    [
        ("2024-3-1x", "2024-03-02"),
        ("2024-03-01", "03/02/2024"),
        ("", "2024-03-02"),
        ("2024-03-02", "2024-03-01"),
    ],
)
def test_date_range_rejects_bad_input(day_start, day_end):
    with pytest.raises(InvalidInput):
        date_range(day_start, day_end, now=NOW)


def test_local_dates_cover_every_day_in_range():
    start, end = date_range("2024-03-01", "2024-03-03", now=NOW)
    assert local_dates(start, end, now=NOW) == [date(2024, 3, 1), date(2024, 3, 2), date(2024, 3, 3)]


def test_local_dates_stop_before_exclusive_midnight():
    start, end = offset_range(2, 1, now=NOW)
    assert local_dates(start, end, now=NOW) == [date(2024, 3, 2)]


def test_local_dates_of_empty_range():
    start, end = offset_range(1, 0, now=NOW)
    assert local_dates(start, end) == []


def test_local_dates_match_resolved_range_in_dst_zone(berlin_local_time):
    start, end = date_range("2024-07-30", "2024-08-01")
    assert local_dates(start, end) == [date(2024, 7, 30), date(2024, 7, 31), date(2024, 8, 1)]
    start, end = date_range("2024-01-30", "2024-01-30")
    assert local_dates(start, end) == [date(2024, 1, 30)]
