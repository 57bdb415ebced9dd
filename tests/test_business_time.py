from datetime import date, datetime, timedelta, timezone

import pytest

from business_time import (
    business_day,
    business_instant,
    business_today,
    format_clock,
    intervals_overlap,
    parse_clock,
    resolve_instant,
    to_business_datetime,
    to_instant,
    utc_iso_z,
)


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def test_date_only_is_business_midnight_in_winter():
    assert to_instant("2026-01-15") == utc(2026, 1, 14, 22, 0)


def test_date_only_is_business_midnight_in_summer():
    assert to_instant("2026-07-01") == utc(2026, 6, 30, 21, 0)


def test_date_object_matches_date_only_string():
    assert to_instant(date(2026, 5, 6)) == to_instant("2026-05-06")


def test_business_day_rolls_over_at_athens_midnight():
    assert business_day("2026-01-14T22:00:00Z") == date(2026, 1, 15)
    assert business_day("2026-01-14T21:59:59Z") == date(2026, 1, 14)
    assert business_day("2026-07-14T21:00:00Z") == date(2026, 7, 15)
    assert business_day("2026-07-14T20:59:59Z") == date(2026, 7, 14)


def test_business_day_accepts_any_offset():
    assert business_day("2026-05-06T23:30:00+03:00") == date(2026, 5, 6)
    assert business_day("2026-05-06T23:30:00-05:00") == date(2026, 5, 7)


def test_business_instant_uses_offset_of_that_day():
    assert business_instant("2026-01-15", "12:00") == utc(2026, 1, 15, 10, 0)
    assert business_instant("2026-07-15", "12:00") == utc(2026, 7, 15, 9, 0)


def test_business_instant_across_spring_forward():
    # Clocks move from 03:00 to 04:00 on 2026-03-29.
    assert business_instant(date(2026, 3, 29), "01:00") == utc(2026, 3, 28, 23, 0)
    assert business_instant(date(2026, 3, 29), "05:00") == utc(2026, 3, 29, 2, 0)


def test_business_day_and_instant_round_trip():
    instant = business_instant("2026-10-25", "10:30")
    assert business_day(instant) == date(2026, 10, 25)
    assert format_clock(instant) == "10:30"


def test_business_today_uses_business_timezone():
    assert business_today(utc(2026, 5, 10, 21, 30)) == date(2026, 5, 11)


def test_naive_timestamp_is_rejected():
    with pytest.raises(ValueError):
        to_business_datetime("2026-01-15T10:00:00")

    with pytest.raises(ValueError):
        to_business_datetime(datetime(2026, 1, 15, 10, 0))


def test_empty_timestamp_is_rejected():
    with pytest.raises(ValueError):
        to_business_datetime("  ")


@pytest.mark.parametrize("value", ["25:00", "7:00", "12:60", "noon", ""])
def test_parse_clock_rejects_bad_values(value):
    with pytest.raises(ValueError):
        parse_clock(value)


def test_resolve_instant_combines_date_and_clock():
    assert resolve_instant("2026-05-06", "14:00") == utc(2026, 5, 6, 11, 0)


def test_resolve_instant_ignores_clock_next_to_full_timestamp():
    assert resolve_instant("2026-05-06T10:00:00Z", "14:00") == utc(2026, 5, 6, 10, 0)


def test_utc_iso_z_formats_any_offset_as_utc():
    assert utc_iso_z(to_business_datetime("2026-05-06")) == "2026-05-05T21:00:00Z"


def test_touching_intervals_do_not_overlap():
    a_start, a_end = utc(2026, 5, 6), utc(2026, 5, 9)
    b_start, b_end = utc(2026, 5, 9), utc(2026, 5, 12)

    assert not intervals_overlap(a_start, a_end, b_start, b_end)
    assert not intervals_overlap(b_start, b_end, a_start, a_end)


def test_buffer_turns_touching_into_overlap():
    a_start, a_end = utc(2026, 5, 6), utc(2026, 5, 9)
    b_start, b_end = utc(2026, 5, 9), utc(2026, 5, 12)

    assert intervals_overlap(a_start, a_end, b_start, b_end, timedelta(hours=2))
