from datetime import date, datetime, timezone

import pytest

from errors import TimeBucketRequiredError
from time_buckets import TimeBucket, classify, classify_days

# 13:00 in Athens on 10 May.
NOW = datetime(2026, 5, 10, 10, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "start, end, bucket",
    [
        ("2026-05-01", "2026-05-05", TimeBucket.PAST),
        ("2026-05-01", "2026-05-09", TimeBucket.PAST),
        ("2026-05-08", "2026-05-10", TimeBucket.CURRENT),
        ("2026-05-10", "2026-05-12", TimeBucket.CURRENT),
        ("2026-05-09", "2026-05-14", TimeBucket.CURRENT),
        ("2026-05-11", "2026-05-14", TimeBucket.FUTURE),
    ],
)
def test_classify(make_reservation, start, end, bucket):
    assert classify(make_reservation(start, end), NOW) is bucket


def test_today_is_taken_in_business_timezone(make_reservation):
    # 21:30Z on 10 May is already 11 May in Athens.
    late_evening = datetime(2026, 5, 10, 21, 30, tzinfo=timezone.utc)

    assert classify(make_reservation("2026-05-11", "2026-05-14"), late_evening) is TimeBucket.CURRENT


def test_missing_reservation_is_an_error():
    with pytest.raises(TimeBucketRequiredError):
        classify(None, NOW)


def test_missing_now_is_an_error(make_reservation):
    with pytest.raises(TimeBucketRequiredError):
        classify(make_reservation("2026-05-11", "2026-05-14"), None)


def test_missing_day_is_an_error():
    with pytest.raises(TimeBucketRequiredError):
        classify_days(date(2026, 5, 1), None, date(2026, 5, 10))


def test_inverted_days_are_an_error():
    with pytest.raises(TimeBucketRequiredError):
        classify_days(date(2026, 5, 5), date(2026, 5, 1), date(2026, 5, 10))
