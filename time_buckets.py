from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Optional

from business_time import business_today
from errors import TimeBucketRequiredError
from models import Reservation


class TimeBucket(str, Enum):
    PAST = "PAST"
    CURRENT = "CURRENT"
    FUTURE = "FUTURE"


def classify_days(start_day: Optional[date], end_day: Optional[date], today: Optional[date]) -> TimeBucket:
    """
    PAST when the return day is before today, FUTURE when the pickup day is
    after today, CURRENT when today lies in [pickup day, return day].
    """
    if start_day is None or end_day is None or today is None:
        raise TimeBucketRequiredError("timeBucket is required: reservation days and today must be known")
    if end_day < start_day:
        raise TimeBucketRequiredError(
            f"timeBucket is required: return day {end_day} precedes pickup day {start_day}"
        )

    if end_day < today:
        return TimeBucket.PAST
    if start_day > today:
        return TimeBucket.FUTURE
    return TimeBucket.CURRENT


def classify(reservation: Optional[Reservation], now: Optional[datetime]) -> TimeBucket:
    if reservation is None or now is None:
        raise TimeBucketRequiredError("timeBucket is required: reservation and now must be given")
    return classify_days(
        reservation.business_start_day,
        reservation.business_end_day,
        business_today(now),
    )
