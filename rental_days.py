from __future__ import annotations

import logging
from typing import Optional

from business_time import DateLike, business_day
from errors import InvalidDurationError

logger = logging.getLogger(__name__)


def rental_days(start: DateLike, end: DateLike) -> int:
    """
    Whole business days between pickup and return.

    Counted as the difference of the two business calendar days, so a
    14:00 pickup and a 10:00 return three days later is a 3-day rental.
    Same-day or inverted ranges raise InvalidDurationError.
    """
    start_day = business_day(start)
    end_day = business_day(end)
    days = (end_day - start_day).days
    if days <= 0:
        raise InvalidDurationError(
            f"Return day {end_day.isoformat()} must be after pickup day {start_day.isoformat()}"
        )
    return days


def reconcile_days(start: DateLike, end: DateLike, supplied: Optional[int] = None) -> int:
    """Day count derived from the instants; a disagreeing supplied count is logged and dropped."""
    days = rental_days(start, end)
    if supplied is not None and supplied != days:
        logger.warning(
            f"Ignoring supplied number_of_days={supplied}; instants give {days} days"
        )
    return days
