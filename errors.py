from __future__ import annotations

from typing import Sequence


class BookingError(Exception):
    """Base class for domain/service errors."""


class InvalidDurationError(BookingError):
    pass


class MissingPricingDataError(BookingError):
    pass


class UnknownSeasonError(BookingError):
    pass


class StartInPastError(BookingError):
    pass


class VehicleNotFoundError(BookingError):
    pass


class ReservationNotFoundError(BookingError):
    pass


class DuplicateOrderNumberError(BookingError):
    pass


class UnknownAccessContextError(BookingError):
    pass


class PermissionDeniedError(BookingError):
    def __init__(self, denied_fields: Sequence[str] = ()) -> None:
        self.denied_fields = list(denied_fields)
        if self.denied_fields:
            message = f"Not allowed to change: {', '.join(self.denied_fields)}"
        else:
            message = "Not allowed to perform this action on the reservation"
        super().__init__(message)


class TimeBucketRequiredError(Exception):
    """
    Raised when a reservation cannot be placed in PAST/CURRENT/FUTURE.

    Not a BookingError: it signals a caller bug and must never be turned
    into a user-facing response.
    """
