from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import FrozenSet, Iterable, List, Optional

from business_time import business_day, format_clock, intervals_overlap, utc_iso_z
from models import Reservation

logger = logging.getLogger(__name__)


class ConflictOutcome(str, Enum):
    FREE = "FREE"
    SOFT_CONFLICT = "SOFT_CONFLICT"
    HARD_CONFLICT = "HARD_CONFLICT"


@dataclass(frozen=True)
class ConflictResult:
    outcome: ConflictOutcome
    conflicting_ids: FrozenSet[str] = frozenset()
    confirmed_ids: FrozenSet[str] = frozenset()
    # Overlapping span of the candidate with the reservations that decided the outcome.
    conflict_start: Optional[datetime] = None
    conflict_end: Optional[datetime] = None
    # Athens HH:mm limits on the candidate's pickup and return days.
    min_pickup_time: Optional[str] = None
    max_return_time: Optional[str] = None

    @property
    def message(self) -> Optional[str]:
        if self.outcome is ConflictOutcome.HARD_CONFLICT:
            return "Dates unavailable: time has conflict with confirmed bookings"
        if self.outcome is ConflictOutcome.SOFT_CONFLICT:
            return "Time has conflict with unconfirmed bookings"
        return None

    def as_dict(self) -> dict:
        return {
            "outcome": self.outcome.value,
            "conflicting_reservation_ids": sorted(self.conflicting_ids),
            "conflict_start": utc_iso_z(self.conflict_start) if self.conflict_start else None,
            "conflict_end": utc_iso_z(self.conflict_end) if self.conflict_end else None,
            "message": self.message,
            "min_pickup_time": self.min_pickup_time,
            "max_return_time": self.max_return_time,
        }


@dataclass(frozen=True)
class BoundaryLimits:
    min_pickup_time: Optional[str] = None
    max_return_time: Optional[str] = None


def boundary_limits(
    reservations: Iterable[Reservation],
    day: date,
    *,
    buffer: timedelta = timedelta(0),
    exclude_id: Optional[str] = None,
) -> BoundaryLimits:
    """
    Earliest pickup and latest return on a business day around confirmed bookings.

    A confirmed booking returned on ``day`` pushes the earliest pickup to its
    return plus the buffer; one picked up on ``day`` pulls the latest return
    back to its pickup minus the buffer. Pending bookings impose nothing.
    """
    earliest: Optional[datetime] = None
    latest: Optional[datetime] = None

    for other in reservations:
        if not other.confirmed or other.reservation_id == exclude_id:
            continue
        if business_day(other.end_utc) == day:
            pickup = other.end_utc + buffer
            if earliest is None or pickup > earliest:
                earliest = pickup
        if business_day(other.start_utc) == day:
            drop_off = other.start_utc - buffer
            if latest is None or drop_off < latest:
                latest = drop_off

    return BoundaryLimits(
        min_pickup_time=format_clock(earliest) if earliest else None,
        max_return_time=format_clock(latest) if latest else None,
    )


def _overlap_span(overlapping: List[Reservation], start: datetime, end: datetime):
    if not overlapping:
        return None, None
    spans = [(max(start, r.start_utc), min(end, r.end_utc)) for r in overlapping]
    return min(s for s, _ in spans), max(e for _, e in spans)


def check_conflicts(
    existing: Iterable[Reservation],
    candidate_start: datetime,
    candidate_end: datetime,
    *,
    exclude_id: Optional[str] = None,
    buffer: timedelta = timedelta(0),
    trace: Optional[logging.Logger] = None,
) -> ConflictResult:
    """
    Classify a candidate interval against a vehicle's reservations.

    Overlap is half-open: a candidate ending exactly when another
    reservation starts (or starting when it ends) does not conflict.
    Any overlap with a confirmed reservation is a hard conflict; overlaps
    with pending reservations only are soft. A conflicting result also
    carries the earliest pickup and latest return that confirmed
    neighbours leave free on the candidate's pickup and return days.
    """
    log = trace or logger
    existing = [r for r in existing if exclude_id is None or r.reservation_id != exclude_id]
    overlapping: List[Reservation] = []

    for other in existing:
        hit = intervals_overlap(candidate_start, candidate_end, other.start_utc, other.end_utc, buffer)
        log.debug(
            "overlap check",
            extra={
                "candidate_start": utc_iso_z(candidate_start),
                "candidate_end": utc_iso_z(candidate_end),
                "other_id": other.reservation_id,
                "other_confirmed": other.confirmed,
                "overlap": hit,
            },
        )
        if hit:
            overlapping.append(other)

    if not overlapping:
        return ConflictResult(ConflictOutcome.FREE)

    limits = {
        "min_pickup_time": boundary_limits(
            existing, business_day(candidate_start), buffer=buffer
        ).min_pickup_time,
        "max_return_time": boundary_limits(
            existing, business_day(candidate_end), buffer=buffer
        ).max_return_time,
    }

    confirmed = [r for r in overlapping if r.confirmed]
    if confirmed:
        span_start, span_end = _overlap_span(confirmed, candidate_start, candidate_end)
        return ConflictResult(
            ConflictOutcome.HARD_CONFLICT,
            conflicting_ids=frozenset(r.reservation_id for r in confirmed),
            confirmed_ids=frozenset(r.reservation_id for r in confirmed),
            conflict_start=span_start,
            conflict_end=span_end,
            **limits,
        )

    span_start, span_end = _overlap_span(overlapping, candidate_start, candidate_end)
    return ConflictResult(
        ConflictOutcome.SOFT_CONFLICT,
        conflicting_ids=frozenset(r.reservation_id for r in overlapping),
        conflict_start=span_start,
        conflict_end=span_end,
        **limits,
    )


@dataclass(frozen=True)
class ConflictReconciliation:
    """Conflict-set changes caused by moving one reservation to a new interval."""

    result: ConflictResult
    kept: FrozenSet[str] = frozenset()
    dropped: FrozenSet[str] = frozenset()
    added: FrozenSet[str] = frozenset()

    @property
    def conflicting_ids(self) -> FrozenSet[str]:
        return self.kept | self.added


def reconcile_conflicts(
    reservation_id: str,
    previous_ids: Iterable[str],
    others: Iterable[Reservation],
    new_start: datetime,
    new_end: datetime,
    *,
    buffer: timedelta = timedelta(0),
    trace: Optional[logging.Logger] = None,
) -> ConflictReconciliation:
    """
    Re-evaluate a reservation's conflict set for a new interval.

    Previously recorded partners that no longer overlap (or now only
    touch) are dropped, those still overlapping are kept, and newly
    overlapping pending reservations are added. A hard conflict leaves
    every set untouched; the caller must reject the edit.
    """
    previous = frozenset(previous_ids)
    result = check_conflicts(
        others, new_start, new_end, exclude_id=reservation_id, buffer=buffer, trace=trace
    )
    if result.outcome is ConflictOutcome.HARD_CONFLICT:
        return ConflictReconciliation(result=result, kept=previous)

    current = result.conflicting_ids
    return ConflictReconciliation(
        result=result,
        kept=previous & current,
        dropped=previous - current,
        added=current - previous,
    )


@dataclass(frozen=True)
class ConfirmationAnalysis:
    can_confirm: bool
    blocked_by: FrozenSet[str] = field(default_factory=frozenset)
    affected_pending: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def message(self) -> Optional[str]:
        if not self.can_confirm:
            return "Overlaps a confirmed booking; cannot confirm"
        if len(self.affected_pending) == 1:
            return "Confirmed. One pending booking overlaps and cannot be confirmed without changing its time"
        if self.affected_pending:
            return (
                f"Confirmed. {len(self.affected_pending)} pending bookings overlap and cannot be "
                f"confirmed without changing their time"
            )
        return None


def analyze_confirmation(
    reservation: Reservation,
    others: Iterable[Reservation],
    *,
    buffer: timedelta = timedelta(0),
) -> ConfirmationAnalysis:
    """Confirming is blocked by confirmed overlaps; pending overlaps are only reported."""
    if reservation.confirmed:
        return ConfirmationAnalysis(can_confirm=True)

    blocked, affected = set(), set()
    for other in others:
        if other.reservation_id == reservation.reservation_id:
            continue
        if not intervals_overlap(
            reservation.start_utc, reservation.end_utc, other.start_utc, other.end_utc, buffer
        ):
            continue
        (blocked if other.confirmed else affected).add(other.reservation_id)

    return ConfirmationAnalysis(
        can_confirm=not blocked,
        blocked_by=frozenset(blocked),
        affected_pending=frozenset(affected),
    )
