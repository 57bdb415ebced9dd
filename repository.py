from __future__ import annotations

from contextlib import contextmanager
from dataclasses import replace
from threading import Lock
from typing import Dict, Iterable, Iterator, List, Optional

from errors import DuplicateOrderNumberError
from models import DiscountWindow, Reservation, Vehicle


class InMemoryRentalRepository:
    """
    Arena store for vehicles and reservations.

    Reservations reference each other (and their vehicle) by id only.
    ``_lock`` guards the dictionaries; ``vehicle_lock`` serializes the
    read-check-write cycle of one vehicle so two overlapping bookings for
    the same car cannot both pass the conflict check.
    """

    def __init__(self) -> None:
        self._vehicles: Dict[str, Vehicle] = {}
        self._reservations: Dict[str, Reservation] = {}
        self._discount: Optional[DiscountWindow] = None
        self._lock = Lock()
        self._vehicle_locks: Dict[str, Lock] = {}

    @contextmanager
    def vehicle_lock(self, car_id: str) -> Iterator[None]:
        with self._lock:
            lock = self._vehicle_locks.setdefault(car_id, Lock())
        with lock:
            yield

    # Vehicles
    def add_vehicle(self, vehicle: Vehicle) -> None:
        with self._lock:
            self._vehicles[vehicle.car_id] = vehicle

    def get_vehicle(self, car_id: str) -> Optional[Vehicle]:
        with self._lock:
            return self._vehicles.get(car_id)

    def delete_vehicle(self, car_id: str) -> bool:
        # Reservations of a deleted vehicle are kept.
        with self._lock:
            return self._vehicles.pop(car_id, None) is not None

    # Discount window (at most one active)
    def get_discount(self) -> Optional[DiscountWindow]:
        with self._lock:
            return self._discount

    def set_discount(self, window: Optional[DiscountWindow]) -> None:
        with self._lock:
            self._discount = window

    # Reservations
    def get(self, reservation_id: str) -> Optional[Reservation]:
        with self._lock:
            return self._reservations.get(reservation_id)

    def list_by_vehicle(self, car_id: str) -> List[Reservation]:
        with self._lock:
            return [r for r in self._reservations.values() if r.car_id == car_id]

    def save_many(self, reservations: Iterable[Reservation]) -> None:
        """
        Write a reservation together with its conflict partners in one step.

        Stored business days are re-derived from the instants, and order
        numbers must stay unique; on a duplicate nothing is written.
        """
        batch = [r.normalized() for r in reservations]
        with self._lock:
            batch_ids = {r.reservation_id for r in batch}
            taken = {
                r.order_number: r.reservation_id
                for r in self._reservations.values()
                if r.reservation_id not in batch_ids
            }
            for r in batch:
                owner = taken.setdefault(r.order_number, r.reservation_id)
                if owner != r.reservation_id:
                    raise DuplicateOrderNumberError(f"Order number {r.order_number} already exists")

            for r in batch:
                is_new = r.reservation_id not in self._reservations
                self._reservations[r.reservation_id] = r
                vehicle = self._vehicles.get(r.car_id)
                if is_new and vehicle is not None:
                    self._vehicles[r.car_id] = replace(
                        vehicle, reservation_ids=vehicle.reservation_ids + [r.reservation_id]
                    )

    def delete(self, reservation_id: str) -> Optional[Reservation]:
        """Remove a reservation and every reference to it held by other reservations."""
        with self._lock:
            removed = self._reservations.pop(reservation_id, None)
            if removed is None:
                return None

            for other_id, other in list(self._reservations.items()):
                if reservation_id in other.conflicting_reservation_ids:
                    self._reservations[other_id] = replace(
                        other,
                        conflicting_reservation_ids=other.conflicting_reservation_ids - {reservation_id},
                    )

            vehicle = self._vehicles.get(removed.car_id)
            if vehicle is not None and reservation_id in vehicle.reservation_ids:
                self._vehicles[removed.car_id] = replace(
                    vehicle,
                    reservation_ids=[i for i in vehicle.reservation_ids if i != reservation_id],
                )
            return removed

    def reset(self) -> None:
        """Clear all data. For testing only."""
        with self._lock:
            self._vehicles.clear()
            self._reservations.clear()
            self._discount = None
            self._vehicle_locks.clear()


class RepositoryDiscountProvider:
    """Reads the active discount window from the store on every quote."""

    def __init__(self, repo: InMemoryRentalRepository) -> None:
        self._repo = repo

    def active_discount(self) -> Optional[DiscountWindow]:
        return self._repo.get_discount()
