from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional
from uuid import uuid4

import config
from access_policy import AccessContext, AccessDecision, check_field_access, get_access
from business_time import (
    business_day,
    business_instant,
    business_today,
    format_clock,
    is_date_only,
    resolve_instant,
)
from conflicts import (
    ConflictOutcome,
    ConflictResult,
    analyze_confirmation,
    check_conflicts,
    reconcile_conflicts,
)
from errors import (
    InvalidDurationError,
    PermissionDeniedError,
    ReservationNotFoundError,
    StartInPastError,
    VehicleNotFoundError,
)
from models import (
    AccessOut,
    AddOns,
    BookingOut,
    ConflictOut,
    CreateReservationIn,
    CustomerContact,
    DeleteOut,
    DiscountIn,
    DiscountOut,
    DiscountWindow,
    NotificationOut,
    Ownership,
    PriceQuoteIn,
    PriceQuoteOut,
    Reservation,
    ReservationOut,
    Role,
    UpdateOut,
    UpdateReservationIn,
    Vehicle,
    VehicleIn,
    VehicleOut,
)
from notifications import OrderAction, action_from_changed_fields, order_notifications
from pricing import PricingEngine
from rental_days import reconcile_days
from repository import InMemoryRentalRepository, RepositoryDiscountProvider
from time_buckets import TimeBucket, classify
from visibility import apply_visibility

logger = logging.getLogger(__name__)

CUSTOMER_FIELDS = ("customer_name", "phone", "email", "viber", "whatsapp", "telegram")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _pick(changes: Mapping[str, Any], name: str, fallback: Any) -> Any:
    # An explicit null leaves the stored value alone.
    value = changes.get(name)
    return fallback if value is None else value


def _vehicle_out(vehicle: Vehicle) -> VehicleOut:
    return VehicleOut(
        car_id=vehicle.car_id,
        car_number=vehicle.car_number,
        model=vehicle.model,
        pricing_tiers=vehicle.pricing_tiers,
        insurance_price_per_day=vehicle.insurance_price_per_day,
        child_seat_price_per_day=vehicle.child_seat_price_per_day,
        franchise=vehicle.franchise,
        reservation_ids=list(vehicle.reservation_ids),
    )


def _conflict_out(result: ConflictResult, message: Optional[str] = None) -> ConflictOut:
    data = result.as_dict()
    if message:
        data["message"] = message
    return ConflictOut(**data)


def _notifications_out(notes) -> List[NotificationOut]:
    return [NotificationOut(**n.as_dict()) for n in notes]


class ReservationService:
    def __init__(
        self,
        repo: InMemoryRentalRepository,
        pricing: Optional[PricingEngine] = None,
        clock: Optional[Callable[[], datetime]] = None,
        buffer_hours: float = config.CONFLICT_BUFFER_HOURS,
    ) -> None:
        self._repo = repo
        self._pricing = pricing or PricingEngine(discounts=RepositoryDiscountProvider(repo))
        self._clock = clock or _utc_now
        self._buffer = timedelta(hours=buffer_hours)

    # -----------------------------
    # Vehicles, discount, quotes
    # -----------------------------
    def add_vehicle(self, payload: VehicleIn) -> VehicleOut:
        self._pricing.validate_tiers(payload.pricing_tiers)
        vehicle = Vehicle(
            car_id=f"car_{uuid4().hex}",
            car_number=payload.car_number,
            model=payload.model,
            pricing_tiers=payload.pricing_tiers,
            insurance_price_per_day=payload.insurance_price_per_day,
            child_seat_price_per_day=payload.child_seat_price_per_day,
            franchise=payload.franchise,
        )
        self._repo.add_vehicle(vehicle)
        logger.info(f"Vehicle {vehicle.car_number} added as {vehicle.car_id}")
        return _vehicle_out(vehicle)

    def get_vehicle(self, car_id: str) -> VehicleOut:
        return _vehicle_out(self._vehicle_or_raise(car_id))

    def delete_vehicle(self, car_id: str) -> None:
        if not self._repo.delete_vehicle(car_id):
            raise VehicleNotFoundError(f"Vehicle {car_id} not found")
        logger.info(f"Vehicle {car_id} deleted; its reservations are kept")

    def set_discount(self, payload: DiscountIn) -> DiscountOut:
        if payload.end_day < payload.start_day:
            raise InvalidDurationError("Discount window ends before it starts")
        self._repo.set_discount(
            DiscountWindow(payload.start_day, payload.end_day, payload.percentage)
        )
        logger.info(
            f"Discount {payload.percentage}% active {payload.start_day}..{payload.end_day}"
        )
        return DiscountOut(
            start_day=payload.start_day, end_day=payload.end_day, percentage=payload.percentage
        )

    def clear_discount(self) -> None:
        self._repo.set_discount(None)
        logger.info("Discount cleared")

    def quote(self, payload: PriceQuoteIn) -> PriceQuoteOut:
        vehicle = self._vehicle_or_raise(payload.car_id)
        q = self._pricing.compute_price(
            vehicle,
            payload.start,
            payload.end,
            payload.insurance,
            payload.child_seats,
            payload.second_driver,
        )
        return PriceQuoteOut(
            total=q.total,
            days=q.days,
            base_total=q.base_total,
            insurance_total=q.insurance_total,
            child_seats_total=q.child_seats_total,
            second_driver_total=q.second_driver_total,
            missing_price_days=q.missing_price_days,
        )

    # -----------------------------
    # Reservations
    # -----------------------------
    def create_reservation(
        self, payload: CreateReservationIn, role: Optional[Role] = None
    ) -> BookingOut:
        """
        Book a vehicle.

        Without a staff role the request is a public booking: client-owned,
        unconfirmed and not allowed to start before today. A hard conflict
        is returned as an outcome with no reservation; a soft conflict is
        stored and cross-referenced on both sides.
        """
        start = resolve_instant(payload.start, payload.pickup_time)
        end = resolve_instant(payload.end, payload.return_time)
        days = reconcile_days(start, end, payload.number_of_days)

        if role is None:
            ownership, confirmed, created_by = Ownership.CLIENT, False, Role.ADMIN
            if business_day(start) < business_today(self._clock()):
                raise StartInPastError("Booking cannot start in the past")
        else:
            ownership = payload.ownership or Ownership.INTERNAL
            confirmed, created_by = payload.confirmed, role

        vehicle = self._vehicle_or_raise(payload.car_id)
        add_ons = AddOns(payload.insurance, payload.child_seats, payload.second_driver)
        quote = self._pricing.compute_price(
            vehicle, start, end, add_ons.insurance, add_ons.child_seats, add_ons.second_driver
        )

        with self._repo.vehicle_lock(vehicle.car_id):
            existing = self._repo.list_by_vehicle(vehicle.car_id)
            result = check_conflicts(existing, start, end, buffer=self._buffer)

            if result.outcome is ConflictOutcome.HARD_CONFLICT:
                logger.info(
                    f"Booking rejected for {vehicle.car_number}: overlaps confirmed "
                    f"{sorted(result.conflicting_ids)}"
                )
                return BookingOut(outcome=result.outcome.value, conflict=_conflict_out(result))

            optional: Dict[str, Any] = {}
            if payload.place_in:
                optional["place_in"] = payload.place_in
            if payload.place_out:
                optional["place_out"] = payload.place_out

            reservation = Reservation(
                reservation_id=f"res_{uuid4().hex}",
                order_number=payload.order_number or uuid4().hex[:8].upper(),
                car_id=vehicle.car_id,
                start_utc=start,
                end_utc=end,
                business_start_day=business_day(start),
                business_end_day=business_day(end),
                number_of_days=days,
                total_price=quote.total,
                confirmed=confirmed,
                ownership=ownership,
                created_by_role=created_by,
                conflicting_reservation_ids=result.conflicting_ids,
                add_ons=add_ons,
                customer=CustomerContact(
                    customer_name=payload.customer_name,
                    phone=payload.phone,
                    email=payload.email,
                    viber=payload.viber,
                    whatsapp=payload.whatsapp,
                    telegram=payload.telegram,
                ),
                franchise=vehicle.franchise,
                flight_number=payload.flight_number,
                car_model=vehicle.model,
                **optional,
            )
            partners = [
                replace(
                    other,
                    conflicting_reservation_ids=other.conflicting_reservation_ids
                    | {reservation.reservation_id},
                )
                for other in existing
                if other.reservation_id in result.conflicting_ids
            ]
            self._repo.save_many([reservation, *partners])

        logger.info(
            f"Reservation {reservation.order_number} created for {vehicle.car_number} "
            f"({result.outcome.value}, {days} days, total {quote.total})"
        )

        access = self._access_for(reservation, role or Role.ADMIN)
        notes = order_notifications(OrderAction.CREATE, access, reservation)
        record = reservation.to_record() if role is None else self._record(reservation, access)
        return BookingOut(
            outcome=result.outcome.value,
            reservation=ReservationOut(**record),
            conflict=_conflict_out(result),
            notifications=_notifications_out(notes),
        )

    def update_reservation(
        self, reservation_id: str, payload: UpdateReservationIn, role: Role
    ) -> UpdateOut:
        """
        Apply a partial edit.

        Every changed field is checked against the viewer's access first.
        Day count, price and conflict references are recomputed from the
        resulting instants and written together with the affected partner
        reservations.
        """
        # A null keeps the stored value, except for override_price where it clears it.
        changes = {
            name: value
            for name, value in payload.changes().items()
            if value is not None or name == "override_price"
        }
        car_id = self._reservation_or_raise(reservation_id).car_id

        with self._repo.vehicle_lock(car_id):
            current = self._reservation_or_raise(reservation_id)
            access = self._access_for(current, role)
            check_field_access(access, changes)

            start = self._moved_instant(changes.get("start"), changes.get("pickup_time"), current.start_utc)
            end = self._moved_instant(changes.get("end"), changes.get("return_time"), current.end_utc)
            days = reconcile_days(start, end, changes.get("number_of_days"))

            others = [
                r for r in self._repo.list_by_vehicle(car_id) if r.reservation_id != reservation_id
            ]
            recon = reconcile_conflicts(
                reservation_id,
                current.conflicting_reservation_ids,
                others,
                start,
                end,
                buffer=self._buffer,
            )
            if recon.result.outcome is ConflictOutcome.HARD_CONFLICT:
                logger.info(
                    f"Edit of {current.order_number} rejected: overlaps confirmed "
                    f"{sorted(recon.result.conflicting_ids)}"
                )
                return UpdateOut(
                    outcome=recon.result.outcome.value,
                    reservation=ReservationOut(**self._record(current, access)),
                    conflict=_conflict_out(recon.result),
                    notify_superadmin=False,
                    notifications=[],
                )

            confirmed = _pick(changes, "confirmed", current.confirmed)
            confirm_message = None
            if confirmed and not current.confirmed:
                analysis = analyze_confirmation(
                    replace(current, start_utc=start, end_utc=end), others, buffer=self._buffer
                )
                confirm_message = analysis.message

            add_ons = AddOns(
                insurance=_pick(changes, "insurance", current.add_ons.insurance),
                child_seats=_pick(changes, "child_seats", current.add_ons.child_seats),
                second_driver=_pick(changes, "second_driver", current.add_ons.second_driver),
            )
            total_price = self._reprice(current, start, end, add_ons)
            override_price = (
                changes["override_price"] if "override_price" in changes else current.override_price
            )
            customer = replace(
                current.customer,
                **{name: changes[name] for name in CUSTOMER_FIELDS if changes.get(name) is not None},
            )

            updated = replace(
                current,
                start_utc=start,
                end_utc=end,
                number_of_days=days,
                total_price=total_price,
                override_price=override_price,
                confirmed=confirmed,
                conflicting_reservation_ids=recon.conflicting_ids,
                add_ons=add_ons,
                customer=customer,
                franchise=_pick(changes, "franchise", current.franchise),
                place_in=_pick(changes, "place_in", current.place_in),
                place_out=_pick(changes, "place_out", current.place_out),
                flight_number=_pick(changes, "flight_number", current.flight_number),
            ).normalized()

            by_id = {r.reservation_id: r for r in others}
            partners = [
                replace(
                    by_id[i],
                    conflicting_reservation_ids=by_id[i].conflicting_reservation_ids - {reservation_id},
                )
                for i in recon.dropped
                if i in by_id
            ] + [
                replace(
                    by_id[i],
                    conflicting_reservation_ids=by_id[i].conflicting_reservation_ids | {reservation_id},
                )
                for i in recon.added
                if i in by_id
            ]
            self._repo.save_many([updated, *partners])

        logger.info(
            f"Reservation {updated.order_number} edited by {Role(role).value}: "
            f"{sorted(changes)}"
        )

        notes = []
        if changes:
            action = action_from_changed_fields(changes, changes)
            notes = order_notifications(action, access, updated)

        return UpdateOut(
            outcome=recon.result.outcome.value,
            reservation=ReservationOut(**self._record(updated, self._access_for(updated, role))),
            conflict=_conflict_out(recon.result, confirm_message),
            notify_superadmin=access.notify_superadmin_on_edit and bool(changes),
            notifications=_notifications_out(notes),
        )

    def confirm_reservation(self, reservation_id: str, role: Role) -> UpdateOut:
        return self.update_reservation(reservation_id, UpdateReservationIn(confirmed=True), role)

    def delete_reservation(self, reservation_id: str, role: Role) -> DeleteOut:
        car_id = self._reservation_or_raise(reservation_id).car_id

        with self._repo.vehicle_lock(car_id):
            current = self._reservation_or_raise(reservation_id)
            access = self._access_for(current, role)
            if not access.can_delete:
                raise PermissionDeniedError()
            notes = order_notifications(OrderAction.DELETE, access, current)
            self._repo.delete(reservation_id)

        logger.info(f"Reservation {current.order_number} deleted by {Role(role).value}")
        return DeleteOut(reservation_id=reservation_id, notifications=_notifications_out(notes))

    def get_reservation(self, reservation_id: str, role: Role) -> ReservationOut:
        reservation = self._reservation_or_raise(reservation_id)
        return ReservationOut(**self._record(reservation, self._access_for(reservation, role)))

    def get_access(self, reservation_id: str, role: Role) -> AccessOut:
        reservation = self._reservation_or_raise(reservation_id)
        return AccessOut(**self._access_for(reservation, role).as_dict())

    def list_reservations_for_vehicle(self, car_id: str, role: Role) -> List[ReservationOut]:
        items = self._repo.list_by_vehicle(car_id)
        items.sort(key=lambda r: r.start_utc)
        return [ReservationOut(**self._record(r, self._access_for(r, role))) for r in items]

    # -----------------------------
    # Helpers
    # -----------------------------
    def _vehicle_or_raise(self, car_id: str) -> Vehicle:
        vehicle = self._repo.get_vehicle(car_id)
        if vehicle is None:
            raise VehicleNotFoundError(f"Vehicle {car_id} not found")
        return vehicle

    def _reservation_or_raise(self, reservation_id: str) -> Reservation:
        reservation = self._repo.get(reservation_id)
        if reservation is None:
            raise ReservationNotFoundError(f"Reservation {reservation_id} not found")
        return reservation

    def _access_for(self, reservation: Reservation, role: Role) -> AccessDecision:
        bucket = classify(reservation, self._clock())
        return get_access(
            AccessContext(
                role=role,
                is_client_order=reservation.is_client_order,
                confirmed=reservation.confirmed,
                time_bucket=bucket,
                is_past=bucket is TimeBucket.PAST,
                created_by_role=reservation.created_by_role,
            )
        )

    @staticmethod
    def _record(reservation: Reservation, access: AccessDecision) -> Dict[str, Any]:
        return apply_visibility(reservation.to_record(), access)

    @staticmethod
    def _moved_instant(value: Optional[str], clock: Optional[str], current: datetime) -> datetime:
        """New pickup/return instant; a missing half keeps the stored day or clock time."""
        if value is None and clock is None:
            return current
        if value is None:
            return business_instant(business_day(current), clock)
        if clock is None and is_date_only(value):
            clock = format_clock(current)
        return resolve_instant(value, clock)

    def _reprice(
        self, current: Reservation, start: datetime, end: datetime, add_ons: AddOns
    ) -> float:
        vehicle = self._repo.get_vehicle(current.car_id)
        if vehicle is None:
            logger.warning(
                f"Vehicle {current.car_id} of reservation {current.order_number} no longer "
                f"exists; keeping stored price {current.total_price}"
            )
            return current.total_price
        return self._pricing.compute_price(
            vehicle, start, end, add_ons.insurance, add_ons.child_seats, add_ons.second_driver
        ).total
