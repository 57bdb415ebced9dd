from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional

from pydantic import BaseModel, Field, field_validator

from business_time import business_day, parse_clock, to_business_datetime, utc_iso_z

DEFAULT_PLACE = "Nea Kallikratia"


# -----------------------------
# Enumerations
# -----------------------------
class Role(str, Enum):
    ADMIN = "ADMIN"
    SUPERADMIN = "SUPERADMIN"


class Ownership(str, Enum):
    CLIENT = "client"
    INTERNAL = "internal"


class InsuranceTier(str, Enum):
    TPL = "TPL"
    CDW = "CDW"


class DayBracket(str, Enum):
    """Pricing-tier columns by bracket label: "4" is 1-4 days, "7" is 5-14 days, "14" is longer."""

    A = "4"
    B = "7"
    C = "14"


# -----------------------------
# Domain model
# -----------------------------
@dataclass(frozen=True)
class Vehicle:
    car_id: str
    car_number: str
    model: str
    pricing_tiers: Dict[str, Dict[DayBracket, float]]
    insurance_price_per_day: float = 5
    child_seat_price_per_day: float = 3
    franchise: float = 300
    reservation_ids: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class DiscountWindow:
    start_day: date
    end_day: date
    percentage: float

    def covers(self, day: date) -> bool:
        return self.start_day <= day <= self.end_day


@dataclass(frozen=True)
class CustomerContact:
    customer_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    viber: bool = False
    whatsapp: bool = False
    telegram: bool = False


@dataclass(frozen=True)
class AddOns:
    insurance: InsuranceTier = InsuranceTier.TPL
    child_seats: int = 0
    second_driver: bool = False


@dataclass(frozen=True)
class Reservation:
    reservation_id: str
    order_number: str
    car_id: str
    start_utc: datetime  # aware, UTC
    end_utc: datetime    # aware, UTC
    business_start_day: date
    business_end_day: date
    number_of_days: int
    total_price: float
    confirmed: bool = False
    ownership: Ownership = Ownership.CLIENT
    created_by_role: Role = Role.ADMIN
    conflicting_reservation_ids: FrozenSet[str] = frozenset()
    add_ons: AddOns = AddOns()
    customer: CustomerContact = CustomerContact()
    override_price: Optional[float] = None
    franchise: float = 0
    place_in: str = DEFAULT_PLACE
    place_out: str = DEFAULT_PLACE
    flight_number: str = ""
    car_model: Optional[str] = None

    @property
    def is_client_order(self) -> bool:
        return self.ownership is Ownership.CLIENT

    @property
    def effective_price(self) -> float:
        return self.override_price if self.override_price is not None else self.total_price

    def normalized(self) -> "Reservation":
        """Copy with the stored business days re-derived from the instants."""
        return replace(
            self,
            business_start_day=business_day(self.start_utc),
            business_end_day=business_day(self.end_utc),
        )

    def to_record(self) -> Dict[str, Any]:
        """Plain response record, before visibility rules are applied."""
        return {
            "reservation_id": self.reservation_id,
            "order_number": self.order_number,
            "car_id": self.car_id,
            "car_model": self.car_model,
            "start": utc_iso_z(self.start_utc),
            "end": utc_iso_z(self.end_utc),
            "business_start_day": self.business_start_day.isoformat(),
            "business_end_day": self.business_end_day.isoformat(),
            "number_of_days": self.number_of_days,
            "confirmed": self.confirmed,
            "ownership": self.ownership.value,
            "created_by_role": self.created_by_role.value,
            "conflicting_reservation_ids": sorted(self.conflicting_reservation_ids),
            "insurance": self.add_ons.insurance.value,
            "child_seats": self.add_ons.child_seats,
            "second_driver": self.add_ons.second_driver,
            "total_price": self.total_price,
            "override_price": self.override_price,
            "effective_price": self.effective_price,
            "franchise": self.franchise,
            "place_in": self.place_in,
            "place_out": self.place_out,
            "flight_number": self.flight_number,
            "customer_name": self.customer.customer_name,
            "phone": self.customer.phone,
            "email": self.customer.email,
            "viber": self.customer.viber,
            "whatsapp": self.customer.whatsapp,
            "telegram": self.customer.telegram,
        }


# -----------------------------
# API models (transport layer)
# -----------------------------
def _validate_date_like(v: Optional[str]) -> Optional[str]:
    # Full timestamps must carry an offset; date-only strings are business days.
    if v is not None:
        to_business_datetime(v)
    return v


def _validate_clock(v: Optional[str]) -> Optional[str]:
    if v is not None:
        parse_clock(v)
    return v


class VehicleIn(BaseModel):
    car_number: str = Field(..., min_length=1)
    model: str = Field(..., min_length=1)
    pricing_tiers: Dict[str, Dict[DayBracket, float]]
    insurance_price_per_day: float = Field(5, ge=0)
    child_seat_price_per_day: float = Field(3, ge=0)
    franchise: float = Field(300, ge=0)

    @field_validator("pricing_tiers")
    @classmethod
    def prices_must_be_non_negative(cls, v: Dict[str, Dict[DayBracket, float]]):
        for season, brackets in v.items():
            for bracket, price in brackets.items():
                if price < 0:
                    raise ValueError(f"price for {season}/{bracket.value} must not be negative")
        return v


class VehicleOut(BaseModel):
    car_id: str
    car_number: str
    model: str
    pricing_tiers: Dict[str, Dict[DayBracket, float]]
    insurance_price_per_day: float
    child_seat_price_per_day: float
    franchise: float
    reservation_ids: List[str]


class DiscountIn(BaseModel):
    start_day: date
    end_day: date
    percentage: float = Field(..., gt=0, le=100)


class DiscountOut(BaseModel):
    start_day: date
    end_day: date
    percentage: float


class PriceQuoteIn(BaseModel):
    car_id: str = Field(..., min_length=1)
    start: str
    end: str
    insurance: InsuranceTier = InsuranceTier.TPL
    child_seats: int = Field(0, ge=0)
    second_driver: bool = False

    @field_validator("start", "end")
    @classmethod
    def must_be_date_like(cls, v: str) -> str:
        return _validate_date_like(v)


class PriceQuoteOut(BaseModel):
    total: float
    days: int
    base_total: float
    insurance_total: float
    child_seats_total: float
    second_driver_total: float
    missing_price_days: List[date]


class CreateReservationIn(BaseModel):
    car_id: str = Field(..., min_length=1)
    start: str
    end: str
    pickup_time: Optional[str] = None
    return_time: Optional[str] = None
    number_of_days: Optional[int] = None
    insurance: InsuranceTier = InsuranceTier.TPL
    child_seats: int = Field(0, ge=0)
    second_driver: bool = False
    customer_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    viber: bool = False
    whatsapp: bool = False
    telegram: bool = False
    place_in: Optional[str] = None
    place_out: Optional[str] = None
    flight_number: str = ""
    order_number: Optional[str] = None
    # Only honoured for staff requests; public bookings are client-owned and pending.
    ownership: Optional[Ownership] = None
    confirmed: bool = False

    @field_validator("start", "end")
    @classmethod
    def must_be_date_like(cls, v: str) -> str:
        return _validate_date_like(v)

    @field_validator("pickup_time", "return_time")
    @classmethod
    def must_be_clock(cls, v: Optional[str]) -> Optional[str]:
        return _validate_clock(v)


class UpdateReservationIn(BaseModel):
    start: Optional[str] = None
    end: Optional[str] = None
    pickup_time: Optional[str] = None
    return_time: Optional[str] = None
    number_of_days: Optional[int] = None
    place_in: Optional[str] = None
    place_out: Optional[str] = None
    flight_number: Optional[str] = None
    insurance: Optional[InsuranceTier] = None
    child_seats: Optional[int] = Field(None, ge=0)
    second_driver: Optional[bool] = None
    franchise: Optional[float] = Field(None, ge=0)
    override_price: Optional[float] = Field(None, ge=0)
    confirmed: Optional[bool] = None
    customer_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    viber: Optional[bool] = None
    whatsapp: Optional[bool] = None
    telegram: Optional[bool] = None

    @field_validator("start", "end")
    @classmethod
    def must_be_date_like(cls, v: Optional[str]) -> Optional[str]:
        return _validate_date_like(v)

    @field_validator("pickup_time", "return_time")
    @classmethod
    def must_be_clock(cls, v: Optional[str]) -> Optional[str]:
        return _validate_clock(v)

    def changes(self) -> Dict[str, Any]:
        """Fields the caller actually sent; an explicit null is a change too."""
        return {name: getattr(self, name) for name in self.model_fields_set}


class VisibilityMarker(BaseModel):
    hidden: bool
    reason: str


class ReservationOut(BaseModel):
    reservation_id: str
    order_number: str
    car_id: str
    car_model: Optional[str] = None
    start: str  # ISO-8601, UTC with Z
    end: str
    business_start_day: date
    business_end_day: date
    number_of_days: int
    confirmed: bool
    ownership: Ownership
    created_by_role: Role
    conflicting_reservation_ids: List[str]
    insurance: InsuranceTier
    child_seats: int
    second_driver: bool
    total_price: float
    override_price: Optional[float] = None
    effective_price: float
    franchise: float
    place_in: str
    place_out: str
    flight_number: str
    customer_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    viber: Optional[bool] = None
    whatsapp: Optional[bool] = None
    telegram: Optional[bool] = None
    visibility: Optional[VisibilityMarker] = None


class ConflictOut(BaseModel):
    outcome: str
    conflicting_reservation_ids: List[str]
    conflict_start: Optional[str] = None
    conflict_end: Optional[str] = None
    message: Optional[str] = None
    min_pickup_time: Optional[str] = None
    max_return_time: Optional[str] = None


class NotificationOut(BaseModel):
    target: str
    channels: List[str]
    reason: str
    include_pii: bool
    priority: str


class BookingOut(BaseModel):
    outcome: str
    # Absent when the request was rejected with a hard conflict.
    reservation: Optional[ReservationOut] = None
    conflict: ConflictOut
    notifications: List[NotificationOut] = []


class DeleteOut(BaseModel):
    reservation_id: str
    notifications: List[NotificationOut]


class UpdateOut(BaseModel):
    outcome: str
    reservation: ReservationOut
    conflict: ConflictOut
    notify_superadmin: bool
    notifications: List[NotificationOut]


class AccessOut(BaseModel):
    time_bucket: str
    can_view: bool
    can_edit: bool
    can_delete: bool
    can_edit_pickup_date: bool
    can_edit_return_date: bool
    can_edit_pickup_place: bool
    can_edit_return: bool
    can_edit_insurance: bool
    can_edit_franchise: bool
    can_edit_pricing: bool
    can_confirm: bool
    can_see_client_pii: bool
    can_edit_client_pii: bool
    notify_superadmin_on_edit: bool
    is_view_only: bool
