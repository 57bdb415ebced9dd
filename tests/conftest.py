import pytest
from uuid import uuid4

from business_time import business_day, to_instant
from models import DayBracket, Ownership, Reservation, Role, Vehicle

TIERS = {
    "LowSeason": {DayBracket.A: 30, DayBracket.B: 25, DayBracket.C: 20},
    "MiddleSeason": {DayBracket.A: 40, DayBracket.B: 35, DayBracket.C: 30},
    "HighSeason": {DayBracket.A: 60, DayBracket.B: 55, DayBracket.C: 50},
    "UpSeason": {DayBracket.A: 70, DayBracket.B: 65, DayBracket.C: 60},
    "NoSeason": {DayBracket.A: 45, DayBracket.B: 40, DayBracket.C: 35},
}

# Same table as sent over HTTP.
TIERS_JSON = {season: {b.value: p for b, p in row.items()} for season, row in TIERS.items()}


def reservation(
    start,
    end,
    confirmed=False,
    reservation_id=None,
    car_id="car_1",
    ownership=Ownership.CLIENT,
    created_by_role=Role.ADMIN,
    conflicting=(),
):
    start_utc, end_utc = to_instant(start), to_instant(end)
    start_day, end_day = business_day(start_utc), business_day(end_utc)
    return Reservation(
        reservation_id=reservation_id or f"res_{uuid4().hex[:8]}",
        order_number=uuid4().hex[:8].upper(),
        car_id=car_id,
        start_utc=start_utc,
        end_utc=end_utc,
        business_start_day=start_day,
        business_end_day=end_day,
        number_of_days=(end_day - start_day).days,
        total_price=0,
        confirmed=confirmed,
        ownership=ownership,
        created_by_role=created_by_role,
        conflicting_reservation_ids=frozenset(conflicting),
    )


@pytest.fixture
def make_reservation():
    return reservation


@pytest.fixture
def tiers_json():
    return TIERS_JSON


@pytest.fixture
def vehicle():
    return Vehicle(car_id="car_1", car_number="NKA-1001", model="Toyota Yaris", pricing_tiers=TIERS)
