from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, List, Mapping, Optional, Protocol, Tuple

import config
from business_time import DateLike, business_day
from errors import MissingPricingDataError, UnknownSeasonError
from models import DayBracket, DiscountWindow, InsuranceTier, Vehicle
from rental_days import rental_days

logger = logging.getLogger(__name__)

NO_SEASON = "NoSeason"


# -----------------------------
# Season table
# -----------------------------
def _parse_day_month(value: str) -> Tuple[int, int]:
    """'DD/MM' -> (month, day), validated against a leap year."""
    try:
        day_part, month_part = value.strip().split("/")
        month, day = int(month_part), int(day_part)
        date(2024, month, day)
    except (ValueError, AttributeError) as e:
        raise ValueError(f"season boundary must be DD/MM, got {value!r}") from e
    return month, day


@dataclass(frozen=True)
class SeasonRange:
    name: str
    start: Tuple[int, int]  # (month, day)
    end: Tuple[int, int]

    @property
    def wraps_year(self) -> bool:
        return self.start > self.end

    def contains(self, day: date) -> bool:
        key = (day.month, day.day)
        if self.wraps_year:
            return key >= self.start or key <= self.end
        return self.start <= key <= self.end


class SeasonTable:
    """Calendar of named seasons; the first matching range wins."""

    def __init__(self, ranges: List[SeasonRange]) -> None:
        self._ranges = list(ranges)

    @classmethod
    def from_mapping(cls, table: Mapping[str, Mapping[str, str]]) -> "SeasonTable":
        ranges = []
        for name, bounds in table.items():
            if name == NO_SEASON:
                raise ValueError(f"{NO_SEASON} is reserved for days outside every season")
            ranges.append(
                SeasonRange(
                    name=name,
                    start=_parse_day_month(bounds["start"]),
                    end=_parse_day_month(bounds["end"]),
                )
            )
        return cls(ranges)

    @property
    def names(self) -> List[str]:
        return [r.name for r in self._ranges] + [NO_SEASON]

    def season_for(self, day: date) -> str:
        for season in self._ranges:
            if season.contains(day):
                return season.name
        return NO_SEASON


DEFAULT_SEASONS = SeasonTable.from_mapping(config.SEASON_TABLE)


def bracket_for_days(days: int) -> DayBracket:
    if 1 <= days <= 4:
        return DayBracket.A
    if 5 <= days <= 14:
        return DayBracket.B
    return DayBracket.C


# -----------------------------
# Discount provider
# -----------------------------
class DiscountProvider(Protocol):
    def active_discount(self) -> Optional[DiscountWindow]:
        ...


class NoDiscount:
    def active_discount(self) -> Optional[DiscountWindow]:
        return None


class FixedDiscount:
    def __init__(self, window: Optional[DiscountWindow]) -> None:
        self._window = window

    def active_discount(self) -> Optional[DiscountWindow]:
        return self._window


def apply_discount(price: float, percentage: float) -> float:
    discounted = Decimal(str(price)) * (Decimal(1) - Decimal(str(percentage)) / Decimal(100))
    return float(discounted.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


# -----------------------------
# Pricing engine
# -----------------------------
@dataclass(frozen=True)
class DayPrice:
    day: date
    season: str
    bracket: DayBracket
    price: float
    discount: float
    final_price: float


@dataclass(frozen=True)
class PriceQuote:
    total: float
    days: int
    base_total: float = 0
    insurance_total: float = 0
    child_seats_total: float = 0
    second_driver_total: float = 0
    missing_price_days: List[date] = field(default_factory=list)
    breakdown: List[DayPrice] = field(default_factory=list)


class PricingEngine:
    def __init__(
        self,
        seasons: SeasonTable = DEFAULT_SEASONS,
        discounts: Optional[DiscountProvider] = None,
        second_driver_price_per_day: float = config.SECOND_DRIVER_PRICE_PER_DAY,
        strict: bool = config.STRICT_PRICING,
    ) -> None:
        self._seasons = seasons
        self._discounts = discounts or NoDiscount()
        self._second_driver_price = second_driver_price_per_day
        self._strict = strict

    def validate_tiers(self, pricing_tiers: Mapping[str, Mapping[DayBracket, float]]) -> None:
        unknown = sorted(set(pricing_tiers) - set(self._seasons.names))
        if unknown:
            raise UnknownSeasonError(f"Unknown season(s) in pricing table: {', '.join(unknown)}")

    def _load_discount(self) -> Optional[DiscountWindow]:
        # Read once per quote; a failing store means no discount, not a failed booking.
        try:
            return self._discounts.active_discount()
        except Exception as e:
            logger.error(f"Discount lookup failed, pricing without discount: {e}")
            return None

    def compute_price(
        self,
        vehicle: Vehicle,
        start: DateLike,
        end: DateLike,
        insurance: InsuranceTier = InsuranceTier.TPL,
        child_seats: int = 0,
        second_driver: bool = False,
    ) -> PriceQuote:
        days = rental_days(start, end)

        if not vehicle.pricing_tiers:
            raise MissingPricingDataError(f"Vehicle {vehicle.car_number} has no pricing table")

        first_day = business_day(start)
        bracket = bracket_for_days(days)
        discount = self._load_discount()

        breakdown: List[DayPrice] = []
        missing: List[date] = []
        base_total = 0.0

        for i in range(days):
            current = first_day + timedelta(days=i)
            season = self._seasons.season_for(current)
            tier: Dict[DayBracket, float] = vehicle.pricing_tiers.get(season, {})
            price = tier.get(bracket)

            if price is None:
                if self._strict:
                    raise MissingPricingDataError(
                        f"Vehicle {vehicle.car_number} has no price for {season}/{bracket.value}"
                    )
                logger.warning(
                    f"Missing price for vehicle {vehicle.car_number}: season={season} "
                    f"bracket={bracket.value} day={current.isoformat()}; pricing day at 0"
                )
                missing.append(current)
                price = 0

            applied = 0.0
            final_price = price
            if discount is not None and discount.percentage > 0 and discount.covers(current):
                applied = discount.percentage
                final_price = apply_discount(price, discount.percentage)

            breakdown.append(DayPrice(current, season, bracket, price, applied, final_price))
            base_total += final_price

        insurance_total = vehicle.insurance_price_per_day * days if insurance is InsuranceTier.CDW else 0
        child_seats_total = vehicle.child_seat_price_per_day * child_seats * days if child_seats > 0 else 0
        second_driver_total = self._second_driver_price * days if second_driver else 0

        total = base_total + insurance_total + child_seats_total + second_driver_total

        logger.debug(
            f"Priced {vehicle.car_number} for {days} days: base={base_total} "
            f"insurance={insurance_total} child_seats={child_seats_total} "
            f"second_driver={second_driver_total} total={total}"
        )

        return PriceQuote(
            total=total,
            days=days,
            base_total=base_total,
            insurance_total=insurance_total,
            child_seats_total=child_seats_total,
            second_driver_total=second_driver_total,
            missing_price_days=missing,
            breakdown=breakdown,
        )
