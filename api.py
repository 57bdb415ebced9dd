from __future__ import annotations

from typing import List, NoReturn, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Path, Response, status

from errors import (
    BookingError,
    DuplicateOrderNumberError,
    InvalidDurationError,
    MissingPricingDataError,
    PermissionDeniedError,
    ReservationNotFoundError,
    StartInPastError,
    UnknownAccessContextError,
    UnknownSeasonError,
    VehicleNotFoundError,
)
from models import (
    AccessOut,
    BookingOut,
    CreateReservationIn,
    DeleteOut,
    DiscountIn,
    DiscountOut,
    PriceQuoteIn,
    PriceQuoteOut,
    ReservationOut,
    Role,
    UpdateOut,
    UpdateReservationIn,
    VehicleIn,
    VehicleOut,
)
from services import ReservationService


def optional_role(x_role: Optional[str] = Header(None, alias="X-Role")) -> Optional[Role]:
    if x_role is None:
        return None
    try:
        return Role(x_role.strip().upper())
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Unknown role: {x_role}",
        )


def required_role(role: Optional[Role] = Depends(optional_role)) -> Role:
    if role is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required: missing X-Role header.",
        )
    return role


def _raise_http(e: BookingError) -> NoReturn:
    if isinstance(e, InvalidDurationError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid duration: {e}")
    if isinstance(e, (VehicleNotFoundError, ReservationNotFoundError)):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, DuplicateOrderNumberError):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    if isinstance(e, PermissionDeniedError):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"message": str(e), "denied_fields": e.denied_fields},
        )
    if isinstance(e, StartInPastError):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
            detail="Validation error: booking start cannot be in the past.",
        )
    if isinstance(e, (UnknownSeasonError, MissingPricingDataError)):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
            detail=f"Pricing error: {e}",
        )
    if isinstance(e, UnknownAccessContextError):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    raise e


def _hard_conflict(conflict) -> NoReturn:
    raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=conflict.model_dump())


def create_router(service: ReservationService) -> APIRouter:
    router = APIRouter()

    # Vehicles
    @router.post("/vehicles", response_model=VehicleOut, status_code=status.HTTP_201_CREATED)
    def add_vehicle(payload: VehicleIn) -> VehicleOut:
        try:
            return service.add_vehicle(payload)
        except BookingError as e:
            _raise_http(e)

    @router.get("/vehicles/{car_id}", response_model=VehicleOut)
    def get_vehicle(car_id: str = Path(..., min_length=1)) -> VehicleOut:
        try:
            return service.get_vehicle(car_id)
        except BookingError as e:
            _raise_http(e)

    @router.delete("/vehicles/{car_id}", status_code=status.HTTP_204_NO_CONTENT)
    def delete_vehicle(
        car_id: str = Path(..., min_length=1), role: Role = Depends(required_role)
    ) -> None:
        try:
            service.delete_vehicle(car_id)
            return None
        except BookingError as e:
            _raise_http(e)

    @router.get("/vehicles/{car_id}/reservations", response_model=List[ReservationOut])
    def list_reservations_for_vehicle(
        car_id: str = Path(..., min_length=1), role: Role = Depends(required_role)
    ) -> List[ReservationOut]:
        return service.list_reservations_for_vehicle(car_id, role)

    # Discount and quotes
    @router.put("/discount", response_model=DiscountOut)
    def set_discount(payload: DiscountIn, role: Role = Depends(required_role)) -> DiscountOut:
        try:
            return service.set_discount(payload)
        except BookingError as e:
            _raise_http(e)

    @router.delete("/discount", status_code=status.HTTP_204_NO_CONTENT)
    def clear_discount(role: Role = Depends(required_role)) -> None:
        service.clear_discount()
        return None

    @router.post("/quotes", response_model=PriceQuoteOut)
    def quote(payload: PriceQuoteIn) -> PriceQuoteOut:
        try:
            return service.quote(payload)
        except BookingError as e:
            _raise_http(e)

    # Reservations
    @router.post("/reservations", response_model=BookingOut, status_code=status.HTTP_201_CREATED)
    def create_reservation(
        payload: CreateReservationIn,
        response: Response,
        role: Optional[Role] = Depends(optional_role),
    ) -> BookingOut:
        try:
            result = service.create_reservation(payload, role)
        except BookingError as e:
            _raise_http(e)

        if result.outcome == "HARD_CONFLICT":
            _hard_conflict(result.conflict)
        if result.outcome == "SOFT_CONFLICT":
            response.status_code = status.HTTP_202_ACCEPTED
        return result

    @router.get("/reservations/{reservation_id}", response_model=ReservationOut)
    def get_reservation(
        reservation_id: str = Path(..., min_length=1), role: Role = Depends(required_role)
    ) -> ReservationOut:
        try:
            return service.get_reservation(reservation_id, role)
        except BookingError as e:
            _raise_http(e)

    @router.get("/reservations/{reservation_id}/access", response_model=AccessOut)
    def get_access(
        reservation_id: str = Path(..., min_length=1), role: Role = Depends(required_role)
    ) -> AccessOut:
        try:
            return service.get_access(reservation_id, role)
        except BookingError as e:
            _raise_http(e)

    @router.patch("/reservations/{reservation_id}", response_model=UpdateOut)
    def update_reservation(
        payload: UpdateReservationIn,
        reservation_id: str = Path(..., min_length=1),
        role: Role = Depends(required_role),
    ) -> UpdateOut:
        try:
            result = service.update_reservation(reservation_id, payload, role)
        except BookingError as e:
            _raise_http(e)

        if result.outcome == "HARD_CONFLICT":
            _hard_conflict(result.conflict)
        return result

    @router.post("/reservations/{reservation_id}/confirm", response_model=UpdateOut)
    def confirm_reservation(
        reservation_id: str = Path(..., min_length=1), role: Role = Depends(required_role)
    ) -> UpdateOut:
        try:
            result = service.confirm_reservation(reservation_id, role)
        except BookingError as e:
            _raise_http(e)

        if result.outcome == "HARD_CONFLICT":
            _hard_conflict(result.conflict)
        return result

    @router.delete("/reservations/{reservation_id}", response_model=DeleteOut)
    def delete_reservation(
        reservation_id: str = Path(..., min_length=1), role: Role = Depends(required_role)
    ) -> DeleteOut:
        try:
            return service.delete_reservation(reservation_id, role)
        except BookingError as e:
            _raise_http(e)

    return router
