from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from typing import Any, Dict, Iterable, List, Optional, Union

from errors import PermissionDeniedError, TimeBucketRequiredError, UnknownAccessContextError
from models import Role
from time_buckets import TimeBucket


@dataclass(frozen=True)
class AccessContext:
    role: Union[Role, str]
    is_client_order: bool
    confirmed: bool
    time_bucket: Optional[Union[TimeBucket, str]]
    is_past: Optional[bool] = None
    created_by_role: Union[Role, str] = Role.ADMIN


@dataclass(frozen=True)
class AccessDecision:
    time_bucket: TimeBucket
    can_view: bool = True
    can_edit: bool = False
    can_delete: bool = False
    can_edit_pickup_date: bool = False
    can_edit_return_date: bool = False
    can_edit_pickup_place: bool = False
    can_edit_return: bool = False
    can_edit_insurance: bool = False
    can_edit_franchise: bool = False
    can_edit_pricing: bool = False
    can_confirm: bool = False
    can_see_client_pii: bool = True
    can_edit_client_pii: bool = False
    notify_superadmin_on_edit: bool = False

    @property
    def is_view_only(self) -> bool:
        return not self.can_edit

    def as_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["time_bucket"] = self.time_bucket.value
        data["is_view_only"] = self.is_view_only
        return data


def _full_access(bucket: TimeBucket) -> AccessDecision:
    return AccessDecision(
        time_bucket=bucket,
        can_edit=True,
        can_delete=True,
        can_edit_pickup_date=True,
        can_edit_return_date=True,
        can_edit_pickup_place=True,
        can_edit_return=True,
        can_edit_insurance=True,
        can_edit_franchise=True,
        can_edit_pricing=True,
        can_confirm=True,
        can_see_client_pii=True,
        can_edit_client_pii=True,
    )


def _view_only(bucket: TimeBucket, *, see_pii: bool = True, can_confirm: bool = False) -> AccessDecision:
    return AccessDecision(time_bucket=bucket, can_see_client_pii=see_pii, can_confirm=can_confirm)


def _return_side_only(bucket: TimeBucket) -> AccessDecision:
    # The car is out (or promised to a customer): pickup side and money fields are locked.
    return AccessDecision(
        time_bucket=bucket,
        can_edit=True,
        can_edit_return_date=True,
        can_edit_return=True,
        can_see_client_pii=True,
    )


def _coerce(enum_cls, value, what: str):
    try:
        return enum_cls(value)
    except ValueError as e:
        raise UnknownAccessContextError(f"Unknown {what}: {value!r}") from e


def get_access(ctx: AccessContext) -> AccessDecision:
    """
    Decide what a viewer may do with one reservation.

    Pure and total over role x ownership x confirmed x time bucket. A
    missing time bucket raises TimeBucketRequiredError; any context that
    the table below does not cover raises UnknownAccessContextError
    rather than granting access.
    """
    if ctx.time_bucket is None:
        raise TimeBucketRequiredError("timeBucket is required")

    bucket = _coerce(TimeBucket, ctx.time_bucket, "time bucket")
    role = _coerce(Role, ctx.role, "role")
    created_by = _coerce(Role, ctx.created_by_role, "creator role")

    if ctx.is_past is not None and ctx.is_past != (bucket is TimeBucket.PAST):
        raise UnknownAccessContextError(
            f"isPast={ctx.is_past} contradicts timeBucket={bucket.value}"
        )

    if role is Role.SUPERADMIN:
        return _full_access(bucket)

    if role is Role.ADMIN and not ctx.is_client_order:
        if created_by is Role.SUPERADMIN:
            return _view_only(bucket)
        if bucket is TimeBucket.FUTURE:
            return _full_access(bucket)
        if bucket is TimeBucket.CURRENT:
            return replace(
                _return_side_only(bucket),
                can_confirm=True,
                can_edit_client_pii=True,
            )
        if bucket is TimeBucket.PAST:
            return _view_only(bucket)

    if role is Role.ADMIN and ctx.is_client_order:
        if not ctx.confirmed:
            return _view_only(bucket, see_pii=False, can_confirm=bucket is not TimeBucket.PAST)
        if bucket in (TimeBucket.FUTURE, TimeBucket.CURRENT):
            return replace(_return_side_only(bucket), notify_superadmin_on_edit=True)
        if bucket is TimeBucket.PAST:
            return _view_only(bucket)

    raise UnknownAccessContextError(
        f"No access rule for role={role.value} client={ctx.is_client_order} "
        f"confirmed={ctx.confirmed} bucket={bucket.value}"
    )


# -----------------------------
# Field-level checks
# -----------------------------
FIELD_CAPABILITIES: Dict[str, str] = {
    "start": "can_edit_pickup_date",
    "pickup_time": "can_edit_pickup_date",
    "end": "can_edit_return_date",
    "return_time": "can_edit_return_date",
    "number_of_days": "can_edit_return_date",
    "place_in": "can_edit_pickup_place",
    "flight_number": "can_edit_pickup_place",
    "place_out": "can_edit_return",
    "insurance": "can_edit_insurance",
    "child_seats": "can_edit_insurance",
    "franchise": "can_edit_franchise",
    "override_price": "can_edit_pricing",
    "second_driver": "can_edit",
    "confirmed": "can_confirm",
    "customer_name": "can_edit_client_pii",
    "phone": "can_edit_client_pii",
    "email": "can_edit_client_pii",
    "viber": "can_edit_client_pii",
    "whatsapp": "can_edit_client_pii",
    "telegram": "can_edit_client_pii",
}


def can_change(access: AccessDecision, field_name: str) -> bool:
    capability = FIELD_CAPABILITIES.get(field_name, "can_edit")
    return bool(getattr(access, capability))


def disabled_fields(access: AccessDecision) -> List[str]:
    return sorted(name for name in FIELD_CAPABILITIES if not can_change(access, name))


def check_field_access(access: AccessDecision, fields: Iterable[str]) -> None:
    """Raise PermissionDeniedError listing every field the viewer may not change."""
    denied = sorted({name for name in fields if not can_change(access, name)})
    if denied:
        raise PermissionDeniedError(denied)
