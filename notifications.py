from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional

import config
from access_policy import AccessDecision
from models import Reservation


class OrderAction(str, Enum):
    CREATE = "CREATE"
    CONFIRM = "CONFIRM"
    UNCONFIRM = "UNCONFIRM"
    UPDATE_DATES = "UPDATE_DATES"
    UPDATE_SECOND_DRIVER = "UPDATE_SECOND_DRIVER"
    UPDATE_RETURN = "UPDATE_RETURN"
    UPDATE_INSURANCE = "UPDATE_INSURANCE"
    UPDATE_PRICING = "UPDATE_PRICING"
    DELETE = "DELETE"


ACTION_INTENT = {
    OrderAction.CREATE: "ORDER_CREATED",
    OrderAction.CONFIRM: "ORDER_CONFIRMED",
    OrderAction.UNCONFIRM: "ORDER_UNCONFIRMED",
    OrderAction.UPDATE_DATES: "CRITICAL_EDIT",
    OrderAction.UPDATE_SECOND_DRIVER: "CRITICAL_EDIT",
    OrderAction.UPDATE_PRICING: "CRITICAL_EDIT",
    OrderAction.UPDATE_RETURN: "SAFE_EDIT",
    OrderAction.UPDATE_INSURANCE: "SAFE_EDIT",
    OrderAction.DELETE: "ORDER_DELETED",
}

CRITICAL_ACTIONS = frozenset(
    {
        OrderAction.UPDATE_DATES,
        OrderAction.UPDATE_SECOND_DRIVER,
        OrderAction.UPDATE_PRICING,
        OrderAction.DELETE,
    }
)
SAFE_ACTIONS = frozenset({OrderAction.UPDATE_RETURN, OrderAction.UPDATE_INSURANCE})

DATE_FIELDS = frozenset({"start", "end", "pickup_time", "return_time", "number_of_days"})


@dataclass(frozen=True)
class Notification:
    target: str  # SUPERADMIN | DEVELOPERS | COMPANY_EMAIL | CUSTOMER
    channels: List[str]
    reason: str
    include_pii: bool
    priority: str  # CRITICAL | INFO | DEBUG

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


def action_from_changed_fields(
    changed: Iterable[str], changes: Optional[Mapping[str, Any]] = None
) -> OrderAction:
    """Most significant action implied by an edit; confirmation wins over everything."""
    fields = set(changed)
    changes = changes or {}

    if "confirmed" in fields:
        return OrderAction.CONFIRM if changes.get("confirmed") is True else OrderAction.UNCONFIRM
    if fields & DATE_FIELDS:
        return OrderAction.UPDATE_DATES
    if "second_driver" in fields:
        return OrderAction.UPDATE_SECOND_DRIVER
    if "override_price" in fields:
        return OrderAction.UPDATE_PRICING
    if "insurance" in fields:
        return OrderAction.UPDATE_INSURANCE
    return OrderAction.UPDATE_RETURN


def is_action_allowed(action: OrderAction, access: Optional[AccessDecision]) -> bool:
    # A notification is a side effect of an allowed action only.
    if access is None:
        return False
    if action is OrderAction.UPDATE_DATES:
        return access.can_edit_pickup_date or access.can_edit_return_date
    if action is OrderAction.UPDATE_SECOND_DRIVER:
        return access.can_edit
    if action is OrderAction.UPDATE_RETURN:
        return access.can_edit_return
    if action is OrderAction.UPDATE_INSURANCE:
        return access.can_edit_insurance
    if action is OrderAction.UPDATE_PRICING:
        return access.can_edit_pricing
    if action in (OrderAction.CONFIRM, OrderAction.UNCONFIRM):
        return access.can_confirm
    if action is OrderAction.DELETE:
        return access.can_delete
    return action is OrderAction.CREATE


def order_notifications(
    action: OrderAction,
    access: Optional[AccessDecision],
    reservation: Optional[Reservation],
    *,
    email_testing: Optional[bool] = None,
) -> List[Notification]:
    """
    Who must be told about an action on a reservation, and how.

    Reacts to the access decision instead of re-deriving business rules:
    super-admin alerts follow ``notify_superadmin_on_edit``. Nothing is
    sent here; the caller dispatches the returned list.
    """
    if access is None or reservation is None or not is_action_allowed(action, access):
        return []

    if email_testing is None:
        email_testing = config.EMAIL_TESTING

    intent = ACTION_INTENT[action]
    is_client = reservation.is_client_order
    notes: List[Notification] = []

    if access.notify_superadmin_on_edit:
        if action in CRITICAL_ACTIONS:
            notes.append(
                Notification(
                    target="SUPERADMIN",
                    channels=["TELEGRAM", "EMAIL"],
                    reason=f"CRITICAL: {intent} on confirmed client order",
                    include_pii=access.can_see_client_pii,
                    priority="CRITICAL",
                )
            )
        elif action in SAFE_ACTIONS:
            notes.append(
                Notification(
                    target="SUPERADMIN",
                    channels=["TELEGRAM"],
                    reason=f"INFO: {intent} on confirmed client order",
                    include_pii=False,
                    priority="INFO",
                )
            )

    if action is OrderAction.CONFIRM and is_client:
        notes.append(
            Notification(
                target="CUSTOMER",
                channels=["EMAIL"],
                reason="Order confirmed, customer notification",
                include_pii=True,
                priority="INFO",
            )
        )

    if action is OrderAction.CREATE and is_client and not reservation.confirmed:
        if email_testing:
            notes.append(
                Notification(
                    target="SUPERADMIN",
                    channels=["TELEGRAM", "EMAIL"],
                    reason="New client order created (EMAIL_TESTING)",
                    include_pii=True,
                    priority="INFO",
                )
            )
        else:
            notes.append(
                Notification(
                    target="COMPANY_EMAIL",
                    channels=["EMAIL"],
                    reason="New client order created",
                    include_pii=False,
                    priority="INFO",
                )
            )
            notes.append(
                Notification(
                    target="SUPERADMIN",
                    channels=["TELEGRAM", "EMAIL"],
                    reason="New client order created",
                    include_pii=True,
                    priority="INFO",
                )
            )
            email = reservation.customer.email
            if email and email.strip():
                notes.append(
                    Notification(
                        target="CUSTOMER",
                        channels=["EMAIL"],
                        reason="New client order created, confirmation to customer",
                        include_pii=True,
                        priority="INFO",
                    )
                )

    if action is OrderAction.DELETE:
        kind = "Client" if is_client else "Internal"
        notes.append(
            Notification(
                target="DEVELOPERS",
                channels=["TELEGRAM"],
                reason=f"AUDIT: {kind} order deleted",
                include_pii=True,
                priority="DEBUG",
            )
        )

    return notes
