from __future__ import annotations

from typing import Any, Dict, Mapping

from access_policy import AccessDecision

CLIENT_PII_FIELDS = ("customer_name", "phone", "email", "viber", "whatsapp", "telegram")

HIDDEN_REASON = "Client PII hidden until the booking is confirmed"


def apply_visibility(record: Mapping[str, Any], access: AccessDecision) -> Dict[str, Any]:
    """
    Return a copy of a reservation record fit for this viewer.

    Without client-PII rights the contact fields are removed and a
    ``visibility`` marker is attached so the caller can render a
    placeholder. Filtering an already-filtered record changes nothing.
    """
    out = dict(record)
    if access.can_see_client_pii:
        return out

    for name in CLIENT_PII_FIELDS:
        out.pop(name, None)
    out["visibility"] = {"hidden": True, "reason": HIDDEN_REASON}
    return out
