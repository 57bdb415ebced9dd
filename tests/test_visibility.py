from dataclasses import replace

from access_policy import AccessContext, get_access
from models import CustomerContact, Role
from time_buckets import TimeBucket
from visibility import CLIENT_PII_FIELDS, apply_visibility


def record(make_reservation):
    r = make_reservation("2026-06-01", "2026-06-04")
    customer = CustomerContact(
        customer_name="Maria P.", phone="+30 690 000 0000", email="maria@example.com", viber=True
    )
    return replace(r, customer=customer).to_record()


def access(confirmed):
    return get_access(
        AccessContext(
            role=Role.ADMIN, is_client_order=True, confirmed=confirmed, time_bucket=TimeBucket.FUTURE
        )
    )


def test_hidden_pii_is_stripped_and_marked(make_reservation):
    filtered = apply_visibility(record(make_reservation), access(confirmed=False))

    for name in CLIENT_PII_FIELDS:
        assert name not in filtered
    assert filtered["visibility"]["hidden"] is True
    assert filtered["visibility"]["reason"]
    assert filtered["order_number"]


def test_visible_pii_is_kept(make_reservation):
    original = record(make_reservation)

    filtered = apply_visibility(original, access(confirmed=True))

    assert filtered == original
    assert "visibility" not in filtered


def test_filtering_is_idempotent(make_reservation):
    viewer = access(confirmed=False)
    once = apply_visibility(record(make_reservation), viewer)

    assert apply_visibility(once, viewer) == once


def test_input_record_is_not_modified(make_reservation):
    original = record(make_reservation)

    apply_visibility(original, access(confirmed=False))

    assert original["email"] == "maria@example.com"
