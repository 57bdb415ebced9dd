import pytest
from uuid import uuid4

from fastapi.testclient import TestClient
from main import app, _repo

client = TestClient(app)

SUPERADMIN = {"X-Role": "SUPERADMIN"}
ADMIN = {"X-Role": "ADMIN"}


@pytest.fixture(autouse=True)
def reset_repository():
    """Clear repository before each test."""
    _repo.reset()
    yield


@pytest.fixture
def car_id(tiers_json):
    response = client.post(
        "/vehicles",
        json={
            "car_number": f"NKA-{uuid4().hex[:4]}",
            "model": "Toyota Yaris",
            "pricing_tiers": tiers_json,
        },
    )
    assert response.status_code == 201
    return response.json()["car_id"]


def book(car_id, start, end, headers=None, **extra):
    return client.post(
        "/reservations",
        json={"car_id": car_id, "start": start, "end": end, **extra},
        headers=headers or {},
    )


def test_create_vehicle_and_read_back(car_id):
    response = client.get(f"/vehicles/{car_id}")
    assert response.status_code == 200
    data = response.json()
    assert data["model"] == "Toyota Yaris"
    assert data["pricing_tiers"]["MiddleSeason"]["4"] == 40
    assert data["franchise"] == 300
    assert data["reservation_ids"] == []


def test_create_vehicle_unknown_season():
    response = client.post(
        "/vehicles",
        json={"car_number": "X-1", "model": "Fiat Panda", "pricing_tiers": {"Monsoon": {"4": 10}}},
    )
    assert response.status_code == 422


def test_create_vehicle_negative_price():
    response = client.post(
        "/vehicles",
        json={"car_number": "X-1", "model": "Fiat Panda", "pricing_tiers": {"LowSeason": {"4": -1}}},
    )
    assert response.status_code == 422


def test_get_unknown_vehicle():
    response = client.get("/vehicles/car_missing")
    assert response.status_code == 404


def test_quote(car_id):
    response = client.post(
        "/quotes",
        json={
            "car_id": car_id,
            "start": "2030-06-01",
            "end": "2030-06-04",
            "insurance": "CDW",
            "child_seats": 1,
        },
    )
    assert response.status_code == 200
    data = response.json()
    assert data["days"] == 3
    assert data["total"] == 120 + 15 + 9


def test_discount_changes_quote(car_id):
    response = client.put(
        "/discount",
        json={"start_day": "2030-06-01", "end_day": "2030-06-30", "percentage": 10},
        headers=SUPERADMIN,
    )
    assert response.status_code == 200

    response = client.post("/quotes", json={"car_id": car_id, "start": "2030-06-01", "end": "2030-06-04"})
    assert response.json()["total"] == 3 * 36

    assert client.delete("/discount", headers=SUPERADMIN).status_code == 204
    response = client.post("/quotes", json={"car_id": car_id, "start": "2030-06-01", "end": "2030-06-04"})
    assert response.json()["total"] == 120


def test_discount_requires_role():
    response = client.put(
        "/discount", json={"start_day": "2030-06-01", "end_day": "2030-06-30", "percentage": 10}
    )
    assert response.status_code == 401


def test_public_booking_success(car_id):
    response = book(car_id, "2030-06-01", "2030-06-04", pickup_time="10:00", return_time="10:00")
    assert response.status_code == 201
    data = response.json()
    assert data["outcome"] == "FREE"
    assert data["reservation"]["start"] == "2030-06-01T07:00:00Z"
    assert data["reservation"]["number_of_days"] == 3
    assert data["reservation"]["ownership"] == "client"
    assert data["reservation"]["confirmed"] is False


def test_booking_in_the_past():
    response = book("car_any", "2000-01-01", "2000-01-03")
    assert response.status_code == 422
    assert response.json()["detail"] == "Validation error: booking start cannot be in the past."


def test_booking_same_day(car_id):
    response = book(car_id, "2030-06-01T08:00:00Z", "2030-06-01T15:00:00Z")
    assert response.status_code == 400


def test_booking_invalid_timestamp(car_id):
    response = book(car_id, "2030-06-01T10:00:00", "2030-06-04T10:00:00Z")
    assert response.status_code == 422


def test_booking_unknown_vehicle():
    response = book("car_missing", "2030-06-01", "2030-06-04")
    assert response.status_code == 404


def test_touching_confirmed_booking_is_free(car_id):
    first = book(car_id, "2030-05-06", "2030-05-09", SUPERADMIN, ownership="client", confirmed=True)
    assert first.status_code == 201

    response = book(car_id, "2030-05-09", "2030-05-12")
    assert response.status_code == 201
    assert response.json()["outcome"] == "FREE"


def test_overlap_with_confirmed_booking(car_id):
    book(car_id, "2030-05-06", "2030-05-09", SUPERADMIN, ownership="client", confirmed=True)

    response = book(car_id, "2030-05-08", "2030-05-12")
    assert response.status_code == 409
    detail = response.json()["detail"]
    assert detail["outcome"] == "HARD_CONFLICT"
    assert detail["conflict_start"] == "2030-05-07T21:00:00Z"
    assert detail["conflict_end"] == "2030-05-08T21:00:00Z"


def test_early_pickup_on_handover_day_reports_earliest_pickup(car_id):
    book(
        car_id, "2030-05-06", "2030-05-09", SUPERADMIN,
        pickup_time="10:00", return_time="10:00", ownership="client", confirmed=True,
    )

    response = book(car_id, "2030-05-09", "2030-05-12", pickup_time="08:00", return_time="08:00")
    assert response.status_code == 409
    detail = response.json()["detail"]
    assert detail["min_pickup_time"] == "10:00"
    assert detail["max_return_time"] is None


def test_overlap_with_pending_booking(car_id):
    first = book(car_id, "2030-06-01", "2030-06-03").json()["reservation"]["reservation_id"]

    response = book(car_id, "2030-06-02", "2030-06-05")
    assert response.status_code == 202
    data = response.json()
    assert data["outcome"] == "SOFT_CONFLICT"
    assert data["reservation"]["conflicting_reservation_ids"] == [first]

    first_view = client.get(f"/reservations/{first}", headers=SUPERADMIN).json()
    assert first_view["conflicting_reservation_ids"] == [data["reservation"]["reservation_id"]]


def test_reading_requires_role(car_id):
    res_id = book(car_id, "2030-06-01", "2030-06-04").json()["reservation"]["reservation_id"]

    assert client.get(f"/reservations/{res_id}").status_code == 401
    assert client.get(f"/reservations/{res_id}", headers={"X-Role": "GUEST"}).status_code == 403


def test_admin_sees_pending_client_order_without_pii(car_id):
    res_id = book(
        car_id, "2030-06-01", "2030-06-04", customer_name="Eleni", phone="+30 690"
    ).json()["reservation"]["reservation_id"]

    data = client.get(f"/reservations/{res_id}", headers=ADMIN).json()
    assert "customer_name" not in data or data["customer_name"] is None
    assert data["visibility"]["hidden"] is True

    data = client.get(f"/reservations/{res_id}", headers=SUPERADMIN).json()
    assert data["customer_name"] == "Eleni"


def test_access_for_confirmed_client_order(car_id):
    res_id = book(
        car_id, "2030-06-01", "2030-06-04", SUPERADMIN, ownership="client", confirmed=True
    ).json()["reservation"]["reservation_id"]

    response = client.get(f"/reservations/{res_id}/access", headers=ADMIN)
    assert response.status_code == 200
    data = response.json()
    assert data["time_bucket"] == "FUTURE"
    assert data["can_edit"] is True
    assert data["can_edit_pickup_date"] is False
    assert data["can_edit_return"] is True
    assert data["can_edit_franchise"] is False
    assert data["notify_superadmin_on_edit"] is True


def test_admin_edit_denied_fields(car_id):
    res_id = book(
        car_id, "2030-06-01", "2030-06-04", SUPERADMIN, ownership="client", confirmed=True
    ).json()["reservation"]["reservation_id"]

    response = client.patch(f"/reservations/{res_id}", json={"franchise": 0}, headers=ADMIN)
    assert response.status_code == 403
    assert response.json()["detail"]["denied_fields"] == ["franchise"]


def test_admin_return_edit_flags_superadmin(car_id):
    res_id = book(
        car_id, "2030-06-01", "2030-06-04", SUPERADMIN, ownership="client", confirmed=True
    ).json()["reservation"]["reservation_id"]

    response = client.patch(f"/reservations/{res_id}", json={"end": "2030-06-06"}, headers=ADMIN)
    assert response.status_code == 200
    data = response.json()
    assert data["notify_superadmin"] is True
    assert data["reservation"]["number_of_days"] == 5
    assert data["reservation"]["total_price"] == 5 * 35
    assert data["notifications"][0]["priority"] == "CRITICAL"


def test_edit_into_confirmed_booking(car_id):
    book(car_id, "2030-06-01", "2030-06-04", SUPERADMIN, ownership="client", confirmed=True)
    res_id = book(car_id, "2030-06-10", "2030-06-12").json()["reservation"]["reservation_id"]

    response = client.patch(f"/reservations/{res_id}", json={"start": "2030-06-03"}, headers=SUPERADMIN)
    assert response.status_code == 409


def test_confirm_pending_booking(car_id):
    res_id = book(car_id, "2030-06-01", "2030-06-04", email="eleni@example.com").json()["reservation"][
        "reservation_id"
    ]

    response = client.post(f"/reservations/{res_id}/confirm", headers=ADMIN)
    assert response.status_code == 200
    data = response.json()
    assert data["reservation"]["confirmed"] is True
    assert data["reservation"]["email"] == "eleni@example.com"
    assert [n["target"] for n in data["notifications"]] == ["CUSTOMER"]


def test_delete_reservation(car_id):
    first = book(car_id, "2030-06-01", "2030-06-03").json()["reservation"]["reservation_id"]
    second = book(car_id, "2030-06-02", "2030-06-05").json()["reservation"]["reservation_id"]

    response = client.delete(f"/reservations/{second}", headers=SUPERADMIN)
    assert response.status_code == 200
    assert response.json()["reservation_id"] == second

    assert client.get(f"/reservations/{second}", headers=SUPERADMIN).status_code == 404
    first_view = client.get(f"/reservations/{first}", headers=SUPERADMIN).json()
    assert first_view["conflicting_reservation_ids"] == []


def test_admin_cannot_delete_client_order(car_id):
    res_id = book(car_id, "2030-06-01", "2030-06-04").json()["reservation"]["reservation_id"]

    response = client.delete(f"/reservations/{res_id}", headers=ADMIN)
    assert response.status_code == 403


def test_delete_unknown_reservation():
    response = client.delete("/reservations/res_missing", headers=SUPERADMIN)
    assert response.status_code == 404
    assert response.json()["detail"] == "Reservation res_missing not found"


def test_list_reservations_for_vehicle(car_id):
    book(car_id, "2030-07-01", "2030-07-03")
    book(car_id, "2030-06-01", "2030-06-03")

    response = client.get(f"/vehicles/{car_id}/reservations", headers=SUPERADMIN)
    assert response.status_code == 200
    data = response.json()
    assert [r["business_start_day"] for r in data] == ["2030-06-01", "2030-07-01"]


def test_list_reservations_empty_vehicle(car_id):
    response = client.get(f"/vehicles/{car_id}/reservations", headers=SUPERADMIN)
    assert response.status_code == 200
    assert response.json() == []


def test_delete_vehicle_keeps_reservations(car_id):
    res_id = book(car_id, "2030-06-01", "2030-06-04").json()["reservation"]["reservation_id"]

    assert client.delete(f"/vehicles/{car_id}", headers=SUPERADMIN).status_code == 204
    assert client.get(f"/vehicles/{car_id}").status_code == 404
    assert client.get(f"/reservations/{res_id}", headers=SUPERADMIN).status_code == 200
