from __future__ import annotations

import inspect
from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.routing import APIRoute
from fastapi.testclient import TestClient

from app import create_app


ADMIN_TOKEN = "front-desk-token"


@pytest.fixture
def client(settings, gateway):
    app = create_app(
        replace(settings, admin_token=ADMIN_TOKEN),
        gateway_factory=lambda token: gateway,
    )
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def auth_headers(client) -> dict[str, str]:
    response = client.post("/login", json={"admin_token": ADMIN_TOKEN})
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


def _stay(house_id: str, start: str, end: str, guests: int = 2) -> dict:
    return {
        "house_id": house_id,
        "start_date": start,
        "end_date": end,
        "guest_count": guests,
        "guest": {"name": "Bat", "phone": "88112233"},
    }


def test_login_rejects_wrong_token(client):
    response = client.post("/login", json={"admin_token": "nope"})

    assert response.status_code == 401


def test_staff_endpoints_require_bearer(client):
    assert client.get("/bookings/pending").status_code == 401
    assert client.get("/orders").status_code == 401
    assert client.get("/houses/occupancy").status_code == 401
    assert (
        client.get("/reports/daily", headers={"Authorization": "Bearer forged"}).status_code == 401
    )


def test_logout_revokes_session(client, auth_headers):
    assert client.get("/bookings/pending", headers=auth_headers).status_code == 200

    assert client.post("/logout", headers=auth_headers).status_code == 204

    assert client.get("/bookings/pending", headers=auth_headers).status_code == 401


def test_public_quote(client):
    response = client.post(
        "/bookings/quote",
        json={"house_id": "house-1", "start_date": "2026-10-16", "end_date": "2026-10-18"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["nights"] == 2
    assert body["discounted_nights"] == 1
    assert body["total_price"] == "170"


def test_quote_errors(client):
    empty = client.post(
        "/bookings/quote",
        json={"house_id": "house-1", "start_date": "2026-10-16", "end_date": "2026-10-16"},
    )
    unknown = client.post(
        "/bookings/quote",
        json={"house_id": "house-9", "start_date": "2026-10-16", "end_date": "2026-10-17"},
    )

    assert empty.status_code == 400
    assert unknown.status_code == 404


def test_public_houses_hide_occupancy(client):
    response = client.get("/houses")

    assert response.status_code == 200
    houses = response.json()
    assert [house["house_id"] for house in houses] == ["house-1", "house-2", "house-3"]
    assert all(house["occupancy"] is None for house in houses)
    assert houses[0]["discount_label"] == "Saturday deal"


def test_guest_booking_then_staff_decision(client, auth_headers):
    created = client.post("/bookings", json=_stay("house-1", "2027-02-01", "2027-02-03"))
    assert created.status_code == 201
    booking_id = created.json()["booking_id"]
    assert created.json()["status"] == "pending"

    pending = client.get("/bookings/pending", headers=auth_headers).json()
    assert [booking["booking_id"] for booking in pending] == [booking_id]

    confirm = client.post(
        f"/bookings/{booking_id}/status",
        json={"status": "confirmed"},
        headers=auth_headers,
    )
    repeat = client.post(
        f"/bookings/{booking_id}/status",
        json={"status": "confirmed"},
        headers=auth_headers,
    )

    assert confirm.status_code == 200
    assert confirm.json()["status"] == "confirmed"
    assert repeat.status_code == 409
    assert "already confirmed" in repeat.json()["detail"]
    assert client.get(f"/bookings/{booking_id}", headers=auth_headers).json()["status"] == "confirmed"


def test_booking_error_statuses(client):
    client.post("/bookings", json=_stay("house-3", "2027-02-10", "2027-02-12"))

    overlap = client.post("/bookings", json=_stay("house-3", "2027-02-11", "2027-02-13"))
    too_many = client.post("/bookings", json=_stay("house-3", "2027-03-01", "2027-03-02", guests=5))
    no_guests = client.post("/bookings", json=_stay("house-3", "2027-03-01", "2027-03-02", guests=0))

    assert overlap.status_code == 409
    assert too_many.status_code == 400
    assert no_guests.status_code == 422


def test_staff_barter_booking(client, auth_headers):
    payload = _stay("house-2", "2027-01-10", "2027-01-12")
    payload.update({"origin": "staff-barter", "barter_description": "Drone footage"})

    response = client.post("/bookings/staff", json=payload, headers=auth_headers)

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "confirmed"
    assert body["total_price"] == "0"
    assert body["barter_description"] == "Drone footage"


def test_staff_negative_price_is_rejected_by_validation(client, auth_headers):
    payload = _stay("house-2", "2027-01-10", "2027-01-12")
    payload.update({"origin": "staff-manual", "custom_price": "-5"})

    response = client.post("/bookings/staff", json=payload, headers=auth_headers)

    assert response.status_code == 422


def test_order_total_is_recomputed(client, auth_headers):
    response = client.post(
        "/orders",
        json={
            "items": [{"name": "Buuz", "unit_price": "10", "quantity": 2}],
            "delivery_type": "house-delivery",
            "house_ref": "house-1",
            "total_amount": "5",
        },
    )

    assert response.status_code == 201
    body = response.json()
    assert body["total_amount"] == "20"
    assert body["house_name"] == "Pine Cabin"

    listed = client.get("/orders", params={"status": "pending"}, headers=auth_headers).json()
    assert [order["order_id"] for order in listed] == [body["order_id"]]


def test_order_errors_and_steps(client, auth_headers):
    missing_house = client.post(
        "/orders",
        json={"items": [{"name": "Tea", "unit_price": "4", "quantity": 1}], "delivery_type": "house-delivery"},
    )
    empty = client.post("/orders", json={"items": [], "delivery_type": "pickup"})
    assert missing_house.status_code == 400
    assert empty.status_code == 400

    order_id = client.post(
        "/orders",
        json={"items": [{"name": "Tea", "unit_price": "4", "quantity": 1}], "delivery_type": "pickup"},
    ).json()["order_id"]

    skipped = client.post(f"/orders/{order_id}/status", json={"status": "ready"}, headers=auth_headers)
    confirmed = client.post(
        f"/orders/{order_id}/status", json={"status": "confirmed"}, headers=auth_headers
    )

    assert skipped.status_code == 409
    assert confirmed.status_code == 200
    assert confirmed.json()["status"] == "confirmed"


def test_checkout_releases_current_stay(client, auth_headers):
    today = datetime.now(timezone.utc).date()
    payload = _stay("house-2", today.isoformat(), (today + timedelta(days=2)).isoformat())
    booking = client.post("/bookings/staff", json=payload, headers=auth_headers).json()

    occupied = client.get("/houses/occupancy", headers=auth_headers).json()
    lake_house = next(house for house in occupied if house["house_id"] == "house-2")
    assert lake_house["occupancy"]["booking_id"] == booking["booking_id"]

    response = client.post("/houses/house-2/checkout", headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["occupancy"] is None
    assert client.post("/houses/house-9/checkout", headers=auth_headers).status_code == 404


def test_daily_report_for_given_day(client, auth_headers):
    payload = _stay("house-2", "2027-01-10", "2027-01-12")
    payload["custom_price"] = "400"
    booking = client.post("/bookings/staff", json=payload, headers=auth_headers).json()

    response = client.get("/reports/daily", params={"day": "2027-01-10"}, headers=auth_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["arrivals"] == [booking["booking_id"]]
    assert body["occupied_house_ids"] == ["house-2"]
    assert body["revenue"] == "400"


def test_store_backed_endpoints_are_sync_handlers(client):
    store_routes = [
        route
        for route in client.app.routes
        if isinstance(route, APIRoute)
        and route.path.startswith(("/bookings", "/orders", "/houses", "/reports", "/login"))
    ]

    assert len(store_routes) >= 12
    assert [route.path for route in store_routes if inspect.iscoroutinefunction(route.endpoint)] == []
