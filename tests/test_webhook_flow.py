from __future__ import annotations

from dataclasses import replace

import pytest
from fastapi.testclient import TestClient

from app import create_app
from resort.domain.models import BookingStatus, ResortSettings
from resort.services.event_router import EventRouter


SECRET_HEADER = "X-Telegram-Bot-Api-Secret-Token"


@pytest.fixture
def client(settings, gateway):
    app = create_app(settings, gateway_factory=lambda token: gateway)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def secured_client(settings, gateway):
    app = create_app(
        replace(settings, telegram_webhook_secret="hook-secret"),
        gateway_factory=lambda token: gateway,
    )
    with TestClient(app) as test_client:
        yield test_client


def _guest_booking(client) -> dict:
    response = client.post(
        "/bookings",
        json={
            "house_id": "house-1",
            "start_date": "2027-03-05",
            "end_date": "2027-03-07",
            "guest_count": 2,
            "guest": {"name": "Saraa", "phone": "99001122"},
        },
    )
    assert response.status_code == 201
    return response.json()


def _callback(data: str, chat_id: int = 1001) -> dict:
    return {
        "update_id": 10,
        "callback_query": {
            "id": "cb-10",
            "data": data,
            "message": {"message_id": 77, "chat": {"id": chat_id}},
        },
    }


def test_booking_approved_from_chat(client, gateway):
    booking = _guest_booking(client)

    notification = gateway.messages("1001")[0]
    assert gateway.tokens(notification["keyboard"]) == [
        [f"approve:booking:{booking['booking_id']}", f"reject:booking:{booking['booking_id']}"]
    ]

    response = client.post("/telegram/webhook", json=_callback(f"approve:booking:{booking['booking_id']}"))

    assert response.status_code == 200
    assert response.json() == {"ok": True}
    stored = client.app.state.repository.get_booking(booking["booking_id"])
    assert stored.status is BookingStatus.CONFIRMED


def test_secret_mismatch_is_forbidden(secured_client, gateway):
    response = secured_client.post(
        "/telegram/webhook",
        json={"message": {"chat": {"id": 1001}, "text": "/start"}},
        headers={SECRET_HEADER: "wrong"},
    )

    assert response.status_code == 403
    assert gateway.calls == []


def test_matching_secret_is_processed(secured_client, gateway):
    response = secured_client.post(
        "/telegram/webhook",
        json={"message": {"chat": {"id": 1001}, "text": "/start"}},
        headers={SECRET_HEADER: "hook-secret"},
    )

    assert response.status_code == 200
    assert gateway.methods() == ["send_message"]


def test_malformed_token_is_acknowledged(client, gateway):
    response = client.post("/telegram/webhook", json=_callback("approve"))

    assert response.status_code == 200
    assert gateway.methods() == ["answer_callback"]


def test_invalid_json_is_acknowledged(client, gateway):
    response = client.post(
        "/telegram/webhook",
        content=b"{not json",
        headers={"Content-Type": "application/json"},
    )

    assert response.status_code == 200
    assert response.json() == {"ok": True}
    assert gateway.calls == []


def test_router_failure_is_acknowledged(client, monkeypatch):
    def boom(self, payload):
        raise RuntimeError("router exploded")

    monkeypatch.setattr(EventRouter, "handle", boom)

    response = client.post("/telegram/webhook", json={"message": {"chat": {"id": 1}, "text": "/start"}})

    assert response.status_code == 200
    assert response.json() == {"ok": True}


def test_inactive_bot_acknowledges_without_processing(client, gateway):
    client.app.state.repository.save_resort_settings(ResortSettings())

    response = client.post("/telegram/webhook", json={"message": {"chat": {"id": 1001}, "text": "/start"}})
    status = client.get("/telegram/webhook")

    assert response.status_code == 200
    assert gateway.calls == []
    assert status.json() == {"ok": True, "active": False}


def test_webhook_status_reports_active_bot(client):
    assert client.get("/telegram/webhook").json() == {"ok": True, "active": True}
