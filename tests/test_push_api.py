"""Tests for subscription and broadcast endpoints."""
from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from py_vapid.utils import b64urlencode

from pushhub.api import deps
from pushhub.config import settings
from pushhub.db.models import PushMessage, Subscriber


def subscribe(client: TestClient, subscription) -> str:
    response = client.post(
        "/api/v1/push/subscribe",
        json={"subscription": subscription.model_dump(by_alias=True)},
        headers={"User-Agent": "pytest-browser"},
    )
    assert response.status_code == 200
    return response.json()["id"]


def test_vapid_public_key(client: TestClient) -> None:
    response = client.get("/api/v1/push/vapid-public-key")

    assert response.status_code == 200
    assert response.json() == {"ok": True, "publicKey": "BTestApplicationServerKey"}


def test_subscribe_twice_returns_same_id(client: TestClient, db_session, subscription_factory) -> None:
    subscription = subscription_factory()

    first = subscribe(client, subscription)
    second = subscribe(client, subscription)

    assert first == second
    assert db_session.query(Subscriber).count() == 1
    assert db_session.query(Subscriber).one().user_agent == "pytest-browser"


def test_subscribe_rejects_missing_keys(client: TestClient) -> None:
    response = client.post(
        "/api/v1/push/subscribe",
        json={"subscription": {"endpoint": "https://push.example.com/x"}},
    )

    assert response.status_code == 422
    assert response.json()["ok"] is False


@pytest.mark.parametrize(
    "endpoint",
    [
        "http://push.example.com/send/abc",
        "http://169.254.169.254/latest/meta-data",
        "file:///etc/passwd",
        "not a url",
    ],
)
def test_subscribe_requires_https_endpoint(client: TestClient, db_session, subscription_factory, endpoint) -> None:
    subscription = subscription_factory().model_dump(by_alias=True)
    subscription["endpoint"] = endpoint

    response = client.post("/api/v1/push/subscribe", json={"subscription": subscription})

    assert response.status_code == 422
    assert db_session.query(Subscriber).count() == 0


def test_unsubscribe_is_idempotent(client: TestClient, db_session, subscription_factory) -> None:
    subscription = subscription_factory()
    subscribe(client, subscription)

    for _ in range(2):
        response = client.post("/api/v1/push/unsubscribe", json={"endpoint": subscription.endpoint})
        assert response.status_code == 200
        assert response.json() == {"ok": True}

    assert db_session.query(Subscriber).count() == 0


def test_send_requires_authentication(client: TestClient, push_service) -> None:
    response = client.post("/api/v1/push/send", json={"title": "Hi", "message": "there"})

    assert response.status_code == 401
    assert response.json() == {"ok": False, "error": "missing authorization header"}
    assert push_service.calls == []


def test_send_rejects_non_admin(client: TestClient, member_headers, push_service) -> None:
    response = client.post(
        "/api/v1/push/send", json={"title": "Hi", "message": "there"}, headers=member_headers
    )

    assert response.status_code == 403
    assert push_service.calls == []


def test_send_rejects_invalid_token(client: TestClient) -> None:
    response = client.post(
        "/api/v1/push/send",
        json={"title": "Hi", "message": "there"},
        headers={"Authorization": "Bearer not-a-jwt"},
    )

    assert response.status_code == 401


def test_send_reports_counts_and_prunes(
    client: TestClient, db_session, admin_headers, admin_id, push_service, subscription_factory
) -> None:
    subscriptions = [subscription_factory() for _ in range(5)]
    for subscription in subscriptions:
        subscribe(client, subscription)
    push_service.respond(subscriptions[3].endpoint, 410)

    response = client.post(
        "/api/v1/push/send",
        json={"title": "Flash sale", "message": "<p>Today <b>only</b></p>", "imageUrl": "https://cdn.example.com/s.png"},
        headers=admin_headers,
    )

    assert response.status_code == 200
    data = response.json()
    assert data["ok"] is True
    assert data["successCount"] == 4
    assert data["permanentFailureCount"] == 1
    assert data["transientFailureCount"] == 0
    assert data["unknownCount"] == 0
    assert data["total"] == 5
    assert data["historyId"]
    assert db_session.query(Subscriber).count() == 4

    entry = db_session.query(PushMessage).one()
    assert entry.message == "Today only"
    assert entry.created_by == admin_id
    assert '"body": "Today only"' in push_service.calls[0]["data"]


def test_send_with_skip_persist(client: TestClient, db_session, admin_headers) -> None:
    response = client.post(
        "/api/v1/push/send",
        json={"title": "Ephemeral", "message": "", "skipPersist": True},
        headers=admin_headers,
    )

    assert response.status_code == 200
    assert response.json()["historyId"] is None
    assert db_session.query(PushMessage).count() == 0


def test_send_requires_title(client: TestClient, admin_headers) -> None:
    response = client.post("/api/v1/push/send", json={"message": "no title"}, headers=admin_headers)

    assert response.status_code == 422


def test_welcome_requires_admin(client: TestClient, member_headers, push_service, subscription_factory) -> None:
    body = {"subscription": subscription_factory().model_dump(by_alias=True), "title": "Hi!"}

    anonymous = client.post("/api/v1/push/welcome", json=body)
    member = client.post("/api/v1/push/welcome", json=body, headers=member_headers)

    assert anonymous.status_code == 401
    assert member.status_code == 403
    assert push_service.calls == []


def test_welcome_sends_to_one_subscription(client: TestClient, admin_headers, push_service, subscription_factory) -> None:
    subscription = subscription_factory()

    response = client.post(
        "/api/v1/push/welcome",
        json={"subscription": subscription.model_dump(by_alias=True), "title": "Hi!"},
        headers=admin_headers,
    )

    assert response.status_code == 200
    assert '"title": "Hi!"' in push_service.calls[0]["data"]


def test_welcome_reports_delivery_failure(client: TestClient, admin_headers, push_service, subscription_factory) -> None:
    subscription = subscription_factory()
    push_service.respond(subscription.endpoint, 410)

    response = client.post(
        "/api/v1/push/welcome",
        json={"subscription": subscription.model_dump(by_alias=True)},
        headers=admin_headers,
    )

    assert response.status_code == 502
    assert response.json()["ok"] is False


def test_list_and_remove_subscribers(client: TestClient, admin_headers, subscription_factory) -> None:
    subscriber_id = subscribe(client, subscription_factory())

    listing = client.get("/api/v1/push/subscribers", headers=admin_headers)
    assert listing.status_code == 200
    assert listing.json()["total"] == 1
    assert listing.json()["data"][0]["id"] == subscriber_id
    assert listing.json()["data"][0]["failureCount"] == 0

    removed = client.delete(f"/api/v1/push/subscribers/{subscriber_id}", headers=admin_headers)
    assert removed.status_code == 200

    missing = client.delete(f"/api/v1/push/subscribers/{subscriber_id}", headers=admin_headers)
    assert missing.status_code == 404


def test_send_aborts_when_vapid_subject_is_unusable(
    client: TestClient, db_session, admin_headers, push_service, vapid_key, subscription_factory, monkeypatch
) -> None:
    subscribe(client, subscription_factory())
    private_value = vapid_key.private_key.private_numbers().private_value.to_bytes(32, "big")
    monkeypatch.setattr(settings, "VAPID_PRIVATE_KEY", b64urlencode(private_value))
    monkeypatch.setattr(settings, "VAPID_SUBJECT", "admin@example.com")
    monkeypatch.setattr(deps, "_push_sender_singleton", None)
    client.app.dependency_overrides.pop(deps.get_push_sender)

    response = client.post(
        "/api/v1/push/send", json={"title": "Hi", "message": "there"}, headers=admin_headers
    )

    assert response.status_code == 503
    assert response.json() == {"ok": False, "error": "VAPID configuration is invalid"}
    assert push_service.calls == []
    assert db_session.query(Subscriber).one().failure_count == 0
    assert db_session.query(PushMessage).count() == 0
