"""Tests for the notification image endpoints."""
from __future__ import annotations

from fastapi.testclient import TestClient

from pushhub.api import deps
from pushhub.db.models import UploadedAsset


def test_sign_url_for_admin(client: TestClient, db_session, admin_headers, admin_id) -> None:
    response = client.post(
        "/api/v1/push/uploads/sign-url", json={"filename": "hero image.png"}, headers=admin_headers
    )

    assert response.status_code == 200
    data = response.json()
    assert data["ok"] is True
    assert data["bucket"] == "push-images"
    assert data["path"].startswith("public/push-images/")
    assert data["path"].endswith("_hero_image.png")
    assert data["signedUpload"]["token"] == "grant-token"
    assert data["signedUpload"]["signedUrl"].startswith("https://storage.example.com/")
    assert data["publicUrl"].endswith(data["path"])
    assert db_session.query(UploadedAsset).one().uploaded_by == admin_id


def test_sign_url_refused_for_non_admin(client: TestClient, member_headers, storage) -> None:
    response = client.post(
        "/api/v1/push/uploads/sign-url", json={"filename": "x.png"}, headers=member_headers
    )

    assert response.status_code == 403
    assert response.json() == {"ok": False, "error": "admin required"}
    assert storage.calls == []


def test_sign_url_refused_without_token(client: TestClient, storage) -> None:
    response = client.post("/api/v1/push/uploads/sign-url", json={"filename": "x.png"})

    assert response.status_code == 401
    assert storage.calls == []


def test_gallery_lists_uploaded_images(client: TestClient, admin_headers) -> None:
    signed = client.post(
        "/api/v1/push/uploads/sign-url", json={"filename": "a.png"}, headers=admin_headers
    ).json()

    response = client.get("/api/v1/push/images", headers=admin_headers)

    assert response.status_code == 200
    items = response.json()["data"]
    assert len(items) == 1
    assert items[0]["path"] == signed["path"]
    assert items[0]["name"] == signed["path"].rpartition("/")[2]
    assert "/object/sign/" in items[0]["url"]
    assert items[0]["publicUrl"] == signed["publicUrl"]


def test_delete_upload_by_public_url(client: TestClient, db_session, admin_headers, storage) -> None:
    signed = client.post(
        "/api/v1/push/uploads/sign-url", json={"filename": "b.png"}, headers=admin_headers
    ).json()

    response = client.post(
        "/api/v1/push/uploads/delete", json={"publicUrl": signed["publicUrl"]}, headers=admin_headers
    )

    assert response.status_code == 200
    assert storage.objects == {}
    assert db_session.query(UploadedAsset).count() == 0


def test_delete_upload_rejects_unmanaged_bucket(client: TestClient, admin_headers) -> None:
    response = client.post(
        "/api/v1/push/uploads/delete",
        json={"path": "x.png", "bucket": "billing"},
        headers=admin_headers,
    )

    assert response.status_code == 422
    assert response.json()["error"] == "bucket not allowed"


def test_delete_upload_requires_target(client: TestClient, admin_headers) -> None:
    response = client.post("/api/v1/push/uploads/delete", json={}, headers=admin_headers)

    assert response.status_code == 422


def test_storage_not_configured(client: TestClient, admin_headers) -> None:
    client.app.dependency_overrides.pop(deps.get_storage_provider)

    response = client.get("/api/v1/push/images", headers=admin_headers)

    assert response.status_code == 502
    assert response.json()["ok"] is False
