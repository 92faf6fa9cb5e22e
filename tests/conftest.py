"""Pytest fixtures for service and API tests."""

import base64
import os
import threading
import uuid
from collections.abc import Generator
from datetime import datetime, timezone

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("CACHE_REDIS_ENABLED", "false")
os.environ.setdefault("VAPID_PUBLIC_KEY", "BTestApplicationServerKey")

import pytest
from fastapi.testclient import TestClient
from py_vapid import Vapid
from pywebpush import WebPushException
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from pushhub.api import deps
from pushhub.core.security import create_access_token
from pushhub.core.webpush import WebPushSender
from pushhub.db.base import Base
from pushhub.db.models import PushMessage, Subscriber, UploadedAsset
from pushhub.main import create_app
from pushhub.schemas import SubscriptionInfo
from pushhub.services.storage import StoredObject, UploadGrant
from pushhub.utils.cache import cache_backend
from pushhub.utils.exceptions import StorageError


def b64url(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode()


def make_subscription(endpoint: str | None = None) -> SubscriptionInfo:
    """Build a subscription whose keys have the shapes browsers produce."""

    return SubscriptionInfo(
        endpoint=endpoint or f"https://push.example.com/send/{uuid.uuid4().hex}",
        keys={"p256dh": b64url(b"\x04" + os.urandom(64)), "auth": b64url(os.urandom(16))},
    )


class FakePushResponse:
    def __init__(self, status_code: int) -> None:
        self.status_code = status_code
        self.text = ""


class StubPushService:
    """Stand-in for ``pywebpush.webpush`` answering per endpoint."""

    def __init__(self, default_status: int = 201) -> None:
        self.default_status = default_status
        self.responses: dict[str, list] = {}
        self.calls: list[dict] = []
        self.blocked: dict[str, threading.Event] = {}
        self._lock = threading.Lock()

    def respond(self, endpoint: str, *answers) -> None:
        """Queue status codes or exceptions for ``endpoint``; the last one repeats."""

        self.responses[endpoint] = list(answers)

    def block(self, endpoint: str) -> threading.Event:
        event = threading.Event()
        self.blocked[endpoint] = event
        return event

    def calls_for(self, endpoint: str) -> list[dict]:
        return [call for call in self.calls if call["subscription_info"]["endpoint"] == endpoint]

    def __call__(self, **kwargs):
        endpoint = kwargs["subscription_info"]["endpoint"]
        with self._lock:
            self.calls.append(kwargs)
            queued = self.responses.get(endpoint)
            if queued:
                answer = queued.pop(0) if len(queued) > 1 else queued[0]
            else:
                answer = self.default_status
        if endpoint in self.blocked:
            self.blocked[endpoint].wait(timeout=10)
        if isinstance(answer, Exception):
            raise answer
        if answer > 202:
            raise WebPushException(f"Push failed: {answer}", response=FakePushResponse(answer))
        return FakePushResponse(answer)


class StubStorageProvider:
    """In-memory object store with the same capabilities as the Supabase client."""

    base = "https://storage.example.com/storage/v1"

    def __init__(self) -> None:
        self.objects: dict[tuple[str, str], datetime] = {}
        self.calls: list[str] = []
        self.fail_signing = False

    def issue_upload_grant(self, bucket: str, path: str) -> UploadGrant:
        self.calls.append("issue_upload_grant")
        relative = f"/object/upload/sign/{bucket}/{path}?token=grant-token"
        self.objects[(bucket, path)] = datetime.now(timezone.utc)
        return UploadGrant(
            bucket=bucket,
            path=path,
            url=relative,
            signed_url=f"{self.base}{relative}",
            token="grant-token",
        )

    def public_url(self, bucket: str, path: str) -> str:
        return f"{self.base}/object/public/{bucket}/{path}"

    def create_signed_url(self, bucket: str, path: str, expires_in: int) -> str:
        self.calls.append("create_signed_url")
        if self.fail_signing:
            raise StorageError("Object storage returned 400")
        return f"{self.base}/object/sign/{bucket}/{path}?token=read-{expires_in}"

    def list_objects(self, bucket: str, prefix: str, limit: int = 500) -> list[StoredObject]:
        self.calls.append("list_objects")
        found = [
            StoredObject(name=path.rpartition("/")[2], path=path, created_at=created_at)
            for (obj_bucket, path), created_at in self.objects.items()
            if obj_bucket == bucket and path.rpartition("/")[0] == prefix
        ]
        return sorted(found, key=lambda obj: obj.created_at, reverse=True)[:limit]

    def delete_object(self, bucket: str, path: str) -> bool:
        self.calls.append("delete_object")
        return self.objects.pop((bucket, path), None) is not None

    def resolve_object(self, url: str):
        marker = "/object/public/"
        if marker not in url:
            return None
        bucket, _, path = url.split(marker, 1)[1].partition("/")
        return bucket, path.split("?", 1)[0]


@pytest.fixture(scope="session")
def db_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    tables = [Subscriber.__table__, PushMessage.__table__, UploadedAsset.__table__]
    Base.metadata.create_all(bind=engine, tables=tables)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine, tables=tables)


@pytest.fixture()
def db_session(db_engine) -> Generator[Session, None, None]:
    TestingSessionLocal = sessionmaker(
        autocommit=False, autoflush=False, expire_on_commit=False, bind=db_engine
    )
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.rollback()
        db.query(Subscriber).delete()
        db.query(PushMessage).delete()
        db.query(UploadedAsset).delete()
        db.commit()
        db.close()


@pytest.fixture(autouse=True)
def clear_cache() -> Generator[None, None, None]:
    cache_backend.clear()
    try:
        yield
    finally:
        cache_backend.clear()


@pytest.fixture(scope="session")
def vapid_key() -> Vapid:
    vapid = Vapid()
    vapid.generate_keys()
    return vapid


@pytest.fixture()
def subscription_factory():
    return make_subscription


@pytest.fixture()
def push_service() -> StubPushService:
    return StubPushService()


@pytest.fixture()
def sender(vapid_key, push_service) -> WebPushSender:
    return WebPushSender(
        vapid_private_key=vapid_key,
        vapid_subject="mailto:ops@example.com",
        transient_retries=1,
        send_func=push_service,
    )


@pytest.fixture()
def storage() -> StubStorageProvider:
    return StubStorageProvider()


@pytest.fixture()
def client(db_session: Session, sender: WebPushSender, storage: StubStorageProvider) -> Generator[TestClient, None, None]:
    app = create_app()

    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[deps.get_db] = override_get_db
    app.dependency_overrides[deps.get_push_sender] = lambda: sender
    app.dependency_overrides[deps.get_storage_provider] = lambda: storage
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def admin_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture()
def admin_headers(admin_id) -> dict[str, str]:
    token = create_access_token(admin_id, role="admin")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def member_headers() -> dict[str, str]:
    token = create_access_token(uuid.uuid4(), role="member")
    return {"Authorization": f"Bearer {token}"}
