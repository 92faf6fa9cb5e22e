"""Tests for the push message history store."""
from __future__ import annotations

import uuid

import pytest
from pydantic import ValidationError

from pushhub.schemas import NotificationPayload, PushMessageUpdate
from pushhub.services.history import MessageHistoryStore, PushMessageNotFoundError


@pytest.fixture()
def store(db_session) -> MessageHistoryStore:
    return MessageHistoryStore(db_session)


def test_list_returns_most_recent_first(store):
    first = store.create(title="First", message="one", payload=NotificationPayload())
    second = store.create(title="Second", message="two", payload=NotificationPayload(url="/b"))

    entries = store.list_messages()

    assert [entry.id for entry in entries] == [second.id, first.id]
    assert store.count() == 2


def test_list_respects_limit(store):
    for index in range(3):
        store.create(title=f"Message {index}", message="", payload=NotificationPayload())

    assert len(store.list_messages(limit=2)) == 2


def test_payload_is_versioned(store):
    entry = store.create(
        title="Image", message="", payload=NotificationPayload(image_url="https://cdn.example.com/i.png")
    )

    assert store.get(entry.id).payload == {"v": 1, "imageUrl": "https://cdn.example.com/i.png", "url": None}


def test_update_changes_display_fields_only(store):
    entry = store.create(title="Old", message="old body", payload=NotificationPayload(url="/old"))
    sent_at = entry.sent_at

    updated = store.update(entry.id, PushMessageUpdate(message="<p>New <b>body</b></p>"))

    assert updated.title == "Old"
    assert updated.message == "New body"
    assert updated.payload["url"] == "/old"
    assert updated.sent_at == sent_at
    assert updated.updated_at is not None


def test_update_requires_a_field():
    with pytest.raises(ValidationError):
        PushMessageUpdate()


def test_update_rejects_blank_title():
    with pytest.raises(ValidationError):
        PushMessageUpdate(title="   ")


def test_delete_and_missing_entries(store):
    entry = store.create(title="Gone", message="", payload=NotificationPayload())

    store.delete(entry.id)

    with pytest.raises(PushMessageNotFoundError):
        store.get(entry.id)
    with pytest.raises(PushMessageNotFoundError):
        store.delete(entry.id)
    with pytest.raises(PushMessageNotFoundError):
        store.update(uuid.uuid4(), PushMessageUpdate(title="x"))
