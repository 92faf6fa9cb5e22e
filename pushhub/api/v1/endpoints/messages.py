"""Push message history endpoints."""
from __future__ import annotations

import uuid

from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm import Session

from pushhub.api import deps
from pushhub.api.v1.endpoints.push import broadcast_response
from pushhub.core.security import Operator
from pushhub.schemas import (
    BroadcastResponse,
    OkResponse,
    PushMessageEnvelope,
    PushMessageListResponse,
    PushMessageRead,
    PushMessageUpdate,
    RepushRequest,
)
from pushhub.services.dispatcher import BroadcastDispatcher
from pushhub.services.history import MessageHistoryStore, PushMessageNotFoundError
from pushhub.utils.exceptions import handle_not_found

router = APIRouter(prefix="/push/messages", tags=["messages"])


@router.get("", response_model=PushMessageListResponse)
def list_messages(
    db: Session = Depends(deps.get_db),
    _: Operator = Depends(deps.require_admin),
) -> PushMessageListResponse:
    """Return sent messages, most recent first."""

    entries = MessageHistoryStore(db).list_messages()
    return PushMessageListResponse(data=[PushMessageRead.model_validate(entry) for entry in entries])


@router.get("/{message_id}", response_model=PushMessageEnvelope)
def read_message(
    message_id: uuid.UUID,
    db: Session = Depends(deps.get_db),
    _: Operator = Depends(deps.require_admin),
) -> PushMessageEnvelope:
    """Load one entry, e.g. to prefill the compose form."""

    try:
        entry = MessageHistoryStore(db).get(message_id)
    except PushMessageNotFoundError as exc:
        raise handle_not_found(exc) from exc
    return PushMessageEnvelope(data=PushMessageRead.model_validate(entry))


@router.put("/{message_id}", response_model=PushMessageEnvelope)
def update_message(
    message_id: uuid.UUID,
    payload: PushMessageUpdate,
    db: Session = Depends(deps.get_db),
    _: Operator = Depends(deps.require_admin),
) -> PushMessageEnvelope:
    """Edit the stored copy; nothing is sent again."""

    try:
        entry = MessageHistoryStore(db).update(message_id, payload)
    except PushMessageNotFoundError as exc:
        raise handle_not_found(exc) from exc
    return PushMessageEnvelope(data=PushMessageRead.model_validate(entry))


@router.delete("/{message_id}", response_model=OkResponse)
def delete_message(
    message_id: uuid.UUID,
    db: Session = Depends(deps.get_db),
    _: Operator = Depends(deps.require_admin),
) -> OkResponse:
    try:
        MessageHistoryStore(db).delete(message_id)
    except PushMessageNotFoundError as exc:
        raise handle_not_found(exc) from exc
    return OkResponse()


@router.post("/{message_id}/repush", response_model=BroadcastResponse)
def repush_message(
    message_id: uuid.UUID,
    payload: RepushRequest | None = Body(default=None),
    operator: Operator = Depends(deps.require_admin),
    dispatcher: BroadcastDispatcher = Depends(deps.get_dispatcher),
) -> BroadcastResponse:
    """Send a stored message again without adding a history row unless asked to."""

    persist_again = payload.persist if payload else False
    try:
        result = dispatcher.repush(message_id, persist_again=persist_again, operator=operator)
    except PushMessageNotFoundError as exc:
        raise handle_not_found(exc) from exc
    return broadcast_response(result)
