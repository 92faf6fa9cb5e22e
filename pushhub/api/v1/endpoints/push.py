"""Subscription management and broadcast endpoints."""
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from pushhub.api import deps
from pushhub.config import settings
from pushhub.core.security import Operator
from pushhub.core.webpush import DeliveryClassification
from pushhub.schemas import (
    BroadcastRequest,
    BroadcastResponse,
    OkResponse,
    SubscribeRequest,
    SubscribeResponse,
    SubscriberListResponse,
    SubscriberRead,
    UnsubscribeRequest,
    VapidKeyResponse,
    WelcomeRequest,
)
from pushhub.services.dispatcher import BroadcastDispatcher, BroadcastResult, WelcomeSender
from pushhub.services.registry import SubscriberRegistry

router = APIRouter(prefix="/push", tags=["push"])


def broadcast_response(result: BroadcastResult) -> BroadcastResponse:
    return BroadcastResponse(
        success_count=result.success_count,
        permanent_failure_count=result.permanent_failure_count,
        transient_failure_count=result.transient_failure_count,
        unknown_count=result.unknown_count,
        total=result.total,
        history_id=result.history_id,
    )


@router.get("/vapid-public-key", response_model=VapidKeyResponse)
def read_vapid_public_key() -> VapidKeyResponse:
    """Return the application server key browsers subscribe with."""

    if not settings.VAPID_PUBLIC_KEY:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="VAPID keys are not configured")
    return VapidKeyResponse(public_key=settings.VAPID_PUBLIC_KEY)


@router.post("/subscribe", response_model=SubscribeResponse)
def subscribe(
    payload: SubscribeRequest,
    request: Request,
    db: Session = Depends(deps.get_db),
) -> SubscribeResponse:
    """Register a browser subscription; repeating the call refreshes the same row."""

    registry = SubscriberRegistry(db)
    subscriber_id = registry.register(payload.subscription, user_agent=request.headers.get("user-agent"))
    return SubscribeResponse(id=subscriber_id)


@router.post("/unsubscribe", response_model=OkResponse)
def unsubscribe(payload: UnsubscribeRequest, db: Session = Depends(deps.get_db)) -> OkResponse:
    SubscriberRegistry(db).unregister(payload.endpoint)
    return OkResponse()


@router.post("/send", response_model=BroadcastResponse)
def send_broadcast(
    payload: BroadcastRequest,
    operator: Operator = Depends(deps.require_admin),
    dispatcher: BroadcastDispatcher = Depends(deps.get_dispatcher),
) -> BroadcastResponse:
    """Deliver a message to every active subscriber and report the outcome counts."""

    result = dispatcher.dispatch(payload, operator=operator)
    return broadcast_response(result)


@router.post("/welcome", response_model=OkResponse)
def send_welcome(
    payload: WelcomeRequest,
    _: Operator = Depends(deps.require_admin),
    sender: WelcomeSender = Depends(deps.get_welcome_sender),
) -> OkResponse:
    """Send a greeting to one subscription without touching the registry."""

    outcome = sender.send(payload.subscription, title=payload.title, message=payload.message)
    if outcome.classification is not DeliveryClassification.SUCCESS:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=outcome.error or f"push delivery failed: {outcome.classification.value}",
        )
    return OkResponse()


@router.get("/subscribers", response_model=SubscriberListResponse)
def list_subscribers(
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: Session = Depends(deps.get_db),
    _: Operator = Depends(deps.require_admin),
) -> SubscriberListResponse:
    registry = SubscriberRegistry(db)
    subscribers = registry.list_subscribers(limit=limit, offset=offset)
    return SubscriberListResponse(
        total=registry.count_subscribers(),
        data=[SubscriberRead.model_validate(subscriber) for subscriber in subscribers],
    )


@router.delete("/subscribers/{subscriber_id}", response_model=OkResponse)
def remove_subscriber(
    subscriber_id: uuid.UUID,
    db: Session = Depends(deps.get_db),
    _: Operator = Depends(deps.require_admin),
) -> OkResponse:
    if not SubscriberRegistry(db).remove(subscriber_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Subscriber not found")
    return OkResponse()
