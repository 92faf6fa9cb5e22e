"""API router for version 1."""
from fastapi import APIRouter

from pushhub.api.v1.endpoints import messages, push, uploads


api_router = APIRouter()
api_router.include_router(push.router)
api_router.include_router(messages.router)
api_router.include_router(uploads.router)
