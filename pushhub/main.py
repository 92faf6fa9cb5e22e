"""FastAPI application factory."""
from __future__ import annotations

from typing import List

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from pushhub.api.v1.api import api_router
from pushhub.config import settings
from pushhub.utils.exceptions import (
    AuthorizationError,
    DeliveryError,
    PushServiceException,
    StorageError,
    ValidationError,
    handle_authorization_error,
    handle_delivery_error,
    handle_storage_error,
    handle_validation_error,
)


tags_metadata: List[dict[str, str]] = [
    {"name": "push", "description": "Register browser subscriptions and broadcast notifications."},
    {"name": "messages", "description": "Review, edit and resend sent notifications."},
    {"name": "uploads", "description": "Upload and manage notification images."},
]


def _to_http_exception(exc: PushServiceException) -> HTTPException:
    if isinstance(exc, ValidationError):
        return handle_validation_error(exc)
    if isinstance(exc, AuthorizationError):
        return handle_authorization_error(exc)
    if isinstance(exc, StorageError):
        return handle_storage_error(exc)
    if isinstance(exc, DeliveryError):
        return handle_delivery_error(exc)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=exc.message)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance."""

    app = FastAPI(
        title=settings.PROJECT_NAME,
        description="Web Push broadcast service for the storefront admin console.",
        version="0.1.0",
        openapi_tags=tags_metadata,
        docs_url=f"{settings.API_V1_STR}/docs",
        redoc_url=f"{settings.API_V1_STR}/redoc",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.BACKEND_CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"ok": False, "error": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(PushServiceException)
    async def push_service_exception_handler(
        request: Request, exc: PushServiceException
    ) -> JSONResponse:
        http_exc = _to_http_exception(exc)
        return JSONResponse(status_code=http_exc.status_code, content={"ok": False, "error": http_exc.detail})

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"ok": False, "error": "Validation failed", "detail": jsonable_encoder(exc.errors())},
        )

    app.include_router(api_router, prefix=settings.API_V1_STR)
    return app


app = create_app()
