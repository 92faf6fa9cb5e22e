"""Notification image endpoints: signed uploads, gallery and deletion."""
from __future__ import annotations

from fastapi import APIRouter, Depends

from pushhub.api import deps
from pushhub.core.security import Operator
from pushhub.schemas import (
    DeleteUploadRequest,
    GalleryResponse,
    OkResponse,
    SignedUploadRead,
    SignUploadRequest,
    SignUploadResponse,
)
from pushhub.services.uploads import AssetUploadBroker

router = APIRouter(prefix="/push", tags=["uploads"])


@router.get("/images", response_model=GalleryResponse)
def list_images(
    _: Operator = Depends(deps.require_admin),
    broker: AssetUploadBroker = Depends(deps.get_upload_broker),
) -> GalleryResponse:
    """List uploaded notification images with URLs the console can display."""

    return GalleryResponse(data=broker.list_gallery())


@router.post("/uploads/sign-url", response_model=SignUploadResponse)
def sign_upload(
    payload: SignUploadRequest,
    operator: Operator = Depends(deps.get_current_operator),
    broker: AssetUploadBroker = Depends(deps.get_upload_broker),
) -> SignUploadResponse:
    """Issue a one-off grant so the browser can upload an image directly to storage."""

    issued = broker.sign_upload(payload.filename, operator)
    grant = issued.grant
    return SignUploadResponse(
        signed_upload=SignedUploadRead(
            url=grant.url,
            signed_url=grant.signed_url,
            token=grant.token,
            path=grant.path,
        ),
        path=grant.path,
        bucket=grant.bucket,
        public_url=issued.public_url,
    )


@router.post("/uploads/delete", response_model=OkResponse)
def delete_upload(
    payload: DeleteUploadRequest,
    _: Operator = Depends(deps.require_admin),
    broker: AssetUploadBroker = Depends(deps.get_upload_broker),
) -> OkResponse:
    broker.delete(path=payload.path, bucket=payload.bucket, public_url=payload.public_url)
    return OkResponse()
