from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from schoolshop.auth.dependencies import AuthContext, require_admin
from schoolshop.db.deps import get_session
from schoolshop.schemas.products import (
    AssignImagesRequest,
    OperationResultResponse,
    ProductImageResponse,
    RenamePrintFileRequest,
    RenamePrintFileResponse,
)
from schoolshop.services.asset_assignment import AssetAssignmentService
from schoolshop.services.media_storage import MediaStorage

router = APIRouter(prefix="/products", tags=["products"])


def get_media_storage() -> MediaStorage:
    return MediaStorage()


@router.post("/rename-all-images", response_model=OperationResultResponse)
def rename_all_images(
    _auth: AuthContext = Depends(require_admin),
    session: Session = Depends(get_session),
    storage: MediaStorage = Depends(get_media_storage),
):
    result = AssetAssignmentService(session, storage).rename_all_attributed()
    return result.to_payload()


@router.post("/{product_id}/assign-images", response_model=OperationResultResponse)
def assign_images(
    product_id: str,
    payload: AssignImagesRequest,
    _auth: AuthContext = Depends(require_admin),
    session: Session = Depends(get_session),
    storage: MediaStorage = Depends(get_media_storage),
):
    result = AssetAssignmentService(session, storage).assign_to_colors(
        product_id=product_id,
        image_id=payload.image_id,
        colors=payload.textile_colors,
    )
    return result.to_payload()


@router.patch("/{product_id}/rename-print-file", response_model=RenamePrintFileResponse)
def rename_print_file(
    product_id: str,
    payload: RenamePrintFileRequest,
    _auth: AuthContext = Depends(require_admin),
    session: Session = Depends(get_session),
    storage: MediaStorage = Depends(get_media_storage),
):
    renamed = AssetAssignmentService(session, storage).rename_print_file(
        product_id=product_id,
        image_id=payload.imageId,
        new_file_name=payload.newFileName,
    )
    return RenamePrintFileResponse(
        image=ProductImageResponse.model_validate(renamed["image"]),
        newFileName=renamed["new_file_name"],
        oldObject=renamed["old_object"],
    )
