"""Parts catalog routes — list, create, soft-delete."""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, File, Form, HTTPException, UploadFile
from pydantic import ValidationError as PydanticValidationError

from app.api.deps import get_catalog_service, http_error
from app.exceptions import CatalogError
from app.schemas.parts import DeleteRequest, DeleteResult, PartOut, UploadResult
from app.services.catalog_service import CatalogService, ImageUpload

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/parts", response_model=list[PartOut])
async def list_parts(catalog: CatalogService = Depends(get_catalog_service)):
    """All parts under the root folder, in Drive listing order."""
    try:
        records = await catalog.list_parts()
    except CatalogError as e:
        raise http_error(e)
    return [
        PartOut(id=r.id, name=r.name, image_reference=r.image_reference, details=r.details)
        for r in records
    ]


@router.post("/upload", response_model=UploadResult)
async def upload_part(
    part_name: Optional[str] = Form(None, alias="partName"),
    details: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    catalog: CatalogService = Depends(get_catalog_service),
):
    """Create a part folder with an optional image and details.txt."""
    if not part_name or not part_name.strip():
        raise HTTPException(status_code=400, detail="partName is required")

    upload = None
    if image is not None and image.filename:
        data = await image.read()
        if data:
            upload = ImageUpload(
                data=data,
                mime_type=image.content_type or "image/jpeg",
                filename=image.filename,
            )

    try:
        folder = await catalog.create_part(part_name, image=upload, details=details or None)
    except CatalogError as e:
        raise http_error(e)
    return UploadResult(folder_id=folder.id)


@router.post("/delete", response_model=DeleteResult)
async def delete_part(
    body: Any = Body(None),
    catalog: CatalogService = Depends(get_catalog_service),
):
    """Move a part folder to the Drive trash."""
    try:
        request = DeleteRequest.model_validate(body or {})
    except PydanticValidationError:
        raise HTTPException(status_code=400, detail="folderId must be a string")
    if not request.folder_id or not request.folder_id.strip():
        raise HTTPException(status_code=400, detail="folderId is required")
    try:
        await catalog.delete_part(request.folder_id)
    except CatalogError as e:
        raise http_error(e)
    return DeleteResult()
