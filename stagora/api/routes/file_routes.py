"""
File Routes - presigned URLs on object storage

POST /files/signed/logo - Presigned upload URL for my logo
POST /files/signed/cv - Presigned upload URL for my CV
GET /files/signed/download/{file_name} - Presigned download URL (uploader only)
GET /files/signed/public/{file_name} - Presigned download URL for public files
DELETE /files/{file_name} - Delete one of my files
"""

from fastapi import APIRouter, Depends

from stagora.core.auth import get_current_user
from stagora.services.storage_service import StorageService, get_storage_service
from stagora.schemas.schemas import (
    PresignedDownloadResponse, PresignedUploadRequest, PresignedUploadResponse, UploadFileType
)

router = APIRouter(prefix="/files", tags=["Files"])


@router.post("/signed/logo", response_model=PresignedUploadResponse)
async def logo_upload_url(
    data: PresignedUploadRequest,
    user: dict = Depends(get_current_user),
    service: StorageService = Depends(get_storage_service)
):
    """PUT the file on `upload_url` within 10 minutes. Allowed: png, jpg, jpeg, svg."""
    return service.generate_upload_url(data.original_filename, UploadFileType.logo.value, user["user_id"])


@router.post("/signed/cv", response_model=PresignedUploadResponse)
async def cv_upload_url(
    data: PresignedUploadRequest,
    user: dict = Depends(get_current_user),
    service: StorageService = Depends(get_storage_service)
):
    """PUT the file on `upload_url` within 10 minutes. Allowed: pdf, doc, docx."""
    return service.generate_upload_url(data.original_filename, UploadFileType.cv.value, user["user_id"])


@router.get("/signed/download/{file_name}", response_model=PresignedDownloadResponse)
async def download_url(
    file_name: str,
    user: dict = Depends(get_current_user),
    service: StorageService = Depends(get_storage_service)
):
    return service.generate_download_url(file_name, user["user_id"])


@router.get("/signed/public/{file_name}", response_model=PresignedDownloadResponse)
async def public_download_url(file_name: str, service: StorageService = Depends(get_storage_service)):
    return service.generate_public_download_url(file_name)


@router.delete("/{file_name}")
async def delete_file(
    file_name: str,
    user: dict = Depends(get_current_user),
    service: StorageService = Depends(get_storage_service)
):
    service.delete_file(file_name, user["user_id"])
    return {"success": True}
