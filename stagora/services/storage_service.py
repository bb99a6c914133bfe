"""
Storage Service - presigned URLs on the S3-compatible bucket (AWS or MinIO).

Objects are flat keys `<user_id>_<file_type>.<ext>`. Uploads carry an
`uploaderid` metadata entry used for ownership checks on download and
delete.
"""

import logging
from functools import lru_cache
from typing import Any, Dict, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from fastapi import HTTPException

from stagora.core.config import get_settings
from stagora.utils.file_upload import is_safe_path, validate_upload_filename

logger = logging.getLogger(__name__)

NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}


@lru_cache(maxsize=1)
def _s3_client():
    settings = get_settings()
    kwargs: Dict[str, Any] = {"region_name": settings.s3_region}
    if settings.s3_endpoint_url:
        kwargs["endpoint_url"] = settings.s3_endpoint_url
    if settings.s3_access_key and settings.s3_secret_key:
        kwargs["aws_access_key_id"] = settings.s3_access_key
        kwargs["aws_secret_access_key"] = settings.s3_secret_key
    return boto3.client("s3", **kwargs)


def _is_not_found(error: ClientError) -> bool:
    return str(error.response.get("Error", {}).get("Code")) in NOT_FOUND_CODES


class StorageService:

    def __init__(self, client=None, bucket: Optional[str] = None):
        settings = get_settings()
        self.client = client if client is not None else _s3_client()
        self.bucket = bucket or settings.s3_bucket
        self.upload_expiry = settings.upload_url_expiry
        self.download_expiry = settings.download_url_expiry

    # ============================================================
    # PRESIGNED URLS
    # ============================================================

    def generate_upload_url(self, original_filename: str, file_type: str, user_id: str) -> Dict[str, str]:
        """
        Presigned PUT for a user's logo or CV.

        Any previous object for the same user and file type is removed
        first, whatever its extension.

        Returns:
            {"file_name": <key>, "upload_url": <url>}
        """
        ext = validate_upload_filename(original_filename, file_type)
        file_name = f"{user_id}_{file_type}.{ext}"
        if not is_safe_path(file_name):
            raise HTTPException(status_code=400, detail="Invalid file path generated")

        for existing in self.list_keys(f"{user_id}_{file_type}."):
            try:
                self.client.delete_object(Bucket=self.bucket, Key=existing)
            except ClientError as e:
                logger.warning("Could not remove previous upload %s: %s", existing, e)

        return {"file_name": file_name, "upload_url": self.presign_put(file_name, user_id)}

    def presign_put(self, key: str, user_id: str) -> str:
        try:
            return self.client.generate_presigned_url(
                ClientMethod="put_object",
                Params={"Bucket": self.bucket, "Key": key, "Metadata": {"uploaderid": user_id}},
                ExpiresIn=self.upload_expiry,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error("Failed to presign upload for %s: %s", key, e)
            raise HTTPException(status_code=500, detail="Failed to generate upload URL")

    def generate_download_url(self, file_name: str, user_id: str) -> Dict[str, str]:
        """Presigned GET, only for the uploader (or objects without an uploader)."""
        self._check_readable(file_name)
        self.verify_ownership(file_name, user_id)
        return {"download_url": self._presign_get(file_name)}

    def generate_public_download_url(self, file_name: str) -> Dict[str, str]:
        """Presigned GET without ownership checks, for public files such as logos."""
        self._check_readable(file_name)
        return {"download_url": self._presign_get(file_name)}

    def _presign_get(self, key: str) -> str:
        try:
            return self.client.generate_presigned_url(
                ClientMethod="get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=self.download_expiry,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error("Failed to presign download for %s: %s", key, e)
            raise HTTPException(status_code=500, detail="Failed to generate download URL")

    # ============================================================
    # OBJECTS
    # ============================================================

    def delete_file(self, file_name: str, user_id: str) -> None:
        self._check_readable(file_name)
        self.verify_ownership(file_name, user_id)
        try:
            self.client.delete_object(Bucket=self.bucket, Key=file_name)
        except ClientError as e:
            logger.error("Failed to delete %s: %s", file_name, e)
            raise HTTPException(status_code=500, detail="Failed to delete file")
        logger.info("File %s deleted by %s", file_name, user_id)

    def file_exists(self, file_name: str) -> bool:
        try:
            self.client.head_object(Bucket=self.bucket, Key=file_name)
            return True
        except ClientError as e:
            if _is_not_found(e):
                return False
            raise

    def list_keys(self, prefix: str) -> List[str]:
        response = self.client.list_objects_v2(Bucket=self.bucket, Prefix=prefix)
        return [obj["Key"] for obj in response.get("Contents", [])]

    def verify_ownership(self, file_name: str, user_id: str) -> None:
        """403 when the object names another uploader in its metadata."""
        try:
            head = self.client.head_object(Bucket=self.bucket, Key=file_name)
        except ClientError as e:
            if _is_not_found(e):
                raise HTTPException(status_code=404, detail=f"File not found: {file_name}")
            raise
        metadata = {k.lower(): v for k, v in (head.get("Metadata") or {}).items()}
        uploader_id = metadata.get("uploaderid")
        if uploader_id and uploader_id != user_id:
            raise HTTPException(status_code=403, detail="You do not have permission to access this file")

    def _check_readable(self, file_name: str) -> None:
        if not is_safe_path(file_name):
            raise HTTPException(status_code=400, detail="Invalid file path")
        if not self.file_exists(file_name):
            raise HTTPException(status_code=404, detail=f"File not found: {file_name}")


def get_storage_service() -> StorageService:
    return StorageService()
