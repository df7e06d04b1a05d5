import logging
import uuid

import boto3
from botocore.config import Config
from fastapi import HTTPException

from app.config import settings

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 64 * 1024


class AttachmentStore:
    """Stores uploaded files in S3/MinIO; the database keeps only metadata."""

    @staticmethod
    def is_configured() -> bool:
        return bool(
            settings.s3_endpoint_url
            and settings.s3_access_key
            and settings.s3_secret_key
        )

    @staticmethod
    def _get_client():  # type: ignore[return]
        if not AttachmentStore.is_configured():
            raise RuntimeError(
                "S3 storage is not configured. "
                "Set S3_ENDPOINT_URL, S3_ACCESS_KEY, and S3_SECRET_KEY."
            )
        return boto3.client(
            "s3",
            endpoint_url=settings.s3_endpoint_url,
            aws_access_key_id=settings.s3_access_key,
            aws_secret_access_key=settings.s3_secret_key,
            region_name=settings.s3_region,
            config=Config(signature_version="s3v4"),
        )

    @staticmethod
    def allowed_types() -> set[str]:
        return {
            t.strip() for t in settings.attachment_allowed_types.split(",") if t.strip()
        }

    @staticmethod
    def validate(file_name: str, mime_type: str, size_bytes: int) -> None:
        if mime_type not in AttachmentStore.allowed_types():
            raise HTTPException(
                status_code=400, detail=f"File type {mime_type} is not allowed"
            )
        if size_bytes > settings.attachment_max_size_bytes:
            raise HTTPException(status_code=400, detail="File is too large")
        if not file_name:
            raise HTTPException(status_code=400, detail="File name is required")

    @staticmethod
    def read_bounded(stream) -> bytes:
        """Read an upload stream, failing once it passes the size limit."""
        limit = settings.attachment_max_size_bytes
        chunks: list[bytes] = []
        total = 0
        while True:
            chunk = stream.read(_CHUNK_SIZE)
            if not chunk:
                break
            total += len(chunk)
            if total > limit:
                raise HTTPException(status_code=400, detail="File is too large")
            chunks.append(chunk)
        return b"".join(chunks)

    @staticmethod
    def generate_storage_key(file_name: str) -> str:
        unique = uuid.uuid4().hex[:12]
        return f"attachments/{unique}/{file_name}"

    @staticmethod
    def save(data: bytes, file_name: str, mime_type: str) -> dict:
        """Upload ``data`` and return ``{url, original_name, mime_type, size_bytes}``."""
        AttachmentStore.validate(file_name, mime_type, len(data))
        storage_key = AttachmentStore.generate_storage_key(file_name)
        client = AttachmentStore._get_client()
        client.put_object(
            Bucket=settings.s3_bucket_name,
            Key=storage_key,
            Body=data,
            ContentType=mime_type,
        )
        logger.info("Stored attachment %s (%d bytes)", storage_key, len(data))
        return {
            "url": f"{settings.s3_endpoint_url.rstrip('/')}/{settings.s3_bucket_name}/{storage_key}",
            "original_name": file_name,
            "mime_type": mime_type,
            "size_bytes": len(data),
        }


attachments = AttachmentStore()
