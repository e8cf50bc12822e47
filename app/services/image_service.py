"""
Image service - upload validation and credential-gated retrieval of report images.

Uploads are validated before anything is written:
- type whitelist (extension AND declared content type)
- size <= MAX_FILE_SIZE
- at most MAX_IMAGES_PER_REPORT files per report
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional
import logging
import os

from app.core.exceptions import AuthError, ValidationError
from app.core.settings import settings
from app.services.blobs import BlobRecord, get_blob_store
from app.utils.security import decode_access_token

logger = logging.getLogger(__name__)

_EXTENSIONS = {
    "image/jpeg": (".jpg", ".jpeg"),
    "image/png": (".png",),
    "image/gif": (".gif",),
    "image/webp": (".webp",),
}


@dataclass
class ImageUpload:
    """One uploaded file as received from the request."""
    filename: str
    content_type: str
    data: bytes


@dataclass
class ImagePayload:
    """Bytes plus the response headers the caller should send with them."""
    data: bytes
    headers: Dict[str, str]

    @property
    def media_type(self) -> str:
        return self.headers["Content-Type"]


def image_url(blob_id: str) -> str:
    return f"/image/{blob_id}"


def check_image_count(count: int) -> None:
    if count > settings.MAX_IMAGES_PER_REPORT:
        raise ValidationError(f"At most {settings.MAX_IMAGES_PER_REPORT} images are allowed per report")


async def read_upload(upload) -> ImageUpload:
    """
    Read an UploadFile into an ImageUpload, stopping one byte past MAX_FILE_SIZE.

    An oversized file is never buffered whole; validate_uploads rejects the
    truncated data by its length.
    """
    data = await upload.read(settings.MAX_FILE_SIZE + 1)
    return ImageUpload(filename=upload.filename or "", content_type=upload.content_type or "", data=data)


def validate_uploads(uploads: List[ImageUpload]) -> None:
    """Raise ValidationError for the first upload that breaks a rule."""
    check_image_count(len(uploads))

    allowed = settings.allowed_image_types
    for upload in uploads:
        content_type = (upload.content_type or "").lower()
        ext = os.path.splitext(upload.filename or "")[1].lower()
        if content_type not in allowed or ext not in _EXTENSIONS.get(content_type, ()):
            raise ValidationError(
                f"Invalid file type for '{upload.filename}'. Only JPEG, PNG, GIF and WebP images are allowed."
            )
        if not upload.data:
            raise ValidationError(f"Image '{upload.filename}' is empty")
        if len(upload.data) > settings.MAX_FILE_SIZE:
            limit_mb = settings.MAX_FILE_SIZE / (1024 * 1024)
            raise ValidationError(f"Image '{upload.filename}' exceeds the {limit_mb:g}MB size limit")


def _image_record(record: BlobRecord) -> Dict[str, Any]:
    return {
        "blob_id": record.blob_id,
        "original_name": record.original_name,
        "content_type": record.content_type,
        "size": record.size,
        "uploaded_at": record.uploaded_at,
        "url": image_url(record.blob_id),
    }


async def store_images(uploads: List[ImageUpload]) -> List[Dict[str, Any]]:
    """
    Validate and persist uploads, in order.

    Returns the image records to embed in the report document.
    """
    validate_uploads(uploads)
    store = get_blob_store()
    records = []
    for upload in uploads:
        record = await store.store(upload.data, upload.filename, upload.content_type.lower())
        records.append(_image_record(record))
    if records:
        logger.info(f"Stored {len(records)} image(s)")
    return records


def _last_modified(uploaded_at: datetime) -> str:
    return uploaded_at.strftime("%a, %d %b %Y %H:%M:%S GMT")


async def retrieve(blob_id: str, credential: Optional[str]) -> ImagePayload:
    """
    Return image bytes for a bearer of a valid credential.

    Raises:
        AuthError: missing or invalid credential (checked before any lookup)
        NotFoundError: unknown blob id
    """
    if not credential:
        raise AuthError("No token, authorization denied")
    decode_access_token(credential)

    data, record = await get_blob_store().retrieve(blob_id)
    # header values must stay latin-1 encodable
    safe_name = record.original_name.encode("ascii", "ignore").decode().replace('"', "") or record.blob_id
    headers = {
        "Content-Type": record.content_type,
        "Content-Disposition": f'inline; filename="{safe_name}"',
        "Cache-Control": f"public, max-age={settings.IMAGE_CACHE_MAX_AGE}, immutable",
        "Last-Modified": _last_modified(record.uploaded_at),
    }
    logger.info(f"Serving image {blob_id} ({record.size} bytes)")
    return ImagePayload(data=data, headers=headers)
