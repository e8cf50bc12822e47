"""
Firebase Storage blob store.

Objects live under `report-images/<blob_id>` in the configured bucket, with
the original filename and upload time in the object's custom metadata.
The google-cloud-storage client is synchronous, so calls run in the default executor.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Tuple

from google.api_core.exceptions import GoogleAPICallError, NotFound, PreconditionFailed

from app.config.firebase import get_storage_bucket
from app.core.exceptions import NotFoundError, StorageError
from app.services.blobs.base import BlobRecord, BlobStore, generate_blob_id, validate_blob_id

logger = logging.getLogger(__name__)

PREFIX = "report-images/"


class FirebaseBlobStore(BlobStore):

    def __init__(self, bucket=None):
        self._bucket = bucket

    @property
    def bucket(self):
        if self._bucket is None:
            self._bucket = get_storage_bucket()
        return self._bucket

    def _upload(self, data: bytes, record: BlobRecord) -> None:
        blob = self.bucket.blob(PREFIX + record.blob_id)
        blob.metadata = {
            "original_name": record.original_name,
            "uploaded_at": record.uploaded_at.isoformat(),
        }
        blob.cache_control = "public, max-age=31557600, immutable"
        # if_generation_match=0: only create, never overwrite
        blob.upload_from_string(data, content_type=record.content_type, if_generation_match=0)

    def _download(self, blob_id: str) -> Tuple[bytes, BlobRecord]:
        blob = self.bucket.get_blob(PREFIX + blob_id)
        if blob is None:
            raise NotFoundError("Image not found")
        data = blob.download_as_bytes()
        metadata = blob.metadata or {}
        uploaded_at = metadata.get("uploaded_at")
        record = BlobRecord(
            blob_id=blob_id,
            original_name=metadata.get("original_name", blob_id),
            content_type=blob.content_type or "application/octet-stream",
            size=blob.size or len(data),
            uploaded_at=datetime.fromisoformat(uploaded_at) if uploaded_at else (blob.time_created or datetime.now(timezone.utc)),
        )
        return data, record

    async def store(self, data: bytes, original_name: str, content_type: str) -> BlobRecord:
        record = BlobRecord(
            blob_id=generate_blob_id(original_name),
            original_name=original_name,
            content_type=content_type,
            size=len(data),
        )
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self._upload, data, record)
        except PreconditionFailed:
            logger.error(f"Blob id collision on {record.blob_id}")
            raise StorageError("Image storage rejected a duplicate id, please retry")
        except GoogleAPICallError as e:
            logger.error(f"Failed to upload blob {record.blob_id}: {e}", exc_info=True)
            raise StorageError("Image storage unavailable")
        logger.info(f"Uploaded blob {record.blob_id} ({record.size} bytes) to Firebase Storage")
        return record

    async def retrieve(self, blob_id: str) -> Tuple[bytes, BlobRecord]:
        validate_blob_id(blob_id)
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, self._download, blob_id)
        except NotFound:
            raise NotFoundError("Image not found")
        except GoogleAPICallError as e:
            logger.error(f"Failed to download blob {blob_id}: {e}", exc_info=True)
            raise StorageError("Image storage unavailable")
