import logging
from typing import Optional

from app.core.settings import settings
from app.services.blobs.base import BlobStore

logger = logging.getLogger(__name__)

_blob_store: Optional[BlobStore] = None


def get_blob_store() -> BlobStore:
    """
    Resolve the active blob store based on settings.

    Rules:
    - BLOB_BACKEND='firebase' uses the FIREBASE_STORAGE_BUCKET bucket
    - Anything else stores files under UPLOAD_DIR
    """
    global _blob_store
    if _blob_store is not None:
        return _blob_store

    backend = (settings.BLOB_BACKEND or "local").lower()
    if backend == "firebase":
        from app.services.blobs.firebase_provider import FirebaseBlobStore
        _blob_store = FirebaseBlobStore()
        logger.info("Blob store initialized: firebase")
    else:
        from app.services.blobs.local_provider import LocalBlobStore
        _blob_store = LocalBlobStore(settings.UPLOAD_DIR)
        logger.info(f"Blob store initialized: local ({settings.UPLOAD_DIR})")
    return _blob_store


def reset_blob_store() -> None:
    global _blob_store
    _blob_store = None
