"""
Blob stores for uploaded report images.
"""

from app.services.blobs.base import BlobRecord, BlobStore, generate_blob_id
from app.services.blobs.registry import get_blob_store, reset_blob_store

__all__ = [
    "BlobRecord",
    "BlobStore",
    "generate_blob_id",
    "get_blob_store",
    "reset_blob_store",
]
