from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Tuple
import os
import re
import secrets
import string
import logging

from app.core.exceptions import NotFoundError

logger = logging.getLogger(__name__)

_BLOB_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]+(\.[A-Za-z0-9]+)?$")
_RANDOM_ALPHABET = string.ascii_lowercase + string.digits


def generate_blob_id(original_name: str) -> str:
    """
    Collision-resistant blob id: sanitized base name, millisecond timestamp
    and a random suffix, keeping the original extension.

    "My Photo.JPG" -> "My_Photo_1718000000000_k3j9x1.jpg"
    """
    base, ext = os.path.splitext(os.path.basename(original_name or ""))
    base = re.sub(r"[^a-zA-Z0-9]", "_", base)[:64] or "image"
    ext = re.sub(r"[^a-zA-Z0-9.]", "", ext.lower())[:10]
    timestamp = int(datetime.now(timezone.utc).timestamp() * 1000)
    suffix = "".join(secrets.choice(_RANDOM_ALPHABET) for _ in range(6))
    return f"{base}_{timestamp}_{suffix}{ext}"


def validate_blob_id(blob_id: str) -> str:
    """Reject ids that could escape the store's namespace."""
    if not blob_id or ".." in blob_id or not _BLOB_ID_PATTERN.match(blob_id):
        raise NotFoundError("Image not found")
    return blob_id


@dataclass
class BlobRecord:
    """Metadata stored next to every blob."""
    blob_id: str
    original_name: str
    content_type: str
    size: int
    uploaded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "blob_id": self.blob_id,
            "original_name": self.original_name,
            "content_type": self.content_type,
            "size": self.size,
            "uploaded_at": self.uploaded_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BlobRecord":
        uploaded_at = data.get("uploaded_at")
        if isinstance(uploaded_at, str):
            uploaded_at = datetime.fromisoformat(uploaded_at)
        return cls(
            blob_id=data["blob_id"],
            original_name=data.get("original_name", data["blob_id"]),
            content_type=data.get("content_type", "application/octet-stream"),
            size=int(data.get("size", 0)),
            uploaded_at=uploaded_at or datetime.now(timezone.utc),
        )


class BlobStore(ABC):
    """
    Abstract image blob store.

    Contract:
    - store() generates the blob id and never overwrites an existing blob
    - retrieve() raises NotFoundError for unknown ids
    - Backend failures surface as StorageError
    - Blobs are immutable once stored
    """

    @abstractmethod
    async def store(self, data: bytes, original_name: str, content_type: str) -> BlobRecord:
        raise NotImplementedError

    @abstractmethod
    async def retrieve(self, blob_id: str) -> Tuple[bytes, BlobRecord]:
        raise NotImplementedError
