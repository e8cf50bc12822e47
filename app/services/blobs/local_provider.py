"""
Local filesystem blob store.

Each blob is written as UPLOAD_DIR/<blob_id> with metadata in
UPLOAD_DIR/<blob_id>.meta.json. Blocking file I/O runs in the default
executor so request handlers never block the event loop.
"""

import asyncio
import json
import logging
import os
from typing import Tuple

from app.core.exceptions import NotFoundError, StorageError
from app.services.blobs.base import BlobRecord, BlobStore, generate_blob_id, validate_blob_id

logger = logging.getLogger(__name__)


class LocalBlobStore(BlobStore):

    def __init__(self, root: str):
        self.root = os.path.abspath(root)

    def _paths(self, blob_id: str) -> Tuple[str, str]:
        data_path = os.path.join(self.root, blob_id)
        return data_path, data_path + ".meta.json"

    def _write(self, data: bytes, record: BlobRecord) -> None:
        os.makedirs(self.root, exist_ok=True)
        data_path, meta_path = self._paths(record.blob_id)
        # "xb" refuses to overwrite an existing blob
        with open(data_path, "xb") as f:
            f.write(data)
        with open(meta_path, "w", encoding="utf-8") as f:
            json.dump(record.to_dict(), f)

    def _read(self, blob_id: str) -> Tuple[bytes, BlobRecord]:
        data_path, meta_path = self._paths(blob_id)
        if not os.path.isfile(data_path) or not os.path.isfile(meta_path):
            raise NotFoundError("Image not found")
        with open(meta_path, "r", encoding="utf-8") as f:
            record = BlobRecord.from_dict(json.load(f))
        with open(data_path, "rb") as f:
            data = f.read()
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
            await loop.run_in_executor(None, self._write, data, record)
        except OSError as e:
            logger.error(f"Failed to write blob {record.blob_id}: {e}", exc_info=True)
            raise StorageError("Image storage unavailable")
        logger.info(f"Stored blob {record.blob_id} ({record.size} bytes)")
        return record

    async def retrieve(self, blob_id: str) -> Tuple[bytes, BlobRecord]:
        validate_blob_id(blob_id)
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, self._read, blob_id)
        except (NotFoundError, StorageError):
            raise
        except (OSError, ValueError, KeyError) as e:
            logger.error(f"Failed to read blob {blob_id}: {e}", exc_info=True)
            raise StorageError("Image storage unavailable")
