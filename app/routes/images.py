"""
Image endpoint - serves stored report images.

Browsers cannot attach headers to <img> tags, so the bearer token may be
passed as the `token` query parameter instead of the Authorization header.
"""

from typing import Optional

from fastapi import APIRouter, Header, Query
from fastapi.responses import Response

from app.routes.deps import bearer_token
from app.services import image_service

router = APIRouter(prefix="/image", tags=["Images"])


@router.get("/{blob_id}")
async def get_image(
    blob_id: str,
    token: Optional[str] = Query(None),
    authorization: Optional[str] = Header(None),
):
    payload = await image_service.retrieve(blob_id, token or bearer_token(authorization))
    return Response(content=payload.data, media_type=payload.media_type, headers=payload.headers)
