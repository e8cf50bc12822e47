"""
Worker directory (admin) - used when reassigning reports.
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends

from app.models.user import UserRole, WorkerResponse
from app.routes.deps import require_roles
from app.services import report_service

router = APIRouter(prefix="/workers", tags=["Workers"])


@router.get("")
async def get_workers(user: Dict[str, Any] = Depends(require_roles(UserRole.ADMIN.value))):
    workers = await report_service.list_workers(user)
    return {"success": True, "data": {"workers": [WorkerResponse(**w) for w in workers]}}
