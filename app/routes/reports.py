"""
Report endpoints - submission, discovery, claiming and lifecycle updates.

Literal paths (/available, /nearby, /dashboard/stats) are declared before
/{report_id} so they are not captured by it.
"""

from typing import Any, Dict, List, Optional
import logging

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status

from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.core.settings import settings
from app.models.report import (
    Address,
    AssignRequest,
    DashboardStats,
    EstimatedQuantity,
    Location,
    ReportCreate,
    ReportEnvelope,
    ReportListResponse,
    ReportResponse,
    ReportStatus,
    ReportUpdate,
    Severity,
    StatusUpdateRequest,
    WasteCategory,
    WasteType,
)
from app.models.user import CITIZEN_ROLES, UserRole
from app.routes.deps import get_current_user, require_roles
from app.services import image_service, report_service
from app.services.claim_service import ClaimOutcome, get_claim_arbitrator
from app.services.status_workflow import transition_report

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reports", tags=["Reports"])

_worker_only = require_roles(UserRole.WASTE_WORKER.value)
_admin_only = require_roles(UserRole.ADMIN.value)


def _envelope(report: Dict[str, Any], message: Optional[str] = None) -> ReportEnvelope:
    return ReportEnvelope(message=message, report=ReportResponse.from_document(report))


@router.post("", status_code=status.HTTP_201_CREATED, response_model=ReportEnvelope)
async def submit_report(
    longitude: float = Form(..., ge=-180, le=180),
    latitude: float = Form(..., ge=-90, le=90),
    waste_type: WasteType = Form(...),
    estimated_quantity: EstimatedQuantity = Form(...),
    description: str = Form(..., min_length=1, max_length=500),
    category: WasteCategory = Form(WasteCategory.HOUSEHOLD),
    severity: Severity = Form(Severity.MEDIUM),
    street: str = Form(""),
    city: str = Form(""),
    state: str = Form(""),
    zip_code: str = Form(""),
    location_description: str = Form("", max_length=500),
    images: Optional[List[UploadFile]] = File(None),
    user: Dict[str, Any] = Depends(require_roles(*CITIZEN_ROLES)),
):
    """
    Submit a new waste report (multipart form, up to 5 images).

    The report starts `reported` and unassigned; workers can claim it right away.
    """
    payload = ReportCreate(
        location=Location(
            longitude=longitude,
            latitude=latitude,
            address=Address(street=street, city=city, state=state, zip_code=zip_code),
            description=location_description,
        ),
        waste_type=waste_type,
        category=category,
        severity=severity,
        estimated_quantity=estimated_quantity,
        description=description,
    )
    # a form with no file selected sends one part without a filename
    files = [upload for upload in images or [] if upload.filename]
    image_service.check_image_count(len(files))
    uploads = [await image_service.read_upload(upload) for upload in files]

    report = await report_service.create_report(payload, user, uploads)
    return _envelope(report, "Waste report created successfully. Workers can now claim this task.")


@router.get("", response_model=ReportListResponse)
async def get_reports(
    status_filter: Optional[ReportStatus] = Query(None, alias="status"),
    waste_type: Optional[WasteType] = Query(None, alias="wasteType"),
    severity: Optional[Severity] = Query(None),
    view_type: Optional[str] = Query(None, alias="viewType", pattern="^(my|all)$"),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    user: Dict[str, Any] = Depends(get_current_user),
):
    reports, pagination = await report_service.list_reports(
        user,
        status=status_filter.value if status_filter else None,
        waste_type=waste_type.value if waste_type else None,
        severity=severity.value if severity else None,
        view_type=view_type,
        page=page,
        limit=limit,
    )
    return ReportListResponse(
        reports=[ReportResponse.from_document(r) for r in reports],
        pagination=pagination,
    )


@router.get("/available", response_model=ReportListResponse)
async def get_available_reports(
    waste_type: Optional[WasteType] = Query(None, alias="wasteType"),
    severity: Optional[Severity] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    user: Dict[str, Any] = Depends(_worker_only),
):
    """Only unassigned, claimable reports."""
    reports, pagination = await report_service.list_available(
        user,
        waste_type=waste_type.value if waste_type else None,
        severity=severity.value if severity else None,
        page=page,
        limit=limit,
    )
    return ReportListResponse(
        reports=[ReportResponse.from_document(r) for r in reports],
        pagination=pagination,
    )


@router.get("/nearby", response_model=ReportListResponse)
async def get_nearby_reports(
    longitude: Optional[float] = Query(None),
    latitude: Optional[float] = Query(None),
    radius: Optional[float] = Query(None, le=settings.MAX_SEARCH_RADIUS_METERS, description="Search radius in meters"),
    include_assigned: bool = Query(False, alias="includeAssigned"),
    user: Dict[str, Any] = Depends(_worker_only),
):
    """Open work ordered by distance from the given point, nearest first."""
    ranked = await report_service.find_nearby_reports(
        user,
        longitude=longitude,
        latitude=latitude,
        radius_meters=radius,
        include_assigned=include_assigned,
    )
    reports = [ReportResponse.from_document(doc, distance_meters=meters) for doc, meters in ranked]
    return ReportListResponse(reports=reports, count=len(reports))


@router.get("/dashboard/stats")
async def get_dashboard_stats(user: Dict[str, Any] = Depends(get_current_user)):
    stats = await report_service.dashboard_stats(user)
    return {"success": True, "data": DashboardStats(**stats)}


@router.put("/{report_id}/claim", response_model=ReportEnvelope)
async def claim_report(report_id: str, user: Dict[str, Any] = Depends(_worker_only)):
    """
    Claim an unassigned report. Exactly one of any number of concurrent
    claimers wins; the others are told who holds the report.
    """
    result = await get_claim_arbitrator().claim(report_id, user)

    if result.outcome == ClaimOutcome.NOT_FOUND:
        raise NotFoundError(result.message)
    if result.outcome in (ClaimOutcome.ALREADY_ASSIGNED, ClaimOutcome.NOT_CLAIMABLE):
        raise ConflictError(result.message, holder=result.holder_name or result.holder_id)
    return _envelope(result.report, result.message)


@router.put("/{report_id}/status", response_model=ReportEnvelope)
async def update_report_status(
    report_id: str,
    body: StatusUpdateRequest,
    user: Dict[str, Any] = Depends(require_roles(UserRole.ADMIN.value, UserRole.WASTE_WORKER.value)),
):
    report = await transition_report(
        report_id,
        user,
        body.status.value,
        notes=body.notes,
        override=body.override,
    )
    return _envelope(report, f"Status updated to {body.status.value}")


@router.put("/{report_id}/assign", response_model=ReportEnvelope)
async def assign_report(report_id: str, body: AssignRequest, user: Dict[str, Any] = Depends(_admin_only)):
    report, worker = await report_service.assign_worker(report_id, user, body.worker_id)
    return _envelope(report, f"Assigned to {worker.get('name', worker['id'])}")


@router.patch("/{report_id}", response_model=ReportEnvelope)
async def edit_report(report_id: str, body: ReportUpdate, user: Dict[str, Any] = Depends(_admin_only)):
    if not body.model_dump(exclude_none=True):
        raise ValidationError("No changes supplied")
    report = await report_service.update_report_details(report_id, user, body)
    return _envelope(report, "Report updated")


@router.get("/{report_id}", response_model=ReportEnvelope)
async def get_report(report_id: str, user: Dict[str, Any] = Depends(get_current_user)):
    report = await report_service.get_report(report_id)
    return _envelope(report)
