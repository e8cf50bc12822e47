"""
Report service - Business logic for waste report handling.

DESIGN NOTE:
- Reports are created unassigned; claiming lives in claim_service
- Status changes go through status_workflow.transition_report
- `assigned_worker` is written here only by the admin reassignment path,
  and only through the store's conditional update
- Reward credits are side effects; a failed credit never loses the report
"""

from datetime import datetime, timezone
from math import ceil
from typing import Any, Dict, List, Optional, Tuple
import logging

from app.core.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
    WasteServiceError,
)
from app.core.settings import settings
from app.models.report import ReportCreate, ReportStatus, ReportUpdate
from app.models.user import UserRole
from app.services.image_service import ImageUpload, store_images
from app.services.permissions import Action, can_perform, is_citizen, is_worker
from app.services.reward_ledger import get_reward_ledger
from app.services.status_workflow import StatusWorkflowEngine
from app.services.storage import ReportQuery, get_report_store, get_user_store

logger = logging.getLogger(__name__)

DEFAULT_PRIORITY = 3

# Statuses a worker can see on the discovery map
_DISCOVERABLE = StatusWorkflowEngine.CLAIMABLE_STATUSES + StatusWorkflowEngine.ACTIVE_STATUSES


def _pagination(page: int, limit: int, total: int) -> Dict[str, int]:
    return {"current": page, "pages": ceil(total / limit) if limit else 0, "total": total}


def _check_paging(page: int, limit: int) -> None:
    if page < 1:
        raise ValidationError("page must be at least 1")
    if limit < 1 or limit > 100:
        raise ValidationError("limit must be between 1 and 100")


async def create_report(
    payload: ReportCreate,
    reporter: Dict[str, Any],
    uploads: Optional[List[ImageUpload]] = None,
) -> Dict[str, Any]:
    """
    Create a new waste report.

    Flow:
    1. Store uploaded images (validation rejects the whole request)
    2. Persist the report as `reported`, unassigned
    3. Credit the reporter's submission reward (failure is logged, not raised)

    Returns:
        The stored report document
    """
    if not can_perform(reporter, Action.SUBMIT_REPORT):
        raise ForbiddenError("Only citizens can submit waste reports")

    images = await store_images(uploads or [])

    now = datetime.now(timezone.utc)
    points = settings.REPORT_REWARD_POINTS
    doc = {
        "reporter": reporter["id"],
        "location": payload.location.model_dump(),
        "waste_type": payload.waste_type.value,
        "category": payload.category.value,
        "severity": payload.severity.value,
        "estimated_quantity": payload.estimated_quantity.value,
        "description": payload.description,
        "images": images,
        "status": ReportStatus.REPORTED.value,
        "assigned_worker": None,
        "assigned_at": None,
        "actual_collection": None,
        "verification": None,
        "priority": DEFAULT_PRIORITY,
        "rewards": {
            "points_awarded": points,
            "awarded_at": now,
            "completion_points": 0,
            "completion_awarded_at": None,
        },
        "status_history": [
            StatusWorkflowEngine.create_status_history_entry(
                from_status="",
                to_status=ReportStatus.REPORTED.value,
                changed_by=reporter["id"],
                note="Report submitted",
                timestamp=now,
            )
        ],
        "created_at": now,
        "updated_at": now,
    }

    report = await get_report_store().insert(doc)
    logger.info(
        f"Report created: {report['id']} by {reporter['id']} "
        f"({report['waste_type']}, {len(images)} image(s))"
    )

    try:
        await get_reward_ledger().credit(reporter["id"], points)
    except WasteServiceError as e:
        logger.error(f"Submission reward for report {report['id']} failed: {e.detail}", exc_info=True)

    return report


async def get_report(report_id: str) -> Dict[str, Any]:
    report = await get_report_store().get(report_id)
    if report is None:
        raise NotFoundError("Report not found")
    return report


async def list_reports(
    actor: Dict[str, Any],
    status: Optional[str] = None,
    waste_type: Optional[str] = None,
    severity: Optional[str] = None,
    view_type: Optional[str] = None,
    page: int = 1,
    limit: Optional[int] = None,
) -> Tuple[List[Dict[str, Any]], Dict[str, int]]:
    """
    Role-filtered report listing, newest first.

    - Citizens only ever see their own reports
    - Workers see everything, or only their own work with view_type="my"
    - Admins see everything
    """
    limit = limit or settings.DEFAULT_PAGE_SIZE
    _check_paging(page, limit)

    query = ReportQuery(
        statuses=(status,) if status else None,
        waste_type=waste_type,
        severity=severity,
    )
    if is_citizen(actor):
        query.reporter = actor["id"]
    elif is_worker(actor) and view_type == "my":
        query.assignee_in = (actor["id"],)
    elif not can_perform(actor, Action.VIEW_ALL):
        raise ForbiddenError("Not authorized to list reports")

    store = get_report_store()
    reports = await store.find(query, offset=(page - 1) * limit, limit=limit)
    total = await store.count(query)
    return reports, _pagination(page, limit, total)


async def list_available(
    actor: Dict[str, Any],
    waste_type: Optional[str] = None,
    severity: Optional[str] = None,
    page: int = 1,
    limit: Optional[int] = None,
) -> Tuple[List[Dict[str, Any]], Dict[str, int]]:
    """Unassigned, claimable reports, newest first."""
    if not can_perform(actor, Action.DISCOVER):
        raise ForbiddenError("Only waste workers can browse available reports")

    limit = limit or settings.DEFAULT_PAGE_SIZE
    _check_paging(page, limit)

    query = ReportQuery(
        statuses=StatusWorkflowEngine.CLAIMABLE_STATUSES,
        waste_type=waste_type,
        severity=severity,
        assignee_in=(None,),
    )
    store = get_report_store()
    reports = await store.find(query, offset=(page - 1) * limit, limit=limit)
    total = await store.count(query)
    return reports, _pagination(page, limit, total)


async def find_nearby_reports(
    actor: Dict[str, Any],
    longitude: Optional[float] = None,
    latitude: Optional[float] = None,
    radius_meters: Optional[float] = None,
    include_assigned: bool = False,
) -> List[Tuple[Dict[str, Any], Optional[float]]]:
    """
    Open work around a point, nearest first.

    Unclaimed reports always qualify; with include_assigned the worker's own
    active reports are returned too. Without a point the distance is
    undefined, so the same filter is applied to a plain listing.

    Returns:
        (report, distance in meters or None) pairs, at most GEO_RESULT_CAP
    """
    if not can_perform(actor, Action.DISCOVER):
        raise ForbiddenError("Only waste workers can search nearby reports")

    radius = settings.DEFAULT_SEARCH_RADIUS_METERS if radius_meters is None else radius_meters
    if radius <= 0:
        raise ValidationError("radius must be a positive number of meters")
    if radius > settings.MAX_SEARCH_RADIUS_METERS:
        raise ValidationError(f"radius may not exceed {settings.MAX_SEARCH_RADIUS_METERS} meters")

    assignees = (None, actor["id"]) if include_assigned else (None,)
    query = ReportQuery(statuses=_DISCOVERABLE, assignee_in=assignees)
    store = get_report_store()
    cap = settings.GEO_RESULT_CAP

    if longitude is None or latitude is None:
        if (longitude is None) != (latitude is None):
            raise ValidationError("Longitude and latitude must be supplied together")
        reports = await store.find(query, limit=cap)
        return [(report, None) for report in reports]

    if not -180 <= longitude <= 180 or not -90 <= latitude <= 90:
        raise ValidationError("Coordinates out of range")

    ranked = await store.find_near(longitude, latitude, radius, query, cap)
    logger.info(
        f"Nearby search by {actor['id']} at ({longitude}, {latitude}) r={radius}m: {len(ranked)} result(s)"
    )
    return ranked


async def dashboard_stats(actor: Dict[str, Any]) -> Dict[str, int]:
    """
    Per-role counters: workers count their own assignments, citizens their
    own submissions, admins everything.
    """
    base: Dict[str, Any] = {}
    if is_worker(actor):
        base["assignee_in"] = (actor["id"],)
    elif is_citizen(actor):
        base["reporter"] = actor["id"]

    today = datetime.now(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)
    store = get_report_store()

    stats = {
        "total_reports": await store.count(ReportQuery(**base)),
        "pending_reports": await store.count(ReportQuery(statuses=(ReportStatus.ASSIGNED.value,), **base)),
        "in_progress_reports": await store.count(ReportQuery(statuses=(ReportStatus.IN_PROGRESS.value,), **base)),
        "completed_reports": await store.count(ReportQuery(statuses=(ReportStatus.COMPLETED.value,), **base)),
        "today_reports": await store.count(ReportQuery(created_since=today, **base)),
        "available_reports": 0,
    }
    if is_worker(actor):
        stats["available_reports"] = await store.count(
            ReportQuery(statuses=StatusWorkflowEngine.CLAIMABLE_STATUSES, assignee_in=(None,))
        )
    return stats


async def update_report_details(report_id: str, actor: Dict[str, Any], changes: ReportUpdate) -> Dict[str, Any]:
    """Admin edit of classification fields and priority. Location and reporter are immutable."""
    if not can_perform(actor, Action.EDIT_REPORT):
        raise ForbiddenError("Only administrators can edit reports")

    fields = {
        key: value.value if hasattr(value, "value") else value
        for key, value in changes.model_dump(exclude_none=True).items()
    }
    if not fields:
        raise ValidationError("No changes supplied")
    fields["updated_at"] = datetime.now(timezone.utc)

    applied, report = await get_report_store().conditional_update(report_id, guard={}, updates=fields)
    if report is None:
        raise NotFoundError("Report not found")
    logger.info(f"Report {report_id} edited by {actor['id']}: {sorted(fields)}")
    return report


async def assign_worker(report_id: str, actor: Dict[str, Any], worker_id: str) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """
    Administrative reassignment - the one sanctioned way to replace a claim.

    reported/acknowledged/assigned reports end up `assigned`; an
    `in_progress` report keeps its status under the new worker. Closed
    reports cannot be reassigned.

    Returns:
        (report, worker)
    """
    if not can_perform(actor, Action.REASSIGN):
        raise ForbiddenError("Only administrators can assign workers")

    worker = await get_user_store().get(worker_id)
    if worker is None or worker.get("role") != UserRole.WASTE_WORKER.value or not worker.get("is_active", True):
        raise ValidationError("Invalid worker ID")

    store = get_report_store()
    report = await store.get(report_id)
    if report is None:
        raise NotFoundError("Report not found")

    current = report["status"]
    previous_worker = report.get("assigned_worker")
    if current == ReportStatus.IN_PROGRESS.value:
        target = current
    elif current in StatusWorkflowEngine.CLAIMABLE_STATUSES or current == ReportStatus.ASSIGNED.value:
        target = ReportStatus.ASSIGNED.value
    else:
        raise ConflictError(f"Cannot reassign a {current} report")

    if previous_worker == worker_id:
        return report, worker

    now = datetime.now(timezone.utc)
    note = f"Reassigned from {previous_worker} to {worker_id}" if previous_worker else f"Assigned to {worker_id}"
    applied, updated = await store.conditional_update(
        report_id,
        guard={"status": (current,), "assigned_worker": (previous_worker,)},
        updates={
            "assigned_worker": worker_id,
            "status": target,
            "assigned_at": now,
            "updated_at": now,
        },
        history_entry=StatusWorkflowEngine.create_status_history_entry(
            from_status=current,
            to_status=target,
            changed_by=actor["id"],
            note=note,
            timestamp=now,
        ),
    )
    if not applied:
        if updated is None:
            raise NotFoundError("Report not found")
        raise ConflictError(
            f"Report changed while assigning; it is now {updated['status']}",
            holder=updated.get("assigned_worker"),
        )

    logger.info(f"Report {report_id}: {note} by {actor['id']}")
    return updated, worker


async def list_workers(actor: Dict[str, Any]) -> List[Dict[str, Any]]:
    if not can_perform(actor, Action.LIST_WORKERS):
        raise ForbiddenError("Only administrators can list workers")
    return await get_user_store().list_by_role(UserRole.WASTE_WORKER.value)
