"""
Status Workflow Engine - strict report lifecycle state machine.

DESIGN PRINCIPLES:
- No backward transitions, no re-entry into assigned/in_progress
- No skipping states, except an explicit admin override
- Workers may only move reports assigned to them
- All transitions logged in status_history
- Every write is conditional on the status it was validated against
"""

from datetime import datetime, timezone
from typing import Any, Dict, FrozenSet, List, Optional, Tuple
import logging

from app.core.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from app.models.report import ReportStatus
from app.services.permissions import Action, can_perform
from app.services.reward_ledger import get_reward_ledger
from app.services.storage import get_report_store

logger = logging.getLogger(__name__)


class StatusWorkflowEngine:
    """
    Transition table and lifecycle invariants.

    Rules:
    - Only pairs in ALLOWED_TRANSITIONS are valid
    - Pairs in ADMIN_ONLY_TRANSITIONS need an administrator
    - Entering `assigned` happens through claiming or reassignment, never a plain transition
    """

    ALLOWED_TRANSITIONS: Dict[ReportStatus, List[ReportStatus]] = {
        ReportStatus.REPORTED: [ReportStatus.ACKNOWLEDGED, ReportStatus.ASSIGNED, ReportStatus.REJECTED],
        ReportStatus.ACKNOWLEDGED: [ReportStatus.ASSIGNED, ReportStatus.REJECTED],
        ReportStatus.ASSIGNED: [ReportStatus.IN_PROGRESS, ReportStatus.REJECTED],
        ReportStatus.IN_PROGRESS: [ReportStatus.COMPLETED, ReportStatus.REJECTED],
        ReportStatus.COMPLETED: [ReportStatus.VERIFIED, ReportStatus.REJECTED],
        ReportStatus.VERIFIED: [],  # Terminal
        ReportStatus.REJECTED: [],  # Terminal
    }

    ADMIN_ONLY_TRANSITIONS: FrozenSet[Tuple[ReportStatus, ReportStatus]] = frozenset({
        (ReportStatus.REPORTED, ReportStatus.ACKNOWLEDGED),
        (ReportStatus.REPORTED, ReportStatus.REJECTED),
        (ReportStatus.ACKNOWLEDGED, ReportStatus.REJECTED),
        (ReportStatus.COMPLETED, ReportStatus.VERIFIED),
        (ReportStatus.COMPLETED, ReportStatus.REJECTED),
    })

    # Unclaimed work
    CLAIMABLE_STATUSES = (ReportStatus.REPORTED.value, ReportStatus.ACKNOWLEDGED.value)
    # Work a worker is actively holding
    ACTIVE_STATUSES = (ReportStatus.ASSIGNED.value, ReportStatus.IN_PROGRESS.value)
    # Statuses that cannot exist without an assigned worker
    ASSIGNEE_REQUIRED = frozenset({
        ReportStatus.ASSIGNED,
        ReportStatus.IN_PROGRESS,
        ReportStatus.COMPLETED,
        ReportStatus.VERIFIED,
    })
    TERMINAL = frozenset({ReportStatus.VERIFIED, ReportStatus.REJECTED})

    # Forward order used to validate admin overrides
    _RANK = {
        ReportStatus.REPORTED: 0,
        ReportStatus.ACKNOWLEDGED: 1,
        ReportStatus.ASSIGNED: 2,
        ReportStatus.IN_PROGRESS: 3,
        ReportStatus.COMPLETED: 4,
        ReportStatus.VERIFIED: 5,
    }

    @classmethod
    def parse_status(cls, value: str) -> ReportStatus:
        try:
            return ReportStatus(value)
        except ValueError:
            allowed = [s.value for s in ReportStatus]
            raise ValidationError(f"Invalid status '{value}'. Allowed values: {allowed}")

    @classmethod
    def is_valid_transition(cls, from_status: str, to_status: str) -> bool:
        """
        Check if a status transition is in the table.

        Args:
            from_status: Current status
            to_status: Desired new status

        Returns:
            True if transition is allowed, False otherwise (including same-status)
        """
        try:
            from_enum = ReportStatus(from_status)
            to_enum = ReportStatus(to_status)
        except ValueError:
            return False
        return to_enum in cls.ALLOWED_TRANSITIONS.get(from_enum, [])

    @classmethod
    def get_allowed_transitions(cls, current_status: str) -> List[str]:
        try:
            current_enum = ReportStatus(current_status)
        except ValueError:
            return []
        return [status.value for status in cls.ALLOWED_TRANSITIONS.get(current_enum, [])]

    @classmethod
    def requires_admin(cls, from_status: str, to_status: str) -> bool:
        return (ReportStatus(from_status), ReportStatus(to_status)) in cls.ADMIN_ONLY_TRANSITIONS

    @classmethod
    def is_valid_override(cls, from_status: str, to_status: str) -> bool:
        """
        Admin overrides may skip forward states or reject, but never leave a
        terminal state, move backwards, or reach `verified` without `completed`.
        """
        from_enum = ReportStatus(from_status)
        to_enum = ReportStatus(to_status)
        if from_enum in cls.TERMINAL or from_enum == to_enum:
            return False
        if to_enum == ReportStatus.REJECTED:
            return True
        if to_enum == ReportStatus.VERIFIED:
            return from_enum == ReportStatus.COMPLETED
        return cls._RANK[to_enum] > cls._RANK[from_enum]

    @classmethod
    def create_status_history_entry(
        cls,
        from_status: Optional[str],
        to_status: str,
        changed_by: str,
        note: Optional[str] = None,
        timestamp: Optional[datetime] = None,
    ) -> Dict:
        """
        Create a status history entry for audit trail.

        A None from_status is filled in by the store with the status the
        report had when the write was applied.
        """
        return {
            "from_status": from_status,
            "to_status": to_status,
            "changed_by": changed_by,
            "timestamp": timestamp or datetime.now(timezone.utc),
            "note": note or "",
        }

    @classmethod
    def invariant_violations(cls, report: Dict[str, Any]) -> List[str]:
        """Lifecycle invariants a stored report must satisfy; empty when it is consistent."""
        problems = []
        status = ReportStatus(report["status"])
        worker = report.get("assigned_worker")
        if status.value in cls.CLAIMABLE_STATUSES and worker is not None:
            problems.append(f"{status.value} report has assigned worker {worker}")
        if status in cls.ASSIGNEE_REQUIRED and worker is None:
            problems.append(f"{status.value} report has no assigned worker")

        collection = report.get("actual_collection")
        reached_completion = any(
            entry.get("to_status") == ReportStatus.COMPLETED.value
            for entry in report.get("status_history") or []
        )
        if status == ReportStatus.COMPLETED and not collection:
            problems.append("completed report has no collection record")
        if collection and not reached_completion:
            problems.append("collection record on a report that was never completed")
        return problems


async def transition_report(
    report_id: str,
    actor: Dict[str, Any],
    target_status: str,
    notes: Optional[str] = None,
    override: bool = False,
) -> Dict[str, Any]:
    """
    Validate and apply a lifecycle transition.

    Raises:
        NotFoundError: report does not exist
        ForbiddenError: actor may not perform this transition
        InvalidTransitionError: (current, target) not permitted
        ConflictError: the report changed between validation and write
    """
    engine = StatusWorkflowEngine
    target = engine.parse_status(target_status)
    store = get_report_store()

    report = await store.get(report_id)
    if report is None:
        raise NotFoundError("Report not found")
    current = report["status"]

    if override and not can_perform(actor, Action.OVERRIDE_TRANSITION, report):
        raise ForbiddenError("Only administrators can override the status workflow")

    if not can_perform(actor, Action.TRANSITION, report):
        raise ForbiddenError("You can only update reports assigned to you")

    if override:
        if not engine.is_valid_override(current, target.value):
            raise InvalidTransitionError(f"Cannot override status from {current} to {target.value}")
    elif not engine.is_valid_transition(current, target.value):
        allowed = engine.get_allowed_transitions(current)
        raise InvalidTransitionError(
            f"Invalid status transition: {current} → {target.value}. "
            f"Allowed transitions from {current}: {allowed}"
        )
    elif engine.requires_admin(current, target.value) and not can_perform(actor, Action.MODERATE, report):
        raise ForbiddenError(f"Only administrators can move a report from {current} to {target.value}")

    if target == ReportStatus.ASSIGNED:
        raise InvalidTransitionError("Reports become assigned by claiming or reassignment, not by a status update")
    if target in engine.ASSIGNEE_REQUIRED and report.get("assigned_worker") is None:
        raise ConflictError(f"Report has no assigned worker; claim or assign it before moving it to {target.value}")

    now = datetime.now(timezone.utc)
    updates: Dict[str, Any] = {"status": target.value, "updated_at": now}
    if target == ReportStatus.COMPLETED:
        updates["actual_collection"] = {"date": now, "worker": actor["id"], "notes": notes}
    elif target == ReportStatus.VERIFIED:
        updates["verification"] = {"verified_by": actor["id"], "verified_at": now, "notes": notes}

    history_entry = engine.create_status_history_entry(
        from_status=current,
        to_status=target.value,
        changed_by=actor["id"],
        note=notes if not override else f"[override] {notes or ''}".strip(),
        timestamp=now,
    )

    applied, updated = await store.conditional_update(
        report_id,
        guard={"status": (current,), "assigned_worker": (report.get("assigned_worker"),)},
        updates=updates,
        history_entry=history_entry,
    )
    if not applied:
        if updated is None:
            raise NotFoundError("Report not found")
        raise ConflictError(
            f"Report changed while updating; it is now {updated['status']}",
            holder=updated.get("assigned_worker"),
        )

    logger.info(f"Report {report_id}: {current} → {target.value} by {actor['id']}")

    if target == ReportStatus.COMPLETED:
        # Reward is a separate single-document write; see RewardLedger.issue_completion_reward
        await get_reward_ledger().issue_completion_reward(report_id)
        updated = await store.get(report_id) or updated

    return updated
