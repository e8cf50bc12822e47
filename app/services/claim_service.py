"""
Claim Arbitrator - race-free, single-winner assignment of reports to workers.

A claim is one conditional update against the report store: set
`assigned_worker` and move to `assigned`, only if nobody holds the report
yet. The store evaluates the guard and applies the write atomically, so with
any number of concurrent callers exactly one sees the update applied.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional
import logging

from app.core.exceptions import ForbiddenError
from app.models.report import ReportStatus
from app.services.permissions import Action, can_perform
from app.services.status_workflow import StatusWorkflowEngine
from app.services.storage import ReportStore, UserStore, get_report_store, get_user_store

logger = logging.getLogger(__name__)


class ClaimOutcome(str, Enum):
    CLAIMED = "claimed"
    ALREADY_ASSIGNED = "already_assigned"   # held by another worker
    ALREADY_OWNED = "already_owned"         # caller already holds it; no-op
    NOT_CLAIMABLE = "not_claimable"         # unassigned but closed (rejected)
    NOT_FOUND = "not_found"


@dataclass
class ClaimResult:
    outcome: ClaimOutcome
    report: Optional[Dict[str, Any]] = None
    holder_id: Optional[str] = None
    holder_name: Optional[str] = None

    @property
    def claimed(self) -> bool:
        return self.outcome == ClaimOutcome.CLAIMED

    @property
    def message(self) -> str:
        if self.outcome == ClaimOutcome.CLAIMED:
            return "Report claimed successfully! You can now start working on it."
        if self.outcome == ClaimOutcome.ALREADY_OWNED:
            return "You have already claimed this report"
        if self.outcome == ClaimOutcome.ALREADY_ASSIGNED:
            return f"This report is already assigned to {self.holder_name or 'another worker'}"
        if self.outcome == ClaimOutcome.NOT_CLAIMABLE:
            status = (self.report or {}).get("status", "closed")
            return f"This report is {status} and can no longer be claimed"
        return "Report not found"


class ClaimArbitrator:
    """
    Arbitrates concurrent claims on the same report.
    """

    def __init__(self, report_store: Optional[ReportStore] = None, user_store: Optional[UserStore] = None):
        self._report_store = report_store
        self._user_store = user_store

    @property
    def reports(self) -> ReportStore:
        return self._report_store or get_report_store()

    @property
    def users(self) -> UserStore:
        return self._user_store or get_user_store()

    async def claim(self, report_id: str, worker: Dict[str, Any]) -> ClaimResult:
        """
        Try to take exclusive ownership of an unassigned report.

        Args:
            report_id: Report document ID
            worker: Acting user (must hold the worker role)

        Returns:
            ClaimResult describing who, if anyone, holds the report afterwards
        """
        if not can_perform(worker, Action.CLAIM):
            raise ForbiddenError("Only waste workers can claim reports")

        worker_id = worker["id"]
        now = datetime.now(timezone.utc)
        history_entry = StatusWorkflowEngine.create_status_history_entry(
            from_status=None,
            to_status=ReportStatus.ASSIGNED.value,
            changed_by=worker_id,
            note="Claimed by worker",
            timestamp=now,
        )

        applied, report = await self.reports.conditional_update(
            report_id,
            guard={
                "assigned_worker": (None,),
                "status": StatusWorkflowEngine.CLAIMABLE_STATUSES,
            },
            updates={
                "assigned_worker": worker_id,
                "status": ReportStatus.ASSIGNED.value,
                "assigned_at": now,
                "updated_at": now,
            },
            history_entry=history_entry,
        )

        if applied:
            logger.info(f"Report {report_id} claimed by {worker_id}")
            return ClaimResult(ClaimOutcome.CLAIMED, report=report, holder_id=worker_id, holder_name=worker.get("name"))

        if report is None:
            return ClaimResult(ClaimOutcome.NOT_FOUND)

        holder_id = report.get("assigned_worker")
        if holder_id is None:
            logger.info(f"Claim on report {report_id} refused: status is {report.get('status')}")
            return ClaimResult(ClaimOutcome.NOT_CLAIMABLE, report=report)

        if holder_id == worker_id:
            return ClaimResult(ClaimOutcome.ALREADY_OWNED, report=report, holder_id=worker_id, holder_name=worker.get("name"))

        holder = await self.users.get(holder_id)
        holder_name = (holder or {}).get("name")
        logger.info(f"Claim on report {report_id} by {worker_id} lost to {holder_id}")
        return ClaimResult(ClaimOutcome.ALREADY_ASSIGNED, report=report, holder_id=holder_id, holder_name=holder_name)


# Global arbitrator instance (singleton pattern)
_claim_arbitrator: Optional[ClaimArbitrator] = None


def get_claim_arbitrator() -> ClaimArbitrator:
    global _claim_arbitrator
    if _claim_arbitrator is None:
        _claim_arbitrator = ClaimArbitrator()
    return _claim_arbitrator
