"""
Capability checks for the report lifecycle.

Every role decision in the core goes through can_perform(actor, action, report).
"""

from enum import Enum
from typing import Any, Dict, Optional

from app.models.user import CITIZEN_ROLES, UserRole


class Action(str, Enum):
    SUBMIT_REPORT = "submit_report"
    CLAIM = "claim"
    TRANSITION = "transition"          # worker-or-admin edges, worker must own the report
    MODERATE = "moderate"              # admin-only edges (acknowledge, verify, reject unowned work)
    OVERRIDE_TRANSITION = "override_transition"
    REASSIGN = "reassign"
    EDIT_REPORT = "edit_report"
    VIEW_ALL = "view_all"
    DISCOVER = "discover"              # available / nearby listings
    LIST_WORKERS = "list_workers"


_ROLE_ACTIONS = {
    UserRole.CITIZEN.value: {Action.SUBMIT_REPORT},
    UserRole.GREEN_CHAMPION.value: {Action.SUBMIT_REPORT},
    UserRole.WASTE_WORKER.value: {Action.CLAIM, Action.TRANSITION, Action.VIEW_ALL, Action.DISCOVER},
    UserRole.ADMIN.value: {
        Action.TRANSITION,
        Action.MODERATE,
        Action.OVERRIDE_TRANSITION,
        Action.REASSIGN,
        Action.EDIT_REPORT,
        Action.VIEW_ALL,
        Action.LIST_WORKERS,
    },
}


def is_worker(actor: Dict[str, Any]) -> bool:
    return actor.get("role") == UserRole.WASTE_WORKER.value


def is_citizen(actor: Dict[str, Any]) -> bool:
    return actor.get("role") in CITIZEN_ROLES


def can_perform(actor: Dict[str, Any], action: Action, report: Optional[Dict[str, Any]] = None) -> bool:
    """
    Whether `actor` may perform `action`, optionally on a specific report.

    A worker's TRANSITION is further restricted to reports assigned to them.
    """
    if not actor.get("is_active", True):
        return False
    if action not in _ROLE_ACTIONS.get(actor.get("role"), set()):
        return False
    if action == Action.TRANSITION and is_worker(actor):
        return report is not None and report.get("assigned_worker") == actor.get("id")
    return True
