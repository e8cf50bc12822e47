"""
Storage provider interfaces.

Contract shared by every provider:
- Documents are plain dicts. Reports and facilities carry
  `location = {"longitude", "latitude", ...}`; all timestamps are aware datetimes.
- Reads return copies; mutating a returned dict never touches the store.
- ReportStore.conditional_update is the only way to change `assigned_worker`
  and must be atomic in the backing datastore itself.
- Provider failures surface as app.core.exceptions.StorageError.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple
import logging

logger = logging.getLogger(__name__)

# field path -> admissible current values (None means "absent")
Guard = Mapping[str, Sequence[Any]]

_MISSING = object()


def get_field(doc: Mapping[str, Any], path: str, default: Any = None) -> Any:
    """Read a dotted field path such as "rewards.completion_awarded_at"."""
    node: Any = doc
    for part in path.split("."):
        if not isinstance(node, Mapping) or part not in node:
            return default
        node = node[part]
    return node


def set_field(doc: Dict[str, Any], path: str, value: Any) -> None:
    """Write a dotted field path, creating intermediate maps as needed."""
    parts = path.split(".")
    node = doc
    for part in parts[:-1]:
        child = node.get(part)
        if not isinstance(child, dict):
            child = {}
            node[part] = child
        node = child
    node[parts[-1]] = value


def guard_matches(doc: Mapping[str, Any], guard: Guard) -> bool:
    for path, admissible in guard.items():
        if get_field(doc, path) not in tuple(admissible):
            return False
    return True


def complete_history_entry(doc: Mapping[str, Any], history_entry: Dict[str, Any]) -> Dict[str, Any]:
    """Fill a history entry's missing `from_status` with the status the document has before the write."""
    entry = dict(history_entry)
    if entry.get("from_status") is None:
        entry["from_status"] = doc.get("status", "")
    return entry


def apply_updates(
    doc: Dict[str, Any],
    updates: Mapping[str, Any],
    history_entry: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Apply dotted-path updates (and an optional history entry) to doc in place."""
    if history_entry is not None:
        history_entry = complete_history_entry(doc, history_entry)
    for path, value in updates.items():
        set_field(doc, path, value)
    if history_entry is not None:
        doc["status_history"] = list(doc.get("status_history") or []) + [history_entry]
    return doc


@dataclass
class ReportQuery:
    """
    Filters understood by every ReportStore.

    `assignee_in` restricts `assigned_worker` to the given values, with None
    standing for "unassigned".
    """
    statuses: Optional[Tuple[str, ...]] = None
    waste_type: Optional[str] = None
    severity: Optional[str] = None
    reporter: Optional[str] = None
    assignee_in: Optional[Tuple[Optional[str], ...]] = None
    created_since: Optional[Any] = None

    def matches(self, doc: Mapping[str, Any]) -> bool:
        if self.statuses is not None and doc.get("status") not in self.statuses:
            return False
        if self.waste_type is not None and doc.get("waste_type") != self.waste_type:
            return False
        if self.severity is not None and doc.get("severity") != self.severity:
            return False
        if self.reporter is not None and doc.get("reporter") != self.reporter:
            return False
        if self.assignee_in is not None and doc.get("assigned_worker") not in self.assignee_in:
            return False
        if self.created_since is not None:
            created = doc.get("created_at")
            if created is None or created < self.created_since:
                return False
        return True


@dataclass
class FacilityQuery:
    facility_type: Optional[str] = None
    waste_type: Optional[str] = None
    active_only: bool = True

    def matches(self, doc: Mapping[str, Any]) -> bool:
        if self.active_only and not doc.get("is_active", True):
            return False
        if self.facility_type is not None and doc.get("type") != self.facility_type:
            return False
        if self.waste_type is not None and self.waste_type not in (doc.get("accepted_waste_types") or []):
            return False
        return True


Ranked = List[Tuple[Dict[str, Any], float]]


class ReportStore(ABC):
    """Authoritative collection of waste reports."""

    @abstractmethod
    async def insert(self, report: Dict[str, Any]) -> Dict[str, Any]:
        """Persist a new report, assigning `id` when absent. Returns the stored copy."""
        raise NotImplementedError

    @abstractmethod
    async def get(self, report_id: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    @abstractmethod
    async def conditional_update(
        self,
        report_id: str,
        guard: Guard,
        updates: Mapping[str, Any],
        history_entry: Optional[Dict[str, Any]] = None,
    ) -> Tuple[bool, Optional[Dict[str, Any]]]:
        """
        Atomically apply `updates` only if every guarded field currently holds
        one of its admissible values.

        Returns (applied, document): the updated document when applied, the
        current document when the guard failed, and (False, None) when the
        report does not exist.
        """
        raise NotImplementedError

    @abstractmethod
    async def find(self, query: ReportQuery, offset: int = 0, limit: int = 50) -> List[Dict[str, Any]]:
        """Matching reports, newest first."""
        raise NotImplementedError

    @abstractmethod
    async def count(self, query: ReportQuery) -> int:
        raise NotImplementedError

    @abstractmethod
    async def find_near(
        self,
        longitude: float,
        latitude: float,
        radius_meters: float,
        query: ReportQuery,
        limit: int,
    ) -> Ranked:
        """Matching reports within the radius as (document, meters), nearest first."""
        raise NotImplementedError


class FacilityStore(ABC):

    @abstractmethod
    async def insert(self, facility: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError

    @abstractmethod
    async def get(self, facility_id: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    @abstractmethod
    async def find(self, query: FacilityQuery, limit: int = 50) -> List[Dict[str, Any]]:
        raise NotImplementedError

    @abstractmethod
    async def find_near(
        self,
        longitude: float,
        latitude: float,
        radius_meters: float,
        query: FacilityQuery,
        limit: int,
    ) -> Ranked:
        raise NotImplementedError


class UserStore(ABC):

    @abstractmethod
    async def insert(self, user: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError

    @abstractmethod
    async def get(self, user_id: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    @abstractmethod
    async def list_by_role(self, role: str) -> List[Dict[str, Any]]:
        """Users with the given role, ordered by name."""
        raise NotImplementedError

    @abstractmethod
    async def apply_credit(
        self,
        user_id: str,
        points: int,
        tier_for: Callable[[int], str],
    ) -> Optional[Dict[str, Any]]:
        """
        Atomically add points to `rewards.points` and `rewards.total_earned`
        and set `rewards.level = tier_for(total_earned)` in the same write.

        Returns the updated user, or None if the user does not exist.
        """
        raise NotImplementedError
