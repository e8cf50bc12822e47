"""
In-memory storage provider.

Used when USE_MOCK_DB is enabled (local development without Firebase
credentials, and the test suite). Each store serializes its mutations
behind an asyncio.Lock, so a conditional update is atomic with respect to
every other coroutine touching the same store.
"""

import asyncio
import copy
import uuid
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from app.services.geo_index import GeoIndex
from app.services.storage.base import (
    FacilityQuery,
    FacilityStore,
    Guard,
    Ranked,
    ReportQuery,
    ReportStore,
    UserStore,
    apply_updates,
    guard_matches,
)
from app.utils.geo import point_of, rank_within_radius

logger = logging.getLogger(__name__)


def _new_id() -> str:
    return uuid.uuid4().hex[:24]


def _newest_first(docs: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return sorted(docs, key=lambda d: d.get("created_at"), reverse=True)


class MemoryReportStore(ReportStore):

    def __init__(self):
        self._docs: Dict[str, Dict[str, Any]] = {}
        self._index = GeoIndex()
        self._lock = asyncio.Lock()

    async def insert(self, report: Dict[str, Any]) -> Dict[str, Any]:
        doc = copy.deepcopy(report)
        doc.setdefault("id", _new_id())
        async with self._lock:
            self._docs[doc["id"]] = doc
            point = point_of(doc)
            if point is not None:
                self._index.insert(doc["id"], point[0], point[1])
        return copy.deepcopy(doc)

    async def get(self, report_id: str) -> Optional[Dict[str, Any]]:
        doc = self._docs.get(report_id)
        return copy.deepcopy(doc) if doc is not None else None

    async def conditional_update(
        self,
        report_id: str,
        guard: Guard,
        updates: Mapping[str, Any],
        history_entry: Optional[Dict[str, Any]] = None,
    ) -> Tuple[bool, Optional[Dict[str, Any]]]:
        async with self._lock:
            doc = self._docs.get(report_id)
            if doc is None:
                return False, None
            if not guard_matches(doc, guard):
                return False, copy.deepcopy(doc)
            apply_updates(doc, copy.deepcopy(dict(updates)), copy.deepcopy(history_entry))
            return True, copy.deepcopy(doc)

    async def find(self, query: ReportQuery, offset: int = 0, limit: int = 50) -> List[Dict[str, Any]]:
        matched = _newest_first([d for d in self._docs.values() if query.matches(d)])
        return copy.deepcopy(matched[offset:offset + limit])

    async def count(self, query: ReportQuery) -> int:
        return sum(1 for d in self._docs.values() if query.matches(d))

    async def find_near(
        self,
        longitude: float,
        latitude: float,
        radius_meters: float,
        query: ReportQuery,
        limit: int,
    ) -> Ranked:
        ids = self._index.candidates(longitude, latitude, radius_meters)
        candidates = [self._docs[i] for i in ids if i in self._docs]
        ranked = rank_within_radius(candidates, longitude, latitude, radius_meters, limit, query.matches)
        return [(copy.deepcopy(doc), distance) for doc, distance in ranked]


class MemoryFacilityStore(FacilityStore):

    def __init__(self):
        self._docs: Dict[str, Dict[str, Any]] = {}
        self._index = GeoIndex()
        self._lock = asyncio.Lock()

    async def insert(self, facility: Dict[str, Any]) -> Dict[str, Any]:
        doc = copy.deepcopy(facility)
        doc.setdefault("id", _new_id())
        async with self._lock:
            self._docs[doc["id"]] = doc
            point = point_of(doc)
            if point is not None:
                self._index.insert(doc["id"], point[0], point[1])
        return copy.deepcopy(doc)

    async def get(self, facility_id: str) -> Optional[Dict[str, Any]]:
        doc = self._docs.get(facility_id)
        return copy.deepcopy(doc) if doc is not None else None

    async def find(self, query: FacilityQuery, limit: int = 50) -> List[Dict[str, Any]]:
        matched = [d for d in self._docs.values() if query.matches(d)]
        return copy.deepcopy(matched[:limit])

    async def find_near(
        self,
        longitude: float,
        latitude: float,
        radius_meters: float,
        query: FacilityQuery,
        limit: int,
    ) -> Ranked:
        ids = self._index.candidates(longitude, latitude, radius_meters)
        candidates = [self._docs[i] for i in ids if i in self._docs]
        ranked = rank_within_radius(candidates, longitude, latitude, radius_meters, limit, query.matches)
        return [(copy.deepcopy(doc), distance) for doc, distance in ranked]


class MemoryUserStore(UserStore):

    def __init__(self):
        self._docs: Dict[str, Dict[str, Any]] = {}
        self._lock = asyncio.Lock()

    async def insert(self, user: Dict[str, Any]) -> Dict[str, Any]:
        doc = copy.deepcopy(user)
        doc.setdefault("id", _new_id())
        doc.setdefault("is_active", True)
        doc.setdefault("rewards", {"points": 0, "total_earned": 0, "level": "bronze"})
        async with self._lock:
            self._docs[doc["id"]] = doc
        return copy.deepcopy(doc)

    async def get(self, user_id: str) -> Optional[Dict[str, Any]]:
        doc = self._docs.get(user_id)
        return copy.deepcopy(doc) if doc is not None else None

    async def list_by_role(self, role: str) -> List[Dict[str, Any]]:
        users = [d for d in self._docs.values() if d.get("role") == role]
        return copy.deepcopy(sorted(users, key=lambda d: d.get("name") or ""))

    async def apply_credit(
        self,
        user_id: str,
        points: int,
        tier_for: Callable[[int], str],
    ) -> Optional[Dict[str, Any]]:
        async with self._lock:
            doc = self._docs.get(user_id)
            if doc is None:
                return None
            rewards = doc.setdefault("rewards", {})
            rewards["points"] = int(rewards.get("points", 0)) + points
            rewards["total_earned"] = int(rewards.get("total_earned", 0)) + points
            rewards["level"] = tier_for(rewards["total_earned"])
            return copy.deepcopy(doc)
