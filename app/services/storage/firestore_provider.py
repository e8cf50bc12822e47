"""
Firestore storage provider (async client).

Collections: `reports`, `facilities`, `users`.

Conditional updates and reward credits run inside Firestore transactions:
the read and the write commit together or not at all, and the server aborts
(and the client retries) a transaction whose read was invalidated by a
concurrent commit. That is what makes claiming race-free without any
process-level lock.

Proximity queries push the status (or `is_active`) filter into Firestore and
read the radius' latitude band outward from the search point, one page at a
time north and south, ordered on `location.latitude`. A document's latitude
gap is a lower bound on its distance, so the scan stops once neither
direction can beat the current last result, and it never reads more than
GEO_SCAN_LIMIT documents. Exact haversine ranking happens in process.

Required composite indexes:
- reports: status ASC + created_at DESC
- reports: assigned_worker ASC + status ASC + created_at DESC
- reports: reporter ASC + created_at DESC
- reports: status ASC + location.latitude ASC
- reports: status ASC + location.latitude DESC
- facilities: is_active ASC + location.latitude ASC
- facilities: is_active ASC + location.latitude DESC
"""

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from firebase_admin import firestore
from google.api_core.exceptions import GoogleAPICallError

from app.config.firebase import get_async_db
from app.core.exceptions import StorageError
from app.core.settings import settings
from app.services.storage.base import (
    FacilityQuery,
    FacilityStore,
    Guard,
    Ranked,
    ReportQuery,
    ReportStore,
    UserStore,
    apply_updates,
    complete_history_entry,
    guard_matches,
)
from app.utils.firestore_helpers import snapshot_to_dict, where_filter
from app.utils.geo import haversine_meters, latitude_band, point_of, rank_within_radius

logger = logging.getLogger(__name__)

REPORTS = "reports"
FACILITIES = "facilities"
USERS = "users"


def _storage_error(action: str, exc: Exception) -> StorageError:
    logger.error(f"Firestore {action} failed: {exc}", exc_info=True)
    return StorageError(f"Datastore unavailable while trying to {action}")


async def _scan_outward(
    base,
    longitude: float,
    latitude: float,
    radius_meters: float,
    limit: int,
    predicate: Callable[[Dict[str, Any]], bool],
) -> Ranked:
    """
    Nearest-first search over `base` restricted to the radius' latitude band.

    `base` already carries the equality and `in` filters. The band is walked
    north and south of `latitude` in pages, always extending the direction
    whose frontier is closer to the search point.
    """
    lat_lo, lat_hi = latitude_band(latitude, radius_meters)
    field = "location.latitude"
    north = where_filter(where_filter(base, field, ">=", latitude), field, "<=", lat_hi)
    south = where_filter(where_filter(base, field, "<", latitude), field, ">=", lat_lo)
    cursors = {
        "north": north.order_by(field, direction=firestore.Query.ASCENDING),
        "south": south.order_by(field, direction=firestore.Query.DESCENDING),
    }
    frontier = {"north": latitude, "south": latitude}
    page_size = settings.GEO_SCAN_PAGE_SIZE

    docs: List[Dict[str, Any]] = []
    ranked: Ranked = []
    scanned = 0
    while cursors:
        direction = min(cursors, key=lambda d: abs(frontier[d] - latitude))
        page = [s async for s in cursors[direction].limit(page_size).stream()]
        scanned += len(page)
        if len(page) < page_size:
            del cursors[direction]
        else:
            cursors[direction] = cursors[direction].start_after(page[-1])
        for snapshot in page:
            doc = snapshot_to_dict(snapshot)
            docs.append(doc)
            point = point_of(doc)
            if point is not None:
                frontier[direction] = point[1]

        ranked = rank_within_radius(docs, longitude, latitude, radius_meters, limit, predicate)
        if len(ranked) >= limit:
            worst = ranked[-1][1]
            if all(haversine_meters(longitude, latitude, longitude, frontier[d]) > worst for d in cursors):
                break
        if cursors and scanned >= settings.GEO_SCAN_LIMIT:
            logger.warning(
                f"Proximity scan at ({longitude}, {latitude}) r={radius_meters}m stopped after {scanned} documents"
            )
            break
    return ranked


class FirestoreReportStore(ReportStore):

    def __init__(self, db=None):
        self._db = db

    @property
    def db(self):
        if self._db is None:
            self._db = get_async_db()
        return self._db

    def _apply_query(self, query: ReportQuery):
        """Push every filter Firestore can evaluate; report whether residual filtering is needed."""
        q = self.db.collection(REPORTS)
        residual = False
        if query.statuses is not None:
            q = where_filter(q, "status", "in", list(query.statuses))
        if query.waste_type is not None:
            q = where_filter(q, "waste_type", "==", query.waste_type)
        if query.severity is not None:
            q = where_filter(q, "severity", "==", query.severity)
        if query.reporter is not None:
            q = where_filter(q, "reporter", "==", query.reporter)
        if query.assignee_in is not None:
            if len(query.assignee_in) == 1:
                q = where_filter(q, "assigned_worker", "==", query.assignee_in[0])
            else:
                residual = True
        if query.created_since is not None:
            q = where_filter(q, "created_at", ">=", query.created_since)
        return q, residual

    async def insert(self, report: Dict[str, Any]) -> Dict[str, Any]:
        doc = dict(report)
        try:
            if doc.get("id"):
                ref = self.db.collection(REPORTS).document(doc["id"])
            else:
                ref = self.db.collection(REPORTS).document()
                doc["id"] = ref.id
            await ref.set(doc)
        except GoogleAPICallError as e:
            raise _storage_error("save the report", e)
        logger.info(f"Report saved to Firestore: {doc['id']}")
        return doc

    async def get(self, report_id: str) -> Optional[Dict[str, Any]]:
        try:
            snapshot = await self.db.collection(REPORTS).document(report_id).get()
        except GoogleAPICallError as e:
            raise _storage_error("load the report", e)
        return snapshot_to_dict(snapshot)

    async def conditional_update(
        self,
        report_id: str,
        guard: Guard,
        updates: Mapping[str, Any],
        history_entry: Optional[Dict[str, Any]] = None,
    ) -> Tuple[bool, Optional[Dict[str, Any]]]:
        ref = self.db.collection(REPORTS).document(report_id)
        transaction = self.db.transaction()

        @firestore.async_transactional
        async def _compare_and_set(transaction):
            snapshot = await ref.get(transaction=transaction)
            doc = snapshot_to_dict(snapshot)
            if doc is None:
                return False, None
            if not guard_matches(doc, guard):
                return False, doc

            payload = dict(updates)
            if history_entry is not None:
                entry = complete_history_entry(doc, history_entry)
                payload["status_history"] = list(doc.get("status_history") or []) + [entry]
            transaction.update(ref, payload)
            return True, apply_updates(doc, updates, history_entry)

        try:
            return await _compare_and_set(transaction)
        except GoogleAPICallError as e:
            raise _storage_error("update the report", e)

    async def find(self, query: ReportQuery, offset: int = 0, limit: int = 50) -> List[Dict[str, Any]]:
        q, residual = self._apply_query(query)
        q = q.order_by("created_at", direction=firestore.Query.DESCENDING)
        try:
            if not residual:
                return [snapshot_to_dict(s) async for s in q.offset(offset).limit(limit).stream()]
            docs = [snapshot_to_dict(s) async for s in q.stream()]
        except GoogleAPICallError as e:
            raise _storage_error("list reports", e)
        matched = [d for d in docs if query.matches(d)]
        return matched[offset:offset + limit]

    async def count(self, query: ReportQuery) -> int:
        q, residual = self._apply_query(query)
        try:
            if not residual:
                results = await q.count(alias="total").get()
                return int(results[0][0].value)
            docs = [snapshot_to_dict(s) async for s in q.stream()]
            return sum(1 for d in docs if query.matches(d))
        except GoogleAPICallError as e:
            raise _storage_error("count reports", e)

    async def find_near(
        self,
        longitude: float,
        latitude: float,
        radius_meters: float,
        query: ReportQuery,
        limit: int,
    ) -> Ranked:
        q = self.db.collection(REPORTS)
        if query.statuses is not None:
            q = where_filter(q, "status", "in", list(query.statuses))
        try:
            return await _scan_outward(q, longitude, latitude, radius_meters, limit, query.matches)
        except GoogleAPICallError as e:
            raise _storage_error("search nearby reports", e)


class FirestoreFacilityStore(FacilityStore):

    def __init__(self, db=None):
        self._db = db

    @property
    def db(self):
        if self._db is None:
            self._db = get_async_db()
        return self._db

    async def insert(self, facility: Dict[str, Any]) -> Dict[str, Any]:
        doc = dict(facility)
        doc.setdefault("is_active", True)
        try:
            if doc.get("id"):
                ref = self.db.collection(FACILITIES).document(doc["id"])
            else:
                ref = self.db.collection(FACILITIES).document()
                doc["id"] = ref.id
            await ref.set(doc)
        except GoogleAPICallError as e:
            raise _storage_error("save the facility", e)
        return doc

    async def get(self, facility_id: str) -> Optional[Dict[str, Any]]:
        try:
            snapshot = await self.db.collection(FACILITIES).document(facility_id).get()
        except GoogleAPICallError as e:
            raise _storage_error("load the facility", e)
        return snapshot_to_dict(snapshot)

    async def find(self, query: FacilityQuery, limit: int = 50) -> List[Dict[str, Any]]:
        q = self.db.collection(FACILITIES)
        if query.active_only:
            q = where_filter(q, "is_active", "==", True)
        if query.facility_type is not None:
            q = where_filter(q, "type", "==", query.facility_type)
        if query.waste_type is not None:
            q = where_filter(q, "accepted_waste_types", "array_contains", query.waste_type)
        try:
            return [snapshot_to_dict(s) async for s in q.limit(limit).stream()]
        except GoogleAPICallError as e:
            raise _storage_error("list facilities", e)

    async def find_near(
        self,
        longitude: float,
        latitude: float,
        radius_meters: float,
        query: FacilityQuery,
        limit: int,
    ) -> Ranked:
        q = self.db.collection(FACILITIES)
        if query.active_only:
            q = where_filter(q, "is_active", "==", True)
        try:
            return await _scan_outward(q, longitude, latitude, radius_meters, limit, query.matches)
        except GoogleAPICallError as e:
            raise _storage_error("search nearby facilities", e)


class FirestoreUserStore(UserStore):

    def __init__(self, db=None):
        self._db = db

    @property
    def db(self):
        if self._db is None:
            self._db = get_async_db()
        return self._db

    async def insert(self, user: Dict[str, Any]) -> Dict[str, Any]:
        doc = dict(user)
        doc.setdefault("is_active", True)
        doc.setdefault("rewards", {"points": 0, "total_earned": 0, "level": "bronze"})
        try:
            if doc.get("id"):
                ref = self.db.collection(USERS).document(doc["id"])
            else:
                ref = self.db.collection(USERS).document()
                doc["id"] = ref.id
            await ref.set(doc)
        except GoogleAPICallError as e:
            raise _storage_error("save the user", e)
        return doc

    async def get(self, user_id: str) -> Optional[Dict[str, Any]]:
        try:
            snapshot = await self.db.collection(USERS).document(user_id).get()
        except GoogleAPICallError as e:
            raise _storage_error("load the user", e)
        return snapshot_to_dict(snapshot)

    async def list_by_role(self, role: str) -> List[Dict[str, Any]]:
        q = where_filter(self.db.collection(USERS), "role", "==", role)
        try:
            users = [snapshot_to_dict(s) async for s in q.stream()]
        except GoogleAPICallError as e:
            raise _storage_error("list users", e)
        return sorted(users, key=lambda d: d.get("name") or "")

    async def apply_credit(
        self,
        user_id: str,
        points: int,
        tier_for: Callable[[int], str],
    ) -> Optional[Dict[str, Any]]:
        ref = self.db.collection(USERS).document(user_id)
        transaction = self.db.transaction()

        @firestore.async_transactional
        async def _credit(transaction):
            snapshot = await ref.get(transaction=transaction)
            doc = snapshot_to_dict(snapshot)
            if doc is None:
                return None
            rewards = dict(doc.get("rewards") or {})
            rewards["points"] = int(rewards.get("points", 0)) + points
            rewards["total_earned"] = int(rewards.get("total_earned", 0)) + points
            rewards["level"] = tier_for(rewards["total_earned"])
            transaction.update(ref, {"rewards": rewards})
            doc["rewards"] = rewards
            return doc

        try:
            return await _credit(transaction)
        except GoogleAPICallError as e:
            raise _storage_error("credit reward points", e)
