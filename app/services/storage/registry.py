"""
Storage provider registry.

Selects the in-memory stores when USE_MOCK_DB is set, Firestore otherwise.
"""

import logging
from typing import Optional

from app.core.settings import settings
from app.services.storage.base import FacilityStore, ReportStore, UserStore

logger = logging.getLogger(__name__)

_report_store: Optional[ReportStore] = None
_facility_store: Optional[FacilityStore] = None
_user_store: Optional[UserStore] = None


def get_report_store() -> ReportStore:
    global _report_store
    if _report_store is None:
        if settings.USE_MOCK_DB:
            from app.services.storage.memory_provider import MemoryReportStore
            _report_store = MemoryReportStore()
            logger.info("[STORAGE] USING IN-MEMORY REPORT STORE")
        else:
            from app.services.storage.firestore_provider import FirestoreReportStore
            _report_store = FirestoreReportStore()
            logger.info("[STORAGE] USING FIRESTORE REPORT STORE")
    return _report_store


def get_facility_store() -> FacilityStore:
    global _facility_store
    if _facility_store is None:
        if settings.USE_MOCK_DB:
            from app.services.storage.memory_provider import MemoryFacilityStore
            _facility_store = MemoryFacilityStore()
        else:
            from app.services.storage.firestore_provider import FirestoreFacilityStore
            _facility_store = FirestoreFacilityStore()
    return _facility_store


def get_user_store() -> UserStore:
    global _user_store
    if _user_store is None:
        if settings.USE_MOCK_DB:
            from app.services.storage.memory_provider import MemoryUserStore
            _user_store = MemoryUserStore()
        else:
            from app.services.storage.firestore_provider import FirestoreUserStore
            _user_store = FirestoreUserStore()
    return _user_store


def reset_stores() -> None:
    """Drop the cached providers so the next call re-reads settings."""
    global _report_store, _facility_store, _user_store
    _report_store = None
    _facility_store = None
    _user_store = None
