"""
Storage providers for reports, facilities and users.

Firestore in production; in-memory when USE_MOCK_DB is set.
"""

from app.services.storage.base import (
    FacilityQuery,
    FacilityStore,
    ReportQuery,
    ReportStore,
    UserStore,
)
from app.services.storage.registry import (
    get_facility_store,
    get_report_store,
    get_user_store,
    reset_stores,
)

__all__ = [
    "FacilityQuery",
    "FacilityStore",
    "ReportQuery",
    "ReportStore",
    "UserStore",
    "get_facility_store",
    "get_report_store",
    "get_user_store",
    "reset_stores",
]
