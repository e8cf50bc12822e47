"""
Firestore query helpers.

NOTE: We use positional where() arguments, which work reliably with both the
sync and async firebase_admin clients. The deprecation warning is just a warning.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional


def where_filter(query, field_path: str, op_string: str, value):
    """
    Helper function for Firestore queries.

    Usage:
        query = where_filter(collection, "status", "==", "reported")
        query = where_filter(query, "location.latitude", ">=", 12.9)
    """
    return query.where(field_path, op_string, value)


def to_utc(value: Any) -> Any:
    """Normalize Firestore timestamps and naive datetimes to aware UTC datetimes."""
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    if hasattr(value, "to_datetime"):
        return to_utc(value.to_datetime())
    return value


def snapshot_to_dict(snapshot) -> Optional[Dict[str, Any]]:
    """
    Convert a document snapshot to a plain dict carrying its `id`.

    Returns None for snapshots of documents that do not exist.
    """
    if snapshot is None or not snapshot.exists:
        return None
    data = snapshot.to_dict() or {}
    data["id"] = snapshot.id
    for key in ("created_at", "updated_at", "assigned_at"):
        if data.get(key) is not None:
            data[key] = to_utc(data[key])
    return data
