"""
Great-circle helpers shared by report and facility discovery.

Coordinates are always (longitude, latitude) in degrees; distances are meters.
"""

import math
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

EARTH_RADIUS_METERS = 6371000.0
METERS_PER_DEGREE_LAT = math.pi * EARTH_RADIUS_METERS / 180.0

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def haversine_meters(lon1: float, lat1: float, lon2: float, lat2: float) -> float:
    """Calculate distance between two points using Haversine formula."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_METERS * c


def latitude_band(latitude: float, radius_meters: float) -> Tuple[float, float]:
    """Latitude range that contains every point within radius_meters of latitude."""
    delta = radius_meters / METERS_PER_DEGREE_LAT
    return max(-90.0, latitude - delta), min(90.0, latitude + delta)


def longitude_span(latitude: float, radius_meters: float) -> Optional[float]:
    """
    Half-width in degrees of longitude covered by the radius at this latitude.

    Returns None when the circle reaches a pole, since every longitude is then in range.
    """
    lat_lo, lat_hi = latitude_band(latitude, radius_meters)
    if lat_lo <= -90.0 or lat_hi >= 90.0:
        return None
    widest = max(abs(lat_lo), abs(lat_hi))
    cos_lat = math.cos(math.radians(widest))
    if cos_lat <= 1e-12:
        return None
    span = radius_meters / (METERS_PER_DEGREE_LAT * cos_lat)
    if span >= 180.0:
        return None
    return span


def point_of(doc: Dict[str, Any]) -> Optional[Tuple[float, float]]:
    location = doc.get("location") or {}
    lon = location.get("longitude")
    lat = location.get("latitude")
    if lon is None or lat is None:
        return None
    return float(lon), float(lat)


def _created_key(doc: Dict[str, Any]) -> float:
    created = doc.get("created_at")
    if isinstance(created, datetime):
        if created.tzinfo is None:
            created = created.replace(tzinfo=timezone.utc)
        return (created - _EPOCH).total_seconds()
    return float("inf")


def rank_within_radius(
    docs: Iterable[Dict[str, Any]],
    longitude: float,
    latitude: float,
    radius_meters: float,
    limit: int,
    predicate: Optional[Callable[[Dict[str, Any]], bool]] = None,
) -> List[Tuple[Dict[str, Any], float]]:
    """
    Keep documents within the radius and order them nearest first.

    Ties on distance are broken by creation time, oldest first. At most
    `limit` (document, distance_meters) pairs are returned.
    """
    ranked = []
    for doc in docs:
        if predicate is not None and not predicate(doc):
            continue
        point = point_of(doc)
        if point is None:
            continue
        distance = haversine_meters(longitude, latitude, point[0], point[1])
        if distance <= radius_meters:
            ranked.append((doc, distance))

    ranked.sort(key=lambda pair: (pair[1], _created_key(pair[0])))
    return ranked[:limit]
