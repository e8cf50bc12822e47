"""
Facility discovery - nearest recycling centers, scrap shops and other
disposal points for a given waste type.
"""

from typing import Any, Dict, List, Optional, Tuple
import logging

from app.core.exceptions import NotFoundError, ValidationError
from app.core.settings import settings
from app.models.facility import FACILITY_TYPE_CATALOGUE
from app.services.storage import FacilityQuery, get_facility_store

logger = logging.getLogger(__name__)


async def list_facilities(
    facility_type: Optional[str] = None,
    waste_type: Optional[str] = None,
    longitude: Optional[float] = None,
    latitude: Optional[float] = None,
    radius_meters: Optional[float] = None,
    limit: int = 50,
) -> List[Tuple[Dict[str, Any], Optional[float]]]:
    """
    Active facilities matching the filters.

    With a point: only those within the radius, nearest first.
    Without one: an unordered filtered listing with no distance.
    """
    if limit < 1:
        raise ValidationError("limit must be at least 1")
    limit = min(limit, settings.GEO_RESULT_CAP)
    query = FacilityQuery(facility_type=facility_type, waste_type=waste_type)
    store = get_facility_store()

    if longitude is None or latitude is None:
        if (longitude is None) != (latitude is None):
            raise ValidationError("Longitude and latitude must be supplied together")
        return [(facility, None) for facility in await store.find(query, limit=limit)]

    radius = settings.DEFAULT_SEARCH_RADIUS_METERS if radius_meters is None else radius_meters
    if radius <= 0:
        raise ValidationError("radius must be a positive number of meters")
    if radius > settings.MAX_SEARCH_RADIUS_METERS:
        raise ValidationError(f"radius may not exceed {settings.MAX_SEARCH_RADIUS_METERS} meters")
    if not -180 <= longitude <= 180 or not -90 <= latitude <= 90:
        raise ValidationError("Coordinates out of range")

    ranked = await store.find_near(longitude, latitude, radius, query, limit)
    logger.info(f"Facility search at ({longitude}, {latitude}) r={radius}m: {len(ranked)} result(s)")
    return ranked


async def get_facility(facility_id: str) -> Dict[str, Any]:
    facility = await get_facility_store().get(facility_id)
    if facility is None or not facility.get("is_active", True):
        raise NotFoundError("Facility not found")
    return facility


def facility_types() -> List[Dict[str, str]]:
    return [dict(entry) for entry in FACILITY_TYPE_CATALOGUE]
