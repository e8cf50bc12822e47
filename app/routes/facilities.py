"""
Facility endpoints - discovery of disposal and recycling points.
"""

from typing import Optional

from fastapi import APIRouter, Query

from app.core.settings import settings
from app.models.facility import FacilityListResponse, FacilityResponse, FacilityType
from app.models.report import WasteType
from app.services import facility_service

router = APIRouter(prefix="/facilities", tags=["Facilities"])


@router.get("", response_model=FacilityListResponse)
async def get_facilities(
    facility_type: Optional[FacilityType] = Query(None, alias="type"),
    waste_type: Optional[WasteType] = Query(None, alias="wasteType"),
    longitude: Optional[float] = Query(None),
    latitude: Optional[float] = Query(None),
    radius: Optional[float] = Query(None, le=settings.MAX_SEARCH_RADIUS_METERS, description="Search radius in meters"),
    limit: int = Query(50, ge=1, le=100),
):
    """
    Active facilities. With longitude/latitude the list is restricted to the
    radius and ordered nearest first, each entry carrying `distance_km`.
    """
    ranked = await facility_service.list_facilities(
        facility_type=facility_type.value if facility_type else None,
        waste_type=waste_type.value if waste_type else None,
        longitude=longitude,
        latitude=latitude,
        radius_meters=radius,
        limit=limit,
    )
    facilities = []
    for doc, meters in ranked:
        facility = FacilityResponse(**doc)
        if meters is not None:
            facility.distance_km = round(meters / 1000.0, 2)
        facilities.append(facility)
    return FacilityListResponse(facilities=facilities, count=len(facilities))


@router.get("/types/list")
async def get_facility_types():
    return {"success": True, "data": {"types": facility_service.facility_types()}}


@router.get("/{facility_id}")
async def get_facility(facility_id: str):
    facility = await facility_service.get_facility(facility_id)
    return {"success": True, "data": {"facility": FacilityResponse(**facility)}}
