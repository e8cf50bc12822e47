"""
Facility models. Facilities are read-mostly points of interest used for discovery.
"""

from pydantic import BaseModel, Field
from typing import Dict, List, Optional
from enum import Enum


class FacilityType(str, Enum):
    RECYCLING_CENTER = "recycling_center"
    SCRAP_SHOP = "scrap_shop"
    WASTE_TREATMENT_PLANT = "waste_treatment_plant"
    COMPOSTING_FACILITY = "composting_facility"
    TRANSFER_STATION = "transfer_station"
    LANDFILL = "landfill"
    HAZARDOUS_WASTE_FACILITY = "hazardous_waste_facility"
    E_WASTE_CENTER = "e_waste_center"


FACILITY_TYPE_CATALOGUE = [
    {"value": "recycling_center", "label": "Recycling Center",
     "description": "Processes recyclable materials like plastic, paper, glass"},
    {"value": "scrap_shop", "label": "Scrap Shop",
     "description": "Buys and processes metal scraps and electronic waste"},
    {"value": "waste_treatment_plant", "label": "Waste Treatment Plant",
     "description": "Treats and processes various types of waste"},
    {"value": "composting_facility", "label": "Composting Facility",
     "description": "Converts organic waste into compost"},
    {"value": "transfer_station", "label": "Transfer Station",
     "description": "Temporary storage and sorting of waste"},
    {"value": "landfill", "label": "Landfill",
     "description": "Final disposal site for non-recyclable waste"},
    {"value": "hazardous_waste_facility", "label": "Hazardous Waste Facility",
     "description": "Specialized handling of dangerous waste materials"},
    {"value": "e_waste_center", "label": "E-Waste Center",
     "description": "Electronic waste recycling and disposal"},
]


class FacilityLocation(BaseModel):
    longitude: float = Field(..., ge=-180, le=180)
    latitude: float = Field(..., ge=-90, le=90)
    address: Dict[str, str] = Field(default_factory=dict)


class FacilityRating(BaseModel):
    average: float = Field(0, ge=0, le=5)
    count: int = 0


class FacilityResponse(BaseModel):
    id: str
    name: str
    type: FacilityType
    location: FacilityLocation
    accepted_waste_types: List[str] = Field(default_factory=list)
    operating_hours: Dict[str, Dict] = Field(default_factory=dict)
    contact: Dict[str, Optional[str]] = Field(default_factory=dict)
    rating: FacilityRating = Field(default_factory=FacilityRating)
    is_active: bool = True
    description: Optional[str] = None
    distance_km: Optional[float] = None


class FacilityListResponse(BaseModel):
    success: bool = True
    facilities: List[FacilityResponse]
    count: int
