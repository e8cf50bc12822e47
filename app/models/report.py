"""
Pydantic models for waste reports.
These models handle validation for report submission, lifecycle requests and responses.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List, Dict
from enum import Enum


class ReportStatus(str, Enum):
    """
    Report lifecycle states.

    reported → acknowledged → assigned → in_progress → completed → verified,
    with rejected reachable from every non-terminal state.
    """
    REPORTED = "reported"
    ACKNOWLEDGED = "acknowledged"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    VERIFIED = "verified"
    REJECTED = "rejected"


class WasteType(str, Enum):
    ORGANIC = "organic"
    PLASTIC = "plastic"
    PAPER = "paper"
    GLASS = "glass"
    METAL = "metal"
    ELECTRONIC = "electronic"
    HAZARDOUS = "hazardous"
    MIXED = "mixed"
    OTHER = "other"


class WasteCategory(str, Enum):
    HOUSEHOLD = "household"
    COMMERCIAL = "commercial"
    INDUSTRIAL = "industrial"
    CONSTRUCTION = "construction"
    MEDICAL = "medical"
    OTHER = "other"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class EstimatedQuantity(str, Enum):
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"
    EXTRA_LARGE = "extra_large"


class Address(BaseModel):
    street: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""


class Location(BaseModel):
    """A (longitude, latitude) point plus optional free-text address."""
    longitude: float = Field(..., ge=-180, le=180)
    latitude: float = Field(..., ge=-90, le=90)
    address: Address = Field(default_factory=Address)
    description: str = Field("", max_length=500)


class ReportCreate(BaseModel):
    """
    Model for creating a new report.
    These are the fields citizens provide when submitting a report.
    """
    location: Location
    waste_type: WasteType
    category: WasteCategory = WasteCategory.HOUSEHOLD
    severity: Severity = Severity.MEDIUM
    estimated_quantity: EstimatedQuantity
    description: str = Field(..., min_length=1, max_length=500, description="What the citizen observed")

    class Config:
        json_schema_extra = {
            "example": {
                "location": {
                    "longitude": 80.27,
                    "latitude": 13.08,
                    "address": {"street": "Beach Road", "city": "Chennai", "state": "TN", "zip_code": "600001"},
                    "description": "Behind the bus stop",
                },
                "waste_type": "plastic",
                "category": "household",
                "severity": "medium",
                "estimated_quantity": "large",
                "description": "Overflowing bags of plastic next to the drain.",
            }
        }
        extra = "ignore"


class ReportUpdate(BaseModel):
    """Administrative edit of classification fields and priority."""
    waste_type: Optional[WasteType] = None
    category: Optional[WasteCategory] = None
    severity: Optional[Severity] = None
    estimated_quantity: Optional[EstimatedQuantity] = None
    priority: Optional[int] = Field(None, ge=1, le=5)


class StatusUpdateRequest(BaseModel):
    status: ReportStatus
    notes: Optional[str] = Field(None, max_length=500)
    override: bool = Field(False, description="Admin only: bypass the transition table")


class AssignRequest(BaseModel):
    worker_id: str = Field(..., alias="workerId", min_length=1)

    class Config:
        populate_by_name = True


class ImageRecord(BaseModel):
    blob_id: str
    original_name: str
    content_type: str
    size: int
    uploaded_at: datetime
    url: str


class ActualCollection(BaseModel):
    date: datetime
    worker: str
    notes: Optional[str] = None


class Verification(BaseModel):
    verified_by: str
    verified_at: datetime
    notes: Optional[str] = None


class RewardRecord(BaseModel):
    points_awarded: int = 0
    awarded_at: Optional[datetime] = None
    completion_points: int = 0
    completion_awarded_at: Optional[datetime] = None


class StatusHistoryEntry(BaseModel):
    """Status transition history entry."""
    from_status: str = Field("", description="Previous status")
    to_status: str = Field(..., description="New status")
    changed_by: str = Field(..., description="User who made the change")
    timestamp: datetime = Field(..., description="When change occurred")
    note: Optional[str] = Field(None, description="Optional note explaining the change")


class ReportResponse(BaseModel):
    """
    Model for report responses (what API returns).
    Image bytes are never inlined; each image carries the URL it is served from.
    """
    id: str
    reporter: str
    location: Location
    waste_type: str
    category: str
    severity: str
    estimated_quantity: str
    description: str
    images: List[ImageRecord] = Field(default_factory=list)
    status: str = ReportStatus.REPORTED.value
    assigned_worker: Optional[str] = None
    assigned_at: Optional[datetime] = None
    actual_collection: Optional[ActualCollection] = None
    verification: Optional[Verification] = None
    priority: int = 3
    rewards: RewardRecord = Field(default_factory=RewardRecord)
    status_history: List[StatusHistoryEntry] = Field(default_factory=list)
    created_at: datetime
    updated_at: Optional[datetime] = None
    distance_km: Optional[float] = Field(None, description="Set on proximity queries only")

    @classmethod
    def from_document(cls, doc: Dict, distance_meters: Optional[float] = None) -> "ReportResponse":
        data = dict(doc)
        if distance_meters is not None:
            data["distance_km"] = round(distance_meters / 1000.0, 2)
        return cls(**data)


class Pagination(BaseModel):
    current: int
    pages: int
    total: int


class ReportListResponse(BaseModel):
    success: bool = True
    reports: List[ReportResponse]
    pagination: Optional[Pagination] = None
    count: Optional[int] = None


class ReportEnvelope(BaseModel):
    success: bool = True
    message: Optional[str] = None
    report: ReportResponse


class DashboardStats(BaseModel):
    total_reports: int
    pending_reports: int
    in_progress_reports: int
    completed_reports: int
    today_reports: int
    available_reports: int
