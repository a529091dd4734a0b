"""
Pydantic models for outage reports.
These models handle validation for report submission and responses.
"""

from enum import Enum
from typing import Optional

from pydantic import Field, field_validator

from app.models.base import CamelModel
from app.models.location import LocationSource

PIN_CODE_REGEX = r"^[0-9]{6}$"


class OutageType(str, Enum):
    """Kind of service disruption being reported."""
    ELECTRICITY = "electricity"
    WATER = "water"


class OutageReportCreate(CamelModel):
    """
    Model for creating a new outage report (incoming POST request).
    Coordinates are mandatory: a report without a resolved location is rejected.
    """
    type: OutageType = Field(default=OutageType.ELECTRICITY, description="electricity or water")
    description: str = Field(..., max_length=2000, description="What the reporter observed")
    locality: str = Field(..., max_length=300, description="Finest-grained address unit")
    city: str = Field(..., max_length=100)
    state: str = Field(..., max_length=100)
    pin_code: str = Field(..., pattern=PIN_CODE_REGEX, description="6-digit Indian PIN code")
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    place_id: Optional[str] = None
    premise: Optional[str] = None
    route: Optional[str] = None
    neighborhood: Optional[str] = None
    sublocality: Optional[str] = None
    location_source: Optional[LocationSource] = None
    # Reporter identity; overwritten from the verified ID token when one is presented
    uid: Optional[str] = None
    email: Optional[str] = None

    class Config:
        extra = "ignore"
        json_schema_extra = {
            "example": {
                "type": "electricity",
                "description": "Power cut since 6 AM",
                "locality": "Sector 15",
                "city": "Gurgaon",
                "state": "Haryana",
                "pinCode": "122001",
                "lat": 28.45,
                "lng": 77.02,
                "locationSource": "search",
            }
        }

    @field_validator("description", "locality", "city", "state", "pin_code", mode="before")
    @classmethod
    def _strip_required_text(cls, value):
        if isinstance(value, str):
            value = value.strip()
            if not value:
                raise ValueError("must not be empty")
        return value


class OutageReport(OutageReportCreate):
    """A persisted outage report as stored in the outageReports collection."""
    id: str
    photo: Optional[str] = None
    timestamp: str


class ReportSubmitResponse(CamelModel):
    success: bool
    id: Optional[str] = None
    error: Optional[str] = None
