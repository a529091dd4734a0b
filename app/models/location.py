"""
Pydantic models for location resolution.

LocationDraft is immutable: every change goes through with_updates(), which
re-validates the whole draft so coordinates and their source always change
together.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import Field, model_validator

from app.models.base import CamelModel


class LocationSource(str, Enum):
    """Where the draft's coordinates came from."""
    BROWSER = "browser"
    SEARCH = "search"
    NONE = "none"


class LatLng(CamelModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class Prediction(CamelModel):
    """One autocomplete suggestion."""
    place_id: str
    description: str = ""
    main_text: str = ""
    secondary_text: str = ""


class PlaceResult(CamelModel):
    """
    Place details or a reverse-geocoding hit, normalized at the provider boundary.
    address_components keep the provider's {long_name, short_name, types} shape.
    """
    place_id: Optional[str] = None
    name: str = ""
    formatted_address: str = ""
    address_components: List[Dict[str, Any]] = Field(default_factory=list)
    location: Optional[LatLng] = None


class NormalizedAddress(CamelModel):
    """Address fields derived from a PlaceResult."""
    locality: str = ""
    city: str = ""
    state: str = ""
    pin_code: str = ""
    premise: str = ""
    route: str = ""
    neighborhood: str = ""
    sublocality: str = ""
    formatted_address: str = ""


class LocationDraft(CamelModel):
    """
    Transient address/coordinate state for one report-submission attempt.
    """
    locality: str = ""
    city: str = ""
    state: str = ""
    pin_code: str = ""
    lat: Optional[float] = None
    lng: Optional[float] = None
    location_source: LocationSource = LocationSource.NONE
    browser_lat: Optional[float] = None
    browser_lng: Optional[float] = None
    place_id: Optional[str] = None
    premise: str = ""
    route: str = ""
    neighborhood: str = ""
    sublocality: str = ""
    formatted_address: str = ""

    class Config:
        frozen = True

    @model_validator(mode="after")
    def _check_coordinates(self):
        if (self.lat is None) != (self.lng is None):
            raise ValueError("lat and lng must be set together")
        if self.location_source == LocationSource.NONE and self.lat is not None:
            raise ValueError("coordinates without a location source")
        if self.location_source != LocationSource.NONE and self.lat is None:
            raise ValueError(f"location source '{self.location_source.value}' without coordinates")
        if self.location_source == LocationSource.BROWSER:
            if (self.lat, self.lng) != (self.browser_lat, self.browser_lng):
                raise ValueError("browser-sourced draft must keep the browser coordinates")
        return self

    @property
    def has_coordinates(self) -> bool:
        return self.lat is not None and self.lng is not None

    def with_updates(self, **changes) -> "LocationDraft":
        """Return a new, re-validated draft with the given fields replaced."""
        data = self.model_dump()
        data.update(changes)
        return LocationDraft(**data)


class SavedLocationCreate(CamelModel):
    """A location the user subscribes to for outage notifications."""
    address: str = Field(..., min_length=1, max_length=500)
    place_id: Optional[str] = None
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    premise: str = ""
    route: str = ""
    neighborhood: str = ""
    sublocality: str = ""
    city: str = ""
    state: str = ""
    pin_code: str = Field("", pattern=r"^([0-9]{6})?$")
    notify: bool = True


class SavedLocation(SavedLocationCreate):
    id: str
    created_at: Optional[str] = None


# Request bodies for the report form session endpoints

class ReportFieldsUpdate(CamelModel):
    type: Optional[str] = None
    description: Optional[str] = None
    locality: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    pin_code: Optional[str] = None


class SelectPredictionRequest(CamelModel):
    place_id: str = Field(..., min_length=1)


class BrowserLocationRequest(CamelModel):
    """Device geolocation outcome: coordinates on success, or the browser's error code."""
    lat: Optional[float] = Field(None, ge=-90, le=90)
    lng: Optional[float] = Field(None, ge=-180, le=180)
    error_code: Optional[int] = None
