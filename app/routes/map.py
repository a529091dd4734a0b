"""Outage browsing routes - map view model and per-city report lists.

The map response has a strict JSON shape; Pydantic models let FastAPI
validate it. A missing Maps API key is reported in "error" rather than
failing the request.
"""

from typing import List, Optional

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel

from app.services.outage_browse_service import get_browse_service, summarize


class MapPoint(BaseModel):
    lat: float
    lng: float


class MapBounds(BaseModel):
    south: float
    west: float
    north: float
    east: float


class MapMarker(BaseModel):
    id: Optional[str] = None
    lat: float
    lng: float
    type: str
    color: str
    description: Optional[str] = ""
    locality: Optional[str] = ""
    city: Optional[str] = ""
    timestamp: Optional[str] = None


class MapView(BaseModel):
    location: str
    center: MapPoint
    zoom: int
    markers: List[MapMarker]
    bounds: Optional[MapBounds] = None
    error: Optional[str] = None
    revision: int = 0


router = APIRouter(prefix="/api/outages", tags=["Outages"])


@router.get("/map", response_model=MapView)
async def outage_map(location: Optional[str] = Query(None, description="City to centre on (exact match)")):
    """
    Map view for a city: centre (geocoded, zoom 12) and one marker per report
    with numeric coordinates. Without a city the map shows India at zoom 4.
    """
    try:
        return await get_browse_service().map_view(location)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to fetch outage data: {str(e)}")


@router.get("")
async def outages_by_city(city: Optional[str] = Query(None, description="City name (exact match)")):
    """Reports for a city with per-type counts."""
    service = get_browse_service()
    try:
        reports = await service.reports_for_city(city)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to fetch outage data: {str(e)}")
    return {"city": city or "", "reports": reports, "summary": summarize(reports), "revision": service.revision}
