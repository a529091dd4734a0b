"""
Outage browsing - per-city report lists and the map view model.

Read path only. Every list is read from the store; a "reports_updated"
event bumps the revision so open views know to refetch.
"""

import asyncio
import logging
import math
import threading
from typing import Any, Dict, List, Optional

from app.services import report_service
from app.services.places import PlacesError, PlacesNotConfiguredError, get_places_provider
from app.services.places.resolver import MISSING_KEY_MESSAGE
from app.services.report_events import REPORTS_UPDATED, ReportEventBus, get_event_bus

logger = logging.getLogger(__name__)

INDIA_CENTER = {"lat": 22.5937, "lng": 78.9629}
INDIA_ZOOM = 4
CITY_ZOOM = 12

MARKER_COLORS = {
    "electricity": "#F59E0B",
    "water": "#4F46E5",
}

GEOCODE_NOT_FOUND_MESSAGE = "Could not geocode city. Showing India."
GEOCODE_FAILED_MESSAGE = "Failed to geocode city."


def _as_coordinate(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def build_markers(reports: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Map markers for reports whose coordinates parse as numbers; others are dropped."""
    markers = []
    for report in reports:
        lat = _as_coordinate(report.get("lat"))
        lng = _as_coordinate(report.get("lng"))
        if lat is None or lng is None:
            logger.debug(f"Skipping report {report.get('id')} without numeric coordinates")
            continue
        outage_type = report.get("type") or "electricity"
        markers.append({
            "id": report.get("id"),
            "lat": lat,
            "lng": lng,
            "type": outage_type,
            "color": MARKER_COLORS.get(outage_type, MARKER_COLORS["water"]),
            "description": report.get("description", ""),
            "locality": report.get("locality", ""),
            "city": report.get("city", ""),
            "timestamp": report.get("timestamp"),
        })
    return markers


def marker_bounds(markers: List[Dict[str, Any]]) -> Optional[Dict[str, float]]:
    """Bounds to fit when more than one marker is shown."""
    if len(markers) < 2:
        return None
    lats = [m["lat"] for m in markers]
    lngs = [m["lng"] for m in markers]
    return {"south": min(lats), "west": min(lngs), "north": max(lats), "east": max(lngs)}


def summarize(reports: List[Dict[str, Any]]) -> Dict[str, int]:
    counts = {outage_type: 0 for outage_type in MARKER_COLORS}
    for report in reports:
        outage_type = report.get("type")
        if outage_type in counts:
            counts[outage_type] += 1
    counts["total"] = len(reports)
    return counts


class OutageBrowseService:
    def __init__(self, event_bus: Optional[ReportEventBus] = None):
        self._revision = 0
        self._lock = threading.Lock()
        self._unsubscribe = (event_bus or get_event_bus()).subscribe(REPORTS_UPDATED, self._on_reports_updated)

    def _on_reports_updated(self, payload: dict) -> None:
        with self._lock:
            self._revision += 1
        logger.info(f"Browse revision {self._revision} after report {payload.get('id')}")

    @property
    def revision(self) -> int:
        """Bumped on every stored report; views refetch when it changes."""
        return self._revision

    async def reports_for_city(self, city: Optional[str]) -> List[Dict[str, Any]]:
        """Reports whose city matches exactly; all reports when city is empty."""
        return await report_service.list_reports(city or None)

    async def map_view(self, location: Optional[str]) -> Dict[str, Any]:
        """
        Map view model for a city: centre, zoom, markers and an optional error.

        No location: India at zoom 4 with no markers. The centre falls back to
        India when geocoding finds nothing or fails.
        """
        view: Dict[str, Any] = {
            "location": location or "",
            "center": dict(INDIA_CENTER),
            "zoom": INDIA_ZOOM,
            "markers": [],
            "bounds": None,
            "error": None,
            "revision": self.revision,
        }
        if not location:
            return view

        provider = get_places_provider()
        if not provider.is_configured():
            view["error"] = MISSING_KEY_MESSAGE
        else:
            loop = asyncio.get_running_loop()
            try:
                center = await loop.run_in_executor(None, provider.geocode, location)
            except PlacesNotConfiguredError:
                view["error"] = MISSING_KEY_MESSAGE
            except PlacesError as e:
                logger.warning(f"Geocoding '{location}' failed: {e}")
                view["error"] = GEOCODE_FAILED_MESSAGE
            else:
                if center is None:
                    view["error"] = GEOCODE_NOT_FOUND_MESSAGE
                else:
                    view["center"] = {"lat": center.lat, "lng": center.lng}
                    view["zoom"] = CITY_ZOOM

        reports = await self.reports_for_city(location)
        view["markers"] = build_markers(reports)
        view["bounds"] = marker_bounds(view["markers"])
        return view

    def close(self) -> None:
        self._unsubscribe()


_browse_service: Optional[OutageBrowseService] = None


def get_browse_service() -> OutageBrowseService:
    global _browse_service
    if _browse_service is None:
        _browse_service = OutageBrowseService()
    return _browse_service
