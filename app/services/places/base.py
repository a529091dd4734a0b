from abc import ABC, abstractmethod
from typing import Any, List, Optional
import logging

from app.models.location import LatLng, PlaceResult, Prediction

logger = logging.getLogger(__name__)


class PlacesError(Exception):
    """A places/geocoding call failed (network, quota, provider status)."""


class PlacesNotConfiguredError(PlacesError):
    """No API key is configured; search and map views run in an explicit error state."""


class PlacesProvider(ABC):
    """
    Abstract places + geocoding provider.

    Contract:
    - autocomplete() and place_details() take the caller's session token so a
      run of prediction queries and its terminal details fetch bill as one session.
    - Coordinates leave the provider as a plain LatLng; provider-specific
      geometry shapes never travel further inward.
    - Zero results is NOT an error: autocomplete/reverse_geocode return [] and
      geocode returns None.
    - Every other failure raises PlacesError. Callers decide what to show.
    """

    name = "base"

    def is_configured(self) -> bool:
        return True

    @abstractmethod
    def autocomplete(self, query: str, session_token: str) -> List[Prediction]:
        raise NotImplementedError

    @abstractmethod
    def place_details(self, place_id: str, session_token: str) -> PlaceResult:
        raise NotImplementedError

    @abstractmethod
    def reverse_geocode(self, lat: float, lng: float) -> List[PlaceResult]:
        raise NotImplementedError

    @abstractmethod
    def geocode(self, address: str) -> Optional[LatLng]:
        raise NotImplementedError


def _coordinate(value: Any) -> Optional[float]:
    if callable(value):
        value = value()
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if number != number:  # NaN
        return None
    return number


def normalize_location(raw: Any) -> Optional[LatLng]:
    """
    Normalize a provider geometry location into a LatLng.

    Accepts {"lat": .., "lng": ..} mappings, objects exposing lat/lng
    attributes, and values given either directly or as zero-argument
    accessors. Returns None when either coordinate is missing or out of range.
    """
    if raw is None:
        return None
    if isinstance(raw, dict):
        lat, lng = raw.get("lat"), raw.get("lng")
    else:
        lat, lng = getattr(raw, "lat", None), getattr(raw, "lng", None)

    lat, lng = _coordinate(lat), _coordinate(lng)
    if lat is None or lng is None:
        return None
    if not (-90 <= lat <= 90 and -180 <= lng <= 180):
        logger.warning(f"Discarding out-of-range coordinates from provider: ({lat}, {lng})")
        return None
    return LatLng(lat=lat, lng=lng)
