import logging
from typing import List, Optional, Tuple

from app.core.settings import settings
from .base import PlacesNotConfiguredError, PlacesProvider
from .google_provider import GooglePlacesProvider

logger = logging.getLogger(__name__)

MISSING_KEY_MESSAGE = "Google Maps API key is missing."

_provider_instance: Optional[PlacesProvider] = None


class UnconfiguredPlacesProvider(PlacesProvider):
    """Stand-in used when no API key is set; every call fails with an explicit error."""

    name = "unconfigured"

    def is_configured(self) -> bool:
        return False

    def autocomplete(self, query, session_token):
        raise PlacesNotConfiguredError(MISSING_KEY_MESSAGE)

    def place_details(self, place_id, session_token):
        raise PlacesNotConfiguredError(MISSING_KEY_MESSAGE)

    def reverse_geocode(self, lat, lng):
        raise PlacesNotConfiguredError(MISSING_KEY_MESSAGE)

    def geocode(self, address):
        raise PlacesNotConfiguredError(MISSING_KEY_MESSAGE)


def parse_bias_bounds(raw: Optional[str]) -> Optional[Tuple[float, float, float, float]]:
    """Parse "south,west,north,east" into a tuple; None when unset or malformed."""
    if not raw:
        return None
    try:
        parts: List[float] = [float(p) for p in raw.split(",")]
    except ValueError:
        logger.warning(f"Ignoring malformed PLACES_BIAS_BOUNDS: {raw!r}")
        return None
    if len(parts) != 4:
        logger.warning(f"PLACES_BIAS_BOUNDS needs 4 numbers, got {len(parts)}")
        return None
    return parts[0], parts[1], parts[2], parts[3]


def get_places_provider() -> PlacesProvider:
    """
    Resolve the active places provider based on settings.

    - GOOGLE_MAPS_API_KEY set: Google Places / Geocoding.
    - Otherwise: UnconfiguredPlacesProvider (explicit error state, never silent).
    """
    global _provider_instance
    if _provider_instance is not None:
        return _provider_instance

    if settings.GOOGLE_MAPS_API_KEY:
        _provider_instance = GooglePlacesProvider(
            api_key=settings.GOOGLE_MAPS_API_KEY,
            country=settings.PLACES_COUNTRY,
            bias_bounds=parse_bias_bounds(settings.PLACES_BIAS_BOUNDS),
            timeout=settings.EXTERNAL_TIMEOUT_SECONDS,
        )
        logger.info("Places provider initialized: google")
    else:
        logger.warning("GOOGLE_MAPS_API_KEY not set; location search and map views are disabled")
        _provider_instance = UnconfiguredPlacesProvider()

    return _provider_instance


def set_places_provider(provider: Optional[PlacesProvider]) -> None:
    """Replace the active provider (None re-resolves from settings on next use)."""
    global _provider_instance
    _provider_instance = provider
