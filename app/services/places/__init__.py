"""
Places provider boundary: autocomplete, place details and (reverse) geocoding.

Configured from GOOGLE_MAPS_API_KEY; without a key every call raises
PlacesNotConfiguredError so the UI can show an explicit error state.
"""

from app.services.places.base import PlacesError, PlacesNotConfiguredError, PlacesProvider, normalize_location
from app.services.places.resolver import get_places_provider, set_places_provider

__all__ = [
    "PlacesError",
    "PlacesNotConfiguredError",
    "PlacesProvider",
    "normalize_location",
    "get_places_provider",
    "set_places_provider",
]
