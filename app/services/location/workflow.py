"""
Location resolution workflow - one instance per report form.

Produces a normalized, geocoded address either from free text resolved
through autocomplete + place details, or from device coordinates resolved
through reverse geocoding.

State machine:

    IDLE --set_locality--> TYPING --search--> SEARCHING --> RESULTS_SHOWN
    RESULTS_SHOWN --select_prediction--> RESOLVING --> RESOLVED
    any --use_browser_location--> BROWSER_RESOLVING --> RESOLVED
    any --clear--> IDLE

Rules:
- Coordinates are only ever written together with their source tag
  (LocationDraft re-validates on every update).
- A browser-sourced draft keeps the device coordinates; later place
  selections only refresh the address text.
- Each search is tagged with a sequence number; responses that are not from
  the latest search are dropped.
- Failures leave the draft untouched and set a user-facing message. Nothing
  is retried automatically.
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Dict, List, Optional

from app.models.location import LocationDraft, LocationSource, Prediction
from app.services.location.address_parser import parse_place
from app.services.location.session_tokens import AutocompleteSession
from app.services.places import PlacesError, PlacesProvider, get_places_provider

logger = logging.getLogger(__name__)

MIN_QUERY_LENGTH = 3

MSG_QUERY_TOO_SHORT = "Please enter at least 3 characters to search"
MSG_PLACES_NOT_READY = "Places API is not ready. Please try again."
MSG_SEARCH_FAILED = "Failed to search places. Please try again."
MSG_NO_RESULTS = "No places found. Try a different search."
MSG_DETAILS_FAILED = "Failed to get place details. Please try again."
MSG_NO_COORDINATES = "The selected place has no coordinates. Please choose another result."
MSG_GEOCODER_UNAVAILABLE = "Address lookup is unavailable because Google Maps is not configured."
MSG_GEOCODER_FAILED = "An error occurred while looking up your address. Please try again."
MSG_ADDRESS_NOT_FOUND = "Could not get address details for your location."
MSG_LOCATION_FOUND = "Your location has been automatically filled in."

# Browser GeolocationPositionError codes
GEOLOCATION_ERRORS = {
    1: "Location access denied. Please enable location permissions.",
    2: "Location information is unavailable.",
    3: "Location request timed out.",
}
MSG_GEOLOCATION_FAILED = "Could not get your location."


class LocationState(str, Enum):
    IDLE = "idle"
    TYPING = "typing"
    SEARCHING = "searching"
    RESULTS_SHOWN = "results_shown"
    RESOLVING = "resolving"
    BROWSER_RESOLVING = "browser_resolving"
    RESOLVED = "resolved"


class LocationBusyError(Exception):
    """A device-location lookup is already in flight for this form."""


class LocationWorkflow:
    def __init__(self, provider: Optional[PlacesProvider] = None):
        self._provider = provider
        self.session = AutocompleteSession()
        self.draft = LocationDraft()
        self.state = LocationState.IDLE
        self.search_results: List[Prediction] = []
        self.show_results = False
        self.search_error = ""
        self.notice = ""
        self.is_searching = False
        self.is_resolving = False
        self.is_getting_location = False
        self.has_searched = False
        self.is_autofilled = False
        self._search_seq = 0
        self._resolve_seq = 0
        self._browser_seq = 0

    @property
    def provider(self) -> PlacesProvider:
        return self._provider or get_places_provider()

    async def _call(self, fn, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, fn, *args)

    def _settle_state(self) -> None:
        if self.draft.has_coordinates and self.is_autofilled:
            self.state = LocationState.RESOLVED
        elif self.draft.locality:
            self.state = LocationState.TYPING
        else:
            self.state = LocationState.IDLE

    # ------------------------------------------------------------------
    # Typing / clearing
    # ------------------------------------------------------------------

    def set_locality(self, text: str) -> None:
        """Free-text edit of the locality field. Never touches coordinates."""
        if not text:
            self.clear()
            return

        self.draft = self.draft.with_updates(locality=text)
        self.search_error = ""
        self.notice = ""

        if len(text.strip()) < MIN_QUERY_LENGTH:
            # Suspend any search: in-flight responses are now stale
            self._search_seq += 1
            self.is_searching = False
            self.search_results = []
            self.show_results = False
            self.state = LocationState.TYPING
        elif self.state in (LocationState.IDLE, LocationState.RESOLVED):
            self.state = LocationState.TYPING

    def clear(self) -> None:
        """Reset the locality field, its coordinates and every search flag."""
        self._search_seq += 1
        self._resolve_seq += 1
        self._browser_seq += 1
        self.draft = self.draft.with_updates(
            locality="",
            lat=None,
            lng=None,
            location_source=LocationSource.NONE,
            browser_lat=None,
            browser_lng=None,
            place_id=None,
            premise="",
            route="",
            neighborhood="",
            sublocality="",
            formatted_address="",
        )
        self.search_results = []
        self.show_results = False
        self.search_error = ""
        self.notice = ""
        self.is_searching = False
        self.is_resolving = False
        self.has_searched = False
        self.is_autofilled = False
        self.state = LocationState.IDLE

    def reset(self) -> None:
        """Start over with an empty draft (after a successful submission)."""
        self.clear()
        self.draft = LocationDraft()

    def dismiss_results(self) -> None:
        self.show_results = False
        if self.state == LocationState.RESULTS_SHOWN:
            self.state = LocationState.TYPING

    # ------------------------------------------------------------------
    # Autocomplete search
    # ------------------------------------------------------------------

    async def search(self) -> List[Prediction]:
        """
        Explicit search (button / Enter) for the current locality text.

        Returns the predictions now shown, or [] when the search failed,
        found nothing, or was superseded by a newer search.
        """
        query = self.draft.locality.strip()
        if len(query) < MIN_QUERY_LENGTH:
            self.search_error = MSG_QUERY_TOO_SHORT
            self.show_results = False
            return []

        provider = self.provider
        if not provider.is_configured():
            self.search_error = MSG_PLACES_NOT_READY
            self.show_results = False
            return []

        self._search_seq += 1
        seq = self._search_seq
        self.search_error = ""
        self.notice = ""
        self.is_searching = True
        self.show_results = False
        self.has_searched = True
        self.state = LocationState.SEARCHING

        try:
            predictions = await self._call(provider.autocomplete, query, self.session.token)
        except Exception as e:
            if seq != self._search_seq:
                logger.debug(f"Ignoring failure of superseded search #{seq}: {e}")
                return []
            logger.warning(f"Autocomplete failed for '{query}': {e}", exc_info=not isinstance(e, PlacesError))
            self.session.rotate()
            self.is_searching = False
            self.search_results = []
            self.search_error = MSG_SEARCH_FAILED
            self._settle_state()
            return []

        if seq != self._search_seq:
            logger.debug(f"Discarding stale results of search #{seq} (latest is #{self._search_seq})")
            return []

        self.is_searching = False
        if not predictions:
            self.search_results = []
            self.search_error = MSG_NO_RESULTS
            self._settle_state()
            return []

        self.search_results = list(predictions)
        self.show_results = True
        self.state = LocationState.RESULTS_SHOWN
        return self.search_results

    # ------------------------------------------------------------------
    # Place selection
    # ------------------------------------------------------------------

    async def select_prediction(self, place_id: str) -> bool:
        """
        Resolve a chosen prediction through place details and fill the draft.

        The session token is rotated once the details fetch completes, whether
        it succeeded or not.
        """
        provider = self.provider
        # a search still in flight must not reopen the results
        self._search_seq += 1
        self.is_searching = False
        self._resolve_seq += 1
        seq = self._resolve_seq
        self.state = LocationState.RESOLVING
        self.is_resolving = True
        self.show_results = False
        self.search_error = ""

        try:
            place = await self._call(provider.place_details, place_id, self.session.token)
        except Exception as e:
            self.session.rotate()
            if seq != self._resolve_seq:
                return False
            logger.warning(f"Place details failed for {place_id}: {e}", exc_info=not isinstance(e, PlacesError))
            self.is_resolving = False
            self.search_error = MSG_DETAILS_FAILED
            self._settle_state()
            return False

        self.session.rotate()
        if seq != self._resolve_seq:
            logger.debug(f"Discarding superseded place selection {place_id}")
            return False
        self.is_resolving = False

        browser_sourced = self.draft.location_source == LocationSource.BROWSER
        if place.location is None and not browser_sourced:
            self.search_error = MSG_NO_COORDINATES
            self._settle_state()
            return False

        address = parse_place(place)
        fields: Dict[str, Any] = dict(
            locality=address.locality or self.draft.locality,
            city=address.city or self.draft.city,
            state=address.state or self.draft.state,
            pin_code=address.pin_code,
            place_id=place.place_id or place_id,
            premise=address.premise,
            route=address.route,
            neighborhood=address.neighborhood,
            sublocality=address.sublocality,
            formatted_address=address.formatted_address,
        )
        if not browser_sourced:
            fields.update(
                lat=place.location.lat,
                lng=place.location.lng,
                location_source=LocationSource.SEARCH,
            )
        self.draft = self.draft.with_updates(**fields)

        self.search_results = []
        self.is_autofilled = True
        self.state = LocationState.RESOLVED
        logger.info(f"Place {place_id} resolved to '{self.draft.locality}, {self.draft.city}' ({self.draft.location_source.value})")
        return True

    # ------------------------------------------------------------------
    # Device location
    # ------------------------------------------------------------------

    async def use_browser_location(self, lat: float, lng: float) -> bool:
        """
        Reverse-geocode device coordinates and fill the draft with them.

        Raises LocationBusyError while a previous lookup is still running.
        """
        if self.is_getting_location:
            raise LocationBusyError("Already getting your location.")

        provider = self.provider
        if not provider.is_configured():
            self.search_error = MSG_GEOCODER_UNAVAILABLE
            return False

        self._browser_seq += 1
        seq = self._browser_seq
        self.is_getting_location = True
        self.search_error = ""
        self.notice = ""
        self.state = LocationState.BROWSER_RESOLVING

        try:
            results = await self._call(provider.reverse_geocode, lat, lng)
        except Exception as e:
            if seq == self._browser_seq:
                logger.warning(f"Reverse geocoding failed for ({lat}, {lng}): {e}", exc_info=not isinstance(e, PlacesError))
                self.search_error = MSG_GEOCODER_FAILED
                self._settle_state()
            return False
        finally:
            self.is_getting_location = False

        if seq != self._browser_seq:
            logger.debug("Discarding device location lookup cleared by the user")
            return False

        if not results:
            self.search_error = MSG_ADDRESS_NOT_FOUND
            self._settle_state()
            return False

        first = results[0]
        address = parse_place(first)
        self.draft = self.draft.with_updates(
            locality=address.locality or self.draft.locality,
            city=address.city or self.draft.city,
            state=address.state or self.draft.state,
            pin_code=address.pin_code or self.draft.pin_code,
            place_id=first.place_id,
            premise=address.premise,
            route=address.route,
            neighborhood=address.neighborhood,
            sublocality=address.sublocality,
            formatted_address=address.formatted_address,
            lat=lat,
            lng=lng,
            browser_lat=lat,
            browser_lng=lng,
            location_source=LocationSource.BROWSER,
        )
        self.search_results = []
        self.show_results = False
        self.is_autofilled = True
        self.notice = MSG_LOCATION_FOUND
        self.state = LocationState.RESOLVED
        return True

    def geolocation_failed(self, code: Optional[int]) -> str:
        """Record a device geolocation failure reported by the browser."""
        message = GEOLOCATION_ERRORS.get(code, MSG_GEOLOCATION_FAILED)
        logger.info(f"Device geolocation failed (code={code})")
        self.search_error = message
        return message

    def snapshot(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "draft": self.draft.to_document(),
            "searchResults": [p.to_document() for p in self.search_results],
            "showResults": self.show_results,
            "searchError": self.search_error,
            "notice": self.notice,
            "isSearching": self.is_searching,
            "isResolving": self.is_resolving,
            "isGettingLocation": self.is_getting_location,
            "hasSearched": self.has_searched,
            "isAutofilled": self.is_autofilled,
            "hasCoordinates": self.draft.has_coordinates,
        }
