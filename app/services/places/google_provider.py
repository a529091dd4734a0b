import logging
from typing import Any, Dict, List, Optional, Tuple

import requests

from app.models.location import LatLng, PlaceResult, Prediction
from .base import PlacesError, PlacesProvider, normalize_location

logger = logging.getLogger(__name__)


class GooglePlacesProvider(PlacesProvider):
    """
    Google Places (autocomplete + details) and Geocoding web-service provider.

    - Predictions are restricted to one country and biased to a bounding box.
    - Raises PlacesError on transport errors and non-OK statuses other than ZERO_RESULTS.
    """

    name = "google"

    AUTOCOMPLETE_URL = "https://maps.googleapis.com/maps/api/place/autocomplete/json"
    DETAILS_URL = "https://maps.googleapis.com/maps/api/place/details/json"
    GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"

    DETAILS_FIELDS = "place_id,name,formatted_address,address_component,geometry"

    def __init__(
        self,
        api_key: str,
        country: str = "IN",
        bias_bounds: Optional[Tuple[float, float, float, float]] = None,
        timeout: float = 5.0,
        session: Optional[requests.Session] = None,
    ):
        self.api_key = api_key
        self.country = country.lower()
        self.bias_bounds = bias_bounds
        self.timeout = timeout
        self.http = session or requests.Session()

    def _get(self, url: str, params: Dict[str, Any]) -> Dict[str, Any]:
        params = {**params, "key": self.api_key}
        try:
            resp = self.http.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            raise PlacesError(f"Places request failed: {e}") from e

        if resp.status_code != 200:
            raise PlacesError(f"Places request failed with HTTP {resp.status_code}")

        try:
            data: Dict[str, Any] = resp.json()
        except ValueError as e:
            raise PlacesError("Places response was not valid JSON") from e

        status = data.get("status")
        if status not in ("OK", "ZERO_RESULTS"):
            message = data.get("error_message") or ""
            raise PlacesError(f"Places API returned {status}: {message}".strip().rstrip(":"))
        return data

    def autocomplete(self, query: str, session_token: str) -> List[Prediction]:
        params = {
            "input": query,
            "sessiontoken": session_token,
            "components": f"country:{self.country}",
        }
        if self.bias_bounds:
            south, west, north, east = self.bias_bounds
            params["locationbias"] = f"rectangle:{south},{west}|{north},{east}"

        data = self._get(self.AUTOCOMPLETE_URL, params)
        predictions = []
        for item in data.get("predictions") or []:
            if not item.get("place_id"):
                continue
            structured = item.get("structured_formatting") or {}
            predictions.append(Prediction(
                place_id=item["place_id"],
                description=item.get("description", ""),
                main_text=structured.get("main_text", ""),
                secondary_text=structured.get("secondary_text", ""),
            ))
        logger.debug(f"Autocomplete '{query}' returned {len(predictions)} prediction(s)")
        return predictions

    def place_details(self, place_id: str, session_token: str) -> PlaceResult:
        data = self._get(self.DETAILS_URL, {
            "place_id": place_id,
            "fields": self.DETAILS_FIELDS,
            "sessiontoken": session_token,
        })
        result = data.get("result")
        if not result:
            raise PlacesError(f"No details returned for place {place_id}")
        return self._to_place(result)

    def reverse_geocode(self, lat: float, lng: float) -> List[PlaceResult]:
        data = self._get(self.GEOCODE_URL, {"latlng": f"{lat},{lng}"})
        return [self._to_place(item) for item in data.get("results") or []]

    def geocode(self, address: str) -> Optional[LatLng]:
        data = self._get(self.GEOCODE_URL, {
            "address": address,
            "components": f"country:{self.country}",
        })
        results = data.get("results") or []
        if not results:
            return None
        return normalize_location((results[0].get("geometry") or {}).get("location"))

    @staticmethod
    def _to_place(raw: Dict[str, Any]) -> PlaceResult:
        geometry = raw.get("geometry") or {}
        return PlaceResult(
            place_id=raw.get("place_id"),
            name=raw.get("name") or "",
            formatted_address=raw.get("formatted_address") or "",
            address_components=raw.get("address_components") or [],
            location=normalize_location(geometry.get("location")),
        )
