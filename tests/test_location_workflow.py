"""
Location Workflow Tests
=======================
Typed-search and device-location resolution for one report form.

Covers:
    - Search -> select fills the draft with search-sourced coordinates
    - Device location fills the draft with browser-sourced coordinates that
      survive later place selections
    - Autocomplete session token: shared by a search and its details fetch,
      replaced afterwards and after provider errors
    - Stale search responses are discarded
    - Clearing resets every search flag and the coordinates
    - Error states: short query, no results, provider failures, no geometry,
      unconfigured provider, geolocation errors, concurrent device lookups

Provider calls go to the in-memory fake from conftest.
"""
import asyncio
import threading

import pytest

from app.models.location import LocationSource, PlaceResult, Prediction
from app.services.location import LocationBusyError, LocationState, LocationWorkflow
from app.services.location.workflow import (
    GEOLOCATION_ERRORS,
    MSG_ADDRESS_NOT_FOUND,
    MSG_DETAILS_FAILED,
    MSG_GEOCODER_FAILED,
    MSG_GEOCODER_UNAVAILABLE,
    MSG_GEOLOCATION_FAILED,
    MSG_LOCATION_FOUND,
    MSG_NO_COORDINATES,
    MSG_NO_RESULTS,
    MSG_PLACES_NOT_READY,
    MSG_QUERY_TOO_SHORT,
    MSG_SEARCH_FAILED,
)
from app.services.places.resolver import UnconfiguredPlacesProvider


def _search_and_select(workflow, text="Sector 15 Gur"):
    async def run():
        workflow.set_locality(text)
        predictions = await workflow.search()
        assert predictions, "expected predictions for the query"
        return await workflow.select_prediction(predictions[0].place_id)
    return asyncio.run(run())


# ---------------------------------------------------------------------------
# Typed search
# ---------------------------------------------------------------------------
class TestSearchAndSelect:
    def test_search_shows_results(self, places):
        workflow = LocationWorkflow(places)
        workflow.set_locality("Sector 15 Gur")
        assert workflow.state == LocationState.TYPING

        predictions = asyncio.run(workflow.search())

        assert [p.place_id for p in predictions] == ["place-sector-15"]
        assert workflow.show_results is True
        assert workflow.has_searched is True
        assert workflow.is_searching is False
        assert workflow.state == LocationState.RESULTS_SHOWN

    def test_selection_fills_draft(self, places):
        workflow = LocationWorkflow(places)
        assert _search_and_select(workflow) is True

        draft = workflow.draft
        assert draft.locality == "Sector 15"
        assert draft.city == "Gurgaon"
        assert draft.state == "Haryana"
        assert draft.pin_code == "122001"
        assert (draft.lat, draft.lng) == (28.45, 77.02)
        assert draft.location_source == LocationSource.SEARCH
        assert workflow.is_autofilled is True
        assert workflow.search_results == []
        assert workflow.state == LocationState.RESOLVED

    def test_session_token_rotates_after_details(self, places):
        workflow = LocationWorkflow(places)
        _search_and_select(workflow)

        search_token = places.tokens_for("autocomplete")[0]
        assert places.tokens_for("place_details") == [search_token]
        assert workflow.session.token != search_token
        assert workflow.session.rotations == 1

    def test_short_query_is_not_sent(self, places):
        workflow = LocationWorkflow(places)
        workflow.set_locality("Se")

        assert asyncio.run(workflow.search()) == []
        assert workflow.search_error == MSG_QUERY_TOO_SHORT
        assert places.calls == []

    def test_no_results(self, places):
        workflow = LocationWorkflow(places)
        workflow.set_locality("Nowhere Special")

        assert asyncio.run(workflow.search()) == []
        assert workflow.search_error == MSG_NO_RESULTS
        assert workflow.show_results is False
        assert workflow.has_searched is True

    def test_search_failure_rotates_token(self, places):
        places.failing.add("autocomplete")
        workflow = LocationWorkflow(places)
        workflow.set_locality("Sector 15 Gur")

        assert asyncio.run(workflow.search()) == []
        assert workflow.search_error == MSG_SEARCH_FAILED
        assert workflow.is_searching is False
        assert workflow.session.rotations == 1

    def test_details_failure_keeps_draft(self, places):
        workflow = LocationWorkflow(places)
        workflow.set_locality("Sector 15 Gur")
        asyncio.run(workflow.search())
        places.failing.add("place_details")

        assert asyncio.run(workflow.select_prediction("place-sector-15")) is False
        assert workflow.search_error == MSG_DETAILS_FAILED
        assert workflow.draft.lat is None
        assert workflow.draft.locality == "Sector 15 Gur"
        assert workflow.session.rotations == 1

    def test_place_without_geometry_is_rejected(self, places):
        places.places["no-geo"] = PlaceResult(place_id="no-geo", formatted_address="Somewhere")
        workflow = LocationWorkflow(places)
        workflow.set_locality("Somewhere")

        assert asyncio.run(workflow.select_prediction("no-geo")) is False
        assert workflow.search_error == MSG_NO_COORDINATES
        assert workflow.draft.has_coordinates is False

    def test_unconfigured_provider(self):
        workflow = LocationWorkflow(UnconfiguredPlacesProvider())
        workflow.set_locality("Sector 15 Gur")

        assert asyncio.run(workflow.search()) == []
        assert workflow.search_error == MSG_PLACES_NOT_READY

    def test_dismiss_results(self, places):
        workflow = LocationWorkflow(places)
        workflow.set_locality("Sector 15 Gur")
        asyncio.run(workflow.search())

        workflow.dismiss_results()
        assert workflow.show_results is False
        assert workflow.state == LocationState.TYPING
        assert len(workflow.search_results) == 1

    def test_stale_search_is_discarded(self, places):
        first_gate = threading.Event()
        places.holds["Sector 1"] = first_gate
        places.predictions["Sector 1"] = [Prediction(place_id="old", description="Sector 1")]

        workflow = LocationWorkflow(places)

        async def run():
            workflow.set_locality("Sector 1")
            slow = asyncio.ensure_future(workflow.search())
            await asyncio.sleep(0.05)
            workflow.set_locality("Sector 15 Gur")
            latest = await workflow.search()
            first_gate.set()
            stale = await slow
            return stale, latest

        stale, latest = asyncio.run(run())

        assert stale == []
        assert [p.place_id for p in latest] == ["place-sector-15"]
        assert [p.place_id for p in workflow.search_results] == ["place-sector-15"]
        assert workflow.show_results is True

    def test_selection_supersedes_pending_search(self, places):
        gate = threading.Event()
        places.holds["Sector 15 Gurg"] = gate
        places.predictions["Sector 15 Gurg"] = [Prediction(place_id="late", description="Sector 15, Gurgaon")]
        workflow = LocationWorkflow(places)

        async def run():
            workflow.set_locality("Sector 15 Gurg")
            pending = asyncio.ensure_future(workflow.search())
            await asyncio.sleep(0.05)
            selected = await workflow.select_prediction("place-sector-15")
            gate.set()
            return selected, await pending

        selected, late = asyncio.run(run())

        assert selected is True
        assert late == []
        assert workflow.state == LocationState.RESOLVED
        assert workflow.show_results is False
        assert workflow.is_searching is False
        assert workflow.draft.city == "Gurgaon"

    def test_short_edit_suspends_pending_search(self, places):
        gate = threading.Event()
        places.holds["Sector 15 Gur"] = gate
        workflow = LocationWorkflow(places)

        async def run():
            workflow.set_locality("Sector 15 Gur")
            pending = asyncio.ensure_future(workflow.search())
            await asyncio.sleep(0.05)
            workflow.set_locality("Se")
            gate.set()
            return await pending

        assert asyncio.run(run()) == []
        assert workflow.show_results is False
        assert workflow.search_results == []


# ---------------------------------------------------------------------------
# Device location
# ---------------------------------------------------------------------------
class TestBrowserLocation:
    def test_reverse_geocoded_draft(self, places):
        workflow = LocationWorkflow(places)

        assert asyncio.run(workflow.use_browser_location(28.46, 77.03)) is True

        draft = workflow.draft
        assert draft.locality == "DLF Phase 2"
        assert draft.city == "Gurgaon"
        assert draft.pin_code == "122002"
        assert (draft.lat, draft.lng) == (28.46, 77.03)
        assert (draft.browser_lat, draft.browser_lng) == (28.46, 77.03)
        assert draft.location_source == LocationSource.BROWSER
        assert workflow.notice == MSG_LOCATION_FOUND
        assert workflow.is_getting_location is False
        assert workflow.state == LocationState.RESOLVED

    def test_browser_coordinates_survive_later_search(self, places):
        workflow = LocationWorkflow(places)
        asyncio.run(workflow.use_browser_location(28.46, 77.03))

        assert _search_and_select(workflow) is True

        draft = workflow.draft
        assert draft.locality == "Sector 15"
        assert (draft.lat, draft.lng) == (28.46, 77.03)
        assert draft.location_source == LocationSource.BROWSER

    def test_no_address_found_keeps_draft(self, places):
        workflow = LocationWorkflow(places)
        workflow.set_locality("Sector 15 Gur")

        assert asyncio.run(workflow.use_browser_location(10.0, 10.0)) is False
        assert workflow.search_error == MSG_ADDRESS_NOT_FOUND
        assert workflow.draft.has_coordinates is False
        assert workflow.draft.locality == "Sector 15 Gur"

    def test_reverse_geocode_failure(self, places):
        places.failing.add("reverse_geocode")
        workflow = LocationWorkflow(places)

        assert asyncio.run(workflow.use_browser_location(28.46, 77.03)) is False
        assert workflow.search_error == MSG_GEOCODER_FAILED
        assert workflow.is_getting_location is False

    def test_unconfigured_geocoder(self):
        workflow = LocationWorkflow(UnconfiguredPlacesProvider())

        assert asyncio.run(workflow.use_browser_location(28.46, 77.03)) is False
        assert workflow.search_error == MSG_GEOCODER_UNAVAILABLE

    def test_busy_lookup_is_refused(self, places):
        workflow = LocationWorkflow(places)
        workflow.is_getting_location = True

        with pytest.raises(LocationBusyError):
            asyncio.run(workflow.use_browser_location(28.46, 77.03))
        assert places.calls == []

    @pytest.mark.parametrize("code", sorted(GEOLOCATION_ERRORS))
    def test_geolocation_error_messages(self, code):
        workflow = LocationWorkflow()
        assert workflow.geolocation_failed(code) == GEOLOCATION_ERRORS[code]
        assert workflow.search_error == GEOLOCATION_ERRORS[code]

    def test_unknown_geolocation_error(self):
        assert LocationWorkflow().geolocation_failed(None) == MSG_GEOLOCATION_FAILED


# ---------------------------------------------------------------------------
# Clearing
# ---------------------------------------------------------------------------
class TestClear:
    def test_empty_locality_resets_everything(self, places):
        workflow = LocationWorkflow(places)
        _search_and_select(workflow)

        workflow.set_locality("")

        assert workflow.has_searched is False
        assert workflow.is_autofilled is False
        assert workflow.search_results == []
        assert workflow.show_results is False
        assert workflow.draft.has_coordinates is False
        assert workflow.draft.location_source == LocationSource.NONE
        assert workflow.state == LocationState.IDLE

    def test_clear_drops_browser_coordinates(self, places):
        workflow = LocationWorkflow(places)
        asyncio.run(workflow.use_browser_location(28.46, 77.03))

        workflow.clear()

        assert workflow.draft.browser_lat is None
        assert workflow.draft.lat is None
        # City / state / PIN are separate fields and stay
        assert workflow.draft.city == "Gurgaon"

    def test_typing_never_touches_coordinates(self, places):
        workflow = LocationWorkflow(places)
        _search_and_select(workflow)

        workflow.set_locality("Sector 15, near the market")

        assert (workflow.draft.lat, workflow.draft.lng) == (28.45, 77.02)

    def test_snapshot_shape(self, places):
        workflow = LocationWorkflow(places)
        _search_and_select(workflow)

        snapshot = workflow.snapshot()
        assert snapshot["state"] == "resolved"
        assert snapshot["hasCoordinates"] is True
        assert snapshot["draft"]["pinCode"] == "122001"
        assert snapshot["draft"]["locationSource"] == "search"
