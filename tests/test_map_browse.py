"""
Outage Browsing Tests
=====================
Per-city report lists and the map view model.

Covers:
    - Markers only for numeric coordinates, coloured by outage type
    - Bounds only when more than one marker is shown
    - India centre / zoom 4 without a city or when geocoding finds nothing
    - Missing Maps key reported as an error, markers still shown
    - Lists read from the store on every call; revision bumped on reports_updated
"""
import asyncio
import math
from unittest.mock import patch

from app.models.location import LatLng
from app.services import report_service
from app.services.outage_browse_service import (
    CITY_ZOOM,
    GEOCODE_FAILED_MESSAGE,
    GEOCODE_NOT_FOUND_MESSAGE,
    INDIA_CENTER,
    INDIA_ZOOM,
    MARKER_COLORS,
    OutageBrowseService,
    build_markers,
    marker_bounds,
    summarize,
)
from app.services.places.resolver import MISSING_KEY_MESSAGE
from app.services.report_events import REPORTS_UPDATED, ReportEventBus


def _seed(db_reports):
    from app.config.mock_firestore import get_mock_db
    collection = get_mock_db("").collection("outageReports")
    for doc_id, data in db_reports.items():
        collection.document(doc_id).set(data)


GURGAON_REPORTS = {
    "r1": {"type": "electricity", "city": "Gurgaon", "lat": 28.45, "lng": 77.02, "timestamp": "2026-10-18T06:00:00+00:00"},
    "r2": {"type": "water", "city": "Gurgaon", "lat": 28.48, "lng": 77.09, "timestamp": "2026-10-18T07:00:00+00:00"},
    "r3": {"type": "water", "city": "New Delhi", "lat": 28.56, "lng": 77.24, "timestamp": "2026-10-18T08:00:00+00:00"},
}


# ---------------------------------------------------------------------------
# Markers
# ---------------------------------------------------------------------------
def test_markers_skip_non_numeric_coordinates():
    reports = [
        {"id": "ok", "type": "water", "lat": "28.45", "lng": 77.02},
        {"id": "nan", "type": "water", "lat": math.nan, "lng": 77.0},
        {"id": "inf", "type": "water", "lat": 28.0, "lng": math.inf},
        {"id": "text", "type": "water", "lat": "north", "lng": 77.0},
        {"id": "missing", "type": "electricity"},
        {"id": "bool", "type": "electricity", "lat": True, "lng": 77.0},
    ]
    markers = build_markers(reports)
    assert [m["id"] for m in markers] == ["ok"]
    assert markers[0]["lat"] == 28.45


def test_marker_colors():
    markers = build_markers([
        {"id": "e", "type": "electricity", "lat": 1, "lng": 1},
        {"id": "w", "type": "water", "lat": 2, "lng": 2},
    ])
    assert [m["color"] for m in markers] == [MARKER_COLORS["electricity"], MARKER_COLORS["water"]]
    assert MARKER_COLORS == {"electricity": "#F59E0B", "water": "#4F46E5"}


def test_bounds_need_two_markers():
    one = build_markers([{"id": "a", "type": "water", "lat": 28.4, "lng": 77.0}])
    assert marker_bounds(one) is None

    two = one + build_markers([{"id": "b", "type": "water", "lat": 28.6, "lng": 77.3}])
    assert marker_bounds(two) == {"south": 28.4, "west": 77.0, "north": 28.6, "east": 77.3}


def test_summarize():
    assert summarize(list(GURGAON_REPORTS.values())) == {"electricity": 1, "water": 2, "total": 3}


# ---------------------------------------------------------------------------
# Map view
# ---------------------------------------------------------------------------
class TestMapView:
    def test_no_location_shows_india(self, places):
        view = asyncio.run(OutageBrowseService(ReportEventBus()).map_view(None))

        assert view["center"] == INDIA_CENTER
        assert view["zoom"] == INDIA_ZOOM
        assert view["markers"] == []
        assert view["error"] is None
        assert places.calls == []

    def test_city_view(self, places):
        _seed(GURGAON_REPORTS)
        places.geocodes["Gurgaon"] = LatLng(lat=28.4595, lng=77.0266)

        view = asyncio.run(OutageBrowseService(ReportEventBus()).map_view("Gurgaon"))

        assert view["center"] == {"lat": 28.4595, "lng": 77.0266}
        assert view["zoom"] == CITY_ZOOM
        assert sorted(m["id"] for m in view["markers"]) == ["r1", "r2"]
        assert view["bounds"] == {"south": 28.45, "west": 77.02, "north": 28.48, "east": 77.09}
        assert view["error"] is None

    def test_geocode_not_found_falls_back_to_india(self, places):
        _seed(GURGAON_REPORTS)

        view = asyncio.run(OutageBrowseService(ReportEventBus()).map_view("Gurgaon"))

        assert view["center"] == INDIA_CENTER
        assert view["error"] == GEOCODE_NOT_FOUND_MESSAGE
        assert len(view["markers"]) == 2

    def test_geocode_failure(self, places):
        places.failing.add("geocode")

        view = asyncio.run(OutageBrowseService(ReportEventBus()).map_view("Gurgaon"))

        assert view["error"] == GEOCODE_FAILED_MESSAGE
        assert view["zoom"] == INDIA_ZOOM

    def test_missing_key(self):
        _seed(GURGAON_REPORTS)

        view = asyncio.run(OutageBrowseService(ReportEventBus()).map_view("Gurgaon"))

        assert view["error"] == MISSING_KEY_MESSAGE
        assert len(view["markers"]) == 2


# ---------------------------------------------------------------------------
# Freshness
# ---------------------------------------------------------------------------
def test_every_read_goes_to_the_store():
    service = OutageBrowseService(ReportEventBus())
    assert asyncio.run(service.reports_for_city("Gurgaon")) == []

    _seed(GURGAON_REPORTS)

    assert len(asyncio.run(service.reports_for_city("Gurgaon"))) == 2


def test_read_overlapping_a_publish_does_not_hide_new_report():
    bus = ReportEventBus()
    service = OutageBrowseService(bus)
    list_reports = report_service.list_reports
    calls = []

    async def slow_list(city):
        calls.append(city)
        result = await list_reports(city)
        if len(calls) == 1:
            # a submission lands while the first read is still in flight
            _seed(GURGAON_REPORTS)
            bus.publish(REPORTS_UPDATED, {"id": "r1"})
        return result

    with patch.object(report_service, "list_reports", new=slow_list):
        assert asyncio.run(service.reports_for_city("Gurgaon")) == []
        assert len(asyncio.run(service.reports_for_city("Gurgaon"))) == 2

    assert calls == ["Gurgaon", "Gurgaon"]


def test_revision_bumped_on_reports_updated():
    bus = ReportEventBus()
    service = OutageBrowseService(bus)
    assert service.revision == 0

    assert bus.publish(REPORTS_UPDATED, {"id": "r1"}) == 1

    assert service.revision == 1
    assert asyncio.run(service.map_view(None))["revision"] == 1


def test_close_unsubscribes():
    bus = ReportEventBus()
    service = OutageBrowseService(bus)
    service.close()
    assert bus.publish(REPORTS_UPDATED, {}) == 0


def test_failing_subscriber_does_not_break_publish():
    bus = ReportEventBus()
    received = []

    def broken(payload):
        raise RuntimeError("boom")

    bus.subscribe(REPORTS_UPDATED, broken)
    bus.subscribe(REPORTS_UPDATED, received.append)

    assert bus.publish(REPORTS_UPDATED, {"id": "x"}) == 1
    assert received == [{"id": "x"}]


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------
def test_map_endpoint_without_key(client):
    resp = client.get("/api/outages/map", params={"location": "Gurgaon"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["error"] == MISSING_KEY_MESSAGE
    assert body["center"] == INDIA_CENTER


def test_outages_by_city_endpoint(client):
    _seed(GURGAON_REPORTS)

    body = client.get("/api/outages", params={"city": "Gurgaon"}).json()

    assert body["city"] == "Gurgaon"
    assert body["summary"] == {"electricity": 1, "water": 1, "total": 2}
