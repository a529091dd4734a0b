"""
Locale Routing Tests
====================
Locale prefixes, Accept-Language negotiation, message catalogs and the
auth gate in front of /dashboard and /report.

Covers:
    - split / switch locale paths
    - Accept-Language q-value negotiation
    - English fallback for untranslated keys
    - Protected pages redirect (307) to the locale root without a session cookie
    - Whole-segment matching for protected paths
"""
import pytest

from app.core.i18n import (
    DEFAULT_LOCALE,
    LOCALES,
    get_messages,
    negotiate_locale,
    split_locale_path,
    switch_locale_path,
    translate,
)
from app.core.middleware import is_protected_path


# ---------------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------------
def test_locales():
    assert DEFAULT_LOCALE == "en"
    assert len(LOCALES) == 23
    assert {"hi", "ta", "sat", "brx"} <= set(LOCALES)


@pytest.mark.parametrize("path, expected", [
    ("/hi/report", ("hi", "/report")),
    ("/hi", ("hi", "/")),
    ("/report", (None, "/report")),
    ("/history", (None, "/history")),
    ("/", (None, "/")),
])
def test_split_locale_path(path, expected):
    assert split_locale_path(path) == expected


@pytest.mark.parametrize("path, locale, expected", [
    ("/hi/dashboard", "ta", "/ta/dashboard"),
    ("/dashboard", "bn", "/bn/dashboard"),
    ("/", "hi", "/hi"),
    ("/en", "hi", "/hi"),
])
def test_switch_locale_path(path, locale, expected):
    assert switch_locale_path(path, locale) == expected


def test_switch_to_unsupported_locale():
    with pytest.raises(ValueError):
        switch_locale_path("/dashboard", "fr")


@pytest.mark.parametrize("header, expected", [
    (None, "en"),
    ("hi-IN,hi;q=0.9,en;q=0.8", "hi"),
    ("fr-FR,ta;q=0.7,en;q=0.5", "ta"),
    ("en;q=0.2,mr;q=0.9", "mr"),
    ("fr,de", "en"),
    ("hi;q=0", "en"),
])
def test_negotiate_locale(header, expected):
    assert negotiate_locale(header) == expected


@pytest.mark.parametrize("path, protected", [
    ("/dashboard", True),
    ("/dashboard/settings", True),
    ("/report", True),
    ("/reports", False),
    ("/reporting/x", False),
    ("/", False),
])
def test_is_protected_path(path, protected):
    assert is_protected_path(path) is protected


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------
def test_translate_hindi():
    assert translate("hi", "navigation.home") == "होम"


def test_untranslated_locale_falls_back_to_english():
    assert translate("ta", "navigation.dashboard") == "Dashboard"


def test_missing_key_returns_key():
    assert translate("en", "navigation.nowhere") == "navigation.nowhere"


def test_unsupported_catalog():
    with pytest.raises(ValueError):
        get_messages("xx")


# ---------------------------------------------------------------------------
# Middleware / pages
# ---------------------------------------------------------------------------
class TestLocaleRouting:
    def test_protected_page_redirects_to_locale_root(self, client):
        resp = client.get("/hi/report", follow_redirects=False)
        assert resp.status_code == 307
        assert resp.headers["location"] == "/hi"

    def test_unprefixed_protected_page_redirects_to_root(self, client):
        resp = client.get("/dashboard", follow_redirects=False)
        assert resp.status_code == 307
        assert resp.headers["location"] == "/"

    def test_protected_page_with_cookie(self, client):
        client.cookies.set("idToken", "anything")
        resp = client.get("/hi/report")

        assert resp.status_code == 200
        body = resp.json()
        assert body["page"] == "report"
        assert body["locale"] == "hi"
        assert body["outageTypes"] == ["electricity", "water"]
        assert resp.headers["content-language"] == "hi"

    def test_dashboard_lists_latest_reports(self, client):
        client.cookies.set("idToken", "anything")
        resp = client.get("/dashboard", headers={"Accept-Language": "ta,en;q=0.5"})

        assert resp.status_code == 200
        assert resp.json()["locale"] == "ta"
        assert resp.json()["latestReports"] == []

    def test_home_page(self, client):
        resp = client.get("/hi")
        assert resp.status_code == 200
        assert resp.json()["page"] == "home"
        assert resp.json()["navigation"]["home"] == "होम"

    def test_unknown_locale_page(self, client):
        assert client.get("/xx").status_code == 404

    def test_locale_endpoints(self, client):
        locales = client.get("/api/i18n/locales", headers={"Accept-Language": "hi"}).json()
        assert locales["default"] == "en"
        assert locales["current"] == "hi"

        assert client.get("/api/i18n/switch", params={"path": "/hi/dashboard", "locale": "en"}).json() == {"path": "/en/dashboard"}
        assert client.get("/api/i18n/switch", params={"path": "/", "locale": "zz"}).status_code == 400
        assert client.get("/api/i18n/messages/xx").status_code == 404
