"""
Shared fixtures.

The app runs against the in-memory mock Firestore with no Maps key and no
Firebase credentials; places and identity providers are replaced by fakes.
"""
import os
import threading

os.environ["USE_MOCK_DB"] = "true"
os.environ["MOCK_DB_PATH"] = ""
os.environ["GOOGLE_MAPS_API_KEY"] = ""
os.environ["FIREBASE_STORAGE_BUCKET"] = ""
os.environ["LOG_LEVEL"] = "WARNING"

from typing import Dict, List, Optional, Tuple

import pytest
from fastapi.testclient import TestClient

from app.config.mock_firestore import get_mock_db
from app.models.location import LatLng, PlaceResult, Prediction
from app.models.user import AuthAccount
from app.services import auth_service, report_form
from app.services.auth_session import get_auth_session_store
from app.services.identity_provider import IdentityError, IdentityProvider, set_identity_provider
from app.services.places import PlacesError, PlacesProvider, set_places_provider


# ---------------------------------------------------------------------------
# Fake providers
# ---------------------------------------------------------------------------
class FakePlacesProvider(PlacesProvider):
    """Canned predictions / details / geocoding keyed by input."""

    name = "fake"

    def __init__(self):
        self.predictions: Dict[str, List[Prediction]] = {}
        self.places: Dict[str, PlaceResult] = {}
        self.reverse: Dict[Tuple[float, float], List[PlaceResult]] = {}
        self.geocodes: Dict[str, Optional[LatLng]] = {}
        self.failing = set()
        # query -> event the autocomplete call waits on before answering
        self.holds: Dict[str, threading.Event] = {}
        self.calls: List[tuple] = []

    def _check(self, method: str):
        if method in self.failing:
            raise PlacesError(f"{method} failed")

    def autocomplete(self, query, session_token):
        self.calls.append(("autocomplete", query, session_token))
        if query in self.holds:
            self.holds[query].wait(5)
        self._check("autocomplete")
        return list(self.predictions.get(query, []))

    def place_details(self, place_id, session_token):
        self.calls.append(("place_details", place_id, session_token))
        self._check("place_details")
        if place_id not in self.places:
            raise PlacesError(f"unknown place {place_id}")
        return self.places[place_id]

    def reverse_geocode(self, lat, lng):
        self.calls.append(("reverse_geocode", lat, lng))
        self._check("reverse_geocode")
        return list(self.reverse.get((lat, lng), []))

    def geocode(self, address):
        self.calls.append(("geocode", address))
        self._check("geocode")
        return self.geocodes.get(address)

    def tokens_for(self, method: str) -> List[str]:
        return [call[2] for call in self.calls if call[0] == method]


def sector_15_place() -> PlaceResult:
    return PlaceResult(
        place_id="place-sector-15",
        name="Sector 15",
        formatted_address="Sector 15, Gurgaon, Haryana 122001, India",
        address_components=[
            {"long_name": "Sector 15", "short_name": "Sector 15", "types": ["route"]},
            {"long_name": "Gurgaon", "short_name": "Gurgaon", "types": ["locality", "political"]},
            {"long_name": "Haryana", "short_name": "HR", "types": ["administrative_area_level_1", "political"]},
            {"long_name": "122001", "short_name": "122001", "types": ["postal_code"]},
        ],
        location=LatLng(lat=28.45, lng=77.02),
    )


def dlf_phase_2_place() -> PlaceResult:
    return PlaceResult(
        place_id="place-dlf-2",
        formatted_address="DLF Phase 2, Sector 25, Gurgaon, Haryana 122002, India",
        address_components=[
            {"long_name": "DLF Phase 2", "short_name": "DLF Phase 2", "types": ["neighborhood", "political"]},
            {"long_name": "Sector 25", "short_name": "Sector 25", "types": ["sublocality_level_1", "sublocality"]},
            {"long_name": "Gurgaon", "short_name": "Gurgaon", "types": ["locality", "political"]},
            {"long_name": "Haryana", "short_name": "HR", "types": ["administrative_area_level_1", "political"]},
            {"long_name": "122002", "short_name": "122002", "types": ["postal_code"]},
        ],
        location=LatLng(lat=28.4817, lng=77.0917),
    )


class FakeIdentityProvider(IdentityProvider):
    """In-memory accounts; tokens are "token-<uid>"."""

    def __init__(self):
        self.accounts: Dict[str, dict] = {}
        self.verification_emails: List[str] = []
        self.reset_emails: List[str] = []
        self.fail_verification_email = False

    def add_account(self, uid, email, password="secret1", verified=True, name=""):
        self.accounts[uid] = {"email": email, "password": password, "verified": verified, "name": name}
        return self.get_account(uid)

    def _by_email(self, email):
        for uid, data in self.accounts.items():
            if data["email"] == email:
                return uid, data
        return None, None

    def sign_up(self, email, password):
        if self._by_email(email)[0]:
            raise IdentityError("auth/email-already-in-use")
        uid = f"uid-{len(self.accounts) + 1}"
        self.add_account(uid, email, password, verified=False)
        return self.get_account(uid).model_copy(update={"id_token": f"token-{uid}"})

    def sign_in(self, email, password):
        uid, data = self._by_email(email)
        if uid is None or data["password"] != password:
            raise IdentityError("auth/invalid-credential")
        return self.get_account(uid).model_copy(update={"id_token": f"token-{uid}"})

    def update_display_name(self, uid, name):
        self.accounts[uid]["name"] = name

    def send_verification_email(self, id_token):
        if self.fail_verification_email:
            raise IdentityError("auth/too-many-requests")
        self.verification_emails.append(id_token)

    def send_password_reset_email(self, email):
        if self._by_email(email)[0] is None:
            raise IdentityError("auth/user-not-found")
        self.reset_emails.append(email)

    def verify_id_token(self, id_token):
        uid = id_token[len("token-"):] if id_token.startswith("token-") else None
        if uid not in self.accounts:
            raise IdentityError("auth/invalid-id-token")
        data = self.accounts[uid]
        return {"uid": uid, "email": data["email"], "email_verified": data["verified"]}

    def get_account(self, uid):
        data = self.accounts[uid]
        return AuthAccount(uid=uid, email=data["email"], display_name=data["name"], email_verified=data["verified"])

    def generate_password_reset_link(self, email):
        return f"https://example.test/reset?email={email}"


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------
@pytest.fixture(autouse=True)
def clean_state():
    get_mock_db("").reset()
    get_auth_session_store().clear()
    report_form.get_report_form_store().clear()
    yield
    set_places_provider(None)
    set_identity_provider(None)
    auth_service._auth_service = None


@pytest.fixture
def places():
    """
    Fake places provider knowing two Gurgaon places:
    "Sector 15 Gur" -> Sector 15, and device position (28.46, 77.03) -> DLF Phase 2.
    """
    provider = FakePlacesProvider()
    sector_15 = sector_15_place()
    provider.places[sector_15.place_id] = sector_15
    provider.predictions["Sector 15 Gur"] = [
        Prediction(
            place_id=sector_15.place_id,
            description="Sector 15, Gurgaon, Haryana, India",
            main_text="Sector 15",
            secondary_text="Gurgaon, Haryana, India",
        )
    ]
    provider.reverse[(28.46, 77.03)] = [dlf_phase_2_place()]
    set_places_provider(provider)
    return provider


@pytest.fixture
def identity():
    provider = FakeIdentityProvider()
    set_identity_provider(provider)
    return provider


@pytest.fixture
def client():
    from app.main import app
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def signed_in(identity):
    """A verified account; requests carry its token as a Bearer header."""
    identity.add_account("uid-asha", "asha@example.com", verified=True, name="Asha")
    return {"Authorization": "Bearer token-uid-asha"}
