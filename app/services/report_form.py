"""
Report form sessions - the server-side state of one "report an outage" form.

Each session owns a LocationWorkflow plus the issue fields, validates the
whole form before submission and hands a complete OutageReportCreate to the
report service.

Rules:
- A report is never submitted without coordinates ("Location required").
- When the draft is browser-sourced the device coordinates are submitted,
  whatever a later search selection did to the address text.
- Only one submission per form may be in flight.
- Success resets the form and publishes "reports_updated"; failure keeps the
  form data so the user can retry by hand.
"""

import asyncio
import logging
import re
import threading
import uuid
from collections import OrderedDict
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import ValidationError

from app.core.settings import settings
from app.models.location import LocationSource
from app.models.report import PIN_CODE_REGEX, OutageReportCreate, OutageType
from app.services import report_service
from app.services.location import LocationWorkflow
from app.services.places import PlacesProvider
from app.services.report_events import REPORTS_UPDATED, get_event_bus

logger = logging.getLogger(__name__)

LOCATION_REQUIRED_MESSAGE = (
    "Location required. Use your current location or select a place from the search results."
)
SUBMIT_FAILED_MESSAGE = "Failed to submit report. Please try again."

FIELD_REQUIRED_MESSAGES = {
    "description": "Please describe the outage",
    "locality": "Locality is required",
    "city": "City is required",
    "state": "State is required",
}
PIN_CODE_MESSAGE = "PIN code must be exactly 6 digits"


class SubmissionInProgressError(Exception):
    """The form already has a submission in flight."""


class ReportValidationError(ValueError):
    """The form failed validation; errors maps field name to message."""

    def __init__(self, errors: Dict[str, str]):
        self.errors = errors
        super().__init__("; ".join(f"{field}: {message}" for field, message in errors.items()))


class ReportFormSession:
    def __init__(self, session_id: str, owner_uid: Optional[str] = None, provider: Optional[PlacesProvider] = None):
        self.id = session_id
        self.owner_uid = owner_uid
        self.created_at = datetime.now(timezone.utc).isoformat()
        self.type = OutageType.ELECTRICITY
        self.description = ""
        self.photo: Optional[bytes] = None
        self.photo_content_type: Optional[str] = None
        self.location = LocationWorkflow(provider)
        self.form_errors: Dict[str, str] = {}
        self.is_submitting = False
        self.submit_success = False
        self.submit_error = ""
        self.last_report_id: Optional[str] = None
        self._submit_task: Optional[asyncio.Future] = None
        self._aborted = False

    # ------------------------------------------------------------------
    # Field edits
    # ------------------------------------------------------------------

    def update_fields(
        self,
        type: Optional[str] = None,
        description: Optional[str] = None,
        locality: Optional[str] = None,
        city: Optional[str] = None,
        state: Optional[str] = None,
        pin_code: Optional[str] = None,
    ) -> None:
        """
        Apply plain field edits. Locality goes through the location workflow
        (typing never touches coordinates).

        Raises ValueError for an unknown outage type.
        """
        if type is not None:
            self.type = OutageType(type)
        if description is not None:
            self.description = description
            self.form_errors.pop("description", None)
        if locality is not None:
            self.location.set_locality(locality)
            self.form_errors.pop("locality", None)

        address_changes: Dict[str, Any] = {}
        if city is not None:
            address_changes["city"] = city
            self.form_errors.pop("city", None)
        if state is not None:
            address_changes["state"] = state
            self.form_errors.pop("state", None)
        if pin_code is not None:
            address_changes["pin_code"] = pin_code
            self.form_errors.pop("pinCode", None)
        if address_changes:
            self.location.draft = self.location.draft.with_updates(**address_changes)

        self.submit_success = False

    def attach_photo(self, content: bytes, content_type: Optional[str]) -> None:
        self.photo = content
        self.photo_content_type = content_type

    def remove_photo(self) -> None:
        self.photo = None
        self.photo_content_type = None

    # ------------------------------------------------------------------
    # Validation / submission
    # ------------------------------------------------------------------

    def validate(self) -> bool:
        draft = self.location.draft
        values = {
            "description": self.description,
            "locality": draft.locality,
            "city": draft.city,
            "state": draft.state,
        }
        errors: Dict[str, str] = {}
        for field, value in values.items():
            if not value.strip():
                errors[field] = FIELD_REQUIRED_MESSAGES[field]
        if not re.match(PIN_CODE_REGEX, draft.pin_code.strip()):
            errors["pinCode"] = PIN_CODE_MESSAGE
        if draft.lat is None or draft.lng is None:
            errors["location"] = LOCATION_REQUIRED_MESSAGE

        self.form_errors = errors
        return not errors

    def build_report(self, reporter: Optional[Dict[str, Any]] = None) -> OutageReportCreate:
        """
        Assemble the report payload from the current form.

        Raises ReportValidationError when the payload does not pass model validation.
        """
        draft = self.location.draft
        if draft.location_source == LocationSource.BROWSER:
            lat, lng = draft.browser_lat, draft.browser_lng
        else:
            lat, lng = draft.lat, draft.lng

        reporter = reporter or {}
        try:
            return OutageReportCreate(
                type=self.type,
                description=self.description,
                locality=draft.locality,
                city=draft.city,
                state=draft.state,
                pin_code=draft.pin_code,
                lat=lat,
                lng=lng,
                place_id=draft.place_id,
                premise=draft.premise or None,
                route=draft.route or None,
                neighborhood=draft.neighborhood or None,
                sublocality=draft.sublocality or None,
                location_source=draft.location_source,
                uid=reporter.get("uid"),
                email=reporter.get("email"),
            )
        except ValidationError as e:
            errors = {
                str(err["loc"][0]) if err.get("loc") else "form": err["msg"]
                for err in e.errors()
            }
            self.form_errors = errors
            raise ReportValidationError(errors)

    async def submit(self, reporter: Optional[Dict[str, Any]] = None) -> Optional[str]:
        """
        Validate and store the report.

        Returns the new report ID, or None when the submission was aborted.
        Raises SubmissionInProgressError, ReportValidationError, or the
        storage error (after recording submit_error).
        """
        if self.is_submitting:
            raise SubmissionInProgressError("A report submission is already in progress.")
        if not self.validate():
            raise ReportValidationError(self.form_errors)

        report = self.build_report(reporter)
        self.is_submitting = True
        self.submit_success = False
        self.submit_error = ""
        self._aborted = False
        self._submit_task = asyncio.ensure_future(
            report_service.create_report(report, self.photo, self.photo_content_type)
        )

        try:
            report_id = await self._submit_task
        except asyncio.CancelledError:
            if not self._aborted:
                raise
            logger.info(f"Submission for form {self.id} aborted")
            return None
        except Exception as e:
            logger.error(f"Submission for form {self.id} failed: {e}")
            self.submit_error = SUBMIT_FAILED_MESSAGE
            raise
        finally:
            self.is_submitting = False
            self._submit_task = None

        self.last_report_id = report_id
        self.reset()
        self.submit_success = True
        get_event_bus().publish(REPORTS_UPDATED, {"id": report_id, "city": report.city, "type": report.type.value})
        return report_id

    def abort(self) -> bool:
        """Cancel an in-flight submission. The form keeps its data."""
        if self._submit_task is None or self._submit_task.done():
            return False
        self._aborted = True
        self._submit_task.cancel()
        return True

    def reset(self) -> None:
        self.type = OutageType.ELECTRICITY
        self.description = ""
        self.remove_photo()
        self.location.reset()
        self.form_errors = {}
        self.submit_error = ""

    def snapshot(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "description": self.description,
            "hasPhoto": self.photo is not None,
            "location": self.location.snapshot(),
            "formErrors": dict(self.form_errors),
            "isSubmitting": self.is_submitting,
            "submitSuccess": self.submit_success,
            "submitError": self.submit_error,
            "lastReportId": self.last_report_id,
            "createdAt": self.created_at,
        }


class ReportFormStore:
    """
    In-memory registry of open report forms, scoped to their owner.
    The oldest forms are evicted beyond max_sessions.
    """

    def __init__(self, max_sessions: int = 1000):
        self.max_sessions = max_sessions
        self._sessions: "OrderedDict[str, ReportFormSession]" = OrderedDict()
        self._lock = threading.Lock()

    def create(self, owner_uid: Optional[str] = None, provider: Optional[PlacesProvider] = None) -> ReportFormSession:
        session = ReportFormSession(uuid.uuid4().hex, owner_uid=owner_uid, provider=provider)
        with self._lock:
            self._sessions[session.id] = session
            while len(self._sessions) > self.max_sessions:
                evicted_id, evicted = self._sessions.popitem(last=False)
                evicted.abort()
                logger.info(f"Evicted report form {evicted_id}")
        logger.info(f"Report form {session.id} opened by {owner_uid}")
        return session

    def get(self, session_id: str, owner_uid: Optional[str] = None) -> Optional[ReportFormSession]:
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None or session.owner_uid != owner_uid:
            return None
        return session

    def remove(self, session_id: str, owner_uid: Optional[str] = None) -> bool:
        """Close a form, aborting any submission still in flight."""
        session = self.get(session_id, owner_uid)
        if session is None:
            return False
        session.abort()
        with self._lock:
            self._sessions.pop(session_id, None)
        return True

    def clear(self) -> None:
        with self._lock:
            self._sessions.clear()

    def __len__(self) -> int:
        return len(self._sessions)


_form_store: Optional[ReportFormStore] = None


def get_report_form_store() -> ReportFormStore:
    global _form_store
    if _form_store is None:
        _form_store = ReportFormStore(max_sessions=settings.MAX_REPORT_SESSIONS)
    return _form_store
