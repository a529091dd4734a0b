"""
Report form endpoints - drive one "report an outage" form on the server.

A form session holds the issue fields and its location workflow. The
browser sends typing, search, selection and device-location events and
renders the returned snapshot. Only the user who opened a form can use it.
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from fastapi.responses import JSONResponse

from app.models.location import BrowserLocationRequest, ReportFieldsUpdate, SelectPredictionRequest
from app.services.location import LocationBusyError
from app.services.report_form import (
    ReportFormSession,
    ReportValidationError,
    SubmissionInProgressError,
    get_report_form_store,
)
from app.utils.security import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/report-sessions", tags=["Report Sessions"])

MAX_PHOTO_BYTES = 5 * 1024 * 1024


def _load(session_id: str, user: Dict[str, Any]) -> ReportFormSession:
    session = get_report_form_store().get(session_id, user["uid"])
    if session is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Report form not found")
    return session


@router.post("", status_code=status.HTTP_201_CREATED)
async def open_form(user: Dict[str, Any] = Depends(get_current_user)):
    session = get_report_form_store().create(owner_uid=user["uid"])
    return session.snapshot()


@router.get("/{session_id}")
async def get_form(session_id: str, user: Dict[str, Any] = Depends(get_current_user)):
    return _load(session_id, user).snapshot()


@router.delete("/{session_id}")
async def close_form(session_id: str, user: Dict[str, Any] = Depends(get_current_user)):
    """Close a form (navigating away). Aborts a submission still in flight."""
    if not get_report_form_store().remove(session_id, user["uid"]):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Report form not found")
    return {"success": True}


@router.put("/{session_id}/fields")
async def update_fields(session_id: str, body: ReportFieldsUpdate, user: Dict[str, Any] = Depends(get_current_user)):
    session = _load(session_id, user)
    try:
        session.update_fields(**body.model_dump(exclude_none=True))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return session.snapshot()


@router.post("/{session_id}/search")
async def search_places(session_id: str, user: Dict[str, Any] = Depends(get_current_user)):
    session = _load(session_id, user)
    await session.location.search()
    return session.snapshot()


@router.post("/{session_id}/results/dismiss")
async def dismiss_results(session_id: str, user: Dict[str, Any] = Depends(get_current_user)):
    session = _load(session_id, user)
    session.location.dismiss_results()
    return session.snapshot()


@router.post("/{session_id}/select")
async def select_place(session_id: str, body: SelectPredictionRequest, user: Dict[str, Any] = Depends(get_current_user)):
    session = _load(session_id, user)
    await session.location.select_prediction(body.place_id)
    session.form_errors.pop("location", None)
    return session.snapshot()


@router.post("/{session_id}/browser-location")
async def browser_location(session_id: str, body: BrowserLocationRequest, user: Dict[str, Any] = Depends(get_current_user)):
    """
    Device geolocation outcome: coordinates are reverse-geocoded into the
    form, an error code is turned into a message.
    """
    session = _load(session_id, user)
    if body.error_code is not None or body.lat is None or body.lng is None:
        session.location.geolocation_failed(body.error_code)
        return session.snapshot()

    try:
        await session.location.use_browser_location(body.lat, body.lng)
    except LocationBusyError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    session.form_errors.pop("location", None)
    return session.snapshot()


@router.delete("/{session_id}/locality")
async def clear_locality(session_id: str, user: Dict[str, Any] = Depends(get_current_user)):
    session = _load(session_id, user)
    session.location.clear()
    return session.snapshot()


@router.put("/{session_id}/photo")
async def attach_photo(session_id: str, photo: UploadFile = File(...), user: Dict[str, Any] = Depends(get_current_user)):
    session = _load(session_id, user)
    content = await photo.read()
    if len(content) > MAX_PHOTO_BYTES:
        raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail="Photo must be 5 MB or smaller")
    session.attach_photo(content, photo.content_type)
    return session.snapshot()


@router.delete("/{session_id}/photo")
async def remove_photo(session_id: str, user: Dict[str, Any] = Depends(get_current_user)):
    session = _load(session_id, user)
    session.remove_photo()
    return session.snapshot()


@router.post("/{session_id}/submit")
async def submit_form(session_id: str, user: Dict[str, Any] = Depends(get_current_user)):
    session = _load(session_id, user)
    try:
        report_id = await session.submit(reporter=user)
    except SubmissionInProgressError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except ReportValidationError as e:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"success": False, "error": str(e), "errors": e.errors, "session": session.snapshot()},
        )
    except Exception:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "error": session.submit_error, "session": session.snapshot()},
        )

    if report_id is None:
        return {"success": False, "aborted": True, "session": session.snapshot()}
    logger.info(f"Report {report_id} submitted from form {session_id} by {user['uid']}")
    return {"success": True, "id": report_id, "session": session.snapshot()}
