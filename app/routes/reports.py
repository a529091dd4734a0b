"""
Report endpoints - outage report submission and retrieval.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from app.models.report import OutageReportCreate
from app.services import report_service
from app.services.outage_browse_service import get_browse_service
from app.services.report_events import REPORTS_UPDATED, get_event_bus
from app.utils.security import get_optional_user, verify_request_token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Reports"])

NO_CACHE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, proxy-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
    "Surrogate-Control": "no-store",
}


def _validation_message(error: ValidationError) -> str:
    parts = []
    for err in error.errors():
        field = ".".join(str(loc) for loc in err.get("loc", ())) or "body"
        parts.append(f"{field}: {err['msg']}")
    return "; ".join(parts)


@router.post("/outageReports")
async def submit_outage_report(request: Request, user: Optional[Dict[str, Any]] = Depends(get_optional_user)):
    """
    Store an outage report.

    Accepts JSON, or multipart form data with an optional "photo" file.
    The reporter identity comes from the verified ID token (Bearer header,
    cookie, or an "idToken" form field), never from the body alone.
    """
    photo: Optional[bytes] = None
    photo_content_type: Optional[str] = None
    content_type = request.headers.get("content-type", "")

    try:
        if content_type.startswith("multipart/form-data"):
            form = await request.form()
            payload = {key: value for key, value in form.items() if key not in ("photo", "idToken")}
            upload = form.get("photo")
            if upload is not None and hasattr(upload, "read"):
                photo = await upload.read()
                photo_content_type = upload.content_type
            if user is None and form.get("idToken"):
                user = await verify_request_token(str(form.get("idToken")))
        else:
            payload = await request.json()
            if not isinstance(payload, dict):
                raise ValueError("Request body must be a JSON object")
    except ValueError as e:
        logger.warning(f"POST /api/outageReports - unreadable body: {e}")
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"success": False, "error": "Invalid request body"})

    payload.pop("uid", None)
    payload.pop("email", None)
    if user is not None:
        payload["uid"] = user.get("uid")
        payload["email"] = user.get("email")

    try:
        report = OutageReportCreate(**payload)
    except ValidationError as e:
        message = _validation_message(e)
        logger.info(f"POST /api/outageReports - rejected: {message}")
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"success": False, "error": message})

    try:
        report_id = await report_service.create_report(report, photo, photo_content_type)
    except Exception as e:
        logger.error(f"POST /api/outageReports - failed to add report: {str(e)}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "error": "Failed to add report"},
        )

    get_event_bus().publish(REPORTS_UPDATED, {"id": report_id, "city": report.city, "type": report.type.value})
    return {"success": True, "id": report_id}


@router.get("/outageReports")
async def get_outage_reports(city: Optional[str] = Query(None, description="Exact city name")):
    try:
        reports = await get_browse_service().reports_for_city(city)
    except Exception as e:
        logger.error(f"GET /api/outageReports failed: {str(e)}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "error": "Failed to fetch reports"},
        )
    return {"success": True, "data": reports}


@router.get("/latest-reports")
async def get_latest_reports():
    """The most recent reports, newest first. Never cached."""
    try:
        reports = await report_service.latest_reports()
    except Exception as e:
        logger.error(f"GET /api/latest-reports failed: {str(e)}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Failed to fetch latest reports."},
        )
    return JSONResponse(content={"reports": reports}, headers=NO_CACHE_HEADERS)
