"""
Report service - Firestore persistence for outage reports.

DESIGN NOTE:
- Reports live in the top-level "outageReports" collection, camelCase fields
- Reports are append-only: nothing here updates or deletes a stored report
- timestamp is an ISO-8601 UTC string written at creation, so string order
  is chronological order
- A photo is optional and best-effort: if the upload fails the report is
  still stored, without a photo
"""

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from firebase_admin import firestore

from app.config.firebase import get_db, get_storage_bucket
from app.core.settings import settings
from app.models.report import OutageReportCreate
from app.utils.firestore_helpers import snapshot_to_dict, where_filter

logger = logging.getLogger(__name__)

COLLECTION = "outageReports"

PHOTO_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
}


def upload_photo(report_id: str, content: bytes, content_type: Optional[str]) -> Optional[str]:
    """
    Upload a report photo to Firebase Storage.

    Returns the public URL, or None when photo storage is not configured.
    """
    bucket = get_storage_bucket()
    if bucket is None:
        logger.warning(f"Photo storage not configured; report {report_id} stored without photo")
        return None

    extension = PHOTO_EXTENSIONS.get(content_type or "", "bin")
    blob = bucket.blob(f"{COLLECTION}/{report_id}/{uuid.uuid4().hex}.{extension}")
    blob.upload_from_string(content, content_type=content_type or "application/octet-stream")
    blob.make_public()
    logger.info(f"Photo uploaded for report {report_id}: {blob.name}")
    return blob.public_url


def _create_report_sync(
    report: OutageReportCreate,
    photo: Optional[bytes] = None,
    photo_content_type: Optional[str] = None,
) -> str:
    db = get_db()
    doc_ref = db.collection(COLLECTION).document()

    report_dict: Dict[str, Any] = report.model_dump(by_alias=True, exclude_none=True, mode="json")
    report_dict["timestamp"] = datetime.now(timezone.utc).isoformat()

    if photo:
        try:
            report_dict["photo"] = upload_photo(doc_ref.id, photo, photo_content_type)
        except Exception as e:
            logger.error(f"Photo upload failed for report {doc_ref.id}: {e}", exc_info=True)
            report_dict["photo"] = None

    try:
        doc_ref.set(report_dict)
        logger.info(f"Report saved to Firestore: {doc_ref.id} ({report_dict['type']}, {report_dict['city']})")
    except Exception as e:
        logger.error(f"Failed to save report to Firestore: {e}", exc_info=True)
        raise

    return doc_ref.id


async def create_report(
    report: OutageReportCreate,
    photo: Optional[bytes] = None,
    photo_content_type: Optional[str] = None,
) -> str:
    """
    Store a validated outage report and return its document ID.

    Raises whatever the Firestore client raises; callers decide how to surface it.
    """
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, _create_report_sync, report, photo, photo_content_type)


def _list_reports_sync(city: Optional[str] = None) -> List[Dict[str, Any]]:
    query = get_db().collection(COLLECTION)
    if city:
        query = where_filter(query, "city", "==", city)
    return [snapshot_to_dict(doc) for doc in query.stream()]


async def list_reports(city: Optional[str] = None) -> List[Dict[str, Any]]:
    """All reports, optionally only those whose city matches exactly."""
    loop = asyncio.get_running_loop()
    reports = await loop.run_in_executor(None, _list_reports_sync, city)
    logger.info(f"Fetched {len(reports)} report(s) for city={city!r}")
    return reports


def _latest_reports_sync(limit: int) -> List[Dict[str, Any]]:
    query = (
        get_db()
        .collection(COLLECTION)
        .order_by("timestamp", direction=firestore.Query.DESCENDING)
        .limit(limit)
    )
    return [snapshot_to_dict(doc) for doc in query.stream()]


async def latest_reports(limit: Optional[int] = None) -> List[Dict[str, Any]]:
    """Most recent reports first (4 by default)."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, _latest_reports_sync, limit or settings.LATEST_REPORTS_LIMIT)
