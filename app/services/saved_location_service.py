"""
Saved locations - places a user subscribes to for outage notifications.
Stored per user at users/{uid}/savedLocations/{id}.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from app.config.firebase import get_db
from app.models.location import SavedLocation, SavedLocationCreate

logger = logging.getLogger(__name__)


class SavedLocationService:
    def __init__(self):
        self.db = get_db()

    def _collection(self, uid: str):
        return self.db.collection("users").document(uid).collection("savedLocations")

    def list_locations(self, uid: str) -> List[SavedLocation]:
        docs = self._collection(uid).stream()
        locations = [SavedLocation(id=doc.id, **(doc.to_dict() or {})) for doc in docs]
        locations.sort(key=lambda loc: loc.created_at or "")
        return locations

    def get_location(self, uid: str, location_id: str) -> Optional[SavedLocation]:
        doc = self._collection(uid).document(location_id).get()
        if not doc.exists:
            return None
        return SavedLocation(id=doc.id, **(doc.to_dict() or {}))

    def add_location(self, uid: str, data: SavedLocationCreate) -> SavedLocation:
        doc_ref = self._collection(uid).document()
        document = data.to_document()
        document["createdAt"] = datetime.now(timezone.utc).isoformat()
        doc_ref.set(document)
        logger.info(f"Saved location {doc_ref.id} added for {uid}: {data.address}")
        return SavedLocation(id=doc_ref.id, **document)

    def update_location(self, uid: str, location_id: str, data: SavedLocationCreate) -> Optional[SavedLocation]:
        """Replace a saved location's fields. Returns None when it does not exist."""
        existing = self.get_location(uid, location_id)
        if existing is None:
            return None
        document = data.to_document()
        document["createdAt"] = existing.created_at
        self._collection(uid).document(location_id).set(document)
        logger.info(f"Saved location {location_id} updated for {uid}")
        return SavedLocation(id=location_id, **document)

    def delete_location(self, uid: str, location_id: str) -> bool:
        ref = self._collection(uid).document(location_id)
        if not ref.get().exists:
            return False
        ref.delete()
        logger.info(f"Saved location {location_id} removed for {uid}")
        return True


_saved_location_service: Optional[SavedLocationService] = None


def get_saved_location_service() -> SavedLocationService:
    global _saved_location_service
    if _saved_location_service is None:
        _saved_location_service = SavedLocationService()
    return _saved_location_service
