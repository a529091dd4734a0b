"""
Saved location endpoints - the signed-in user's notification subscriptions.
"""

import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, status

from app.models.location import SavedLocation, SavedLocationCreate
from app.services.saved_location_service import get_saved_location_service
from app.utils.security import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users/me/locations", tags=["Saved Locations"])


@router.get("", response_model=List[SavedLocation], response_model_by_alias=True)
def list_saved_locations(user: Dict[str, Any] = Depends(get_current_user)):
    return get_saved_location_service().list_locations(user["uid"])


@router.post("", status_code=status.HTTP_201_CREATED, response_model=SavedLocation, response_model_by_alias=True)
def add_saved_location(body: SavedLocationCreate, user: Dict[str, Any] = Depends(get_current_user)):
    try:
        return get_saved_location_service().add_location(user["uid"], body)
    except Exception as e:
        logger.error(f"Failed to save location for {user['uid']}: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to save location: {str(e)}",
        )


@router.put("/{location_id}", response_model=SavedLocation, response_model_by_alias=True)
def update_saved_location(location_id: str, body: SavedLocationCreate, user: Dict[str, Any] = Depends(get_current_user)):
    updated = get_saved_location_service().update_location(user["uid"], location_id, body)
    if updated is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Saved location not found")
    return updated


@router.delete("/{location_id}")
def delete_saved_location(location_id: str, user: Dict[str, Any] = Depends(get_current_user)):
    if not get_saved_location_service().delete_location(user["uid"], location_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Saved location not found")
    return {"success": True}
