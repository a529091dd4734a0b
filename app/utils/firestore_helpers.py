"""
Firestore query helpers shared by the services.

NOTE: For firebase_admin SDK, we use positional arguments for where().
The deprecation warning is just a warning - the functionality is still supported,
and the mock database accepts the same call shape.
"""

from typing import Any, Dict


def where_filter(query, field_path: str, op_string: str, value):
    """
    Helper function for Firestore queries.

    Usage:
        query = where_filter(collection, "city", "==", "Gurgaon")
        query = where_filter(query, "type", "==", "water")
    """
    return query.where(field_path, op_string, value)


def snapshot_to_dict(doc) -> Dict[str, Any]:
    """Flatten a document snapshot into a plain dict carrying its document ID."""
    data = doc.to_dict() or {}
    data["id"] = doc.id
    return data
