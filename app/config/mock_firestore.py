"""
In-process stand-in for the Firestore client used when USE_MOCK_DB=true.

Implements the subset of the client surface AlertShip relies on:
collection/document/sub-collection references, set/get/update/delete,
where/order_by/limit queries and stream(). Data optionally persists to a
JSON file so local development survives restarts.
"""

import copy
import json
import logging
import os
import threading
import uuid
from typing import Any, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

DESCENDING = "DESCENDING"
ASCENDING = "ASCENDING"


class MockDocumentSnapshot:
    def __init__(self, reference: "MockDocumentReference", data: Optional[Dict[str, Any]]):
        self.reference = reference
        self.id = reference.id
        self._data = data

    @property
    def exists(self) -> bool:
        return self._data is not None

    def to_dict(self) -> Optional[Dict[str, Any]]:
        return copy.deepcopy(self._data) if self._data is not None else None

    def get(self, field: str) -> Any:
        return (self._data or {}).get(field)


class MockDocumentReference:
    def __init__(self, db: "MockFirestore", collection_path: str, doc_id: str):
        self._db = db
        self._collection_path = collection_path
        self.id = doc_id

    @property
    def path(self) -> str:
        return f"{self._collection_path}/{self.id}"

    def set(self, data: Dict[str, Any], merge: bool = False) -> None:
        with self._db._lock:
            docs = self._db._store.setdefault(self._collection_path, {})
            if merge and self.id in docs:
                docs[self.id].update(copy.deepcopy(data))
            else:
                docs[self.id] = copy.deepcopy(data)
            self._db._persist()

    def get(self) -> MockDocumentSnapshot:
        with self._db._lock:
            data = self._db._store.get(self._collection_path, {}).get(self.id)
            return MockDocumentSnapshot(self, copy.deepcopy(data) if data is not None else None)

    def update(self, data: Dict[str, Any]) -> None:
        with self._db._lock:
            docs = self._db._store.get(self._collection_path, {})
            if self.id not in docs:
                raise KeyError(f"No document to update: {self.path}")
            docs[self.id].update(copy.deepcopy(data))
            self._db._persist()

    def delete(self) -> None:
        with self._db._lock:
            self._db._store.get(self._collection_path, {}).pop(self.id, None)
            self._db._persist()

    def collection(self, name: str) -> "MockCollectionReference":
        return MockCollectionReference(self._db, f"{self.path}/{name}")


class MockQuery:
    _OPERATORS = {
        "==": lambda a, b: a == b,
        "!=": lambda a, b: a != b,
        "<": lambda a, b: a is not None and a < b,
        "<=": lambda a, b: a is not None and a <= b,
        ">": lambda a, b: a is not None and a > b,
        ">=": lambda a, b: a is not None and a >= b,
        "in": lambda a, b: a in b,
        "array_contains": lambda a, b: isinstance(a, list) and b in a,
    }

    def __init__(
        self,
        db: "MockFirestore",
        collection_path: str,
        filters: Optional[List[Tuple[str, str, Any]]] = None,
        orders: Optional[List[Tuple[str, str]]] = None,
        limit_count: Optional[int] = None,
    ):
        self._db = db
        self._collection_path = collection_path
        self._filters = filters or []
        self._orders = orders or []
        self._limit = limit_count

    def _copy(self, **changes) -> "MockQuery":
        return MockQuery(
            self._db,
            self._collection_path,
            filters=changes.get("filters", list(self._filters)),
            orders=changes.get("orders", list(self._orders)),
            limit_count=changes.get("limit_count", self._limit),
        )

    def where(self, field_path: str, op_string: str, value: Any) -> "MockQuery":
        if op_string not in self._OPERATORS:
            raise ValueError(f"Unsupported operator in mock Firestore: {op_string}")
        return self._copy(filters=self._filters + [(field_path, op_string, value)])

    def order_by(self, field_path: str, direction: str = ASCENDING) -> "MockQuery":
        return self._copy(orders=self._orders + [(field_path, direction)])

    def limit(self, count: int) -> "MockQuery":
        return self._copy(limit_count=count)

    def stream(self):
        with self._db._lock:
            items = list(self._db._store.get(self._collection_path, {}).items())

        matched = []
        for doc_id, data in items:
            if all(self._OPERATORS[op](data.get(field), value) for field, op, value in self._filters):
                matched.append((doc_id, data))

        # Firestore excludes documents missing an ordered field
        for field, direction in reversed(self._orders):
            matched = [item for item in matched if item[1].get(field) is not None]
            matched.sort(key=lambda item: item[1].get(field), reverse=(direction == DESCENDING))

        if self._limit is not None:
            matched = matched[: self._limit]

        for doc_id, data in matched:
            ref = MockDocumentReference(self._db, self._collection_path, doc_id)
            yield MockDocumentSnapshot(ref, copy.deepcopy(data))

    def get(self) -> List[MockDocumentSnapshot]:
        return list(self.stream())


class MockCollectionReference(MockQuery):
    def __init__(self, db: "MockFirestore", path: str):
        super().__init__(db, path)
        self.id = path.rsplit("/", 1)[-1]

    def document(self, doc_id: Optional[str] = None) -> MockDocumentReference:
        return MockDocumentReference(self._db, self._collection_path, doc_id or uuid.uuid4().hex[:20])

    def add(self, data: Dict[str, Any]):
        ref = self.document()
        ref.set(data)
        return None, ref


class MockFirestore:
    """Thread-safe in-memory document store keyed by collection path."""

    def __init__(self, path: Optional[str] = None):
        self._path = path or None
        self._lock = threading.RLock()
        self._store: Dict[str, Dict[str, Dict[str, Any]]] = {}
        if self._path and os.path.exists(self._path):
            try:
                with open(self._path, "r", encoding="utf-8") as f:
                    self._store = json.load(f)
                logger.info(f"[MOCK DB] Loaded {len(self._store)} collection(s) from {self._path}")
            except (OSError, json.JSONDecodeError) as e:
                logger.warning(f"[MOCK DB] Could not load {self._path}: {e}. Starting empty.")
                self._store = {}

    def collection(self, name: str) -> MockCollectionReference:
        return MockCollectionReference(self, name)

    def collections(self) -> List[MockCollectionReference]:
        with self._lock:
            return [MockCollectionReference(self, path) for path in self._store if "/" not in path]

    def reset(self) -> None:
        with self._lock:
            self._store = {}
            self._persist()

    def _persist(self) -> None:
        if not self._path:
            return
        with open(self._path, "w", encoding="utf-8") as f:
            json.dump(self._store, f, indent=2, default=str)


_mock_db: Optional[MockFirestore] = None


def get_mock_db(path: Optional[str] = None) -> MockFirestore:
    global _mock_db
    if _mock_db is None:
        _mock_db = MockFirestore(path)
    return _mock_db
