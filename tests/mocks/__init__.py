"""Mock services for testing.

This package contains an in-memory stand-in for the Firestore client so
repositories and services can be exercised without a real project. It
supports the subset of the client API the repositories use: document
create/set/update/delete, ``where``/``order_by``/``offset``/``limit``
queries, ``Increment`` transforms and ``last_update_time`` preconditions.
"""

import copy
import itertools
from datetime import (
    UTC,
    datetime,
    timedelta,
)
from typing import (
    Any,
    Callable,
    Dict,
    List,
    Optional,
    Tuple,
)

from google.api_core.exceptions import (
    AlreadyExists,
    FailedPrecondition,
    NotFound,
)
from google.cloud.firestore import Increment

_EPOCH = datetime(2024, 1, 1, tzinfo=UTC)

OPERATORS: Dict[str, Callable[[Any, Any], bool]] = {
    "==": lambda a, b: a == b,
    "!=": lambda a, b: a != b,
    "<": lambda a, b: a is not None and a < b,
    "<=": lambda a, b: a is not None and a <= b,
    ">": lambda a, b: a is not None and a > b,
    ">=": lambda a, b: a is not None and a >= b,
    "in": lambda a, b: a in b,
    "not-in": lambda a, b: a not in b,
    "array_contains": lambda a, b: b in (a or []),
}


class MockWriteOption:
    """Precondition passed to ``update``."""

    def __init__(self, last_update_time: Optional[datetime] = None):
        self.last_update_time = last_update_time


class MockFirestore:
    """Mock Firestore client for testing."""

    def __init__(self):
        self.collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self.update_times: Dict[Tuple[str, str], datetime] = {}
        self._ticks = itertools.count(1)

    def collection(self, name: str) -> "MockCollection":
        """Get or create a collection."""
        return MockCollection(self, name)

    def write_option(self, last_update_time: Optional[datetime] = None) -> MockWriteOption:
        return MockWriteOption(last_update_time=last_update_time)

    def _touch(self, collection: str, doc_id: str) -> datetime:
        stamp = _EPOCH + timedelta(microseconds=next(self._ticks))
        self.update_times[(collection, doc_id)] = stamp
        return stamp

    def documents(self, collection: str) -> Dict[str, Dict[str, Any]]:
        """Raw stored documents of a collection, for assertions."""
        return self.collections.setdefault(collection, {})


class MockDocumentSnapshot:
    """Mock Firestore document snapshot."""

    def __init__(self, doc_id: str, data: Optional[Dict[str, Any]], update_time=None):
        self.id = doc_id
        self._data = copy.deepcopy(data)
        self.update_time = update_time

    @property
    def exists(self) -> bool:
        return self._data is not None

    def to_dict(self) -> Optional[Dict[str, Any]]:
        return copy.deepcopy(self._data)


class MockDocument:
    """Mock Firestore document reference."""

    def __init__(self, db: MockFirestore, collection: str, doc_id: str):
        self.db = db
        self.collection_name = collection
        self.id = doc_id

    @property
    def _store(self) -> Dict[str, Dict[str, Any]]:
        return self.db.documents(self.collection_name)

    def get(self) -> MockDocumentSnapshot:
        return MockDocumentSnapshot(
            self.id,
            self._store.get(self.id),
            self.db.update_times.get((self.collection_name, self.id)),
        )

    def set(self, data: Dict[str, Any]) -> None:
        self._store[self.id] = copy.deepcopy(data)
        self.db._touch(self.collection_name, self.id)

    def create(self, data: Dict[str, Any]) -> None:
        if self.id in self._store:
            raise AlreadyExists(f"Document already exists: {self.id}")
        self.set(data)

    def update(self, data: Dict[str, Any], option: Optional[MockWriteOption] = None) -> None:
        if self.id not in self._store:
            raise NotFound(f"No document to update: {self.id}")
        if option is not None and option.last_update_time is not None:
            current = self.db.update_times.get((self.collection_name, self.id))
            if current != option.last_update_time:
                raise FailedPrecondition("Document was modified since it was read")
        stored = self._store[self.id]
        for key, value in data.items():
            if isinstance(value, Increment):
                stored[key] = (stored.get(key) or 0) + value.value
            else:
                stored[key] = copy.deepcopy(value)
        self.db._touch(self.collection_name, self.id)

    def delete(self) -> None:
        self._store.pop(self.id, None)
        self.db.update_times.pop((self.collection_name, self.id), None)


class MockQuery:
    """Chainable query over one collection."""

    def __init__(
        self,
        db: MockFirestore,
        collection: str,
        filters: Optional[List[Tuple[str, str, Any]]] = None,
        orders: Optional[List[Tuple[str, str]]] = None,
        offset: int = 0,
        limit: Optional[int] = None,
    ):
        self.db = db
        self.collection_name = collection
        self.filters = filters or []
        self.orders = orders or []
        self._offset = offset
        self._limit = limit

    def _copy(self, **changes: Any) -> "MockQuery":
        values = dict(
            filters=list(self.filters),
            orders=list(self.orders),
            offset=self._offset,
            limit=self._limit,
        )
        values.update(changes)
        return MockQuery(self.db, self.collection_name, **values)

    def where(self, field: str, op: str, value: Any) -> "MockQuery":
        return self._copy(filters=self.filters + [(field, op, value)])

    def order_by(self, field: str, direction: str = "ASCENDING") -> "MockQuery":
        return self._copy(orders=self.orders + [(field, direction)])

    def offset(self, offset: int) -> "MockQuery":
        return self._copy(offset=offset)

    def limit(self, limit: int) -> "MockQuery":
        return self._copy(limit=limit)

    def stream(self):
        store = self.db.documents(self.collection_name)
        matches = [
            (doc_id, data)
            for doc_id, data in store.items()
            if all(OPERATORS[op](data.get(field), value) for field, op, value in self.filters)
        ]
        for field, direction in reversed(self.orders):
            matches.sort(
                key=lambda item: (item[1].get(field) is None, item[1].get(field)),
                reverse=direction == "DESCENDING",
            )
        matches = matches[self._offset:]
        if self._limit is not None:
            matches = matches[: self._limit]
        for doc_id, data in matches:
            yield MockDocumentSnapshot(
                doc_id, data, self.db.update_times.get((self.collection_name, doc_id))
            )


class MockCollection(MockQuery):
    """Mock Firestore collection."""

    def __init__(self, db: MockFirestore, name: str):
        super().__init__(db, name)

    def document(self, doc_id: str) -> MockDocument:
        return MockDocument(self.db, self.collection_name, doc_id)

    def add(self, data: Dict[str, Any]) -> Tuple[datetime, MockDocument]:
        """Add a document with auto-generated ID."""
        store = self.db.documents(self.collection_name)
        doc = self.document(f"auto_id_{len(store) + 1}")
        doc.set(data)
        return self.db.update_times[(self.collection_name, doc.id)], doc


__all__ = [
    "MockFirestore",
    "MockCollection",
    "MockDocument",
    "MockDocumentSnapshot",
    "MockQuery",
    "MockWriteOption",
]
