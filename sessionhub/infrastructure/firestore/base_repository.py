"""Base Firestore repository.

This module provides base functionality for Firestore repositories with common
CRUD operations and query patterns.
"""

from abc import (
    ABC,
    abstractmethod,
)
from datetime import datetime
from typing import (
    Any,
    Dict,
    Iterable,
    List,
    Optional,
    Tuple,
)

from google.api_core.exceptions import AlreadyExists
from google.cloud.firestore import (
    Client,
    CollectionReference,
    Query,
)

from sessionhub.core.firebase import get_firestore
from sessionhub.domain.entities import utcnow
from sessionhub.domain.exceptions import RepositoryError

Filter = Tuple[str, str, Any]


class BaseFirestoreRepository(ABC):
    """Base class for Firestore repositories."""

    def __init__(self, collection_name: str, client: Optional[Client] = None):
        """Initialize base Firestore repository.

        Args:
            collection_name: Name of the Firestore collection
            client: Firestore client, resolved lazily from Firebase when omitted
        """
        self.collection_name = collection_name
        self._db: Optional[Client] = client
        self._collection: Optional[CollectionReference] = None

    @property
    def db(self) -> Client:
        """Get Firestore client."""
        if self._db is None:
            self._db = get_firestore()
            if self._db is None:
                raise RepositoryError("connect", "Firestore is not configured")
        return self._db

    @property
    def collection(self) -> CollectionReference:
        """Get collection reference."""
        if self._collection is None:
            self._collection = self.db.collection(self.collection_name)
        return self._collection

    async def create_document(
        self, data: Dict[str, Any], doc_id: Optional[str] = None, exclusive: bool = False
    ) -> Optional[str]:
        """Create a new document.

        Args:
            data: Document data
            doc_id: Optional document ID (auto-generated if not provided)
            exclusive: Fail instead of overwriting when the ID already exists

        Returns:
            Optional[str]: Document ID, or None if ``exclusive`` and it existed
        """
        now = utcnow()
        data.setdefault("created_at", now)
        data["updated_at"] = now

        if not doc_id:
            doc_ref = self.collection.add(data)[1]
            return doc_ref.id

        doc_ref = self.collection.document(doc_id)
        if not exclusive:
            doc_ref.set(data)
            return doc_id
        try:
            doc_ref.create(data)
        except AlreadyExists:
            return None
        return doc_id

    async def get_document(self, doc_id: str) -> Optional[Dict[str, Any]]:
        """Get document by ID.

        Args:
            doc_id: Document ID

        Returns:
            Optional[Dict[str, Any]]: Document data or None if not found
        """
        doc = self.collection.document(doc_id).get()
        if doc.exists:
            data = doc.to_dict()
            data["id"] = doc.id
            return data
        return None

    async def set_document(self, doc_id: str, data: Dict[str, Any]) -> None:
        """Overwrite a document, stamping its update time."""
        data["updated_at"] = utcnow()
        self.collection.document(doc_id).set(data)

    async def delete_document(self, doc_id: str) -> bool:
        """Delete document.

        Args:
            doc_id: Document ID

        Returns:
            bool: True if a document was deleted
        """
        doc_ref = self.collection.document(doc_id)
        if not doc_ref.get().exists:
            return False
        doc_ref.delete()
        return True

    def _build_query(
        self,
        filters: Optional[Iterable[Filter]] = None,
        order_by: Optional[str] = None,
        direction: str = "asc",
    ) -> Query:
        query = self.collection
        for field, op, value in filters or ():
            query = query.where(field, op, value)
        if order_by:
            query = query.order_by(
                order_by,
                direction=Query.ASCENDING if direction == "asc" else Query.DESCENDING,
            )
        return query

    async def query_documents(
        self,
        filters: Optional[Iterable[Filter]] = None,
        order_by: Optional[str] = None,
        direction: str = "asc",
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        """Query documents.

        Args:
            filters: ``(field, operator, value)`` triples
            order_by: Field to order by
            direction: Sort direction ('asc' or 'desc')
            limit: Maximum number of documents to return
            offset: Number of documents to skip

        Returns:
            List[Dict[str, Any]]: Matching documents
        """
        query = self._build_query(filters, order_by, direction)
        if offset:
            query = query.offset(offset)
        if limit:
            query = query.limit(limit)

        results = []
        for doc in query.stream():
            data = doc.to_dict()
            data["id"] = doc.id
            results.append(data)
        return results

    async def count_documents(self, filters: Optional[Iterable[Filter]] = None) -> int:
        """Count documents matching the filters.

        Args:
            filters: ``(field, operator, value)`` triples

        Returns:
            int: Number of documents
        """
        return len(list(self._build_query(filters).stream()))

    @staticmethod
    def _as_datetime(value: Any) -> Optional[datetime]:
        if value is None or isinstance(value, datetime):
            return value
        return datetime.fromisoformat(str(value))

    @abstractmethod
    def to_entity(self, data: Dict[str, Any]) -> Any:
        """Convert Firestore document to domain entity.

        Args:
            data: Document data from Firestore

        Returns:
            Any: Domain entity instance
        """
        pass

    @abstractmethod
    def from_entity(self, entity: Any) -> Dict[str, Any]:
        """Convert domain entity to Firestore document.

        Args:
            entity: Domain entity instance

        Returns:
            Dict[str, Any]: Document data for Firestore
        """
        pass
