"""
Firestore Service Layer

This module provides a service layer for interacting with Firestore.
It uses the Firebase Admin SDK and provides type-safe operations
using the Pydantic models mapped in app.models.firestore.

The service is constructed once at startup and handed to request handlers
through FastAPI dependencies; it holds no per-request state.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Type, TypeVar

from firebase_admin import firestore, initialize_app
from google.api_core.exceptions import AlreadyExists
from google.cloud.firestore import (
    Client,
    DocumentReference,
    Increment,
    Query,
    transactional,
)
from google.cloud.firestore_v1.base_query import FieldFilter

from app.models.firestore import COLLECTION_MODELS
from app.models.shared import FirestoreBaseModel

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Type variable for generic model operations
T = TypeVar("T", bound=FirestoreBaseModel)


class FirestoreService:
    """
    Service class for Firestore operations with type safety and Pydantic integration.

    Filters are (field, operator, value) tuples using Firestore operators
    ("==", "!=", "<", "<=", ">", ">=", "in").
    """

    def __init__(self, database_name: str = "(default)"):
        """
        Initialize the Firestore service.

        Args:
            database_name: Name of the Firestore database to connect to
        """
        self.database_name = database_name
        self._client: Optional[Client] = None

    @property
    def client(self) -> Client:
        """Get or create the Firestore client."""
        if self._client is None:
            # Initialize Firebase Admin SDK if not already initialized
            try:
                # Try to get the default app
                app = initialize_app()
            except ValueError:
                # App already exists, get it
                import firebase_admin

                app = firebase_admin.get_app()

            # Get Firestore client for specified database
            self._client = firestore.client(app, database=self.database_name)

        return self._client

    def get_collection_ref(self, collection_name: str):
        """Get a reference to a Firestore collection."""
        return self.client.collection(collection_name)

    def get_document_ref(
        self, collection_name: str, document_id: str
    ) -> DocumentReference:
        """Get a reference to a specific document."""
        return self.client.collection(collection_name).document(document_id)

    def _build_query(
        self,
        collection_name: str,
        filters: Optional[List[tuple]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ):
        query = self.get_collection_ref(collection_name)

        # Apply filters
        if filters:
            for field, operator, value in filters:
                query = query.where(filter=FieldFilter(field, operator, value))

        # Apply ordering
        if order_by:
            direction = Query.DESCENDING if descending else Query.ASCENDING
            query = query.order_by(order_by, direction=direction)

        # Apply pagination
        if offset:
            query = query.offset(offset)
        if limit:
            query = query.limit(limit)

        return query

    @staticmethod
    def _to_model(data: Dict[str, Any], model_class: Optional[Type[T]]):
        # Use provided model class or infer from collection
        if model_class:
            return model_class(**data)
        return data

    # Generic CRUD operations
    async def create_document(
        self,
        collection_name: str,
        document_data: Dict[str, Any],
        document_id: Optional[str] = None,
    ) -> str:
        """
        Create a new document in the specified collection.

        Args:
            collection_name: Name of the collection
            document_data: Data to store in the document
            document_id: Optional document ID, will generate UUID if not provided

        Returns:
            The document ID of the created document
        """
        try:
            # Generate document ID if not provided
            if document_id is None:
                document_id = str(uuid.uuid4())

            # Add timestamps
            now = datetime.now(timezone.utc)
            document_data.setdefault("created_at", now)
            document_data.setdefault("updated_at", now)

            # Create the document
            doc_ref = self.get_document_ref(collection_name, document_id)
            doc_ref.set(document_data)

            logger.info(f"Created document {document_id} in {collection_name}")
            return document_id

        except Exception as e:
            logger.error(f"Failed to create document in {collection_name}: {str(e)}")
            raise

    async def create_document_if_absent(
        self,
        collection_name: str,
        document_id: str,
        document_data: Dict[str, Any],
    ) -> bool:
        """
        Create a document only if no document with this ID exists.

        Returns:
            True if the document was created, False if it already existed
        """
        now = datetime.now(timezone.utc)
        document_data.setdefault("created_at", now)
        document_data.setdefault("updated_at", now)

        try:
            self.get_document_ref(collection_name, document_id).create(document_data)
        except AlreadyExists:
            logger.info(f"Document {document_id} already exists in {collection_name}")
            return False

        logger.info(f"Created document {document_id} in {collection_name}")
        return True

    async def get_document(
        self,
        collection_name: str,
        document_id: str,
        model_class: Optional[Type[T]] = None,
    ) -> Optional[T]:
        """
        Get a document by ID.

        Args:
            collection_name: Name of the collection
            document_id: ID of the document to retrieve
            model_class: Optional Pydantic model class to validate the data

        Returns:
            Document data as Pydantic model instance or None if not found
        """
        try:
            doc = self.get_document_ref(collection_name, document_id).get()

            if not doc.exists:
                return None

            data = doc.to_dict()
            data["id"] = doc.id  # Add document ID to data

            if model_class is None and collection_name in COLLECTION_MODELS:
                model_class = COLLECTION_MODELS[collection_name]
            return self._to_model(data, model_class)

        except Exception as e:
            logger.error(
                f"Failed to get document {document_id} from {collection_name}: {str(e)}"
            )
            raise

    async def update_document(
        self, collection_name: str, document_id: str, update_data: Dict[str, Any]
    ) -> bool:
        """
        Update a document.

        Args:
            collection_name: Name of the collection
            document_id: ID of the document to update
            update_data: Data to update

        Returns:
            True if successful
        """
        try:
            # Add update timestamp
            update_data["updated_at"] = datetime.now(timezone.utc)

            self.get_document_ref(collection_name, document_id).update(update_data)

            logger.info(f"Updated document {document_id} in {collection_name}")
            return True

        except Exception as e:
            logger.error(
                f"Failed to update document {document_id} in {collection_name}: {str(e)}"
            )
            raise

    async def delete_document(self, collection_name: str, document_id: str) -> bool:
        """
        Delete a document.

        Args:
            collection_name: Name of the collection
            document_id: ID of the document to delete

        Returns:
            True if successful
        """
        try:
            self.get_document_ref(collection_name, document_id).delete()

            logger.info(f"Deleted document {document_id} from {collection_name}")
            return True

        except Exception as e:
            logger.error(
                f"Failed to delete document {document_id} from {collection_name}: {str(e)}"
            )
            raise

    async def query_collection(
        self,
        collection_name: str,
        filters: Optional[List[tuple]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        model_class: Optional[Type[T]] = None,
    ) -> List[T]:
        """
        Query a collection with filters, ordering, and pagination.

        Args:
            collection_name: Name of the collection to query
            filters: List of filter tuples (field, operator, value)
            order_by: Field to order by
            descending: Order newest/largest first
            limit: Maximum number of results
            offset: Number of results to skip
            model_class: Optional Pydantic model class

        Returns:
            List of documents as model instances
        """
        try:
            query = self._build_query(
                collection_name, filters, order_by, descending, limit, offset
            )

            if model_class is None and collection_name in COLLECTION_MODELS:
                model_class = COLLECTION_MODELS[collection_name]

            results = []
            for doc in query.stream():
                data = doc.to_dict()
                data["id"] = doc.id
                results.append(self._to_model(data, model_class))

            return results

        except Exception as e:
            logger.error(f"Failed to query collection {collection_name}: {str(e)}")
            raise

    async def count_documents(
        self, collection_name: str, filters: Optional[List[tuple]] = None
    ) -> int:
        """
        Count documents in a collection with optional filters.

        Args:
            collection_name: Name of the collection
            filters: Optional list of filter tuples

        Returns:
            Number of matching documents
        """
        try:
            query = self._build_query(collection_name, filters)
            return len(list(query.stream()))

        except Exception as e:
            logger.error(f"Failed to count documents in {collection_name}: {str(e)}")
            raise

    # Atomic operations
    async def increment_field(
        self, collection_name: str, document_id: str, field: str, amount: int
    ) -> None:
        """
        Atomically add `amount` (may be negative) to a numeric field.

        Raises:
            google.api_core.exceptions.NotFound: If the document does not exist
        """
        self.get_document_ref(collection_name, document_id).update(
            {field: Increment(amount), "updated_at": datetime.now(timezone.utc)}
        )
        logger.info(
            f"Incremented {field} by {amount} on {document_id} in {collection_name}"
        )

    async def transition_document(
        self,
        collection_name: str,
        document_id: str,
        expected: Dict[str, List[Any]],
        update_data: Dict[str, Any],
    ) -> Optional[Dict[str, Any]]:
        """
        Apply `update_data` only if every field in `expected` currently holds
        one of its listed values. Runs inside a transaction.

        Returns:
            The document data before the update, or None if the document is
            missing or did not match
        """
        doc_ref = self.get_document_ref(collection_name, document_id)
        update_data = {**update_data, "updated_at": datetime.now(timezone.utc)}

        @transactional
        def _apply(transaction):
            snapshot = doc_ref.get(transaction=transaction)
            if not snapshot.exists:
                return None
            data = snapshot.to_dict()
            for field, allowed in expected.items():
                if data.get(field) not in allowed:
                    return None
            transaction.update(doc_ref, update_data)
            data["id"] = snapshot.id
            return data

        before = _apply(self.client.transaction())
        if before is not None:
            logger.info(f"Transitioned document {document_id} in {collection_name}")
        return before

    async def claim_documents(
        self,
        collection_name: str,
        filters: List[tuple],
        count: int,
        update_data: Dict[str, Any],
    ) -> List[Dict[str, Any]]:
        """
        Atomically pick `count` documents matching `filters` and apply
        `update_data` to each. All or nothing: if fewer than `count` match,
        nothing is written and an empty list is returned.
        """
        query = self._build_query(collection_name, filters, limit=count)
        update_data = {**update_data, "updated_at": datetime.now(timezone.utc)}

        @transactional
        def _claim(transaction):
            snapshots = list(query.stream(transaction=transaction))
            if len(snapshots) < count:
                return []
            claimed = []
            for snapshot in snapshots:
                transaction.update(snapshot.reference, update_data)
                data = snapshot.to_dict()
                data["id"] = snapshot.id
                claimed.append(data)
            return claimed

        claimed = _claim(self.client.transaction())
        logger.info(f"Claimed {len(claimed)} documents in {collection_name}")
        return claimed

    async def update_documents(
        self,
        collection_name: str,
        filters: List[tuple],
        update_data: Dict[str, Any],
    ) -> int:
        """
        Apply `update_data` to every document matching `filters` in one batch.

        Returns:
            Number of documents updated
        """
        update_data = {**update_data, "updated_at": datetime.now(timezone.utc)}
        batch = self.client.batch()
        updated = 0
        for doc in self._build_query(collection_name, filters).stream():
            batch.update(doc.reference, update_data)
            updated += 1
        if updated:
            batch.commit()
        logger.info(f"Updated {updated} documents in {collection_name}")
        return updated
