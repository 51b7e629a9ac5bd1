"""Firestore service for ClearDesk.

Provides the keyed document store used by the blueprint and estimate
pipelines. Each logical table is one Firestore collection; every document
carries its composite key (PK/SK) and optional secondary-index key
(GSI1PK/GSI1SK) as plain fields.
"""

from typing import Dict, Any, Optional, List
from datetime import datetime, timezone
import inspect
import structlog

from firebase_admin import firestore
from google.api_core import exceptions as gcp_exceptions
from google.cloud.firestore_v1.base_query import FieldFilter

from config.errors import PersistenceError, ErrorCode

logger = structlog.get_logger()

# Upper bound for prefix range queries on string keys
PREFIX_UPPER_BOUND = "\uf8ff"


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


def document_id(pk: str, sk: str) -> str:
    """Firestore document id for a composite key."""
    return f"{pk}|{sk}"


class FirestoreService:
    """Keyed persistence over Firestore collections.

    Supports get / put / update on (PK, SK), prefix queries on SK within a
    partition, and lookups on the GSI1PK secondary key.

    Note: Firebase Admin SDK for Python is synchronous. Methods are
    marked async for interface compatibility but operations are sync.
    """

    def __init__(self, db=None):
        """Initialize FirestoreService.

        Args:
            db: Optional Firestore client. If not provided, uses default.
        """
        self._db = db

    @property
    def db(self):
        """Get Firestore client (lazy initialization)."""
        if self._db is None:
            self._db = firestore.client()
        return self._db

    async def _maybe_await(self, result: Any) -> Any:
        """Await result if it is awaitable (supports AsyncMock in unit tests)."""
        if inspect.isawaitable(result):
            return await result
        return result

    def _document(self, table: str, pk: str, sk: str):
        return self.db.collection(table).document(document_id(pk, sk))

    async def get_item(self, table: str, pk: str, sk: str) -> Optional[Dict[str, Any]]:
        """Fetch one item by composite key.

        Returns:
            Item data or None if not found.

        Raises:
            PersistenceError: If the Firestore read fails.
        """
        try:
            doc = await self._maybe_await(self._document(table, pk, sk).get())
            if doc.exists:
                return doc.to_dict()
            return None

        except Exception as e:
            logger.error("firestore_get_failed", table=table, pk=pk, sk=sk, error=str(e))
            raise PersistenceError(
                message=f"Failed to get item: {str(e)}",
                details={"table": table, "pk": pk, "sk": sk}
            )

    async def put_item(self, table: str, item: Dict[str, Any]) -> None:
        """Create or replace an item. The item must carry PK and SK.

        Raises:
            PersistenceError: If the Firestore write fails.
        """
        pk, sk = item.get("PK"), item.get("SK")
        if not pk or not sk:
            raise PersistenceError(
                message="Item is missing its PK/SK key",
                code=ErrorCode.FIRESTORE_WRITE_FAILED,
                details={"table": table}
            )

        try:
            await self._maybe_await(self._document(table, pk, sk).set(item))
            logger.info("firestore_item_put", table=table, pk=pk, sk=sk)

        except Exception as e:
            logger.error("firestore_put_failed", table=table, pk=pk, sk=sk, error=str(e))
            raise PersistenceError(
                message=f"Failed to put item: {str(e)}",
                code=ErrorCode.FIRESTORE_WRITE_FAILED,
                details={"table": table, "pk": pk, "sk": sk}
            )

    async def update_item(
        self,
        table: str,
        pk: str,
        sk: str,
        data: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        """Update fields of an existing item and return the new item.

        Args:
            data: Fields to update (supports dot notation for nested fields).

        Returns:
            The full item after the update, or None if the item does not exist.

        Raises:
            PersistenceError: If the Firestore write fails.
        """
        doc_ref = self._document(table, pk, sk)
        try:
            await self._maybe_await(doc_ref.update(data))
        except gcp_exceptions.NotFound:
            logger.info("firestore_update_missing_item", table=table, pk=pk, sk=sk)
            return None
        except Exception as e:
            logger.error("firestore_update_failed", table=table, pk=pk, sk=sk, error=str(e))
            raise PersistenceError(
                message=f"Failed to update item: {str(e)}",
                code=ErrorCode.FIRESTORE_WRITE_FAILED,
                details={"table": table, "pk": pk, "sk": sk}
            )

        logger.info("firestore_item_updated", table=table, pk=pk, sk=sk, fields=list(data.keys()))
        return await self.get_item(table, pk, sk)

    async def query_items(
        self,
        table: str,
        pk: str,
        sk_prefix: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """Query a partition, optionally restricted to SK values with a prefix.

        Results are ordered by SK.
        """
        try:
            query = self.db.collection(table).where(filter=FieldFilter("PK", "==", pk))
            if sk_prefix:
                query = (
                    query
                    .where(filter=FieldFilter("SK", ">=", sk_prefix))
                    .where(filter=FieldFilter("SK", "<", sk_prefix + PREFIX_UPPER_BOUND))
                )

            items = [doc.to_dict() or {} for doc in query.stream()]

        except Exception as e:
            logger.error("firestore_query_failed", table=table, pk=pk, sk_prefix=sk_prefix, error=str(e))
            raise PersistenceError(
                message=f"Failed to query items: {str(e)}",
                details={"table": table, "pk": pk, "sk_prefix": sk_prefix}
            )

        items.sort(key=lambda item: item.get("SK", ""), reverse=descending)
        return items[:limit] if limit is not None else items

    async def query_index(
        self,
        table: str,
        gsi1pk: str,
        filters: Optional[Dict[str, Any]] = None
    ) -> List[Dict[str, Any]]:
        """Look up items by secondary key, with optional equality filters.

        Results are ordered by GSI1SK.
        """
        try:
            query = self.db.collection(table).where(filter=FieldFilter("GSI1PK", "==", gsi1pk))
            for field_name, value in (filters or {}).items():
                query = query.where(filter=FieldFilter(field_name, "==", value))

            items = [doc.to_dict() or {} for doc in query.stream()]

        except Exception as e:
            logger.error("firestore_index_query_failed", table=table, gsi1pk=gsi1pk, error=str(e))
            raise PersistenceError(
                message=f"Failed to query index: {str(e)}",
                details={"table": table, "gsi1pk": gsi1pk}
            )

        items.sort(key=lambda item: item.get("GSI1SK", ""))
        return items
