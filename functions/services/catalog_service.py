"""Catalog service for ClearDesk.

Read-only access to the assembly, material, blueprint-template and
permit-mapping collections. Constructed once and injected into the
engines; the catalog is safe to share across concurrent runs.
"""

from typing import Any, Dict, Iterable, List, Optional
import inspect
import structlog

from firebase_admin import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from config.settings import settings
from config.errors import PersistenceError
from models.blueprint import BlueprintTemplate
from models.catalog import Assembly, Material, PermitMapping

logger = structlog.get_logger()

# Firestore "in" filters accept at most this many values
IN_QUERY_CHUNK_SIZE = 30


def _chunks(values: List[str], size: int) -> Iterable[List[str]]:
    for start in range(0, len(values), size):
        yield values[start:start + size]


class CatalogService:
    """Lookups over the catalog collections.

    Records are returned as models; a record's document id is exposed as
    ``_id`` (``model.id``).
    """

    def __init__(self, db=None):
        self._db = db

    @property
    def db(self):
        """Get Firestore client (lazy initialization)."""
        if self._db is None:
            self._db = firestore.client()
        return self._db

    async def _maybe_await(self, result: Any) -> Any:
        if inspect.isawaitable(result):
            return await result
        return result

    @staticmethod
    def _record(doc) -> Dict[str, Any]:
        return {"_id": doc.id, **(doc.to_dict() or {})}

    async def _get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        try:
            doc = await self._maybe_await(self.db.collection(collection).document(doc_id).get())
        except Exception as e:
            logger.error("catalog_get_failed", collection=collection, doc_id=doc_id, error=str(e))
            raise PersistenceError(
                message=f"Failed to read catalog record: {str(e)}",
                details={"collection": collection, "id": doc_id}
            )
        return self._record(doc) if doc.exists else None

    async def _find(self, collection: str, *filters: FieldFilter, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        try:
            query = self.db.collection(collection)
            for field_filter in filters:
                query = query.where(filter=field_filter)
            if limit is not None:
                query = query.limit(limit)
            return [self._record(doc) for doc in query.stream()]
        except Exception as e:
            logger.error("catalog_query_failed", collection=collection, error=str(e))
            raise PersistenceError(
                message=f"Failed to query catalog: {str(e)}",
                details={"collection": collection}
            )

    # -------------------------------------------------------------------------
    # Assemblies and materials
    # -------------------------------------------------------------------------

    async def find_assembly_by_code(self, code: str) -> Optional[Assembly]:
        """Assembly with the given code, or None."""
        records = await self._find(
            settings.assemblies_collection,
            FieldFilter("code", "==", code),
            limit=1
        )
        return Assembly(**records[0]) if records else None

    async def get_assembly(self, assembly_id: str) -> Optional[Assembly]:
        record = await self._get(settings.assemblies_collection, assembly_id)
        return Assembly(**record) if record else None

    async def get_material(self, material_id: str) -> Optional[Material]:
        record = await self._get(settings.materials_collection, material_id)
        return Material(**record) if record else None

    # -------------------------------------------------------------------------
    # Templates
    # -------------------------------------------------------------------------

    async def get_template(self, template_id: str) -> Optional[BlueprintTemplate]:
        record = await self._get(settings.templates_collection, template_id)
        return BlueprintTemplate(**record) if record else None

    async def list_templates(self) -> List[BlueprintTemplate]:
        records = await self._find(settings.templates_collection)
        return [BlueprintTemplate(**record) for record in records]

    # -------------------------------------------------------------------------
    # Permit mappings
    # -------------------------------------------------------------------------

    async def find_permit_mappings(
        self,
        assembly_ids: List[str],
        permit_type: str = "electrical"
    ) -> List[PermitMapping]:
        """Permit mappings of the given type for any of the assemblies."""
        unique_ids = list(dict.fromkeys(assembly_ids))
        mappings: List[PermitMapping] = []

        for chunk in _chunks(unique_ids, IN_QUERY_CHUNK_SIZE):
            records = await self._find(
                settings.permit_mappings_collection,
                FieldFilter("assemblyId", "in", chunk),
                FieldFilter("permitType", "==", permit_type),
            )
            mappings.extend(PermitMapping(**record) for record in records)

        return mappings
