"""Document store on top of Supabase tables (one table per collection, primary key 'id')."""

from typing import Any, Optional

from estate.services.contracts import FILTER_OPERATORS, Filters, Sort
from estate.services.supabase_client import SupabaseClient
from estate.utils.errors import BadRequestError, StoreError
from estate.utils.logging import get_structured_logger, log_timing

logger = get_structured_logger(__name__)


def apply_filters(query: Any, filters: Optional[Filters]) -> Any:
    """Translate the filter dialect into PostgREST builder calls."""
    for field, condition in (filters or {}).items():
        if not isinstance(condition, dict):
            condition = {"eq": condition}
        for op, value in condition.items():
            if op not in FILTER_OPERATORS:
                raise BadRequestError(f"Unsupported filter operator: {op}")
            if op == "eq" and value is None:
                query = query.is_(field, "null")
            elif op == "in":
                query = query.in_(field, list(value))
            elif op in ("contains", "overlaps"):
                query = getattr(query, op)(field, list(value))
            else:
                query = getattr(query, op)(field, value)
    return query


class SupabaseDocumentStore:
    """DocumentStore backed by the Supabase PostgREST API."""

    async def find_by_id(self, collection: str, doc_id: str) -> Optional[dict]:
        return await self.find_one(collection, {"id": doc_id})

    async def find_one(self, collection: str, filters: Filters) -> Optional[dict]:
        rows = await self.find(collection, filters, limit=1)
        return rows[0] if rows else None

    async def find(
        self,
        collection: str,
        filters: Optional[Filters] = None,
        skip: int = 0,
        limit: Optional[int] = None,
        sort: Optional[Sort] = None,
    ) -> list[dict]:
        async with SupabaseClient() as client:
            try:
                with log_timing("store.find", logger=logger, collection=collection):
                    query = apply_filters(client.table(collection).select("*"), filters)
                    for field, descending in sort or ():
                        query = query.order(field, desc=descending)
                    # skip only applies to paged queries
                    if limit is not None:
                        query = query.range(skip, skip + limit - 1)
                    result = query.execute()
                return result.data if result.data else []
            except BadRequestError:
                raise
            except Exception as e:
                raise StoreError(f"Failed to query {collection}: {e}")

    async def count_documents(self, collection: str, filters: Optional[Filters] = None) -> int:
        async with SupabaseClient() as client:
            try:
                query = apply_filters(client.table(collection).select("id", count="exact"), filters)
                result = query.execute()
                return result.count or 0
            except BadRequestError:
                raise
            except Exception as e:
                raise StoreError(f"Failed to count {collection}: {e}")

    async def save(self, collection: str, doc: dict) -> dict:
        async with SupabaseClient() as client:
            try:
                result = client.table(collection).upsert(doc).execute()
                if result.data and len(result.data) > 0:
                    return result.data[0]
                raise StoreError(f"Failed to save {collection} document: no data returned")
            except StoreError:
                raise
            except Exception as e:
                raise StoreError(f"Failed to save {collection} document: {e}")

    async def update_if(
        self, collection: str, doc_id: str, expected: dict, changes: dict
    ) -> Optional[dict]:
        async with SupabaseClient() as client:
            try:
                query = client.table(collection).update(changes).eq("id", doc_id)
                for field, value in expected.items():
                    query = query.eq(field, value)
                result = query.execute()
                if result.data and len(result.data) > 0:
                    return result.data[0]
                logger.info(
                    "Conditional update matched no document",
                    collection=collection,
                    doc_id=doc_id,
                    expected=expected,
                )
                return None
            except Exception as e:
                raise StoreError(f"Failed to update {collection} document: {e}")

    async def delete_one(self, collection: str, filters: Filters) -> int:
        async with SupabaseClient() as client:
            try:
                # PostgREST deletes every match; callers pass unique filters (usually id)
                query = apply_filters(client.table(collection).delete(), filters)
                result = query.execute()
                return len(result.data) if result.data else 0
            except BadRequestError:
                raise
            except Exception as e:
                raise StoreError(f"Failed to delete {collection} document: {e}")
