"""Collaborator interfaces the workflow services are constructed with."""

from typing import Any, Optional, Protocol, Sequence

from estate.models.notification import Notification, NotificationSpec

# {field: value} for equality, or {field: {op: value}} with op in FILTER_OPERATORS
Filters = dict[str, Any]
# [(field, descending), ...]
Sort = Sequence[tuple[str, bool]]

FILTER_OPERATORS = frozenset({"eq", "neq", "gt", "gte", "lt", "lte", "in", "contains", "overlaps"})


class DocumentStore(Protocol):
    """Per-document atomic store; no multi-document transactions."""

    async def find_by_id(self, collection: str, doc_id: str) -> Optional[dict]: ...

    async def find_one(self, collection: str, filters: Filters) -> Optional[dict]: ...

    async def find(
        self,
        collection: str,
        filters: Optional[Filters] = None,
        skip: int = 0,
        limit: Optional[int] = None,
        sort: Optional[Sort] = None,
    ) -> list[dict]: ...

    async def count_documents(self, collection: str, filters: Optional[Filters] = None) -> int: ...

    async def save(self, collection: str, doc: dict) -> dict:
        """Insert or replace the document keyed by doc['id']."""
        ...

    async def update_if(
        self, collection: str, doc_id: str, expected: dict, changes: dict
    ) -> Optional[dict]:
        """Apply changes only if every expected field still matches. None when nothing matched."""
        ...

    async def delete_one(self, collection: str, filters: Filters) -> int: ...


class NotificationSender(Protocol):
    """What workflows depend on to emit notifications."""

    async def send(self, spec: NotificationSpec) -> Notification: ...


class NotificationDelivery(Protocol):
    """Real-time push to connected sessions. Fire-and-forget."""

    async def push(self, notification: Notification) -> None: ...


class MediaStore(Protocol):
    """Upload storage for listing images."""

    async def store(self, content: bytes, category: str, filename: str = "") -> str: ...

    async def delete(self, uri: str) -> None: ...
