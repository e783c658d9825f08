"""Notification fan-out - persist one record per event, push it live, serve the read side."""

import asyncio
from typing import Iterable, Optional

from estate.config import settings
from estate.models.actor import Actor
from estate.models.notification import Notification, NotificationSpec, RelatedModel
from estate.models.user import Role, User
from estate.services.contracts import DocumentStore, NotificationDelivery
from estate.services.users import UserDirectory
from estate.utils.errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from estate.utils.ids import generate_document_id, utc_now
from estate.utils.logging import (
    get_structured_logger,
    mask_user_id,
    sanitize_message_text,
    timed,
)

logger = get_structured_logger(__name__)

NOTIFICATIONS = "notifications"
NEWEST_FIRST = [("created_at", True), ("id", True)]


def parse_roles(values: Iterable) -> list[Role]:
    """Validate role tags, rejecting anything outside the Role enum."""
    roles = []
    for value in values:
        try:
            role = Role(value)
        except ValueError:
            raise BadRequestError(f"Invalid role: {value}")
        if role not in roles:
            roles.append(role)
    return roles


class NotificationFanout:
    """
    Persists notifications and hands them to live delivery.

    One record is stored per send, addressed to spec.user_id. allowed_roles is
    read-time audience metadata: feed() also surfaces the record to anyone
    holding one of those roles. The recipient's name, roles and photos are
    copied in at send time and never refreshed.
    """

    def __init__(
        self,
        store: DocumentStore,
        users: UserDirectory,
        delivery: Optional[NotificationDelivery] = None,
    ):
        self.store = store
        self.users = users
        self.delivery = delivery
        self._pending: set[asyncio.Task] = set()

    @timed("notifications.send")
    async def send(self, spec: NotificationSpec) -> Notification:
        user = await self.users.find_by_id(spec.user_id)
        if user is None:
            raise BadRequestError("User not found", detail={"user_id": spec.user_id})

        notification = Notification(
            id=generate_document_id(),
            **spec.model_dump(),
            first_name=user.first_name,
            last_name=user.last_name,
            roles=list(user.roles),
            profile_photos=list(user.profile_photos),
            created_at=utc_now(),
        )
        doc = await self.store.save(NOTIFICATIONS, notification.model_dump(mode="json"))
        notification = Notification.model_validate(doc)

        logger.info(
            "Notification persisted",
            notification_id=notification.id,
            user_id=mask_user_id(notification.user_id),
            purpose=notification.purpose.value,
            allowed_roles=[r.value for r in notification.allowed_roles],
            related_id=notification.related_id,
            message_preview=sanitize_message_text(notification.message, max_length=100),
        )

        self._dispatch(notification)
        return notification

    def _dispatch(self, notification: Notification) -> None:
        if self.delivery is None:
            return
        task = asyncio.create_task(self._deliver(notification))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _deliver(self, notification: Notification) -> None:
        try:
            await self.delivery.push(notification)
        except Exception as e:
            logger.warning(
                "Live delivery failed (non-fatal)",
                notification_id=notification.id,
                user_id=mask_user_id(notification.user_id),
                error=str(e),
            )

    async def drain(self) -> None:
        """Wait for in-flight deliveries (shutdown and tests)."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # Read side

    async def get(self, notification_id: str) -> Notification:
        doc = await self.store.find_by_id(NOTIFICATIONS, notification_id)
        if not doc:
            raise NotFoundError("Notification not found", detail={"notification_id": notification_id})
        return Notification.model_validate(doc)

    async def search(
        self,
        user_id: Optional[str] = None,
        roles: Optional[Iterable] = None,
        related_model: Optional[RelatedModel] = None,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> list[Notification]:
        """AND of the given filters; roles match when they intersect allowed_roles."""
        limit = min(limit or settings.NOTIFICATION_PAGE_SIZE, settings.MAX_PAGE_SIZE)
        filters: dict = {}
        if user_id:
            filters["user_id"] = user_id
        if roles:
            filters["allowed_roles"] = {"overlaps": [r.value for r in parse_roles(roles)]}
        if related_model:
            filters["related_model"] = RelatedModel(related_model).value
        docs = await self.store.find(
            NOTIFICATIONS, filters, skip=(max(page, 1) - 1) * limit, limit=limit, sort=NEWEST_FIRST
        )
        return [Notification.model_validate(d) for d in docs]

    async def search_with_users(self, **criteria) -> list[tuple[Notification, Optional[User]]]:
        """search() joined with the addressed user's current record."""
        notifications = await self.search(**criteria)
        users = await asyncio.gather(*(self.users.find_by_id(n.user_id) for n in notifications))
        return list(zip(notifications, users))

    async def for_user(self, user_id: str) -> list[Notification]:
        docs = await self.store.find(NOTIFICATIONS, {"user_id": user_id}, sort=NEWEST_FIRST)
        return [Notification.model_validate(d) for d in docs]

    async def for_user_roles(self, user_id: str, roles: Iterable) -> list[Notification]:
        filters = {
            "user_id": user_id,
            "allowed_roles": {"overlaps": [r.value for r in parse_roles(roles)]},
        }
        docs = await self.store.find(NOTIFICATIONS, filters, sort=NEWEST_FIRST)
        return [Notification.model_validate(d) for d in docs]

    async def feed(self, actor: Actor, page: int = 1, limit: Optional[int] = None) -> list[Notification]:
        """Notifications addressed to the actor or whose audience intersects the actor's roles."""
        limit = min(limit or settings.NOTIFICATION_PAGE_SIZE, settings.MAX_PAGE_SIZE)
        window = max(page, 1) * limit
        addressed, audience = await asyncio.gather(
            self.store.find(NOTIFICATIONS, {"user_id": actor.user_id}, limit=window, sort=NEWEST_FIRST),
            self.store.find(
                NOTIFICATIONS,
                {"allowed_roles": {"overlaps": [r.value for r in actor.roles]}},
                limit=window,
                sort=NEWEST_FIRST,
            ),
        )
        merged = {doc["id"]: doc for doc in [*addressed, *audience]}
        ordered = sorted(
            merged.values(), key=lambda d: (d.get("created_at") or "", d["id"]), reverse=True
        )
        start = (max(page, 1) - 1) * limit
        return [Notification.model_validate(d) for d in ordered[start:start + limit]]

    # Admin mutations

    async def update_allowed_roles(self, notification_id: str, roles: Iterable, actor: Actor) -> Notification:
        if not actor.is_admin:
            raise ForbiddenError("Only admins can change notification audiences")
        allowed_roles = parse_roles(roles)
        notification = await self.get(notification_id)
        doc = await self.store.update_if(
            NOTIFICATIONS,
            notification.id,
            {"revision": notification.revision},
            {"allowed_roles": [r.value for r in allowed_roles], "revision": notification.revision + 1},
        )
        if doc is None:
            raise ConflictError("Notification was modified concurrently")
        logger.info(
            "Notification audience updated",
            notification_id=notification_id,
            allowed_roles=[r.value for r in allowed_roles],
        )
        return Notification.model_validate(doc)

    async def delete(self, notification_id: str, actor: Actor) -> None:
        if not actor.is_admin:
            raise ForbiddenError("Only admins can delete notifications")
        await self.get(notification_id)
        await self.store.delete_one(NOTIFICATIONS, {"id": notification_id})
        logger.info("Notification deleted", notification_id=notification_id)
