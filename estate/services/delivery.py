"""In-process live delivery - pushes notifications to connected user sessions."""

import asyncio

from estate.models.notification import Notification
from estate.utils.logging import get_structured_logger, mask_user_id

logger = get_structured_logger(__name__)

DEFAULT_QUEUE_SIZE = 100


class SessionHub:
    """Tracks open sessions per user; each session reads from its own queue."""

    def __init__(self, queue_size: int = DEFAULT_QUEUE_SIZE):
        self.queue_size = queue_size
        self.sessions: dict[str, list[asyncio.Queue]] = {}

    def connect(self, user_id: str) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)
        self.sessions.setdefault(user_id, []).append(queue)
        logger.debug("Session connected", user_id=mask_user_id(user_id))
        return queue

    def disconnect(self, user_id: str, queue: asyncio.Queue) -> None:
        queues = self.sessions.get(user_id, [])
        if queue in queues:
            queues.remove(queue)
        if not queues:
            self.sessions.pop(user_id, None)

    async def push(self, notification: Notification) -> None:
        """Deliver to every open session of the addressed user; no-op when offline."""
        queues = self.sessions.get(notification.user_id, [])
        for queue in list(queues):
            try:
                queue.put_nowait(notification)
            except asyncio.QueueFull:
                # Slow reader; drop for this session only
                logger.warning(
                    "Session queue full, notification dropped",
                    user_id=mask_user_id(notification.user_id),
                    notification_id=notification.id,
                )
        logger.debug(
            "Notification pushed",
            user_id=mask_user_id(notification.user_id),
            sessions=len(queues),
        )
