"""Test helper functions and collaborator fakes."""

from pathlib import Path
from typing import Optional

from estate.models.actor import Actor
from estate.models.property import ImageUpload
from estate.models.user import Role, User
from tests.utils.factories import create_image_bytes, create_user_data


class FakeMediaStore:
    """Records uploads and deletions; failures can be switched on."""

    def __init__(self, fail_store_after: Optional[int] = None, fail_delete: bool = False):
        self.stored: list[str] = []
        self.deleted: list[str] = []
        self.fail_store_after = fail_store_after
        self.fail_delete = fail_delete

    async def store(self, content: bytes, category: str, filename: str = "") -> str:
        if self.fail_store_after is not None and len(self.stored) >= self.fail_store_after:
            raise OSError("disk full")
        uri = f"/{category}/{len(self.stored) + 1:04d}{Path(filename).suffix}"
        self.stored.append(uri)
        return uri

    async def delete(self, uri: str) -> None:
        self.deleted.append(uri)
        if self.fail_delete:
            raise OSError("storage unavailable")


class FailingDelivery:
    """Delivery capability whose push always fails."""

    def __init__(self):
        self.calls = 0

    async def push(self, notification) -> None:
        self.calls += 1
        raise ConnectionError("socket closed")


async def seed_user(services, *roles: Role, **overrides) -> Actor:
    """Insert a user directly and return an Actor for it."""
    user = await services.users.insert(User(**create_user_data(roles, **overrides)))
    return Actor.from_user(user)


def image_uploads(count: int, ext: str = ".jpg") -> list[ImageUpload]:
    return [
        ImageUpload(filename=f"photo-{i}{ext}", content=create_image_bytes(), content_type="image/jpeg")
        for i in range(count)
    ]
