"""User directory - lookups and role-set mutation over the users collection."""

import logging
from typing import Optional

from estate.config import settings
from estate.models.user import Role, User, UserStatus
from estate.services.contracts import DocumentStore
from estate.utils.errors import BadRequestError, ConflictError, NotFoundError
from estate.utils.ids import utc_now
from estate.utils.logging import mask_user_id

logger = logging.getLogger(__name__)

USERS = "users"


class UserDirectory:
    """Read-mostly access to users; only role sets are mutated here."""

    def __init__(self, store: DocumentStore):
        self.store = store

    async def find_by_id(self, user_id: str) -> Optional[User]:
        doc = await self.store.find_by_id(USERS, user_id)
        return User.model_validate(doc) if doc else None

    async def get(self, user_id: str) -> User:
        user = await self.find_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found", detail={"user_id": user_id})
        return user

    async def find_by_email(self, email: str) -> Optional[User]:
        doc = await self.store.find_one(USERS, {"email": email.strip().lower()})
        return User.model_validate(doc) if doc else None

    async def save(self, user: User) -> User:
        user.updated_at = utc_now()
        user.revision += 1
        doc = await self.store.save(USERS, user.model_dump(mode="json"))
        return User.model_validate(doc)

    async def add_role(self, user_id: str, role: Role) -> User:
        """Add a role tag once; a no-op when the user already holds it."""
        user = await self.get(user_id)
        if role in user.roles:
            return user
        user.roles.append(role)
        user = await self.save(user)
        logger.info(
            "Role added to user",
            extra={"user_id": mask_user_id(user_id), "role": role.value}
        )
        return user

    async def remove_role(self, user_id: str, role: Role) -> User:
        """Drop a role tag. The base 'user' tag cannot be removed."""
        if role == Role.USER:
            raise BadRequestError("The base user role cannot be removed")
        user = await self.get(user_id)
        if role not in user.roles:
            return user
        user.roles = [r for r in user.roles if r != role]
        user = await self.save(user)
        logger.info(
            "Role removed from user",
            extra={"user_id": mask_user_id(user_id), "role": role.value}
        )
        return user

    async def insert(self, user: User) -> User:
        if await self.find_by_email(user.email):
            raise ConflictError("A user with this email already exists")
        doc = await self.store.save(USERS, user.model_dump(mode="json"))
        return User.model_validate(doc)

    async def delete(self, user_id: str) -> None:
        await self.store.delete_one(USERS, {"id": user_id})

    async def find_active_agents(self) -> tuple[list[User], int]:
        filters = {"roles": {"contains": [Role.AGENT.value]}, "status": UserStatus.ACTIVE.value}
        docs = await self.store.find(USERS, filters)
        total = await self.store.count_documents(USERS, filters)
        return [User.model_validate(d) for d in docs], total

    async def search(
        self,
        role: Optional[Role] = None,
        email: Optional[str] = None,
        status: Optional[UserStatus] = None,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> tuple[list[User], int]:
        """Paged user listing, newest first."""
        limit = min(limit or settings.PROPERTY_PAGE_SIZE, settings.MAX_PAGE_SIZE)
        filters: dict = {}
        if role:
            filters["roles"] = {"contains": [role.value]}
        if email:
            filters["email"] = email.strip().lower()
        if status:
            filters["status"] = status.value
        docs = await self.store.find(
            USERS, filters, skip=(page - 1) * limit, limit=limit, sort=[("created_at", True)]
        )
        total = await self.store.count_documents(USERS, filters)
        return [User.model_validate(d) for d in docs], total
