"""Account operations - registration, role requests and admin role decisions."""

from estate.models.actor import Actor
from estate.models.notification import NotificationPurpose, NotificationSpec, RelatedModel
from estate.models.user import Role, User, UserCreate, UserStatus
from estate.services.contracts import NotificationSender
from estate.services.users import UserDirectory
from estate.utils.errors import BadRequestError, ConflictError, ForbiddenError
from estate.utils.ids import generate_document_id, utc_now
from estate.utils.logging import get_structured_logger, mask_user_id

logger = get_structured_logger(__name__)

# Keywords a user may ask for, and the tag held while the request is open
REQUESTABLE_ROLES: dict[str, Role] = {
    "seller": Role.SELLER,
    "buyer": Role.BUYER,
    "agent": Role.AGENT,
}

PENDING_ROLES: dict[Role, Role] = {
    Role.SELLER: Role.PENDING_SELLER,
    Role.BUYER: Role.PENDING_BUYER,
    Role.AGENT: Role.PENDING_AGENT,
}

# Keywords an admin may grant or revoke; 'user' is deliberately absent
GRANTABLE_ROLES: dict[str, Role] = {
    **REQUESTABLE_ROLES,
    "admin": Role.ADMIN,
}


def resolve_role_keyword(keyword: str, table: dict[str, Role]) -> Role:
    """Look a keyword up in a closed table; unknown keywords are rejected."""
    role = table.get((keyword or "").strip().lower())
    if role is None:
        raise BadRequestError(f"Invalid role: {keyword}", detail={"allowed": sorted(table)})
    return role


class AccountService:
    """User-facing account flows that feed the notification stream."""

    def __init__(self, users: UserDirectory, notifier: NotificationSender):
        self.users = users
        self.notifier = notifier

    async def register(self, details: UserCreate) -> User:
        now = utc_now()
        user = await self.users.insert(User(
            id=generate_document_id(),
            email=details.email,
            password_hash=details.password_hash,
            first_name=details.first_name,
            last_name=details.last_name,
            phone=details.phone,
            profile_photos=details.profile_photos,
            roles=details.roles or [Role.USER],
            status=details.status or UserStatus.ACTIVE,
            created_at=now,
            updated_at=now,
        ))
        logger.info("User registered", user_id=mask_user_id(user.id))

        await self.notifier.send(NotificationSpec(
            user_id=user.id,
            message=f"New user registered: {user.display_name}",
            allowed_roles=[Role.ADMIN],
            purpose=NotificationPurpose.USER_REGISTERED,
            related_id=user.id,
            related_model=RelatedModel.USER,
        ))
        return user

    async def request_role(self, user_id: str, keyword: str) -> User:
        role = resolve_role_keyword(keyword, REQUESTABLE_ROLES)
        user = await self.users.get(user_id)

        pending = PENDING_ROLES[role]
        if user.has_role(Role.AGENT):
            raise ConflictError("User already holds the agent role")
        if user.has_role(role, pending):
            raise ConflictError(f"User already has the {role.value} role or a pending request for it")

        user = await self.users.add_role(user_id, pending)
        logger.info("Role requested", user_id=mask_user_id(user_id), role=role.value)

        await self.notifier.send(NotificationSpec(
            user_id=user_id,
            message=f"Role upgrade request for {role.value} sent to admin.",
            allowed_roles=[Role.ADMIN],
            purpose=NotificationPurpose.ROLE_REQUEST,
            related_id=user_id,
            related_model=RelatedModel.USER,
        ))
        return user

    async def upgrade_role(self, user_id: str, keyword: str, approve: bool, actor: Actor) -> User:
        """Grant or revoke a role; any open request for it is cleared either way."""
        if not actor.is_admin:
            raise ForbiddenError("Only admins can change user roles")
        role = resolve_role_keyword(keyword, GRANTABLE_ROLES)
        user = await self.users.get(user_id)

        pending = PENDING_ROLES.get(role)
        roles = [r for r in user.roles if r != pending]
        if approve:
            if role not in roles:
                roles.append(role)
        else:
            roles = [r for r in roles if r != role]

        user.roles = roles
        user = await self.users.save(user)
        logger.info(
            "Role decision applied",
            user_id=mask_user_id(user_id),
            role=role.value,
            approved=approve,
            admin_id=mask_user_id(actor.user_id),
        )
        return user

    async def delete_user(self, user_id: str, actor: Actor) -> None:
        if not actor.is_admin:
            raise ForbiddenError("Only admins can delete users")
        user = await self.users.get(user_id)
        if user.has_role(Role.ADMIN):
            raise ForbiddenError("Cannot delete an admin user")
        await self.users.delete(user_id)
        logger.info("User deleted", user_id=mask_user_id(user_id), deleted_by=mask_user_id(actor.user_id))
