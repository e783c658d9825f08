"""Actor model - the authenticated principal a request runs as."""

from pydantic import BaseModel, Field

from estate.models.user import Role, User


class Actor(BaseModel):
    """Caller identity as handed over by the auth layer."""
    user_id: str = Field(..., description="Acting user's ID")
    roles: list[Role] = Field(default_factory=lambda: [Role.USER])

    @classmethod
    def from_user(cls, user: User) -> "Actor":
        return cls(user_id=user.id, roles=list(user.roles))

    def has_role(self, *roles: Role) -> bool:
        return any(role in self.roles for role in roles)

    @property
    def is_admin(self) -> bool:
        return Role.ADMIN in self.roles
