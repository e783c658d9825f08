"""User model - identity, role set and account status."""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, field_validator


class Role(str, Enum):
    """Role tags held in a user's role set."""
    ADMIN = "admin"
    USER = "user"
    SELLER = "seller"
    BUYER = "buyer"
    AGENT = "agent"
    # Awaiting admin decision on a role request
    PENDING_SELLER = "pending_seller"
    PENDING_BUYER = "pending_buyer"
    PENDING_AGENT = "pending_agent"


class UserStatus(str, Enum):
    """Account status values."""
    ACTIVE = "active"
    INACTIVE = "inactive"
    PENDING = "pending"
    SUSPENDED = "suspended"


def _with_base_role(roles: list[Role]) -> list[Role]:
    if Role.USER not in roles:
        return [Role.USER, *roles]
    return roles


class User(BaseModel):
    """Registered marketplace user."""
    id: str = Field(..., description="User ID (ULID)")
    email: str = Field(..., description="Email address (unique)")
    password_hash: Optional[str] = Field(None, description="Credential hash produced by the auth layer")
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    profile_photos: list[str] = Field(default_factory=list)
    roles: list[Role] = Field(default_factory=lambda: [Role.USER], description="Role set; always includes 'user'")
    status: UserStatus = Field(default=UserStatus.ACTIVE)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    revision: int = Field(default=0, ge=0)

    @field_validator("roles")
    @classmethod
    def roles_include_base_role(cls, v: list[Role]) -> list[Role]:
        return _with_base_role(v)

    def has_role(self, *roles: Role) -> bool:
        """True when the user holds any of the given roles."""
        return any(role in self.roles for role in roles)

    @property
    def display_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part) or self.email


class UserCreate(BaseModel):
    """Registration payload (password already hashed upstream)."""
    email: str
    password_hash: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    profile_photos: list[str] = Field(default_factory=list)
    roles: Optional[list[Role]] = None
    status: Optional[UserStatus] = None

    @field_validator("email")
    @classmethod
    def email_must_not_be_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("email must not be empty")
        return v.strip().lower()
