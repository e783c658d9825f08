"""Notification models."""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field

from estate.models.user import Role


class NotificationChannel(str, Enum):
    EMAIL = "email"
    IN_APP = "in-app"


class NotificationPurpose(str, Enum):
    """Closed set of events that produce notifications."""
    PROPERTY_CREATED = "property_created"
    PROPERTY_APPROVED = "property_approved"
    PROPERTY_UPDATED = "property_updated"
    PROPERTY_DELETED = "property_deleted"
    PROPERTY_STATUS_CHANGED = "property_status_changed"
    PROPERTY_SOLD = "property_sold"
    PROPERTY_LISTED = "property_listed"
    AGENT_APPROVED = "agent_approved"
    AGENT_REJECTED = "agent_rejected"
    USER_REGISTERED = "user_registered"
    ROLE_REQUEST = "role_request"
    DEAL_REQUEST = "deal_request"


class RelatedModel(str, Enum):
    AGENT = "Agent"
    PROPERTY = "Property"
    USER = "User"


class NotificationSpec(BaseModel):
    """What a workflow asks the fan-out to send."""
    user_id: str = Field(..., description="Addressed user ID")
    message: str
    channel: NotificationChannel = NotificationChannel.IN_APP
    allowed_roles: list[Role] = Field(default_factory=list, description="Read-time audience")
    purpose: NotificationPurpose
    related_id: Optional[str] = None
    related_model: Optional[RelatedModel] = None


class Notification(NotificationSpec):
    """Persisted notification. Recipient fields are a snapshot taken at send time."""
    id: str = Field(..., description="Notification ID (ULID)")
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    roles: list[Role] = Field(default_factory=list)
    profile_photos: list[str] = Field(default_factory=list)
    created_at: Optional[str] = None
    revision: int = Field(default=0, ge=0)
