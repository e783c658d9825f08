"""Property models - listing, embedded deal proposals, and their invariants."""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, field_validator

MAX_IMAGES = 12


class ListingType(str, Enum):
    SALE = "sale"
    RENT = "rent"
    SOLD = "sold"


class PropertyStatus(str, Enum):
    """Moderation state, changed by admins only."""
    PENDING = "pending"
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"


class DealStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


# Moderation transitions an admin may apply. Setting the current value is never allowed.
STATUS_TRANSITIONS: dict[PropertyStatus, frozenset[PropertyStatus]] = {
    PropertyStatus.PENDING: frozenset({PropertyStatus.ACTIVE}),
    PropertyStatus.ACTIVE: frozenset({PropertyStatus.INACTIVE, PropertyStatus.SUSPENDED}),
    PropertyStatus.INACTIVE: frozenset({PropertyStatus.ACTIVE, PropertyStatus.SUSPENDED}),
    PropertyStatus.SUSPENDED: frozenset({PropertyStatus.ACTIVE, PropertyStatus.INACTIVE}),
}

# Outstanding (pending or accepted) proposals allowed per listing type
DEAL_CAPS = {ListingType.RENT: 2}
DEFAULT_DEAL_CAP = 4


def deal_cap(listing_type: ListingType) -> int:
    """Maximum outstanding deal proposals for a listing type."""
    return DEAL_CAPS.get(listing_type, DEFAULT_DEAL_CAP)


def can_transition(current: PropertyStatus, new: PropertyStatus) -> bool:
    return new in STATUS_TRANSITIONS.get(current, frozenset())


class DealTerms(BaseModel):
    """Agent's proposal payload."""
    commission_rate: float = Field(..., ge=0, le=100, description="Commission rate (percent)")
    terms: Optional[str] = Field(None, description="Free-text terms")


class DealProposal(BaseModel):
    """Agent proposal embedded in a property. Contact fields are a snapshot taken at proposal time."""
    agent_id: str = Field(..., description="Proposing agent's user ID")
    commission_rate: float
    terms: Optional[str] = None
    status: DealStatus = Field(default=DealStatus.PENDING)
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    profile_photos: list[str] = Field(default_factory=list)
    proposed_at: Optional[str] = None

    @property
    def is_outstanding(self) -> bool:
        return self.status in (DealStatus.PENDING, DealStatus.ACCEPTED)


class PropertyDetails(BaseModel):
    """Descriptive listing attributes."""
    title: str
    description: Optional[str] = None
    price: float = Field(..., ge=0)
    type: ListingType
    bedrooms: Optional[int] = Field(None, ge=0)
    bathrooms: Optional[int] = Field(None, ge=0)
    parking_spaces: Optional[int] = Field(None, ge=0)
    area: Optional[float] = Field(None, ge=0)
    floor_number: Optional[int] = None
    heating_system: Optional[str] = None
    cooling_system: Optional[str] = None
    is_furnished: bool = False
    property_type: Optional[str] = Field(None, description="e.g. apartment, house")
    purpose: Optional[str] = Field(None, description="e.g. residential, commercial")
    available_from: Optional[str] = None
    currency: str = "USD"
    rent_period: Optional[str] = Field(None, description="e.g. monthly, for rent listings")
    contact_name: Optional[str] = None
    contact_email: Optional[str] = None
    contact_number: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    amenities: list[str] = Field(default_factory=list)
    videos: list[str] = Field(default_factory=list)

    @field_validator("title")
    @classmethod
    def title_must_not_be_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("title must not be empty")
        return v.strip()


class PropertyCreate(PropertyDetails):
    pass


class PropertyUpdate(BaseModel):
    """Owner/admin patch. Owner, status, images and proposals are not patchable here."""
    title: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    type: Optional[ListingType] = None
    bedrooms: Optional[int] = Field(None, ge=0)
    bathrooms: Optional[int] = Field(None, ge=0)
    parking_spaces: Optional[int] = Field(None, ge=0)
    area: Optional[float] = Field(None, ge=0)
    floor_number: Optional[int] = None
    heating_system: Optional[str] = None
    cooling_system: Optional[str] = None
    is_furnished: Optional[bool] = None
    property_type: Optional[str] = None
    purpose: Optional[str] = None
    available_from: Optional[str] = None
    currency: Optional[str] = None
    rent_period: Optional[str] = None
    contact_name: Optional[str] = None
    contact_email: Optional[str] = None
    contact_number: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    amenities: Optional[list[str]] = None
    videos: Optional[list[str]] = None

    @field_validator("title", "price", "type", "is_furnished", "currency", "amenities", "videos")
    @classmethod
    def required_fields_cannot_be_cleared(cls, v, info):
        # Omitted fields stay unchanged; explicit nulls are rejected
        if v is None:
            raise ValueError(f"{info.field_name} cannot be cleared")
        return v

    @field_validator("title")
    @classmethod
    def title_must_not_be_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("title must not be empty")
        return v.strip()


class Property(PropertyDetails):
    """Listing document."""
    id: str = Field(..., description="Property ID (ULID)")
    owner_id: str = Field(..., description="Owning user ID")
    status: PropertyStatus = Field(default=PropertyStatus.PENDING)
    images: list[str] = Field(default_factory=list, max_length=MAX_IMAGES)
    agents: list[DealProposal] = Field(default_factory=list)
    views: int = Field(default=0, ge=0)
    listing_date: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    revision: int = Field(default=0, ge=0)

    def outstanding_proposals(self) -> list[DealProposal]:
        return [p for p in self.agents if p.is_outstanding]

    def find_proposal(self, agent_id: str) -> Optional[int]:
        """Index of the latest proposal from an agent, or None."""
        for index in range(len(self.agents) - 1, -1, -1):
            if self.agents[index].agent_id == agent_id:
                return index
        return None


class PropertySearch(BaseModel):
    """Search criteria with pagination (page is 1-based)."""
    type: Optional[ListingType] = None
    status: Optional[PropertyStatus] = None
    min_price: Optional[float] = Field(None, ge=0)
    max_price: Optional[float] = Field(None, ge=0)
    min_area: Optional[float] = Field(None, ge=0)
    max_area: Optional[float] = Field(None, ge=0)
    beds: Optional[int] = Field(None, ge=0)
    baths: Optional[int] = Field(None, ge=0)
    owner_id: Optional[str] = None
    page: int = Field(default=1, ge=1)
    limit: Optional[int] = Field(None, ge=1)


class ImageUpload(BaseModel):
    """An uploaded file handed over by the transport layer."""
    filename: str
    content: bytes
    content_type: Optional[str] = None
