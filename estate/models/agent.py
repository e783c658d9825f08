"""Agent model - one onboarding record per user attempting agent status."""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field


class AgentStatus(str, Enum):
    """Onboarding states; approved and rejected are terminal."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class AgentSpecialization(str, Enum):
    LUXURY_HOMES = "Luxury Homes"
    NEW_CONSTRUCTIONS = "New Constructions"
    INVESTMENT_PROPERTIES = "Investment Properties"
    VACATION_SHORT_TERM_RENTALS = "Vacation/Short-term Rentals"
    SENIOR_COMMUNITIES = "Senior Communities"
    LOT_LAND = "Lot/Land"


class AgentEmployees(str, Enum):
    """Employee-count tier."""
    SELF = "self"
    TEAM = "team"
    AGENCY = "agency"


class AgentBadge(str, Enum):
    TOP_RATED = "Top Rated"
    PRO = "Pro"
    VERIFIED = "Verified"


class AgentDetails(BaseModel):
    """Descriptive fields supplied with an agent request."""
    specialization: Optional[AgentSpecialization] = None
    employees: AgentEmployees = AgentEmployees.SELF
    badges: list[AgentBadge] = Field(default_factory=list)
    bio: Optional[str] = None
    experience_years: Optional[int] = Field(None, ge=0)


class AgentUpdate(BaseModel):
    """Admin/agent patch; status, license and balance are not patchable."""
    specialization: Optional[AgentSpecialization] = None
    employees: Optional[AgentEmployees] = None
    badges: Optional[list[AgentBadge]] = None
    bio: Optional[str] = None
    experience_years: Optional[int] = Field(None, ge=0)


class Agent(AgentDetails):
    """Agent request / approved agent record."""
    id: str = Field(..., description="Agent record ID (ULID)")
    user_id: str = Field(..., description="Owning user ID")
    status: AgentStatus = Field(default=AgentStatus.PENDING)
    license: Optional[str] = Field(None, description="Issued on approval only")
    balance: float = Field(default=0.0, description="Accumulated commission credit")
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    revision: int = Field(default=0, ge=0)
