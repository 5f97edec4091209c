"""
Domain models for opportunities, applications and the principals acting on them.
"""

from datetime import datetime
from enum import StrEnum
from typing import Annotated, TypeVar

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

CATEGORIES = (
    "Education",
    "Environment",
    "Health",
    "Community",
    "Food Bank",
    "Animal Welfare",
)


class Role(StrEnum):
    VOLUNTEER = "volunteer"
    ORGANIZATION = "organization"


class OpportunityStatus(StrEnum):
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ApplicationStatus(StrEnum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


TERMINAL_APPLICATION_STATUSES = frozenset(
    {
        ApplicationStatus.DECLINED,
        ApplicationStatus.CANCELLED,
        ApplicationStatus.COMPLETED,
    }
)


class User(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    role: Role
    name: str | None = None
    organization_name: str | None = None
    location: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    interests: list[str] = Field(default_factory=list)

    @property
    def display_name(self) -> str:
        return self.organization_name or self.name or self.id


class Opportunity(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    organization_id: str
    title: str
    description: str
    category: str | None
    location: str
    latitude: float | None = None
    longitude: float | None = None
    date_time: datetime | None = None
    duration: str | None = None  # free text, e.g. "2 hours", "Half day"
    volunteers_needed: int = 10
    volunteers_applied: int = Field(default=0, ge=0)  # cumulative, never decremented
    skills: list[str] = Field(default_factory=list)
    image_url: str | None = None
    status: OpportunityStatus = OpportunityStatus.ACTIVE
    created_at: datetime
    updated_at: datetime


class OrganizationSummary(BaseModel):
    id: str
    display_name: str


class OpportunityDetails(Opportunity):
    organization: OrganizationSummary | None = None


class ScoredOpportunity(OpportunityDetails):
    match_score: int


class Application(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    opportunity_id: str
    applicant_id: str
    status: ApplicationStatus = ApplicationStatus.PENDING
    message: str | None = None
    applied_at: datetime
    completed_at: datetime | None = None


class OpportunitySummary(BaseModel):
    id: str
    organization_id: str
    title: str
    category: str | None
    location: str
    date_time: datetime | None
    status: OpportunityStatus


class ApplicantSummary(BaseModel):
    id: str
    display_name: str
    location: str | None


class ApplicationDetails(Application):
    opportunity: OpportunitySummary | None = None
    applicant: ApplicantSummary | None = None


def _check_category(value: str | None) -> str | None:
    if value is not None and value not in CATEGORIES:
        raise ValueError(f"category must be one of: {', '.join(CATEGORIES)}")
    return value


Category = Annotated[str, AfterValidator(_check_category)]


class OpportunityCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1)
    category: Category
    location: str = Field(min_length=1)
    date_time: datetime | None = None
    duration: str | None = None
    volunteers_needed: int | None = Field(default=None, ge=1)
    skills: list[str] = Field(default_factory=list)
    image_url: str | None = None


class OpportunityPatch(BaseModel):
    """
    Sparse update. Absent or null fields keep the stored value.
    """

    model_config = ConfigDict(extra="forbid")

    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, min_length=1)
    category: Category | None = None
    location: str | None = Field(default=None, min_length=1)
    date_time: datetime | None = None
    duration: str | None = None
    volunteers_needed: int | None = Field(default=None, ge=1)
    skills: list[str] | None = None
    image_url: str | None = None
    status: OpportunityStatus | None = None


class ApplicationCreate(BaseModel):
    opportunity_id: str
    message: str | None = Field(default=None, max_length=2000)


class ApplicationStatusUpdate(BaseModel):
    status: ApplicationStatus

    @field_validator("status", mode="before")
    @classmethod
    def _rejected_is_declined(cls, value):
        if isinstance(value, str) and value.strip().lower() == "rejected":
            return ApplicationStatus.DECLINED
        return value


class ProfileUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str | None = None
    organization_name: str | None = None
    location: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    interests: list[str] | None = None

    @model_validator(mode="after")
    def _coordinates_come_in_pairs(self) -> "ProfileUpdate":
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError("latitude and longitude must be given together")
        return self


class VolunteerStats(BaseModel):
    model_config = ConfigDict(extra="forbid")

    total_applications: int = 0
    pending: int = 0
    accepted: int = 0
    completed: int = 0
    cancelled: int = 0
    declined: int = 0


class OrganizationStats(BaseModel):
    model_config = ConfigDict(extra="forbid")

    total_opportunities: int = 0
    opportunities_by_status: dict[str, int] = Field(default_factory=dict)
    total_applications: int = 0
    completed_applications: int = 0
    spots_remaining: int = 0


RecordT = TypeVar("RecordT", bound=BaseModel)


def merge_patch(record: RecordT, patch: BaseModel, **overrides) -> RecordT:
    """
    Apply a sparse patch to an immutable record and return the new record.

    Fields the patch leaves unset or null keep their stored value.
    """
    updates = patch.model_dump(exclude_unset=True, exclude_none=True)
    updates.update(overrides)
    return record.model_copy(update=updates)
