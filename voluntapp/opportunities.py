import uuid
from collections.abc import Callable
from datetime import UTC, datetime

from voluntapp.errors import Forbidden, NotFound
from voluntapp.geocoding import Geocoder, geocode_or_none
from voluntapp.models import (
    Opportunity,
    OpportunityCreate,
    OpportunityDetails,
    OpportunityPatch,
    OpportunityStatus,
    Role,
    User,
    merge_patch,
)
from voluntapp.observability import get_logger
from voluntapp.repositories import Database, OpportunityRepository, UserRepository

log = get_logger(__name__)

# soft delete keeps the row so existing applications still resolve
DELETED_STATUS = OpportunityStatus.CANCELLED


class OpportunityService:
    def __init__(
        self,
        db: Database,
        geocoder: Geocoder,
        *,
        now_fn: Callable[[], datetime] = lambda: datetime.now(UTC),
        default_volunteers_needed: int = 10,
    ) -> None:
        self.repo = OpportunityRepository(db)
        self.users = UserRepository(db)
        self.geocoder = geocoder
        self.now_fn = now_fn
        self.default_volunteers_needed = default_volunteers_needed

    def get(self, opportunity_id: str) -> Opportunity:
        opportunity = self.repo.get(opportunity_id)
        if opportunity is None:
            raise NotFound("Opportunity not found")
        return opportunity

    def get_details(self, opportunity_id: str) -> OpportunityDetails:
        opportunity = self.get(opportunity_id)
        return OpportunityDetails(
            **opportunity.model_dump(),
            organization=self.users.organization_summary(opportunity.organization_id),
        )

    def list_for_organization(self, organization_id: str) -> list[Opportunity]:
        return self.repo.list_by_organization(organization_id)

    def _owned(self, opportunity_id: str, requester: User) -> Opportunity:
        opportunity = self.get(opportunity_id)
        if opportunity.organization_id != requester.id:
            raise Forbidden("Not authorized")
        return opportunity

    def create(self, organization: User, body: OpportunityCreate) -> Opportunity:
        if organization.role != Role.ORGANIZATION:
            raise Forbidden("Only organizations can post opportunities")

        coords = geocode_or_none(self.geocoder, body.location)
        now = self.now_fn()
        fields = body.model_dump(exclude={"volunteers_needed"})
        opportunity = Opportunity(
            **fields,
            id=str(uuid.uuid4()),
            organization_id=organization.id,
            latitude=coords.latitude if coords else None,
            longitude=coords.longitude if coords else None,
            volunteers_needed=body.volunteers_needed or self.default_volunteers_needed,
            volunteers_applied=0,
            status=OpportunityStatus.ACTIVE,
            created_at=now,
            updated_at=now,
        )
        self.repo.insert(opportunity)
        log.info(
            "opportunity_created",
            opportunity_id=opportunity.id,
            organization_id=organization.id,
            category=opportunity.category,
            geocoded=coords is not None,
        )
        return opportunity

    def update(
        self, opportunity_id: str, requester: User, patch: OpportunityPatch
    ) -> Opportunity:
        existing = self._owned(opportunity_id, requester)

        overrides: dict[str, object] = {"updated_at": self.now_fn()}
        if patch.location is not None and patch.location != existing.location:
            coords = geocode_or_none(self.geocoder, patch.location)
            overrides["latitude"] = coords.latitude if coords else None
            overrides["longitude"] = coords.longitude if coords else None

        updated = self.repo.replace(merge_patch(existing, patch, **overrides))
        log.info(
            "opportunity_updated",
            opportunity_id=opportunity_id,
            fields=sorted(patch.model_dump(exclude_unset=True, exclude_none=True)),
        )
        return updated

    def delete(self, opportunity_id: str, requester: User) -> Opportunity:
        existing = self._owned(opportunity_id, requester)
        deleted = self.repo.replace(
            existing.model_copy(
                update={"status": DELETED_STATUS, "updated_at": self.now_fn()}
            )
        )
        log.info("opportunity_deleted", opportunity_id=opportunity_id)
        return deleted
