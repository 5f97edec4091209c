"""
Application lifecycle: creation and status transitions.

Who may move an application where is decided by `TRANSITIONS`, keyed by
(current status, requester's relationship to the application). Anything
not listed there is refused.
"""

import uuid
from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from enum import StrEnum

from voluntapp.errors import (
    CollaboratorFailure,
    Forbidden,
    InvalidInput,
    NotFound,
    OpportunityUnavailable,
    StateConflict,
)
from voluntapp.models import (
    ApplicantSummary,
    Application,
    ApplicationDetails,
    ApplicationStatus,
    Opportunity,
    OpportunityStatus,
    OpportunitySummary,
    Role,
    TERMINAL_APPLICATION_STATUSES,
    User,
)
from voluntapp.observability import get_logger
from voluntapp.repositories import (
    ApplicationRepository,
    Database,
    OpportunityRepository,
    UserRepository,
)

log = get_logger(__name__)

NowFn = Callable[[], datetime]


class Party(StrEnum):
    OWNER = "organization"
    APPLICANT = "applicant"


TRANSITIONS: dict[tuple[ApplicationStatus, Party], frozenset[ApplicationStatus]] = {
    (ApplicationStatus.PENDING, Party.OWNER): frozenset(
        {ApplicationStatus.ACCEPTED, ApplicationStatus.DECLINED}
    ),
    (ApplicationStatus.ACCEPTED, Party.OWNER): frozenset(
        {ApplicationStatus.COMPLETED}
    ),
    (ApplicationStatus.PENDING, Party.APPLICANT): frozenset(
        {ApplicationStatus.CANCELLED}
    ),
    # withdrawing, or self-reporting the engagement as done
    (ApplicationStatus.ACCEPTED, Party.APPLICANT): frozenset(
        {ApplicationStatus.CANCELLED, ApplicationStatus.COMPLETED}
    ),
}


def _targets_for(party: Party) -> frozenset[ApplicationStatus]:
    return frozenset().union(
        *(targets for (_, p), targets in TRANSITIONS.items() if p == party)
    )


ROLE_TARGETS: dict[Party, frozenset[ApplicationStatus]] = {
    party: _targets_for(party) for party in Party
}


def allowed_targets(
    current: ApplicationStatus, parties: Iterable[Party]
) -> frozenset[ApplicationStatus]:
    return frozenset().union(
        *(TRANSITIONS.get((current, p), frozenset()) for p in parties)
    )


def relationship(
    requester: User, application: Application, organization_id: str | None
) -> set[Party]:
    parties: set[Party] = set()
    if requester.role == Role.ORGANIZATION and requester.id == organization_id:
        parties.add(Party.OWNER)
    if requester.id == application.applicant_id:
        parties.add(Party.APPLICANT)
    return parties


class ApplicationLifecycle:
    def __init__(
        self,
        db: Database,
        *,
        now_fn: NowFn = lambda: datetime.now(UTC),
    ) -> None:
        self.db = db
        self.now_fn = now_fn
        self.opportunities = OpportunityRepository(db)
        self.applications = ApplicationRepository(db)
        self.users = UserRepository(db)

    def create_application(
        self, opportunity_id: str, applicant: User, message: str | None = None
    ) -> Application:
        """
        Record a new pending application and bump the opportunity's
        applied counter, as one unit of work.
        """
        with self.db.transaction():
            opportunity = self.opportunities.get(opportunity_id)
            if opportunity is None or opportunity.status != OpportunityStatus.ACTIVE:
                raise OpportunityUnavailable(
                    details={"opportunity_id": opportunity_id}
                )

            # repeat applications are recorded, not refused
            if any(
                a.applicant_id == applicant.id
                for a in self.applications.list_by_opportunity(opportunity_id)
            ):
                log.info(
                    "duplicate_application",
                    opportunity_id=opportunity_id,
                    applicant_id=applicant.id,
                )

            application = Application(
                id=str(uuid.uuid4()),
                opportunity_id=opportunity_id,
                applicant_id=applicant.id,
                message=message,
                applied_at=self.now_fn(),
            )
            try:
                self.applications.insert(application)
                updated = self.opportunities.increment_applied(opportunity_id)
            except Exception as exc:
                log.error(
                    "application_create_rolled_back",
                    opportunity_id=opportunity_id,
                    applicant_id=applicant.id,
                    exc_info=True,
                )
                raise CollaboratorFailure("Could not record application") from exc

        log.info(
            "application_created",
            application_id=application.id,
            opportunity_id=opportunity_id,
            applicant_id=applicant.id,
            volunteers_applied=updated.volunteers_applied if updated else None,
        )
        return application

    def update_application_status(
        self,
        application_id: str,
        requester: User,
        new_status: ApplicationStatus,
    ) -> Application:
        application = self.applications.get(application_id)
        if application is None:
            raise NotFound("Application not found")

        opportunity = self.opportunities.get(application.opportunity_id)
        organization_id = opportunity.organization_id if opportunity else None

        parties = relationship(requester, application, organization_id)
        if not parties:
            raise Forbidden("Not allowed to change this application")

        current = application.status
        if current in TERMINAL_APPLICATION_STATUSES:
            log.warning(
                "transition_rejected",
                application_id=application_id,
                current=current.value,
                requested=new_status.value,
            )
            raise StateConflict(
                f"Application is already {current.value}",
                details={"current_status": current.value},
            )

        permitted = frozenset().union(*(ROLE_TARGETS[p] for p in parties))
        if new_status not in permitted:
            raise InvalidInput(
                "Invalid status for role",
                details={
                    "requested_status": new_status.value,
                    "allowed": sorted(s.value for s in permitted),
                },
            )

        if new_status not in allowed_targets(current, parties):
            log.warning(
                "transition_rejected",
                application_id=application_id,
                current=current.value,
                requested=new_status.value,
            )
            raise StateConflict(
                f"Cannot move application from {current.value} to {new_status.value}",
                details={"current_status": current.value},
            )

        completed_at = (
            self.now_fn() if new_status == ApplicationStatus.COMPLETED else None
        )
        updated = self.applications.transition(
            application_id,
            from_status=current,
            to_status=new_status,
            completed_at=completed_at,
        )
        if updated is None:
            raise StateConflict(
                "Application changed since it was read; re-fetch and retry",
                details={"expected_status": current.value},
            )

        log.info(
            "application_status_changed",
            application_id=application_id,
            requester_id=requester.id,
            from_status=current.value,
            to_status=new_status.value,
        )
        return updated

    def _details(
        self, application: Application, opportunity: Opportunity | None
    ) -> ApplicationDetails:
        applicant = self.users.get(application.applicant_id)
        return ApplicationDetails(
            **application.model_dump(),
            opportunity=(
                OpportunitySummary(**opportunity.model_dump())
                if opportunity
                else None
            ),
            applicant=(
                ApplicantSummary(
                    id=applicant.id,
                    display_name=applicant.display_name,
                    location=applicant.location,
                )
                if applicant
                else None
            ),
        )

    def list_for_applicant(self, applicant_id: str) -> list[ApplicationDetails]:
        return [
            self._details(a, self.opportunities.get(a.opportunity_id))
            for a in self.applications.list_by_applicant(applicant_id)
        ]

    def list_for_opportunity(
        self, opportunity_id: str, requester: User
    ) -> list[ApplicationDetails]:
        opportunity = self.opportunities.get(opportunity_id)
        if opportunity is None:
            raise NotFound("Opportunity not found")
        if opportunity.organization_id != requester.id:
            raise Forbidden("Only the owning organization can list applications")
        return [
            self._details(a, opportunity)
            for a in self.applications.list_by_opportunity(opportunity_id)
        ]
