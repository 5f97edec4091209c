from collections.abc import Callable
from datetime import datetime

from voluntapp.database import InMemoryKeyValueDatabase
from voluntapp.models import (
    Application,
    ApplicationStatus,
    Opportunity,
    OpportunityStatus,
    OrganizationSummary,
    User,
)

Record = Opportunity | Application | User
Database = InMemoryKeyValueDatabase[str, Record]


def _newest_first(records: list, key: Callable[[object], datetime]) -> list:
    return sorted(records, key=key, reverse=True)


class OpportunityRepository:
    def __init__(self, db: Database) -> None:
        self.db = db

    @staticmethod
    def key(opportunity_id: str) -> str:
        return f"opportunity:{opportunity_id}"

    def insert(self, opportunity: Opportunity) -> Opportunity:
        self.db.put(self.key(opportunity.id), opportunity)
        return opportunity

    def get(self, opportunity_id: str) -> Opportunity | None:
        value = self.db.get(self.key(opportunity_id))
        return value if isinstance(value, Opportunity) else None

    def replace(self, opportunity: Opportunity) -> Opportunity:
        self.db.put(self.key(opportunity.id), opportunity)
        return opportunity

    def increment_applied(self, opportunity_id: str) -> Opportunity | None:
        return self.db.increment(self.key(opportunity_id), "volunteers_applied")

    def _all(self) -> list[Opportunity]:
        return [o for o in self.db.snapshot() if isinstance(o, Opportunity)]

    def list_active(self) -> list[Opportunity]:
        return [o for o in self._all() if o.status == OpportunityStatus.ACTIVE]

    def list_by_organization(self, organization_id: str) -> list[Opportunity]:
        return _newest_first(
            [o for o in self._all() if o.organization_id == organization_id],
            key=lambda o: o.created_at,
        )


class ApplicationRepository:
    def __init__(self, db: Database) -> None:
        self.db = db

    @staticmethod
    def key(application_id: str) -> str:
        return f"application:{application_id}"

    def insert(self, application: Application) -> Application:
        self.db.put(self.key(application.id), application)
        return application

    def get(self, application_id: str) -> Application | None:
        value = self.db.get(self.key(application_id))
        return value if isinstance(value, Application) else None

    def transition(
        self,
        application_id: str,
        *,
        from_status: ApplicationStatus,
        to_status: ApplicationStatus,
        completed_at: datetime | None = None,
    ) -> Application | None:
        """
        Write the new status only if the stored status is still `from_status`.
        Returns None when another writer got there first.
        """
        changes: dict[str, object] = {"status": to_status}
        if completed_at is not None:
            changes["completed_at"] = completed_at
        return self.db.update_if(
            self.key(application_id), {"status": from_status}, changes
        )

    def _all(self) -> list[Application]:
        return [a for a in self.db.snapshot() if isinstance(a, Application)]

    def list_by_applicant(self, applicant_id: str) -> list[Application]:
        return _newest_first(
            [a for a in self._all() if a.applicant_id == applicant_id],
            key=lambda a: a.applied_at,
        )

    def list_by_opportunity(self, opportunity_id: str) -> list[Application]:
        return _newest_first(
            [a for a in self._all() if a.opportunity_id == opportunity_id],
            key=lambda a: a.applied_at,
        )


class UserRepository:
    def __init__(self, db: Database) -> None:
        self.db = db

    @staticmethod
    def key(user_id: str) -> str:
        return f"user:{user_id}"

    def get(self, user_id: str) -> User | None:
        value = self.db.get(self.key(user_id))
        return value if isinstance(value, User) else None

    def put(self, user: User) -> User:
        self.db.put(self.key(user.id), user)
        return user

    def organization_summary(self, organization_id: str) -> OrganizationSummary | None:
        organization = self.get(organization_id)
        if organization is None:
            return None
        return OrganizationSummary(
            id=organization.id, display_name=organization.display_name
        )
