from collections import Counter
from collections.abc import Iterable

from voluntapp.models import (
    Application,
    ApplicationStatus,
    Opportunity,
    OpportunityStatus,
    OrganizationStats,
    VolunteerStats,
)


def volunteer_stats(applications: Iterable[Application]) -> VolunteerStats:
    counts = Counter(a.status for a in applications)
    return VolunteerStats(
        total_applications=sum(counts.values()),
        pending=counts[ApplicationStatus.PENDING],
        accepted=counts[ApplicationStatus.ACCEPTED],
        completed=counts[ApplicationStatus.COMPLETED],
        cancelled=counts[ApplicationStatus.CANCELLED],
        declined=counts[ApplicationStatus.DECLINED],
    )


def organization_stats(
    opportunities: Iterable[Opportunity], applications: Iterable[Application]
) -> OrganizationStats:
    opportunities = list(opportunities)
    applications = list(applications)
    by_status = Counter(o.status.value for o in opportunities)

    # volunteers_applied is cumulative, so this undercounts once
    # applications are declined or cancelled
    spots = sum(
        max(0, o.volunteers_needed - o.volunteers_applied)
        for o in opportunities
        if o.status == OpportunityStatus.ACTIVE
    )
    return OrganizationStats(
        total_opportunities=len(opportunities),
        opportunities_by_status=dict(by_status),
        total_applications=len(applications),
        completed_applications=sum(
            1 for a in applications if a.status == ApplicationStatus.COMPLETED
        ),
        spots_remaining=spots,
    )
