"""
Discovery feed ranking.

Each active opportunity gets a score out of 100 built from two halves:

- proximity (0-50): linear decay from 50 at the viewer's location to 0 at
  `max_distance` miles; 0 when either side has no coordinates.
- interest (0-50): 50 on an exact category match, 10 when the viewer has
  interests but none match, 25 for everyone when the viewer has none.

Ties are broken newest first.
"""

from collections.abc import Callable, Sequence
from typing import Protocol

from voluntapp.geo import distance_miles, has_coordinates, round_half_up
from voluntapp.models import Opportunity, OrganizationSummary, ScoredOpportunity
from voluntapp.repositories import OpportunityRepository, UserRepository

MAX_SUBSCORE = 50.0
DEFAULT_MAX_DISTANCE_MILES = 100.0

INTEREST_MATCH = 50.0
INTEREST_MISS = 10.0
INTEREST_NEUTRAL = 25.0


class Viewer(Protocol):
    latitude: float | None
    longitude: float | None
    interests: Sequence[str]


def proximity_score(
    viewer: Viewer,
    opportunity: Opportunity,
    *,
    max_distance: float = DEFAULT_MAX_DISTANCE_MILES,
) -> float:
    if not has_coordinates(viewer.latitude, viewer.longitude):
        return 0.0
    if not has_coordinates(opportunity.latitude, opportunity.longitude):
        return 0.0

    d = distance_miles(
        viewer.latitude, viewer.longitude, opportunity.latitude, opportunity.longitude
    )
    if d > max_distance:
        return 0.0
    return max(0.0, MAX_SUBSCORE * (1 - d / max_distance))


def interest_score(interests: Sequence[str], category: str | None) -> float:
    if not category:
        return 0.0
    if not interests:
        return INTEREST_NEUTRAL
    return INTEREST_MATCH if category in interests else INTEREST_MISS


def match_score(
    viewer: Viewer,
    opportunity: Opportunity,
    *,
    max_distance: float = DEFAULT_MAX_DISTANCE_MILES,
) -> int:
    total = proximity_score(
        viewer, opportunity, max_distance=max_distance
    ) + interest_score(viewer.interests or (), opportunity.category)
    return round_half_up(total)


def _no_organization(_organization_id: str) -> None:
    return None


def score_opportunities(
    viewer: Viewer,
    opportunities: Sequence[Opportunity],
    *,
    max_distance: float = DEFAULT_MAX_DISTANCE_MILES,
    organization_of: Callable[[str], OrganizationSummary | None] = _no_organization,
) -> list[ScoredOpportunity]:
    scored = [
        ScoredOpportunity(
            **opportunity.model_dump(),
            organization=organization_of(opportunity.organization_id),
            match_score=match_score(viewer, opportunity, max_distance=max_distance),
        )
        for opportunity in opportunities
    ]
    scored.sort(key=lambda s: (s.match_score, s.created_at), reverse=True)
    return scored


def rank_opportunities(
    viewer: Viewer,
    opportunities: OpportunityRepository,
    *,
    users: UserRepository | None = None,
    max_distance: float = DEFAULT_MAX_DISTANCE_MILES,
) -> list[ScoredOpportunity]:
    """
    Build the discovery feed for `viewer`. Read-only; only opportunities
    whose status is active are considered. With `users`, each entry carries
    a summary of the posting organization.
    """
    return score_opportunities(
        viewer,
        opportunities.list_active(),
        max_distance=max_distance,
        organization_of=users.organization_summary if users else _no_organization,
    )
