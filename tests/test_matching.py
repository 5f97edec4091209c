from datetime import timedelta

import pytest
from conftest import BASE_TIME, make_opportunity

from voluntapp.matching import (
    interest_score,
    match_score,
    proximity_score,
    rank_opportunities,
)
from voluntapp.models import OpportunityStatus, Role, User
from voluntapp.repositories import OpportunityRepository, UserRepository

# one degree of latitude on a 3959 mile sphere
MILES_PER_DEGREE = 3959 * 3.141592653589793 / 180


def _viewer(**kwargs) -> User:
    return User(id="viewer", role=Role.VOLUNTEER, **kwargs)


def test_no_signal_viewer_scores_everything_25_newest_first(db) -> None:
    repo = OpportunityRepository(db)
    oldest = repo.insert(make_opportunity(category="Education", created_at=BASE_TIME))
    middle = repo.insert(
        make_opportunity(category="Health", created_at=BASE_TIME + timedelta(hours=1))
    )
    newest = repo.insert(
        make_opportunity(category="Education", created_at=BASE_TIME + timedelta(hours=2))
    )

    feed = rank_opportunities(_viewer(), repo)

    assert [o.match_score for o in feed] == [25, 25, 25]
    assert [o.id for o in feed] == [newest.id, middle.id, oldest.id]


def test_same_spot_and_matching_interest_scores_100() -> None:
    opportunity = make_opportunity(category="Health", latitude=40.0, longitude=-75.0)
    viewer = _viewer(latitude=40.0, longitude=-75.0, interests=["Health"])

    assert match_score(viewer, opportunity) == 100


def test_beyond_100_miles_contributes_no_proximity() -> None:
    opportunity = make_opportunity(category="Health", latitude=0.0, longitude=0.0)
    viewer = _viewer(
        latitude=150 / MILES_PER_DEGREE, longitude=0.0, interests=["Health"]
    )

    assert proximity_score(viewer, opportunity) == 0
    assert match_score(viewer, opportunity) == 50


def test_proximity_decays_linearly() -> None:
    opportunity = make_opportunity(latitude=0.0, longitude=0.0)
    viewer = _viewer(latitude=50 / MILES_PER_DEGREE, longitude=0.0)

    assert proximity_score(viewer, opportunity) == pytest.approx(25.0)


def test_proximity_is_zero_at_exactly_100_miles() -> None:
    opportunity = make_opportunity(latitude=0.0, longitude=0.0)
    viewer = _viewer(latitude=100 / MILES_PER_DEGREE, longitude=0.0)

    assert proximity_score(viewer, opportunity) == pytest.approx(0.0, abs=1e-9)
    assert proximity_score(viewer, opportunity) >= 0


@pytest.mark.parametrize(
    ("viewer_coords", "opportunity_coords"),
    [
        ((None, None), (37.0, -122.0)),
        ((37.0, -122.0), (None, None)),
        ((37.0, None), (37.0, -122.0)),
        ((float("nan"), -122.0), (37.0, -122.0)),
    ],
)
def test_missing_coordinates_give_no_proximity(viewer_coords, opportunity_coords) -> None:
    opportunity = make_opportunity(
        latitude=opportunity_coords[0], longitude=opportunity_coords[1]
    )
    viewer = _viewer(latitude=viewer_coords[0], longitude=viewer_coords[1])

    assert proximity_score(viewer, opportunity) == 0


def test_empty_interests_use_neutral_score_not_miss_score() -> None:
    assert interest_score([], "Education") == 25
    assert interest_score(["Health"], "Education") == 10
    assert interest_score(["Health", "Education"], "Education") == 50


def test_missing_category_scores_no_interest() -> None:
    assert interest_score(["Health"], None) == 0
    assert interest_score([], "") == 0


def test_unknown_category_is_just_another_string() -> None:
    assert interest_score(["Knitting"], "Knitting") == 50
    assert interest_score(["Health"], "Knitting") == 10


@pytest.mark.parametrize(
    "status",
    [OpportunityStatus.PAUSED, OpportunityStatus.COMPLETED, OpportunityStatus.CANCELLED],
)
def test_inactive_opportunities_never_in_feed(db, status) -> None:
    repo = OpportunityRepository(db)
    visible = repo.insert(make_opportunity())
    repo.insert(make_opportunity(status=status, category="Health"))

    feed = rank_opportunities(_viewer(interests=["Health"]), repo)

    assert [o.id for o in feed] == [visible.id]


def test_feed_orders_by_score_then_recency(db) -> None:
    repo = OpportunityRepository(db)
    near_match = repo.insert(
        make_opportunity(category="Health", created_at=BASE_TIME)
    )
    near_miss = repo.insert(
        make_opportunity(category="Education", created_at=BASE_TIME + timedelta(days=1))
    )
    far_match = repo.insert(
        make_opportunity(
            category="Health",
            latitude=40.7128,
            longitude=-74.0060,
            created_at=BASE_TIME + timedelta(days=2),
        )
    )
    viewer = _viewer(latitude=37.7749, longitude=-122.4194, interests=["Health"])

    feed = rank_opportunities(viewer, repo)

    assert [(o.id, o.match_score) for o in feed] == [
        (near_match.id, 100),
        (near_miss.id, 60),
        (far_match.id, 50),
    ]


def test_ranking_does_not_mutate_opportunities(db) -> None:
    repo = OpportunityRepository(db)
    stored = repo.insert(make_opportunity())

    rank_opportunities(_viewer(interests=["Community"]), repo)

    assert repo.get(stored.id) == stored
    assert not hasattr(repo.get(stored.id), "match_score")



def test_feed_entries_carry_posting_organization(db, users) -> None:
    repo = OpportunityRepository(db)
    repo.insert(make_opportunity(organization_id="org-1"))
    repo.insert(make_opportunity(organization_id="org-gone"))

    feed = rank_opportunities(_viewer(), repo, users=UserRepository(db))
    organizations = {o.organization_id: o.organization for o in feed}

    assert organizations["org-1"].display_name == users["org"].display_name
    assert organizations["org-gone"] is None
