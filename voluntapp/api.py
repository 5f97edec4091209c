from datetime import UTC, datetime

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, Response
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from voluntapp.database import InMemoryKeyValueDatabase
from voluntapp.errors import DomainError, Forbidden
from voluntapp.geocoding import CityTableGeocoder, Geocoder, geocode_or_none
from voluntapp.lifecycle import ApplicationLifecycle
from voluntapp.matching import rank_opportunities
from voluntapp.middleware import RequestContextMiddleware
from voluntapp.models import (
    Application,
    ApplicationCreate,
    ApplicationDetails,
    ApplicationStatusUpdate,
    Opportunity,
    OpportunityCreate,
    OpportunityDetails,
    OpportunityPatch,
    OrganizationStats,
    ProfileUpdate,
    Role,
    ScoredOpportunity,
    User,
    VolunteerStats,
    merge_patch,
)
from voluntapp.observability import configure_logging, get_logger
from voluntapp.opportunities import OpportunityService
from voluntapp.problem_details import (
    domain_error_handler,
    http_exception_handler,
    unhandled_exception_handler,
    validation_error_handler,
)
from voluntapp.repositories import (
    ApplicationRepository,
    Database,
    OpportunityRepository,
    UserRepository,
)
from voluntapp.settings import Settings, get_settings
from voluntapp.stats import organization_stats, volunteer_stats

router = APIRouter()
log = get_logger(__name__)


def _db(request: Request) -> Database:
    return request.app.state.database


def current_user(request: Request) -> User:
    """
    The upstream auth gateway identifies the caller with X-User-Id.
    """
    user_id = request.headers.get("x-user-id")
    if not user_id:
        raise HTTPException(status_code=401, detail="Authentication required")
    user = UserRepository(_db(request)).get(user_id)
    if user is None:
        raise HTTPException(status_code=401, detail="Unknown user")
    return user


def _opportunity_service(request: Request) -> OpportunityService:
    state = request.app.state
    return OpportunityService(
        state.database,
        state.geocoder,
        now_fn=state.now_fn,
        default_volunteers_needed=state.settings.default_volunteers_needed,
    )


def _lifecycle(request: Request) -> ApplicationLifecycle:
    return ApplicationLifecycle(
        request.app.state.database, now_fn=request.app.state.now_fn
    )


@router.get("/health")
async def health_check() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/opportunities", response_model=list[ScoredOpportunity])
async def discovery_feed(
    request: Request, user: User = Depends(current_user)
) -> list[ScoredOpportunity]:
    return rank_opportunities(
        user,
        OpportunityRepository(_db(request)),
        users=UserRepository(_db(request)),
        max_distance=request.app.state.settings.max_distance_miles,
    )


@router.get("/opportunities/mine", response_model=list[Opportunity])
async def my_opportunities(
    request: Request, user: User = Depends(current_user)
) -> list[Opportunity]:
    return _opportunity_service(request).list_for_organization(user.id)


@router.get("/opportunities/{opportunity_id}", response_model=OpportunityDetails)
async def get_opportunity(opportunity_id: str, request: Request) -> OpportunityDetails:
    return _opportunity_service(request).get_details(opportunity_id)


@router.post("/opportunities", status_code=201, response_model=Opportunity)
async def create_opportunity(
    body: OpportunityCreate,
    request: Request,
    user: User = Depends(current_user),
) -> Opportunity:
    return _opportunity_service(request).create(user, body)


@router.patch("/opportunities/{opportunity_id}", response_model=Opportunity)
async def update_opportunity(
    opportunity_id: str,
    patch: OpportunityPatch,
    request: Request,
    user: User = Depends(current_user),
) -> Opportunity:
    return _opportunity_service(request).update(opportunity_id, user, patch)


@router.delete("/opportunities/{opportunity_id}", status_code=204)
async def delete_opportunity(
    opportunity_id: str, request: Request, user: User = Depends(current_user)
) -> Response:
    _opportunity_service(request).delete(opportunity_id, user)
    return Response(status_code=204)


@router.post("/applications", status_code=201, response_model=Application)
async def create_application(
    body: ApplicationCreate,
    request: Request,
    user: User = Depends(current_user),
) -> Application:
    if user.role != Role.VOLUNTEER:
        raise Forbidden("Only volunteers can apply")
    return _lifecycle(request).create_application(
        body.opportunity_id, user, body.message
    )


@router.patch("/applications/{application_id}", response_model=Application)
async def update_application_status(
    application_id: str,
    body: ApplicationStatusUpdate,
    request: Request,
    user: User = Depends(current_user),
) -> Application:
    return _lifecycle(request).update_application_status(
        application_id, user, body.status
    )


@router.get("/applications/user", response_model=list[ApplicationDetails])
async def my_applications(
    request: Request, user: User = Depends(current_user)
) -> list[ApplicationDetails]:
    return _lifecycle(request).list_for_applicant(user.id)


@router.get(
    "/applications/opportunity/{opportunity_id}",
    response_model=list[ApplicationDetails],
)
async def opportunity_applications(
    opportunity_id: str, request: Request, user: User = Depends(current_user)
) -> list[ApplicationDetails]:
    return _lifecycle(request).list_for_opportunity(opportunity_id, user)


@router.get("/users/me", response_model=User)
async def get_profile(user: User = Depends(current_user)) -> User:
    return user


@router.patch("/users/me", response_model=User)
async def update_profile(
    body: ProfileUpdate, request: Request, user: User = Depends(current_user)
) -> User:
    overrides: dict[str, object] = {}
    location_changed = body.location is not None and body.location != user.location
    if location_changed and body.latitude is None:
        coords = geocode_or_none(request.app.state.geocoder, body.location)
        overrides["latitude"] = coords.latitude if coords else None
        overrides["longitude"] = coords.longitude if coords else None

    updated = UserRepository(_db(request)).put(merge_patch(user, body, **overrides))
    log.info("profile_updated", user_id=user.id)
    return updated


@router.get("/stats/me", response_model=VolunteerStats | OrganizationStats)
async def my_stats(
    request: Request, user: User = Depends(current_user)
) -> VolunteerStats | OrganizationStats:
    applications = ApplicationRepository(_db(request))
    if user.role == Role.ORGANIZATION:
        owned = OpportunityRepository(_db(request)).list_by_organization(user.id)
        received = [
            a for o in owned for a in applications.list_by_opportunity(o.id)
        ]
        return organization_stats(owned, received)
    return volunteer_stats(applications.list_by_applicant(user.id))


def create_app(
    settings: Settings | None = None, geocoder: Geocoder | None = None
) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(level=settings.log_level)

    app = FastAPI(title="voluntapp")
    db: Database = InMemoryKeyValueDatabase()
    app.state.database = db
    app.state.settings = settings
    app.state.geocoder = geocoder or CityTableGeocoder()
    app.state.now_fn = lambda: datetime.now(UTC)

    app.add_middleware(RequestContextMiddleware)

    app.add_exception_handler(DomainError, domain_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.include_router(router)
    return app
