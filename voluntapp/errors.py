from dataclasses import dataclass, field
from typing import Any


@dataclass(eq=False)
class DomainError(Exception):
    """
    Base error for discovery and application operations.

    Raised by the service layer and rendered into problem-details
    responses by the exception handler registered in `create_app`.
    """

    message: str
    details: dict[str, Any] = field(default_factory=dict)

    status_code = 500
    title = "Internal Server Error"

    def __str__(self) -> str:
        return self.message


@dataclass(eq=False)
class InvalidInput(DomainError):
    status_code = 400
    title = "Bad Request"


@dataclass(eq=False)
class OpportunityUnavailable(InvalidInput):
    message: str = "Opportunity not available"


@dataclass(eq=False)
class NotFound(DomainError):
    status_code = 404
    title = "Not Found"


@dataclass(eq=False)
class Forbidden(DomainError):
    status_code = 403
    title = "Forbidden"


@dataclass(eq=False)
class StateConflict(DomainError):
    status_code = 409
    title = "Conflict"


@dataclass(eq=False)
class CollaboratorFailure(DomainError):
    status_code = 502
    title = "Bad Gateway"
