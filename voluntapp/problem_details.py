from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from voluntapp.errors import DomainError
from voluntapp.observability import get_logger
from voluntapp.settings import Settings, get_settings

PROBLEM_JSON = "application/problem+json"

_TITLES = {
    400: "Bad Request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not Found",
    405: "Method Not Allowed",
    409: "Conflict",
    422: "Unprocessable Entity",
}


def _default_title(status_code: int) -> str:
    if status_code >= 500:
        return "Internal Server Error"
    return _TITLES.get(status_code, "Error")


def _settings(request: Request) -> Settings:
    return getattr(request.app.state, "settings", None) or get_settings()


def _request_id(request: Request) -> str | None:
    rid = getattr(request.state, "request_id", None)
    if rid:
        return str(rid)
    return request.headers.get("x-request-id")


def problem_response(
    *,
    request: Request,
    status_code: int,
    title: str | None = None,
    detail: str | None = None,
    errors: list[dict[str, Any]] | None = None,
    extensions: dict[str, Any] | None = None,
) -> JSONResponse:
    # never leak internals for server errors in production
    if status_code >= 500 and _settings(request).is_production:
        detail = None

    payload: dict[str, Any] = {
        "type": "about:blank",
        "title": title or _default_title(status_code),
        "status": status_code,
    }
    if detail:
        payload["detail"] = detail
    payload["instance"] = request.url.path
    rid = _request_id(request)
    if rid:
        payload["requestId"] = rid
    if errors:
        payload["errors"] = errors
    if extensions:
        payload["extensions"] = extensions

    return JSONResponse(
        status_code=status_code, content=payload, media_type=PROBLEM_JSON
    )


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    return problem_response(
        request=request,
        status_code=exc.status_code,
        title=exc.title,
        detail=exc.message,
        extensions=exc.details or None,
    )


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    detail = exc.detail if isinstance(exc.detail, str) else None
    return problem_response(
        request=request, status_code=exc.status_code, detail=detail
    )


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors: list[dict[str, Any]] = []
    for e in exc.errors():
        loc = e.get("loc") or ()
        errors.append(
            {
                "path": ".".join(str(x) for x in loc if x != "body"),
                "message": e.get("msg", "Invalid value"),
                "type": e.get("type"),
            }
        )
    return problem_response(
        request=request,
        status_code=422,
        title="Validation Failed",
        detail="Request validation failed",
        errors=errors,
    )


async def unhandled_exception_handler(
    request: Request, exc: Exception
) -> JSONResponse:
    get_logger("unhandled").exception(
        "unhandled_exception",
        http_method=request.method,
        path=request.url.path,
    )
    return problem_response(request=request, status_code=500, detail=str(exc))
