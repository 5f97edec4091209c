import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from voluntapp.observability import request_id_var

REQUEST_ID_HEADER = "X-Request-Id"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Tags each request with an id: the caller's X-Request-Id when it sends
    one, otherwise a fresh UUID. The id is bound for log records and
    returned on the response.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = (request.headers.get(REQUEST_ID_HEADER) or "").strip()
        request_id = request_id or str(uuid.uuid4())

        request.state.request_id = request_id
        token = request_id_var.set(request_id)
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
