"""
Request ID middleware.

Tags every request with an ID (taken from ``X-Request-ID`` when the caller
sends one) so the callback's log lines can be tied to a single redirect.
"""
import uuid
import logging
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class RequestIDMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id

        # Query strings carry OAuth codes; only the path is logged
        logger.info("[REQUEST] %s %s [ID: %s]", request.method, request.url.path, request_id)

        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
