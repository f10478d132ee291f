from __future__ import annotations

import logging
import uuid

from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from app.errors import error_response

logger = logging.getLogger(__name__)

CORRELATION_HEADER = "X-Correlation-Id"


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        incoming = request.headers.get(CORRELATION_HEADER)
        cid = incoming.strip() if incoming and incoming.strip() else str(uuid.uuid4())
        request.state.correlation_id = cid

        try:
            response: Response = await call_next(request)
        except Exception:
            logger.exception("Unhandled error for %s %s (correlation_id=%s)", request.method, request.url.path, cid)
            response = JSONResponse(
                status_code=500,
                content=error_response("internal_error", "Unexpected server error"),
            )

        response.headers[CORRELATION_HEADER] = cid
        return response
