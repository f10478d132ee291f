"""Structured JSON access logging.

Every request logs one line on the `structured_access` logger:
{
  request_id,
  user_id,
  path,
  method,
  status_code,
  latency_ms
}

4xx responses log as warnings, 5xx and slow requests as errors. The
request id is echoed in the `X-Request-Id` response header.
"""
from __future__ import annotations

import json
import logging
import time
import uuid

import jwt
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from app.config import SLOW_REQUEST_MS

logger = logging.getLogger("structured_access")


def _extract_user_id(request: Request) -> str:
    """Subject claim of the bearer token, read without verification."""
    auth = request.headers.get("authorization", "")
    if not auth.lower().startswith("bearer "):
        return ""
    token = auth.split(" ", 1)[1]
    try:
        claims = jwt.decode(token, options={"verify_signature": False})
    except jwt.PyJWTError:
        return ""
    return str(claims.get("sub") or "")


def _entry(request: Request, request_id: str, status_code: int, latency_ms: float) -> str:
    return json.dumps(
        {
            "request_id": request_id,
            "user_id": _extract_user_id(request),
            "path": request.url.path,
            "method": request.method,
            "status_code": status_code,
            "latency_ms": latency_ms,
        }
    )


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """Log structured JSON for every request."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())[:12]
        start = time.monotonic()
        request.state.request_id = request_id

        try:
            response = await call_next(request)
        except Exception:
            latency_ms = round((time.monotonic() - start) * 1000, 2)
            logger.error(_entry(request, request_id, 500, latency_ms))
            raise

        latency_ms = round((time.monotonic() - start) * 1000, 2)
        status_code = response.status_code
        line = _entry(request, request_id, status_code, latency_ms)

        if status_code >= 500 or latency_ms > SLOW_REQUEST_MS:
            logger.error(line)
        elif status_code >= 400:
            logger.warning(line)
        else:
            logger.info(line)

        response.headers["X-Request-Id"] = request_id
        return response
