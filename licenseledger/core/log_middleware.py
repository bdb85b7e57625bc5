"""
FastAPI middleware for request/correlation ID injection.

Injects request_id, correlation_id and the calling principal into
contextvars so structlog processors include them in every log entry.
"""
from __future__ import annotations

import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from licenseledger.core.structured_logging import (
    correlation_id_var,
    principal_var,
    request_id_var,
)

logger = logging.getLogger(__name__)


class CorrelationMiddleware(BaseHTTPMiddleware):
    """Inject request_id / correlation_id / principal into contextvars for every request."""

    async def dispatch(self, request: Request, call_next) -> Response:
        req_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        corr_id = request.headers.get("x-correlation-id") or uuid.uuid4().hex

        rid_token = request_id_var.set(req_id)
        cid_token = correlation_id_var.set(corr_id)
        pid_token = principal_var.set(request.headers.get("x-principal"))

        start = time.perf_counter()
        response = None
        try:
            response = await call_next(request)
        finally:
            duration_ms = round((time.perf_counter() - start) * 1000, 2)
            logger.info(
                "request_completed",
                extra={
                    "http.method": request.method,
                    "http.path": request.url.path,
                    "http.status_code": response.status_code if response else None,
                    "duration_ms": duration_ms,
                },
            )
            request_id_var.reset(rid_token)
            correlation_id_var.reset(cid_token)
            principal_var.reset(pid_token)

        response.headers["x-request-id"] = req_id
        response.headers["x-correlation-id"] = corr_id
        return response
