"""
Request tracing middleware.

Every request gets a correlation ID (taken from the caller when supplied, so
a console action and the API call it triggers share one) and a fresh event
ID. Both are set on the logging context and echoed back as headers.
"""
import time
import uuid
import logging

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from crisissync.core.logging import correlation_id_ctx, event_id_ctx

logger = logging.getLogger(__name__)

CORRELATION_HEADERS = ("X-Correlation-ID", "X-Trace-ID")


def _incident_id(path: str):
    """``/api/incidents/<id>`` -> ``<id>``; None for any other path."""
    _, marker, tail = path.rstrip("/").partition("/incidents/")
    if not marker or "/" in tail:
        return None
    return tail or None


class TracingMiddleware(BaseHTTPMiddleware):

    async def dispatch(self, request: Request, call_next):
        correlation_id = next(
            (request.headers[h] for h in CORRELATION_HEADERS if request.headers.get(h)),
            None,
        ) or str(uuid.uuid4())
        event_id = str(uuid.uuid4())

        correlation_id_ctx.set(correlation_id)
        event_id_ctx.set(event_id)

        fields = {
            "method": request.method,
            "path": request.url.path,
            "client_ip": request.client.host if request.client else None,
        }
        incident_id = _incident_id(request.url.path)
        if incident_id:
            fields["incident_id"] = incident_id

        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as e:
            fields.update(status_code=500, error=str(e))
            fields["duration_ms"] = round((time.perf_counter() - started) * 1000, 2)
            logger.error(
                f"Request failed: {request.method} {request.url.path}",
                extra={"extra_data": fields},
                exc_info=True,
            )
            raise

        fields["status_code"] = response.status_code
        fields["duration_ms"] = round((time.perf_counter() - started) * 1000, 2)
        # Rejected writes (401/403/400) are worth seeing above INFO
        level = logging.WARNING if 400 <= response.status_code < 500 and request.method != "GET" else logging.INFO
        logger.log(level, f"{request.method} {request.url.path} -> {response.status_code}", extra={"extra_data": fields})

        response.headers["X-Correlation-ID"] = correlation_id
        response.headers["X-Event-ID"] = event_id
        return response
