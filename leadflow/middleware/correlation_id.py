from __future__ import annotations

import uuid

from opentelemetry import trace
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from leadflow.context import reset_correlation_id, set_correlation_id
from leadflow.core.config import get_settings

# matches the width of audit_log.correlation_id
MAX_CORRELATION_ID_LENGTH = 128


def accepted_correlation_id(value: str | None) -> str | None:
    """Return the caller-supplied id when it can be stored and echoed as is, else ``None``."""
    if value is None:
        return None
    value = value.strip()
    if not value or len(value) > MAX_CORRELATION_ID_LENGTH or not value.isprintable():
        return None
    return value


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):  # type: ignore[no-untyped-def]
        header_name = get_settings().correlation_id_header
        correlation_id = accepted_correlation_id(request.headers.get(header_name)) or str(uuid.uuid4())
        request.state.correlation_id = correlation_id
        token = set_correlation_id(correlation_id)
        span = trace.get_current_span()
        if span is not None and span.is_recording():
            span.set_attribute("correlation_id", correlation_id)
        try:
            response = await call_next(request)
        finally:
            reset_correlation_id(token)

        response.headers[header_name] = correlation_id
        return response
