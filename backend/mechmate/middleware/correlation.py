"""
Correlation IDs for request and scheduler-run tracing.
"""
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

# Context variable holding the correlation ID of the current request or check run
correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")


def get_correlation_id() -> str:
    """Get the correlation ID for the current context."""
    return correlation_id_var.get()


def new_correlation_id(prefix: str = "") -> str:
    # Short 8-char ID for readability
    return f"{prefix}{uuid.uuid4().hex[:8]}"


@contextmanager
def correlation_scope(correlation_id: str):
    """Bind a correlation ID for the duration of a block (e.g. one scheduler run)."""
    token = correlation_id_var.set(correlation_id)
    try:
        yield correlation_id
    finally:
        correlation_id_var.reset(token)


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """
    Middleware that adds a correlation ID to each request.

    The correlation ID is read from the X-Correlation-ID header when present,
    otherwise generated, kept in context for log records and echoed back in
    the response headers.
    """

    HEADER_NAME = "X-Correlation-ID"

    async def dispatch(self, request: Request, call_next):
        correlation_id = request.headers.get(self.HEADER_NAME) or new_correlation_id()

        with correlation_scope(correlation_id):
            response = await call_next(request)
            response.headers[self.HEADER_NAME] = correlation_id
            return response


def correlation_id_filter(record):
    """
    Loguru filter that adds correlation_id to log records.
    """
    record["extra"]["correlation_id"] = get_correlation_id() or "-"
    return True
