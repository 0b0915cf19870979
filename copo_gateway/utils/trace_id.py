"""
Trace ID utilities for request tracking
"""

import uuid
from typing import Optional
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from copo_gateway.infrastructure.logging_config import trace_id_context


def generate_trace_id() -> str:
    """Generate a new trace ID"""
    return str(uuid.uuid4())


class TraceIDMiddleware(BaseHTTPMiddleware):
    """Middleware to inject trace_id into request, logs, and response headers"""

    async def dispatch(self, request: Request, call_next):
        trace_id = (
            request.headers.get("X-Trace-ID") or
            request.headers.get("X-Request-Id") or
            request.headers.get("X-Correlation-Id") or
            generate_trace_id()
        )

        request.state.trace_id = trace_id
        token = trace_id_context.set(trace_id)
        try:
            response = await call_next(request)
        finally:
            trace_id_context.reset(token)

        response.headers["X-Trace-ID"] = trace_id
        return response


def get_trace_id(request: Request) -> Optional[str]:
    """Get trace_id from request state"""
    return getattr(request.state, "trace_id", None)
