"""
Request logging middleware for structured logs with metrics
"""

import time
import logging
from typing import Callable
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from copo_gateway.infrastructure.logging_config import trace_id_context
from copo_gateway.utils.metrics import record_http_request

logger = logging.getLogger(__name__)

# Probes and scrapes are not worth a log line each
SKIP_LOG_PATHS = ("/health", "/ready", "/metrics")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware to log HTTP requests with structured JSON logs.

    Logs include trace_id, path, method, status_code and duration_ms.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()
        trace_id = trace_id_context.get()

        status_code = 500
        error = None
        try:
            response = await call_next(request)
            status_code = response.status_code
        except Exception as e:
            error = str(e)
            raise
        finally:
            duration_ms = (time.time() - start_time) * 1000

            if request.url.path not in SKIP_LOG_PATHS:
                log_data = {
                    "trace_id": trace_id,
                    "path": request.url.path,
                    "method": request.method,
                    "status_code": status_code,
                    "duration_ms": round(duration_ms, 2),
                }

                if error:
                    log_data["error"] = error
                    logger.error("Request failed", extra=log_data)
                elif status_code >= 500:
                    logger.error("Request failed", extra=log_data)
                elif status_code >= 400:
                    logger.warning("Request client error", extra=log_data)
                else:
                    logger.info("Request completed", extra=log_data)

            record_http_request(
                path=request.url.path,
                method=request.method,
                status_code=status_code,
                duration_seconds=duration_ms / 1000,
            )

        return response
