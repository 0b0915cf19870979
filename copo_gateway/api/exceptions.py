"""
Global exception handlers
"""

import logging
from decimal import Decimal
from typing import Any, Dict
from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from copo_gateway.services.exceptions import (
    GatewayError,
    InvalidSignatureError,
    OrderNotFoundError,
    ProviderRejectedError,
    UpstreamError,
    ValidationError,
)
from copo_gateway.utils.trace_id import get_trace_id

logger = logging.getLogger(__name__)

GATEWAY_ERROR_STATUS = {
    ValidationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ProviderRejectedError: status.HTTP_400_BAD_REQUEST,
    UpstreamError: status.HTTP_502_BAD_GATEWAY,
    InvalidSignatureError: status.HTTP_401_UNAUTHORIZED,
    OrderNotFoundError: status.HTTP_404_NOT_FOUND,
}


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle HTTP exceptions"""
    trace_id = get_trace_id(request)

    # If detail is already a dict with "error" key, use it directly (preserving custom codes)
    if isinstance(exc.detail, dict) and "error" in exc.detail:
        error_response: Dict[str, Any] = exc.detail.copy()
        if isinstance(error_response["error"], dict) and "trace_id" not in error_response["error"]:
            error_response["error"]["trace_id"] = trace_id
    else:
        error_response = {
            "error": {
                "code": f"HTTP_{exc.status_code}",
                "message": exc.detail if isinstance(exc.detail, str) else str(exc.detail),
                "trace_id": trace_id,
            }
        }

    return JSONResponse(
        status_code=exc.status_code,
        content=error_response,
        headers=getattr(exc, "headers", None),
    )


async def gateway_exception_handler(request: Request, exc: GatewayError) -> JSONResponse:
    """Handle domain errors raised by the services layer"""
    trace_id = get_trace_id(request)
    status_code = GATEWAY_ERROR_STATUS.get(type(exc), status.HTTP_400_BAD_REQUEST)

    error: Dict[str, Any] = {
        "code": exc.code,
        "message": exc.message,
        "trace_id": trace_id,
    }
    # Signature failures carry no details: nothing about the order leaks
    if exc.details and not isinstance(exc, InvalidSignatureError):
        error["details"] = exc.details

    return JSONResponse(status_code=status_code, content={"error": error})


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle validation exceptions"""
    trace_id = get_trace_id(request)

    def convert_non_serializable(obj):
        """Recursively convert non-JSON-serializable objects to strings"""
        if isinstance(obj, str):
            # Echoed input may hold lone surrogates that UTF-8 cannot encode
            return obj.encode("utf-8", "replace").decode("utf-8")
        elif isinstance(obj, (Decimal, Exception)):
            return str(obj).encode("utf-8", "replace").decode("utf-8")
        elif isinstance(obj, dict):
            return {key: convert_non_serializable(value) for key, value in obj.items()}
        elif isinstance(obj, (list, tuple)):
            return [convert_non_serializable(item) for item in obj]
        elif isinstance(obj, type):
            return str(obj)
        return obj

    error_response: Dict[str, Any] = {
        "error": {
            "code": "VALIDATION_ERROR",
            "message": "Request validation failed",
            "details": convert_non_serializable(exc.errors()),
            "trace_id": trace_id,
        }
    }

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=error_response,
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle general exceptions"""
    trace_id = get_trace_id(request)

    logger.exception("Unhandled exception", exc_info=exc, extra={"trace_id": trace_id})

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An internal error occurred",
                "trace_id": trace_id,
            }
        },
    )
