"""
FastAPI application entry point
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from copo_gateway import __version__
from copo_gateway.infrastructure.settings import get_settings
from copo_gateway.infrastructure.logging_config import setup_logging
from copo_gateway.api.exceptions import (
    gateway_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    general_exception_handler,
)
from copo_gateway.api.public.health import router as health_router
from copo_gateway.api.public.metrics import router as metrics_router
from copo_gateway.api.callbacks import router as callbacks_router
from copo_gateway.api.payment import router as payment_router
from copo_gateway.api.withdraw import router as withdraw_router
from copo_gateway.services.exceptions import GatewayError
from copo_gateway.utils.trace_id import TraceIDMiddleware
from copo_gateway.utils.request_logging import RequestLoggingMiddleware

# Get settings
settings = get_settings()

# Setup logging
setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Copo Gateway",
    description="Copo payment provider integration: deposits, payouts and callbacks",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

if settings.CORS_ENABLED:
    cors_origins = settings.cors_allow_origins_list
    if not cors_origins:
        logger.warning(
            "CORS_ENABLED=True but CORS_ALLOW_ORIGINS is empty or not set. "
            "No cross-origin requests will be allowed."
        )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

# Custom middlewares (last added is outermost, so the trace id is set before logging)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(TraceIDMiddleware)

# Register exception handlers
app.add_exception_handler(GatewayError, gateway_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, general_exception_handler)

# Register routers (callbacks before withdraw so /withdraw/callback is not taken for a path parameter)
app.include_router(health_router)
app.include_router(metrics_router)
app.include_router(callbacks_router)
app.include_router(payment_router)
app.include_router(withdraw_router)


@app.get("/")
def root():
    """Root endpoint"""
    return {
        "name": "Copo Gateway",
        "version": __version__,
        "status": "running",
    }
