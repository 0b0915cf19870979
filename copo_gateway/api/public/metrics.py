"""
Prometheus metrics endpoint
"""

import hmac
import logging
from typing import Optional
from fastapi import APIRouter, HTTPException, status, Header, Depends
from fastapi.responses import Response

from copo_gateway.infrastructure.settings import get_settings
from copo_gateway.utils.metrics import get_metrics_output, CONTENT_TYPE_LATEST

logger = logging.getLogger(__name__)

router = APIRouter(tags=["metrics"])


def verify_metrics_access(
    x_metrics_token: Optional[str] = Header(None, alias="X-Metrics-Token"),
) -> bool:
    """
    Verify access to metrics endpoint.

    Access is granted if METRICS_PUBLIC=true, or METRICS_TOKEN is set and
    matches the X-Metrics-Token header.
    """
    settings = get_settings()

    if settings.METRICS_PUBLIC:
        return True

    if settings.METRICS_TOKEN and x_metrics_token:
        if hmac.compare_digest(x_metrics_token.encode("utf-8"), settings.METRICS_TOKEN.encode("utf-8")):
            return True

    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="Access to metrics endpoint denied. Set METRICS_PUBLIC=true or provide valid METRICS_TOKEN.",
    )


@router.get(
    "/metrics",
    summary="Prometheus metrics endpoint",
    description="Expose Prometheus metrics for observability. Protected by default (METRICS_PUBLIC=false).",
)
def get_metrics(_: bool = Depends(verify_metrics_access)) -> Response:
    """Prometheus metrics in exposition format"""
    return Response(
        content=get_metrics_output(),
        media_type=CONTENT_TYPE_LATEST,
    )
