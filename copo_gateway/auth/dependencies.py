"""
Authentication dependencies for FastAPI

Operator endpoints (deposit, withdraw, balance, status) are called by the
upstream payment gateway with an HS256 bearer token. Provider callbacks are
authenticated by their MD5 signature instead and do not use this.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import jwt as pyjwt
from fastapi import Header, HTTPException, status

from copo_gateway.infrastructure.settings import get_settings

logger = logging.getLogger(__name__)


@dataclass
class Principal:
    """Authenticated caller"""
    subject: str
    roles: List[str] = field(default_factory=list)
    claims: Dict[str, Any] = field(default_factory=dict)


def _unauthorized(code: str, message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={
            "error": {
                "code": code,
                "message": message,
            }
        },
        headers={"WWW-Authenticate": "Bearer"},
    )


def require_service_token(authorization: Optional[str] = Header(None)) -> Principal:
    """
    Extract the Principal from the bearer token in the Authorization header.
    """
    settings = get_settings()

    if not authorization:
        raise _unauthorized("AUTHORIZATION_MISSING", "Authorization header missing")

    try:
        scheme, token = authorization.split()
    except ValueError:
        raise _unauthorized("INVALID_AUTHORIZATION", "Invalid authorization header format")
    if scheme.lower() != "bearer":
        raise _unauthorized("INVALID_AUTHORIZATION", "Invalid authentication scheme")

    if not settings.JWT_SECRET:
        logger.error("JWT_SECRET not configured, rejecting operator request")
        raise _unauthorized("INVALID_TOKEN", "Token verification unavailable")

    try:
        payload = pyjwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except pyjwt.ExpiredSignatureError:
        raise _unauthorized("TOKEN_EXPIRED", "Token expired")
    except pyjwt.InvalidTokenError as e:
        raise _unauthorized("INVALID_TOKEN", f"Invalid token: {str(e)}")

    return Principal(
        subject=str(payload.get("sub", "")),
        roles=list(payload.get("roles", [])),
        claims=payload,
    )
