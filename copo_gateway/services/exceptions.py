"""
Gateway exceptions - every failure is scoped to a single request or callback
"""

from typing import Any, Dict, Optional


class GatewayError(Exception):
    """Base class for errors surfaced to the API layer"""

    code = "GATEWAY_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(GatewayError):
    """Raised when a transaction draft is invalid"""

    code = "VALIDATION_ERROR"


class ProviderRejectedError(GatewayError):
    """Copo answered with a non-success respCode - the provider said no"""

    code = "PROVIDER_REJECTED"

    def __init__(self, message: str, provider_code: Optional[str] = None):
        super().__init__(message, {"provider_code": provider_code} if provider_code else None)
        self.provider_code = provider_code


class UpstreamError(GatewayError):
    """Copo could not be reached or answered garbage - outcome unknown"""

    code = "UPSTREAM_ERROR"


class InvalidSignatureError(GatewayError):
    """Callback signature did not verify"""

    code = "INVALID_SIGNATURE"

    def __init__(self, message: str = "Invalid signature"):
        super().__init__(message)


class OrderNotFoundError(GatewayError):
    """Callback or status query references an unknown order"""

    code = "ORDER_NOT_FOUND"
