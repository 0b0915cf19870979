"""
Copo HTTP client - direct API communication with the Copo payment gateway

Endpoints (all POST, JSON body, signed payloads):
- /dior/merchant-api/pay-order          Create deposit payment
- /dior/merchant-api/pay-query-balance  Query account balance
- /dior/merchant-api/proxy-order        Create payout/withdraw
- /dior/merchant-api/proxy-query        Query payout status

Failure semantics:
- respCode != "000"            -> ProviderRejectedError (the provider said no)
- network / timeout / bad body -> UpstreamError (we don't know)
Nothing is retried here; retry policy belongs to the caller.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from copo_gateway.infrastructure.settings import get_settings
from copo_gateway.services.exceptions import ProviderRejectedError, UpstreamError
from copo_gateway.utils.metrics import record_provider_request

logger = logging.getLogger(__name__)

SUCCESS_RESP_CODE = "000"

PAY_ORDER_PATH = "/dior/merchant-api/pay-order"
QUERY_BALANCE_PATH = "/dior/merchant-api/pay-query-balance"
PROXY_ORDER_PATH = "/dior/merchant-api/proxy-order"
PROXY_QUERY_PATH = "/dior/merchant-api/proxy-query"


class CopoClient:
    """Thin synchronous client for the Copo merchant API"""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        http_client: Optional[httpx.Client] = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.COPO_API_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.PROVIDER_TIMEOUT_SECONDS
        self._http_client = http_client

    def _post(self, path: str, payload: Dict[str, Any], endpoint: str) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        logger.debug(f"Copo request: {url}", extra={"endpoint": endpoint, "order_no": payload.get("orderNo")})

        try:
            if self._http_client is not None:
                response = self._http_client.post(
                    url,
                    json=payload,
                    headers={"Content-Type": "application/json"},
                    timeout=self.timeout,
                )
            else:
                with httpx.Client(timeout=self.timeout) as client:
                    response = client.post(
                        url,
                        json=payload,
                        headers={"Content-Type": "application/json"},
                    )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            record_provider_request(endpoint=endpoint, outcome="upstream_error")
            message = _resp_msg(e.response) or f"Copo returned HTTP {e.response.status_code}"
            logger.error(f"Copo HTTP error: endpoint={endpoint}, status={e.response.status_code}, message={message}")
            raise UpstreamError(message, {"endpoint": endpoint, "http_status": e.response.status_code})
        except httpx.HTTPError as e:
            record_provider_request(endpoint=endpoint, outcome="upstream_error")
            message = str(e) or type(e).__name__
            logger.error(f"Copo unreachable: endpoint={endpoint}, error={message}")
            raise UpstreamError(message, {"endpoint": endpoint})
        except ValueError as e:
            record_provider_request(endpoint=endpoint, outcome="upstream_error")
            logger.error(f"Copo returned a non-JSON body: endpoint={endpoint}, error={e}")
            raise UpstreamError("Invalid response from provider", {"endpoint": endpoint})

        if not isinstance(data, dict):
            record_provider_request(endpoint=endpoint, outcome="upstream_error")
            raise UpstreamError("Invalid response from provider", {"endpoint": endpoint})

        logger.debug(f"Copo response: endpoint={endpoint}, respCode={data.get('respCode')}")
        return data

    def _post_checked(self, path: str, payload: Dict[str, Any], endpoint: str, default_message: str) -> Dict[str, Any]:
        data = self._post(path, payload, endpoint)
        resp_code = str(data.get("respCode", ""))
        if resp_code != SUCCESS_RESP_CODE:
            record_provider_request(endpoint=endpoint, outcome="rejected")
            message = data.get("respMsg") or default_message
            logger.warning(f"Copo rejected request: endpoint={endpoint}, respCode={resp_code}, respMsg={message}")
            raise ProviderRejectedError(message, provider_code=resp_code or None)
        record_provider_request(endpoint=endpoint, outcome="accepted")
        return data

    def create_payment(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Create a deposit payment order; returns respCode/type/info/payOrderNo"""
        return self._post_checked(PAY_ORDER_PATH, payload, "pay_order", "Payment creation failed")

    def get_balance(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Query merchant balance; returns availableAmount/payAmount/proxyAmount"""
        return self._post_checked(QUERY_BALANCE_PATH, payload, "query_balance", "Balance query failed")

    def create_payout(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Create a payout/withdraw order"""
        return self._post_checked(PROXY_ORDER_PATH, payload, "proxy_order", "Payout creation failed")

    def query_payout(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Query payout status; the raw provider answer is returned as-is"""
        data = self._post(PROXY_QUERY_PATH, payload, "proxy_query")
        record_provider_request(endpoint="proxy_query", outcome="answered")
        return data


def _resp_msg(response: httpx.Response) -> Optional[str]:
    try:
        body = response.json()
    except ValueError:
        return None
    return body.get("respMsg") if isinstance(body, dict) else None


def get_copo_client() -> CopoClient:
    """FastAPI dependency - overridden in tests with a client on httpx.MockTransport"""
    return CopoClient()
