"""
Copo callback endpoints - PROVIDER ONLY

Copo notifies the URL we sent as notifyUrl (/callback) with either GET query
parameters or a POST body. The response must be the bare string "success";
anything else makes Copo deliver the callback again.

The merchant sign key travels in the signKey query parameter or the
X-Sign-Key header and is never part of the signed parameters.
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import PlainTextResponse
from sqlalchemy.orm import Session

from copo_gateway.infrastructure.database import get_db
from copo_gateway.services.reconciler import handle_callback
from copo_gateway.services.transaction_store import is_withdraw_order_no
from copo_gateway.utils.metrics import record_callback_received

logger = logging.getLogger(__name__)

router = APIRouter(tags=["callbacks"])

SIGN_KEY_PARAM = "signKey"
SIGN_KEY_HEADER = "X-Sign-Key"


async def callback_params(request: Request) -> Dict[str, Any]:
    """Callback fields from the query string (GET) or the body (POST, JSON or form)"""
    if request.method == "GET":
        params: Dict[str, Any] = dict(request.query_params)
        params.pop(SIGN_KEY_PARAM, None)
        return params

    content_type = request.headers.get("content-type", "")
    if "application/json" in content_type:
        try:
            body = await request.json()
        except ValueError:
            body = None
        if not isinstance(body, dict):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={
                    "error": {
                        "code": "INVALID_REQUEST",
                        "message": "Callback body must be a JSON object",
                    }
                },
            )
        return body

    form = await request.form()
    return {key: value for key, value in form.items() if isinstance(value, str)}


def callback_sign_key(request: Request) -> str:
    """Merchant sign key supplied alongside the callback"""
    return request.query_params.get(SIGN_KEY_PARAM) or request.headers.get(SIGN_KEY_HEADER) or ""


def _process(params: Dict[str, Any], sign_key: str, db: Session) -> PlainTextResponse:
    direction = "withdraw" if is_withdraw_order_no(str(params.get("orderNo") or "")) else "deposit"
    record_callback_received(direction=direction)
    ack = handle_callback(db=db, payload=params, secret_key=sign_key)
    return PlainTextResponse(ack)


@router.api_route(
    "/callback",
    methods=["GET", "POST"],
    response_class=PlainTextResponse,
    summary="Unified Copo callback (deposit and withdraw)",
)
def unified_callback(
    params: Dict[str, Any] = Depends(callback_params),
    sign_key: str = Depends(callback_sign_key),
    db: Session = Depends(get_db),
) -> PlainTextResponse:
    """
    Handle deposit and withdraw callbacks from Copo.

    Orders carrying the WITHDRAW marker are labelled as payouts; the
    reconciler itself trusts the direction stored on the transaction.
    """
    return _process(params, sign_key, db)


@router.api_route(
    "/payment/callback",
    methods=["GET", "POST"],
    response_class=PlainTextResponse,
    summary="Copo deposit callback",
)
def deposit_callback(
    params: Dict[str, Any] = Depends(callback_params),
    sign_key: str = Depends(callback_sign_key),
    db: Session = Depends(get_db),
) -> PlainTextResponse:
    """Deposit callback - same handling as /callback"""
    return _process(params, sign_key, db)


@router.api_route(
    "/withdraw/callback",
    methods=["GET", "POST"],
    response_class=PlainTextResponse,
    summary="Copo withdraw callback",
)
def withdraw_callback(
    params: Dict[str, Any] = Depends(callback_params),
    sign_key: str = Depends(callback_sign_key),
    db: Session = Depends(get_db),
) -> PlainTextResponse:
    """Withdraw callback - same handling as /callback"""
    return _process(params, sign_key, db)
