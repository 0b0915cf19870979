"""
Withdraw (payout) endpoints - called by the upstream payment gateway
"""

import logging
from typing import Any, Dict
from uuid import UUID
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from copo_gateway.auth.dependencies import Principal, require_service_token
from copo_gateway.infrastructure.database import get_db
from copo_gateway.schemas.withdraw import (
    WithdrawData,
    WithdrawRequest,
    WithdrawResponse,
    WithdrawStatusResponse,
)
from copo_gateway.services import orchestrator
from copo_gateway.services.copo_client import CopoClient, get_copo_client

router = APIRouter(prefix="/withdraw", tags=["withdraw"])
logger = logging.getLogger(__name__)


@router.post(
    "",
    response_model=WithdrawResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create withdraw/payout order",
)
def create_withdraw(
    request: WithdrawRequest,
    db: Session = Depends(get_db),
    client: CopoClient = Depends(get_copo_client),
    principal: Principal = Depends(require_service_token),
) -> WithdrawResponse:
    """
    Create a Copo payout. On success the withdraw is PROCESSING until Copo calls back.
    """
    logger.info(
        f"Withdraw requested: site={request.site}, customer={request.username}, "
        f"amount={request.amount}, caller={principal.subject}"
    )
    result = orchestrator.initiate_payout(db=db, client=client, request=request)

    return WithdrawResponse(
        data=WithdrawData(
            withdraw_id=str(result.transaction_id),
            system_ref=result.provider_ref,
            order_no=result.merchant_order_no,
            fee=result.fee,
        )
    )


@router.post(
    "/query",
    summary="Query payout status from Copo",
)
def query_payout_status(
    merchant_id: str = Query(..., alias="merchantId", min_length=1),
    sign_key: str = Query(..., alias="signKey", min_length=1),
    order_no: str = Query(..., alias="orderNo", min_length=1),
    client: CopoClient = Depends(get_copo_client),
    _: Principal = Depends(require_service_token),
) -> Dict[str, Any]:
    """Raw Copo answer; local state is only changed by callbacks"""
    return orchestrator.query_payout_status(
        client=client,
        merchant_id=merchant_id,
        sign_key=sign_key,
        order_no=order_no,
    )


@router.get(
    "/{site}/{transaction_id}",
    response_model=WithdrawStatusResponse,
    summary="Check withdraw status",
)
def check_withdraw_status(
    site: str,
    transaction_id: UUID,
    db: Session = Depends(get_db),
    _: Principal = Depends(require_service_token),
) -> WithdrawStatusResponse:
    tx = orchestrator.check_withdraw_status(db=db, site=site, transaction_id=transaction_id)
    return WithdrawStatusResponse(
        customer_id=tx.customer_id,
        status=tx.status.value,
        amount=tx.amount,
    )
