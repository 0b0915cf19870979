"""
Deposit endpoints - called by the upstream payment gateway
"""

import logging
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from copo_gateway.auth.dependencies import Principal, require_service_token
from copo_gateway.infrastructure.database import get_db
from copo_gateway.schemas.payment import (
    BalanceData,
    BalanceRequest,
    BalanceResponse,
    DepositData,
    DepositRequest,
    DepositResponse,
    OrderStatusResponse,
)
from copo_gateway.services import orchestrator
from copo_gateway.services.copo_client import CopoClient, get_copo_client

router = APIRouter(prefix="/payment", tags=["payment"])
logger = logging.getLogger(__name__)


@router.post(
    "/deposit",
    response_model=DepositResponse,
    summary="Create deposit payment order",
)
def create_deposit(
    request: DepositRequest,
    db: Session = Depends(get_db),
    client: CopoClient = Depends(get_copo_client),
    principal: Principal = Depends(require_service_token),
) -> DepositResponse:
    """
    Create a Copo deposit order and return the payment page.

    Errors:
    - 400 PROVIDER_REJECTED: Copo refused the order
    - 502 UPSTREAM_ERROR: Copo unreachable; the order stays PENDING
    """
    logger.info(
        f"Deposit requested: site={request.params.site}, customer={request.username}, "
        f"amount={request.amount}, caller={principal.subject}"
    )
    result = orchestrator.initiate_deposit(db=db, client=client, request=request)

    return DepositResponse(
        data=DepositData(
            id=str(result.transaction_id),
            merchant_ref=result.merchant_order_no,
            system_ref=result.provider_ref,
            payee=result.payee,
            pay_amount=result.pay_amount,
            qr_code=result.pay_url,
            expired_date=result.expired_at.isoformat(),
        )
    )


@router.post(
    "/balance",
    response_model=BalanceResponse,
    summary="Get Copo account balance",
)
def get_balance(
    request: BalanceRequest,
    client: CopoClient = Depends(get_copo_client),
    _: Principal = Depends(require_service_token),
) -> BalanceResponse:
    result = orchestrator.get_balance(client=client, params=request.params)
    return BalanceResponse(
        data=BalanceData(
            deposit_balance=result.deposit_balance,
            withdraw_balance=result.withdraw_balance,
            withdraw_pending=result.withdraw_pending,
            pay_amount=result.pay_amount,
            proxy_amount=result.proxy_amount,
        )
    )


@router.get(
    "/check",
    response_model=OrderStatusResponse,
    summary="Check deposit status by merchant order number",
)
def check_order(
    id: str = Query(..., min_length=1, description="Merchant order number"),
    db: Session = Depends(get_db),
    _: Principal = Depends(require_service_token),
) -> OrderStatusResponse:
    tx = orchestrator.check_deposit_status(db=db, order_no=id)
    return OrderStatusResponse(
        customer_id=tx.customer_id,
        status=tx.status.value,
        amount=tx.amount,
    )
