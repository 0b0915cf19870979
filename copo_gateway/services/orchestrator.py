"""
Request orchestrator - deposit and payout creation against Copo

Flow for both directions:
1. Create transaction row (PENDING, merchant order number assigned)
2. Build provider payload - notifyUrl points to THIS service's /callback
3. Sign payload with the caller-supplied sign key
4. POST to Copo (bounded timeout, no retries)
5. Rejected by Copo  -> mark FAILED, raise ProviderRejectedError
   Unreachable       -> row stays PENDING, UpstreamError propagates
   Accepted          -> record provider reference and preview, return them
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional
from uuid import UUID
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from copo_gateway.core.transactions.models import TransactionDirection, TransactionStatus
from copo_gateway.infrastructure.settings import get_settings
from copo_gateway.schemas.payment import CopoProviderParams, DepositRequest
from copo_gateway.schemas.withdraw import WithdrawRequest
from copo_gateway.services import transaction_store
from copo_gateway.services.copo_client import CopoClient
from copo_gateway.services.exceptions import OrderNotFoundError, ProviderRejectedError
from copo_gateway.services.signing import sign

logger = logging.getLogger(__name__)


@dataclass
class DepositResult:
    transaction_id: UUID
    merchant_order_no: str
    provider_ref: Optional[str]
    payee: str
    pay_amount: Decimal
    pay_url: str
    expired_at: datetime


@dataclass
class PayoutResult:
    transaction_id: UUID
    merchant_order_no: str
    provider_ref: Optional[str]
    fee: Decimal = Decimal("0")


@dataclass
class BalanceResult:
    deposit_balance: Decimal
    withdraw_balance: Decimal
    withdraw_pending: Decimal
    pay_amount: Decimal
    proxy_amount: Decimal


def _format_amount(amount: Decimal) -> str:
    return f"{Decimal(amount):.2f}"


def _to_decimal(value: Any) -> Decimal:
    try:
        return Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        return Decimal("0")


def _signed(payload: Dict[str, Any], sign_key: str) -> Dict[str, Any]:
    payload["sign"] = sign(payload, sign_key)
    return payload


def initiate_deposit(
    *,
    db: Session,
    client: CopoClient,
    request: DepositRequest,
) -> DepositResult:
    """
    Create a deposit payment order with Copo.

    Raises:
        ProviderRejectedError: Copo refused the order (row is FAILED)
        UpstreamError: Copo unreachable or unintelligible (row stays PENDING)
    """
    settings = get_settings()
    params = request.params

    tx = transaction_store.create_transaction(
        db=db,
        direction=TransactionDirection.DEPOSIT,
        site=params.site,
        amount=request.amount,
        customer_id=request.username,
        merchant_id=params.merchant_id,
        gateway_id=params.gateway_id,
        callback_url=params.callback_url,
    )
    transaction_id = tx.id
    order_no = tx.merchant_order_no

    payload = _signed(
        {
            "accessType": settings.COPO_ACCESS_TYPE,
            "merchantId": params.merchant_id,
            "notifyUrl": settings.callback_url,
            "pageUrl": params.result_url or params.callback_url,
            "language": settings.COPO_LANGUAGE,
            "orderNo": order_no,
            "orderAmount": _format_amount(request.amount),
            "currency": settings.COPO_CURRENCY,
            "payType": settings.COPO_DEPOSIT_PAY_TYPE,
            "orderName": f"Deposit for {request.username}",
        },
        params.sign_key,
    )

    try:
        data = client.create_payment(payload)
    except ProviderRejectedError as e:
        transaction_store.mark_request_rejected(
            db=db,
            transaction_id=transaction_id,
            error_code=e.provider_code,
            error_message=e.message,
        )
        raise

    # Validity window is expressed in the provider's local time zone
    expired_at = (
        datetime.now(timezone.utc) + timedelta(minutes=settings.DEPOSIT_EXPIRY_MINUTES)
    ).astimezone(ZoneInfo(settings.PROVIDER_TIMEZONE))

    # Copo returns type "url" with the redirect/QR page in info
    pay_url = (data.get("info") or "") if data.get("type") == "url" else ""
    provider_ref = data.get("payOrderNo")

    transaction_store.mark_request_accepted(
        db=db,
        transaction_id=transaction_id,
        provider_ref=provider_ref,
        pay_url=pay_url or None,
        expired_at=expired_at,
    )

    return DepositResult(
        transaction_id=transaction_id,
        merchant_order_no=order_no,
        provider_ref=provider_ref,
        payee=request.username,
        pay_amount=request.amount,
        pay_url=pay_url,
        expired_at=expired_at,
    )


def initiate_payout(
    *,
    db: Session,
    client: CopoClient,
    request: WithdrawRequest,
) -> PayoutResult:
    """
    Create a payout/withdraw order with Copo.

    On acceptance the row moves PENDING -> PROCESSING and waits for the callback.

    Raises:
        ProviderRejectedError: Copo refused the payout (row is FAILED)
        UpstreamError: Copo unreachable or unintelligible (row stays PENDING)
    """
    settings = get_settings()

    tx = transaction_store.create_transaction(
        db=db,
        direction=TransactionDirection.WITHDRAW,
        site=request.site,
        amount=request.amount,
        customer_id=request.username,
        merchant_id=request.merchant_id,
        gateway_id=request.gateway_id,
        callback_url=request.callback_url,
        bank_name=request.bank_name,
        bank_account=request.bank_account,
        bank_account_name=request.bank_account_name,
    )
    transaction_id = tx.id
    order_no = tx.merchant_order_no

    payload = _signed(
        {
            "accessType": settings.COPO_ACCESS_TYPE,
            "merchantId": request.merchant_id,
            "notifyUrl": settings.callback_url,
            "pageUrl": request.callback_url,
            "language": settings.COPO_LANGUAGE,
            "orderNo": order_no,
            "orderAmount": _format_amount(request.amount),
            "currency": settings.COPO_CURRENCY,
            "payType": settings.COPO_PAYOUT_PAY_TYPE,
            "bankName": request.bank_name,
            "bankAccount": request.bank_account,
            "bankAccountName": request.bank_account_name,
            "orderName": f"Withdraw for {request.username}",
        },
        request.sign_key,
    )

    try:
        data = client.create_payout(payload)
    except ProviderRejectedError as e:
        transaction_store.mark_request_rejected(
            db=db,
            transaction_id=transaction_id,
            error_code=e.provider_code,
            error_message=e.message,
        )
        raise

    provider_ref = data.get("payOrderNo")
    transaction_store.mark_request_accepted(
        db=db,
        transaction_id=transaction_id,
        provider_ref=provider_ref,
    )

    return PayoutResult(
        transaction_id=transaction_id,
        merchant_order_no=order_no,
        provider_ref=provider_ref,
    )


def get_balance(*, client: CopoClient, params: CopoProviderParams) -> BalanceResult:
    """Query merchant balance - Copo keeps a single balance for pay-in and payout"""
    settings = get_settings()
    payload = _signed(
        {
            "accessType": settings.COPO_ACCESS_TYPE,
            "merchantId": params.merchant_id,
            "currency": settings.COPO_CURRENCY,
        },
        params.sign_key,
    )

    data = client.get_balance(payload)
    available = _to_decimal(data.get("availableAmount"))

    return BalanceResult(
        deposit_balance=available,
        withdraw_balance=available,
        withdraw_pending=Decimal("0"),
        pay_amount=_to_decimal(data.get("payAmount")),
        proxy_amount=_to_decimal(data.get("proxyAmount")),
    )


def query_payout_status(
    *,
    client: CopoClient,
    merchant_id: str,
    sign_key: str,
    order_no: str,
) -> Dict[str, Any]:
    """Ask Copo for the status of a payout (manual check, no local state change)"""
    settings = get_settings()
    payload = _signed(
        {
            "accessType": settings.COPO_ACCESS_TYPE,
            "merchantId": merchant_id,
            "orderNo": order_no,
        },
        sign_key,
    )
    return client.query_payout(payload)


def check_deposit_status(*, db: Session, order_no: str):
    """Local deposit status by merchant order number; FAILED deposits are reported as not found"""
    tx = transaction_store.find_by_order_no(db, order_no)
    if (
        tx is None
        or tx.direction != TransactionDirection.DEPOSIT
        or tx.status == TransactionStatus.FAILED
    ):
        raise OrderNotFoundError("Order not found")
    return tx


def check_withdraw_status(*, db: Session, site: str, transaction_id: UUID):
    """Local payout status by site and transaction id"""
    tx = transaction_store.get_transaction(db, transaction_id, site=site)
    if tx is None or tx.direction != TransactionDirection.WITHDRAW:
        raise OrderNotFoundError("Withdraw not found")
    return tx
